"""Nutritionist messages — one conversation per client."""

import streamlit as st
from utils import api, client_options, current_user, require_admin, show_sidebar

require_admin()
show_sidebar()

st.title("💬 Messages")

options = client_options()
if not options:
    st.info("No clients yet.")
    st.stop()

messages = api("GET", "/messages") or []
admin_id = current_user().get("id")
unread_by_client: dict[int, int] = {}
for msg in messages:
    if msg["recipient_id"] == admin_id and not msg["read"]:
        unread_by_client[msg["sender_id"]] = unread_by_client.get(msg["sender_id"], 0) + 1


def _label(client_id: int) -> str:
    unread = unread_by_client.get(client_id)
    return f"{options[client_id]} ({unread} new)" if unread else options[client_id]


client_id = st.selectbox("Client", list(options), format_func=_label)
thread = [m for m in messages if client_id in (m["sender_id"], m["recipient_id"])]

if unread_by_client.get(client_id):
    api("POST", "/messages/read", json={"sender_id": client_id})

if not thread:
    st.caption("No messages with this client yet.")
for msg in thread:
    mine = msg["sender_id"] == admin_id
    with st.chat_message("assistant" if mine else "user", avatar="🥗" if mine else "🙂"):
        if msg.get("subject"):
            st.markdown(f"**{msg['subject']}**")
        st.markdown(msg["message"])
        st.caption(msg["created_at"][:16].replace("T", " ") if msg.get("created_at") else "")

text = st.chat_input("Reply", max_chars=2000)
if text:
    if api("POST", "/messages", json={"message": text, "recipient_id": client_id}) is not None:
        st.rerun()
