"""Client messages — the conversation with the nutritionist."""

import streamlit as st
from utils import api, current_user, require_login, show_sidebar

require_login()
show_sidebar()

st.title("💬 Messages")

user_id = current_user().get("id")
messages = api("GET", "/messages") or []

if any(m["recipient_id"] == user_id and not m["read"] for m in messages):
    api("POST", "/messages/read", json={})

if not messages:
    st.info("No messages yet. Say hello to your nutritionist!")
for msg in messages:
    role = "user" if msg["sender_id"] == user_id else "assistant"
    with st.chat_message(role, avatar="🙂" if role == "user" else "🥗"):
        if msg.get("subject"):
            st.markdown(f"**{msg['subject']}**")
        st.markdown(msg["message"])
        st.caption(msg["created_at"][:16].replace("T", " ") if msg.get("created_at") else "")

text = st.chat_input("Write a message", max_chars=2000)
if text:
    if api("POST", "/messages", json={"message": text}) is not None:
        st.rerun()
