"""Managed authentication: accounts, sessions and roles.

Passwords are stored as bcrypt hashes in ``users``; a successful login
issues an opaque bearer token stored in ``auth_sessions``. Every request
resolves its token to a ``Principal`` that the policy layer evaluates.

``users`` and ``auth_sessions`` carry no row-level policies, so this module
reads and writes them with the ``SERVICE`` principal. The new user's own
profile and ``client`` role are written as that user, through the ordinary
insert policies.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt as _bcrypt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db_models import AuthSession, Profile, User, UserRole
from app.errors import AuthError
from app.gateway import Table
from app.models import SessionResponse, UserInfo
from app.policies import ANONYMOUS, SERVICE, Principal

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return _bcrypt.hashpw(password.encode(), _bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return _bcrypt.checkpw(password.encode(), hashed.encode())


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ── Sessions ──────────────────────────────────────────────────────────────────


async def _roles_for(db: AsyncSession, user_id: int) -> frozenset[str]:
    rows = await Table(db, SERVICE, UserRole).select(UserRole.user_id == user_id)
    return frozenset(row.role for row in rows)


async def _issue_session(db: AsyncSession, user: User) -> SessionResponse:
    now = datetime.now(timezone.utc)
    sessions = Table(db, SERVICE, AuthSession)
    # Expired tokens are pruned per user at each login.
    await sessions.delete(AuthSession.user_id == user.id, AuthSession.expires_at <= now)
    expires_at = now + timedelta(hours=settings.session_ttl_hours)
    session = await sessions.insert(
        token=secrets.token_urlsafe(32), user_id=user.id, expires_at=expires_at
    )
    await db.commit()
    principal = Principal(user_id=user.id, roles=await _roles_for(db, user.id))
    return SessionResponse(
        access_token=session.token,
        expires_at=expires_at,
        user=await get_user_info(db, principal),
    )


async def signup(
    db: AsyncSession, email: str, password: str, full_name: str
) -> SessionResponse:
    """Register a client account and sign it in.

    Args:
        db: Active async database session.
        email: Login email; stored lower-cased.
        password: Plaintext password, at least six characters.
        full_name: Display name written to the new profile.

    Returns:
        A session for the new user.

    Raises:
        ValueError: If the password is too short.
        sqlalchemy.exc.IntegrityError: If the email is already registered.
    """
    email = email.strip().lower()
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")

    user = await Table(db, SERVICE, User).insert(
        email=email, hashed_password=hash_password(password)
    )
    as_user = Principal(user_id=user.id)
    await Table(db, as_user, Profile).insert(id=user.id, full_name=full_name.strip() or None)
    await Table(db, as_user, UserRole).insert(user_id=user.id, role="client")
    await db.commit()
    logger.info("New client account %s", user.id)
    return await _issue_session(db, user)


async def login(db: AsyncSession, email: str, password: str) -> SessionResponse:
    """Verify credentials and issue a new session.

    Raises:
        AuthError: If the email is unknown or the password is wrong.
    """
    user = await Table(db, SERVICE, User).first(User.email == email.strip().lower())
    if user is None or not verify_password(password, user.hashed_password):
        raise AuthError("Invalid login credentials.")
    logger.info("User %s signed in", user.id)
    return await _issue_session(db, user)


async def logout(db: AsyncSession, token: str) -> None:
    await Table(db, SERVICE, AuthSession).delete(AuthSession.token == token)
    await db.commit()


async def resolve_principal(db: AsyncSession, token: str | None) -> Principal:
    """Map a bearer token to the caller's ``Principal``.

    Returns ``ANONYMOUS`` when no token is given.

    Raises:
        AuthError: If the token is unknown or expired.
    """
    if not token:
        return ANONYMOUS
    session = await Table(db, SERVICE, AuthSession).first(AuthSession.token == token)
    if session is None:
        raise AuthError("Invalid session token.")
    if _as_utc(session.expires_at) <= datetime.now(timezone.utc):
        await Table(db, SERVICE, AuthSession).delete(AuthSession.id == session.id)
        await db.commit()
        raise AuthError("Session expired. Please sign in again.")
    return Principal(user_id=session.user_id, roles=await _roles_for(db, session.user_id))


# ── Users ─────────────────────────────────────────────────────────────────────


async def get_user_info(db: AsyncSession, principal: Principal) -> UserInfo:
    """Describe the signed-in user: email, roles and onboarding state."""
    if principal.user_id is None:
        raise AuthError("Not signed in.")
    user = await Table(db, SERVICE, User).get(principal.user_id)
    profile = await Table(db, principal, Profile).first(Profile.id == principal.user_id)
    return UserInfo(
        id=user.id,
        email=user.email,
        roles=sorted(principal.roles),
        full_name=profile.full_name if profile else None,
        onboarding_completed=bool(profile and profile.onboarding_completed),
    )


async def get_emails(db: AsyncSession, user_ids: list[int]) -> dict[int, str]:
    """Look up login emails by user id (privileged; used for notifications)."""
    if not user_ids:
        return {}
    users = await Table(db, SERVICE, User).select(User.id.in_(user_ids))
    return {user.id: user.email for user in users}


async def first_admin_id(db: AsyncSession) -> int | None:
    """User id of the nutritionist (the earliest admin grant)."""
    role = await Table(db, SERVICE, UserRole).first(
        UserRole.role == "admin", order_by=[UserRole.id]
    )
    return role.user_id if role else None


async def bootstrap_admin(db: AsyncSession) -> None:
    """Create the nutritionist account from settings if no admin exists.

    Safe to call on every startup.
    """
    if await first_admin_id(db) is not None:
        return

    users = Table(db, SERVICE, User)
    email = settings.admin_email.strip().lower()
    user = await users.first(User.email == email)
    if user is None:
        user = await users.insert(
            email=email, hashed_password=hash_password(settings.admin_password)
        )
        await Table(db, SERVICE, Profile).insert(
            id=user.id, full_name=settings.admin_full_name, onboarding_completed=True
        )
    await Table(db, SERVICE, UserRole).insert(user_id=user.id, role="admin")
    await db.commit()
    logger.info("Bootstrapped admin account %s", email)
