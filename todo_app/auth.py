"""Credential store, session store and the access gate.

Thin async wrappers around the User and Session tables, the helpers that
sign and verify the session cookie, and the FastAPI dependencies that expose
the per-request SessionContext. Store functions let exceptions propagate;
the auth flow decides what they mean to the client.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import logging
import secrets

from fastapi import Depends, Request
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import delete as sqlalchemy_delete
from sqlmodel import select

from . import config
from .db import async_session
from .errors import LoginRequired
from .models import Session, User
from .utils import as_utc, now_utc

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# prefer a pure-Python, widely-available scheme for tests and portability;
# keep bcrypt so hashes created elsewhere still verify.
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class SessionContext:
    """Per-request identity, built from the session cookie.

    An empty context (all None) means the request is anonymous.
    """
    session_token: Optional[str] = None
    user_id: Optional[int] = None
    username: Optional[str] = None

    @classmethod
    def from_row(cls, row: Session) -> "SessionContext":
        return cls(session_token=row.session_token, user_id=row.user_id, username=row.username)


ANONYMOUS = SessionContext()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


async def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


async def get_user_by_username(username: str) -> Optional[User]:
    async with async_session() as sess:
        q = await sess.exec(select(User).where(User.username == username))
        return q.first()


async def get_user_by_id(user_id: int) -> Optional[User]:
    async with async_session() as sess:
        return await sess.get(User, user_id)


async def create_user(username: str, password: str) -> User:
    """Insert a new user with a hashed password.

    Raises sqlalchemy.exc.IntegrityError when the username is taken.
    """
    async with async_session() as sess:
        user = User(username=username, password_hash=hash_password(password))
        sess.add(user)
        try:
            await sess.commit()
        except Exception:
            await sess.rollback()
            raise
        await sess.refresh(user)
        return user


async def delete_user(user_id: int) -> bool:
    """Delete the user row for user_id. Returns False when it does not exist."""
    async with async_session() as sess:
        user = await sess.get(User, user_id)
        if not user:
            return False
        await sess.delete(user)
        await sess.commit()
    return True


async def list_users() -> list[User]:
    async with async_session() as sess:
        q = await sess.exec(select(User).order_by(User.id))
        return list(q.all())


async def create_session_for_user(user: User, token: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> Session:
    """Create a server-side session row for user and return it.

    If token is provided it will be used; otherwise a secure random token
    is generated. expires_delta defaults to the configured session TTL.
    Rows that have already expired are purged in the same transaction.
    """
    sess_token = token or secrets.token_urlsafe(32)
    if expires_delta is None:
        expires_delta = timedelta(seconds=config.SESSION_TTL_SECONDS)
    expires_at = now_utc() + expires_delta
    async with async_session() as s:
        await s.exec(sqlalchemy_delete(Session).where(Session.expires_at <= now_utc()))
        row = Session(session_token=sess_token, user_id=user.id, username=user.username, expires_at=expires_at)
        s.add(row)
        await s.commit()
        await s.refresh(row)
    return row


async def get_session(session_token: str) -> Optional[Session]:
    """Return the live session row for session_token, or None.

    Expired rows are deleted best-effort and reported as absent.
    """
    async with async_session() as s:
        q = await s.exec(select(Session).where(Session.session_token == session_token))
        row = q.first()
        if not row:
            return None
        expires_at = as_utc(row.expires_at)
        if expires_at and expires_at <= now_utc():
            try:
                await s.delete(row)
                await s.commit()
            except Exception:
                logger.exception("failed to delete expired session for user_id=%s", row.user_id)
            return None
        return row


async def delete_session(session_token: str) -> bool:
    """Delete the session row for session_token.

    Returns False when no such session exists; deleting twice is not an error.
    """
    async with async_session() as s:
        q = await s.exec(select(Session).where(Session.session_token == session_token))
        row = q.first()
        if not row:
            return False
        await s.delete(row)
        await s.commit()
    return True


def sign_session_token(session_token: str, expires_at: Optional[datetime] = None) -> str:
    """Wrap a session token in a signed JWT suitable for the session cookie."""
    if expires_at is None:
        expires_at = now_utc() + timedelta(seconds=config.SESSION_TTL_SECONDS)
    # RFC 7519 NumericDate: seconds since epoch as an int.
    payload = {"sid": session_token, "exp": int(as_utc(expires_at).timestamp())}
    return jwt.encode(payload, config.SECRET_KEY, algorithm=ALGORITHM)


def unsign_session_token(cookie_value: Optional[str]) -> Optional[str]:
    """Return the session token inside a signed cookie, or None if it does not verify."""
    if not cookie_value:
        return None
    try:
        payload = jwt.decode(cookie_value, config.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.info('session cookie rejected: %s', str(e))
        return None
    sid = payload.get("sid")
    if not isinstance(sid, str) or not sid:
        return None
    return sid


async def load_session_context(cookie_value: Optional[str]) -> SessionContext:
    """Resolve a raw cookie value into a SessionContext.

    Missing, tampered, unknown and expired sessions all yield ANONYMOUS.
    """
    session_token = unsign_session_token(cookie_value)
    if not session_token:
        return ANONYMOUS
    row = await get_session(session_token)
    if not row:
        return ANONYMOUS
    return SessionContext.from_row(row)


def is_authenticated(ctx: Optional[SessionContext]) -> bool:
    return bool(ctx is not None and ctx.user_id is not None)


async def get_session_context(request: Request) -> SessionContext:
    """Dependency returning the SessionContext the request middleware attached."""
    return getattr(request.state, "session", ANONYMOUS)


async def require_session(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
    """Dependency that gates protected pages on an active session.

    Raises LoginRequired, which the app turns into a redirect to the login
    page rather than an error body.
    """
    if not is_authenticated(ctx):
        raise LoginRequired()
    return ctx
