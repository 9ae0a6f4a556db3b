"""Login, registration and logout.

These operations know nothing about HTTP. They return an AuthResult on
success and raise an AuthFlowError subclass on failure; the route layer turns
either into a redirect, a re-rendered form or a JSON envelope. A session is
only created once every check has passed.
"""
from dataclasses import dataclass
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError

from . import auth
from .auth import SessionContext
from .errors import AuthError, ConflictError, StoreError, ValidationError

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
PASSWORD_MIN_LENGTH = 6

INVALID_CREDENTIALS = "Invalid credentials"
USERNAME_TAKEN = "Username already exists"


def utf16_length(value: str) -> int:
    """Length in UTF-16 code units, so astral characters count as two."""
    return len(value.encode("utf-16-le")) // 2


@dataclass(frozen=True)
class AuthResult:
    user_id: int
    username: str
    session_token: str


async def _replace_session(ctx: SessionContext, user) -> AuthResult:
    # drop any session the client already holds so a fresh token is issued
    if ctx.session_token:
        try:
            await auth.delete_session(ctx.session_token)
        except Exception:
            logger.exception("failed to drop previous session for %s", ctx.username)
    row = await auth.create_session_for_user(user)
    return AuthResult(user_id=user.id, username=user.username, session_token=row.session_token)


async def _discard_user(user) -> None:
    # a registration that reports failure must not leave its account behind
    try:
        await auth.delete_user(user.id)
    except Exception:
        logger.exception("failed to remove partially registered user_id=%s", user.id)


async def login(ctx: SessionContext, username: Optional[str], password: Optional[str]) -> AuthResult:
    """Check credentials and open a session.

    Unknown users and wrong passwords raise the same AuthError so callers
    cannot tell which field was wrong.
    """
    logger.info('login attempt username=%s', username)
    if not username or not password:
        raise ValidationError("Username and password are required")
    try:
        user = await auth.get_user_by_username(username)
        if not user:
            # spend the same hashing time as a real verify
            auth.pwd_context.dummy_verify()
            logger.info('login failed: unknown user username=%s', username)
            raise AuthError(INVALID_CREDENTIALS)
        if not await auth.verify_password(password, user.password_hash):
            logger.info('login failed: bad password username=%s', username)
            raise AuthError(INVALID_CREDENTIALS)
        result = await _replace_session(ctx, user)
    except AuthError:
        raise
    except Exception as exc:
        logger.exception('login error username=%s', username)
        raise StoreError("Server error during login") from exc
    logger.info('login successful user_id=%s username=%s', result.user_id, result.username)
    return result


def validate_registration(username: Optional[str], password: Optional[str], confirm_password: Optional[str]) -> str:
    """Apply the registration field rules in order and return the trimmed username."""
    if not username or not password or not confirm_password:
        raise ValidationError("All fields are required")
    trimmed = username.strip()
    if utf16_length(trimmed) < USERNAME_MIN_LENGTH:
        raise ValidationError(f"Username must be at least {USERNAME_MIN_LENGTH} characters long")
    if utf16_length(trimmed) > USERNAME_MAX_LENGTH:
        raise ValidationError(f"Username cannot exceed {USERNAME_MAX_LENGTH} characters")
    if utf16_length(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if password != confirm_password:
        raise ValidationError("Passwords do not match")
    return trimmed


async def register(ctx: SessionContext, username: Optional[str], password: Optional[str], confirm_password: Optional[str]) -> AuthResult:
    """Create an account and open a session for it.

    The existence check is only a fast path. The unique index is the source
    of truth: an IntegrityError on insert means another request registered
    the same name first, and is reported exactly like the pre-check.
    """
    logger.info('registration attempt username=%s password_length=%d', username, len(password or ''))
    try:
        trimmed = validate_registration(username, password, confirm_password)
    except ValidationError as e:
        logger.info('registration rejected username=%s reason=%s', username, e.message)
        raise
    try:
        if await auth.get_user_by_username(trimmed):
            logger.info('registration rejected: username exists username=%s', trimmed)
            raise ConflictError(USERNAME_TAKEN)
        try:
            user = await auth.create_user(trimmed, password)
        except IntegrityError:
            logger.info('registration lost uniqueness race username=%s', trimmed)
            raise ConflictError(USERNAME_TAKEN)
        logger.info('user created user_id=%s username=%s', user.id, user.username)
        try:
            result = await _replace_session(ctx, user)
        except Exception:
            await _discard_user(user)
            raise
    except ConflictError:
        raise
    except Exception as exc:
        logger.exception('registration error username=%s', trimmed)
        raise StoreError("Registration failed due to server error") from exc
    logger.info('registration successful user_id=%s username=%s', result.user_id, result.username)
    return result


async def logout(ctx: SessionContext) -> None:
    """Destroy the current session, if any.

    Always succeeds from the caller's point of view: a missing session is a
    no-op and a store failure is only logged.
    """
    if not ctx.session_token:
        logger.info('logout with no active session')
        return
    try:
        removed = await auth.delete_session(ctx.session_token)
    except Exception:
        logger.exception('logout error username=%s', ctx.username)
        return
    logger.info('logout successful username=%s removed=%s', ctx.username, removed)
