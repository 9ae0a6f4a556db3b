from typing import Optional
from datetime import datetime
from .utils import now_utc
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """Registered account. password_hash holds a passlib hash, never plaintext."""
    id: Optional[int] = Field(default=None, primary_key=True)
    # Uniqueness is enforced by the DB index; inserts that violate it raise
    # IntegrityError, which callers treat as "username already exists".
    username: str = Field(index=True, max_length=30, sa_column_kwargs={"unique": True})
    password_hash: str
    created_at: datetime | None = Field(default_factory=now_utc)


class Session(SQLModel, table=True):
    """Server-side session store for browser clients.

    session_token is a secure random string referenced by a signed HttpOnly
    cookie. user_id is a weak reference: deleting a user does not remove its
    sessions, so readers must tolerate a user lookup miss. username is a
    denormalized copy for display. Rows past expires_at are treated as absent.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    session_token: str = Field(sa_column_kwargs={"unique": True, "index": True})
    user_id: int = Field(index=True)
    username: str
    created_at: datetime | None = Field(default_factory=now_utc)
    expires_at: Optional[datetime] = None
