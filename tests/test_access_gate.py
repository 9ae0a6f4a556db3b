import pytest
from datetime import timedelta
from jose import jwt
from sqlmodel import select

from todo_app import auth
from todo_app import main as app_main
from todo_app.db import async_session
from todo_app.models import Session, User
from todo_app.utils import now_utc

pytestmark = pytest.mark.asyncio


async def create_user(username: str, password: str = "secret1") -> User:
    async with async_session() as sess:
        u = User(username=username, password_hash=auth.pwd_context.hash(password))
        sess.add(u)
        await sess.commit()
        await sess.refresh(u)
        return u


@pytest.mark.parametrize("path", ["/tasks", "/calendar"])
async def test_protected_routes_redirect_anonymous(client, path):
    r = await client.get(path)
    assert r.status_code == 303
    assert r.headers["location"] == "/auth/login"


async def test_calendar_redirects_to_tasks_when_logged_in(client):
    await create_user("cal")
    await client.post("/auth/login", data={"username": "cal", "password": "secret1"})
    r = await client.get("/calendar")
    assert r.status_code == 303
    assert r.headers["location"] == "/tasks"


async def test_tampered_cookie_is_ignored(client):
    user = await create_user("tamper")
    row = await auth.create_session_for_user(user)
    # a real session id signed with the wrong key
    forged = jwt.encode({"sid": row.session_token, "exp": int((now_utc() + timedelta(hours=1)).timestamp())}, "not-the-secret", algorithm=auth.ALGORITHM)
    client.cookies.set("session_token", forged)
    r = await client.get("/tasks")
    assert r.status_code == 303


async def test_unsigned_session_token_is_ignored(client):
    user = await create_user("rawtoken")
    row = await auth.create_session_for_user(user)
    client.cookies.set("session_token", row.session_token)
    r = await client.get("/tasks")
    assert r.status_code == 303


async def test_expired_session_is_anonymous_and_removed(client):
    user = await create_user("expired")
    row = await auth.create_session_for_user(user, expires_delta=timedelta(seconds=-5))
    # the cookie itself is still valid; only the server-side row has expired
    client.cookies.set("session_token", auth.sign_session_token(row.session_token, now_utc() + timedelta(hours=1)))
    r = await client.get("/tasks")
    assert r.status_code == 303
    async with async_session() as sess:
        res = await sess.exec(select(Session).where(Session.session_token == row.session_token))
        assert res.first() is None


async def test_session_for_deleted_user_is_anonymous_for_templates(client):
    await create_user("ghost")
    await client.post("/auth/login", data={"username": "ghost", "password": "secret1"})
    async with async_session() as sess:
        res = await sess.exec(select(User).where(User.username == "ghost"))
        await sess.delete(res.first())
        await sess.commit()

    index = await client.get("/")
    assert index.status_code == 200
    assert "Signed in as" not in index.text
    assert 'href="/auth/login"' in index.text
    # the gate only looks at the session, which still carries a user id
    tasks = await client.get("/tasks")
    assert tasks.status_code == 200
    assert "Hello, ghost." in tasks.text


async def test_user_lookup_failure_is_not_fatal(client, monkeypatch):
    await create_user("flaky")
    await client.post("/auth/login", data={"username": "flaky", "password": "secret1"})

    async def _down(user_id):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(app_main, "get_user_by_id", _down)
    r = await client.get("/")
    assert r.status_code == 200
    assert "Signed in as" not in r.text


async def test_index_personalized_for_logged_in_user(client):
    await create_user("known")
    await client.post("/auth/login", data={"username": "known", "password": "secret1"})
    r = await client.get("/")
    assert r.status_code == 200
    assert "Signed in as known" in r.text
