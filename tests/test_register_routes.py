import pytest
from httpx import AsyncClient, ASGITransport
from sqlmodel import select

from todo_app.main import app
from todo_app.db import async_session
from todo_app.models import Session, User

pytestmark = pytest.mark.asyncio


async def users_named(username: str) -> list[User]:
    async with async_session() as sess:
        res = await sess.exec(select(User).where(User.username == username))
        return res.all()


def form(username, password, confirm):
    return {"username": username, "password": password, "confirmPassword": confirm}


async def test_register_page_renders(client):
    r = await client.get("/auth/register")
    assert r.status_code == 200
    assert 'name="confirmPassword"' in r.text
    assert "<title>Register - Todo App</title>" in r.text


async def test_register_form_success_redirects_and_sets_session(client):
    r = await client.post("/auth/register", data=form("  carol  ", "secret1", "secret1"))
    assert r.status_code == 303
    assert r.headers["location"] == "/tasks"
    assert client.cookies.get("session_token")
    stored = await users_named("carol")
    assert len(stored) == 1
    assert stored[0].password_hash != "secret1"

    tasks = await client.get("/tasks")
    assert tasks.status_code == 200
    assert "Hello, carol." in tasks.text


async def test_register_form_short_username_rerenders(client):
    r = await client.post("/auth/register", data=form("ab", "secret1", "secret1"))
    assert r.status_code == 200
    assert "Username must be at least 3 characters long" in r.text
    # username is kept for re-display, the password never is
    assert 'value="ab"' in r.text
    assert "secret1" not in r.text
    assert client.cookies.get("session_token") is None
    assert await users_named("ab") == []


async def test_register_form_long_username_rerenders(client):
    name = "x" * 31
    r = await client.post("/auth/register", data=form(name, "secret1", "secret1"))
    assert "Username cannot exceed 30 characters" in r.text
    assert await users_named(name) == []


async def test_register_form_missing_field(client):
    r = await client.post("/auth/register", data={"username": "dave", "password": "secret1"})
    assert r.status_code == 200
    assert "All fields are required" in r.text
    assert 'value="dave"' in r.text


async def test_register_form_mismatch(client):
    r = await client.post("/auth/register", data=form("erin", "secret1", "secret2"))
    assert "Passwords do not match" in r.text
    assert await users_named("erin") == []


async def test_register_form_duplicate(client):
    await client.post("/auth/register", data=form("frank", "secret1", "secret1"))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as other:
        r = await other.post("/auth/register", data=form("frank", "secret2", "secret2"))
    assert r.status_code == 200
    assert "Username already exists" in r.text
    assert len(await users_named("frank")) == 1


async def test_register_json_success(client):
    r = await client.post("/auth/register", json={"username": "gina", "password": "secret1", "confirmPassword": "secret1"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Registration successful"
    assert body["user"]["username"] == "gina"
    assert isinstance(body["user"]["id"], int)
    async with async_session() as sess:
        res = await sess.exec(select(Session).where(Session.session_token == body["session"]))
        row = res.first()
    assert row is not None and row.username == "gina"


@pytest.mark.parametrize("payload,status,error", [
    ({"username": "ab", "password": "secret1", "confirmPassword": "secret1"}, 400, "Username must be at least 3 characters long"),
    ({"username": "validuser", "password": "short", "confirmPassword": "short"}, 400, "Password must be at least 6 characters long"),
    ({"username": "validuser"}, 400, "All fields are required"),
])
async def test_register_json_validation(client, payload, status, error):
    r = await client.post("/auth/register", json=payload)
    assert r.status_code == status
    assert r.json() == {"success": False, "error": error}


async def test_register_json_duplicate_is_409(client):
    payload = {"username": "hank", "password": "secret1", "confirmPassword": "secret1"}
    await client.post("/auth/register", json=payload)
    r = await client.post("/auth/register", json=payload)
    assert r.status_code == 409
    assert r.json() == {"success": False, "error": "Username already exists"}
    assert len(await users_named("hank")) == 1
