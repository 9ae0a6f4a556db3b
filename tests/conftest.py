import os
import sys
import pathlib
import tempfile
import logging as _logging
import warnings

import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Point the app at a throwaway SQLite file and a deterministic test-only
# secret before any todo_app module is imported; config reads both at import.
_TEST_DB_DIR = tempfile.mkdtemp(prefix='todo_app_tests_')
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ.setdefault('SECRET_KEY', 'test-secret-key-for-unit-tests')

try:
    from sqlalchemy.exc import SAWarning
    warnings.filterwarnings('ignore', category=SAWarning)
except ImportError:
    pass

# Reduce SQLAlchemy logger verbosity during tests
for _name in ('sqlalchemy', 'sqlalchemy.engine', 'sqlalchemy.pool'):
    _logging.getLogger(_name).setLevel(_logging.ERROR)

# ensure project root is on PYTHONPATH for test runs
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from todo_app.main import app
from todo_app.db import init_db, drop_db


@pytest_asyncio.fixture
async def prepare_db():
    # every test starts from an empty schema
    await drop_db()
    await init_db()
    yield


@pytest_asyncio.fixture
async def client(prepare_db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def pytest_sessionfinish(session, exitstatus):
    """Dispose the async engine so no connections outlive the test run."""
    try:
        import asyncio
        from todo_app import db as app_db
        asyncio.run(app_db.engine.dispose())
    except Exception:
        # best-effort: if disposal fails, don't crash pytest teardown
        pass
