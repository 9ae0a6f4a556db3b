"""Runtime configuration for the Todo app.

Values are read from environment variables so deployments can change them
without code changes. The defaults are meant for local development only.
"""
import os


def _trueish(v: str | None) -> bool:
    if not v:
        return False
    return v.lower() in ('1', 'true', 'yes', 'on')


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


# Async SQLAlchemy URL. The default is a local SQLite file and carries no
# credentials; production deployments must provide their own URL.
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite+aiosqlite:///./todo_app.db')

# Secret used to sign session cookies. The fallback is a placeholder that the
# app refuses to start with unless DEV_MODE is enabled.
INSECURE_SECRET_PLACEHOLDER = 'CHANGE_ME_IN_ENV'
SECRET_KEY = os.getenv('SECRET_KEY', INSECURE_SECRET_PLACEHOLDER)

HOST = os.getenv('HOST', '127.0.0.1')
PORT = _int_env('PORT', 5000)

# Sessions expire passively after this many seconds; there is no sliding refresh.
SESSION_TTL_SECONDS = _int_env('SESSION_TTL_SECONDS', 60 * 60 * 24)
SESSION_COOKIE_NAME = os.getenv('SESSION_COOKIE_NAME', 'session_token')

# Mark cookies Secure. Off by default so plain-HTTP dev servers and tests work.
COOKIE_SECURE = _trueish(os.getenv('COOKIE_SECURE', '0'))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

# When true, the app is considered to be running in development mode and the
# placeholder SECRET_KEY only produces a warning at startup.
DEV_MODE = _trueish(os.getenv('DEV_MODE', '0'))


def secret_is_placeholder(secret: str | None = None) -> bool:
    value = SECRET_KEY if secret is None else secret
    return not value or value == INSECURE_SECRET_PLACEHOLDER
