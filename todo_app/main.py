from contextlib import asynccontextmanager
import logging
import sys

from fastapi import Depends, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from . import config
from .auth import ANONYMOUS, SessionContext, get_user_by_id, load_session_context, require_session
from .auth_routes import LOGIN_URL, router as auth_router
from .db import init_db
from .errors import LoginRequired
from .templating import PACKAGE_DIR, render

# Ensure INFO-level messages from the package appear on the server console
# when no handlers are configured (safe fallback for development/testing).
_pkg_logger = logging.getLogger('todo_app')
if not _pkg_logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter('%(asctime)s %(levelname)s:%(name)s: %(message)s')
    handler.setFormatter(formatter)
    _pkg_logger.addHandler(handler)
_pkg_logger.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuse to start with the placeholder secret outside of dev mode.
    if config.secret_is_placeholder():
        if not config.DEV_MODE:
            raise RuntimeError("SECRET_KEY not set or insecure placeholder in use; set the SECRET_KEY environment variable before starting the server")
        logger.warning('SECRET_KEY is the insecure placeholder; acceptable only because DEV_MODE is on')
    await init_db()
    logger.info('starting server using DATABASE_URL=%s', config.DATABASE_URL)
    yield
    logger.info('server shutting down')


app = FastAPI(lifespan=lifespan)

# serve static assets (stylesheet)
app.mount("/static", StaticFiles(directory=str(PACKAGE_DIR / "static")), name="static")


class _RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach the SessionContext and, when possible, the User to request.state.

    Runs on every request. Any failure leaves the request anonymous; it never
    fails the request itself.
    """

    async def dispatch(self, request, call_next):
        ctx: SessionContext = ANONYMOUS
        user = None
        try:
            ctx = await load_session_context(request.cookies.get(config.SESSION_COOKIE_NAME))
        except Exception:
            logger.exception('session lookup failed; treating request as anonymous')
            ctx = ANONYMOUS
        if ctx.user_id is not None:
            try:
                user = await get_user_by_id(ctx.user_id)
            except Exception:
                logger.exception('user lookup failed for user_id=%s', ctx.user_id)
                user = None
        request.state.session = ctx
        request.state.user = user
        return await call_next(request)


app.add_middleware(_RequestContextMiddleware)
app.include_router(auth_router)


@app.exception_handler(LoginRequired)
async def _login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse(url=LOGIN_URL, status_code=303)


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return render(request, 'error.html', {'title': '404 - Todo App', 'error': 'Page not found'}, status_code=404)
    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.error('unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    return render(request, 'error.html', {'title': 'Error - Todo App', 'error': 'Something went wrong!'}, status_code=500)


@app.get('/')
async def index(request: Request):
    return render(request, 'index.html', {'title': 'Index - Todo App'})


@app.get('/tasks')
async def tasks_page(request: Request, ctx: SessionContext = Depends(require_session)):
    return render(request, 'tasks.html', {'title': 'Tasks - Todo App', 'username': ctx.username})


@app.get('/calendar')
async def calendar_redirect(ctx: SessionContext = Depends(require_session)):
    return RedirectResponse(url='/tasks', status_code=303)
