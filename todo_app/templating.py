from pathlib import Path

from fastapi import Request
from fastapi.templating import Jinja2Templates

from .auth import ANONYMOUS
from .utils import format_server_local

PACKAGE_DIR = Path(__file__).resolve().parent

TEMPLATES = Jinja2Templates(directory=str(PACKAGE_DIR / "templates"))
TEMPLATES.env.filters['server_local_dt'] = format_server_local


def render(request: Request, name: str, context: dict | None = None, status_code: int = 200):
    """Render a template with the per-request user and session added to the context."""
    ctx = {
        "request": request,
        "user": getattr(request.state, "user", None),
        "session": getattr(request.state, "session", ANONYMOUS),
    }
    if context:
        ctx.update(context)
    return TEMPLATES.TemplateResponse(request, name, ctx, status_code=status_code)
