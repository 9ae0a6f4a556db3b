"""HTTP surface for login, registration and logout.

Each POST handler reads its fields, calls the matching auth_flow operation
and hands the outcome to one of two presenters: the JSON envelope for
requests that declare an application/json body, otherwise the HTML form
presenter (redirect on success, re-rendered form on failure).
"""
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from . import auth_flow, config
from .auth import SessionContext, get_session_context, sign_session_token
from .auth_flow import AuthResult
from .errors import AuthFlowError
from .templating import render
from .utils import is_json_request

router = APIRouter(prefix='/auth')
logger = logging.getLogger(__name__)

LOGIN_TITLE = 'Login - Todo App'
REGISTER_TITLE = 'Register - Todo App'
LOGIN_URL = '/auth/login'
AFTER_LOGIN_URL = '/tasks'
AFTER_LOGOUT_URL = LOGIN_URL


def _as_field(value) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, str):
        return value
    return str(value)


async def _read_fields(request: Request, *names: str) -> dict[str, Optional[str]]:
    """Read named fields from a JSON object body or a form body."""
    if is_json_request(request):
        try:
            body = await request.json()
        except ValueError:
            logger.info('malformed JSON body on %s', request.url.path)
            body = None
        if not isinstance(body, dict):
            body = {}
    else:
        body = await request.form()
    return {name: _as_field(body.get(name)) for name in names}


def _set_session_cookie(response, result: AuthResult) -> None:
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        sign_session_token(result.session_token),
        max_age=config.SESSION_TTL_SECONDS,
        httponly=True,
        samesite='lax',
        secure=config.COOKIE_SECURE,
        path='/',
    )


def _clear_session_cookie(response) -> None:
    # delete with the same attributes used when setting so browsers drop it
    response.delete_cookie(config.SESSION_COOKIE_NAME, path='/', samesite='lax', secure=config.COOKIE_SECURE, httponly=True)


# --- JSON presenter ---

def json_success(message: str, result: AuthResult) -> JSONResponse:
    resp = JSONResponse({
        'success': True,
        'message': message,
        'user': {'id': result.user_id, 'username': result.username},
        'session': result.session_token,
    })
    _set_session_cookie(resp, result)
    return resp


def json_failure(err: AuthFlowError) -> JSONResponse:
    return JSONResponse({'success': False, 'error': err.message}, status_code=err.status_code)


# --- HTML form presenter ---

def form_success(result: AuthResult) -> RedirectResponse:
    resp = RedirectResponse(url=AFTER_LOGIN_URL, status_code=303)
    _set_session_cookie(resp, result)
    return resp


def form_failure(request: Request, template: str, title: str, err: AuthFlowError, username: Optional[str]):
    # only the username is echoed back; passwords never are
    return render(request, template, {
        'title': title,
        'error': err.message,
        'form_data': {'username': username or ''},
    })


@router.get('/login')
async def login_page(request: Request):
    return render(request, 'login.html', {'title': LOGIN_TITLE, 'error': None, 'form_data': {}})


@router.post('/login')
async def login_submit(request: Request, ctx: SessionContext = Depends(get_session_context)):
    wants_json = is_json_request(request)
    fields = await _read_fields(request, 'username', 'password')
    try:
        result = await auth_flow.login(ctx, fields['username'], fields['password'])
    except AuthFlowError as err:
        if wants_json:
            return json_failure(err)
        if err.status_code >= 500:
            err = type(err)('Server error')
        return form_failure(request, 'login.html', LOGIN_TITLE, err, fields['username'])
    if wants_json:
        return json_success('Login successful', result)
    return form_success(result)


@router.get('/register')
async def register_page(request: Request):
    return render(request, 'register.html', {'title': REGISTER_TITLE, 'error': None, 'form_data': {}})


@router.post('/register')
async def register_submit(request: Request, ctx: SessionContext = Depends(get_session_context)):
    wants_json = is_json_request(request)
    fields = await _read_fields(request, 'username', 'password', 'confirmPassword')
    try:
        result = await auth_flow.register(ctx, fields['username'], fields['password'], fields['confirmPassword'])
    except AuthFlowError as err:
        if wants_json:
            return json_failure(err)
        return form_failure(request, 'register.html', REGISTER_TITLE, err, fields['username'])
    if wants_json:
        return json_success('Registration successful', result)
    return form_success(result)


async def _logout(request: Request, ctx: SessionContext):
    await auth_flow.logout(ctx)
    if is_json_request(request):
        resp = JSONResponse({'success': True, 'message': 'Logout successful'})
    else:
        resp = RedirectResponse(url=AFTER_LOGOUT_URL, status_code=303)
    _clear_session_cookie(resp)
    return resp


@router.get('/logout')
async def logout_get(request: Request, ctx: SessionContext = Depends(get_session_context)):
    return await _logout(request, ctx)


@router.post('/logout')
async def logout_post(request: Request, ctx: SessionContext = Depends(get_session_context)):
    return await _logout(request, ctx)
