from datetime import datetime, timezone

from starlette.requests import Request


def now_utc() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """Return dt as an aware UTC datetime.

    SQLite hands back naive datetimes even when an aware value was stored, so
    naive values are assumed to already be UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_server_local(dt, fmt: str = '%Y-%m-%d %H:%M') -> str:
    """Format a datetime-like value into the server's local time.

    - If dt is None return empty string.
    - If dt is a string, return it unchanged (assume already formatted).
    - Naive datetimes are treated as UTC.
    """
    if dt is None:
        return ''
    if isinstance(dt, str):
        return dt
    if isinstance(dt, datetime):
        return as_utc(dt).astimezone().strftime(fmt)
    return str(dt)


def is_json_request(request: Request) -> bool:
    """True when the request declares a JSON body.

    Only the media type is compared; parameters such as charset are ignored.
    """
    content_type = request.headers.get('content-type') or ''
    media_type = content_type.split(';', 1)[0].strip().lower()
    return media_type == 'application/json'
