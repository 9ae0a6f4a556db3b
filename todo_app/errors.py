"""Typed failures raised by the auth flow.

Each error carries the message shown to the client and the HTTP status used
when the caller asked for JSON. Form callers re-render the page with the
message instead.
"""


class AuthFlowError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AuthFlowError):
    """Missing or malformed input."""
    status_code = 400


class AuthError(AuthFlowError):
    """Bad credentials. The message never says which field was wrong."""
    status_code = 401


class ConflictError(AuthFlowError):
    """Username already taken, at pre-check or at insert time."""
    status_code = 409


class StoreError(AuthFlowError):
    """Unexpected store failure. The message is generic; details are logged."""
    status_code = 500


class LoginRequired(Exception):
    """Raised by the access gate when a protected route has no session."""
