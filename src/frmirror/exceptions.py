from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class APIError(Exception):
    """
    Base error for meta field reads/writes, on either side of the REST API.

    Mirrors the host's error payload:
        {
          "code": "rest_forbidden",
          "message": "Sorry, you are not allowed to edit this post.",
          "data": {"status": 403}
        }

    The server-side field store raises the same classes, so a failure
    raised by `FieldStore.set` and one decoded from an HTTP response are
    handled the same way.
    """

    status_code: int
    message: str = ""
    code: Optional[str] = None          # e.g. "rest_forbidden"
    data: Dict[str, Any] = None         # extra info from server
    response_body: Any = None           # raw parsed JSON of the response

    def __post_init__(self) -> None:
        if self.data is None:
            self.data = {}
        # Default message for Exception.__str__
        msg = self.message or self.code or f"HTTP {self.status_code}"
        super().__init__(msg)

    @property
    def retryable(self) -> bool:
        """Whether a retry might make sense (for client backoff logic)."""
        return (
            self.status_code in (429, 503, 504)
            or 500 <= self.status_code < 600
        )

    def to_envelope(self) -> Dict[str, Any]:
        """Render the error as the host's JSON error payload."""
        return {
            "code": self.code or type(self).__name__,
            "message": self.message,
            "data": {**self.data, "status": self.status_code},
        }


class FrMirrorError(RuntimeError):
    """Client-side failure outside the API error payloads (e.g. login)."""


# -------------------------------------------------
# Typed exceptions
# -------------------------------------------------

class InvalidObjectError(APIError):
    """The write did not carry a usable post identity."""


class InvalidParamError(APIError):
    pass


class AuthenticationError(APIError):
    pass


class ForbiddenError(APIError):
    """The caller lacks the capability needed for the write."""


class NotFoundError(APIError):
    pass


class UpdateFailedError(APIError):
    """The host store refused or failed the write."""


class RateLimitError(APIError):
    pass


class InternalError(APIError):
    pass


class ServiceUnavailableError(APIError):
    pass


# -------------------------------------------------
# Mapping helpers
# -------------------------------------------------

# Map server-side `code` → specific exception
_CODE_TO_EXCEPTION = {
    "invalid_object": InvalidObjectError,
    "rest_invalid_param": InvalidParamError,
    "rest_missing_callback_param": InvalidParamError,
    "rest_not_logged_in": AuthenticationError,
    "incorrect_password": AuthenticationError,
    "invalid_username": AuthenticationError,
    "rest_forbidden": ForbiddenError,
    "rest_cannot_edit": ForbiddenError,
    "rest_cannot_update": ForbiddenError,
    "rest_post_invalid_id": NotFoundError,
    "rest_no_route": NotFoundError,
    "update_failed": UpdateFailedError,
    "internal_server_error": InternalError,
}

# Fallback mapping by HTTP status code
_STATUS_TO_EXCEPTION = {
    400: InvalidParamError,
    401: AuthenticationError,
    403: ForbiddenError,
    404: NotFoundError,
    429: RateLimitError,
    500: InternalError,
    503: ServiceUnavailableError,
}


def _pick_exception_class(status_code: int, code: Optional[str]) -> type[APIError]:
    if code and code in _CODE_TO_EXCEPTION:
        return _CODE_TO_EXCEPTION[code]
    if status_code in _STATUS_TO_EXCEPTION:
        return _STATUS_TO_EXCEPTION[status_code]
    return APIError


def _format_params(params: Any) -> str:
    """
    Turn `rest_invalid_param` details into a readable string.

    The host reports them as:
        {"data": {"params": {"meta": "meta._article_view_count is not of type integer."}}}
    """
    if isinstance(params, dict):
        return "; ".join(f"{k}: {v}" for k, v in params.items())
    if isinstance(params, list):
        return "; ".join(str(p) for p in params)
    return str(params)


def error_from_response(response) -> APIError:
    """
    Build a concrete APIError subclass from a `requests.Response`.

    If the body is not JSON or doesn't match the error payload, we still
    build a generic APIError with whatever information we can.
    """

    status_code = response.status_code

    body: Any
    try:
        body = response.json()
    except Exception:
        # Non-JSON error
        return APIError(
            status_code=status_code,
            message=response.text or f"HTTP {status_code}",
            response_body=None,
        )

    if not isinstance(body, dict) or "code" not in body:
        return APIError(
            status_code=status_code,
            message=str(body),
            response_body=body,
        )

    code = body.get("code")
    message = body.get("message") or ""
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    data = {k: v for k, v in data.items() if k != "status"}

    # Surface invalid-param details in the exception message
    params = data.get("params")
    if params:
        formatted = _format_params(params)
        message = f"{message}: {formatted}" if message else formatted

    exc_cls = _pick_exception_class(status_code, code)

    return exc_cls(
        status_code=status_code,
        message=message,
        code=code,
        data=data,
        response_body=body,
    )


def raise_for_api_error(response) -> None:
    """
    Inspect a `requests.Response` and raise a suitable APIError subclass
    if the host indicates failure.

    Behavior:
    - If HTTP status is 2xx → returns silently, unless the body is an
      aggregate save envelope with `success` False.
    - If HTTP status >= 400 → raises APIError subclass.
    """
    status = response.status_code

    if status >= 400:
        raise error_from_response(response)

    try:
        body = response.json()
    except Exception:
        return

    if isinstance(body, dict) and body.get("success") is False:
        error = body.get("error") or {}
        exc_cls = _pick_exception_class(status, error.get("code"))
        raise exc_cls(
            status_code=(error.get("data") or {}).get("status", status),
            message=error.get("message", ""),
            code=error.get("code"),
            response_body=body,
        )


def error_envelope(exc: Exception) -> Dict[str, Any]:
    """Host error payload for any exception; non-API errors report a 500."""
    if isinstance(exc, APIError):
        return exc.to_envelope()
    return {
        "code": "internal_server_error",
        "message": str(exc),
        "data": {"status": 500},
    }


# Raised by the server-side field store; same classes the client decodes
FieldStoreError = APIError
