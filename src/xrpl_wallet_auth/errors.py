"""Error taxonomy shared by every component.

Each error carries a category tag and the HTTP status the API layer answers
with. Library failures (PyJWT, nacl, cryptography, requests, websockets) are
translated into one of these at the component boundary.
"""

from __future__ import annotations


class AuthFlowError(Exception):
    """Base class for all tagged authentication errors."""

    category = "unknown"
    http_status = 400
    default_message = "Unknown error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message}


class ConfigError(AuthFlowError):
    category = "config"
    http_status = 500
    default_message = "Server configuration error"


class ValidationError(AuthFlowError):
    category = "validation"
    http_status = 400
    default_message = "Invalid request"


class MissingParameter(ValidationError):
    default_message = "Missing required parameter"


class AuthError(AuthFlowError):
    category = "auth"
    http_status = 400
    default_message = "Authentication failed"


class SignatureInvalid(AuthError):
    default_message = "Signature not verified"


class TokenExpired(AuthError):
    http_status = 401
    default_message = "Token expired"


class TokenInvalid(AuthError):
    http_status = 401
    default_message = "Invalid token"


class TokenMalformed(TokenInvalid):
    """Token could not be decoded at all."""


class ClaimMissing(AuthError):
    default_message = "Invalid token payload"


class Unauthorized(AuthError):
    http_status = 401
    default_message = "Unauthorized"


class UpstreamError(AuthFlowError):
    category = "upstream"
    http_status = 400
    default_message = "Upstream service error"


class UpstreamUnavailable(UpstreamError):
    default_message = "Upstream service unavailable"


class UnknownError(AuthFlowError):
    category = "unknown"
    http_status = 400


_KNOWN_MESSAGES: dict[str, type[AuthFlowError]] = {
    cls.default_message: cls
    for cls in (ConfigError, SignatureInvalid, TokenExpired, TokenInvalid, ClaimMissing, Unauthorized)
}
for _message in (
    "Invalid signature",
    "Could not decode signed transaction",
    "Could not extract address from signature",
):
    _KNOWN_MESSAGES[_message] = SignatureInvalid
for _message in (
    MissingParameter.default_message,
    "Token is required",
    "payloadId is required",
    "hex parameter is required",
    "nonce token is required",
    "challenge is required",
    "signature parameter is required",
    "pubkey and address are required",
    "pubkey and address are required in request body",
):
    _KNOWN_MESSAGES[_message] = MissingParameter

_STATUS_TO_ERROR: dict[int, type[AuthFlowError]] = {
    401: TokenInvalid,
    500: ConfigError,
}


def error_from_status(status_code: int, message: str | None) -> AuthFlowError:
    """Rebuild a tagged error from an HTTP error response."""
    error_cls = _KNOWN_MESSAGES.get(message or "")
    if error_cls is None:
        error_cls = _STATUS_TO_ERROR.get(status_code, UnknownError)
    return error_cls(message)
