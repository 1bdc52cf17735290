"""
Error taxonomy for generation flows.
Every failure (validation, auth, provider HTTP status, transport, malformed payload,
poll timeout) ends up as one GenerationError subclass with a stable kind and code,
a message that is safe to show to the user, and diagnostics kept out of the response.
"""
import json
from enum import Enum
from typing import Any

import httpx
import openai

from genstudio.core.config import settings


class ErrorKind(str, Enum):
    """Closed taxonomy; values are the stable codes exposed to callers."""

    VALIDATION = "ValidationError"  # bad input, fix and resubmit
    AUTH_REQUIRED = "AuthRequiredError"  # missing / invalid credential or no balance
    RATE_LIMIT = "RateLimitError"  # too many requests, wait
    PROTOCOL = "ProtocolError"  # provider answered in an unexpected shape
    UPSTREAM = "UpstreamError"  # provider 5xx / outage / reported failure
    NETWORK = "NetworkError"  # the call itself did not complete
    TIMEOUT = "TimeoutError"  # polling exhausted without a terminal state


class GenerationError(Exception):
    """Base for classified errors. `details` is diagnostic only and never rendered to users."""

    kind: ErrorKind = ErrorKind.UPSTREAM
    default_code = "unexpected_failure"
    default_status = 500

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        http_status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.http_status = http_status or self.default_status
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Safe payload for API responses (no details)."""
        return {
            "error": self.message,
            "kind": self.kind.value,
            "code": self.code,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, code={self.code}, http_status={self.http_status})"


class ValidationError(GenerationError):
    kind = ErrorKind.VALIDATION
    default_code = "invalid_request"
    default_status = 400


class AuthRequiredError(GenerationError):
    kind = ErrorKind.AUTH_REQUIRED
    default_code = "credential_missing"
    default_status = 401


class RateLimitError(GenerationError):
    kind = ErrorKind.RATE_LIMIT
    default_code = "rate_limited"
    default_status = 429


class ProtocolError(GenerationError):
    kind = ErrorKind.PROTOCOL
    default_code = "unexpected_payload"
    default_status = 502


class UpstreamError(GenerationError):
    kind = ErrorKind.UPSTREAM
    default_code = "upstream_failure"
    default_status = 502


class NetworkError(GenerationError):
    kind = ErrorKind.NETWORK
    default_code = "network_failure"
    default_status = 502


class GenerationTimeoutError(GenerationError):
    """Polling exhausted its attempt bound; the provider task may still finish."""

    kind = ErrorKind.TIMEOUT
    default_code = "poll_timeout"
    default_status = 504


# Safe messages per provider HTTP status: each status implies a different remedy.
# The last element is the status returned to our caller; the provider's own
# status stays in details["provider_status"].
_STATUS_RULES: dict[int, tuple[type[GenerationError], str, str, int]] = {
    400: (ValidationError, "provider_rejected_request", "The provider rejected the request. Adjust the prompt or parameters and try again.", 400),
    401: (AuthRequiredError, "credential_invalid", "Invalid API key. Please check your key and try again.", 401),
    402: (AuthRequiredError, "insufficient_balance", "Insufficient credits. Please add billing to your account.", 402),
    403: (AuthRequiredError, "credential_invalid", "Invalid API key. Please check your key and try again.", 401),
    404: (UpstreamError, "endpoint_unavailable", "API endpoint not found. The service may be unavailable; try another provider.", 502),
    422: (ValidationError, "provider_rejected_request", "The provider rejected the request. Adjust the prompt or parameters and try again.", 400),
    429: (RateLimitError, "provider_rate_limited", "Rate limited. Please wait a moment and try again.", 429),
}


def scrub(text: str, credential: str | None) -> str:
    """Remove the credential from free text (providers sometimes echo it back)."""
    if credential and credential in text:
        return text.replace(credential, "[REDACTED]")
    return text


def truncate_payload(payload: Any, credential: str | None = None, limit: int | None = None) -> str:
    """Render a raw payload as a short, credential-free excerpt for logs and details."""
    limit = limit or settings.log_payload_max_chars
    if isinstance(payload, (dict, list)):
        text = json.dumps(payload, ensure_ascii=False, default=str)
    elif isinstance(payload, bytes):
        text = payload.decode("utf-8", errors="replace")
    else:
        text = str(payload)
    text = scrub(text, credential)
    if len(text) > limit:
        return text[:limit] + "...[truncated]"
    return text


def classify_http_status(
    http_status: int,
    *,
    provider_id: str,
    body: Any = None,
    credential: str | None = None,
) -> GenerationError:
    """Map a non-2xx provider response to a classified error."""
    details = {
        "provider_id": provider_id,
        "provider_status": http_status,
        "body": truncate_payload(body, credential) if body is not None else None,
    }
    rule = _STATUS_RULES.get(http_status)
    if rule is not None:
        error_cls, code, message, inbound_status = rule
        return error_cls(message, code=code, http_status=inbound_status, details=details)
    if http_status >= 500:
        return UpstreamError(
            "Server error. Please try again later.",
            code="upstream_failure",
            http_status=502,
            details=details,
        )
    if 400 <= http_status < 500:
        return ValidationError(
            f"The provider rejected the request (HTTP {http_status}).",
            code="provider_rejected_request",
            http_status=400,
            details=details,
        )
    return ProtocolError(
        f"Unexpected provider response (HTTP {http_status}).",
        code="unexpected_status",
        details=details,
    )


def classify_exception(
    exc: BaseException,
    *,
    provider_id: str | None = None,
    credential: str | None = None,
) -> GenerationError:
    """Map any exception raised while talking to a provider into the taxonomy."""
    if isinstance(exc, GenerationError):
        return exc

    details: dict[str, Any] = {
        "provider_id": provider_id,
        "exception": type(exc).__name__,
        "error": scrub(str(exc), credential),
    }

    # openai SDK errors first: APITimeoutError is a subclass of APIConnectionError
    if isinstance(exc, openai.APIStatusError):
        body = exc.body if exc.body is not None else exc.message
        return classify_http_status(
            exc.status_code,
            provider_id=provider_id or "openai",
            body=body,
            credential=credential,
        )
    if isinstance(exc, openai.APITimeoutError):
        return NetworkError("The provider did not respond in time.", code="request_timeout", http_status=504, details=details)
    if isinstance(exc, openai.APIConnectionError):
        return NetworkError("Failed to connect to the provider. Check your connection.", details=details)

    if isinstance(exc, httpx.TimeoutException):
        return NetworkError("The provider did not respond in time.", code="request_timeout", http_status=504, details=details)
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_http_status(
            exc.response.status_code,
            provider_id=provider_id or "unknown",
            body=exc.response.text,
            credential=credential,
        )
    if isinstance(exc, httpx.TransportError):
        return NetworkError("Failed to connect to the provider. Check your connection.", details=details)
    if isinstance(exc, json.JSONDecodeError):
        return ProtocolError("The provider returned a malformed response.", code="malformed_payload", details=details)

    return UpstreamError("Something went wrong. Please try again.", code="unexpected_failure", http_status=500, details=details)
