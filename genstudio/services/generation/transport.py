"""
Outbound HTTP boundary shared by all provider adapters.
One call in, one classified outcome out: transport failures become NetworkError,
non-2xx statuses go through classify_http_status, non-JSON bodies become ProtocolError.
Never retries.
"""
import json
import logging
import time
from typing import Any

import httpx

from genstudio.core.config import settings
from genstudio.services.generation.errors import (
    ProtocolError,
    classify_exception,
    classify_http_status,
    truncate_payload,
)
from genstudio.services.generation.registry import ProviderSpec
from genstudio.utils.metrics import provider_request_duration_seconds, provider_requests_total

logger = logging.getLogger(__name__)


def build_http_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Shared AsyncClient for the app lifetime; tests pass an httpx.MockTransport."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.provider_request_timeout, connect=settings.http_client_timeout),
        follow_redirects=True,
        transport=transport,
    )


def auth_headers(spec: ProviderSpec, credential: str | None) -> dict[str, str]:
    """Provider-specific auth header; empty for keyless providers."""
    if not credential or not spec.auth_scheme:
        return {}
    return {"Authorization": f"{spec.auth_scheme} {credential}"}


class ProviderTransport:
    """Thin wrapper over httpx.AsyncClient that classifies every failure."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def request(
        self,
        spec: ProviderSpec,
        method: str,
        url: str,
        *,
        credential: str | None = None,
        operation: str = "submit",
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        request_headers = {"Accept": "application/json", **auth_headers(spec, credential), **(headers or {})}
        extra_kwargs: dict[str, Any] = {}
        if timeout is not None:
            extra_kwargs["timeout"] = timeout
        started = time.monotonic()
        try:
            response = await self.client.request(
                method,
                url,
                json=json_body,
                params=params,
                headers=request_headers,
                **extra_kwargs,
            )
        except httpx.HTTPError as exc:
            error = classify_exception(exc, provider_id=spec.id, credential=credential)
            provider_requests_total.labels(provider=spec.id, operation=operation, status="error").inc()
            logger.warning(
                "provider_request_failed",
                extra={
                    "provider_id": spec.id,
                    "status": operation,
                    "error_kind": error.kind.value,
                    "error_code": error.code,
                    "error": type(exc).__name__,
                },
            )
            raise error from exc
        finally:
            provider_request_duration_seconds.labels(provider=spec.id, operation=operation).observe(
                time.monotonic() - started
            )

        provider_requests_total.labels(
            provider=spec.id, operation=operation, status=str(response.status_code)
        ).inc()
        if response.is_success:
            return response

        error = classify_http_status(
            response.status_code,
            provider_id=spec.id,
            body=response.text,
            credential=credential,
        )
        logger.warning(
            "provider_http_error",
            extra={
                "provider_id": spec.id,
                "status": operation,
                "http_status": response.status_code,
                "error_kind": error.kind.value,
                "error_code": error.code,
                "payload_excerpt": error.details.get("body"),
            },
        )
        raise error

    @staticmethod
    def json_payload(spec: ProviderSpec, response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON object body; anything else is a provider contract violation."""
        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            excerpt = truncate_payload(response.text)
            logger.error(
                "generation_protocol_error",
                extra={"provider_id": spec.id, "error": "non-JSON response", "payload_excerpt": excerpt},
            )
            raise ProtocolError(
                "The provider returned a malformed response.",
                code="malformed_payload",
                details={"provider_id": spec.id, "payload": excerpt},
            ) from exc
        if not isinstance(payload, dict):
            excerpt = truncate_payload(payload)
            logger.error(
                "generation_protocol_error",
                extra={"provider_id": spec.id, "error": "JSON body is not an object", "payload_excerpt": excerpt},
            )
            raise ProtocolError(
                "The provider returned a malformed response.",
                code="malformed_payload",
                details={"provider_id": spec.id, "payload": excerpt},
            )
        return payload
