"""
Base class for provider adapters.
An adapter knows one provider's request shapes (paths, payload fields, auth)
and performs exactly one outbound call per method. It never interprets the
response: classification and field probing happen in the dispatcher and the
result normalizer, driven by the provider's registry entry.
"""
from abc import ABC, abstractmethod
from typing import Any

from genstudio.services.generation.base import GenerationRequest, TaskHandle
from genstudio.services.generation.errors import AuthRequiredError, ValidationError
from genstudio.services.generation.registry import PROVIDER_REGISTRY, ProviderRegistry
from genstudio.services.generation.transport import ProviderTransport


class ProviderAdapter(ABC):
    """Base class for generation providers."""

    provider_id: str = ""

    def __init__(
        self,
        transport: ProviderTransport,
        config: dict | None = None,
        registry: ProviderRegistry = PROVIDER_REGISTRY,
    ) -> None:
        spec = registry.get(self.provider_id)
        if spec is None:
            raise ValueError(f"Provider {self.provider_id!r} is not in the registry")
        self.spec = spec
        self.transport = transport
        self.config = config or {}

    @abstractmethod
    async def submit(self, request: GenerationRequest) -> dict[str, Any]:
        """Issue the single submission call and return the decoded payload."""

    async def fetch_status(self, handle: TaskHandle, credential: str | None) -> dict[str, Any]:
        """Query task status once. Sync-only providers have nothing to poll."""
        raise ValidationError(
            f"{self.spec.name} returns results synchronously; there is no task to poll",
            code="polling_unsupported",
        )

    async def check_credential(self, credential: str) -> bool | None:
        """True/False if the provider can verify a key, None if it cannot."""
        return None

    async def _post_json(
        self,
        url: str,
        credential: str | None,
        body: dict[str, Any],
        *,
        operation: str = "submit",
    ) -> dict[str, Any]:
        response = await self.transport.request(
            self.spec, "POST", url, credential=credential, operation=operation, json_body=body
        )
        return self.transport.json_payload(self.spec, response)

    async def _get_json(
        self,
        url: str,
        credential: str | None,
        *,
        operation: str = "status",
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self.transport.request(
            self.spec, "GET", url, credential=credential, operation=operation, params=params
        )
        return self.transport.json_payload(self.spec, response)

    async def _probe_key(self, url: str, credential: str) -> bool:
        """Authenticated GET against a cheap endpoint; 401/403 means the key is invalid."""
        try:
            await self.transport.request(self.spec, "GET", url, credential=credential, operation="key_check")
        except AuthRequiredError as exc:
            if exc.code == "insufficient_balance":
                # Key authenticated; the account just has no credits
                return True
            return False
        return True

    @staticmethod
    def _trusted_url(candidate: str | None, base_url: str) -> str | None:
        """Accept a provider-issued URL only on the provider's own host (the auth header goes with it)."""
        if candidate and candidate.startswith(base_url.rstrip("/") + "/"):
            return candidate
        return None
