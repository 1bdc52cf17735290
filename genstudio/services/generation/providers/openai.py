"""
OpenAI DALL-E / gpt-image provider for image generation.
Goes through the official SDK; its built-in retries are disabled because every
images.generate call is billed.
"""
from typing import Any

import openai
from openai import AsyncOpenAI

from genstudio.services.generation.base import GenerationRequest
from genstudio.services.generation.errors import classify_exception
from genstudio.services.generation.providers.base import ProviderAdapter
from genstudio.utils.metrics import provider_requests_total


class OpenAIProvider(ProviderAdapter):
    """OpenAI image generation provider."""

    provider_id = "openai"

    def __init__(self, transport, config: dict | None = None, **kwargs) -> None:
        super().__init__(transport, config, **kwargs)
        self.api_url = self.config.get("api_url", "https://api.openai.com/v1").rstrip("/")
        self.timeout = self.config.get("timeout", 120.0)

    def _client(self, credential: str | None) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=credential,
            base_url=self.api_url,
            timeout=self.timeout,
            max_retries=0,
            http_client=self.transport.client,
        )

    async def submit(self, request: GenerationRequest) -> dict[str, Any]:
        """
        Generate image using OpenAI API.

        Note:
        - dall-e-3: only n=1; quality/response_format supported
        - gpt-image-1: always returns b64_json, no response_format parameter
        """
        model = request.model or self.spec.default_model(request.kind)
        kwargs: dict[str, Any] = {
            "model": model,
            "prompt": request.prompt,
            "n": 1,
            "size": request.size,
        }
        if model == "dall-e-3":
            kwargs["quality"] = "standard"
        if model in ("dall-e-3", "dall-e-2"):
            kwargs["response_format"] = "url"

        client = self._client(request.credential)
        try:
            response = await client.images.generate(**kwargs)
        except openai.OpenAIError as exc:
            provider_requests_total.labels(provider=self.provider_id, operation="submit", status="error").inc()
            raise classify_exception(exc, provider_id=self.provider_id, credential=request.credential) from exc
        provider_requests_total.labels(provider=self.provider_id, operation="submit", status="200").inc()
        return response.model_dump()

    async def check_credential(self, credential: str) -> bool | None:
        client = self._client(credential)
        try:
            await client.models.list()
        except (openai.AuthenticationError, openai.PermissionDeniedError):
            return False
        except openai.OpenAIError as exc:
            raise classify_exception(exc, provider_id=self.provider_id, credential=credential) from exc
        return True
