"""Together AI provider (OpenAI-compatible images endpoint, synchronous)."""
from typing import Any

from genstudio.services.generation.base import GenerationRequest
from genstudio.services.generation.providers.base import ProviderAdapter


class TogetherProvider(ProviderAdapter):
    provider_id = "together"

    def __init__(self, transport, config: dict | None = None, **kwargs) -> None:
        super().__init__(transport, config, **kwargs)
        self.api_url = self.config.get("api_url", "https://api.together.xyz/v1").rstrip("/")

    async def submit(self, request: GenerationRequest) -> dict[str, Any]:
        model = request.model or self.spec.default_model(request.kind)
        width, height = request.dimensions
        body = {
            "model": model,
            "prompt": request.prompt,
            "width": width,
            "height": height,
            "steps": 4,
            "n": 1,
        }
        return await self._post_json(f"{self.api_url}/images/generations", request.credential, body)

    async def check_credential(self, credential: str) -> bool | None:
        return await self._probe_key(f"{self.api_url}/models", credential)
