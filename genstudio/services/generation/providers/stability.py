"""
Stability AI provider (Stable Diffusion, v1 REST API).
Returns base64 artifacts synchronously.
"""
from typing import Any

from genstudio.services.generation.base import GenerationRequest
from genstudio.services.generation.providers.base import ProviderAdapter

# SDXL v1 engine only accepts sides up to 1024
MAX_SIDE = 1024


class StabilityProvider(ProviderAdapter):
    provider_id = "stability"

    def __init__(self, transport, config: dict | None = None, **kwargs) -> None:
        super().__init__(transport, config, **kwargs)
        self.api_url = self.config.get("api_url", "https://api.stability.ai/v1").rstrip("/")

    async def submit(self, request: GenerationRequest) -> dict[str, Any]:
        model = request.model or self.spec.default_model(request.kind)
        width, height = request.dimensions
        body = {
            "text_prompts": [{"text": request.prompt}],
            "cfg_scale": 7,
            "width": min(width, MAX_SIDE),
            "height": min(height, MAX_SIDE),
            "steps": 30,
            "samples": 1,
        }
        return await self._post_json(f"{self.api_url}/generation/{model}/text-to-image", request.credential, body)

    async def check_credential(self, credential: str) -> bool | None:
        return await self._probe_key(f"{self.api_url}/user/account", credential)
