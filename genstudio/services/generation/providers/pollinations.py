"""
Pollinations.ai provider: free, keyless image generation.
The image is rendered synchronously by a GET on a prompt URL; the URL itself
is the asset locator, so the payload reported to the dispatcher is {"url": ...}.
"""
import random
from typing import Any
from urllib.parse import quote

from genstudio.services.generation.base import GenerationRequest
from genstudio.services.generation.errors import ProtocolError, truncate_payload
from genstudio.services.generation.providers.base import ProviderAdapter


class PollinationsProvider(ProviderAdapter):
    """Pollinations.ai image provider."""

    provider_id = "pollinations"

    def __init__(self, transport, config: dict | None = None, **kwargs) -> None:
        super().__init__(transport, config, **kwargs)
        self.api_url = self.config.get("api_url", "https://image.pollinations.ai").rstrip("/")

    async def submit(self, request: GenerationRequest) -> dict[str, Any]:
        width, height = request.dimensions
        url = f"{self.api_url}/prompt/{quote(request.prompt, safe='')}"
        params = {
            "width": width,
            "height": height,
            "model": request.model or self.spec.default_model(request.kind),
            "nologo": "true",
            # Fresh seed per submission: same prompt twice yields two distinct assets
            "seed": random.randint(0, 2**31 - 1),
        }
        response = await self.transport.request(
            self.spec,
            "GET",
            url,
            operation="submit",
            params=params,
            headers={"Accept": "image/*"},
        )
        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            raise ProtocolError(
                "Pollinations did not return an image.",
                code="unexpected_content_type",
                details={"provider_id": self.provider_id, "content_type": content_type, "payload": truncate_payload(response.text)},
            )
        return {"url": str(response.url), "content_type": content_type}

    async def check_credential(self, credential: str) -> bool | None:
        # Keyless: any key is irrelevant
        return None
