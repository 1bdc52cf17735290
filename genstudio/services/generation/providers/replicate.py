"""
Replicate provider: predictions API, async for both images and videos.
Submission creates a prediction; status is read from the prediction's
`urls.get` or, failing that, /predictions/{id}.
"""
from typing import Any

from genstudio.services.generation.base import GenerationRequest, MediaKind, TaskHandle
from genstudio.services.generation.providers.base import ProviderAdapter


class ReplicateProvider(ProviderAdapter):
    """Replicate image and video provider."""

    provider_id = "replicate"

    def __init__(self, transport, config: dict | None = None, **kwargs) -> None:
        super().__init__(transport, config, **kwargs)
        self.api_url = self.config.get("api_url", "https://api.replicate.com/v1").rstrip("/")

    def _build_input(self, request: GenerationRequest) -> dict[str, Any]:
        if request.kind == MediaKind.IMAGE:
            width, height = request.dimensions
            return {"prompt": request.prompt, "width": width, "height": height, "num_outputs": 1}
        return {"prompt": request.prompt}

    async def submit(self, request: GenerationRequest) -> dict[str, Any]:
        model = request.model or self.spec.default_model(request.kind)
        body = {"input": self._build_input(request)}
        return await self._post_json(f"{self.api_url}/models/{model}/predictions", request.credential, body)

    async def fetch_status(self, handle: TaskHandle, credential: str | None) -> dict[str, Any]:
        url = self._trusted_url(handle.status_url, self.api_url) or f"{self.api_url}/predictions/{handle.opaque_id}"
        return await self._get_json(url, credential)

    async def check_credential(self, credential: str) -> bool | None:
        return await self._probe_key(f"{self.api_url}/account", credential)
