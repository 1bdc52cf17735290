"""
Zhipu AI (BigModel) provider.
CogView images come back synchronously; CogVideoX videos are async tasks
queried through the async-result endpoint.
"""
from typing import Any

from genstudio.services.generation.base import GenerationRequest, MediaKind, TaskHandle
from genstudio.services.generation.providers.base import ProviderAdapter


class ZhipuProvider(ProviderAdapter):
    """Zhipu AI image (CogView) and video (CogVideoX) provider."""

    provider_id = "zhipu"

    def __init__(self, transport, config: dict | None = None, **kwargs) -> None:
        super().__init__(transport, config, **kwargs)
        self.api_url = self.config.get("api_url", "https://open.bigmodel.cn/api/paas/v4").rstrip("/")

    async def submit(self, request: GenerationRequest) -> dict[str, Any]:
        model = request.model or self.spec.default_model(request.kind)
        if request.kind == MediaKind.IMAGE:
            body = {
                "model": model,
                "prompt": request.prompt,
                "size": request.size,
            }
            return await self._post_json(f"{self.api_url}/images/generations", request.credential, body)

        body = {
            "model": model,
            "prompt": request.prompt,
            "quality": request.quality,
            "duration": request.duration,
            "fps": request.fps,
        }
        return await self._post_json(f"{self.api_url}/videos/generations", request.credential, body)

    async def fetch_status(self, handle: TaskHandle, credential: str | None) -> dict[str, Any]:
        return await self._get_json(f"{self.api_url}/async-result/{handle.opaque_id}", credential)

    async def check_credential(self, credential: str) -> bool | None:
        return await self._probe_key(f"{self.api_url}/models", credential)
