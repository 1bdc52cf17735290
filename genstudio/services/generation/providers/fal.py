"""
Fal.ai provider.
Images use the synchronous run endpoint; videos go through the queue API:
submit -> request_id + status_url, poll status, then fetch the result from
response_url once the request is COMPLETED.
"""
from typing import Any

from genstudio.services.generation.base import GenerationRequest, MediaKind, TaskHandle
from genstudio.services.generation.providers.base import ProviderAdapter


def app_id(model: str) -> str:
    """Queue status/result URLs are addressed by the app id: the first two path segments of the model."""
    parts = model.strip("/").split("/")
    return "/".join(parts[:2])


class FalProvider(ProviderAdapter):
    """Fal.ai image (sync) and video (queue) provider."""

    provider_id = "fal"

    def __init__(self, transport, config: dict | None = None, **kwargs) -> None:
        super().__init__(transport, config, **kwargs)
        self.api_url = self.config.get("api_url", "https://fal.run").rstrip("/")
        self.queue_url = self.config.get("queue_url", "https://queue.fal.run").rstrip("/")

    async def submit(self, request: GenerationRequest) -> dict[str, Any]:
        model = request.model or self.spec.default_model(request.kind)
        if request.kind == MediaKind.IMAGE:
            width, height = request.dimensions
            body = {
                "prompt": request.prompt,
                "image_size": {"width": width, "height": height},
                "num_images": 1,
            }
            return await self._post_json(f"{self.api_url}/{model}", request.credential, body)

        body = {"prompt": request.prompt, "duration": str(request.duration)}
        return await self._post_json(f"{self.queue_url}/{model}", request.credential, body)

    async def fetch_status(self, handle: TaskHandle, credential: str | None) -> dict[str, Any]:
        model = handle.model or self.spec.default_model(handle.kind) or ""
        base = f"{self.queue_url}/{app_id(model)}/requests/{handle.opaque_id}"
        status_url = self._trusted_url(handle.status_url, self.queue_url) or f"{base}/status"
        status = await self._get_json(status_url, credential)
        if str(status.get("status", "")).upper() != "COMPLETED":
            return status

        response_url = self._trusted_url(status.get("response_url"), self.queue_url) or base
        result = await self._get_json(response_url, credential, operation="result")
        return {**result, "status": "COMPLETED", "request_id": handle.opaque_id}

    async def check_credential(self, credential: str) -> bool | None:
        # No free verification endpoint; any real call is billed
        return None
