"""
Generation API: submit image/video generations, query task status, check API keys,
list providers.
Every route validates its input first, then counts against the inbound rate
limit, then talks to the provider.
"""
import logging
import re

from fastapi import APIRouter, Depends, Header, Query, Request
from starlette.concurrency import run_in_threadpool

from genstudio.api.envelope import success_envelope
from genstudio.core.config import settings
from genstudio.schemas.generation import GenerateImageBody, GenerateVideoBody, KeyCheckBody
from genstudio.services.generation import (
    GenerationService,
    MediaKind,
    RateLimitError,
    TaskHandle,
    ValidationError,
)
from genstudio.services.generation.normalizer import normalize_credential
from genstudio.services.rate_limit import (
    SCOPE_GENERATE_IMAGE,
    SCOPE_GENERATE_VIDEO,
    SCOPE_STATUS,
    SCOPE_TEST_KEY,
    InboundRateLimits,
    get_client_ip,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generation"])

TASK_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# Image status polling only makes sense for providers with async image tasks
DEFAULT_IMAGE_STATUS_PROVIDER = "replicate"


def get_generation_service(request: Request) -> GenerationService:
    return request.app.state.generation_service


def get_rate_limits(request: Request) -> InboundRateLimits:
    return request.app.state.rate_limits


async def enforce_rate_limit(limits: InboundRateLimits, scope: str, request: Request) -> None:
    """Count this request; limiter backends may block (Redis), so run off the event loop."""
    allowed = await run_in_threadpool(limits.allow, scope, get_client_ip(request))
    if not allowed:
        raise RateLimitError(
            "Too many requests. Please wait a minute and try again.",
            code="inbound_rate_limited",
        )


def _status_handle(
    service: GenerationService,
    kind: MediaKind,
    task_id: str | None,
    provider: str | None,
    model: str | None,
    status_url: str | None = None,
) -> TaskHandle:
    if not task_id or not TASK_ID_RE.match(task_id):
        raise ValidationError("Invalid task ID format", code="invalid_task_id")
    spec = service.provider_spec(provider)
    if model and model not in spec.models_for(kind):
        model = None
    return TaskHandle(
        provider_id=spec.id,
        opaque_id=task_id,
        kind=kind,
        model=model or spec.default_model(kind),
        status_url=status_url,
    )


@router.post("/generate-image")
async def generate_image(
    request: Request,
    body: GenerateImageBody,
    service: GenerationService = Depends(get_generation_service),
    limits: InboundRateLimits = Depends(get_rate_limits),
) -> dict:
    """Submit an image generation: immediate asset, or a task handle to poll."""
    generation_request = service.normalize(body.to_raw(), MediaKind.IMAGE)
    await enforce_rate_limit(limits, SCOPE_GENERATE_IMAGE, request)
    outcome = await service.submit(generation_request)
    return success_envelope(outcome.to_dict())


@router.post("/generate-video")
async def generate_video(
    request: Request,
    body: GenerateVideoBody,
    service: GenerationService = Depends(get_generation_service),
    limits: InboundRateLimits = Depends(get_rate_limits),
) -> dict:
    """Submit a video generation: immediate asset, or a task handle to poll."""
    generation_request = service.normalize(body.to_raw(), MediaKind.VIDEO)
    await enforce_rate_limit(limits, SCOPE_GENERATE_VIDEO, request)
    outcome = await service.submit(generation_request)
    return success_envelope(outcome.to_dict())


@router.get("/image-status")
async def image_status(
    request: Request,
    prediction_id: str | None = Query(default=None, alias="predictionId"),
    provider: str | None = Query(default=None),
    model: str | None = Query(default=None),
    x_api_key: str | None = Header(default=None),
    service: GenerationService = Depends(get_generation_service),
    limits: InboundRateLimits = Depends(get_rate_limits),
) -> dict:
    handle = _status_handle(service, MediaKind.IMAGE, prediction_id, provider or DEFAULT_IMAGE_STATUS_PROVIDER, model)
    credential = normalize_credential(service.provider_spec(handle.provider_id), x_api_key)
    await enforce_rate_limit(limits, SCOPE_STATUS, request)
    status = await service.check_status(handle, credential)
    return success_envelope({"taskId": handle.opaque_id, "provider": handle.provider_id, **status.to_dict()})


@router.get("/video-status")
async def video_status(
    request: Request,
    task_id: str | None = Query(default=None, alias="taskId"),
    provider: str | None = Query(default=None),
    model: str | None = Query(default=None),
    status_url: str | None = Query(default=None, alias="statusUrl"),
    x_api_key: str | None = Header(default=None),
    service: GenerationService = Depends(get_generation_service),
    limits: InboundRateLimits = Depends(get_rate_limits),
) -> dict:
    handle = _status_handle(
        service, MediaKind.VIDEO, task_id, provider or settings.default_video_provider, model, status_url
    )
    credential = normalize_credential(service.provider_spec(handle.provider_id), x_api_key)
    await enforce_rate_limit(limits, SCOPE_STATUS, request)
    status = await service.check_status(handle, credential)
    return success_envelope({"taskId": handle.opaque_id, "provider": handle.provider_id, **status.to_dict()})


@router.post("/test-key")
async def test_key(
    request: Request,
    body: KeyCheckBody,
    service: GenerationService = Depends(get_generation_service),
    limits: InboundRateLimits = Depends(get_rate_limits),
) -> dict:
    """Check an API key against the provider without generating anything."""
    if not body.provider:
        raise ValidationError("Provider is required", code="provider_missing")
    service.provider_spec(body.provider)
    await enforce_rate_limit(limits, SCOPE_TEST_KEY, request)
    result = await service.check_credential(body.provider, body.api_key)
    return success_envelope(result.to_dict())


@router.get("/providers")
def list_providers(
    feature: str | None = Query(default=None),
    service: GenerationService = Depends(get_generation_service),
) -> dict:
    """Provider catalog, optionally filtered by feature (image / video)."""
    kind = None
    if feature:
        try:
            kind = MediaKind(feature.strip().lower())
        except ValueError:
            raise ValidationError("Feature must be 'image' or 'video'", code="invalid_feature")
    providers = [spec.to_dict() for spec in service.registry.list_providers(kind)]
    return success_envelope({
        "providers": providers,
        "defaults": {
            "image": settings.default_image_provider,
            "video": settings.default_video_provider,
        },
    })
