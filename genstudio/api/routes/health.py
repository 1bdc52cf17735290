from fastapi import APIRouter, Request

from genstudio.core.config import settings


router = APIRouter()


@router.get("/health")
def health(request: Request) -> dict:
    """Liveness probe - always returns 200 if app is running."""
    service = request.app.state.generation_service
    return {
        "status": "ok",
        "providers": service.registry.ids(),
        "defaults": {
            "image": settings.default_image_provider,
            "video": settings.default_video_provider,
        },
    }
