"""Declarative provider catalog.

Every supported provider's capabilities (image / video, key requirement, models,
auth scheme) and its response-field extraction rules live here as plain data.
The dispatcher, poller and result normalizer read these rules instead of
branching on provider ids, so adding a provider means adding an entry here plus
a thin adapter in providers/.

Usage:
    from genstudio.services.generation.registry import PROVIDER_REGISTRY
    spec = PROVIDER_REGISTRY.get("replicate")
    video_specs = PROVIDER_REGISTRY.list_providers(kind=MediaKind.VIDEO)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from genstudio.services.generation.base import MediaKind, StatusState


# ---------------------------------------------------------------------------
# Rule types
# ---------------------------------------------------------------------------

ENCODING_URL = "url"        # value is already a fetchable URL (or data: URI)
ENCODING_BASE64 = "base64"  # raw base64 payload, wrapped into a data: URI


@dataclass(frozen=True)
class LocatorRule:
    """Where to find the asset in a payload and how to turn it into a locator.

    Paths are dotted; integer segments index into lists ("data.0.url").
    """
    path: str
    encoding: str = ENCODING_URL
    mime_type: str = "image/png"


DEFAULT_TASK_ID_PATHS = ("id", "task_id", "data.id")
DEFAULT_STATUS_PATHS = ("status", "task_status", "data.status", "data.task_status")
DEFAULT_FAILURE_REASON_PATHS = ("error.message", "error", "task_status_msg", "data.error", "message")

# Lower-cased raw status -> canonical state; anything unknown is still processing
DEFAULT_STATUS_VOCABULARY: dict[str, StatusState] = {
    "succeeded": StatusState.SUCCEEDED,
    "succeed": StatusState.SUCCEEDED,
    "success": StatusState.SUCCEEDED,
    "completed": StatusState.SUCCEEDED,
    "complete": StatusState.SUCCEEDED,
    "failed": StatusState.FAILED,
    "fail": StatusState.FAILED,
    "failure": StatusState.FAILED,
    "canceled": StatusState.FAILED,
    "cancelled": StatusState.FAILED,
    "error": StatusState.FAILED,
}

PROTOCOL_SYNC = "sync"
PROTOCOL_ASYNC = "async"


@dataclass(frozen=True)
class ProviderSpec:
    """Capability descriptor and extraction rules for one provider."""
    id: str
    name: str
    description: str
    dashboard_url: str
    requires_key: bool
    docs_url: str | None = None
    icon: str = ""
    image_models: tuple[str, ...] = ()
    video_models: tuple[str, ...] = ()
    # Protocol shape per kind: sync answers in the submit response, async hands back a task id
    image_protocol: str | None = None
    video_protocol: str | None = None
    auth_scheme: str | None = "Bearer"
    pricing: dict[str, str] = field(default_factory=dict)
    task_id_paths: tuple[str, ...] = DEFAULT_TASK_ID_PATHS
    status_paths: tuple[str, ...] = DEFAULT_STATUS_PATHS
    status_url_paths: tuple[str, ...] = ()
    failure_reason_paths: tuple[str, ...] = DEFAULT_FAILURE_REASON_PATHS
    status_vocabulary: dict[str, StatusState] = field(default_factory=dict)
    image_locator_rules: tuple[LocatorRule, ...] = ()
    video_locator_rules: tuple[LocatorRule, ...] = ()

    @property
    def supports_image(self) -> bool:
        return self.image_protocol is not None

    @property
    def supports_video(self) -> bool:
        return self.video_protocol is not None

    def supports(self, kind: MediaKind) -> bool:
        return self.supports_image if kind == MediaKind.IMAGE else self.supports_video

    def protocol_for(self, kind: MediaKind) -> str | None:
        return self.image_protocol if kind == MediaKind.IMAGE else self.video_protocol

    def models_for(self, kind: MediaKind) -> tuple[str, ...]:
        return self.image_models if kind == MediaKind.IMAGE else self.video_models

    def default_model(self, kind: MediaKind) -> str | None:
        models = self.models_for(kind)
        return models[0] if models else None

    def locator_rules(self, kind: MediaKind) -> tuple[LocatorRule, ...]:
        return self.image_locator_rules if kind == MediaKind.IMAGE else self.video_locator_rules

    def map_status(self, raw_status: Any) -> StatusState:
        """Map a provider status string/enum into the canonical 3-state model."""
        if raw_status is None:
            return StatusState.PROCESSING
        value = str(raw_status).strip().lower()
        if value in self.status_vocabulary:
            return self.status_vocabulary[value]
        return DEFAULT_STATUS_VOCABULARY.get(value, StatusState.PROCESSING)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the providers listing endpoint."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "dashboardUrl": self.dashboard_url,
            "docsUrl": self.docs_url,
            "features": {"image": self.supports_image, "video": self.supports_video},
            "protocols": {"image": self.image_protocol, "video": self.video_protocol},
            "models": {"image": list(self.image_models), "video": list(self.video_models)},
            "pricing": dict(self.pricing),
            "requiresKey": self.requires_key,
            "icon": self.icon,
        }


# ---------------------------------------------------------------------------
# Registry class
# ---------------------------------------------------------------------------

class ProviderRegistry:
    """In-memory catalog of providers, keyed by lower-case id."""

    def __init__(self) -> None:
        self._providers: dict[str, ProviderSpec] = {}

    def register(self, spec: ProviderSpec) -> None:
        if spec.id in self._providers:
            raise ValueError(f"Provider already registered: {spec.id}")
        self._providers[spec.id] = spec

    def get(self, provider_id: str | None) -> ProviderSpec | None:
        if not provider_id:
            return None
        return self._providers.get(provider_id.strip().lower())

    def __contains__(self, provider_id: str) -> bool:
        return self.get(provider_id) is not None

    def ids(self) -> list[str]:
        return list(self._providers.keys())

    def list_providers(self, kind: MediaKind | None = None) -> list[ProviderSpec]:
        """List providers, optionally only those supporting a kind."""
        if kind is None:
            return list(self._providers.values())
        return [spec for spec in self._providers.values() if spec.supports(kind)]

    def keyless_providers(self) -> list[ProviderSpec]:
        return [spec for spec in self._providers.values() if not spec.requires_key]


# ---------------------------------------------------------------------------
# Provider entries
# ---------------------------------------------------------------------------

PROVIDER_REGISTRY = ProviderRegistry()

PROVIDER_REGISTRY.register(ProviderSpec(
    id="pollinations",
    name="Pollinations.ai",
    description="Free AI image generation - no API key required",
    dashboard_url="https://pollinations.ai",
    docs_url="https://github.com/pollinations/pollinations",
    icon="🌸",
    requires_key=False,
    auth_scheme=None,
    image_models=("flux", "turbo"),
    image_protocol=PROTOCOL_SYNC,
    pricing={"image": "100% Free", "free": "Unlimited image generation"},
    # Adapter reports the rendered image URL under "url"
    image_locator_rules=(LocatorRule("url"),),
))

PROVIDER_REGISTRY.register(ProviderSpec(
    id="zhipu",
    name="Zhipu AI (BigModel)",
    description="Chinese AI provider with GLM models and CogVideoX",
    dashboard_url="https://open.bigmodel.cn",
    docs_url="https://open.bigmodel.cn/dev/api",
    icon="🤖",
    requires_key=True,
    image_models=("cogview-4", "cogview-3-plus"),
    video_models=("cogvideox",),
    image_protocol=PROTOCOL_SYNC,
    video_protocol=PROTOCOL_ASYNC,
    pricing={"image": "Free tier available", "video": "~¥0.5-2 per video"},
    task_id_paths=("id", "task_id", "data.id"),
    status_paths=("task_status", "status", "data.status"),
    image_locator_rules=(
        LocatorRule("data.0.url"),
        LocatorRule("data.0.image_url"),
        LocatorRule("data.url"),
    ),
    video_locator_rules=(
        LocatorRule("video_result.0.url", mime_type="video/mp4"),
        LocatorRule("data.video_url", mime_type="video/mp4"),
        LocatorRule("video_url", mime_type="video/mp4"),
    ),
))

PROVIDER_REGISTRY.register(ProviderSpec(
    id="openai",
    name="OpenAI",
    description="GPT-4 and DALL-E models for image generation",
    dashboard_url="https://platform.openai.com/api-keys",
    docs_url="https://platform.openai.com/docs",
    icon="🟢",
    requires_key=True,
    image_models=("dall-e-3", "dall-e-2", "gpt-image-1"),
    image_protocol=PROTOCOL_SYNC,
    pricing={"image": "$0.02-0.12 per image (DALL-E 3)", "free": "Free credits for new accounts"},
    image_locator_rules=(
        LocatorRule("data.0.url"),
        LocatorRule("data.0.b64_json", encoding=ENCODING_BASE64),
    ),
))

PROVIDER_REGISTRY.register(ProviderSpec(
    id="stability",
    name="Stability AI",
    description="Stable Diffusion image generation",
    dashboard_url="https://platform.stability.ai/account/keys",
    docs_url="https://platform.stability.ai/docs",
    icon="🎨",
    requires_key=True,
    image_models=("stable-diffusion-xl-1024-v1-0",),
    image_protocol=PROTOCOL_SYNC,
    pricing={"image": "$0.002-0.04 per image"},
    image_locator_rules=(
        LocatorRule("artifacts.0.base64", encoding=ENCODING_BASE64),
        LocatorRule("image", encoding=ENCODING_BASE64),
    ),
))

PROVIDER_REGISTRY.register(ProviderSpec(
    id="replicate",
    name="Replicate",
    description="Run open-source AI models with pay-per-second pricing",
    dashboard_url="https://replicate.com/account/api-tokens",
    docs_url="https://replicate.com/docs",
    icon="🔄",
    requires_key=True,
    image_models=("black-forest-labs/flux-schnell", "black-forest-labs/flux-dev", "stability-ai/sdxl"),
    video_models=("minimax/video-01", "tencent/hunyuan-video"),
    image_protocol=PROTOCOL_ASYNC,
    video_protocol=PROTOCOL_ASYNC,
    pricing={"image": "$0.01-0.10 per image", "video": "$0.05-0.50 per video"},
    task_id_paths=("id",),
    status_paths=("status",),
    status_url_paths=("urls.get",),
    failure_reason_paths=("error",),
    # "starting" / "processing" fall through to processing
    image_locator_rules=(
        LocatorRule("output.0"),
        LocatorRule("output"),
    ),
    video_locator_rules=(
        LocatorRule("output", mime_type="video/mp4"),
        LocatorRule("output.0", mime_type="video/mp4"),
    ),
))

PROVIDER_REGISTRY.register(ProviderSpec(
    id="together",
    name="Together AI",
    description="Fast inference for open-source models",
    dashboard_url="https://api.together.xyz/settings/api-keys",
    docs_url="https://docs.together.ai",
    icon="⚡",
    requires_key=True,
    image_models=("black-forest-labs/FLUX.1-schnell", "stabilityai/stable-diffusion-xl-base-1.0"),
    image_protocol=PROTOCOL_SYNC,
    pricing={"image": "$0.002-0.08 per image", "free": "$1 free credits"},
    image_locator_rules=(
        LocatorRule("data.0.url"),
        LocatorRule("data.0.b64_json", encoding=ENCODING_BASE64),
    ),
))

PROVIDER_REGISTRY.register(ProviderSpec(
    id="fal",
    name="Fal.ai",
    description="Fast AI inference with optimized models",
    dashboard_url="https://fal.ai/dashboard/keys",
    docs_url="https://fal.ai/docs",
    icon="🦅",
    requires_key=True,
    auth_scheme="Key",
    image_models=("fal-ai/flux/schnell", "fal-ai/fast-sdxl"),
    video_models=("fal-ai/kling-video/v1/standard/text-to-video", "fal-ai/minimax/video-01"),
    image_protocol=PROTOCOL_SYNC,
    video_protocol=PROTOCOL_ASYNC,
    pricing={"image": "$0.005-0.05 per image", "video": "$0.10-0.30 per video"},
    task_id_paths=("request_id", "id"),
    status_paths=("status",),
    status_url_paths=("status_url",),
    failure_reason_paths=("error", "detail"),
    status_vocabulary={
        "in_queue": StatusState.PROCESSING,
        "in_progress": StatusState.PROCESSING,
    },
    image_locator_rules=(
        LocatorRule("images.0.url"),
        LocatorRule("image.url"),
    ),
    video_locator_rules=(
        LocatorRule("video.url", mime_type="video/mp4"),
        LocatorRule("videos.0.url", mime_type="video/mp4"),
    ),
))
