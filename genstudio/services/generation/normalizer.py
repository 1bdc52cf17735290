"""
Request normalization: raw caller input -> validated GenerationRequest.
Runs before any network call. Recoverable oddities (bad size string, out-of-range
duration) are corrected in place; everything else raises ValidationError, and a
missing credential for a keyed provider raises AuthRequiredError.
"""
import logging
import re
from collections.abc import Mapping
from typing import Any

from genstudio.core.config import settings
from genstudio.services.generation.base import GenerationRequest, MediaKind
from genstudio.services.generation.errors import AuthRequiredError, ValidationError
from genstudio.services.generation.registry import PROVIDER_REGISTRY, ProviderRegistry, ProviderSpec

logger = logging.getLogger(__name__)

MAX_PROMPT_LENGTH: dict[MediaKind, int] = {
    MediaKind.IMAGE: 2000,
    MediaKind.VIDEO: 1000,
}

DEFAULT_SIZE = "1024x1024"
MIN_SIDE, MAX_SIDE = 64, 4096
MIN_DURATION, MAX_DURATION, DEFAULT_DURATION = 1, 10, 5
MIN_FPS, MAX_FPS, DEFAULT_FPS = 24, 60, 30
QUALITIES = ("speed", "quality")
MIN_CREDENTIAL_LENGTH = 10

_SIZE_RE = re.compile(r"^(\d+)x(\d+)$")
# C0 control characters plus DEL; angle brackets are stripped as well
_UNSAFE_PROMPT_RE = re.compile(r"[\x00-\x1f\x7f<>]")


def sanitize_prompt(prompt: str) -> str:
    """Strip control characters and angle brackets, then trim."""
    return _UNSAFE_PROMPT_RE.sub("", prompt).strip()


def normalize_prompt(raw: Any, kind: MediaKind) -> str:
    if not isinstance(raw, str):
        raise ValidationError("Prompt is required", code="prompt_missing")
    prompt = sanitize_prompt(raw)
    if not prompt:
        raise ValidationError("Prompt is required", code="prompt_missing")
    max_length = MAX_PROMPT_LENGTH[kind]
    if len(prompt) > max_length:
        raise ValidationError(
            f"Prompt must be less than {max_length} characters",
            code="prompt_too_long",
            details={"length": len(prompt), "max_length": max_length},
        )
    return prompt


def normalize_size(raw: Any) -> str:
    """WIDTHxHEIGHT within bounds; anything else falls back to the default square."""
    if isinstance(raw, str):
        match = _SIZE_RE.match(raw.strip().lower())
        if match:
            width, height = int(match.group(1)), int(match.group(2))
            if MIN_SIDE <= width <= MAX_SIDE and MIN_SIDE <= height <= MAX_SIDE:
                return f"{width}x{height}"
    if raw not in (None, ""):
        logger.info("size_fallback", extra={"error": f"unsupported size {str(raw)[:32]!r}"})
    return DEFAULT_SIZE


def _coerce_int(raw: Any, default: int) -> int:
    if isinstance(raw, bool) or raw is None:
        return default
    try:
        return int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return default


def clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


def normalize_duration(raw: Any) -> int:
    return clamp(_coerce_int(raw, DEFAULT_DURATION), MIN_DURATION, MAX_DURATION)


def normalize_fps(raw: Any) -> int:
    return clamp(_coerce_int(raw, DEFAULT_FPS), MIN_FPS, MAX_FPS)


def normalize_quality(raw: Any) -> str:
    value = str(raw).strip().lower() if raw is not None else ""
    return value if value in QUALITIES else QUALITIES[0]


def normalize_model(spec: ProviderSpec, kind: MediaKind, raw: Any) -> str | None:
    """Known model for this provider/kind, else the provider default."""
    models = spec.models_for(kind)
    if isinstance(raw, str) and raw.strip() in models:
        return raw.strip()
    return spec.default_model(kind)


def resolve_provider(
    raw: Any,
    kind: MediaKind,
    registry: ProviderRegistry = PROVIDER_REGISTRY,
) -> ProviderSpec:
    provider_id = raw.strip().lower() if isinstance(raw, str) and raw.strip() else None
    if provider_id is None:
        provider_id = settings.default_image_provider if kind == MediaKind.IMAGE else settings.default_video_provider
    spec = registry.get(provider_id)
    if spec is None:
        raise ValidationError(
            f"Unknown provider: {provider_id}",
            code="unknown_provider",
            details={"available": registry.ids()},
        )
    if not spec.supports(kind):
        raise ValidationError(
            f"{spec.name} does not support {kind.value} generation",
            code="unsupported_kind",
        )
    return spec


def normalize_credential(spec: ProviderSpec, raw: Any) -> str | None:
    """Cheap local credential checks; never touches the network or rate-limit counters."""
    credential = raw.strip() if isinstance(raw, str) else None
    if not credential:
        if spec.requires_key:
            raise AuthRequiredError(
                f"{spec.name} API key required. Get it from {spec.dashboard_url}",
                code="credential_missing",
                details={"provider_id": spec.id},
            )
        return None
    if spec.requires_key and len(credential) < MIN_CREDENTIAL_LENGTH:
        raise AuthRequiredError(
            "Valid API key required",
            code="credential_malformed",
            details={"provider_id": spec.id},
        )
    return credential


def normalize_request(
    raw: Mapping[str, Any],
    kind: MediaKind,
    registry: ProviderRegistry = PROVIDER_REGISTRY,
) -> GenerationRequest:
    """
    Validate and coerce untyped input into a GenerationRequest.

    Accepted keys: prompt, provider, apiKey (or credential), model,
    size (image), duration / quality / fps (video).
    Order matters: input errors are reported before credential errors, and
    both before any outbound call.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("Request body must be an object", code="invalid_body")

    prompt = normalize_prompt(raw.get("prompt"), kind)
    spec = resolve_provider(raw.get("provider"), kind, registry)
    credential = normalize_credential(spec, raw.get("apiKey", raw.get("credential")))
    model = normalize_model(spec, kind, raw.get("model"))

    if kind == MediaKind.IMAGE:
        return GenerationRequest(
            kind=kind,
            prompt=prompt,
            provider=spec.id,
            credential=credential,
            model=model,
            size=normalize_size(raw.get("size")),
        )
    return GenerationRequest(
        kind=kind,
        prompt=prompt,
        provider=spec.id,
        credential=credential,
        model=model,
        duration=normalize_duration(raw.get("duration")),
        quality=normalize_quality(raw.get("quality")),
        fps=normalize_fps(raw.get("fps")),
    )


def rebind_request(
    request: GenerationRequest,
    provider: str,
    credential: str | None,
    registry: ProviderRegistry = PROVIDER_REGISTRY,
) -> GenerationRequest:
    """Same validated request aimed at another provider (used by fallback chains)."""
    spec = resolve_provider(provider, request.kind, registry)
    return GenerationRequest(
        kind=request.kind,
        prompt=request.prompt,
        provider=spec.id,
        credential=normalize_credential(spec, credential),
        model=normalize_model(spec, request.kind, None),
        size=request.size,
        duration=request.duration,
        quality=request.quality,
        fps=request.fps,
    )
