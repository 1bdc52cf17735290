"""
Result normalization: field probing over provider payloads.
Turns whatever shape a provider returned (sync response or status payload)
into a task id, a canonical GenerationStatus, or a single asset locator,
driven by the ordered rules in the provider registry.
"""
import logging
from typing import Any

from genstudio.services.generation.base import GenerationStatus, MediaKind, StatusState
from genstudio.services.generation.errors import ProtocolError, truncate_payload
from genstudio.services.generation.registry import ENCODING_BASE64, ProviderSpec

logger = logging.getLogger(__name__)


def lookup(payload: Any, path: str) -> Any:
    """Resolve a dotted path ("data.0.url") against nested dicts/lists; None when absent."""
    current = payload
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def _as_text(value: Any) -> str | None:
    """Scalar -> stripped string; containers and blanks -> None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int)):
        text = str(value).strip()
        return text or None
    return None


def first_text(payload: Any, paths: tuple[str, ...]) -> str | None:
    """First non-empty scalar found along an ordered list of paths."""
    for path in paths:
        text = _as_text(lookup(payload, path))
        if text:
            return text
    return None


def extract_task_id(spec: ProviderSpec, payload: Any) -> str | None:
    return first_text(payload, spec.task_id_paths)


def extract_status_url(spec: ProviderSpec, payload: Any) -> str | None:
    return first_text(payload, spec.status_url_paths)


def extract_raw_status(spec: ProviderSpec, payload: Any) -> str | None:
    return first_text(payload, spec.status_paths)


def extract_failure_reason(spec: ProviderSpec, payload: Any) -> str:
    return first_text(payload, spec.failure_reason_paths) or "Generation failed"


def extract_locator(spec: ProviderSpec, kind: MediaKind, payload: Any) -> str | None:
    """Try the provider's locator rules in order; None if nothing usable is present."""
    for rule in spec.locator_rules(kind):
        value = _as_text(lookup(payload, rule.path))
        if not value:
            continue
        if rule.encoding == ENCODING_BASE64 and not value.startswith("data:"):
            return f"data:{rule.mime_type};base64,{value}"
        return value
    return None


def require_locator(spec: ProviderSpec, kind: MediaKind, payload: Any, *, message: str = "Provider returned no asset") -> str:
    """Like extract_locator, but a missing locator is a provider contract violation."""
    locator = extract_locator(spec, kind, payload)
    if locator:
        return locator
    excerpt = truncate_payload(payload)
    logger.error(
        "generation_protocol_error",
        extra={
            "provider_id": spec.id,
            "kind": kind.value,
            "error": message,
            "payload_excerpt": excerpt,
        },
    )
    raise ProtocolError(
        message,
        code="missing_asset",
        details={"provider_id": spec.id, "payload": excerpt},
    )


def normalize_status(spec: ProviderSpec, kind: MediaKind, payload: Any) -> GenerationStatus:
    """
    Map a provider status payload into the canonical model.
    A succeeded-looking status without an extractable locator raises ProtocolError
    instead of producing a success with an empty locator.
    """
    raw_status = extract_raw_status(spec, payload)
    state = spec.map_status(raw_status)
    if state == StatusState.SUCCEEDED:
        locator = require_locator(spec, kind, payload, message="Task completed but no asset returned")
        return GenerationStatus.succeeded(locator, raw_status=raw_status)
    if state == StatusState.FAILED:
        return GenerationStatus.failed(extract_failure_reason(spec, payload), raw_status=raw_status)
    return GenerationStatus.processing(raw_status=raw_status)
