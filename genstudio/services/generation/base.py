"""
Base types for generation orchestration.
Used by the normalizer, dispatcher, poller, provider adapters and the service facade.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MediaKind(str, Enum):
    """Asset kind a request asks for."""

    IMAGE = "image"
    VIDEO = "video"


class StatusState(str, Enum):
    """Canonical 3-state model every provider status vocabulary is mapped into."""

    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationRequest:
    """Validated, immutable request produced by the request normalizer."""

    kind: MediaKind
    prompt: str
    provider: str
    # repr=False: the credential must never end up in logs via %r / str()
    credential: str | None = field(default=None, repr=False)
    model: str | None = None
    size: str | None = None  # image only, "WIDTHxHEIGHT"
    duration: int | None = None  # video only, seconds
    quality: str | None = None  # video only, "speed" | "quality"
    fps: int | None = None  # video only

    @property
    def parameters(self) -> dict[str, Any]:
        """Kind-specific parameters, as echoed back in results."""
        if self.kind == MediaKind.IMAGE:
            params: dict[str, Any] = {"size": self.size}
        else:
            params = {"duration": self.duration, "quality": self.quality, "fps": self.fps}
        if self.model:
            params["model"] = self.model
        return params

    @property
    def dimensions(self) -> tuple[int, int]:
        """(width, height) parsed from size; only meaningful for image requests."""
        width, height = (self.size or "1024x1024").split("x")
        return int(width), int(height)


@dataclass(frozen=True)
class TaskHandle:
    """Opaque reference to a provider-side task, alive between submission and terminal status."""

    provider_id: str
    opaque_id: str
    kind: MediaKind
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    model: str | None = None
    # Some providers hand back the exact URL to query; others are addressed by id
    status_url: str | None = None

    @property
    def key(self) -> str:
        return f"{self.provider_id}:{self.opaque_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "providerId": self.provider_id,
            "taskId": self.opaque_id,
            "kind": self.kind.value,
            "createdAt": self.created_at.isoformat(),
            "model": self.model,
            "statusUrl": self.status_url,
        }


@dataclass(frozen=True)
class GenerationStatus:
    """Tagged union: Processing | Succeeded(asset_locator) | Failed(reason)."""

    state: StatusState
    asset_locator: str | None = None
    reason: str | None = None
    raw_status: str | None = None

    @classmethod
    def processing(cls, raw_status: str | None = None) -> "GenerationStatus":
        return cls(StatusState.PROCESSING, raw_status=raw_status)

    @classmethod
    def succeeded(cls, asset_locator: str, raw_status: str | None = None) -> "GenerationStatus":
        if not asset_locator:
            raise ValueError("Succeeded status requires a non-empty asset locator")
        return cls(StatusState.SUCCEEDED, asset_locator=asset_locator, raw_status=raw_status)

    @classmethod
    def failed(cls, reason: str, raw_status: str | None = None) -> "GenerationStatus":
        return cls(StatusState.FAILED, reason=reason or "Generation failed", raw_status=raw_status)

    @property
    def is_terminal(self) -> bool:
        return self.state != StatusState.PROCESSING

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"status": self.state.value}
        if self.asset_locator:
            out["asset"] = self.asset_locator
        if self.reason:
            out["reason"] = self.reason
        return out


@dataclass(frozen=True)
class GenerationResult:
    """Finished asset; immutable, ownership goes to the caller."""

    asset_locator: str
    prompt: str
    parameters: dict[str, Any]
    provider_id: str
    kind: MediaKind
    task_id: str | None = None

    @property
    def is_inline(self) -> bool:
        return self.asset_locator.startswith("data:")

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset": self.asset_locator,
            "prompt": self.prompt,
            "parameters": self.parameters,
            "providerId": self.provider_id,
            "kind": self.kind.value,
            "taskId": self.task_id,
        }


@dataclass(frozen=True)
class SubmissionOutcome:
    """What the dispatcher produced: an immediate result or a handle to poll."""

    request: GenerationRequest
    result: GenerationResult | None = None
    handle: TaskHandle | None = None

    def __post_init__(self) -> None:
        if (self.result is None) == (self.handle is None):
            raise ValueError("SubmissionOutcome needs exactly one of result or handle")

    @property
    def is_async(self) -> bool:
        return self.handle is not None

    def to_dict(self) -> dict[str, Any]:
        if self.handle is not None:
            return {"status": "accepted", "taskHandle": self.handle.to_dict()}
        return {"status": "immediate", **self.result.to_dict()}
