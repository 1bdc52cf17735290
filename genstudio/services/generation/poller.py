"""
Task poller: drives one TaskHandle from Pending to a terminal state.

Pending -> {Pending, Succeeded, Failed, TimedOut}. Each tick issues exactly one
status query, then sleeps for the policy interval; the attempt bound turns an
endless Processing stream into TimedOut. The provider task is never cancelled.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from genstudio.core.config import settings as app_settings
from genstudio.services.generation.base import GenerationStatus, MediaKind, StatusState, TaskHandle
from genstudio.services.generation.errors import NetworkError, RateLimitError, UpstreamError
from genstudio.utils.metrics import (
    generation_completions_total,
    generation_poll_ticks_to_terminal,
    generation_poll_ticks_total,
)

logger = logging.getLogger(__name__)

# Only these may be absorbed by the transient error budget; ProtocolError/AuthRequiredError always propagate
TRANSIENT_POLL_ERRORS = (NetworkError, UpstreamError, RateLimitError)

StatusCheck = Callable[[TaskHandle, str | None], Awaitable[GenerationStatus]]


class PollState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PollPolicy:
    """Interval and attempt bound for one polling session."""

    interval_seconds: float
    max_attempts: int
    transient_error_budget: int = 0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        if self.transient_error_budget < 0:
            raise ValueError("transient_error_budget must be >= 0")

    @classmethod
    def for_kind(cls, kind: MediaKind, settings=None) -> "PollPolicy":
        """Images poll fast (seconds); videos poll slower (minutes)."""
        settings = settings or app_settings
        if kind == MediaKind.VIDEO:
            return cls(
                interval_seconds=settings.video_poll_interval_seconds,
                max_attempts=settings.video_poll_max_attempts,
                transient_error_budget=settings.poll_transient_error_budget,
            )
        return cls(
            interval_seconds=settings.image_poll_interval_seconds,
            max_attempts=settings.image_poll_max_attempts,
            transient_error_budget=settings.poll_transient_error_budget,
        )


@dataclass
class PollProgress:
    """Mutable progress record, private to the loop polling this handle."""

    handle: TaskHandle
    state: PollState = PollState.PENDING
    ticks: int = 0
    transient_errors: int = 0
    last_status: GenerationStatus | None = None


@dataclass(frozen=True)
class PollOutcome:
    state: PollState
    handle: TaskHandle
    ticks: int
    status: GenerationStatus | None = None

    @property
    def asset_locator(self) -> str | None:
        return self.status.asset_locator if self.status else None

    @property
    def reason(self) -> str | None:
        return self.status.reason if self.status else None


class TaskPoller:
    """
    Runs polling loops. One loop per handle: a second run() for a handle that is
    already being polled raises RuntimeError.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        self._sleep = sleep
        self._active: set[str] = set()

    def is_polling(self, handle: TaskHandle) -> bool:
        return handle.key in self._active

    async def run(
        self,
        handle: TaskHandle,
        credential: str | None,
        policy: PollPolicy,
        check_status: StatusCheck,
    ) -> PollOutcome:
        if handle.key in self._active:
            raise RuntimeError(f"Task {handle.key} is already being polled")
        self._active.add(handle.key)
        progress = PollProgress(handle=handle)
        try:
            return await self._loop(progress, credential, policy, check_status)
        finally:
            self._active.discard(handle.key)

    async def _loop(
        self,
        progress: PollProgress,
        credential: str | None,
        policy: PollPolicy,
        check_status: StatusCheck,
    ) -> PollOutcome:
        handle = progress.handle
        while progress.ticks < policy.max_attempts:
            progress.ticks += 1
            generation_poll_ticks_total.labels(provider=handle.provider_id, kind=handle.kind.value).inc()
            try:
                status = await check_status(handle, credential)
            except TRANSIENT_POLL_ERRORS as exc:
                progress.transient_errors += 1
                if progress.transient_errors > policy.transient_error_budget:
                    raise
                logger.warning(
                    "generation_poll_transient_error",
                    extra={
                        "provider_id": handle.provider_id,
                        "task_id": handle.opaque_id,
                        "attempt": progress.ticks,
                        "error_kind": exc.kind.value,
                        "error_code": exc.code,
                    },
                )
            else:
                progress.last_status = status
                logger.debug(
                    "generation_poll_tick",
                    extra={
                        "provider_id": handle.provider_id,
                        "task_id": handle.opaque_id,
                        "attempt": progress.ticks,
                        "max_attempts": policy.max_attempts,
                        "status": status.raw_status or status.state.value,
                    },
                )
                if status.state == StatusState.SUCCEEDED:
                    return self._finish(progress, PollState.SUCCEEDED)
                if status.state == StatusState.FAILED:
                    return self._finish(progress, PollState.FAILED)

            if progress.ticks < policy.max_attempts:
                await self._sleep(policy.interval_seconds)

        return self._finish(progress, PollState.TIMED_OUT)

    @staticmethod
    def _finish(progress: PollProgress, state: PollState) -> PollOutcome:
        progress.state = state
        handle = progress.handle
        generation_completions_total.labels(
            provider=handle.provider_id, kind=handle.kind.value, state=state.value
        ).inc()
        generation_poll_ticks_to_terminal.labels(kind=handle.kind.value).observe(progress.ticks)
        log = logger.warning if state == PollState.TIMED_OUT else logger.info
        log(
            "generation_poll_finished",
            extra={
                "provider_id": handle.provider_id,
                "task_id": handle.opaque_id,
                "kind": handle.kind.value,
                "outcome": state.value,
                "ticks": progress.ticks,
            },
        )
        return PollOutcome(state=state, handle=handle, ticks=progress.ticks, status=progress.last_status)
