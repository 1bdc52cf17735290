"""
Submission dispatcher: one provider submission per call, classified as an
immediate result or an async task handle.
Submissions are billable, so nothing here (or below it) retries.
"""
import logging
from typing import Any, Callable

from genstudio.services.generation.base import (
    GenerationRequest,
    GenerationResult,
    StatusState,
    SubmissionOutcome,
    TaskHandle,
)
from genstudio.services.generation.errors import (
    AuthRequiredError,
    GenerationError,
    ProtocolError,
    UpstreamError,
    ValidationError,
    truncate_payload,
)
from genstudio.services.generation.providers.base import ProviderAdapter
from genstudio.services.generation.registry import (
    PROTOCOL_SYNC,
    PROVIDER_REGISTRY,
    ProviderRegistry,
    ProviderSpec,
)
from genstudio.services.generation.results import (
    extract_failure_reason,
    extract_locator,
    extract_raw_status,
    extract_status_url,
    extract_task_id,
    require_locator,
)
from genstudio.utils.metrics import generation_submissions_total

logger = logging.getLogger(__name__)


def _protocol_error(spec: ProviderSpec, request: GenerationRequest, message: str, code: str, payload: Any) -> ProtocolError:
    excerpt = truncate_payload(payload, request.credential)
    logger.error(
        "generation_protocol_error",
        extra={
            "provider_id": spec.id,
            "kind": request.kind.value,
            "error": message,
            "payload_excerpt": excerpt,
        },
    )
    return ProtocolError(message, code=code, details={"provider_id": spec.id, "payload": excerpt})


def classify_submission(spec: ProviderSpec, request: GenerationRequest, payload: dict[str, Any]) -> SubmissionOutcome:
    """
    Decide what a submission payload is.

    - failed status -> UpstreamError(generation_failed)
    - locator present and no non-terminal status -> immediate result
    - succeeded status without a locator -> ProtocolError(missing_asset)
    - otherwise a task id is required -> async handle
    - sync providers must always carry a locator
    """
    raw_status = extract_raw_status(spec, payload)
    state = spec.map_status(raw_status) if raw_status else None

    if state == StatusState.FAILED:
        reason = extract_failure_reason(spec, payload)
        raise UpstreamError(
            "The provider reported that generation failed.",
            code="generation_failed",
            details={"provider_id": spec.id, "reason": reason, "raw_status": raw_status},
        )

    if state != StatusState.PROCESSING:
        if spec.protocol_for(request.kind) == PROTOCOL_SYNC:
            locator = require_locator(spec, request.kind, payload)
        else:
            locator = extract_locator(spec, request.kind, payload)
        if locator:
            result = GenerationResult(
                asset_locator=locator,
                prompt=request.prompt,
                parameters=request.parameters,
                provider_id=spec.id,
                kind=request.kind,
                task_id=extract_task_id(spec, payload),
            )
            return SubmissionOutcome(request=request, result=result)

    # Succeeded is terminal: a handle would only poll into the same missing asset
    if state == StatusState.SUCCEEDED:
        raise _protocol_error(spec, request, "Task completed but no asset returned", "missing_asset", payload)

    task_id = extract_task_id(spec, payload)
    if not task_id:
        raise _protocol_error(spec, request, "Provider returned no task ID", "missing_task_id", payload)

    handle = TaskHandle(
        provider_id=spec.id,
        opaque_id=task_id,
        kind=request.kind,
        model=request.model,
        status_url=extract_status_url(spec, payload),
    )
    return SubmissionOutcome(request=request, handle=handle)


class SubmissionDispatcher:
    """Runs exactly one submission call per submit() and classifies the outcome."""

    def __init__(
        self,
        adapter_for: Callable[[str], ProviderAdapter],
        registry: ProviderRegistry = PROVIDER_REGISTRY,
    ) -> None:
        self._adapter_for = adapter_for
        self.registry = registry

    async def submit(self, request: GenerationRequest) -> SubmissionOutcome:
        spec = self.registry.get(request.provider)
        if spec is None or not spec.supports(request.kind):
            raise ValidationError(
                f"Provider {request.provider!r} does not support {request.kind.value} generation",
                code="unsupported_kind",
            )
        if spec.requires_key and not request.credential:
            raise AuthRequiredError(f"{spec.name} requires an API key", code="credential_missing")

        log_extra = {"provider_id": spec.id, "kind": request.kind.value, "model": request.model}
        logger.info("generation_submit_started", extra=log_extra)
        try:
            payload = await self._adapter_for(spec.id).submit(request)
            outcome = classify_submission(spec, request, payload)
        except GenerationError as exc:
            generation_submissions_total.labels(provider=spec.id, kind=request.kind.value, outcome="error").inc()
            logger.warning(
                "generation_submit_failed",
                extra={**log_extra, "error_kind": exc.kind.value, "error_code": exc.code, "http_status": exc.http_status},
            )
            raise

        label = "accepted" if outcome.is_async else "immediate"
        generation_submissions_total.labels(provider=spec.id, kind=request.kind.value, outcome=label).inc()
        logger.info(
            "generation_submitted",
            extra={
                **log_extra,
                "outcome": label,
                "task_id": outcome.handle.opaque_id if outcome.handle else None,
            },
        )
        return outcome
