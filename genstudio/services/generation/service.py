"""
Generation service: the single entry point used by the API routes.
Normalizes requests, dispatches submissions, polls task handles and checks
credentials. Holds no per-request state apart from the poller's set of
handles currently being polled.
"""
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from genstudio.core.config import settings as app_settings
from genstudio.services.generation.base import (
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    MediaKind,
    SubmissionOutcome,
    TaskHandle,
)
from genstudio.services.generation.dispatcher import SubmissionDispatcher
from genstudio.services.generation.errors import (
    AuthRequiredError,
    GenerationError,
    GenerationTimeoutError,
    UpstreamError,
    ValidationError,
)
from genstudio.services.generation.factory import ProviderAdapterFactory
from genstudio.services.generation.normalizer import (
    MIN_CREDENTIAL_LENGTH,
    normalize_request,
    rebind_request,
)
from genstudio.services.generation.poller import PollPolicy, PollState, TaskPoller
from genstudio.services.generation.providers.base import ProviderAdapter
from genstudio.services.generation.registry import (
    PROTOCOL_ASYNC,
    PROVIDER_REGISTRY,
    ProviderRegistry,
    ProviderSpec,
)
from genstudio.services.generation.results import normalize_status
from genstudio.services.generation.transport import ProviderTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FallbackAttempt:
    """One link of a fallback chain and how it ended."""

    provider_id: str
    error: GenerationError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"provider": self.provider_id, "succeeded": self.succeeded}
        if self.error is not None:
            out.update(self.error.to_dict())
        return out


@dataclass(frozen=True)
class FallbackOutcome:
    """Result of an explicit fallback chain: the result (if any) plus every attempt made."""

    result: GenerationResult | None
    attempts: tuple[FallbackAttempt, ...]

    @property
    def succeeded(self) -> bool:
        return self.result is not None


@dataclass(frozen=True)
class KeyCheckResult:
    provider_id: str
    valid: bool
    verified: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider_id,
            "valid": self.valid,
            "verified": self.verified,
            "message": self.message,
        }


class GenerationService:
    """Facade over normalizer, dispatcher, poller and provider adapters."""

    def __init__(
        self,
        transport: ProviderTransport,
        registry: ProviderRegistry = PROVIDER_REGISTRY,
        poller: TaskPoller | None = None,
        settings=None,
    ) -> None:
        self.transport = transport
        self.registry = registry
        self.poller = poller or TaskPoller()
        self.settings = settings or app_settings
        self._adapters: dict[str, ProviderAdapter] = {}
        self.dispatcher = SubmissionDispatcher(self.adapter, registry=registry)

    def adapter(self, provider_id: str) -> ProviderAdapter:
        """Adapter for a provider; built once per service and reused."""
        adapter = self._adapters.get(provider_id)
        if adapter is None:
            adapter = ProviderAdapterFactory.create_from_settings(
                provider_id, self.transport, self.settings, registry=self.registry
            )
            self._adapters[provider_id] = adapter
        return adapter

    def provider_spec(self, provider_id: str | None) -> ProviderSpec:
        spec = self.registry.get(provider_id)
        if spec is None:
            raise ValidationError(f"Unknown provider: {provider_id}", code="unknown_provider")
        return spec

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def normalize(self, raw: Mapping[str, Any], kind: MediaKind) -> GenerationRequest:
        return normalize_request(raw, kind, self.registry)

    async def submit(self, request: GenerationRequest) -> SubmissionOutcome:
        """One billable submission; never retried here."""
        return await self.dispatcher.submit(request)

    # ------------------------------------------------------------------
    # Status / polling
    # ------------------------------------------------------------------

    async def check_status(self, handle: TaskHandle, credential: str | None) -> GenerationStatus:
        """One status query for a handle, mapped into the canonical status."""
        spec = self.provider_spec(handle.provider_id)
        if spec.protocol_for(handle.kind) != PROTOCOL_ASYNC:
            raise ValidationError(
                f"{spec.name} does not run asynchronous {handle.kind.value} tasks",
                code="polling_unsupported",
            )
        if spec.requires_key and not credential:
            raise AuthRequiredError(f"{spec.name} requires an API key", code="credential_missing")
        payload = await self.adapter(spec.id).fetch_status(handle, credential)
        return normalize_status(spec, handle.kind, payload)

    async def wait_for_result(
        self,
        request: GenerationRequest,
        handle: TaskHandle,
        policy: PollPolicy | None = None,
    ) -> GenerationResult:
        """Poll a handle to a terminal state and turn it into a result or a classified error."""
        policy = policy or PollPolicy.for_kind(handle.kind, self.settings)
        outcome = await self.poller.run(handle, request.credential, policy, self.check_status)

        if outcome.state == PollState.SUCCEEDED:
            return GenerationResult(
                asset_locator=outcome.asset_locator,
                prompt=request.prompt,
                parameters=request.parameters,
                provider_id=handle.provider_id,
                kind=handle.kind,
                task_id=handle.opaque_id,
            )
        if outcome.state == PollState.FAILED:
            raise UpstreamError(
                "The provider reported that generation failed.",
                code="generation_failed",
                details={"provider_id": handle.provider_id, "task_id": handle.opaque_id, "reason": outcome.reason},
            )
        raise GenerationTimeoutError(
            "Generation is taking longer than expected. Check the task status again later.",
            details={"provider_id": handle.provider_id, "task_id": handle.opaque_id, "ticks": outcome.ticks},
        )

    async def generate(self, request: GenerationRequest, policy: PollPolicy | None = None) -> GenerationResult:
        """Submit and, for async providers, poll until the asset is ready."""
        outcome = await self.submit(request)
        if outcome.result is not None:
            return outcome.result
        return await self.wait_for_result(request, outcome.handle, policy)

    async def generate_with_fallback(
        self,
        request: GenerationRequest,
        chain: Sequence[tuple[str, str | None]],
        policy: PollPolicy | None = None,
    ) -> FallbackOutcome:
        """
        Try each (provider, credential) in order with the same request.

        Every attempt, and the classified error that ended it, is reported back;
        each attempt is a separate billable submission.
        """
        attempts: list[FallbackAttempt] = []
        for provider_id, credential in chain:
            try:
                attempt_request = rebind_request(request, provider_id, credential, self.registry)
                result = await self.generate(attempt_request, policy)
            except GenerationError as exc:
                attempts.append(FallbackAttempt(provider_id=provider_id, error=exc))
                logger.warning(
                    "generation_fallback_attempt_failed",
                    extra={
                        "provider_id": provider_id,
                        "kind": request.kind.value,
                        "attempt": len(attempts),
                        "max_attempts": len(chain),
                        "error_kind": exc.kind.value,
                        "error_code": exc.code,
                    },
                )
                continue
            attempts.append(FallbackAttempt(provider_id=provider_id))
            return FallbackOutcome(result=result, attempts=tuple(attempts))
        return FallbackOutcome(result=None, attempts=tuple(attempts))

    # ------------------------------------------------------------------
    # Credential check
    # ------------------------------------------------------------------

    async def check_credential(self, provider_id: str | None, credential: str | None) -> KeyCheckResult:
        spec = self.provider_spec(provider_id)
        credential = credential.strip() if isinstance(credential, str) else ""
        if not spec.requires_key:
            return KeyCheckResult(spec.id, valid=True, verified=False, message=f"{spec.name} does not require an API key")
        if not credential:
            raise AuthRequiredError("API key is required", code="credential_missing")
        if len(credential) < MIN_CREDENTIAL_LENGTH:
            return KeyCheckResult(spec.id, valid=False, verified=False, message="API key format is invalid")

        verdict = await self.adapter(spec.id).check_credential(credential)
        logger.info(
            "credential_checked",
            extra={"provider_id": spec.id, "outcome": "unverified" if verdict is None else str(verdict).lower()},
        )
        if verdict is None:
            return KeyCheckResult(spec.id, valid=True, verified=False, message="Key format accepted")
        if verdict:
            return KeyCheckResult(spec.id, valid=True, verified=True, message="API key is valid")
        return KeyCheckResult(spec.id, valid=False, verified=True, message="Invalid API key")
