"""
Image / video generation orchestration with multi-provider support.
"""
from .base import (
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    MediaKind,
    StatusState,
    SubmissionOutcome,
    TaskHandle,
)
from .errors import (
    AuthRequiredError,
    ErrorKind,
    GenerationError,
    GenerationTimeoutError,
    NetworkError,
    ProtocolError,
    RateLimitError,
    UpstreamError,
    ValidationError,
    classify_exception,
    classify_http_status,
)
from .factory import ProviderAdapterFactory
from .poller import PollOutcome, PollPolicy, PollState, TaskPoller
from .registry import PROVIDER_REGISTRY, ProviderRegistry, ProviderSpec
from .service import FallbackAttempt, FallbackOutcome, GenerationService, KeyCheckResult

__all__ = [
    "GenerationRequest",
    "GenerationResult",
    "GenerationStatus",
    "MediaKind",
    "StatusState",
    "SubmissionOutcome",
    "TaskHandle",
    "AuthRequiredError",
    "ErrorKind",
    "GenerationError",
    "GenerationTimeoutError",
    "NetworkError",
    "ProtocolError",
    "RateLimitError",
    "UpstreamError",
    "ValidationError",
    "classify_exception",
    "classify_http_status",
    "ProviderAdapterFactory",
    "PollOutcome",
    "PollPolicy",
    "PollState",
    "TaskPoller",
    "PROVIDER_REGISTRY",
    "ProviderRegistry",
    "ProviderSpec",
    "FallbackAttempt",
    "FallbackOutcome",
    "GenerationService",
    "KeyCheckResult",
]
