"""Response envelope shared by all API routes and the error handlers."""
from datetime import datetime, timezone
from typing import Any

from genstudio.services.generation.errors import GenerationError


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success_envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data, "timestamp": _timestamp()}


def error_envelope(error: GenerationError) -> dict[str, Any]:
    """Safe error body: message, kind and code only. Diagnostic details stay server-side."""
    return {"success": False, **error.to_dict(), "timestamp": _timestamp()}
