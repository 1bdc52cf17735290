"""Test doubles shared across test modules."""
import httpx

VALID_KEY = "sk-test-0123456789abcdef"


class FakeProvider:
    """Records every outbound request and answers from a handler or a queue of responses."""

    def __init__(self, responses=None, handler=None):
        self.requests: list[httpx.Request] = []
        self._responses = list(responses or [])
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._handler is not None:
            return self._handler(request)
        if not self._responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        return self._responses.pop(0)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
