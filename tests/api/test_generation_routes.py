"""Route tests: envelope, status codes, validation-before-rate-limit, no credential echo."""
import httpx
import pytest
from fastapi.testclient import TestClient

from genstudio.main import create_app
from genstudio.services.rate_limit import (
    SCOPE_GENERATE_IMAGE,
    SCOPE_TEST_KEY,
    InboundRateLimits,
    InMemoryRateLimiter,
)

from tests.helpers import VALID_KEY, FakeProvider

PNG = dict(content=b"\x89PNG", headers={"content-type": "image/png"})


@pytest.fixture
def fake():
    return FakeProvider()


def _client(fake, limits=None):
    app = create_app(transport=fake.transport, rate_limits=limits or InboundRateLimits.disabled())
    return TestClient(app)


class TestGenerate:
    def test_keyless_image_is_immediate(self):
        fake = FakeProvider([httpx.Response(200, **PNG)])
        with _client(fake) as client:
            response = client.post("/api/generate-image", json={"prompt": "a red fox", "provider": "pollinations"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "immediate"
        assert body["data"]["asset"].startswith("https://image.pollinations.ai/prompt/")
        assert body["data"]["parameters"]["size"] == "1024x1024"
        assert "timestamp" in body
        assert "X-Request-Id" in response.headers

    def test_default_image_provider_used(self):
        fake = FakeProvider([httpx.Response(200, **PNG)])
        with _client(fake) as client:
            response = client.post("/api/generate-image", json={"prompt": "fox"})
        assert response.json()["data"]["providerId"] == "pollinations"

    def test_async_provider_returns_task_handle(self):
        fake = FakeProvider([httpx.Response(201, json={"id": "abc123", "status": "starting"})])
        with _client(fake) as client:
            response = client.post(
                "/api/generate-image",
                json={"prompt": "a red fox", "provider": "replicate", "apiKey": VALID_KEY},
            )
        data = response.json()["data"]
        assert data["status"] == "accepted"
        assert data["taskHandle"]["taskId"] == "abc123"
        assert data["taskHandle"]["providerId"] == "replicate"

    def test_video_submission(self):
        fake = FakeProvider([httpx.Response(200, json={"id": "zp-1", "task_status": "PROCESSING"})])
        with _client(fake) as client:
            response = client.post(
                "/api/generate-video",
                json={"prompt": "waves", "apiKey": VALID_KEY, "duration": "99", "fps": "fast"},
            )
        assert response.status_code == 200
        assert response.json()["data"]["taskHandle"]["kind"] == "video"

    def test_missing_prompt(self, fake):
        with _client(fake) as client:
            response = client.post("/api/generate-image", json={"provider": "pollinations"})
        assert response.status_code == 400
        body = response.json()
        assert body == {
            "success": False,
            "error": "Prompt is required",
            "kind": "ValidationError",
            "code": "prompt_missing",
            "timestamp": body["timestamp"],
        }

    def test_malformed_body(self, fake):
        with _client(fake) as client:
            response = client.post("/api/generate-image", json={"prompt": ["not", "a", "string"], "apiKey": VALID_KEY})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_body"
        assert VALID_KEY not in response.text

    def test_missing_key_no_network(self, fake):
        with _client(fake) as client:
            response = client.post("/api/generate-image", json={"prompt": "fox", "provider": "openai"})
        assert response.status_code == 401
        assert response.json()["kind"] == "AuthRequiredError"
        assert response.json()["code"] == "credential_missing"
        assert fake.requests == []

    @pytest.mark.parametrize("status,code,http", [
        (401, "credential_invalid", 401),
        (402, "insufficient_balance", 402),
        (403, "credential_invalid", 401),
        (404, "endpoint_unavailable", 502),
        (422, "provider_rejected_request", 400),
        (429, "provider_rate_limited", 429),
        (500, "upstream_failure", 502),
    ])
    def test_provider_errors(self, status, code, http):
        fake = FakeProvider([httpx.Response(status, json={"detail": f"echo {VALID_KEY}"})])
        with _client(fake) as client:
            response = client.post(
                "/api/generate-image",
                json={"prompt": "fox", "provider": "replicate", "apiKey": VALID_KEY},
            )
        assert response.status_code == http
        assert response.json()["code"] == code
        assert VALID_KEY not in response.text
        assert "echo" not in response.text


class TestStatus:
    def test_image_status(self):
        fake = FakeProvider([httpx.Response(200, json={"id": "abc123", "status": "succeeded", "output": ["https://cdn/x.png"]})])
        with _client(fake) as client:
            response = client.get("/api/image-status", params={"predictionId": "abc123"}, headers={"X-API-Key": VALID_KEY})

        assert response.status_code == 200
        assert response.json()["data"] == {
            "taskId": "abc123",
            "provider": "replicate",
            "status": "succeeded",
            "asset": "https://cdn/x.png",
        }
        assert fake.requests[0].headers["authorization"] == f"Bearer {VALID_KEY}"

    def test_video_status_processing(self):
        fake = FakeProvider([httpx.Response(200, json={"task_status": "PROCESSING"})])
        with _client(fake) as client:
            response = client.get("/api/video-status", params={"taskId": "zp-1"}, headers={"X-API-Key": VALID_KEY})
        assert response.json()["data"]["status"] == "processing"
        assert fake.requests[0].url.path.endswith("/async-result/zp-1")

    def test_video_status_failed(self):
        fake = FakeProvider([httpx.Response(200, json={"task_status": "FAIL"})])
        with _client(fake) as client:
            response = client.get("/api/video-status", params={"taskId": "zp-1", "provider": "zhipu"}, headers={"X-API-Key": VALID_KEY})
        data = response.json()["data"]
        assert data["status"] == "failed"
        assert data["reason"] == "Generation failed"

    @pytest.mark.parametrize("task_id", ["../../etc/passwd", "a b", ""])
    def test_invalid_task_id(self, fake, task_id):
        with _client(fake) as client:
            response = client.get("/api/image-status", params={"predictionId": task_id}, headers={"X-API-Key": VALID_KEY})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_task_id"
        assert fake.requests == []

    def test_status_requires_key(self, fake):
        with _client(fake) as client:
            response = client.get("/api/image-status", params={"predictionId": "abc123"})
        assert response.status_code == 401
        assert fake.requests == []

    def test_completed_without_asset(self):
        fake = FakeProvider([httpx.Response(200, json={"id": "abc123", "status": "succeeded"})])
        with _client(fake) as client:
            response = client.get("/api/image-status", params={"predictionId": "abc123"}, headers={"X-API-Key": VALID_KEY})
        assert response.status_code == 502
        assert response.json()["kind"] == "ProtocolError"


class TestRateLimit:
    def test_limit_counts_only_valid_requests(self):
        fake = FakeProvider(handler=lambda request: httpx.Response(200, **PNG))
        limits = InboundRateLimits({SCOPE_GENERATE_IMAGE: InMemoryRateLimiter(limit=1, window_seconds=60)})
        with _client(fake, limits) as client:
            invalid = client.post("/api/generate-image", json={"prompt": ""})
            first = client.post("/api/generate-image", json={"prompt": "fox"})
            second = client.post("/api/generate-image", json={"prompt": "fox"})

        assert invalid.status_code == 400
        assert first.status_code == 200
        assert second.status_code == 429
        assert second.json()["code"] == "inbound_rate_limited"
        assert len(fake.requests) == 1

    def test_test_key_limited(self):
        fake = FakeProvider(handler=lambda request: httpx.Response(200, json={}))
        limits = InboundRateLimits({SCOPE_TEST_KEY: InMemoryRateLimiter(limit=1, window_seconds=60)})
        with _client(fake, limits) as client:
            ok = client.post("/api/test-key", json={"provider": "replicate", "apiKey": VALID_KEY})
            limited = client.post("/api/test-key", json={"provider": "replicate", "apiKey": VALID_KEY})
        assert ok.status_code == 200
        assert limited.status_code == 429


class TestKeyCheck:
    def test_valid_key(self):
        fake = FakeProvider([httpx.Response(200, json={"username": "me"})])
        with _client(fake) as client:
            response = client.post("/api/test-key", json={"provider": "replicate", "apiKey": VALID_KEY})
        assert response.json()["data"] == {
            "provider": "replicate",
            "valid": True,
            "verified": True,
            "message": "API key is valid",
        }
        assert VALID_KEY not in response.text

    def test_invalid_key(self):
        fake = FakeProvider([httpx.Response(401, json={"detail": "nope"})])
        with _client(fake) as client:
            response = client.post("/api/test-key", json={"provider": "zhipu", "apiKey": VALID_KEY})
        assert response.status_code == 200
        assert response.json()["data"]["valid"] is False

    def test_unknown_provider(self, fake):
        with _client(fake) as client:
            response = client.post("/api/test-key", json={"provider": "nope", "apiKey": VALID_KEY})
        assert response.status_code == 400
        assert response.json()["code"] == "unknown_provider"

    def test_missing_provider(self, fake):
        with _client(fake) as client:
            response = client.post("/api/test-key", json={"apiKey": VALID_KEY})
        assert response.status_code == 400


class TestCatalog:
    def test_providers_by_feature(self, fake):
        with _client(fake) as client:
            response = client.get("/api/providers", params={"feature": "video"})
        data = response.json()["data"]
        assert {p["id"] for p in data["providers"]} == {"zhipu", "replicate", "fal"}
        assert data["defaults"] == {"image": "pollinations", "video": "zhipu"}

    def test_all_providers(self, fake):
        with _client(fake) as client:
            response = client.get("/api/providers")
        assert len(response.json()["data"]["providers"]) == 7

    def test_invalid_feature(self, fake):
        with _client(fake) as client:
            response = client.get("/api/providers", params={"feature": "audio"})
        assert response.status_code == 400

    def test_health_and_metrics(self, fake):
        with _client(fake) as client:
            health = client.get("/health")
            metrics = client.get("/metrics")
        assert health.json()["status"] == "ok"
        assert "pollinations" in health.json()["providers"]
        assert metrics.status_code == 200
        assert "generation_submissions_total" in metrics.text
