"""End-to-end flows through GenerationService with faked provider HTTP."""
import httpx
import pytest

from genstudio.services.generation import (
    AuthRequiredError,
    GenerationTimeoutError,
    MediaKind,
    PollPolicy,
    ProtocolError,
    TaskHandle,
    UpstreamError,
    ValidationError,
)
from genstudio.services.generation.normalizer import normalize_request

from tests.helpers import VALID_KEY, FakeProvider


def _replicate_request():
    return normalize_request(
        {"prompt": "a red fox", "provider": "replicate", "apiKey": VALID_KEY, "size": "1024x1024"},
        MediaKind.IMAGE,
    )


@pytest.mark.anyio
async def test_replicate_red_fox_scenario(make_service, sleep):
    fake = FakeProvider([
        httpx.Response(201, json={"id": "abc123"}),
        httpx.Response(200, json={"id": "abc123", "status": "processing"}),
        httpx.Response(200, json={"id": "abc123", "status": "succeeded", "output": ["https://cdn/x.png"]}),
    ])
    service = make_service(fake)

    result = await service.generate(_replicate_request())

    assert result.asset_locator == "https://cdn/x.png"
    assert result.task_id == "abc123"
    assert result.provider_id == "replicate"
    assert result.parameters["size"] == "1024x1024"
    submit, *polls = fake.requests
    assert submit.method == "POST"
    assert submit.url.path == "/v1/models/black-forest-labs/flux-schnell/predictions"
    assert [p.url.path for p in polls] == ["/v1/predictions/abc123", "/v1/predictions/abc123"]
    assert sleep.calls == [2.0]


@pytest.mark.anyio
async def test_status_read_from_provider_issued_url(make_service):
    fake = FakeProvider([
        httpx.Response(200, json={"id": "p1", "status": "succeeded", "output": "https://cdn/v.mp4"}),
    ])
    service = make_service(fake)
    handle = TaskHandle(
        provider_id="replicate",
        opaque_id="p1",
        kind=MediaKind.VIDEO,
        status_url="https://api.replicate.com/v1/predictions/p1?x=1",
    )
    status = await service.check_status(handle, VALID_KEY)
    assert status.asset_locator == "https://cdn/v.mp4"
    assert fake.requests[0].url.params["x"] == "1"


@pytest.mark.anyio
async def test_foreign_status_url_is_ignored(make_service):
    fake = FakeProvider([httpx.Response(200, json={"id": "p1", "status": "processing"})])
    service = make_service(fake)
    handle = TaskHandle(
        provider_id="replicate",
        opaque_id="p1",
        kind=MediaKind.IMAGE,
        status_url="https://attacker.example/collect",
    )
    await service.check_status(handle, VALID_KEY)
    assert fake.requests[0].url.host == "api.replicate.com"


@pytest.mark.anyio
async def test_succeeded_without_output_is_protocol_error(make_service):
    fake = FakeProvider([
        httpx.Response(201, json={"id": "abc123", "status": "starting"}),
        httpx.Response(200, json={"id": "abc123", "status": "succeeded", "output": None}),
    ])
    service = make_service(fake)
    with pytest.raises(ProtocolError):
        await service.generate(_replicate_request())


@pytest.mark.anyio
async def test_provider_failure_becomes_upstream_error(make_service):
    fake = FakeProvider([
        httpx.Response(201, json={"id": "abc123", "status": "starting"}),
        httpx.Response(200, json={"id": "abc123", "status": "failed", "error": "NSFW"}),
    ])
    service = make_service(fake)
    with pytest.raises(UpstreamError) as exc_info:
        await service.generate(_replicate_request())
    assert exc_info.value.code == "generation_failed"
    assert exc_info.value.details["reason"] == "NSFW"


@pytest.mark.anyio
async def test_poll_timeout(make_service):
    fake = FakeProvider(handler=lambda request: (
        httpx.Response(201, json={"id": "abc123", "status": "starting"})
        if request.method == "POST"
        else httpx.Response(200, json={"id": "abc123", "status": "processing"})
    ))
    service = make_service(fake)
    with pytest.raises(GenerationTimeoutError) as exc_info:
        await service.generate(_replicate_request(), PollPolicy(interval_seconds=2.0, max_attempts=3))
    assert exc_info.value.http_status == 504
    # one submission, three status queries, never a resubmission
    assert [r.method for r in fake.requests] == ["POST", "GET", "GET", "GET"]


@pytest.mark.anyio
async def test_zhipu_video_flow(make_service, sleep):
    fake = FakeProvider([
        httpx.Response(200, json={"id": "zp-1", "model": "cogvideox", "task_status": "PROCESSING"}),
        httpx.Response(200, json={"task_status": "PROCESSING"}),
        httpx.Response(200, json={"task_status": "SUCCESS", "video_result": [{"url": "https://z/v.mp4"}]}),
    ])
    service = make_service(fake)
    request = normalize_request(
        {"prompt": "waves", "provider": "zhipu", "apiKey": VALID_KEY, "duration": 8, "quality": "quality"},
        MediaKind.VIDEO,
    )
    result = await service.generate(request)
    assert result.asset_locator == "https://z/v.mp4"
    assert result.parameters == {"duration": 8, "quality": "quality", "fps": 30, "model": "cogvideox"}
    assert fake.requests[1].url.path == "/api/paas/v4/async-result/zp-1"
    assert sleep.calls == [5.0]


@pytest.mark.anyio
async def test_status_for_sync_provider_rejected(make_service):
    fake = FakeProvider()
    service = make_service(fake)
    handle = TaskHandle(provider_id="openai", opaque_id="x", kind=MediaKind.IMAGE)
    with pytest.raises(ValidationError) as exc_info:
        await service.check_status(handle, VALID_KEY)
    assert exc_info.value.code == "polling_unsupported"
    assert fake.requests == []


@pytest.mark.anyio
async def test_status_without_key_never_reaches_network(make_service):
    fake = FakeProvider()
    service = make_service(fake)
    handle = TaskHandle(provider_id="replicate", opaque_id="abc123", kind=MediaKind.IMAGE)
    with pytest.raises(AuthRequiredError):
        await service.check_status(handle, None)
    assert fake.requests == []


class TestFallback:
    @pytest.mark.anyio
    async def test_chain_reports_every_attempt(self, make_service):
        fake = FakeProvider([
            httpx.Response(500, text="down"),
            httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"}),
        ])
        service = make_service(fake)
        outcome = await service.generate_with_fallback(
            _replicate_request(),
            [("replicate", VALID_KEY), ("pollinations", None)],
        )

        assert outcome.succeeded
        assert outcome.result.provider_id == "pollinations"
        assert [a.provider_id for a in outcome.attempts] == ["replicate", "pollinations"]
        assert outcome.attempts[0].error.code == "upstream_failure"
        assert outcome.attempts[1].succeeded
        assert outcome.attempts[0].to_dict()["kind"] == "UpstreamError"

    @pytest.mark.anyio
    async def test_all_attempts_fail(self, make_service):
        fake = FakeProvider([httpx.Response(401, json={"detail": "bad"})])
        service = make_service(fake)
        outcome = await service.generate_with_fallback(
            _replicate_request(),
            [("replicate", VALID_KEY), ("together", None)],
        )
        assert not outcome.succeeded
        assert outcome.result is None
        assert [a.error.code for a in outcome.attempts] == ["credential_invalid", "credential_missing"]
        # the second link failed locally, before any request
        assert len(fake.requests) == 1

    @pytest.mark.anyio
    async def test_empty_chain(self, make_service):
        outcome = await make_service(FakeProvider()).generate_with_fallback(_replicate_request(), [])
        assert outcome.attempts == ()
        assert not outcome.succeeded


class TestCheckCredential:
    @pytest.mark.anyio
    async def test_valid_key(self, make_service):
        fake = FakeProvider([httpx.Response(200, json={"type": "user"})])
        result = await make_service(fake).check_credential("replicate", VALID_KEY)
        assert (result.valid, result.verified) == (True, True)
        assert fake.requests[0].url.path == "/v1/account"

    @pytest.mark.anyio
    async def test_invalid_key(self, make_service):
        fake = FakeProvider([httpx.Response(401, json={"detail": "Invalid token"})])
        result = await make_service(fake).check_credential("together", VALID_KEY)
        assert (result.valid, result.verified) == (False, True)

    @pytest.mark.anyio
    async def test_no_balance_still_valid_key(self, make_service):
        fake = FakeProvider([httpx.Response(402, json={"detail": "no credits"})])
        result = await make_service(fake).check_credential("stability", VALID_KEY)
        assert result.valid

    @pytest.mark.anyio
    async def test_provider_outage_is_not_an_invalid_key(self, make_service):
        fake = FakeProvider([httpx.Response(503, text="down")])
        with pytest.raises(UpstreamError):
            await make_service(fake).check_credential("zhipu", VALID_KEY)

    @pytest.mark.anyio
    async def test_unverifiable_provider(self, make_service):
        fake = FakeProvider()
        result = await make_service(fake).check_credential("fal", VALID_KEY)
        assert (result.valid, result.verified) == (True, False)
        assert result.message == "Key format accepted"
        assert fake.requests == []

    @pytest.mark.anyio
    async def test_short_key_without_network(self, make_service):
        fake = FakeProvider()
        result = await make_service(fake).check_credential("replicate", "short")
        assert not result.valid
        assert fake.requests == []

    @pytest.mark.anyio
    async def test_keyless_provider(self, make_service):
        result = await make_service(FakeProvider()).check_credential("pollinations", "")
        assert result.valid and not result.verified

    @pytest.mark.anyio
    async def test_unknown_provider(self, make_service):
        with pytest.raises(ValidationError):
            await make_service(FakeProvider()).check_credential("nope", VALID_KEY)

    @pytest.mark.anyio
    async def test_openai_key_check_goes_through_sdk(self, make_service):
        fake = FakeProvider([httpx.Response(200, json={"object": "list", "data": []})])
        result = await make_service(fake).check_credential("openai", VALID_KEY)
        assert result.valid and result.verified
        assert fake.requests[0].url.path == "/v1/models"
        assert fake.requests[0].headers["authorization"] == f"Bearer {VALID_KEY}"
