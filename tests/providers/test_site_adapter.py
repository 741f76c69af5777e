import asyncio
import logging

import httpx
import pytest

from apihub.core.config import AppConfig
from apihub.core.exceptions import ErrorCode
from apihub.providers.base import AccountInfo, SiteCredential
from apihub.providers.site_adapter import SiteAdapter

BASE_URL = "https://x.test"
USER_URL = f"{BASE_URL}/api/user/self"
TOKENS_URL = f"{BASE_URL}/api/token/?p=0&size=10"
CHECK_IN_URL = f"{BASE_URL}/api/user/check_in"

USER_PAYLOAD = {
    "success": True,
    "message": "",
    "data": {
        "id": 7,
        "username": "u",
        "display_name": "U",
        "quota": 100,
        "used_quota": 10,
        "request_count": 3,
        "group": "default",
    },
}

TOKENS_PAYLOAD = {
    "success": True,
    "data": {
        "items": [
            {
                "id": 1,
                "user_id": 7,
                "key": "sk-one",
                "name": "one",
                "status": 1,
                "created_time": 1,
                "accessed_time": 2,
                "expired_time": -1,
                "remain_quota": 10,
                "unlimited_quota": True,
                "used_quota": 0,
            }
        ],
        "total": 1,
    },
}


def _stub_async_client(routes, recorder):
    class _DummyAsyncClient:
        def __init__(self, *args, **kwargs) -> None:
            recorder.setdefault("timeouts", []).append(kwargs.get("timeout"))

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def get(self, url, headers=None):
            return await self._dispatch("GET", url, headers)

        async def post(self, url, headers=None):
            return await self._dispatch("POST", url, headers)

        async def _dispatch(self, method, url, headers):
            recorder.setdefault("calls", []).append(
                {"method": method, "url": url, "headers": headers}
            )
            outcome = routes[url]
            if callable(outcome):
                outcome = await outcome()
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

    return _DummyAsyncClient


@pytest.fixture
def credential() -> SiteCredential:
    return SiteCredential(
        base_url=BASE_URL, access_token="tok", remote_user_id=7, variant="new-api", name="x"
    )


def _adapter(routes, recorder, timeout: float = 5.0) -> SiteAdapter:
    return SiteAdapter(timeout, client_factory=_stub_async_client(routes, recorder))


@pytest.mark.asyncio
async def test_fetch_account_info_end_to_end(credential):
    recorder: dict = {}
    adapter = _adapter({USER_URL: httpx.Response(200, json=USER_PAYLOAD)}, recorder)

    account = await adapter.fetch_account_info(credential)

    assert account == AccountInfo(
        remote_id=7,
        username="u",
        display_name="U",
        quota_total=100,
        quota_used=10,
        request_count=3,
        group="default",
    )
    call = recorder["calls"][0]
    assert call["method"] == "GET"
    assert call["url"] == USER_URL
    assert call["headers"]["Authorization"] == "Bearer tok"
    assert call["headers"]["new-api-user"] == "7"
    assert recorder["timeouts"] == [5.0]


@pytest.mark.asyncio
async def test_fetch_account_info_unsuccessful_returns_none(credential):
    adapter = _adapter(
        {USER_URL: httpx.Response(200, json={"success": False, "message": "bad token"})}, {}
    )

    assert await adapter.fetch_account_info(credential) is None


@pytest.mark.asyncio
async def test_fetch_account_info_http_error_returns_none(credential, caplog):
    adapter = _adapter({USER_URL: httpx.Response(401, json={"message": "unauthorized"})}, {})

    with caplog.at_level(logging.WARNING, logger="apihub.sites"):
        assert await adapter.fetch_account_info(credential) is None

    record = next(r for r in caplog.records if r.getMessage() == "Site response not OK")
    assert record.site == "x"
    assert record.operation == "account_info"
    assert record.status_code == 401


@pytest.mark.asyncio
async def test_validate_true_on_success(credential):
    adapter = _adapter({USER_URL: httpx.Response(200, json=USER_PAYLOAD)}, {})

    assert await adapter.validate(credential) is True


@pytest.mark.asyncio
async def test_validate_false_on_connection_error(credential):
    adapter = _adapter({USER_URL: httpx.ConnectError("Connection refused")}, {})

    assert await adapter.validate(credential) is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"success": False}),
        httpx.Response(200, json=["unexpected"]),
        httpx.Response(200, text="<html>maintenance</html>"),
        httpx.Response(502, text="Bad Gateway"),
    ],
    ids=["unsuccessful", "non-object", "not-json", "bad-gateway"],
)
async def test_validate_fails_closed(credential, response):
    adapter = _adapter({USER_URL: response}, {})

    assert await adapter.validate(credential) is False


@pytest.mark.asyncio
async def test_validate_false_on_timeout(credential):
    adapter = _adapter({USER_URL: httpx.ReadTimeout("timed out")}, {})

    assert await adapter.validate(credential) is False


@pytest.mark.asyncio
async def test_list_api_keys_success(credential):
    recorder: dict = {}
    adapter = _adapter({TOKENS_URL: httpx.Response(200, json=TOKENS_PAYLOAD)}, recorder)

    keys = await adapter.list_api_keys(credential)

    assert [key.secret_value for key in keys] == ["sk-one"]
    assert keys[0].unlimited_quota is True
    assert recorder["calls"][0]["url"] == TOKENS_URL


@pytest.mark.asyncio
async def test_list_api_keys_unrecognized_envelope_is_empty(credential):
    adapter = _adapter(
        {TOKENS_URL: httpx.Response(200, json={"success": True, "data": {"list": []}})}, {}
    )

    assert await adapter.list_api_keys(credential) == []


@pytest.mark.asyncio
async def test_list_api_keys_transport_error_is_empty(credential):
    adapter = _adapter({TOKENS_URL: httpx.ConnectTimeout("connect timeout")}, {})

    assert await adapter.list_api_keys(credential) == []


@pytest.mark.asyncio
async def test_check_in_posts_to_variant_path():
    recorder: dict = {}
    credential = SiteCredential(
        base_url=BASE_URL, access_token="tok", remote_user_id=3, variant="voapi"
    )
    url = f"{BASE_URL}/api/user/clock_in"
    adapter = _adapter(
        {url: httpx.Response(200, json={"success": True, "message": "ok"})}, recorder
    )

    outcome = await adapter.check_in(credential)

    assert outcome.succeeded is True
    assert outcome.message == "ok"
    call = recorder["calls"][0]
    assert call["method"] == "POST"
    assert call["headers"]["voapi-user"] == "3"


@pytest.mark.asyncio
async def test_check_in_http_500_fails_with_message(credential):
    adapter = _adapter({CHECK_IN_URL: httpx.Response(500)}, {})

    outcome = await adapter.check_in(credential)

    assert outcome.succeeded is False
    assert outcome.message == "Failed to check in: Internal Server Error"
    assert outcome.error_code is ErrorCode.CHECKIN_FAILED


@pytest.mark.asyncio
async def test_check_in_transport_error_message(credential):
    adapter = _adapter({CHECK_IN_URL: httpx.ConnectError("Name or service not known")}, {})

    outcome = await adapter.check_in(credential)

    assert outcome.succeeded is False
    assert outcome.message == "Name or service not known"


@pytest.mark.asyncio
async def test_check_in_one_hub_sends_no_user_header():
    recorder: dict = {}
    credential = SiteCredential(base_url=BASE_URL, access_token="tok", variant="one-hub")
    adapter = _adapter(
        {CHECK_IN_URL: httpx.Response(200, json={"success": True, "message": "done"})}, recorder
    )

    await adapter.check_in(credential)

    assert set(recorder["calls"][0]["headers"]) == {"Authorization", "Content-Type"}


@pytest.mark.asyncio
async def test_refresh_keeps_account_when_keys_fail(credential):
    adapter = _adapter(
        {
            USER_URL: httpx.Response(200, json=USER_PAYLOAD),
            TOKENS_URL: httpx.ConnectError("Connection refused"),
        },
        {},
    )

    result = await adapter.refresh(credential)

    assert result.account_info is not None
    assert result.account_info.username == "u"
    assert result.api_keys == []


@pytest.mark.asyncio
async def test_refresh_keeps_keys_when_account_fails(credential):
    adapter = _adapter(
        {
            USER_URL: httpx.Response(503),
            TOKENS_URL: httpx.Response(200, json=TOKENS_PAYLOAD),
        },
        {},
    )

    result = await adapter.refresh(credential)

    assert result.account_info is None
    assert len(result.api_keys) == 1


@pytest.mark.asyncio
async def test_refresh_issues_both_queries_concurrently(credential):
    tokens_started = asyncio.Event()

    async def user_response():
        # Only completes if the key listing is already in flight.
        await asyncio.wait_for(tokens_started.wait(), timeout=1)
        return httpx.Response(200, json=USER_PAYLOAD)

    async def tokens_response():
        tokens_started.set()
        return httpx.Response(200, json=TOKENS_PAYLOAD)

    adapter = _adapter({USER_URL: user_response, TOKENS_URL: tokens_response}, {})

    result = await adapter.refresh(credential)

    assert result.account_info is not None
    assert len(result.api_keys) == 1


@pytest.mark.asyncio
async def test_refresh_degrades_unexpected_step_errors(credential, monkeypatch):
    adapter = _adapter({TOKENS_URL: httpx.Response(200, json=TOKENS_PAYLOAD)}, {})

    async def broken(_credential):
        raise RuntimeError("boom")

    monkeypatch.setattr(adapter, "fetch_account_info", broken)

    result = await adapter.refresh(credential)

    assert result.account_info is None
    assert len(result.api_keys) == 1


@pytest.mark.asyncio
async def test_default_transport_is_httpx_async_client(monkeypatch, credential):
    recorder: dict = {}
    monkeypatch.setattr(
        "apihub.providers.site_adapter.httpx.AsyncClient",
        _stub_async_client({USER_URL: httpx.Response(200, json=USER_PAYLOAD)}, recorder),
    )

    adapter = SiteAdapter.from_config(AppConfig.model_validate({"site_adapter": {"timeout_seconds": 2.5}}))

    assert await adapter.validate(credential) is True
    assert recorder["timeouts"] == [2.5]


def _real_client_factory(calls):
    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=USER_PAYLOAD)

    def factory(**kwargs):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    return factory


@pytest.mark.asyncio
async def test_non_ascii_token_fails_closed():
    calls: list = []
    credential = SiteCredential(base_url=BASE_URL, access_token="tök", remote_user_id=1)
    adapter = SiteAdapter(1.0, client_factory=_real_client_factory(calls))

    assert await adapter.validate(credential) is False
    assert await adapter.fetch_account_info(credential) is None
    assert await adapter.list_api_keys(credential) == []

    outcome = await adapter.check_in(credential)
    assert outcome.succeeded is False
    assert outcome.error_code is ErrorCode.CHECKIN_FAILED
    assert outcome.message
    assert calls == []
