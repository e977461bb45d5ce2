import json
import time

import httpx
import pytest

from bumpkit.config import LLMConfig
from bumpkit.context import Context
from bumpkit.exceptions import BumpkitTimeoutError, LLMError, LLMStatusError
from bumpkit.functions import GENERATE_COMMIT_MESSAGE, default_function_specs
from bumpkit.providers.openai_driver import OpenAICompatibleDriver


def _ok(content="feat(core): add x", headers=None):
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    return httpx.Response(200, json=body, headers=headers or {})


def _driver(handler, **cfg):
    config = LLMConfig(
        base_url=cfg.pop("base_url", "http://llm.test/v1/"),
        api_key=cfg.pop("api_key", ""),
        api_key_env=cfg.pop("api_key_env", ""),
        **cfg,
    )
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return OpenAICompatibleDriver(config, client=client)


def _spec():
    return next(s for s in default_function_specs() if s.name == GENERATE_COMMIT_MESSAGE)


def test_request_shape_and_endpoint():
    seen = []

    def handler(request):
        seen.append(request)
        return _ok()

    driver = _driver(handler, model="llama3.1:latest")
    out = driver.generate("sys", "usr", [_spec()], Context())

    assert out == "feat(core): add x"
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "http://llm.test/v1/chat/completions"
    body = json.loads(request.content)
    assert body["model"] == "llama3.1:latest"
    assert body["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "usr"},
    ]
    assert body["tool_choice"] == "auto"
    assert body["tools"][0]["type"] == "function"
    assert body["tools"][0]["function"]["name"] == GENERATE_COMMIT_MESSAGE


def test_authorization_only_with_token(monkeypatch):
    seen = []

    def handler(request):
        seen.append(request)
        return _ok()

    _driver(handler).generate("s", "u", [], Context())
    assert "authorization" not in seen[-1].headers

    _driver(handler, api_key="sk-abc").generate("s", "u", [], Context())
    assert seen[-1].headers["authorization"] == "Bearer sk-abc"

    monkeypatch.setenv("MY_KEY", "sk-env")
    _driver(handler, api_key_env="MY_KEY").generate("s", "u", [], Context())
    assert seen[-1].headers["authorization"] == "Bearer sk-env"


def test_tool_call_arguments_returned():
    def handler(request):
        body = {
            "choices": [
                {
                    "message": {
                        "tool_calls": [
                            {"function": {"name": "f", "arguments": '{"message": "fix: x"}'}}
                        ]
                    }
                }
            ]
        }
        return httpx.Response(200, json=body)

    assert _driver(handler).generate("s", "u", [], Context()) == '{"message": "fix: x"}'


def test_rate_limit_headers_update_budget():
    def handler(request):
        return _ok(
            headers={
                "x-ratelimit-remaining-tokens": "1234",
                "x-ratelimit-remaining-requests": "9",
                "x-ratelimit-reset-tokens": "6m0s",
                "x-ratelimit-reset-requests": "1s",
            }
        )

    driver = _driver(handler)
    driver.generate("s", "u", [], Context())
    assert driver.budget.remaining_tokens == 1234
    assert driver.budget.remaining_requests == 9
    # A second driver on the same endpoint sees the same accounting.
    assert _driver(handler).budget.remaining_tokens == 1234


@pytest.mark.parametrize("retry_after", [1, 2])
def test_429_retry_after_is_obeyed_in_real_time(retry_after):
    stamps = []

    def handler(request):
        stamps.append(time.monotonic())
        if len(stamps) == 1:
            return httpx.Response(
                429, headers={"Retry-After": str(retry_after)}, text="slow down"
            )
        return _ok()

    out = _driver(handler).generate("s", "u", [], Context())

    assert out == "feat(core): add x"
    assert len(stamps) == 2
    assert stamps[1] - stamps[0] >= retry_after


def test_429_waits_use_header_then_default(monkeypatch):
    answers = [
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(429),
        _ok(),
    ]
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return answers.pop(0)

    waits = []
    ctx = Context()
    monkeypatch.setattr(ctx, "sleep", lambda seconds, operation="wait": waits.append(seconds))

    assert _driver(handler).generate("s", "u", [], ctx) == "feat(core): add x"
    assert waits == [2.0, 5.0]
    # The same request is replayed.
    assert bodies[0] == bodies[1] == bodies[2]


def test_non_success_status_raises_status_error():
    def handler(request):
        return httpx.Response(500, text="upstream exploded")

    with pytest.raises(LLMStatusError) as ei:
        _driver(handler).generate("s", "u", [], Context())
    assert ei.value.status_code == 500
    assert ei.value.body == "upstream exploded"


def test_invalid_json_raises():
    def handler(request):
        return httpx.Response(200, text="<html>")

    with pytest.raises(LLMError) as ei:
        _driver(handler).generate("s", "u", [], Context())
    assert "invalid response format" in str(ei.value)


def test_error_field_surfaces_as_status_error():
    def handler(request):
        return httpx.Response(200, json={"error": {"message": "model not found"}})

    with pytest.raises(LLMStatusError) as ei:
        _driver(handler).generate("s", "u", [], Context())
    assert "model not found" in str(ei.value)


def test_no_choices_raises():
    def handler(request):
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(LLMError) as ei:
        _driver(handler).generate("s", "u", [], Context())
    assert "no choices" in str(ei.value)


def test_transport_failure_wraps_cause():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LLMError) as ei:
        _driver(handler).generate("s", "u", [], Context())
    assert isinstance(ei.value.__cause__, httpx.ConnectError)
    assert "connection refused" in str(ei.value)


def test_httpx_timeout_becomes_timeout_error():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(BumpkitTimeoutError):
        _driver(handler).generate("s", "u", [], Context())


def test_cancelled_context_sends_nothing():
    calls = []

    def handler(request):
        calls.append(request)
        return _ok()

    ctx = Context()
    ctx.cancel()
    with pytest.raises(BumpkitTimeoutError):
        _driver(handler).generate("s", "u", [], ctx)
    assert calls == []


def test_request_timeout_bounded_by_context():
    driver = _driver(lambda request: _ok(), request_timeout=30.0)
    assert driver._timeout(Context()) == 30.0
    assert driver._timeout(Context(timeout=2.0)) <= 2.0
