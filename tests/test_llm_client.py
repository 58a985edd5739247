import asyncio
import time

import httpx
import pytest
from openai import AsyncOpenAI

from conftest import completion_response, error_response
from job_import_ai.services.llm_client import (
    LlmApiError,
    chat_completion,
    compute_backoff,
    parse_retry_after,
)

MESSAGES = [
    {"role": "system", "content": "Extract."},
    {"role": "user", "content": "page"},
]
VALID_JSON = '{"job_title": "Engineer"}'


@pytest.mark.asyncio
async def test_request_enforces_json_output_and_defaults(config, llm_endpoint, fake_sleep):
    endpoint = llm_endpoint([completion_response(VALID_JSON)])

    content = await chat_completion(MESSAGES, config, client=endpoint.client(), sleep=fake_sleep)

    assert content == VALID_JSON
    body = endpoint.requests[0]
    assert body["model"] == config.llm_model
    assert body["messages"] == MESSAGES
    assert body["temperature"] == 0
    assert body["response_format"] == {"type": "json_object"}
    assert "max_tokens" not in body
    assert fake_sleep.delays == []


@pytest.mark.asyncio
async def test_options_override_config(config, llm_endpoint, fake_sleep):
    endpoint = llm_endpoint([completion_response(VALID_JSON)])

    await chat_completion(
        MESSAGES,
        config,
        model="other-model",
        temperature=0.3,
        max_tokens=512,
        client=endpoint.client(),
        sleep=fake_sleep,
    )

    body = endpoint.requests[0]
    assert body["model"] == "other-model"
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 512


@pytest.mark.asyncio
async def test_retry_after_hint_is_honoured(config, llm_endpoint, fake_sleep):
    endpoint = llm_endpoint(
        [
            error_response(429, {"retry-after": "1"}),
            completion_response('{"job_title": "Second"}'),
        ]
    )

    content = await chat_completion(MESSAGES, config, client=endpoint.client(), sleep=fake_sleep)

    assert content == '{"job_title": "Second"}'
    assert len(endpoint.requests) == 2
    assert len(fake_sleep.delays) == 1
    assert fake_sleep.delays[0] >= 1.0


@pytest.mark.asyncio
async def test_long_retry_after_overrides_backoff(config, llm_endpoint, fake_sleep):
    endpoint = llm_endpoint([error_response(429, {"retry-after": "5"}), completion_response(VALID_JSON)])

    await chat_completion(MESSAGES, config, client=endpoint.client(), sleep=fake_sleep)

    assert fake_sleep.delays == [5.0]


@pytest.mark.asyncio
async def test_backoff_grows_exponentially_without_hint(config, llm_endpoint, fake_sleep):
    endpoint = llm_endpoint(
        [error_response(503), error_response(502), error_response(500), completion_response(VALID_JSON)]
    )

    await chat_completion(MESSAGES, config, client=endpoint.client(), sleep=fake_sleep)

    base, jitter = config.llm_base_delay_seconds, config.llm_max_jitter_seconds
    assert len(fake_sleep.delays) == 3
    for attempt, delay in enumerate(fake_sleep.delays):
        assert base * 2 ** attempt <= delay <= base * 2 ** attempt + jitter


@pytest.mark.asyncio
async def test_rate_limit_on_every_attempt_surfaces_429(config, llm_endpoint, fake_sleep):
    endpoint = llm_endpoint([error_response(429, {"retry-after": "2"})])

    with pytest.raises(LlmApiError) as exc_info:
        await chat_completion(MESSAGES, config, client=endpoint.client(), sleep=fake_sleep)

    error = exc_info.value
    assert error.status_code == 429
    assert error.is_rate_limited
    assert error.is_retryable
    assert "status 429" in error.response_body
    assert len(endpoint.requests) == config.llm_max_retries + 1
    assert len(fake_sleep.delays) == config.llm_max_retries


@pytest.mark.asyncio
async def test_max_retries_option_bounds_attempts(config, llm_endpoint, fake_sleep):
    endpoint = llm_endpoint([error_response(504)])

    with pytest.raises(LlmApiError):
        await chat_completion(MESSAGES, config, max_retries=1, client=endpoint.client(), sleep=fake_sleep)

    assert len(endpoint.requests) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 404, 422])
async def test_non_retryable_status_fails_immediately(config, llm_endpoint, fake_sleep, status):
    endpoint = llm_endpoint([error_response(status), completion_response(VALID_JSON)])

    with pytest.raises(LlmApiError) as exc_info:
        await chat_completion(MESSAGES, config, client=endpoint.client(), sleep=fake_sleep)

    assert exc_info.value.status_code == status
    assert not exc_info.value.is_retryable
    assert len(endpoint.requests) == 1
    assert fake_sleep.delays == []


@pytest.mark.asyncio
async def test_network_errors_are_retried_then_surfaced(config, llm_endpoint, fake_sleep):
    endpoint = llm_endpoint([httpx.ConnectError("connection refused")])

    with pytest.raises(LlmApiError) as exc_info:
        await chat_completion(MESSAGES, config, client=endpoint.client(), sleep=fake_sleep)

    assert exc_info.value.status_code is None
    assert exc_info.value.__cause__ is not None
    assert len(endpoint.requests) == config.llm_max_retries + 1
    assert len(fake_sleep.delays) == config.llm_max_retries


@pytest.mark.asyncio
async def test_network_error_then_success(config, llm_endpoint, fake_sleep):
    endpoint = llm_endpoint([httpx.ReadTimeout("slow"), completion_response(VALID_JSON)])

    assert await chat_completion(MESSAGES, config, client=endpoint.client(), sleep=fake_sleep) == VALID_JSON
    assert len(fake_sleep.delays) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", None, "<think>only reasoning</think>"])
async def test_empty_content_is_an_error_without_retry(config, llm_endpoint, fake_sleep, content):
    endpoint = llm_endpoint([completion_response(content), completion_response(VALID_JSON)])

    with pytest.raises(LlmApiError, match="empty") as exc_info:
        await chat_completion(MESSAGES, config, client=endpoint.client(), sleep=fake_sleep)

    assert exc_info.value.status_code == 200
    assert len(endpoint.requests) == 1


@pytest.mark.asyncio
async def test_thinking_tokens_are_stripped(config, llm_endpoint, fake_sleep):
    raw = "<think>The page is a job posting.</think>\n" + VALID_JSON + "<|think|>done<|/think|>"
    endpoint = llm_endpoint([completion_response(raw)])

    assert await chat_completion(MESSAGES, config, client=endpoint.client(), sleep=fake_sleep) == VALID_JSON


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_any_request(config):
    no_key = config.model_copy(update={"groq_api_key": ""})

    with pytest.raises(LlmApiError, match="GROQ_API_KEY"):
        await chat_completion(MESSAGES, no_key)


@pytest.mark.parametrize(
    "header, expected",
    [("3", 3.0), ("0.5", 0.5), ("0", None), ("-1", None), ("soon", None), ("", None), (None, None),
     ("Wed, 21 Oct 2015 07:28:00 GMT", None), ("nan", None)],
)
def test_parse_retry_after(header, expected):
    assert parse_retry_after(header) == expected


def test_backoff_jitter_is_bounded():
    for attempt in range(4):
        delay = compute_backoff(attempt, 1.5, 0.5)
        assert 1.5 * 2 ** attempt <= delay <= 1.5 * 2 ** attempt + 0.5


class SlowEndpoint:
    """Answers only after `delay` seconds for the first `slow_calls` requests."""

    def __init__(self, delay: float, slow_calls: int) -> None:
        self.delay = delay
        self.slow_calls = slow_calls
        self.calls = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.calls <= self.slow_calls:
            await asyncio.sleep(self.delay)
        return completion_response(VALID_JSON)

    def client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key="test-key",
            base_url="https://llm.test/v1",
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self)),
        )


@pytest.mark.asyncio
async def test_slow_call_is_cut_off_and_retried(config, fake_sleep):
    endpoint = SlowEndpoint(delay=5.0, slow_calls=1)
    fast_timeout = config.model_copy(update={"llm_timeout_seconds": 0.05})

    started = time.monotonic()
    content = await chat_completion(MESSAGES, fast_timeout, client=endpoint.client(), sleep=fake_sleep)

    assert content == VALID_JSON
    assert time.monotonic() - started < 2.0
    assert endpoint.calls == 2
    assert len(fake_sleep.delays) == 1


@pytest.mark.asyncio
async def test_call_that_never_finishes_in_time_fails_without_status(config, fake_sleep):
    endpoint = SlowEndpoint(delay=5.0, slow_calls=10)
    fast_timeout = config.model_copy(update={"llm_timeout_seconds": 0.05})

    started = time.monotonic()
    with pytest.raises(LlmApiError, match="no response within") as exc_info:
        await chat_completion(MESSAGES, fast_timeout, max_retries=1, client=endpoint.client(), sleep=fake_sleep)

    assert time.monotonic() - started < 2.0
    assert exc_info.value.status_code is None
    assert isinstance(exc_info.value.__cause__, asyncio.TimeoutError)
    assert endpoint.calls == 2
