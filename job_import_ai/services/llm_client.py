"""
Chat completion client for an OpenAI-compatible endpoint (Groq by default).

Built for free-tier rate limits: retryable statuses back off exponentially
with jitter, and a Retry-After hint from the server stretches the wait.
The SDK's own retries are disabled so the loop below is the only one.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from job_import_ai.config import PipelineConfig
from job_import_ai.utils.helpers import strip_thinking_tokens
from job_import_ai.utils.logger import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

ChatMessage = Dict[str, str]
SleepFn = Callable[[float], Awaitable[Any]]


class LlmApiError(Exception):
    """The LLM API call failed; status_code is None for network-level failures."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def is_retryable(self) -> bool:
        return self.status_code in RETRYABLE_STATUS_CODES


def compute_backoff(attempt: int, base_delay: float, max_jitter: float) -> float:
    """Exponential delay in seconds for the given 0-based attempt, plus random jitter."""
    return base_delay * (2 ** attempt) + random.uniform(0, max_jitter)


def parse_retry_after(header: Optional[str]) -> Optional[float]:
    """Retry-After as positive seconds; HTTP-date and junk values are ignored."""
    if not header:
        return None
    try:
        seconds = float(header)
    except ValueError:
        return None
    if seconds > 0 and seconds != float("inf"):
        return seconds
    return None


def _first_content(completion: Any) -> str:
    choices = getattr(completion, "choices", None) or []
    message = getattr(choices[0], "message", None) if choices else None
    content = getattr(message, "content", None)
    return content if isinstance(content, str) else ""


async def _complete_with_retries(
    client: AsyncOpenAI,
    request: Dict[str, Any],
    config: PipelineConfig,
    max_retries: int,
    sleep: SleepFn,
) -> str:
    for attempt in range(max_retries + 1):
        try:
            # The SDK timeout is per read; wait_for caps the whole call
            completion = await asyncio.wait_for(
                client.chat.completions.create(**request),
                config.llm_timeout_seconds,
            )
        except openai.APIStatusError as e:
            status = e.status_code
            body = e.response.text
            if status in RETRYABLE_STATUS_CODES and attempt < max_retries:
                backoff = compute_backoff(
                    attempt, config.llm_base_delay_seconds, config.llm_max_jitter_seconds
                )
                retry_after = parse_retry_after(e.response.headers.get("retry-after"))
                delay = max(retry_after or 0.0, backoff)
                logger.warning(
                    "LLM API returned %s (attempt %s/%s); retrying in %.2fs",
                    status, attempt + 1, max_retries + 1, delay,
                )
                await sleep(delay)
                continue
            raise LlmApiError(f"LLM API error: HTTP {status}", status, body) from e
        except (openai.APIConnectionError, asyncio.TimeoutError) as e:
            reason = str(e) or f"no response within {config.llm_timeout_seconds}s"
            if attempt < max_retries:
                delay = compute_backoff(
                    attempt, config.llm_base_delay_seconds, config.llm_max_jitter_seconds
                )
                logger.warning(
                    "LLM API request failed (attempt %s/%s): %s; retrying in %.2fs",
                    attempt + 1, max_retries + 1, reason, delay,
                )
                await sleep(delay)
                continue
            raise LlmApiError(
                f"LLM API unreachable after {attempt + 1} attempts: {reason}"
            ) from e
        except openai.APIError as e:
            raise LlmApiError(f"Malformed LLM API response: {e}") from e

        content = strip_thinking_tokens(_first_content(completion))
        if not content:
            raise LlmApiError("LLM returned an empty response.", 200)
        return content

    # range() always runs at least once and every path above returns or raises
    raise LlmApiError("LLM chat completion failed after retries.")


async def chat_completion(
    messages: List[ChatMessage],
    config: Optional[PipelineConfig] = None,
    *,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    max_retries: Optional[int] = None,
    client: Optional[AsyncOpenAI] = None,
    sleep: SleepFn = asyncio.sleep,
) -> str:
    """
    Send messages and return the model's raw text output (expected to be JSON).
    Raises LlmApiError for non-retryable statuses, empty output, or once
    retries are exhausted.
    """
    config = config or PipelineConfig.from_env()
    max_retries = config.llm_max_retries if max_retries is None else max(0, max_retries)
    max_tokens = config.llm_max_tokens if max_tokens is None else max_tokens

    request: Dict[str, Any] = {
        "model": model or config.llm_model,
        "messages": messages,
        "temperature": config.llm_temperature if temperature is None else temperature,
        "response_format": {"type": "json_object"},
    }
    if max_tokens:
        request["max_tokens"] = max_tokens

    if client is not None:
        return await _complete_with_retries(client, request, config, max_retries, sleep)

    if not config.groq_api_key:
        raise LlmApiError("GROQ_API_KEY is not set; cannot call the LLM API.")

    async with AsyncOpenAI(
        api_key=config.groq_api_key,
        base_url=config.llm_base_url,
        timeout=config.llm_timeout_seconds,
        max_retries=0,
    ) as own_client:
        return await _complete_with_retries(own_client, request, config, max_retries, sleep)
