"""Helper utilities for the job import pipeline."""

import json
import re
from typing import Any
from urllib.parse import urlsplit

_THINK_BLOCKS = (
    re.compile(r"<think>[\s\S]*?</think>"),
    re.compile(r"<\|think\|>[\s\S]*?<\|/think\|>"),
)


def strip_code_fences(text: str) -> str:
    """Remove an optional markdown code block around an LLM answer."""
    raw = (text or "").strip()
    if raw.startswith("```"):
        raw = re.sub(r"^```(?:json)?\s*", "", raw)
        raw = re.sub(r"\s*```$", "", raw)
    return raw


def strip_thinking_tokens(text: str) -> str:
    """Drop reasoning blocks some models emit before the actual payload."""
    for pattern in _THINK_BLOCKS:
        text = pattern.sub("", text)
    return text.strip()


def parse_llm_json(text: str) -> Any:
    """
    Parse JSON from an LLM response, stripping markdown code blocks if present.
    Raises json.JSONDecodeError when the payload is not JSON.
    """
    return json.loads(strip_code_fences(text))


def is_absolute_url(url: str) -> bool:
    """True when url has both a scheme and a host."""
    try:
        parts = urlsplit(url)
        return bool(parts.scheme and parts.hostname)
    except ValueError:
        return False


def is_http_url(url: str) -> bool:
    """True for absolute http:// or https:// URLs."""
    return is_absolute_url(url) and urlsplit(url).scheme.lower() in ("http", "https")
