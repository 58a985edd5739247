"""Utility exports."""

from .helpers import is_absolute_url, is_http_url, parse_llm_json, strip_code_fences, strip_thinking_tokens
from .logger import get_logger

__all__ = [
    "get_logger",
    "is_absolute_url",
    "is_http_url",
    "parse_llm_json",
    "strip_code_fences",
    "strip_thinking_tokens",
]
