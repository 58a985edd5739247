"""Service exports."""

from .llm_client import LlmApiError, chat_completion
from .page_fetcher import HtmlFetchError, fetch_html
from .text_cleaner import compress_for_llm
from .url_normalizer import normalize_job_url

__all__ = [
    "fetch_html",
    "HtmlFetchError",
    "compress_for_llm",
    "chat_completion",
    "LlmApiError",
    "normalize_job_url",
]
