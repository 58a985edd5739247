from __future__ import annotations

import json
import os
import sys
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from openai import AsyncOpenAI

sys.path.insert(0, os.path.abspath("."))

from job_import_ai.config import PipelineConfig


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig(groq_api_key="test-key", chrome_candidates=())


class SleepRecorder:
    """Stands in for asyncio.sleep and remembers every requested delay."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_sleep() -> SleepRecorder:
    return SleepRecorder()


def completion_body(content: Optional[str]) -> Dict[str, Any]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 0,
        "model": "test-model",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


def completion_response(content: Optional[str]) -> httpx.Response:
    return httpx.Response(200, json=completion_body(content))


def error_response(status: int, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    return httpx.Response(
        status,
        headers=headers or {},
        json={"error": {"message": f"status {status}", "type": "test"}},
    )


class LlmEndpoint:
    """Scripted chat-completions endpoint: one handler result per call, last one repeats."""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = responses
        self.requests: List[Dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        index = min(len(self.requests), len(self.responses)) - 1
        result = self.responses[index]
        if isinstance(result, Exception):
            raise result
        return result

    def client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key="test-key",
            base_url="https://llm.test/v1",
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self)),
        )


@pytest.fixture
def llm_endpoint() -> Callable[[List[Any]], LlmEndpoint]:
    return LlmEndpoint


JOB_PAGE_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Senior Engineer - Acme &amp; Co</title>
  <meta name="description" content="Join Acme as a Senior Engineer in Vienna.">
  <meta property="og:title" content="Senior Engineer">
  <meta name="viewport" content="width=device-width">
  <script type="application/ld+json">
    {
      "@context": "https://schema.org",
      "@type": "JobPosting",
      "title": "Senior Engineer",
      "hiringOrganization": {"name": "Acme"}
    }
  </script>
  <style>body { color: red; }</style>
</head>
<body>
  <header>Site header</header>
  <nav>Home | Jobs | About</nav>
  <main>
    <h1>Senior Engineer</h1>
    <p>We are looking for a Senior Engineer to build our ingestion platform.</p>
    <p>You will design services, review code and mentor the team.</p>
    <!-- tracking pixel -->
    <script>window.dataLayer = [];</script>
  </main>
  <footer>Copyright Acme</footer>
</body>
</html>
"""


@pytest.fixture
def job_page_html() -> str:
    # Padded so the direct fetch accepts it as a real page
    return JOB_PAGE_HTML.replace("</main>", "<p>" + "Benefits and perks. " * 30 + "</p></main>")
