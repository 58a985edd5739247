"""
Two-tier page fetcher for public job URLs.

Strategy:
  1. direct  - httpx GET with browser-like headers (fast, low overhead).
  2. browser - headless Chromium via Playwright, for bot walls, TLS
     fingerprinting and JavaScript challenges.

Tiers are plain async functions tried in order; the first that returns wins.
The result is compressed for LLM consumption (see text_cleaner).
"""

import asyncio
import os
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from job_import_ai.config import PipelineConfig
from job_import_ai.services.text_cleaner import compress_for_llm
from job_import_ai.utils.logger import get_logger

logger = get_logger(__name__)

MIN_DIRECT_HTML_LENGTH = 500
MIN_BROWSER_HTML_LENGTH = 200
SETTLE_SECONDS = 1.0
CONSENT_SETTLE_SECONDS = 0.5

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Ch-Ua": '"Chromium";v="131", "Not_A Brand";v="24"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"macOS"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

HTML_CONTENT_TYPES = ("text/html", "text/plain", "application/xhtml")

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
]

HIDE_WEBDRIVER_SCRIPT = "Object.defineProperty(navigator, 'webdriver', { get: () => false });"

# Clicks the first consent button whose text contains one of the patterns
CLICK_CONSENT_SCRIPT = """
(patterns) => {
  const buttons = Array.from(document.querySelectorAll(
    "button, a[role='button'], [class*='consent'] button, [class*='cookie'] button"
  ));
  for (const btn of buttons) {
    const text = (btn.textContent || "").trim();
    if (patterns.some((p) => text.includes(p))) {
      btn.click();
      return true;
    }
  }
  return false;
}
"""


class HtmlFetchError(Exception):
    """A page could not be fetched; status_code is the HTTP status when one was seen."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


FetchStrategy = Callable[[str, PipelineConfig], Awaitable[str]]


def looks_like_bot_challenge(html: str, markers: Sequence[str]) -> bool:
    """Heuristic: detect Akamai / Cloudflare / DataDome challenge pages."""
    lower = html.lower()
    return any(marker.lower() in lower for marker in markers)


# ---------------------------------------------------------------------------
# Tier 1: direct HTTP
# ---------------------------------------------------------------------------


async def fetch_direct(
    url: str,
    config: PipelineConfig,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    GET the page with desktop browser headers. Raises HtmlFetchError for
    non-2xx responses, non-HTML content, near-empty bodies and bot challenges.
    """
    if client is None:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=config.direct_fetch_timeout_seconds,
        ) as own_client:
            return await fetch_direct(url, config, own_client)

    try:
        # httpx timeouts apply per read; wait_for caps the whole download
        response = await asyncio.wait_for(
            client.get(url, headers=BROWSER_HEADERS, follow_redirects=True),
            config.direct_fetch_timeout_seconds,
        )
    except asyncio.TimeoutError as e:
        raise HtmlFetchError(
            f"Request to {url} took longer than {config.direct_fetch_timeout_seconds}s"
        ) from e
    except httpx.HTTPError as e:
        raise HtmlFetchError(f"Request to {url} failed: {e!r}") from e

    if not response.is_success:
        raise HtmlFetchError(f"HTTP {response.status_code} from {url}", response.status_code)

    content_type = response.headers.get("content-type", "")
    if not any(t in content_type for t in HTML_CONTENT_TYPES):
        raise HtmlFetchError(
            f'Unexpected content type "{content_type}" for {url}', response.status_code
        )

    html = response.text
    if len(html) < MIN_DIRECT_HTML_LENGTH:
        raise HtmlFetchError(f"Response from {url} is only {len(html)} chars", response.status_code)
    if looks_like_bot_challenge(html, config.bot_challenge_markers):
        raise HtmlFetchError(f"Bot challenge page served for {url}", response.status_code)
    return html


# ---------------------------------------------------------------------------
# Tier 2: headless browser
# ---------------------------------------------------------------------------


def resolve_chrome_path(config: PipelineConfig) -> Optional[str]:
    """Configured path, then well-known install paths, else None for Playwright's own Chromium."""
    if config.chrome_executable_path and os.path.exists(config.chrome_executable_path):
        return config.chrome_executable_path
    for candidate in config.chrome_candidates:
        if os.path.exists(candidate):
            return candidate
    return None


async def dismiss_cookie_consent(page: Page, patterns: Sequence[str]) -> bool:
    """Best-effort click on a cookie banner's accept button. Never raises."""
    try:
        clicked = await page.evaluate(CLICK_CONSENT_SCRIPT, list(patterns))
    except PlaywrightError as e:
        logger.debug("Cookie consent handling failed: %s", e)
        return False
    if clicked:
        logger.debug("Cookie consent dismissed")
        await asyncio.sleep(CONSENT_SETTLE_SECONDS)
    return bool(clicked)


async def fetch_with_browser(url: str, config: PipelineConfig) -> str:
    """Render the page in headless Chromium and return its HTML."""
    executable_path = resolve_chrome_path(config)
    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch(
                headless=True,
                executable_path=executable_path,
                args=BROWSER_ARGS,
            )
        except PlaywrightError as e:
            raise HtmlFetchError(f"Could not launch headless browser: {e}") from e

        try:
            context = await browser.new_context(
                user_agent=BROWSER_HEADERS["User-Agent"],
                extra_http_headers={"Accept-Language": BROWSER_HEADERS["Accept-Language"]},
            )
            await context.add_init_script(HIDE_WEBDRIVER_SCRIPT)
            page = await context.new_page()

            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=config.browser_timeout_seconds * 1000,
            )
            await dismiss_cookie_consent(page, config.cookie_consent_patterns)
            await asyncio.sleep(SETTLE_SECONDS)

            html = await page.content()
        except PlaywrightError as e:
            raise HtmlFetchError(f"Headless browser failed for {url}: {e}") from e
        finally:
            await browser.close()

    if not html or len(html) < MIN_BROWSER_HTML_LENGTH:
        status = response.status if response is not None else None
        raise HtmlFetchError(f"Headless browser returned an empty page for {url}", status)
    return html


DEFAULT_STRATEGIES: Tuple[Tuple[str, FetchStrategy], ...] = (
    ("direct", fetch_direct),
    ("browser", fetch_with_browser),
)


async def fetch_html(
    url: str,
    config: Optional[PipelineConfig] = None,
    strategies: Optional[Sequence[Tuple[str, FetchStrategy]]] = None,
) -> str:
    """
    Fetch a job page and return it compressed for the LLM.
    Tiers are tried in order; raises HtmlFetchError summarising every attempt
    when all of them fail.
    """
    config = config or PipelineConfig.from_env()
    failures: List[str] = []
    status_code: Optional[int] = None

    for name, strategy in strategies or DEFAULT_STRATEGIES:
        try:
            html = await strategy(url, config)
        except HtmlFetchError as e:
            logger.warning("%s fetch failed for %s: %s", name, url, e)
            failures.append(f"{name}: {e}")
            if e.status_code is not None:
                status_code = e.status_code
            continue
        except Exception as e:
            logger.exception("Unexpected error in %s fetch for %s", name, url)
            failures.append(f"{name}: {e!r}")
            continue

        logger.info("Fetched %s via %s (%s chars)", url, name, len(html))
        return compress_for_llm(html, config.max_html_length)

    raise HtmlFetchError(
        f"Failed to fetch {url} ({'; '.join(failures) or 'no fetch strategies configured'}).",
        status_code,
    )
