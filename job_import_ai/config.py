"""Configuration loaded from environment variables."""

import os
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# Load .env: try package dir then project root
_base = Path(__file__).resolve().parent
for _env_path in (_base / ".env", _base.parent / ".env"):
    if load_dotenv(_env_path):
        break
load_dotenv()  # also allow process env

# API keys – never hardcode
GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")

# LLM settings (Groq exposes an OpenAI-compatible endpoint)
LLM_BASE_URL: str = os.getenv("LLM_BASE_URL", "https://api.groq.com/openai/v1")
LLM_MODEL: str = os.getenv("LLM_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct")
LLM_TEMPERATURE: float = 0.0
LLM_MAX_RETRIES: int = int(os.getenv("LLM_MAX_RETRIES", "3"))
LLM_BASE_DELAY_SECONDS: float = 1.5
LLM_MAX_JITTER_SECONDS: float = 0.5
LLM_TIMEOUT_SECONDS: float = 60.0

# HTTP / fetch settings
DIRECT_FETCH_TIMEOUT_SECONDS: float = 12.0
BROWSER_TIMEOUT_SECONDS: float = 30.0

# Llama 4 Scout on the Groq free tier allows 30,000 tokens per minute:
# ~600 system prompt + ~20,000 page content (60,000 chars) + ~80 user template,
# which leaves ~9,300 tokens for the model output.
MAX_HTML_LENGTH: int = 60_000

# Headless browser executable; PUPPETEER_EXECUTABLE_PATH is what existing Docker images set
CHROME_EXECUTABLE_PATH: str = os.getenv("CHROME_EXECUTABLE_PATH") or os.getenv(
    "PUPPETEER_EXECUTABLE_PATH", ""
)

# Well-known Chrome paths on macOS / Linux, checked in order
CHROME_CANDIDATES: Tuple[str, ...] = (
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/usr/bin/google-chrome-stable",
    "/usr/bin/google-chrome",
    "/usr/bin/chromium-browser",
    "/usr/bin/chromium",
)

# Substrings of Akamai / Cloudflare / DataDome interstitials (matched lowercase).
# Extend here; the fetcher reads this list only through PipelineConfig.
BOT_CHALLENGE_MARKERS: Tuple[str, ...] = (
    "/_sec/cp_challenge",
    "cf-browser-verification",
    "challenge-platform",
    "just a moment",
    "checking your browser",
    "access denied",
    "datadome",
)

# Visible button texts of cookie banners (common on EU job portals)
COOKIE_CONSENT_PATTERNS: Tuple[str, ...] = (
    "Alles akzeptieren",
    "Alle akzeptieren",
    "Alle Cookies akzeptieren",
    "Accept all",
    "Accept All",
    "Accept all cookies",
    "Akzeptieren",
    "Zustimmen",
    "Agree",
    "I agree",
    "Allow all",
    "Tout accepter",
)

# Where the Streamlit app keeps imported jobs
JOB_STORE_PATH: str = os.getenv("JOB_STORE_PATH", str(_base.parent / "data" / "jobs.json"))


class PipelineConfig(BaseModel):
    """Settings handed to every pipeline component instead of reading the environment."""

    model_config = ConfigDict(frozen=True)

    groq_api_key: str = ""
    llm_base_url: str = LLM_BASE_URL
    llm_model: str = LLM_MODEL
    llm_temperature: float = LLM_TEMPERATURE
    llm_max_tokens: Optional[int] = None
    llm_max_retries: int = LLM_MAX_RETRIES
    llm_base_delay_seconds: float = LLM_BASE_DELAY_SECONDS
    llm_max_jitter_seconds: float = LLM_MAX_JITTER_SECONDS
    llm_timeout_seconds: float = LLM_TIMEOUT_SECONDS

    direct_fetch_timeout_seconds: float = DIRECT_FETCH_TIMEOUT_SECONDS
    browser_timeout_seconds: float = BROWSER_TIMEOUT_SECONDS
    max_html_length: int = MAX_HTML_LENGTH

    chrome_executable_path: str = ""
    chrome_candidates: Tuple[str, ...] = CHROME_CANDIDATES
    bot_challenge_markers: Tuple[str, ...] = BOT_CHALLENGE_MARKERS
    cookie_consent_patterns: Tuple[str, ...] = COOKIE_CONSENT_PATTERNS

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build the config from the module-level settings above."""
        return cls(
            groq_api_key=GROQ_API_KEY,
            chrome_executable_path=CHROME_EXECUTABLE_PATH,
        )
