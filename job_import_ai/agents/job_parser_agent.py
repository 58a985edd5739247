"""Job Parser Agent: normalize URL, fetch page, LLM extraction, validated JobPosting."""

import json
from enum import Enum
from typing import Optional

from job_import_ai.config import PipelineConfig
from job_import_ai.schemas.job_posting import JobPosting, coerce_job_posting
from job_import_ai.services.llm_client import LlmApiError, chat_completion
from job_import_ai.services.page_fetcher import HtmlFetchError, fetch_html
from job_import_ai.services.url_normalizer import normalize_job_url
from job_import_ai.utils.helpers import parse_llm_json
from job_import_ai.utils.logger import get_logger

logger = get_logger(__name__)

# Pages with less text than this almost always need client-side rendering
MIN_PAGE_TEXT_LENGTH = 100

EXTRACTION_SYSTEM_PROMPT = """You are a precise job posting data extraction assistant. Your sole task is to extract structured information from job postings and return it as a JSON object.

CORE RULES:
- NEVER fabricate or guess data. If a field is not clearly present, use the default value.
- NEVER return null. Use "" for missing strings and 0 for missing integers.
- ALWAYS return a flat JSON object with exactly the 7 fields defined below.
- NEVER wrap the response in markdown, code blocks, or explanation. Raw JSON only.

FIELDS:

company_name (string, default: "")
- Return the official company name only, no taglines or extra text.

company_logo (string, default: "")
- Return the full absolute URL (https://...). Return "" if not found.

job_title (string, default: "")
- Return the title only. Strip company name, location, and punctuation artifacts.
- Example: "Senior Software Engineer" not "Senior Software Engineer at Acme (Vienna)"

location_city (string, default: "")
- Return the city name only: "Vienna" not "Vienna, Austria".
- If only a country or region is found, return "".

country (string, default: "")
- Return the full country name: "Austria" not "AT".
- Convert country codes to full names (AT -> Austria, DE -> Germany, US -> United States).

number_of_applicants (integer, default: 0)
- Return integer only. Return 0 if not found.

job_description (string, default: "")
- Extract the full job description as plain text.
- Preserve paragraph breaks as \\n\\n.
- Include: responsibilities, requirements, qualifications, benefits.
- Exclude: navigation, cookie banners, application form text.

PARSING PRIORITY: Use JSON-LD first, then meta tags, then page text."""

EXTRACTION_USER_PROMPT = """Extract job posting information from the content below. Follow the system instructions exactly.

Return ONLY the JSON object: no explanation, no markdown, no code blocks.

{page_content}"""


class JobParseFailure(str, Enum):
    """Which pipeline stage rejected the URL."""

    FETCH_FAILED = "fetch_failed"
    THIN_CONTENT = "thin_content"
    RATE_LIMITED = "rate_limited"
    LLM_FAILED = "llm_failed"
    INVALID_JSON = "invalid_json"
    EMPTY_EXTRACTION = "empty_extraction"
    NOT_A_JOB_POSTING = "not_a_job_posting"


class JobParseError(Exception):
    """Import of a job URL failed; the message is safe to show to the user."""

    def __init__(
        self,
        message: str,
        reason: JobParseFailure,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code

    @property
    def is_rate_limited(self) -> bool:
        return self.reason is JobParseFailure.RATE_LIMITED


def build_user_prompt(page_content: str) -> str:
    return EXTRACTION_USER_PROMPT.replace("{page_content}", page_content)


async def _fetch_page(url: str, config: PipelineConfig) -> str:
    try:
        return await fetch_html(url, config)
    except HtmlFetchError as e:
        logger.error("HTML fetch failed for %s: %s", url, e)
        status = e.status_code if e.status_code is not None else "unknown"
        raise JobParseError(
            f"Could not fetch the job page (HTTP {status}).",
            JobParseFailure.FETCH_FAILED,
            e.status_code,
        ) from e
    except Exception as e:
        logger.exception("HTML fetch failed for %s", url)
        raise JobParseError("Failed to fetch the job page.", JobParseFailure.FETCH_FAILED) from e


async def _extract(page_content: str, config: PipelineConfig) -> str:
    messages = [
        {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(page_content)},
    ]
    try:
        return await chat_completion(messages, config)
    except LlmApiError as e:
        logger.error("LLM API call failed: %s", e)
        if e.is_rate_limited:
            raise JobParseError(
                "Rate limited by the LLM provider. Please try again in a moment.",
                JobParseFailure.RATE_LIMITED,
                e.status_code,
            ) from e
        status = e.status_code if e.status_code is not None else "unknown"
        raise JobParseError(
            f"LLM extraction failed (HTTP {status}).",
            JobParseFailure.LLM_FAILED,
            e.status_code,
        ) from e
    except Exception as e:
        logger.exception("LLM API call failed")
        raise JobParseError("LLM extraction failed.", JobParseFailure.LLM_FAILED) from e


async def parse_job_from_url(
    raw_url: str,
    config: Optional[PipelineConfig] = None,
) -> JobPosting:
    """
    End-to-end job parsing pipeline:
      1. Normalise the URL (portal overlays, hash fragments)
      2. Fetch the page and compress it for the LLM
      3. Ask the LLM for the seven JobPosting fields as JSON
      4. Coerce and validate the answer
    Raises JobParseError at the first failing stage.
    """
    config = config or PipelineConfig.from_env()

    url = normalize_job_url(raw_url)
    if url != raw_url:
        logger.info("Normalised URL: %s -> %s", raw_url, url)

    logger.info("Fetching %s", url)
    page_content = await _fetch_page(url, config)
    logger.info("Fetched %s chars of compressed page content", len(page_content))

    if len(page_content.strip()) < MIN_PAGE_TEXT_LENGTH:
        raise JobParseError(
            "The page returned very little content. It may require JavaScript rendering.",
            JobParseFailure.THIN_CONTENT,
        )

    raw_json = await _extract(page_content, config)
    logger.info("LLM returned %s chars", len(raw_json))

    try:
        parsed = parse_llm_json(raw_json)
    except (ValueError, RecursionError) as e:
        # RecursionError: pathologically nested arrays or objects
        logger.error("Invalid JSON from LLM: %s", raw_json[:500])
        raise JobParseError(
            "LLM returned invalid JSON. The page may be unsupported.",
            JobParseFailure.INVALID_JSON,
        ) from e

    job = coerce_job_posting(parsed)
    if job is None:
        logger.error("Coercion failed. Parsed payload: %s", json.dumps(parsed)[:500])
        raise JobParseError(
            "LLM returned a JSON object but no job data could be extracted.",
            JobParseFailure.EMPTY_EXTRACTION,
        )

    if not job.job_title:
        raise JobParseError(
            "Extraction succeeded but no job title was found. The page may not be a job posting.",
            JobParseFailure.NOT_A_JOB_POSTING,
        )

    logger.info('Extracted "%s" at "%s"', job.job_title, job.company_name)
    return job
