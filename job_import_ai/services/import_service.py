"""Import a job from a URL: validate input, reuse stored jobs, run the parser, persist."""

from typing import Awaitable, Callable, Optional

from pydantic import BaseModel

from job_import_ai.agents.job_parser_agent import JobParseError, parse_job_from_url
from job_import_ai.config import PipelineConfig
from job_import_ai.schemas.job_posting import JobPosting
from job_import_ai.services.url_normalizer import normalize_job_url
from job_import_ai.storage.job_store import JobStore
from job_import_ai.utils.helpers import is_absolute_url, is_http_url
from job_import_ai.utils.logger import get_logger

logger = get_logger(__name__)

JobParser = Callable[[str, Optional[PipelineConfig]], Awaitable[JobPosting]]


class ImportOutcome(BaseModel):
    """What the caller gets back; status_code mirrors the HTTP response to send."""

    ok: bool
    status_code: int
    job_url: str = ""
    cached: bool = False
    job: Optional[JobPosting] = None
    error: Optional[str] = None


def http_status_for(error: JobParseError) -> int:
    """Pipeline failures are upstream failures (502), except rate limiting (429)."""
    return 429 if error.is_rate_limited else 502


def _client_error(message: str, job_url: str = "") -> ImportOutcome:
    return ImportOutcome(ok=False, status_code=400, job_url=job_url, error=message)


async def import_job(
    url: str,
    store: JobStore,
    config: Optional[PipelineConfig] = None,
    parser: JobParser = parse_job_from_url,
) -> ImportOutcome:
    """
    Import one job listing. Malformed input is rejected with 400 before the
    pipeline runs; a URL already in the store is returned without re-parsing.
    """
    url = (url or "").strip()
    if not url:
        return _client_error("Please provide a job URL.")
    if not is_absolute_url(url):
        return _client_error("Invalid URL.", url)
    if not is_http_url(url):
        return _client_error("URL must start with http:// or https://.", url)

    job_url = normalize_job_url(url)
    existing = store.get(job_url)
    if existing is not None:
        logger.info("Job already imported: %s", job_url)
        return ImportOutcome(ok=True, status_code=200, job_url=job_url, cached=True, job=existing)

    try:
        job = await parser(job_url, config)
    except JobParseError as e:
        logger.warning("Import failed for %s (%s): %s", job_url, e.reason.value, e)
        return ImportOutcome(ok=False, status_code=http_status_for(e), job_url=job_url, error=str(e))

    store.save(job_url, job)
    logger.info("Imported %s", job_url)
    return ImportOutcome(ok=True, status_code=200, job_url=job_url, job=job)
