"""Job posting schema and coercion of untrusted LLM output into it."""

import math
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobPosting(BaseModel):
    """Structured job data extracted from a job page. Never contains None."""

    model_config = ConfigDict(frozen=True)

    company_name: str = Field(default="", description="Official company name")
    company_logo: str = Field(default="", description="Absolute URL of the company logo")
    job_title: str = Field(default="", description="Job title without company or location")
    location_city: str = Field(default="", description="City only, e.g. Vienna")
    country: str = Field(default="", description="Full country name, e.g. Austria")
    number_of_applicants: int = Field(default=0, ge=0, description="Applicant count if shown")
    job_description: str = Field(default="", description="Plain text, paragraphs separated by blank lines")


JOB_POSTING_FIELDS = tuple(JobPosting.model_fields)

_NON_NUMERIC = re.compile(r"[^\d.-]")


def _as_string(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_int(value: Any) -> int:
    """Best-effort non-negative integer; negatives clamp to 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(_NON_NUMERIC.sub("", value))
        except ValueError:
            return 0
    else:
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, math.trunc(number))


def _has_value(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)):
        return value != 0
    return True


def coerce_job_posting(raw: Any) -> Optional[JobPosting]:
    """
    Validate and coerce an unknown payload into a JobPosting.
    Returns None when raw is not an object or carries no usable field.
    Never raises: malformed fields fall back to their defaults.
    """
    if not isinstance(raw, dict):
        return None
    if not any(_has_value(raw.get(key)) for key in JOB_POSTING_FIELDS):
        return None

    return JobPosting(
        company_name=_as_string(raw.get("company_name")),
        company_logo=_as_string(raw.get("company_logo")),
        job_title=_as_string(raw.get("job_title")),
        location_city=_as_string(raw.get("location_city")),
        country=_as_string(raw.get("country")),
        number_of_applicants=_as_int(raw.get("number_of_applicants")),
        job_description=_as_string(raw.get("job_description")),
    )
