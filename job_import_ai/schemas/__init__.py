"""Schema exports."""

from .job_posting import JobPosting, coerce_job_posting

__all__ = ["JobPosting", "coerce_job_posting"]
