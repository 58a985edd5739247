"""Agent exports."""

from .job_parser_agent import JobParseError, JobParseFailure, parse_job_from_url

__all__ = ["parse_job_from_url", "JobParseError", "JobParseFailure"]
