"""Job store exports."""

from .job_store import InMemoryJobStore, JobStore, JsonFileJobStore

__all__ = ["JobStore", "InMemoryJobStore", "JsonFileJobStore"]
