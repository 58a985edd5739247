"""Job listing stores keyed by canonical job URL."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from job_import_ai.schemas.job_posting import JobPosting


class JobStore(Protocol):
    def get(self, url: str) -> Optional[JobPosting]: ...

    def save(self, url: str, job: JobPosting) -> None: ...


class InMemoryJobStore:
    """Dict-backed store, used by tests and the Streamlit session."""

    def __init__(self) -> None:
        self._jobs: Dict[str, JobPosting] = {}

    def get(self, url: str) -> Optional[JobPosting]:
        return self._jobs.get(url)

    def save(self, url: str, job: JobPosting) -> None:
        self._jobs[url] = job

    def all(self) -> Dict[str, JobPosting]:
        return dict(self._jobs)


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def read_json(path: Path, default: Any):
    if not path.exists():
        return default
    return json.loads(path.read_text(encoding="utf-8", errors="ignore"))


class JsonFileJobStore:
    """All imported jobs in one JSON file: {"jobs": {url: posting}}."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, Dict[str, Any]]:
        data = read_json(self.path, default={"jobs": {}})
        jobs = data.get("jobs") if isinstance(data, dict) else None
        return jobs if isinstance(jobs, dict) else {}

    def get(self, url: str) -> Optional[JobPosting]:
        payload = self._load().get(url)
        return JobPosting.model_validate(payload) if payload else None

    def save(self, url: str, job: JobPosting) -> None:
        jobs = self._load()
        jobs[url] = job.model_dump()
        write_json(self.path, {"jobs": jobs})

    def all(self) -> Dict[str, JobPosting]:
        return {url: JobPosting.model_validate(p) for url, p in self._load().items()}
