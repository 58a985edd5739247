"""
Job Import AI – Streamlit frontend.
No business logic in layout; importing and persistence live in services and storage.
"""

import asyncio
import csv
import io
from typing import Dict

import streamlit as st

from job_import_ai.config import GROQ_API_KEY, JOB_STORE_PATH, PipelineConfig
from job_import_ai.schemas.job_posting import JobPosting
from job_import_ai.services.import_service import ImportOutcome, import_job
from job_import_ai.storage.job_store import JsonFileJobStore

EXPORT_HEADERS = [
    "url",
    "job_title",
    "company_name",
    "location_city",
    "country",
    "number_of_applicants",
    "company_logo",
    "job_description",
]


def _run_import(url: str, store: JsonFileJobStore) -> ImportOutcome:
    """Run the async import from Streamlit's synchronous script run."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(import_job(url, store, PipelineConfig.from_env()))
    finally:
        loop.close()


def _export_csv(jobs: Dict[str, JobPosting]) -> bytes:
    """Export imported jobs to CSV bytes."""
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(EXPORT_HEADERS)
    for url, job in jobs.items():
        writer.writerow([
            url,
            job.job_title,
            job.company_name,
            job.location_city,
            job.country,
            job.number_of_applicants,
            job.company_logo,
            job.job_description[:500],
        ])
    return out.getvalue().encode("utf-8")


def _render_job(url: str, job: JobPosting) -> None:
    with st.container():
        st.markdown("---")
        col_a, col_b = st.columns([3, 1])
        with col_a:
            st.markdown(f"### {job.job_title or 'Untitled'}")
            location = ", ".join(p for p in (job.location_city, job.country) if p)
            st.caption(f"**Company:** {job.company_name or '—'} · **Location:** {location or '—'}")
            if job.number_of_applicants:
                st.caption(f"{job.number_of_applicants} applicants")
        with col_b:
            if job.company_logo:
                st.image(job.company_logo, width=80)
            st.markdown(f"[Open job]({url})")
        if job.job_description:
            with st.expander("Description"):
                st.text(job.job_description)


def render_layout() -> None:
    """Streamlit page layout."""
    st.set_page_config(page_title="Job Import AI", layout="wide")
    st.title("Job Import AI")
    st.markdown("*Paste a job listing URL and get a structured job posting back.*")
    st.divider()

    store = JsonFileJobStore(JOB_STORE_PATH)

    if "last_outcome" not in st.session_state:
        st.session_state["last_outcome"] = None

    with st.container():
        col1, col2 = st.columns([4, 1])
        with col1:
            url = st.text_input("Job URL", placeholder="https://www.karriere.at/jobs/7738505", key="job_url")
        with col2:
            st.write("")
            import_clicked = st.button("Import", type="primary", key="import_btn")

    if import_clicked:
        if not GROQ_API_KEY:
            st.session_state["last_outcome"] = ImportOutcome(
                ok=False, status_code=500, error="GROQ_API_KEY is not set. Add it to your .env file."
            )
        else:
            with st.spinner("Fetching the page and extracting job details…"):
                st.session_state["last_outcome"] = _run_import(url, store)

    outcome = st.session_state.get("last_outcome")
    if outcome is not None:
        if outcome.ok and outcome.job is not None:
            if outcome.cached:
                st.info("This job was already imported.")
            else:
                st.success("Job imported.")
            _render_job(outcome.job_url, outcome.job)
        else:
            st.error(f"{outcome.error} (HTTP {outcome.status_code})")

    st.divider()
    st.subheader("Imported jobs")
    jobs = store.all()
    if not jobs:
        st.info("No jobs imported yet.")
        return

    st.download_button(
        "Export to CSV",
        data=_export_csv(jobs),
        file_name="imported_jobs.csv",
        mime="text/csv",
        key="export_csv",
    )
    for job_url, job in jobs.items():
        _render_job(job_url, job)


if __name__ == "__main__":
    render_layout()
