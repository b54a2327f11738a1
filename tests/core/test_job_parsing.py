"""Job posting parsing through the task client."""

from __future__ import annotations

import json

import pytest

from resume_sync.errors import JobParseFailed, UnsupportedInput
from resume_sync.jobs import MIN_POSTING_CHARS, JobParser, ParsedJob
from resume_sync.providers import PLATFORM_SEARCH_TOOLS, StubTaskClient

POSTING = (
    "Senior Backend Engineer at Acme Analytics. Remote (US). You will own the ingestion "
    "pipeline and mentor engineers. Requirements: 5+ years of Python, PostgreSQL."
)

JOB_ANSWER = {
    "title": "Senior Backend Engineer",
    "company": "Acme Analytics",
    "location": "Remote (US)",
    "employmentType": "Full-time",
    "description": "Own the ingestion pipeline.",
    "responsibilities": ["Own the ingestion pipeline", "Mentor engineers"],
    "requirements": ["5+ years of Python", "PostgreSQL"],
    "niceToHaves": None,
    "technicalSkills": ["Python", "PostgreSQL"],
    "keywords": ["python", "ingestion"],
}


@pytest.mark.asyncio
async def test_parse_text_returns_structured_job() -> None:
    client = StubTaskClient(answer=json.dumps(JOB_ANSWER))
    job = await JobParser(client).parse_text(POSTING)

    assert job.title == "Senior Backend Engineer"
    assert job.nice_to_haves == []
    assert client.calls[0].tools == []
    assert client.calls[0].output_schema["required"] == ["title", "company"]

    wire = job.to_wire()
    assert wire["employmentType"] == "Full-time"
    assert wire["technicalSkills"] == ["Python", "PostgreSQL"]
    assert "employment_type" not in wire


@pytest.mark.asyncio
async def test_explicit_title_and_company_override_answer() -> None:
    parser = JobParser(StubTaskClient(answer=JOB_ANSWER))
    job = await parser.parse_text(POSTING, title="Staff Engineer", company="Acme")
    assert (job.title, job.company) == ("Staff Engineer", "Acme")


@pytest.mark.asyncio
async def test_short_posting_is_rejected_before_any_task() -> None:
    client = StubTaskClient(answer=JOB_ANSWER)
    with pytest.raises(UnsupportedInput):
        await JobParser(client).parse_text("x" * (MIN_POSTING_CHARS - 1))
    assert client.calls == []


@pytest.mark.asyncio
async def test_failed_task_raises_instead_of_falling_back() -> None:
    with pytest.raises(JobParseFailed) as exc_info:
        await JobParser(StubTaskClient()).parse_text(POSTING)
    assert exc_info.value.details["status"] == "failed"


@pytest.mark.asyncio
async def test_answer_missing_title_raises() -> None:
    answer = dict(JOB_ANSWER, title="  ")
    with pytest.raises(JobParseFailed) as exc_info:
        await JobParser(StubTaskClient(answer=answer)).parse_text(POSTING)
    assert exc_info.value.message == "Failed to extract required job information"


@pytest.mark.asyncio
async def test_submission_failure_raises() -> None:
    client = StubTaskClient(submit_error=ConnectionError("refused"))
    with pytest.raises(JobParseFailed):
        await JobParser(client).parse_text(POSTING)


@pytest.mark.asyncio
async def test_deadline_raises(fake_clock) -> None:
    client = StubTaskClient(answer=JOB_ANSWER, status_script=["running"] * 200)
    parser = JobParser(client, max_wait=120.0, sleep=fake_clock.sleep, clock=fake_clock)
    with pytest.raises(JobParseFailed) as exc_info:
        await parser.parse_text(POSTING)
    assert "120s" in exc_info.value.message


@pytest.mark.asyncio
async def test_fetch_url_passes_search_tools() -> None:
    client = StubTaskClient(answer=JOB_ANSWER)
    job = await JobParser(client).fetch_url("https://jobs.example.com/123")

    assert job.company == "Acme Analytics"
    assert client.calls[0].tools == PLATFORM_SEARCH_TOOLS
    assert "https://jobs.example.com/123" in client.calls[0].instructions


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["", "jobs.example.com/123", "ftp://jobs.example.com/1", "https://"])
async def test_fetch_url_rejects_invalid_urls(url: str) -> None:
    client = StubTaskClient(answer=JOB_ANSWER)
    with pytest.raises(UnsupportedInput):
        await JobParser(client).fetch_url(url)
    assert client.calls == []


@pytest.mark.asyncio
async def test_fetch_url_detects_inaccessible_page() -> None:
    answer = {"title": "Page unavailable", "company": "LinkedIn", "description": "Access denied: login required"}
    with pytest.raises(JobParseFailed) as exc_info:
        await JobParser(StubTaskClient(answer=answer)).fetch_url("https://www.linkedin.com/jobs/view/1")
    assert exc_info.value.details["reason"] == "page_access_error"


def test_full_text_lists_sections() -> None:
    text = ParsedJob.model_validate(JOB_ANSWER).full_text()
    assert text.startswith("Senior Backend Engineer at Acme Analytics\nLocation: Remote (US)")
    assert "Requirements:\n- 5+ years of Python\n- PostgreSQL" in text
    assert "Nice to Have:" not in text


def test_looks_inaccessible_needs_empty_content() -> None:
    job = ParsedJob.model_validate(dict(JOB_ANSWER, description="Posting not found? Still has requirements."))
    assert job.looks_inaccessible() is False
