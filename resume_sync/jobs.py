"""Job posting parsing through the task client.

Unlike resume structuring there is no fallback: a posting the backend cannot
structure is an error for the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain.normalization import parse_answer
from .errors import JobParseFailed, StructuringDegraded, TaskNotFound, TaskSubmissionError, UnsupportedInput
from .ingestion.prompts import JOB_ANSWER_FORMAT, job_fetch_instructions, job_parse_instructions
from .providers.base import TaskClient
from .providers.polling import wait_for_task
from .providers.types import DEFAULT_ENGINE, PLATFORM_SEARCH_TOOLS

logger = logging.getLogger("resume_sync.jobs")

MIN_POSTING_CHARS = 50

ACCESS_ERROR_MARKERS = (
    "unavailable",
    "could not be accessed",
    "permission error",
    "unable to access",
    "not found",
    "access denied",
    "blocked",
    "forbidden",
)


class ParsedJob(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str
    company: str
    location: Optional[str] = None
    employment_type: Optional[str] = Field(default=None, alias="employmentType")
    salary_range: Optional[str] = Field(default=None, alias="salaryRange")
    description: str = ""
    responsibilities: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    nice_to_haves: List[str] = Field(default_factory=list, alias="niceToHaves")
    technical_skills: List[str] = Field(default_factory=list, alias="technicalSkills")
    experience_level: Optional[str] = Field(default=None, alias="experienceLevel")
    keywords: List[str] = Field(default_factory=list)

    @field_validator("responsibilities", "requirements", "nice_to_haves", "technical_skills", "keywords", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("title", "company")
    @classmethod
    def _required_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    def looks_inaccessible(self) -> bool:
        """True when the backend described an access error instead of a posting."""
        text = f"{self.title} {self.description}".lower()
        mentions_error = any(marker in text for marker in ACCESS_ERROR_MARKERS)
        empty = not self.requirements and not self.responsibilities and not self.keywords
        return mentions_error and empty

    def full_text(self) -> str:
        lines = [f"{self.title} at {self.company}"]
        if self.location:
            lines.append(f"Location: {self.location}")
        if self.employment_type:
            lines.append(f"Type: {self.employment_type}")
        if self.salary_range:
            lines.append(f"Salary: {self.salary_range}")
        lines.append("")
        if self.description:
            lines.extend(["About the Role:", self.description, ""])
        for heading, items in (
            ("Responsibilities:", self.responsibilities),
            ("Requirements:", self.requirements),
            ("Nice to Have:", self.nice_to_haves),
        ):
            if items:
                lines.append(heading)
                lines.extend(f"- {item}" for item in items)
                lines.append("")
        return "\n".join(lines)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class JobParser:
    def __init__(
        self,
        client: TaskClient,
        *,
        engine: str = DEFAULT_ENGINE,
        poll_interval: float = 2.0,
        max_wait: float = 120.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.client = client
        self.engine = engine
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._sleep = sleep
        self._clock = clock

    async def parse_text(self, text: str, *, title: Optional[str] = None, company: Optional[str] = None) -> ParsedJob:
        """Structure pasted posting text; ``title``/``company`` override the answer."""
        if not text or len(text.strip()) < MIN_POSTING_CHARS:
            raise UnsupportedInput(
                f"Job description text is required (minimum {MIN_POSTING_CHARS} characters)",
                {"length": len((text or "").strip())},
            )
        job = await self._run(job_parse_instructions(text), tools=[])
        updates = {key: value for key, value in (("title", title), ("company", company)) if value}
        return job.model_copy(update=updates) if updates else job

    async def fetch_url(self, url: str) -> ParsedJob:
        """Let the backend open ``url`` with its search tools and structure the posting."""
        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise UnsupportedInput("Invalid URL format", {"url": url})
        job = await self._run(job_fetch_instructions(url), tools=PLATFORM_SEARCH_TOOLS)
        if job.looks_inaccessible():
            raise JobParseFailed(
                "Could not access the job posting. The page may be blocked, require login, or no longer exist.",
                {"reason": "page_access_error", "company": job.company},
            )
        return job

    async def _run(self, instructions: str, *, tools: List[Dict[str, Any]]) -> ParsedJob:
        try:
            task = await self.client.run(self.engine, instructions, tools=tools, output_schema=JOB_ANSWER_FORMAT)
        except TaskSubmissionError as exc:
            raise JobParseFailed(f"Failed to start job parsing: {exc.message}", exc.details) from exc

        try:
            outcome = await wait_for_task(
                self.client,
                task,
                poll_interval=self.poll_interval,
                max_wait=self.max_wait,
                sleep=self._sleep,
                clock=self._clock,
            )
        except TaskNotFound as exc:
            raise JobParseFailed(exc.message, {"task_id": task.task_id}) from exc

        if outcome.timed_out:
            raise JobParseFailed(
                f"Job parsing did not finish within {self.max_wait:.0f}s",
                {"task_id": task.task_id, "status": outcome.task.status},
            )
        if outcome.task.status != "succeeded":
            logger.warning("job_parse_failed task_id=%s status=%s", task.task_id, outcome.task.status)
            raise JobParseFailed(
                outcome.task.error or "Failed to parse job description",
                {"task_id": task.task_id, "status": outcome.task.status},
            )
        if not outcome.answer:
            raise JobParseFailed("Could not extract structured information", {"task_id": task.task_id})

        try:
            job = parse_answer(outcome.answer, ParsedJob)
        except StructuringDegraded as exc:
            raise JobParseFailed("Failed to extract required job information", exc.details) from exc
        logger.info(
            "job_parsed task_id=%s requirements=%d keywords=%d",
            task.task_id,
            len(job.requirements),
            len(job.keywords),
        )
        return job
