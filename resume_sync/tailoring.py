"""Tailor a stored profile to a job posting through the task client.

The backend returns nested entries as JSON strings; an entry list that does
not decode is reported empty rather than failing the whole result.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .domain.documents import (
    CategorizedSkills,
    ContactInfo,
    EducationEntry,
    ExperienceEntry,
    ProjectEntry,
    SkillCategory,
    StructuredDocument,
)
from .domain.normalization import parse_answer, strip_code_fences
from .errors import (
    ResumeSyncError,
    StructuringDegraded,
    TailoringFailed,
    TaskNotFound,
    TaskSubmissionError,
    UnsupportedInput,
)
from .ingestion.prompts import TAILORED_RESUME_FORMAT, tailor_instructions
from .providers.base import TaskClient
from .providers.polling import wait_for_task
from .providers.types import DEFAULT_ENGINE, PLATFORM_EXTRACT_TOOLS
from .reconciliation.records import ProfileSnapshot
from .reconciliation.store import ProfileStore

logger = logging.getLogger("resume_sync.tailoring")

EMPTY_PROFILE_MESSAGE = "No profile data found. Please add experience or projects to your profile."
GENERATION_FAILED_MESSAGE = "Failed to generate resume"

E = TypeVar("E", bound=BaseModel)


def _none_as_empty(value: Any) -> Any:
    return [] if value is None else value


class JobTarget(BaseModel):
    """The posting a resume is tailored to, as returned by the jobs endpoints."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str
    company: str
    full_text: str = Field(alias="fullText")
    requirements: List[str] = Field(default_factory=list)
    responsibilities: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    source_url: Optional[str] = Field(default=None, alias="sourceUrl")

    @field_validator("title", "company", "full_text")
    @classmethod
    def _required_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("requirements", "responsibilities", "keywords", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _none_as_empty(value)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TailoredAnswer(BaseModel):
    """Flat answer shape requested by ``TAILORED_RESUME_FORMAT``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    location: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None
    website: Optional[str] = None
    professional_summary: str = Field(alias="professionalSummary")
    experience_json: Any = Field(alias="experienceJson")
    education_json: Any = Field(default=None, alias="educationJson")
    projects_json: Any = Field(default=None, alias="projectsJson")
    technical_skills: List[str] = Field(default_factory=list, alias="technicalSkills")
    frameworks_and_tools: List[str] = Field(default_factory=list, alias="frameworksAndTools")
    key_improvements: List[str] = Field(default_factory=list, alias="keyImprovements")
    keywords_added: List[str] = Field(default_factory=list, alias="keywordsAdded")
    match_score: float = Field(default=0, alias="matchScore")

    @field_validator(
        "technical_skills", "frameworks_and_tools", "key_improvements", "keywords_added", mode="before"
    )
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _none_as_empty(value)

    @field_validator("match_score", mode="before")
    @classmethod
    def _score_default(cls, value: Any) -> Any:
        return 0 if value is None else value


class TailoringSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_changes: int = Field(default=0, alias="totalChanges")
    key_improvements: List[str] = Field(default_factory=list, alias="keyImprovements")
    keywords_added: List[str] = Field(default_factory=list, alias="keywordsAdded")
    warnings: List[str] = Field(default_factory=list)


class TailoredResume(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contact_info: ContactInfo = Field(alias="contactInfo")
    professional_summary: str = Field(alias="professionalSummary")
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    projects: List[ProjectEntry] = Field(default_factory=list)
    skills: CategorizedSkills = Field(default_factory=CategorizedSkills)
    summary: TailoringSummary = Field(default_factory=TailoringSummary)
    match_score: int = Field(default=0, alias="matchScore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def candidate_document(snapshot: ProfileSnapshot) -> StructuredDocument:
    """Render stored profile records as the document shape the backend sees."""
    profile = snapshot.profile
    contact = ContactInfo()
    if profile is not None:
        contact = ContactInfo(
            name=profile.full_name,
            email=profile.email,
            phone=profile.phone,
            location=profile.location,
            linkedin=profile.linkedin_url,
            github=profile.github_url,
            website=profile.website_url,
        )

    grouped: Dict[str, List[str]] = {}
    for skill in snapshot.skills:
        grouped.setdefault(skill.category, []).append(skill.name)

    return StructuredDocument(
        contact_info=contact,
        experience=[
            ExperienceEntry(
                id=record.id,
                company=record.company,
                position=record.position,
                location=record.location,
                start_date=record.start_date,
                end_date="Present" if record.is_current else record.end_date,
                bullets=record.achievements,
                description=record.description,
            )
            for record in snapshot.experience
        ],
        education=[
            EducationEntry(
                id=record.id,
                institution=record.institution,
                degree=record.degree,
                field=record.field_of_study,
                location=record.location,
                start_date=record.start_date,
                end_date=record.end_date,
                gpa=record.gpa,
                highlights=record.achievements,
            )
            for record in snapshot.education
        ],
        skills=CategorizedSkills(
            categories=[SkillCategory(name=name, skills=names) for name, names in grouped.items()]
        ),
        projects=[
            ProjectEntry(
                id=record.id,
                name=record.name,
                description=record.description,
                technologies=record.skills,
                url=record.url,
                start_date=record.start_date,
                end_date="Present" if record.is_current else record.end_date,
                bullets=record.bullets,
            )
            for record in snapshot.projects
        ],
    )


def _decode_entries(raw: Any, model: Type[E], label: str) -> List[E]:
    if isinstance(raw, str):
        cleaned = strip_code_fences(raw)
        if not cleaned:
            return []
        try:
            raw = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            logger.warning("tailor_entries_undecodable field=%s error=%s", label, exc.msg)
            return []
    if not isinstance(raw, list):
        return []

    entries: List[E] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            entries.append(model.model_validate(item))
        except ValidationError:
            logger.warning("tailor_entry_dropped field=%s", label)
    return entries


def tailored_resume_from_answer(answer: TailoredAnswer) -> TailoredResume:
    """Expand the flat backend answer into the nested resume shape."""
    return TailoredResume(
        contact_info=ContactInfo(
            name=answer.name,
            email=answer.email,
            phone=answer.phone or None,
            location=answer.location or None,
            linkedin=answer.linkedin or None,
            github=answer.github or None,
            website=answer.website or None,
        ),
        professional_summary=answer.professional_summary,
        experience=_decode_entries(answer.experience_json, ExperienceEntry, "experience"),
        education=_decode_entries(answer.education_json, EducationEntry, "education"),
        projects=_decode_entries(answer.projects_json, ProjectEntry, "projects"),
        skills=CategorizedSkills(
            categories=[
                SkillCategory(name="Technical Skills", skills=answer.technical_skills),
                SkillCategory(name="Frameworks & Tools", skills=answer.frameworks_and_tools),
            ]
        ),
        summary=TailoringSummary(
            total_changes=len(answer.key_improvements),
            key_improvements=answer.key_improvements,
            keywords_added=answer.keywords_added,
        ),
        match_score=max(0, min(100, int(round(answer.match_score)))),
    )


class ResumeTailor:
    def __init__(
        self,
        client: TaskClient,
        store: ProfileStore,
        *,
        engine: str = DEFAULT_ENGINE,
        poll_interval: float = 2.0,
        max_wait: float = 480.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.client = client
        self.store = store
        self.engine = engine
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._sleep = sleep
        self._clock = clock

    async def load_candidate(self, user_id: str) -> StructuredDocument:
        snapshot = await self.store.snapshot(user_id)
        if not snapshot.experience and not snapshot.projects:
            raise UnsupportedInput(EMPTY_PROFILE_MESSAGE, {"reason": "empty_profile"})
        return candidate_document(snapshot)

    async def tailor(self, user_id: str, job: JobTarget) -> TailoredResume:
        candidate = await self.load_candidate(user_id)
        return await self.generate(candidate, job)

    async def stream(self, user_id: str, job: JobTarget) -> AsyncIterator[Dict[str, Any]]:
        """Yield progress events, ending with one ``complete`` or ``error`` event.

        Domain errors become ``error`` events because the response has
        already started; anything else propagates.
        """
        counter = 0

        def event(kind: str, **fields: Any) -> Dict[str, Any]:
            nonlocal counter
            counter += 1
            return {"event_id": counter, "type": kind, **fields}

        yield event("phase", phase="analyzing-resume", progress=5)
        yield event("thought", thought="Loading your profile data...", phase="analyzing-resume", progress=10)
        try:
            candidate = await self.load_candidate(user_id)
        except ResumeSyncError as exc:
            yield event("error", code=exc.code, message=exc.message)
            return

        yield event(
            "thought",
            thought=(
                f"Found {len(candidate.experience)} jobs, {len(candidate.projects)} projects, "
                f"{len(candidate.education)} education entries"
            ),
            phase="analyzing-resume",
            progress=20,
        )
        yield event("phase", phase="tailoring", progress=30)
        yield event("thought", thought=f"Tailoring your resume for {job.company}...", phase="tailoring", progress=35)
        try:
            result = await self.generate(candidate, job)
        except ResumeSyncError as exc:
            yield event("error", code=exc.code, message=exc.message)
            return

        yield event("phase", phase="complete", progress=100)
        yield event("thought", thought="Resume tailoring complete!", phase="complete", progress=100)
        yield event("complete", result=result.to_wire(), originalResume=candidate.to_wire())

    async def generate(self, candidate: StructuredDocument, job: JobTarget) -> TailoredResume:
        instructions = tailor_instructions(job.to_wire(), candidate.to_wire())
        try:
            task = await self.client.run(
                self.engine,
                instructions,
                tools=PLATFORM_EXTRACT_TOOLS,
                output_schema=TAILORED_RESUME_FORMAT,
            )
        except TaskSubmissionError as exc:
            raise TailoringFailed(f"Failed to start tailoring: {exc.message}", exc.details) from exc

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
            raise TailoringFailed(exc.message, {"task_id": task.task_id}) from exc

        if outcome.timed_out:
            raise TailoringFailed(
                f"Resume tailoring did not finish within {self.max_wait:.0f}s",
                {"task_id": task.task_id, "status": outcome.task.status},
            )
        if not outcome.succeeded or not outcome.answer:
            logger.warning("tailor_failed task_id=%s status=%s", task.task_id, outcome.task.status)
            raise TailoringFailed(
                GENERATION_FAILED_MESSAGE,
                {"task_id": task.task_id, "status": outcome.task.status},
            )

        try:
            answer = parse_answer(outcome.answer, TailoredAnswer)
        except StructuringDegraded as exc:
            raise TailoringFailed(GENERATION_FAILED_MESSAGE, exc.details) from exc

        result = tailored_resume_from_answer(answer)
        logger.info(
            "resume_tailored task_id=%s experience=%d projects=%d match_score=%d",
            task.task_id,
            len(result.experience),
            len(result.projects),
            result.match_score,
        )
        return result
