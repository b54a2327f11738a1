"""Merge a StructuredDocument into a persisted profile without duplicates."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..domain.dates import EDUCATION_ONGOING_MARKERS, normalize_date_range, parse_date
from ..domain.documents import (
    ContactInfo,
    EducationEntry,
    ExperienceEntry,
    ProjectEntry,
    StructuredDocument,
)
from ..domain.project_matching import is_duplicate_project
from ..domain.skills import flatten_skills
from ..errors import ReconciliationPartialFailure
from .records import (
    EducationRecord,
    EntityCounts,
    ProfileChange,
    ProjectCounts,
    ProjectRecord,
    ReconciliationReport,
    SkillRecord,
    WorkExperienceRecord,
)
from .store import ProfileStore

logger = logging.getLogger("resume_sync.reconciliation")

UNKNOWN_POSITION = "Unknown Position"

# (contact field, profile column, is a link)
_CONTACT_FIELDS = (
    ("name", "full_name", False),
    ("phone", "phone", False),
    ("location", "location", False),
    ("linkedin", "linkedin_url", True),
    ("github", "github_url", True),
    ("website", "website_url", True),
)


def normalize_link(value: str) -> str:
    value = value.strip()
    return value if value.lower().startswith("http") else f"https://{value}"


def _text(value: Optional[str]) -> str:
    return (value or "").strip()


class ReconciliationEngine:
    """Runs the five sub-merges concurrently against one ``ProfileStore``.

    Each sub-merge reads its collection once, builds a lowercase key set and
    grows it as records are inserted, so duplicates inside the same input are
    skipped too. There is no transaction across sub-merges.
    """

    def __init__(self, store: ProfileStore, *, today: Optional[Callable[[], date]] = None) -> None:
        self.store = store
        self._today = today or date.today

    async def reconcile(self, user_id: str, document: StructuredDocument) -> ReconciliationReport:
        logger.info(
            "reconcile_started user_id=%s experience=%d education=%d skills=%d projects=%d",
            user_id,
            len(document.experience),
            len(document.education),
            len(document.skill_names()),
            len(document.projects),
        )
        profile, experience, education, skills, projects = await asyncio.gather(
            self.merge_profile(user_id, document.contact_info),
            self.merge_experience(user_id, document.experience),
            self.merge_education(user_id, document.education),
            self.merge_skills(user_id, document),
            self.merge_projects(user_id, document.projects),
        )
        report = ReconciliationReport(
            profile=profile,
            experience=experience,
            education=education,
            skills=skills,
            projects=projects,
        )
        logger.info("reconcile_finished user_id=%s summary=%s", user_id, report.summary())
        return report

    async def merge_profile(self, user_id: str, contact: Optional[ContactInfo]) -> ProfileChange:
        if contact is None:
            return ProfileChange()
        updates: Dict[str, str] = {}
        fields: List[str] = []
        for source, column, is_link in _CONTACT_FIELDS:
            value = _text(getattr(contact, source))
            if not value:
                continue
            updates[column] = normalize_link(value) if is_link else value
            fields.append(source)
        if not updates:
            return ProfileChange()
        try:
            await self.store.update_profile(user_id, updates)
        except ReconciliationPartialFailure as exc:
            self._log_partial_failure(user_id, exc)
            return ProfileChange()
        return ProfileChange(updated=True, fields=fields)

    async def merge_experience(self, user_id: str, entries: List[ExperienceEntry]) -> EntityCounts:
        counts = EntityCounts()
        if not entries:
            return counts
        known: Set[Tuple[str, str]] = {record.dedup_key for record in await self.store.list_experience(user_id)}
        for entry in entries:
            position = _text(entry.position) or _text(entry.title) or UNKNOWN_POSITION
            key = (_text(entry.company).lower(), position.lower())
            if key in known:
                counts.skipped += 1
                continue
            dates = normalize_date_range(entry.start_date, entry.end_date, today=self._today())
            record = WorkExperienceRecord(
                user_id=user_id,
                company=_text(entry.company),
                position=position,
                location=entry.location or None,
                description=entry.description or None,
                achievements=list(entry.bullets),
                start_date=dates.start_date.isoformat(),
                end_date=dates.end_date.isoformat() if dates.end_date else None,
                is_current=dates.is_current,
            )
            if await self._insert(user_id, self.store.add_experience, record, counts):
                known.add(key)
        return counts

    async def merge_education(self, user_id: str, entries: List[EducationEntry]) -> EntityCounts:
        counts = EntityCounts()
        if not entries:
            return counts
        known: Set[Tuple[str, str]] = {record.dedup_key for record in await self.store.list_education(user_id)}
        for entry in entries:
            key = (_text(entry.institution).lower(), _text(entry.degree).lower())
            if key in known:
                counts.skipped += 1
                continue
            dates = normalize_date_range(
                entry.start_date,
                entry.end_date,
                ongoing_markers=EDUCATION_ONGOING_MARKERS,
                today=self._today(),
            )
            record = EducationRecord(
                user_id=user_id,
                institution=_text(entry.institution),
                degree=_text(entry.degree),
                field_of_study=entry.field or None,
                location=entry.location or None,
                gpa=entry.gpa or None,
                achievements=list(entry.highlights),
                start_date=dates.start_date.isoformat(),
                end_date=dates.end_date.isoformat() if dates.end_date else None,
                is_current=dates.is_current,
            )
            if await self._insert(user_id, self.store.add_education, record, counts):
                known.add(key)
        return counts

    async def merge_skills(self, user_id: str, document: StructuredDocument) -> EntityCounts:
        counts = EntityCounts()
        pairs = flatten_skills(document.skills)
        if not pairs:
            return counts
        known: Set[str] = {record.dedup_key for record in await self.store.list_skills(user_id)}
        for name, category in pairs:
            key = name.lower()
            if key in known:
                counts.skipped += 1
                continue
            record = SkillRecord(user_id=user_id, name=name, category=category)
            if await self._insert(user_id, self.store.add_skill, record, counts):
                known.add(key)
        return counts

    async def merge_projects(self, user_id: str, entries: List[ProjectEntry]) -> ProjectCounts:
        counts = ProjectCounts()
        if not entries:
            return counts
        existing = await self.store.list_projects(user_id)
        known_names = {_text(project.name).lower() for project in existing}
        known_urls = {_text(project.url).lower() for project in existing if _text(project.url)}
        for entry in entries:
            # Either key alone marks a duplicate, unlike the compound keys above.
            if is_duplicate_project(entry.name, entry.url, known_names, known_urls):
                counts.skipped += 1
                continue
            start = parse_date(entry.start_date)
            end = parse_date(entry.end_date)
            record = ProjectRecord(
                user_id=user_id,
                name=_text(entry.name),
                description=entry.description or None,
                bullets=list(entry.bullets),
                skills=list(entry.technologies),
                start_date=start.isoformat() if start else None,
                end_date=end.isoformat() if end else None,
                url=_text(entry.url) or None,
            )
            if await self._insert(user_id, self.store.add_project, record, counts):
                known_names.add(record.name.lower())
                if record.url:
                    known_urls.add(record.url.lower())
        return counts

    async def _insert(self, user_id: str, add, record, counts) -> bool:
        try:
            await add(record)
        except ReconciliationPartialFailure as exc:
            counts.failed += 1
            self._log_partial_failure(user_id, exc)
            return False
        counts.added += 1
        return True

    def _log_partial_failure(self, user_id: str, exc: ReconciliationPartialFailure) -> None:
        logger.error(
            "reconcile_partial_failure user_id=%s entity=%s error=%s",
            user_id,
            exc.entity,
            exc.message,
        )
