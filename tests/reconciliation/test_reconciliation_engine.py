"""Deduplicating profile reconciliation against both store implementations."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
import pytest_asyncio

from resume_sync.domain.documents import StructuredDocument
from resume_sync.errors import ReconciliationPartialFailure
from resume_sync.reconciliation import InMemoryProfileStore, ReconciliationEngine, SQLiteProfileStore
from resume_sync.reconciliation.engine import normalize_link
from resume_sync.reconciliation.records import ProjectRecord, SkillRecord

TODAY = date(2026, 10, 17)

DOCUMENT = {
    "contactInfo": {
        "name": "Alex Rivera",
        "email": "alex@example.com",
        "github": "github.com/arivera",
        "website": "http://arivera.dev",
    },
    "experience": [
        {"company": "Acme Analytics", "position": "Senior Engineer", "startDate": "Mar 2021", "endDate": "Present"},
        {"company": "Brightside Labs", "title": "Engineer", "startDate": "Jun 2018", "endDate": "Feb 2021"},
        {"company": "Nowhere Inc"},
    ],
    "education": [
        {"institution": "UT Austin", "degree": "B.S.", "startDate": "2014", "endDate": "2018"},
        {"institution": "Georgia Tech", "degree": "M.S.", "startDate": "2025", "endDate": "Expected 2027"},
    ],
    "skills": {
        "format": "categorized",
        "categories": [
            {"name": "Languages", "skills": ["Spanish"]},
            {"name": "Programming Languages", "skills": ["Python", "SQL"]},
            {"name": "Tools", "skills": ["Docker"]},
        ],
    },
    "projects": [
        {"name": "Portfolio Site", "url": "https://arivera.dev", "technologies": ["Astro"], "startDate": "Jan 2023"},
        {"name": "Billing Engine", "description": "Usage-based billing"},
    ],
}


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path: Path):
    if request.param == "memory":
        profile_store = InMemoryProfileStore()
    else:
        profile_store = SQLiteProfileStore(tmp_path / "nested" / "profiles.db")
    await profile_store.start()
    yield profile_store
    await profile_store.stop()


def _engine(store) -> ReconciliationEngine:
    return ReconciliationEngine(store, today=lambda: TODAY)


@pytest.mark.asyncio
async def test_first_sync_adds_every_entity(store) -> None:
    report = await _engine(store).reconcile("user-1", StructuredDocument.model_validate(DOCUMENT))

    assert report.profile.updated is True
    assert report.profile.fields == ["name", "github", "website"]
    assert (report.experience.added, report.experience.skipped) == (3, 0)
    assert (report.education.added, report.education.skipped) == (2, 0)
    assert (report.skills.added, report.skills.skipped) == (4, 0)
    assert (report.projects.added, report.projects.skipped) == (2, 0)
    assert report.summary() == "Added: Updated profile (name, github, website), 3 experiences, 2 education, 4 skills, 2 projects"


@pytest.mark.asyncio
async def test_second_sync_of_same_document_is_all_skipped(store) -> None:
    engine = _engine(store)
    document = StructuredDocument.model_validate(DOCUMENT)
    await engine.reconcile("user-1", document)
    before = await store.snapshot("user-1")

    report = await engine.reconcile("user-1", document)

    assert (report.experience.added, report.experience.skipped) == (0, 3)
    assert (report.education.added, report.education.skipped) == (0, 2)
    assert (report.skills.added, report.skills.skipped) == (0, 4)
    assert (report.projects.added, report.projects.skipped) == (0, 2)
    assert report.total_skipped == 11
    after = await store.snapshot("user-1")
    assert len(after.experience) == len(before.experience) == 3
    assert len(after.skills) == len(before.skills) == 4


@pytest.mark.asyncio
async def test_persisted_values_are_normalized(store) -> None:
    await _engine(store).reconcile("user-1", StructuredDocument.model_validate(DOCUMENT))
    snapshot = await store.snapshot("user-1")

    assert snapshot.profile.full_name == "Alex Rivera"
    assert snapshot.profile.github_url == "https://github.com/arivera"
    assert snapshot.profile.website_url == "http://arivera.dev"
    assert snapshot.profile.email is None

    experience = {item.company: item for item in snapshot.experience}
    assert experience["Acme Analytics"].start_date == "2021-03-01"
    assert experience["Acme Analytics"].end_date is None
    assert experience["Acme Analytics"].is_current is True
    assert experience["Brightside Labs"].position == "Engineer"
    assert experience["Brightside Labs"].end_date == "2021-02-01"
    assert experience["Nowhere Inc"].position == "Unknown Position"
    assert experience["Nowhere Inc"].start_date == TODAY.isoformat()

    education = {item.institution: item for item in snapshot.education}
    assert education["Georgia Tech"].is_current is True
    assert education["Georgia Tech"].end_date == "2027-01-01"
    assert education["UT Austin"].is_current is False

    categories = {item.name: item.category for item in snapshot.skills}
    assert categories == {"Spanish": "language", "Python": "technical", "SQL": "technical", "Docker": "tool"}

    projects = {item.name: item for item in snapshot.projects}
    assert projects["Portfolio Site"].skills == ["Astro"]
    assert projects["Portfolio Site"].start_date == "2023-01-01"


@pytest.mark.asyncio
async def test_dedup_keys_are_case_insensitive_and_cover_same_input(store) -> None:
    document = StructuredDocument.model_validate(
        {
            "experience": [
                {"company": "Acme", "position": "Engineer"},
                {"company": "ACME ", "position": "engineer"},
            ],
            "skills": ["Python", "python", "PYTHON"],
        }
    )
    report = await _engine(store).reconcile("user-1", document)

    assert (report.experience.added, report.experience.skipped) == (1, 1)
    assert (report.skills.added, report.skills.skipped) == (1, 2)
    assert [(skill.name, skill.category) for skill in await store.list_skills("user-1")] == [("Python", "other")]


@pytest.mark.asyncio
async def test_project_dedup_uses_name_or_url(store) -> None:
    await store.add_project(ProjectRecord(user_id="user-1", name="Portfolio Site", url="https://arivera.dev"))
    document = StructuredDocument.model_validate(
        {
            "projects": [
                {"name": "portfolio site", "url": "https://elsewhere.dev"},
                {"name": "Personal Website", "url": "https://ARIVERA.dev"},
                {"name": "Genuinely New"},
            ]
        }
    )

    report = await _engine(store).reconcile("user-1", document)

    assert (report.projects.added, report.projects.skipped) == (1, 2)


@pytest.mark.asyncio
async def test_users_are_isolated(store) -> None:
    document = StructuredDocument.model_validate(DOCUMENT)
    await _engine(store).reconcile("user-1", document)
    report = await _engine(store).reconcile("user-2", document)

    assert report.experience.added == 3
    assert len((await store.snapshot("user-1")).experience) == 3


@pytest.mark.asyncio
async def test_empty_document_changes_nothing(store) -> None:
    report = await _engine(store).reconcile("user-1", StructuredDocument())
    assert report.summary() == "No new data to add"
    snapshot = await store.snapshot("user-1")
    assert snapshot.profile is None


class _FlakySkillStore(InMemoryProfileStore):
    async def add_skill(self, record: SkillRecord) -> SkillRecord:
        if record.name == "Docker":
            raise ReconciliationPartialFailure("skill", "disk full")
        return await super().add_skill(record)


@pytest.mark.asyncio
async def test_partial_failure_is_counted_and_other_inserts_continue() -> None:
    store = _FlakySkillStore()
    report = await _engine(store).reconcile("user-1", StructuredDocument.model_validate(DOCUMENT))

    assert report.skills.failed == 1
    assert report.skills.added == 3
    assert report.experience.added == 3
    assert "Docker" not in {item.name for item in await store.list_skills("user-1")}

    # a failed insert is never recorded as known, so the next sync tries it again
    again = await _engine(store).reconcile("user-1", StructuredDocument.model_validate(DOCUMENT))
    assert (again.skills.added, again.skills.skipped, again.skills.failed) == (0, 3, 1)


def test_normalize_link() -> None:
    assert normalize_link("linkedin.com/in/alex") == "https://linkedin.com/in/alex"
    assert normalize_link(" https://alex.dev ") == "https://alex.dev"
    assert normalize_link("HTTP://alex.dev") == "HTTP://alex.dev"
