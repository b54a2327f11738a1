"""ProfileStore contract: in-memory and SQLite behave the same."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from resume_sync.errors import ConfigError, ReconciliationPartialFailure
from resume_sync.reconciliation import InMemoryProfileStore, ProfileStore, SQLiteProfileStore
from resume_sync.reconciliation.records import (
    EducationRecord,
    ProjectRecord,
    SkillRecord,
    WorkExperienceRecord,
)


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path: Path):
    profile_store = InMemoryProfileStore() if request.param == "memory" else SQLiteProfileStore(tmp_path / "store.db")
    await profile_store.start()
    yield profile_store
    await profile_store.stop()


@pytest.mark.asyncio
async def test_both_stores_satisfy_protocol(store) -> None:
    assert isinstance(store, ProfileStore)


@pytest.mark.asyncio
async def test_profile_upsert_merges_fields(store) -> None:
    assert await store.get_profile("user-1") is None

    await store.update_profile("user-1", {"full_name": "Alex", "phone": "555-0100"})
    profile = await store.update_profile("user-1", {"location": "Austin, TX", "phone": ""})

    assert profile.full_name == "Alex"
    assert profile.phone == "555-0100"
    assert profile.location == "Austin, TX"
    assert profile.updated_at.endswith("Z")


@pytest.mark.asyncio
async def test_unknown_profile_fields_are_rejected(store) -> None:
    with pytest.raises(ReconciliationPartialFailure) as exc_info:
        await store.update_profile("user-1", {"favourite_color": "green"})
    assert exc_info.value.entity == "profile"


@pytest.mark.asyncio
async def test_blank_required_fields_fail_the_single_insert(store) -> None:
    with pytest.raises(ReconciliationPartialFailure) as exc_info:
        await store.add_experience(WorkExperienceRecord(user_id="user-1", company="  ", position="Engineer", start_date="2020-01-01"))
    assert exc_info.value.entity == "experience"

    await store.add_education(EducationRecord(user_id="user-1", institution="UT", degree="", start_date="2014-01-01"))
    assert len(await store.list_education("user-1")) == 1


@pytest.mark.asyncio
async def test_records_round_trip(store) -> None:
    await store.add_experience(
        WorkExperienceRecord(
            user_id="user-1",
            company="Acme",
            position="Engineer",
            start_date="2021-03-01",
            achievements=["Shipped v2"],
            is_current=True,
        )
    )
    await store.add_skill(SkillRecord(user_id="user-1", name="Spanish", category="language"))
    await store.add_project(ProjectRecord(user_id="user-1", name="Site", bullets=["Fast"], skills=["Astro"]))

    snapshot = await store.snapshot("user-1")
    assert snapshot.experience[0].achievements == ["Shipped v2"]
    assert snapshot.experience[0].is_current is True
    assert snapshot.experience[0].end_date is None
    assert snapshot.skills[0].category == "language"
    assert snapshot.projects[0].skills == ["Astro"]
    assert snapshot.to_dict()["projects"][0]["bullets"] == ["Fast"]


@pytest.mark.asyncio
async def test_update_project_applies_known_fields(store) -> None:
    project = await store.add_project(ProjectRecord(user_id="user-1", name="Site", description="short"))

    updated = await store.update_project(
        "user-1",
        project.id,
        {"description": "a much longer description", "skills": ["Astro", "TypeScript"]},
    )

    assert updated.description == "a much longer description"
    assert updated.skills == ["Astro", "TypeScript"]
    assert updated.updated_at is not None

    with pytest.raises(ReconciliationPartialFailure):
        await store.update_project("user-1", project.id, {"name": "renamed"})
    with pytest.raises(ReconciliationPartialFailure):
        await store.update_project("user-1", project.id, {"skills": "Astro, TypeScript"})
    with pytest.raises(ReconciliationPartialFailure):
        await store.update_project("user-1", "proj_missing", {"description": "x"})
    with pytest.raises(ReconciliationPartialFailure):
        await store.update_project("user-2", project.id, {"description": "x"})


@pytest.mark.asyncio
async def test_delete_user_removes_everything_for_that_user_only(store) -> None:
    await store.update_profile("user-1", {"full_name": "Alex"})
    await store.add_skill(SkillRecord(user_id="user-1", name="Python"))
    await store.add_skill(SkillRecord(user_id="user-2", name="Go"))

    assert await store.delete_user("user-1") == 2
    assert (await store.snapshot("user-1")).profile is None
    assert [skill.name for skill in await store.list_skills("user-2")] == ["Go"]


@pytest.mark.asyncio
async def test_sqlite_store_persists_across_restart(tmp_path: Path) -> None:
    db_path = tmp_path / "data" / "profiles.db"
    first = SQLiteProfileStore(db_path)
    await first.start()
    await first.add_skill(SkillRecord(user_id="user-1", name="Python"))
    await first.stop()

    second = SQLiteProfileStore(db_path)
    await second.start()
    try:
        assert [skill.name for skill in await second.list_skills("user-1")] == ["Python"]
    finally:
        await second.stop()


@pytest.mark.asyncio
async def test_sqlite_check_constraint_is_a_partial_failure(tmp_path: Path) -> None:
    store = SQLiteProfileStore(tmp_path / "profiles.db")
    await store.start()
    try:
        with pytest.raises(ReconciliationPartialFailure) as exc_info:
            await store.add_skill(SkillRecord(user_id="user-1", name="Python", category="wizardry"))
        assert exc_info.value.entity == "skill"
        # the connection is still usable after the rollback
        await store.add_skill(SkillRecord(user_id="user-1", name="Python"))
        assert len(await store.list_skills("user-1")) == 1
    finally:
        await store.stop()


@pytest.mark.asyncio
async def test_sqlite_store_requires_start(tmp_path: Path) -> None:
    store = SQLiteProfileStore(tmp_path / "profiles.db")
    with pytest.raises(ConfigError):
        await store.list_skills("user-1")


class _VanishingProfileStore(SQLiteProfileStore):
    async def get_profile(self, user_id: str):
        return None


@pytest.mark.asyncio
async def test_sqlite_profile_upsert_raises_when_row_cannot_be_read_back(tmp_path: Path) -> None:
    store = _VanishingProfileStore(tmp_path / "profiles.db")
    await store.start()
    try:
        with pytest.raises(ReconciliationPartialFailure) as exc_info:
            await store.update_profile("user-1", {"full_name": "Alex Rivera"})
        assert exc_info.value.entity == "profile"
    finally:
        await store.stop()
