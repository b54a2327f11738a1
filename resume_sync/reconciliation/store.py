"""ProfileStore protocol and the in-memory implementation."""

from __future__ import annotations

import copy
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from typing_extensions import Protocol, runtime_checkable

from ..errors import ReconciliationPartialFailure
from .records import (
    PROFILE_FIELDS,
    EducationRecord,
    ProfileRecord,
    ProfileSnapshot,
    ProjectRecord,
    SkillRecord,
    WorkExperienceRecord,
    utc_now_iso,
)

PROJECT_UPDATE_FIELDS = ("description", "bullets", "skills", "url", "start_date", "end_date", "is_featured")


@runtime_checkable
class ProfileStore(Protocol):
    """Persistence for one user's profile collections.

    ``add_*`` and ``update_*`` raise ``ReconciliationPartialFailure`` when a
    single record cannot be written.
    """

    async def start(self) -> None: ...
    async def stop(self) -> None: ...

    async def get_profile(self, user_id: str) -> Optional[ProfileRecord]: ...
    async def update_profile(self, user_id: str, updates: Mapping[str, str]) -> ProfileRecord: ...

    async def list_experience(self, user_id: str) -> List[WorkExperienceRecord]: ...
    async def add_experience(self, record: WorkExperienceRecord) -> WorkExperienceRecord: ...

    async def list_education(self, user_id: str) -> List[EducationRecord]: ...
    async def add_education(self, record: EducationRecord) -> EducationRecord: ...

    async def list_skills(self, user_id: str) -> List[SkillRecord]: ...
    async def add_skill(self, record: SkillRecord) -> SkillRecord: ...

    async def list_projects(self, user_id: str) -> List[ProjectRecord]: ...
    async def add_project(self, record: ProjectRecord) -> ProjectRecord: ...
    async def update_project(self, user_id: str, project_id: str, updates: Mapping[str, Any]) -> ProjectRecord: ...

    async def snapshot(self, user_id: str) -> ProfileSnapshot: ...
    async def delete_user(self, user_id: str) -> int: ...


def _require(entity: str, **values: Any) -> None:
    missing = [name for name, value in values.items() if not (value or "").strip()]
    if missing:
        raise ReconciliationPartialFailure(entity, f"{entity} is missing {', '.join(missing)}", {"missing": missing})


def validate_profile_updates(updates: Mapping[str, str]) -> Dict[str, str]:
    unknown = sorted(set(updates) - set(PROFILE_FIELDS))
    if unknown:
        raise ReconciliationPartialFailure("profile", f"Unknown profile fields: {', '.join(unknown)}")
    return {key: value for key, value in updates.items() if value}


def validate_project_updates(updates: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(updates) - set(PROJECT_UPDATE_FIELDS))
    if unknown:
        raise ReconciliationPartialFailure("project", f"Unknown project fields: {', '.join(unknown)}")
    for key in ("bullets", "skills"):
        value = updates.get(key)
        if value is not None and not (isinstance(value, list) and all(isinstance(item, str) for item in value)):
            raise ReconciliationPartialFailure("project", f"{key} must be a list of strings", {"field": key})
    return dict(updates)


class InMemoryProfileStore:
    """Process-local store; data is lost on restart."""

    def __init__(self) -> None:
        self._profiles: Dict[str, ProfileRecord] = {}
        self._experience: Dict[str, List[WorkExperienceRecord]] = {}
        self._education: Dict[str, List[EducationRecord]] = {}
        self._skills: Dict[str, List[SkillRecord]] = {}
        self._projects: Dict[str, List[ProjectRecord]] = {}

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        profile = self._profiles.get(user_id)
        return copy.deepcopy(profile) if profile else None

    async def update_profile(self, user_id: str, updates: Mapping[str, str]) -> ProfileRecord:
        clean = validate_profile_updates(updates)
        current = self._profiles.get(user_id) or ProfileRecord(user_id=user_id)
        updated = replace(current, updated_at=utc_now_iso(), **clean)
        self._profiles[user_id] = updated
        return copy.deepcopy(updated)

    async def list_experience(self, user_id: str) -> List[WorkExperienceRecord]:
        return copy.deepcopy(self._experience.get(user_id, []))

    async def add_experience(self, record: WorkExperienceRecord) -> WorkExperienceRecord:
        _require("experience", company=record.company, position=record.position)
        self._experience.setdefault(record.user_id, []).append(copy.deepcopy(record))
        return record

    async def list_education(self, user_id: str) -> List[EducationRecord]:
        return copy.deepcopy(self._education.get(user_id, []))

    async def add_education(self, record: EducationRecord) -> EducationRecord:
        _require("education", institution=record.institution)
        self._education.setdefault(record.user_id, []).append(copy.deepcopy(record))
        return record

    async def list_skills(self, user_id: str) -> List[SkillRecord]:
        return copy.deepcopy(self._skills.get(user_id, []))

    async def add_skill(self, record: SkillRecord) -> SkillRecord:
        _require("skill", name=record.name)
        self._skills.setdefault(record.user_id, []).append(copy.deepcopy(record))
        return record

    async def list_projects(self, user_id: str) -> List[ProjectRecord]:
        return copy.deepcopy(self._projects.get(user_id, []))

    async def add_project(self, record: ProjectRecord) -> ProjectRecord:
        _require("project", name=record.name)
        self._projects.setdefault(record.user_id, []).append(copy.deepcopy(record))
        return record

    async def update_project(self, user_id: str, project_id: str, updates: Mapping[str, Any]) -> ProjectRecord:
        clean = validate_project_updates(updates)
        projects = self._projects.get(user_id, [])
        for index, project in enumerate(projects):
            if project.id == project_id:
                projects[index] = replace(project, updated_at=utc_now_iso(), **clean)
                return copy.deepcopy(projects[index])
        raise ReconciliationPartialFailure("project", f"Project not found: {project_id}", {"project_id": project_id})

    async def snapshot(self, user_id: str) -> ProfileSnapshot:
        return ProfileSnapshot(
            profile=await self.get_profile(user_id),
            experience=await self.list_experience(user_id),
            education=await self.list_education(user_id),
            skills=await self.list_skills(user_id),
            projects=await self.list_projects(user_id),
        )

    async def delete_user(self, user_id: str) -> int:
        removed = 1 if self._profiles.pop(user_id, None) else 0
        for table in (self._experience, self._education, self._skills, self._projects):
            removed += len(table.pop(user_id, []))
        return removed
