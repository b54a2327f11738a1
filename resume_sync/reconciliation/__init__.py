"""Profile reconciliation: stores, the sync engine and the project merge planner."""

from .engine import ReconciliationEngine
from .project_merge import MergeOutcome, MergePlan, ProjectMergePlanner, fallback_plan
from .records import (
    EducationRecord,
    ProfileRecord,
    ProfileSnapshot,
    ProjectRecord,
    ReconciliationReport,
    SkillRecord,
    WorkExperienceRecord,
)
from .sqlite_store import SQLiteProfileStore
from .store import InMemoryProfileStore, ProfileStore

__all__ = [
    "EducationRecord",
    "InMemoryProfileStore",
    "MergeOutcome",
    "MergePlan",
    "ProfileRecord",
    "ProfileSnapshot",
    "ProfileStore",
    "ProjectMergePlanner",
    "ProjectRecord",
    "ReconciliationEngine",
    "ReconciliationReport",
    "SQLiteProfileStore",
    "SkillRecord",
    "WorkExperienceRecord",
    "fallback_plan",
]
