"""Persisted profile records and reconciliation report types."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utc_now_iso() -> str:
    """Return current UTC time in ISO-8601 format."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def make_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


PROFILE_FIELDS = ("full_name", "email", "phone", "location", "linkedin_url", "github_url", "website_url")


@dataclass
class ProfileRecord:
    user_id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    website_url: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class WorkExperienceRecord:
    user_id: str
    company: str
    position: str
    start_date: str
    id: str = field(default_factory=lambda: make_id("exp"))
    location: Optional[str] = None
    employment_type: str = "full-time"
    description: Optional[str] = None
    achievements: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    end_date: Optional[str] = None
    is_current: bool = False

    @property
    def dedup_key(self) -> tuple:
        return (self.company.strip().lower(), self.position.strip().lower())


@dataclass
class EducationRecord:
    user_id: str
    institution: str
    degree: str
    start_date: str
    id: str = field(default_factory=lambda: make_id("edu"))
    field_of_study: Optional[str] = None
    location: Optional[str] = None
    gpa: Optional[str] = None
    description: Optional[str] = None
    achievements: List[str] = field(default_factory=list)
    end_date: Optional[str] = None
    is_current: bool = False

    @property
    def dedup_key(self) -> tuple:
        return (self.institution.strip().lower(), self.degree.strip().lower())


@dataclass
class SkillRecord:
    user_id: str
    name: str
    category: str = "technical"
    id: str = field(default_factory=lambda: make_id("skill"))
    proficiency: str = "intermediate"
    years_of_experience: Optional[float] = None

    @property
    def dedup_key(self) -> str:
        return self.name.strip().lower()


@dataclass
class ProjectRecord:
    user_id: str
    name: str
    id: str = field(default_factory=lambda: make_id("proj"))
    description: Optional[str] = None
    bullets: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_current: bool = False
    url: Optional[str] = None
    is_featured: bool = False
    updated_at: Optional[str] = None


@dataclass
class ProfileSnapshot:
    profile: Optional[ProfileRecord]
    experience: List[WorkExperienceRecord] = field(default_factory=list)
    education: List[EducationRecord] = field(default_factory=list)
    skills: List[SkillRecord] = field(default_factory=list)
    projects: List[ProjectRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProfileChange:
    updated: bool = False
    fields: List[str] = field(default_factory=list)


@dataclass
class EntityCounts:
    added: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass
class ProjectCounts:
    added: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass
class ReconciliationReport:
    profile: ProfileChange = field(default_factory=ProfileChange)
    experience: EntityCounts = field(default_factory=EntityCounts)
    education: EntityCounts = field(default_factory=EntityCounts)
    skills: EntityCounts = field(default_factory=EntityCounts)
    projects: ProjectCounts = field(default_factory=ProjectCounts)

    @property
    def total_skipped(self) -> int:
        return self.experience.skipped + self.education.skipped + self.skills.skipped + self.projects.skipped

    def summary(self) -> str:
        parts: List[str] = []
        if self.profile.updated:
            parts.append(f"Updated profile ({', '.join(self.profile.fields)})")
        if self.experience.added > 0:
            parts.append(f"{self.experience.added} experience{'s' if self.experience.added > 1 else ''}")
        if self.education.added > 0:
            parts.append(f"{self.education.added} education")
        if self.skills.added > 0:
            parts.append(f"{self.skills.added} skills")
        if self.projects.added > 0:
            parts.append(f"{self.projects.added} project{'s' if self.projects.added > 1 else ''}")

        message = f"Added: {', '.join(parts)}" if parts else "No new data to add"
        if self.total_skipped > 0:
            message += f" ({self.total_skipped} duplicates skipped)"
        return message

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
