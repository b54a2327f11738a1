"""Structured resume document models.

Field names follow the camelCase wire format produced by the structuring
prompt; Python attributes are snake_case and both spellings are accepted on
input. Serialize with ``to_wire()`` to get the camelCase shape back.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(item) for item in value if item is not None and str(item).strip()]


class ContactInfo(_WireModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None
    website: Optional[str] = None


class ExperienceEntry(_WireModel):
    id: Optional[str] = None
    company: str
    position: Optional[str] = None
    title: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    bullets: List[str] = Field(default_factory=list)
    description: Optional[str] = None

    @field_validator("bullets", mode="before")
    @classmethod
    def _bullets_as_list(cls, value: Any) -> List[str]:
        return _as_str_list(value)


class EducationEntry(_WireModel):
    id: Optional[str] = None
    institution: str
    degree: str = ""
    field: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    gpa: Optional[str] = None
    highlights: List[str] = Field(default_factory=list)

    @field_validator("highlights", mode="before")
    @classmethod
    def _highlights_as_list(cls, value: Any) -> List[str]:
        return _as_str_list(value)

    @field_validator("gpa", mode="before")
    @classmethod
    def _gpa_as_text(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class SkillCategory(_WireModel):
    name: str
    skills: List[str] = Field(default_factory=list)

    @field_validator("skills", mode="before")
    @classmethod
    def _skills_as_list(cls, value: Any) -> List[str]:
        return _as_str_list(value)


class CategorizedSkills(_WireModel):
    format: Optional[str] = "categorized"
    categories: List[SkillCategory] = Field(default_factory=list)


class ProjectEntry(_WireModel):
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    url: Optional[str] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    bullets: List[str] = Field(default_factory=list)

    @field_validator("technologies", "bullets", mode="before")
    @classmethod
    def _lists_as_list(cls, value: Any) -> List[str]:
        return _as_str_list(value)


class Section(_WireModel):
    title: str
    content: str = ""
    order: int = 0


class StructuredDocument(_WireModel):
    contact_info: ContactInfo = Field(default_factory=ContactInfo, alias="contactInfo")
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    skills: Union[CategorizedSkills, List[str], None] = None
    projects: List[ProjectEntry] = Field(default_factory=list)
    sections: List[Section] = Field(default_factory=list)

    @field_validator("contact_info", mode="before")
    @classmethod
    def _contact_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("experience", "education", "projects", "sections", mode="before")
    @classmethod
    def _list_default(cls, value: Any) -> Any:
        return [] if value is None else value

    def assign_ids(self) -> "StructuredDocument":
        """Give every list entry a document-local id (``exp-1``, ``edu-1``, ``proj-1``)."""
        for prefix, entries in (("exp", self.experience), ("edu", self.education), ("proj", self.projects)):
            taken = {entry.id for entry in entries if entry.id}
            counter = 0
            for entry in entries:
                if entry.id:
                    continue
                counter += 1
                while f"{prefix}-{counter}" in taken:
                    counter += 1
                entry.id = f"{prefix}-{counter}"
                taken.add(entry.id)
        return self

    def skill_names(self) -> List[str]:
        if self.skills is None:
            return []
        if isinstance(self.skills, list):
            return list(self.skills)
        return [name for category in self.skills.categories for name in category.skills]

    @property
    def is_fallback(self) -> bool:
        return (
            not self.experience
            and not self.education
            and not self.projects
            and not self.skill_names()
            and len(self.sections) == 1
            and self.sections[0].title == "Resume"
        )


def fallback_document(raw_text: str) -> StructuredDocument:
    """Raw text as one ``Resume`` section with every structured field empty."""
    return StructuredDocument(
        contact_info=ContactInfo(),
        experience=[],
        education=[],
        skills=[],
        projects=[],
        sections=[Section(title="Resume", content=raw_text, order=0)],
    )
