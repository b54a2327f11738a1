"""Domain models and pure rules for resume data."""

from .dates import DateRange, is_ongoing, normalize_date_range, parse_date
from .documents import (
    CategorizedSkills,
    ContactInfo,
    EducationEntry,
    ExperienceEntry,
    ProjectEntry,
    Section,
    SkillCategory,
    StructuredDocument,
    fallback_document,
)
from .normalization import decode_answer, parse_answer, strip_code_fences
from .skills import SKILL_CATEGORIES, flatten_skills, map_category

__all__ = [
    "CategorizedSkills",
    "ContactInfo",
    "DateRange",
    "EducationEntry",
    "ExperienceEntry",
    "ProjectEntry",
    "SKILL_CATEGORIES",
    "Section",
    "SkillCategory",
    "StructuredDocument",
    "decode_answer",
    "fallback_document",
    "flatten_skills",
    "is_ongoing",
    "map_category",
    "normalize_date_range",
    "parse_answer",
    "parse_date",
    "strip_code_fences",
]
