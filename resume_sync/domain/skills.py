"""Skill category taxonomy."""

from __future__ import annotations

from typing import List, Tuple, Union

from .documents import CategorizedSkills

SKILL_CATEGORIES = ("technical", "soft", "language", "tool", "framework", "other")
DEFAULT_SKILL_CATEGORY = "technical"
# flat lists carry no heading to classify by
UNCATEGORIZED_SKILL_CATEGORY = "other"


def map_category(category_name: str) -> str:
    """Map a free-form category heading onto the closed taxonomy.

    Order matters: "Programming Languages" is technical, not a spoken
    language, and "Frameworks & Tools" is a framework heading.
    """
    lower = (category_name or "").lower()
    if "language" in lower and "programming" not in lower:
        return "language"
    if "framework" in lower or "library" in lower or "libraries" in lower:
        return "framework"
    if "tool" in lower or "devops" in lower or "platform" in lower:
        return "tool"
    if "soft" in lower or "interpersonal" in lower:
        return "soft"
    return DEFAULT_SKILL_CATEGORY


def flatten_skills(skills: Union[CategorizedSkills, List[str], None]) -> List[Tuple[str, str]]:
    """``(name, category)`` pairs from a flat list or a categorized block."""
    if skills is None:
        return []
    if isinstance(skills, list):
        return [(name.strip(), UNCATEGORIZED_SKILL_CATEGORY) for name in skills if name and name.strip()]
    pairs: List[Tuple[str, str]] = []
    for category in skills.categories:
        mapped = map_category(category.name)
        pairs.extend((name.strip(), mapped) for name in category.skills if name and name.strip())
    return pairs
