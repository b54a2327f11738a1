"""Deterministic project matching rules."""

from __future__ import annotations

from typing import Iterable, Optional, TypeVar

from typing_extensions import Protocol


class NamedProject(Protocol):
    name: str
    url: Optional[str]


P = TypeVar("P", bound=NamedProject)


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_duplicate_project(name: str, url: Optional[str], known_names: set, known_urls: set) -> bool:
    """Sync-time rule: a lowercased name match OR a lowercased URL match."""
    if _norm(name) in known_names:
        return True
    url_key = _norm(url)
    return bool(url_key) and url_key in known_urls


def fuzzy_match_project(name: str, url: Optional[str], existing: Iterable[P]) -> Optional[P]:
    """Merge-time fallback rule.

    Matches on equal names, on one name containing the other
    ("JARVIS" vs "JARVIS AI Companion"), or on equal URLs.
    """
    new_name = _norm(name)
    new_url = _norm(url)
    for candidate in existing:
        candidate_name = _norm(candidate.name)
        if new_name and candidate_name and (
            new_name == candidate_name or new_name in candidate_name or candidate_name in new_name
        ):
            return candidate
        candidate_url = _norm(candidate.url)
        if new_url and candidate_url and new_url == candidate_url:
            return candidate
    return None
