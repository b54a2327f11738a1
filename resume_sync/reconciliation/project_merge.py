"""AI-assisted project merge planning with a deterministic fallback."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..domain.dates import parse_date
from ..domain.documents import ProjectEntry
from ..domain.normalization import decode_answer
from ..domain.project_matching import fuzzy_match_project
from ..errors import ReconciliationPartialFailure, StructuringDegraded, TaskNotFound, TaskSubmissionError
from ..ingestion.prompts import MERGE_DECISIONS_FORMAT, merge_instructions
from ..providers.base import TaskClient
from ..providers.polling import wait_for_task
from ..providers.types import DEFAULT_ENGINE
from .records import ProjectRecord
from .store import ProfileStore

logger = logging.getLogger("resume_sync.reconciliation")

MERGEABLE_FIELDS = ("description", "bullets", "skills", "url")
_LIST_FIELDS = ("bullets", "skills")
_SPLIT_RE = re.compile(r"[,\n;]")


def _string_list(value: Any) -> Optional[List[str]]:
    if isinstance(value, str):
        value = _SPLIT_RE.split(value)
    if not isinstance(value, list):
        return None
    items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return items or None


def coerce_merged_data(merged: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only mergeable fields with the types the stores expect.

    List fields accept a list of strings or a delimited string; text fields
    must be non-blank strings. Anything else is dropped.
    """
    updates: Dict[str, Any] = {}
    for key in MERGEABLE_FIELDS:
        if key not in merged:
            continue
        value = merged[key]
        if key in _LIST_FIELDS:
            items = _string_list(value)
            if items is not None:
                updates[key] = items
        elif isinstance(value, str) and value.strip():
            updates[key] = value.strip()
    return updates


@dataclass
class AddDecision:
    project: ProjectEntry
    reason: str


@dataclass
class UpdateDecision:
    existing_id: str
    updates: Dict[str, Any]
    reason: str


@dataclass
class SkipDecision:
    project: ProjectEntry
    matched_with: str
    reason: str


@dataclass
class MergePlan:
    add: List[AddDecision] = field(default_factory=list)
    update: List[UpdateDecision] = field(default_factory=list)
    skip: List[SkipDecision] = field(default_factory=list)
    source: str = "ai"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "add": [{"project": item.project.to_wire(), "reason": item.reason} for item in self.add],
            "update": [asdict(item) for item in self.update],
            "skip": [
                {"project": item.project.to_wire(), "matched_with": item.matched_with, "reason": item.reason}
                for item in self.skip
            ],
        }


@dataclass
class AppliedCounts:
    added: int = 0
    updated: int = 0
    skipped: int = 0


@dataclass
class MergeOutcome:
    plan: MergePlan
    applied: AppliedCounts
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "message": self.message,
            "result": self.plan.to_dict(),
            "applied": asdict(self.applied),
        }


def fallback_plan(projects: List[ProjectEntry], existing: List[ProjectRecord]) -> MergePlan:
    plan = MergePlan(source="fallback")
    for project in projects:
        match = fuzzy_match_project(project.name, project.url, existing)
        if match is None:
            plan.add.append(AddDecision(project, "No matching project found"))
        else:
            plan.skip.append(
                SkipDecision(project, match.id, f'Matched with existing project "{match.name}" by name/URL')
            )
    return plan


def plan_from_answer(answer: Any, projects: List[ProjectEntry], existing: List[ProjectRecord]) -> MergePlan:
    """Map AI decisions onto the submitted projects.

    Decisions naming an unknown project are dropped, as are updates without an
    existing match or merged data.
    """
    decoded = decode_answer(answer)
    decisions = decoded.get("decisions") if isinstance(decoded, dict) else None
    if not isinstance(decisions, list):
        raise StructuringDegraded("Merge answer has no decisions list")

    by_name = {project.name.strip().lower(): project for project in projects}
    by_id = {record.id: record for record in existing}
    plan = MergePlan(source="ai")

    for decision in decisions:
        if not isinstance(decision, dict):
            continue
        project = by_name.get(str(decision.get("newProjectName") or "").strip().lower())
        if project is None:
            continue
        existing_id = decision.get("existingProjectId")
        matched = by_id.get(existing_id) if existing_id else None
        reason = decision.get("reason") or ""
        action = decision.get("action")

        if action == "add":
            plan.add.append(AddDecision(project, reason or "New project to add"))
        elif action == "update":
            merged = decision.get("mergedData")
            if matched is None or not isinstance(merged, dict):
                continue
            updates = coerce_merged_data(merged)
            if updates:
                plan.update.append(UpdateDecision(matched.id, updates, reason or "Updating with new information"))
        elif action == "skip":
            plan.skip.append(SkipDecision(project, matched.id if matched else (existing_id or "unknown"), reason or "Already exists"))
    return plan


def merge_message(applied: AppliedCounts) -> str:
    parts = []
    if applied.added > 0:
        parts.append(f"Added {applied.added} new projects")
    if applied.updated > 0:
        parts.append(f"Updated {applied.updated} projects")
    if applied.skipped > 0:
        parts.append(f"Skipped {applied.skipped} duplicates")
    return ", ".join(parts) or "No changes made"


class ProjectMergePlanner:
    """Decide add/update/skip for parsed projects against stored ones."""

    def __init__(
        self,
        client: TaskClient,
        store: ProfileStore,
        *,
        engine: str = DEFAULT_ENGINE,
        poll_interval: float = 2.0,
        max_wait: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.client = client
        self.store = store
        self.engine = engine
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._sleep = sleep
        self._clock = clock

    async def plan_and_apply(self, user_id: str, projects: List[ProjectEntry], auto_apply: bool = True) -> MergeOutcome:
        if not projects:
            return MergeOutcome(plan=MergePlan(source="none"), applied=AppliedCounts(), message="No projects to merge")

        existing = await self.store.list_projects(user_id)
        if not existing:
            plan = MergePlan(
                add=[AddDecision(project, "No existing projects to compare") for project in projects],
                source="none",
            )
        else:
            plan = await self.plan(projects, existing)

        applied = await self.apply(user_id, plan, auto_apply)
        logger.info(
            "project_merge user_id=%s source=%s added=%d updated=%d skipped=%d auto_apply=%s",
            user_id,
            plan.source,
            applied.added,
            applied.updated,
            applied.skipped,
            auto_apply,
        )
        return MergeOutcome(plan=plan, applied=applied, message=merge_message(applied))

    async def plan(self, projects: List[ProjectEntry], existing: List[ProjectRecord]) -> MergePlan:
        instructions = merge_instructions(
            [asdict(record) for record in existing],
            [project.to_wire() for project in projects],
        )
        try:
            task = await self.client.run(self.engine, instructions, tools=[], output_schema=MERGE_DECISIONS_FORMAT)
            outcome = await wait_for_task(
                self.client,
                task,
                poll_interval=self.poll_interval,
                max_wait=self.max_wait,
                sleep=self._sleep,
                clock=self._clock,
            )
            if not outcome.succeeded or not outcome.answer:
                logger.warning(
                    "project_merge_fallback task_id=%s status=%s timed_out=%s",
                    task.task_id,
                    outcome.task.status,
                    outcome.timed_out,
                )
                return fallback_plan(projects, existing)
            return plan_from_answer(outcome.answer, projects, existing)
        except (StructuringDegraded, TaskSubmissionError, TaskNotFound) as exc:
            logger.warning("project_merge_fallback error=%s", exc.message)
            return fallback_plan(projects, existing)
        except Exception:
            logger.exception("project_merge_error")
            return fallback_plan(projects, existing)

    async def apply(self, user_id: str, plan: MergePlan, auto_apply: bool) -> AppliedCounts:
        if not auto_apply:
            return AppliedCounts(added=len(plan.add), updated=len(plan.update), skipped=len(plan.skip))

        applied = AppliedCounts(skipped=len(plan.skip))
        for item in plan.add:
            start = parse_date(item.project.start_date)
            end = parse_date(item.project.end_date)
            record = ProjectRecord(
                user_id=user_id,
                name=item.project.name.strip(),
                description=item.project.description or None,
                bullets=list(item.project.bullets),
                skills=list(item.project.technologies),
                start_date=start.isoformat() if start else None,
                end_date=end.isoformat() if end else None,
                url=item.project.url or None,
            )
            try:
                await self.store.add_project(record)
            except ReconciliationPartialFailure as exc:
                logger.error("project_merge_add_failed user_id=%s error=%s", user_id, exc.message)
                continue
            applied.added += 1

        for update in plan.update:
            try:
                await self.store.update_project(user_id, update.existing_id, update.updates)
            except ReconciliationPartialFailure as exc:
                logger.error(
                    "project_merge_update_failed user_id=%s project_id=%s error=%s",
                    user_id,
                    update.existing_id,
                    exc.message,
                )
                continue
            applied.updated += 1
        return applied
