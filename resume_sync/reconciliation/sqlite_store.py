"""SQLite-backed profile store, durable across restarts."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import aiosqlite

from ..errors import ConfigError, ReconciliationPartialFailure
from .records import (
    EducationRecord,
    ProfileRecord,
    ProfileSnapshot,
    ProjectRecord,
    SkillRecord,
    WorkExperienceRecord,
    utc_now_iso,
)
from .store import validate_profile_updates, validate_project_updates

logger = logging.getLogger("resume_sync.reconciliation")

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS user_profiles (
    id TEXT PRIMARY KEY,
    email TEXT,
    full_name TEXT,
    phone TEXT,
    location TEXT,
    linkedin_url TEXT,
    github_url TEXT,
    website_url TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS work_experience (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    company TEXT NOT NULL CHECK (length(trim(company)) > 0),
    position TEXT NOT NULL CHECK (length(trim(position)) > 0),
    location TEXT,
    employment_type TEXT NOT NULL DEFAULT 'full-time',
    description TEXT,
    achievements_json TEXT NOT NULL DEFAULT '[]',
    skills_json TEXT NOT NULL DEFAULT '[]',
    start_date TEXT,
    end_date TEXT,
    is_current INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_work_experience_user ON work_experience(user_id);

CREATE TABLE IF NOT EXISTS education (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    institution TEXT NOT NULL CHECK (length(trim(institution)) > 0),
    degree TEXT NOT NULL DEFAULT '',
    field_of_study TEXT,
    location TEXT,
    gpa TEXT,
    description TEXT,
    achievements_json TEXT NOT NULL DEFAULT '[]',
    start_date TEXT,
    end_date TEXT,
    is_current INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_education_user ON education(user_id);

CREATE TABLE IF NOT EXISTS skills (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL CHECK (length(trim(name)) > 0),
    category TEXT NOT NULL DEFAULT 'technical'
        CHECK (category IN ('technical', 'soft', 'language', 'tool', 'framework', 'other')),
    proficiency TEXT NOT NULL DEFAULT 'intermediate',
    years_of_experience REAL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_skills_user ON skills(user_id);

CREATE TABLE IF NOT EXISTS user_projects (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL CHECK (length(trim(name)) > 0),
    description TEXT,
    bullets_json TEXT NOT NULL DEFAULT '[]',
    skills_json TEXT NOT NULL DEFAULT '[]',
    start_date TEXT,
    end_date TEXT,
    is_current INTEGER NOT NULL DEFAULT 0,
    url TEXT,
    is_featured INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_user_projects_user ON user_projects(user_id);
"""

_JSON_COLUMNS = {
    "achievements": "achievements_json",
    "skills": "skills_json",
    "bullets": "bullets_json",
}

# ---------------------------------------------------------------------------
# Helper: row -> record
# ---------------------------------------------------------------------------


def _json_list(value: Optional[str]) -> List[str]:
    return json.loads(value) if value else []


def _row_to_profile(row: aiosqlite.Row) -> ProfileRecord:
    return ProfileRecord(
        user_id=row["id"],
        full_name=row["full_name"],
        email=row["email"],
        phone=row["phone"],
        location=row["location"],
        linkedin_url=row["linkedin_url"],
        github_url=row["github_url"],
        website_url=row["website_url"],
        updated_at=row["updated_at"],
    )


def _row_to_experience(row: aiosqlite.Row) -> WorkExperienceRecord:
    return WorkExperienceRecord(
        id=row["id"],
        user_id=row["user_id"],
        company=row["company"],
        position=row["position"],
        location=row["location"],
        employment_type=row["employment_type"],
        description=row["description"],
        achievements=_json_list(row["achievements_json"]),
        skills=_json_list(row["skills_json"]),
        start_date=row["start_date"],
        end_date=row["end_date"],
        is_current=bool(row["is_current"]),
    )


def _row_to_education(row: aiosqlite.Row) -> EducationRecord:
    return EducationRecord(
        id=row["id"],
        user_id=row["user_id"],
        institution=row["institution"],
        degree=row["degree"],
        field_of_study=row["field_of_study"],
        location=row["location"],
        gpa=row["gpa"],
        description=row["description"],
        achievements=_json_list(row["achievements_json"]),
        start_date=row["start_date"],
        end_date=row["end_date"],
        is_current=bool(row["is_current"]),
    )


def _row_to_skill(row: aiosqlite.Row) -> SkillRecord:
    return SkillRecord(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        category=row["category"],
        proficiency=row["proficiency"],
        years_of_experience=row["years_of_experience"],
    )


def _row_to_project(row: aiosqlite.Row) -> ProjectRecord:
    return ProjectRecord(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        description=row["description"],
        bullets=_json_list(row["bullets_json"]),
        skills=_json_list(row["skills_json"]),
        start_date=row["start_date"],
        end_date=row["end_date"],
        is_current=bool(row["is_current"]),
        url=row["url"],
        is_featured=bool(row["is_featured"]),
        updated_at=row["updated_at"],
    )


class SQLiteProfileStore:
    """ProfileStore over a single aiosqlite connection in WAL mode."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db: Optional[aiosqlite.Connection] = None
        # Serializes execute/commit/rollback across concurrent sub-merges.
        self._write_lock = asyncio.Lock()

    async def start(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._db_path))
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.executescript(_SCHEMA_SQL)
        await self._db.commit()
        logger.info("profile_store_started path=%s", self._db_path)

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise ConfigError("SQLiteProfileStore used before start()")
        return self._db

    async def _fetch_all(self, sql: str, params: tuple) -> List[aiosqlite.Row]:
        async with self.db.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    async def _insert(self, entity: str, sql: str, params: tuple) -> None:
        async with self._write_lock:
            try:
                await self.db.execute(sql, params)
                await self.db.commit()
            except aiosqlite.Error as exc:
                await self.db.rollback()
                raise ReconciliationPartialFailure(entity, f"Could not insert {entity}: {exc}") from exc

    # -- profile -------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        rows = await self._fetch_all("SELECT * FROM user_profiles WHERE id = ?", (user_id,))
        return _row_to_profile(rows[0]) if rows else None

    async def update_profile(self, user_id: str, updates: Mapping[str, str]) -> ProfileRecord:
        clean = validate_profile_updates(updates)
        now = utc_now_iso()
        columns = sorted(clean)
        assignments = "".join(f", {col} = excluded.{col}" for col in columns)
        placeholders = ", ".join("?" for _ in columns)
        sql = (
            f"INSERT INTO user_profiles (id, created_at, updated_at{''.join(', ' + c for c in columns)}) "
            f"VALUES (?, ?, ?{', ' if columns else ''}{placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET updated_at = excluded.updated_at{assignments}"
        )
        await self._insert("profile", sql, (user_id, now, now, *(clean[c] for c in columns)))
        profile = await self.get_profile(user_id)
        if profile is None:
            raise ReconciliationPartialFailure("profile", "Profile row missing after upsert", {"user_id": user_id})
        return profile

    # -- experience ----------------------------------------------------------

    async def list_experience(self, user_id: str) -> List[WorkExperienceRecord]:
        rows = await self._fetch_all(
            "SELECT * FROM work_experience WHERE user_id = ? ORDER BY created_at, rowid", (user_id,)
        )
        return [_row_to_experience(row) for row in rows]

    async def add_experience(self, record: WorkExperienceRecord) -> WorkExperienceRecord:
        await self._insert(
            "experience",
            "INSERT INTO work_experience (id, user_id, company, position, location, employment_type, description, "
            "achievements_json, skills_json, start_date, end_date, is_current, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.user_id,
                record.company,
                record.position,
                record.location,
                record.employment_type,
                record.description,
                json.dumps(record.achievements),
                json.dumps(record.skills),
                record.start_date,
                record.end_date,
                int(record.is_current),
                utc_now_iso(),
            ),
        )
        return record

    # -- education -----------------------------------------------------------

    async def list_education(self, user_id: str) -> List[EducationRecord]:
        rows = await self._fetch_all("SELECT * FROM education WHERE user_id = ? ORDER BY created_at, rowid", (user_id,))
        return [_row_to_education(row) for row in rows]

    async def add_education(self, record: EducationRecord) -> EducationRecord:
        await self._insert(
            "education",
            "INSERT INTO education (id, user_id, institution, degree, field_of_study, location, gpa, description, "
            "achievements_json, start_date, end_date, is_current, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.user_id,
                record.institution,
                record.degree,
                record.field_of_study,
                record.location,
                record.gpa,
                record.description,
                json.dumps(record.achievements),
                record.start_date,
                record.end_date,
                int(record.is_current),
                utc_now_iso(),
            ),
        )
        return record

    # -- skills --------------------------------------------------------------

    async def list_skills(self, user_id: str) -> List[SkillRecord]:
        rows = await self._fetch_all("SELECT * FROM skills WHERE user_id = ? ORDER BY created_at, rowid", (user_id,))
        return [_row_to_skill(row) for row in rows]

    async def add_skill(self, record: SkillRecord) -> SkillRecord:
        await self._insert(
            "skill",
            "INSERT INTO skills (id, user_id, name, category, proficiency, years_of_experience, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.user_id,
                record.name,
                record.category,
                record.proficiency,
                record.years_of_experience,
                utc_now_iso(),
            ),
        )
        return record

    # -- projects ------------------------------------------------------------

    async def list_projects(self, user_id: str) -> List[ProjectRecord]:
        rows = await self._fetch_all(
            "SELECT * FROM user_projects WHERE user_id = ? ORDER BY created_at, rowid", (user_id,)
        )
        return [_row_to_project(row) for row in rows]

    async def add_project(self, record: ProjectRecord) -> ProjectRecord:
        await self._insert(
            "project",
            "INSERT INTO user_projects (id, user_id, name, description, bullets_json, skills_json, start_date, "
            "end_date, is_current, url, is_featured, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.user_id,
                record.name,
                record.description,
                json.dumps(record.bullets),
                json.dumps(record.skills),
                record.start_date,
                record.end_date,
                int(record.is_current),
                record.url,
                int(record.is_featured),
                utc_now_iso(),
            ),
        )
        return record

    async def update_project(self, user_id: str, project_id: str, updates: Mapping[str, Any]) -> ProjectRecord:
        clean = validate_project_updates(updates)
        values: Dict[str, Any] = {}
        for key, value in clean.items():
            if key in _JSON_COLUMNS:
                values[_JSON_COLUMNS[key]] = json.dumps(list(value or []))
            elif key == "is_featured":
                values[key] = int(bool(value))
            else:
                values[key] = value
        values["updated_at"] = utc_now_iso()
        assignments = ", ".join(f"{column} = ?" for column in values)
        async with self._write_lock:
            try:
                cursor = await self.db.execute(
                    f"UPDATE user_projects SET {assignments} WHERE id = ? AND user_id = ?",
                    (*values.values(), project_id, user_id),
                )
                await self.db.commit()
            except aiosqlite.Error as exc:
                await self.db.rollback()
                raise ReconciliationPartialFailure("project", f"Could not update project: {exc}") from exc
        if cursor.rowcount == 0:
            raise ReconciliationPartialFailure("project", f"Project not found: {project_id}", {"project_id": project_id})
        rows = await self._fetch_all("SELECT * FROM user_projects WHERE id = ?", (project_id,))
        return _row_to_project(rows[0])

    # -- whole profile -------------------------------------------------------

    async def snapshot(self, user_id: str) -> ProfileSnapshot:
        return ProfileSnapshot(
            profile=await self.get_profile(user_id),
            experience=await self.list_experience(user_id),
            education=await self.list_education(user_id),
            skills=await self.list_skills(user_id),
            projects=await self.list_projects(user_id),
        )

    async def delete_user(self, user_id: str) -> int:
        removed = 0
        async with self._write_lock:
            for table, column in (
                ("work_experience", "user_id"),
                ("education", "user_id"),
                ("skills", "user_id"),
                ("user_projects", "user_id"),
                ("user_profiles", "id"),
            ):
                cursor = await self.db.execute(f"DELETE FROM {table} WHERE {column} = ?", (user_id,))
                removed += cursor.rowcount
            await self.db.commit()
        logger.info("profile_deleted user_id=%s rows=%d", user_id, removed)
        return removed
