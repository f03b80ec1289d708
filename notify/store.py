"""Read-only access to timetable parent records and student recipients.

If DATABASE_URL is provided, uses SQLAlchemy (PostgreSQL or any SQLAlchemy
URL) and fails loudly when it cannot connect. Otherwise, reads a JSON file
with the same shape.
"""

from __future__ import annotations

import json
from typing import Any

from loguru import logger
from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine


class BaseTimetableStore:
    def get_parent_record(self, parent_id: str) -> dict[str, Any] | None:  # pragma: no cover - interface
        raise NotImplementedError

    def find_recipients(
        self, department: str, section: str, semester: int
    ) -> list[dict[str, Any]]:  # pragma: no cover - interface
        raise NotImplementedError


def read_json(path: str, default):
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return default
    except (OSError, ValueError) as e:
        logger.warning("Could not read JSON '{}': {}", path, e)
        return default


class FileTimetableStore(BaseTimetableStore):
    """In-memory store, optionally loaded from `{"timetables": {...}, "students": [...]}`."""

    def __init__(
        self,
        timetables: dict[str, dict[str, Any]] | None = None,
        students: list[dict[str, Any]] | None = None,
    ):
        self.timetables = timetables or {}
        self.students = students or []

    @classmethod
    def from_json(cls, path: str) -> FileTimetableStore:
        raw = read_json(path, {}) or {}
        if not isinstance(raw, dict):
            logger.warning("Unexpected store layout in '{}'; starting empty", path)
            raw = {}
        timetables: dict[str, dict[str, Any]] = {}
        for k, v in (raw.get("timetables") or {}).items():
            if not isinstance(v, dict):
                logger.warning("Skipping timetable {!r} in '{}': not an object", k, path)
                continue
            timetables[str(k)] = dict(v)
        students = [dict(s) for s in raw.get("students") or [] if isinstance(s, dict)]
        logger.debug(
            "File store loaded: {} timetables, {} students", len(timetables), len(students)
        )
        return cls(timetables, students)

    def get_parent_record(self, parent_id: str) -> dict[str, Any] | None:
        return self.timetables.get(parent_id)

    def find_recipients(self, department: str, section: str, semester: int) -> list[dict[str, Any]]:
        return [
            s
            for s in self.students
            if s.get("department") == department
            and s.get("section") == section
            and s.get("semester") == semester
        ]


class SATimetableStore(BaseTimetableStore):
    """SQLAlchemy-based store."""

    def __init__(self, database_url: str, *, token_field: str = "tokenId"):
        self.token_field = token_field
        self.database_url = self._normalize_url(database_url)
        self.engine: Engine = create_engine(self.database_url, future=True, pool_pre_ping=True)
        self.meta = MetaData()
        self.timetables = Table(
            "timetables",
            self.meta,
            Column("id", String, primary_key=True),
            Column("department", String, nullable=True),
            Column("section", String, nullable=True),
            # Free text on purpose: "Semester 7" and "7" both occur
            Column("semester", String, nullable=True),
        )
        self.students = Table(
            "students",
            self.meta,
            Column("id", String, primary_key=True),
            Column("department", String, nullable=False, index=True),
            Column("section", String, nullable=False),
            Column("semester", Integer, nullable=False),
            Column("token_id", String, nullable=True),
        )
        self._ensure_schema()

    @staticmethod
    def _normalize_url(url: str) -> str:
        # If driver not specified, default to pg8000 to avoid psycopg dependency
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://") :]
        if url.startswith("postgresql://") and "+" not in url.split("://", 1)[1].split(":", 1)[0]:
            return url.replace("postgresql://", "postgresql+pg8000://", 1)
        return url

    def _ensure_schema(self) -> None:
        try:
            self.meta.create_all(self.engine, tables=[self.timetables, self.students])
        except Exception:
            logger.exception("Could not create timetable tables")

    def get_parent_record(self, parent_id: str) -> dict[str, Any] | None:
        t = self.timetables
        with self.engine.connect() as conn:
            row = conn.execute(
                select(t.c.department, t.c.section, t.c.semester).where(t.c.id == parent_id)
            ).fetchone()
        if row is None:
            return None
        return {"department": row[0], "section": row[1], "semester": row[2]}

    def find_recipients(self, department: str, section: str, semester: int) -> list[dict[str, Any]]:
        s = self.students
        stmt = select(s.c.id, s.c.token_id).where(
            s.c.department == department,
            s.c.section == section,
            s.c.semester == semester,
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [
            {
                "id": r[0],
                "department": department,
                "section": section,
                "semester": semester,
                self.token_field: r[1],
            }
            for r in rows
        ]


def get_store(
    database_url: str | None, data_path: str, *, token_field: str = "tokenId"
) -> BaseTimetableStore:
    """SQLAlchemy store when a URL is configured, JSON file store otherwise.

    A configured but unusable database raises instead of degrading to the
    file store, which would report every update as having no recipients.
    """

    if database_url:
        logger.debug("Using SQLAlchemy store")
        return SATimetableStore(database_url, token_field=token_field)
    return FileTimetableStore.from_json(data_path)
