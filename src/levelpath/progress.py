"""SQLite persistence for profiles, learner progress and placement results."""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict, dataclass, fields
from datetime import UTC, datetime
from pathlib import Path

from .models import LearnerProgress

log = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_PROGRESS_COLUMNS = tuple(item.name for item in fields(LearnerProgress))


@dataclass(frozen=True)
class Profile:
    """User profile record."""

    id: int
    name: str


@dataclass(frozen=True)
class PlacementResult:
    """One finished placement attempt."""

    id: int
    score: int
    recommended_level: str
    answers: tuple[int | None, ...]
    completed_at: str


class ProgressStore:
    """Database access layer for learner progress."""

    def __init__(self, db_path: Path | str) -> None:
        """Open the database and bring its schema up to date."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )
            log.debug("Applied schema migration %d", version)

    def _migrate_to_v1(self) -> None:
        """Create profile, progress, requirement, lesson and placement tables."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS learner_progress (
                    profile_id INTEGER PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
                    current_level TEXT NOT NULL,
                    current_xp INTEGER NOT NULL,
                    total_xp INTEGER NOT NULL,
                    units_completed INTEGER NOT NULL,
                    lessons_completed INTEGER NOT NULL,
                    vocabulary_learned INTEGER NOT NULL,
                    conversations_completed INTEGER NOT NULL,
                    streak_days INTEGER NOT NULL,
                    average_accuracy REAL NOT NULL,
                    accuracy_samples INTEGER NOT NULL,
                    time_spent INTEGER NOT NULL,
                    placement_test_taken INTEGER NOT NULL,
                    placement_level TEXT,
                    updated_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS requirement_progress (
                    profile_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                    requirement_type TEXT NOT NULL,
                    current INTEGER NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (profile_id, requirement_type)
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS lesson_completions (
                    profile_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                    lesson_id TEXT NOT NULL,
                    accuracy REAL,
                    completed_at TEXT NOT NULL,
                    PRIMARY KEY (profile_id, lesson_id)
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS placement_results (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    profile_id INTEGER NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                    score INTEGER NOT NULL,
                    recommended_level TEXT NOT NULL,
                    answers TEXT NOT NULL,
                    completed_at TEXT NOT NULL
                )
                """)

    @staticmethod
    def _profile(row: sqlite3.Row) -> Profile:
        return Profile(id=int(row["id"]), name=str(row["name"]))

    def list_profiles(self) -> list[Profile]:
        """Return learner profiles sorted by name."""
        return [self._profile(row) for row in self._conn.execute("SELECT id, name FROM profiles ORDER BY name")]

    def create_profile(self, name: str) -> Profile:
        """Insert a profile and its beginner progress snapshot.

        Raises ``sqlite3.IntegrityError`` when the name is taken.
        """
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO profiles (name, created_at) VALUES (?, ?)",
                (name, datetime.now(UTC).isoformat()),
            )
        if cursor.lastrowid is None:
            raise RuntimeError(f"Profile {name!r} was not stored.")
        profile = Profile(id=cursor.lastrowid, name=name)
        self.save_progress(profile.id, LearnerProgress())
        log.debug("Created profile %s (%s)", profile.id, name)
        return profile

    def get_profile(self, profile_id: int) -> Profile | None:
        row = self._conn.execute("SELECT id, name FROM profiles WHERE id = ?", (profile_id,)).fetchone()
        return None if row is None else self._profile(row)

    def delete_profile(self, profile_id: int) -> bool:
        """Remove a profile; progress, requirements, lessons and placements cascade."""
        with self._conn:
            deleted = self._conn.execute("DELETE FROM profiles WHERE id = ?", (profile_id,)).rowcount
        return deleted > 0

    def load_progress(self, profile_id: int) -> LearnerProgress | None:
        columns = ", ".join(_PROGRESS_COLUMNS)
        row = self._conn.execute(
            f"SELECT {columns} FROM learner_progress WHERE profile_id = ?",
            (profile_id,),
        ).fetchone()
        if row is None:
            return None
        values = {name: row[name] for name in _PROGRESS_COLUMNS}
        values["placement_test_taken"] = bool(values["placement_test_taken"])
        values["average_accuracy"] = float(values["average_accuracy"])
        return LearnerProgress(**values)

    def save_progress(self, profile_id: int, progress: LearnerProgress) -> None:
        """Insert or replace the progress snapshot for a profile."""
        values = asdict(progress)
        values["placement_test_taken"] = int(progress.placement_test_taken)
        columns = ", ".join(_PROGRESS_COLUMNS)
        placeholders = ", ".join("?" for _ in _PROGRESS_COLUMNS)
        updates = ", ".join(f"{name} = excluded.{name}" for name in _PROGRESS_COLUMNS)
        with self._conn:
            self._conn.execute(
                f"""
                INSERT INTO learner_progress (profile_id, {columns}, updated_at)
                VALUES (?, {placeholders}, ?)
                ON CONFLICT(profile_id) DO UPDATE SET {updates}, updated_at = excluded.updated_at
                """,
                (profile_id, *(values[name] for name in _PROGRESS_COLUMNS), datetime.now(UTC).isoformat()),
            )

    def set_requirement_current(self, profile_id: int, requirement_type: str, current: int) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO requirement_progress (profile_id, requirement_type, current, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(profile_id, requirement_type) DO UPDATE SET
                    current = excluded.current,
                    updated_at = excluded.updated_at
                """,
                (profile_id, requirement_type, current, datetime.now(UTC).isoformat()),
            )

    def requirement_values(self, profile_id: int) -> dict[str, int]:
        """Return stored requirement ``current`` values keyed by type."""
        rows = self._conn.execute(
            "SELECT requirement_type, current FROM requirement_progress WHERE profile_id = ?",
            (profile_id,),
        ).fetchall()
        return {str(row["requirement_type"]): int(row["current"]) for row in rows}

    def mark_lesson_completed(self, profile_id: int, lesson_id: str, accuracy: float | None = None) -> bool:
        """Record a lesson completion; return False when it was already recorded."""
        with self._conn:
            cursor = self._conn.execute(
                """
                INSERT OR IGNORE INTO lesson_completions (profile_id, lesson_id, accuracy, completed_at)
                VALUES (?, ?, ?, ?)
                """,
                (profile_id, lesson_id, accuracy, datetime.now(UTC).isoformat()),
            )
        return cursor.rowcount > 0

    def completed_lesson_ids(self, profile_id: int) -> set[str]:
        rows = self._conn.execute(
            "SELECT lesson_id FROM lesson_completions WHERE profile_id = ?",
            (profile_id,),
        ).fetchall()
        return {str(row["lesson_id"]) for row in rows}

    def record_placement_result(
        self, profile_id: int, score: int, recommended_level: str, answers: tuple[int | None, ...]
    ) -> PlacementResult:
        now = datetime.now(UTC).isoformat()
        with self._conn:
            cursor = self._conn.execute(
                """
                INSERT INTO placement_results (profile_id, score, recommended_level, answers, completed_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (profile_id, score, recommended_level, json.dumps(list(answers)), now),
            )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Could not record placement result.")
        return PlacementResult(
            id=int(row_id),
            score=score,
            recommended_level=recommended_level,
            answers=answers,
            completed_at=now,
        )

    def list_placement_results(self, profile_id: int) -> list[PlacementResult]:
        """Return placement attempts, oldest first."""
        rows = self._conn.execute(
            """
            SELECT id, score, recommended_level, answers, completed_at
            FROM placement_results
            WHERE profile_id = ?
            ORDER BY id ASC
            """,
            (profile_id,),
        ).fetchall()
        return [
            PlacementResult(
                id=int(row["id"]),
                score=int(row["score"]),
                recommended_level=str(row["recommended_level"]),
                answers=tuple(json.loads(row["answers"])),
                completed_at=str(row["completed_at"]),
            )
            for row in rows
        ]

    def close(self) -> None:
        """Close the SQLite connection."""
        self._conn.close()
