import sqlite3
from dataclasses import replace
from pathlib import Path

import pytest

from levelpath.models import LearnerProgress
from levelpath.progress import SCHEMA_VERSION, ProgressStore


def test_profiles_start_with_empty_progress() -> None:
    store = ProgressStore(":memory:")
    profile = store.create_profile("alice")
    assert store.list_profiles()[0].name == "alice"
    assert store.get_profile(profile.id) == profile
    assert store.load_progress(profile.id) == LearnerProgress()


def test_duplicate_profile_name_raises() -> None:
    store = ProgressStore(":memory:")
    store.create_profile("same")
    with pytest.raises(sqlite3.IntegrityError):
        store.create_profile("same")


def test_save_and_load_progress_round_trip() -> None:
    store = ProgressStore(":memory:")
    profile = store.create_profile("bob")
    progress = replace(
        LearnerProgress(),
        current_level="elementary",
        current_xp=1200,
        total_xp=1250,
        average_accuracy=87.5,
        accuracy_samples=2,
        placement_test_taken=True,
        placement_level="elementary",
    )
    store.save_progress(profile.id, progress)
    assert store.load_progress(profile.id) == progress


def test_load_progress_missing_profile() -> None:
    store = ProgressStore(":memory:")
    assert store.load_progress(42) is None


def test_requirement_values_upsert() -> None:
    store = ProgressStore(":memory:")
    profile = store.create_profile("carol")
    store.set_requirement_current(profile.id, "lessons_completed", 3)
    store.set_requirement_current(profile.id, "lessons_completed", 5)
    store.set_requirement_current(profile.id, "streak_days", 2)
    assert store.requirement_values(profile.id) == {"lessons_completed": 5, "streak_days": 2}


def test_lesson_completion_recorded_once() -> None:
    store = ProgressStore(":memory:")
    profile = store.create_profile("dana")
    assert store.mark_lesson_completed(profile.id, "hello-world", 90.0) is True
    assert store.mark_lesson_completed(profile.id, "hello-world") is False
    assert store.completed_lesson_ids(profile.id) == {"hello-world"}


def test_placement_results_are_listed_in_order() -> None:
    store = ProgressStore(":memory:")
    profile = store.create_profile("eve")
    store.record_placement_result(profile.id, 30, "beginner", (0, None, 0, 1, 2))
    store.record_placement_result(profile.id, 110, "intermediate", (0, 2, 0, 0, 1))
    results = store.list_placement_results(profile.id)
    assert [result.score for result in results] == [30, 110]
    assert results[0].answers == (0, None, 0, 1, 2)
    assert results[1].recommended_level == "intermediate"


def test_delete_profile_removes_related_progress() -> None:
    store = ProgressStore(":memory:")
    profile = store.create_profile("remove-me")
    store.set_requirement_current(profile.id, "lessons_completed", 1)
    store.mark_lesson_completed(profile.id, "hello-world")
    store.record_placement_result(profile.id, 10, "beginner", (0,))

    assert store.delete_profile(profile.id) is True
    assert store.get_profile(profile.id) is None
    assert store.load_progress(profile.id) is None
    assert store.requirement_values(profile.id) == {}
    assert store.completed_lesson_ids(profile.id) == set()
    assert store.list_placement_results(profile.id) == []
    assert store.delete_profile(profile.id) is False


def test_migration_sets_user_version_and_schema_history() -> None:
    store = ProgressStore(":memory:")
    version = int(store._conn.execute("PRAGMA user_version").fetchone()[0])  # noqa: SLF001
    assert version == SCHEMA_VERSION
    rows = store._conn.execute("SELECT version FROM schema_migrations ORDER BY version").fetchall()  # noqa: SLF001
    assert [int(row["version"]) for row in rows] == [1]


def test_newer_schema_version_is_rejected(tmp_path: Path) -> None:
    db_path = tmp_path / "future.db"
    conn = sqlite3.connect(db_path)
    try:
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")
        conn.commit()
    finally:
        conn.close()
    with pytest.raises(RuntimeError, match="newer than supported"):
        ProgressStore(db_path)


def test_path_database_creation_and_reopen(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "progress.db"
    store = ProgressStore(db_path)
    profile = store.create_profile("frank")
    store.save_progress(profile.id, replace(LearnerProgress(), current_xp=42, total_xp=42))
    store.close()
    assert db_path.exists()

    reopened = ProgressStore(db_path)
    progress = reopened.load_progress(profile.id)
    assert progress is not None
    assert progress.current_xp == 42
    reopened.close()
