"""Load the level catalog and placement test from bundled JSON resources."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from importlib import resources
from pathlib import Path
from typing import Any

from .models import (
    LESSON_TYPES,
    QUESTION_TYPES,
    REQUIREMENT_TYPES,
    Level,
    PlacementQuestion,
    PlacementTest,
    Requirement,
    Unit,
    UnitLesson,
)

log = logging.getLogger(__name__)

CONTENT_PACKAGE = "levelpath.content"
LEVELS_DIR = "levels"
PLACEMENT_TEST_FILE = "placement_test.json"


def _lesson_from_dict(raw: dict[str, Any]) -> UnitLesson:
    """Build a unit lesson from raw JSON content."""
    lesson_type = str(raw["type"])
    if lesson_type not in LESSON_TYPES:
        raise ValueError(f"Lesson '{raw['id']}' has unknown type '{lesson_type}'.")
    score = raw.get("score")
    return UnitLesson(
        id=str(raw["id"]),
        title=str(raw["title"]),
        localized_title=str(raw.get("localized_title", "")),
        type=lesson_type,
        difficulty=str(raw["difficulty"]),
        xp_reward=int(raw.get("xp_reward", 0)),
        duration=int(raw.get("duration", 0)),
        completed=bool(raw.get("completed", False)),
        locked=bool(raw.get("locked", False)),
        score=int(score) if score is not None else None,
    )


def _unit_from_dict(raw: dict[str, Any]) -> Unit:
    """Build a unit from raw JSON content."""
    unit_id = str(raw["id"])
    progress = int(raw.get("progress", 0))
    if not 0 <= progress <= 100:
        raise ValueError(f"Unit '{unit_id}' progress {progress} is outside 0-100.")
    return Unit(
        id=unit_id,
        name=str(raw["name"]),
        localized_name=str(raw.get("localized_name", "")),
        description=str(raw.get("description", "")),
        lessons=tuple(_lesson_from_dict(item) for item in raw.get("lessons", [])),
        unlocked=bool(raw.get("unlocked", False)),
        completed=bool(raw.get("completed", False)),
        progress=progress,
        xp_reward=int(raw.get("xp_reward", 0)),
        estimated_time=int(raw.get("estimated_time", 0)),
    )


def _requirement_from_dict(level_id: str, raw: dict[str, Any]) -> Requirement:
    """Build a requirement from raw JSON content."""
    requirement_type = str(raw["type"])
    if requirement_type not in REQUIREMENT_TYPES:
        raise ValueError(f"Level '{level_id}' has unknown requirement type '{requirement_type}'.")
    return Requirement(
        type=requirement_type,
        target=int(raw["target"]),
        current=int(raw.get("current", 0)),
        description=str(raw.get("description", "")),
    )


def _level_from_dict(raw: dict[str, Any]) -> Level:
    """Build a level from raw JSON content."""
    level_id = str(raw["id"])
    return Level(
        id=level_id,
        name=str(raw["name"]),
        localized_name=str(raw.get("localized_name", "")),
        description=str(raw.get("description", "")),
        min_xp=int(raw["min_xp"]),
        max_xp=int(raw["max_xp"]),
        color=str(raw.get("color", "")),
        icon=str(raw.get("icon", "")),
        units=tuple(_unit_from_dict(item) for item in raw.get("units", [])),
        requirements=tuple(_requirement_from_dict(level_id, item) for item in raw.get("requirements", [])),
    )


def _question_from_dict(raw: dict[str, Any]) -> PlacementQuestion:
    """Build a placement question from raw JSON content."""
    question_type = str(raw.get("type", "multiple_choice"))
    if question_type not in QUESTION_TYPES:
        raise ValueError(f"Question '{raw['id']}' has unknown type '{question_type}'.")
    return PlacementQuestion(
        id=str(raw["id"]),
        type=question_type,
        question=str(raw["question"]),
        choices=tuple(str(choice) for choice in raw.get("choices", [])),
        correct_answer=int(raw["correct_answer"]),
        level=str(raw["level"]),
        points=int(raw["points"]),
        localized_text=raw.get("localized_text"),
        pinyin=raw.get("pinyin"),
        audio=raw.get("audio"),
    )


def _placement_test_from_dict(raw: dict[str, Any]) -> PlacementTest:
    """Build the placement test from raw JSON content."""
    return PlacementTest(
        id=str(raw["id"]),
        description=str(raw.get("description", "")),
        time_limit=int(raw["time_limit"]),
        questions=tuple(_question_from_dict(item) for item in raw.get("questions", [])),
    )


def _build_catalog(raw_levels: Iterable[dict[str, Any]]) -> tuple[Level, ...]:
    levels: dict[str, Level] = {}
    for raw in raw_levels:
        level = _level_from_dict(raw)
        if level.id in levels:
            raise ValueError(f"Duplicate level id: {level.id}")
        levels[level.id] = level
    ordered = tuple(sorted(levels.values(), key=lambda item: item.min_xp))
    _validate_xp_ranges(ordered)
    _validate_unique_content_ids(ordered)
    log.debug("Loaded %d levels", len(ordered))
    return ordered


def load_levels() -> tuple[Level, ...]:
    """Load the bundled level catalog, ordered by ``min_xp``."""
    root = resources.files(CONTENT_PACKAGE) / LEVELS_DIR
    raw_levels = [
        json.loads(entry.read_text(encoding="utf-8-sig"))
        for entry in sorted(root.iterdir(), key=lambda item: item.name)
        if entry.name.endswith(".json")
    ]
    return _build_catalog(raw_levels)


def load_levels_from_dir(path: Path) -> tuple[Level, ...]:
    """Load a level catalog from a directory for tests/tools."""
    raw_levels = [json.loads(file_path.read_text(encoding="utf-8-sig")) for file_path in sorted(path.glob("*.json"))]
    return _build_catalog(raw_levels)


def load_placement_test() -> PlacementTest:
    """Load the bundled placement test."""
    entry = resources.files(CONTENT_PACKAGE) / PLACEMENT_TEST_FILE
    test = _placement_test_from_dict(json.loads(entry.read_text(encoding="utf-8-sig")))
    _validate_placement_test(test)
    return test


def load_placement_test_from_file(path: Path) -> PlacementTest:
    """Load a placement test from a JSON file for tests/tools."""
    test = _placement_test_from_dict(json.loads(path.read_text(encoding="utf-8-sig")))
    _validate_placement_test(test)
    return test


def _validate_xp_ranges(levels: tuple[Level, ...]) -> None:
    """Validate ranges start at zero and are contiguous and non-empty."""
    if not levels:
        raise ValueError("Level catalog is empty.")
    if levels[0].min_xp != 0:
        raise ValueError(f"First level '{levels[0].id}' must start at 0 XP, not {levels[0].min_xp}.")
    for level in levels:
        if level.min_xp >= level.max_xp:
            raise ValueError(f"Level '{level.id}' has an empty XP range [{level.min_xp}, {level.max_xp}).")
    for previous, current in zip(levels, levels[1:]):
        if previous.max_xp != current.min_xp:
            raise ValueError(
                f"Levels '{previous.id}' and '{current.id}' are not contiguous "
                f"({previous.max_xp} != {current.min_xp})."
            )


def _validate_unique_content_ids(levels: tuple[Level, ...]) -> None:
    """Validate unit and lesson ids are unique across the catalog."""
    units: dict[str, str] = {}
    lessons: dict[str, str] = {}
    for level in levels:
        for unit in level.units:
            previous = units.get(unit.id)
            if previous is not None:
                raise ValueError(f"Duplicate unit id: {unit.id} (in {previous} and {level.id})")
            units[unit.id] = level.id
            for lesson in unit.lessons:
                previous = lessons.get(lesson.id)
                if previous is not None:
                    raise ValueError(f"Duplicate lesson id: {lesson.id} (in {previous} and {unit.id})")
                lessons[lesson.id] = unit.id


def _validate_placement_test(test: PlacementTest) -> None:
    """Validate question ids, answer indices, points and the time limit."""
    if test.time_limit <= 0:
        raise ValueError(f"Placement test '{test.id}' needs a positive time limit.")
    if not test.questions:
        raise ValueError(f"Placement test '{test.id}' has no questions.")
    seen: set[str] = set()
    for question in test.questions:
        if question.id in seen:
            raise ValueError(f"Duplicate question id: {question.id}")
        seen.add(question.id)
        if len(question.choices) < 2:
            raise ValueError(f"Question '{question.id}' needs at least two choices.")
        if not 0 <= question.correct_answer < len(question.choices):
            raise ValueError(
                f"Question '{question.id}' correct_answer {question.correct_answer} is outside its choices."
            )
        if question.points <= 0:
            raise ValueError(f"Question '{question.id}' must award positive points.")
