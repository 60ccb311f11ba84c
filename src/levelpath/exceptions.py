"""Exceptions raised by levelpath."""

from __future__ import annotations


class LevelPathError(Exception):
    """Base class for levelpath errors."""


class LevelNotFoundError(LevelPathError, LookupError):
    """No level matches an XP value or id."""

    def __init__(self, key: object) -> None:
        super().__init__(f"No level for {key!r}")
        self.key = key


class LessonNotFoundError(LevelPathError, LookupError):
    """Lesson id is not part of the catalog."""

    def __init__(self, lesson_id: str) -> None:
        super().__init__(f"Unknown lesson: {lesson_id}")
        self.lesson_id = lesson_id


class PlacementStateError(LevelPathError):
    """Placement session transition is not allowed in its current state."""


class ConfigError(LevelPathError):
    """Invalid environment configuration."""

    def __init__(self, name: str, expected: str) -> None:
        super().__init__(f"Invalid environment variable {name} (expected {expected})")
        self.name = name
        self.expected = expected
