"""Resolve XP values to catalog levels.

All functions are pure over an immutable catalog. ``levels`` defaults to the
bundled catalog loaded once per process.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from functools import lru_cache

from .content_loader import load_levels
from .exceptions import LevelNotFoundError
from .models import Level, UnitLesson

log = logging.getLogger(__name__)


class OutOfRange(Enum):
    """What ``get_current_level`` returns when no level contains the XP."""

    FIRST = "first"
    CLAMP = "clamp"
    STRICT = "strict"


@dataclass(frozen=True)
class LevelPathEntry:
    """One level's state relative to an XP value."""

    level: Level
    current: bool
    completed: bool
    locked: bool


@lru_cache(maxsize=1)
def default_levels() -> tuple[Level, ...]:
    return load_levels()


def _catalog(levels: Sequence[Level] | None) -> Sequence[Level]:
    return default_levels() if levels is None else levels


def get_current_level(
    xp: int,
    levels: Sequence[Level] | None = None,
    policy: OutOfRange = OutOfRange.FIRST,
) -> Level:
    """Return the first level whose ``[min_xp, max_xp)`` contains ``xp``.

    Out-of-range XP (negative, or at/above the last ceiling) resolves per
    ``policy``: ``FIRST`` returns the first level, ``CLAMP`` the nearest end
    of the catalog, ``STRICT`` raises :class:`LevelNotFoundError`.
    """
    catalog = _catalog(levels)
    if not catalog:
        raise LevelNotFoundError(xp)
    for level in catalog:
        if level.contains(xp):
            return level

    if policy is OutOfRange.STRICT:
        raise LevelNotFoundError(xp)
    if policy is OutOfRange.CLAMP and xp >= catalog[-1].max_xp:
        log.debug("XP %s is above the catalog ceiling, clamping to %s", xp, catalog[-1].id)
        return catalog[-1]
    log.debug("XP %s is outside the catalog, falling back to %s", xp, catalog[0].id)
    return catalog[0]


def find_level(level_id: str, levels: Sequence[Level] | None = None) -> Level | None:
    for level in _catalog(levels):
        if level.id == level_id:
            return level
    return None


def get_next_level(level_id: str, levels: Sequence[Level] | None = None) -> Level | None:
    """Return the level after ``level_id`` in catalog order.

    Returns ``None`` both for the last level and for an unknown id.
    """
    catalog = _catalog(levels)
    for index, level in enumerate(catalog):
        if level.id == level_id:
            return catalog[index + 1] if index + 1 < len(catalog) else None
    return None


def level_progress_percent(xp: int, level: Level) -> float:
    """Position of ``xp`` inside ``level``'s range, bounded to 0-100."""
    percent = (xp - level.min_xp) * 100.0 / level.span
    return max(0.0, min(percent, 100.0))


def xp_to_next_level(
    xp: int,
    levels: Sequence[Level] | None = None,
    policy: OutOfRange = OutOfRange.FIRST,
) -> int | None:
    """XP still needed to reach the next level, or ``None`` at the top."""
    current = get_current_level(xp, levels, policy)
    following = get_next_level(current.id, levels)
    if following is None:
        return None
    return following.min_xp - xp


def level_path(
    xp: int,
    levels: Sequence[Level] | None = None,
    policy: OutOfRange = OutOfRange.FIRST,
) -> list[LevelPathEntry]:
    """Return every level with its completed/current/locked state for ``xp``."""
    catalog = _catalog(levels)
    current = get_current_level(xp, catalog, policy)
    return [
        LevelPathEntry(
            level=level,
            current=level.id == current.id,
            completed=xp >= level.max_xp,
            locked=xp < level.min_xp,
        )
        for level in catalog
    ]


def apply_requirement_progress(level: Level, values: Mapping[str, int]) -> Level:
    """Return a copy of ``level`` with requirement ``current`` values replaced.

    ``values`` is keyed by requirement type; types not present keep their value.
    """
    requirements = tuple(
        requirement.with_current(int(values[requirement.type])) if requirement.type in values else requirement
        for requirement in level.requirements
    )
    return replace(level, requirements=requirements)


def requirements_met(level: Level) -> bool:
    return all(requirement.met for requirement in level.requirements)


def find_lesson(lesson_id: str, levels: Sequence[Level] | None = None) -> tuple[Level, UnitLesson] | None:
    """Return the owning level and the lesson for ``lesson_id``."""
    for level in _catalog(levels):
        for unit in level.units:
            for lesson in unit.lessons:
                if lesson.id == lesson_id:
                    return (level, lesson)
    return None
