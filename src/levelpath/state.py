"""Pure transitions over :class:`LearnerProgress`.

Each function takes a progress snapshot and returns a new one; nothing here
touches storage.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from .exceptions import LevelNotFoundError
from .levels import OutOfRange, find_level, get_current_level
from .models import LearnerProgress, Level, UnitLesson

log = logging.getLogger(__name__)


def new_progress() -> LearnerProgress:
    return LearnerProgress()


def award_xp(progress: LearnerProgress, amount: int, levels: Sequence[Level] | None = None) -> LearnerProgress:
    """Add XP and re-resolve the current level, clamping past the top tier."""
    if amount < 0:
        raise ValueError(f"XP award must not be negative, got {amount}.")
    current_xp = progress.current_xp + amount
    level = get_current_level(current_xp, levels, OutOfRange.CLAMP)
    if level.id != progress.current_level:
        log.info("Level changed %s -> %s at %d XP", progress.current_level, level.id, current_xp)
    return replace(
        progress,
        current_xp=current_xp,
        total_xp=progress.total_xp + amount,
        current_level=level.id,
    )


def lesson_completed(
    progress: LearnerProgress,
    lesson: UnitLesson,
    levels: Sequence[Level] | None = None,
    accuracy: float | None = None,
    vocabulary: int = 0,
) -> LearnerProgress:
    """Credit one finished lesson: XP, counters, time spent and running accuracy."""
    if vocabulary < 0:
        raise ValueError(f"Vocabulary count must not be negative, got {vocabulary}.")
    average = progress.average_accuracy
    samples = progress.accuracy_samples
    if accuracy is not None:
        if not 0 <= accuracy <= 100:
            raise ValueError(f"Accuracy must be within 0-100, got {accuracy}.")
        average = (average * samples + accuracy) / (samples + 1)
        samples += 1
    updated = replace(
        progress,
        lessons_completed=progress.lessons_completed + 1,
        vocabulary_learned=progress.vocabulary_learned + vocabulary,
        time_spent=progress.time_spent + lesson.duration,
        average_accuracy=average,
        accuracy_samples=samples,
    )
    return award_xp(updated, lesson.xp_reward, levels)


def conversation_completed(
    progress: LearnerProgress, xp: int, levels: Sequence[Level] | None = None
) -> LearnerProgress:
    updated = replace(progress, conversations_completed=progress.conversations_completed + 1)
    return award_xp(updated, xp, levels)


def unit_completed(progress: LearnerProgress) -> LearnerProgress:
    """Count a unit whose lessons are now all completed."""
    return replace(progress, units_completed=progress.units_completed + 1)


def record_streak(progress: LearnerProgress, days: int) -> LearnerProgress:
    if days < 0:
        raise ValueError(f"Streak must not be negative, got {days}.")
    return replace(progress, streak_days=days)


def accept_placement(
    progress: LearnerProgress, level_id: str, levels: Sequence[Level] | None = None
) -> LearnerProgress:
    """Adopt a placement recommendation.

    XP below the placed level's floor is raised to that floor so the resolver
    agrees with the placement.
    """
    level = find_level(level_id, levels)
    if level is None:
        raise LevelNotFoundError(level_id)
    current_xp = max(progress.current_xp, level.min_xp)
    resolved = get_current_level(current_xp, levels, OutOfRange.CLAMP)
    return replace(
        progress,
        placement_test_taken=True,
        placement_level=level.id,
        current_level=resolved.id,
        current_xp=current_xp,
        total_xp=max(progress.total_xp, current_xp),
    )
