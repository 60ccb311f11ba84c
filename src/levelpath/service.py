"""Application service for profiles, level progress and placement tests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from . import state
from .content_loader import load_levels, load_placement_test
from .exceptions import LessonNotFoundError, LevelNotFoundError, PlacementStateError
from .levels import (
    LevelPathEntry,
    OutOfRange,
    apply_requirement_progress,
    find_lesson,
    find_level,
    get_current_level,
    get_next_level,
    level_path,
    level_progress_percent,
    requirements_met,
    xp_to_next_level,
)
from .models import REQUIREMENT_TYPES, LearnerProgress, Level, PlacementTest
from .placement import PlacementSession
from .progress import PlacementResult, Profile, ProgressStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LevelOverview:
    """Level standing for one profile."""

    progress: LearnerProgress
    current_level: Level
    next_level: Level | None
    percent: float
    xp_to_next: int | None
    requirements_met: bool
    path: tuple[LevelPathEntry, ...]


@dataclass(frozen=True)
class LessonOutcome:
    """Result of crediting one lesson."""

    lesson_id: str
    xp_awarded: int
    first_completion: bool
    previous_level: str
    progress: LearnerProgress

    @property
    def leveled_up(self) -> bool:
        return self.progress.current_level != self.previous_level


class LevelService:
    """Coordinates profile state, the level catalog and placement flows."""

    def __init__(self, db_path: Path | str) -> None:
        self.levels = load_levels()
        self.placement_test: PlacementTest = load_placement_test()
        self.progress = ProgressStore(db_path)

    def list_profiles(self) -> list[Profile]:
        return self.progress.list_profiles()

    def create_profile(self, name: str) -> Profile:
        return self.progress.create_profile(name.strip())

    def delete_profile(self, profile_id: int) -> bool:
        return self.progress.delete_profile(profile_id)

    def get_progress(self, profile_id: int) -> LearnerProgress:
        """Return stored progress, raising ``KeyError`` for unknown profiles."""
        progress = self.progress.load_progress(profile_id)
        if progress is None:
            raise KeyError(profile_id)
        return progress

    def level_overview(self, profile_id: int) -> LevelOverview:
        """Return current/next level, range progress, requirements and path."""
        progress = self.get_progress(profile_id)
        xp = progress.current_xp
        current = get_current_level(xp, self.levels, OutOfRange.CLAMP)
        current = apply_requirement_progress(current, self.progress.requirement_values(profile_id))
        return LevelOverview(
            progress=progress,
            current_level=current,
            next_level=get_next_level(current.id, self.levels),
            percent=level_progress_percent(xp, current),
            xp_to_next=xp_to_next_level(xp, self.levels, OutOfRange.CLAMP),
            requirements_met=requirements_met(current),
            path=tuple(level_path(xp, self.levels, OutOfRange.CLAMP)),
        )

    def level_details(self, level_id: str) -> Level:
        level = find_level(level_id, self.levels)
        if level is None:
            raise LevelNotFoundError(level_id)
        return level

    def complete_lesson(
        self, profile_id: int, lesson_id: str, accuracy: float | None = None, vocabulary: int = 0
    ) -> LessonOutcome:
        """Credit a lesson; XP is only awarded the first time it is completed.

        Accuracy and vocabulary are validated before anything is written.
        """
        found = find_lesson(lesson_id, self.levels)
        if found is None:
            raise LessonNotFoundError(lesson_id)
        level, lesson = found
        before = self.get_progress(profile_id)
        credited = state.lesson_completed(before, lesson, self.levels, accuracy=accuracy, vocabulary=vocabulary)
        first = self.progress.mark_lesson_completed(profile_id, lesson_id, accuracy)
        if first:
            after = credited
            unit = next(unit for unit in level.units if any(item.id == lesson_id for item in unit.lessons))
            done = self.progress.completed_lesson_ids(profile_id)
            if all(item.id in done for item in unit.lessons):
                after = state.unit_completed(after)
            self.progress.save_progress(profile_id, after)
        else:
            after = before
        xp_awarded = after.total_xp - before.total_xp
        log.info("Profile %s completed lesson %s (+%d XP)", profile_id, lesson_id, xp_awarded)
        return LessonOutcome(
            lesson_id=lesson_id,
            xp_awarded=xp_awarded,
            first_completion=first,
            previous_level=before.current_level,
            progress=after,
        )

    def complete_conversation(self, profile_id: int, xp: int) -> LearnerProgress:
        progress = state.conversation_completed(self.get_progress(profile_id), xp, self.levels)
        self.progress.save_progress(profile_id, progress)
        return progress

    def record_streak(self, profile_id: int, days: int) -> LearnerProgress:
        progress = state.record_streak(self.get_progress(profile_id), days)
        self.progress.save_progress(profile_id, progress)
        return progress

    def update_requirement(self, profile_id: int, requirement_type: str, current: int) -> None:
        """Set the tracked ``current`` value for one requirement type."""
        if requirement_type not in REQUIREMENT_TYPES:
            raise ValueError(f"Unknown requirement type: {requirement_type}")
        if current < 0:
            raise ValueError(f"Requirement progress must not be negative, got {current}.")
        self.get_progress(profile_id)
        self.progress.set_requirement_current(profile_id, requirement_type, current)

    def new_placement_session(self) -> PlacementSession:
        return PlacementSession.begin(self.placement_test)

    def submit_placement(self, profile_id: int, session: PlacementSession) -> PlacementResult:
        """Store a placement attempt, completing the session first if needed."""
        self.get_progress(profile_id)
        if not session.completed:
            session = session.complete(datetime.now(UTC))
        if session.recommended_level is None:
            raise PlacementStateError("Completed placement session has no recommended level.")
        return self.progress.record_placement_result(
            profile_id, session.score, session.recommended_level, session.answers
        )

    def accept_placement(self, profile_id: int, level_id: str) -> LearnerProgress:
        progress = state.accept_placement(self.get_progress(profile_id), level_id, self.levels)
        self.progress.save_progress(profile_id, progress)
        log.info("Profile %s placed at %s", profile_id, level_id)
        return progress

    def close(self) -> None:
        self.progress.close()
