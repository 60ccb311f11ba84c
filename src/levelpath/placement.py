"""Placement test scoring and session state.

``PlacementSession`` is an immutable value; every transition returns a new
session. Callers pass ``now`` explicitly so timing is deterministic in tests.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime

from .exceptions import PlacementStateError
from .models import PlacementQuestion, PlacementTest

log = logging.getLogger(__name__)

# Minimum score for each label, highest first.
PLACEMENT_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (140, "advanced"),
    (100, "intermediate"),
    (60, "elementary"),
)
DEFAULT_PLACEMENT_LEVEL = "beginner"


def calculate_placement_level(score: int) -> str:
    """Map a placement score to a level id. There is no upper bound."""
    for minimum, level_id in PLACEMENT_THRESHOLDS:
        if score >= minimum:
            return level_id
    return DEFAULT_PLACEMENT_LEVEL


def score_answers(test: PlacementTest, answers: Sequence[int | None]) -> int:
    """Sum points of questions whose selected index is the correct answer.

    Answers are positional; missing or ``None`` entries score nothing.
    """
    total = 0
    for index, question in enumerate(test.questions):
        selected = answers[index] if index < len(answers) else None
        if selected is not None and selected == question.correct_answer:
            total += question.points
    return total


def achievable_scores(test: PlacementTest) -> set[int]:
    """Every total reachable by some combination of right and wrong answers."""
    scores = {0}
    for question in test.questions:
        scores |= {score + question.points for score in scores}
    return scores


def reachable_levels(test: PlacementTest) -> set[str]:
    return {calculate_placement_level(score) for score in achievable_scores(test)}


def format_time(seconds: int) -> str:
    """Render seconds as ``m:ss``."""
    minutes, remaining = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{remaining:02d}"


@dataclass(frozen=True)
class PlacementSession:
    """Progress through one attempt at the placement test."""

    test: PlacementTest
    current_index: int = 0
    answers: tuple[int | None, ...] = field(default=())
    started_at: datetime | None = None
    completed_at: datetime | None = None
    score: int = 0
    recommended_level: str | None = None

    @classmethod
    def begin(cls, test: PlacementTest) -> PlacementSession:
        return cls(test=test, answers=(None,) * len(test.questions))

    @property
    def started(self) -> bool:
        return self.started_at is not None

    @property
    def completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.test.questions) - 1

    @property
    def current_question(self) -> PlacementQuestion:
        return self.test.questions[self.current_index]

    def time_remaining(self, now: datetime) -> int:
        """Seconds left on the clock; never negative."""
        limit = self.test.time_limit * 60
        if self.started_at is None:
            return limit
        end = self.completed_at or now
        elapsed = int((end - self.started_at).total_seconds())
        return max(0, limit - elapsed)

    def expired(self, now: datetime) -> bool:
        return self.started and self.time_remaining(now) == 0

    def start(self, now: datetime) -> PlacementSession:
        if self.completed:
            raise PlacementStateError("Placement test is already completed.")
        if self.started:
            return self
        return replace(self, started_at=now)

    def select_answer(self, choice_index: int, now: datetime | None = None) -> PlacementSession:
        """Record the answer for the current question.

        When ``now`` is past the time limit the session completes instead and
        the answer is discarded.
        """
        self._require_in_progress()
        if now is not None and self.expired(now):
            return self.complete(now)
        question = self.current_question
        if not 0 <= choice_index < len(question.choices):
            raise ValueError(f"Choice {choice_index} is outside question '{question.id}'.")
        answers = list(self.answers)
        answers[self.current_index] = choice_index
        return replace(self, answers=tuple(answers))

    def next_question(self, now: datetime) -> PlacementSession:
        """Advance, completing the session after the last question or on timeout."""
        self._require_in_progress()
        if self.is_last_question or self.expired(now):
            return self.complete(now)
        return replace(self, current_index=self.current_index + 1)

    def complete(self, now: datetime) -> PlacementSession:
        if self.completed:
            raise PlacementStateError("Placement test is already completed.")
        score = score_answers(self.test, self.answers)
        level_id = calculate_placement_level(score)
        log.info("Placement test %s completed: score=%d level=%s", self.test.id, score, level_id)
        return replace(
            self,
            started_at=self.started_at or now,
            completed_at=now,
            score=score,
            recommended_level=level_id,
        )

    def retake(self) -> PlacementSession:
        return PlacementSession.begin(self.test)

    def _require_in_progress(self) -> None:
        if not self.started:
            raise PlacementStateError("Placement test has not been started.")
        if self.completed:
            raise PlacementStateError("Placement test is already completed.")
