"""Domain records for the level catalog, placement test and learner progress."""

from __future__ import annotations

from dataclasses import dataclass, replace

LEVEL_IDS = ("beginner", "elementary", "intermediate", "advanced", "expert")
LESSON_TYPES = frozenset({"vocabulary", "grammar", "conversation", "listening", "reading", "writing"})
REQUIREMENT_TYPES = (
    "lessons_completed",
    "conversations_completed",
    "vocabulary_learned",
    "streak_days",
    "accuracy_rate",
)
QUESTION_TYPES = frozenset({"multiple_choice", "translation", "listening", "reading_comprehension"})


@dataclass(frozen=True)
class UnitLesson:
    """One lesson inside a unit."""

    id: str
    title: str
    localized_title: str
    type: str
    difficulty: str
    xp_reward: int
    duration: int
    completed: bool = False
    locked: bool = False
    score: int | None = None


@dataclass(frozen=True)
class Unit:
    """Ordered group of lessons.

    ``unlocked`` and ``completed`` are content flags, not derived from
    prerequisite completion.
    """

    id: str
    name: str
    localized_name: str
    description: str
    lessons: tuple[UnitLesson, ...]
    unlocked: bool
    completed: bool
    progress: int
    xp_reward: int
    estimated_time: int


@dataclass(frozen=True)
class Requirement:
    """Target/current pair gating advancement out of a level."""

    type: str
    target: int
    current: int
    description: str

    @property
    def met(self) -> bool:
        return self.current >= self.target

    @property
    def progress_percent(self) -> float:
        if self.target <= 0:
            return 100.0
        return min(self.current * 100.0 / self.target, 100.0)

    def with_current(self, current: int) -> Requirement:
        """Return a copy carrying a new ``current`` value."""
        return replace(self, current=current)


@dataclass(frozen=True)
class Level:
    """XP tier covering the half-open range ``[min_xp, max_xp)``."""

    id: str
    name: str
    localized_name: str
    description: str
    min_xp: int
    max_xp: int
    color: str
    icon: str
    units: tuple[Unit, ...]
    requirements: tuple[Requirement, ...]

    def contains(self, xp: int) -> bool:
        return self.min_xp <= xp < self.max_xp

    @property
    def span(self) -> int:
        return self.max_xp - self.min_xp

    @property
    def lesson_count(self) -> int:
        return sum(len(unit.lessons) for unit in self.units)


@dataclass(frozen=True)
class PlacementQuestion:
    """Single-answer placement question."""

    id: str
    type: str
    question: str
    choices: tuple[str, ...]
    correct_answer: int
    level: str
    points: int
    localized_text: str | None = None
    pinyin: str | None = None
    audio: str | None = None


@dataclass(frozen=True)
class PlacementTest:
    """Fixed ordered question bank with a time limit in minutes."""

    id: str
    description: str
    time_limit: int
    questions: tuple[PlacementQuestion, ...]

    @property
    def max_score(self) -> int:
        return sum(question.points for question in self.questions)


@dataclass(frozen=True)
class LearnerProgress:
    """Snapshot of one learner's level progress."""

    current_level: str = LEVEL_IDS[0]
    current_xp: int = 0
    total_xp: int = 0
    units_completed: int = 0
    lessons_completed: int = 0
    vocabulary_learned: int = 0
    conversations_completed: int = 0
    streak_days: int = 0
    average_accuracy: float = 0.0
    accuracy_samples: int = 0
    time_spent: int = 0
    placement_test_taken: bool = False
    placement_level: str | None = None
