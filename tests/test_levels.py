from dataclasses import replace

import pytest

from levelpath.exceptions import LevelNotFoundError
from levelpath.levels import (
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
from levelpath.models import Level


def test_every_xp_in_range_resolves_to_its_level(levels: tuple[Level, ...]) -> None:
    for level in levels:
        for xp in (level.min_xp, (level.min_xp + level.max_xp) // 2, level.max_xp - 1):
            assert get_current_level(xp, levels).id == level.id


def test_range_is_half_open(levels: tuple[Level, ...]) -> None:
    assert get_current_level(999, levels).id == "beginner"
    assert get_current_level(1000, levels).id == "elementary"
    assert get_current_level(14999, levels).id == "expert"


def test_default_catalog_is_used_when_levels_omitted() -> None:
    assert get_current_level(3500).id == "intermediate"
    assert get_next_level("beginner").id == "elementary"


def test_out_of_range_falls_back_to_first_level_by_default(levels: tuple[Level, ...]) -> None:
    assert get_current_level(-1, levels).id == "beginner"
    assert get_current_level(15000, levels).id == "beginner"
    assert get_current_level(999999, levels).id == "beginner"


def test_clamp_policy_uses_nearest_end(levels: tuple[Level, ...]) -> None:
    assert get_current_level(-1, levels, OutOfRange.CLAMP).id == "beginner"
    assert get_current_level(999999, levels, OutOfRange.CLAMP).id == "expert"
    assert get_current_level(500, levels, OutOfRange.CLAMP).id == "beginner"


def test_strict_policy_raises(levels: tuple[Level, ...]) -> None:
    with pytest.raises(LevelNotFoundError):
        get_current_level(-1, levels, OutOfRange.STRICT)
    with pytest.raises(LevelNotFoundError):
        get_current_level(15000, levels, OutOfRange.STRICT)
    assert get_current_level(0, levels, OutOfRange.STRICT).id == "beginner"


def test_empty_catalog_raises() -> None:
    with pytest.raises(LevelNotFoundError):
        get_current_level(0, ())


def test_next_level_follows_catalog_order(levels: tuple[Level, ...]) -> None:
    ids = [level.id for level in levels]
    for current, following in zip(ids, ids[1:]):
        result = get_next_level(current, levels)
        assert result is not None
        assert result.id == following


def test_next_level_is_none_for_last_and_unknown(levels: tuple[Level, ...]) -> None:
    assert get_next_level("expert", levels) is None
    assert get_next_level("unknown-id", levels) is None


def test_find_level(levels: tuple[Level, ...]) -> None:
    assert find_level("advanced", levels) is levels[3]
    assert find_level("missing", levels) is None


def test_level_progress_percent(levels: tuple[Level, ...]) -> None:
    elementary = levels[1]
    assert level_progress_percent(1000, elementary) == 0.0
    assert level_progress_percent(2000, elementary) == 50.0
    assert level_progress_percent(150, levels[0]) == 15.0
    assert level_progress_percent(-50, levels[0]) == 0.0
    assert level_progress_percent(5000, elementary) == 100.0


def test_xp_to_next_level(levels: tuple[Level, ...]) -> None:
    assert xp_to_next_level(150, levels) == 850
    assert xp_to_next_level(9999, levels) == 1
    assert xp_to_next_level(12000, levels) is None
    assert xp_to_next_level(20000, levels, OutOfRange.CLAMP) is None


def test_level_path_states(levels: tuple[Level, ...]) -> None:
    path = {entry.level.id: entry for entry in level_path(3500, levels)}
    assert path["beginner"].completed is True
    assert path["elementary"].completed is True
    assert path["intermediate"].current is True
    assert path["intermediate"].completed is False
    assert path["intermediate"].locked is False
    assert path["advanced"].locked is True
    assert path["expert"].locked is True


def test_level_path_above_ceiling_with_clamp(levels: tuple[Level, ...]) -> None:
    path = level_path(20000, levels, OutOfRange.CLAMP)
    assert all(entry.completed for entry in path)
    assert [entry.level.id for entry in path if entry.current] == ["expert"]


def test_apply_requirement_progress_only_touches_given_types(levels: tuple[Level, ...]) -> None:
    beginner = levels[0]
    updated = apply_requirement_progress(beginner, {"lessons_completed": 12})
    by_type = {req.type: req for req in updated.requirements}
    assert by_type["lessons_completed"].current == 12
    assert by_type["lessons_completed"].met is True
    assert by_type["vocabulary_learned"].current == 0
    assert beginner.requirements[0].current == 0
    assert requirements_met(updated) is False

    finished = apply_requirement_progress(beginner, {"lessons_completed": 10, "vocabulary_learned": 50})
    assert requirements_met(finished) is True


def test_requirement_progress_percent(levels: tuple[Level, ...]) -> None:
    requirement = levels[0].requirements[1]
    assert requirement.with_current(25).progress_percent == 50.0
    assert requirement.with_current(500).progress_percent == 100.0
    assert replace(requirement, target=0).progress_percent == 100.0


def test_find_lesson(levels: tuple[Level, ...]) -> None:
    found = find_lesson("morning-routine", levels)
    assert found is not None
    level, lesson = found
    assert level.id == "elementary"
    assert lesson.xp_reward == 40
    assert find_lesson("nope", levels) is None
