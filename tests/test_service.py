from collections.abc import Iterator
from dataclasses import replace
from datetime import UTC, datetime

import pytest

from levelpath.exceptions import LessonNotFoundError, LevelNotFoundError, PlacementStateError
from levelpath.service import LevelService

START = datetime(2026, 1, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def service() -> Iterator[LevelService]:
    svc = LevelService(":memory:")
    yield svc
    svc.close()


def test_profile_lifecycle(service: LevelService) -> None:
    profile = service.create_profile("  alice  ")
    assert profile.name == "alice"
    assert [item.name for item in service.list_profiles()] == ["alice"]
    assert service.get_progress(profile.id).current_xp == 0
    assert service.delete_profile(profile.id) is True
    with pytest.raises(KeyError):
        service.get_progress(profile.id)


def test_overview_for_new_profile(service: LevelService) -> None:
    profile = service.create_profile("new")
    overview = service.level_overview(profile.id)
    assert overview.current_level.id == "beginner"
    assert overview.next_level is not None
    assert overview.next_level.id == "elementary"
    assert overview.percent == 0.0
    assert overview.xp_to_next == 1000
    assert overview.requirements_met is False
    assert [entry.level.id for entry in overview.path if entry.current] == ["beginner"]


def test_overview_reflects_requirement_updates(service: LevelService) -> None:
    profile = service.create_profile("req")
    service.update_requirement(profile.id, "lessons_completed", 10)
    service.update_requirement(profile.id, "vocabulary_learned", 60)
    overview = service.level_overview(profile.id)
    assert {req.type: req.current for req in overview.current_level.requirements} == {
        "lessons_completed": 10,
        "vocabulary_learned": 60,
    }
    assert overview.requirements_met is True
    assert service.levels[0].requirements[0].current == 0


def test_update_requirement_validation(service: LevelService) -> None:
    profile = service.create_profile("bad-req")
    with pytest.raises(ValueError):
        service.update_requirement(profile.id, "hours_slept", 3)
    with pytest.raises(ValueError):
        service.update_requirement(profile.id, "streak_days", -1)
    with pytest.raises(KeyError):
        service.update_requirement(9999, "streak_days", 1)


def test_complete_lesson_awards_xp_once(service: LevelService) -> None:
    profile = service.create_profile("lessons")
    first = service.complete_lesson(profile.id, "hello-world", accuracy=95)
    assert first.first_completion is True
    assert first.xp_awarded == 20
    assert first.progress.lessons_completed == 1
    assert first.progress.average_accuracy == 95

    again = service.complete_lesson(profile.id, "hello-world", accuracy=10)
    assert again.first_completion is False
    assert again.xp_awarded == 0
    assert service.get_progress(profile.id).current_xp == 20


def test_complete_lesson_level_up(service: LevelService) -> None:
    profile = service.create_profile("climber")
    service.complete_conversation(profile.id, 990)
    outcome = service.complete_lesson(profile.id, "hello-world")
    assert outcome.previous_level == "beginner"
    assert outcome.progress.current_level == "elementary"
    assert outcome.leveled_up is True


def test_complete_unknown_lesson(service: LevelService) -> None:
    profile = service.create_profile("unknown-lesson")
    with pytest.raises(LessonNotFoundError):
        service.complete_lesson(profile.id, "nope")


def test_overview_above_ceiling_clamps_to_expert(service: LevelService) -> None:
    profile = service.create_profile("master")
    service.complete_conversation(profile.id, 20000)
    overview = service.level_overview(profile.id)
    assert overview.current_level.id == "expert"
    assert overview.next_level is None
    assert overview.xp_to_next is None
    assert overview.percent == 100.0


def test_record_streak(service: LevelService) -> None:
    profile = service.create_profile("streaky")
    assert service.record_streak(profile.id, 12).streak_days == 12


def test_level_details(service: LevelService) -> None:
    assert service.level_details("advanced").min_xp == 6000
    with pytest.raises(LevelNotFoundError):
        service.level_details("missing")


def test_submit_and_accept_placement(service: LevelService) -> None:
    profile = service.create_profile("placed")
    session = service.new_placement_session().start(START)
    for question in service.placement_test.questions:
        session = session.select_answer(question.correct_answer).next_question(START)
    result = service.submit_placement(profile.id, session)
    assert result.score == 110
    assert result.recommended_level == "intermediate"
    assert [item.score for item in service.progress.list_placement_results(profile.id)] == [110]

    progress = service.accept_placement(profile.id, result.recommended_level)
    assert progress.placement_test_taken is True
    assert service.level_overview(profile.id).current_level.id == "intermediate"


def test_submit_placement_completes_open_session(service: LevelService) -> None:
    profile = service.create_profile("partial")
    session = service.new_placement_session().start(START).select_answer(0)
    result = service.submit_placement(profile.id, session)
    assert result.score == 10
    assert result.recommended_level == "beginner"


@pytest.mark.parametrize("accuracy", [150, -1, float("nan")])
def test_rejected_accuracy_leaves_lesson_open(service: LevelService, accuracy: float) -> None:
    profile = service.create_profile("retry")
    with pytest.raises(ValueError):
        service.complete_lesson(profile.id, "hello-world", accuracy=accuracy)
    assert service.progress.completed_lesson_ids(profile.id) == set()

    retry = service.complete_lesson(profile.id, "hello-world", accuracy=90)
    assert retry.first_completion is True
    assert retry.xp_awarded == 20
    assert retry.progress.average_accuracy == 90


def test_finishing_every_lesson_in_a_unit_counts_the_unit(service: LevelService) -> None:
    profile = service.create_profile("unit")
    first = service.complete_lesson(profile.id, "hello-world")
    assert first.progress.units_completed == 0
    second = service.complete_lesson(profile.id, "numbers-1-10")
    assert second.progress.units_completed == 1
    service.complete_lesson(profile.id, "numbers-1-10")
    assert service.get_progress(profile.id).units_completed == 1


def test_submit_placement_rejects_completed_session_without_level(service: LevelService) -> None:
    profile = service.create_profile("broken")
    session = replace(service.new_placement_session().start(START), completed_at=START)
    with pytest.raises(PlacementStateError):
        service.submit_placement(profile.id, session)
    assert service.progress.list_placement_results(profile.id) == []
