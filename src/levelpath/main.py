"""CLI entrypoint for the level path learning app."""

from __future__ import annotations

import argparse
import sqlite3
from collections.abc import Callable
from datetime import UTC, datetime

from . import config
from .exceptions import LevelPathError
from .logging_setup import setup_logging
from .models import REQUIREMENT_TYPES, Level
from .placement import format_time
from .service import LevelService

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
NowFn = Callable[[], datetime]
MENU_QUIT_COMMANDS = {"q"}
MENU_BACK_COMMANDS = {"b"}
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


def _service() -> LevelService:
    return LevelService(db_path=config.DB_PATH)


def _now() -> datetime:
    return datetime.now(UTC)


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="levelpath", description="Chinese learning levels and placement test")
    parser.add_argument("command", nargs="?", default="play", choices=["play"])
    _ = parser.parse_args(argv)
    setup_logging(config.LOG_LEVEL)
    return play_shell()


def play_shell(input_fn: InputFn = input, print_fn: PrintFn = print, now_fn: NowFn = _now) -> int:
    """Run persistent menu-driven shell."""
    service = _service()
    try:
        selected = _select_profile(service, input_fn, print_fn)
        if selected is None:
            return 0
        profile_id, profile_name = selected
        try:
            while True:
                print_fn("\n=== Level Path ===")
                print_fn(f"Learner: {profile_name}")
                print_fn("1) Levels overview")
                print_fn("2) Level details")
                print_fn("3) Placement test")
                print_fn("4) Complete a lesson")
                print_fn("5) Update requirement progress")
                print_fn("b) Back")
                print_fn("q) Quit")
                choice = input_fn("Choose: ").strip().lower()

                if choice == "1":
                    _overview_flow(service, profile_id, print_fn)
                elif choice == "2":
                    _level_details_flow(service, input_fn, print_fn)
                elif choice == "3":
                    _placement_flow(service, profile_id, input_fn, print_fn, now_fn)
                elif choice == "4":
                    _lesson_flow(service, profile_id, input_fn, print_fn)
                elif choice == "5":
                    _requirement_flow(service, profile_id, input_fn, print_fn)
                elif choice in MENU_BACK_COMMANDS:
                    switched = _select_profile(service, input_fn, print_fn)
                    if switched is None:
                        return 0
                    profile_id, profile_name = switched
                elif choice in MENU_QUIT_COMMANDS:
                    return 0
                else:
                    print_fn("Invalid choice.")
        except QuitApp:
            return 0
    finally:
        service.close()


def _pick_index(choice: str, count: int) -> int | None:
    """Map a 1-based menu answer to an index, or ``None`` when out of range."""
    if not choice.isdecimal():
        return None
    index = int(choice) - 1
    return index if 0 <= index < count else None


def _select_profile(service: LevelService, input_fn: InputFn, print_fn: PrintFn) -> tuple[int, str] | None:
    """Return ``(id, name)`` of the chosen or newly created learner, or ``None`` on quit."""
    while True:
        profiles = service.list_profiles()
        print_fn("\n=== Learners ===")
        for idx, profile in enumerate(profiles, start=1):
            print_fn(f"{idx}) {profile.name}")
        if not profiles:
            print_fn("No learners yet. Create one to start at Beginner.")
        print_fn("n) New learner")
        print_fn("d) Delete learner")
        print_fn("q) Quit")

        choice = input_fn("Choose learner: ").strip().lower()
        if choice in MENU_QUIT_COMMANDS:
            return None
        if choice == "d":
            _delete_profile_flow(service, input_fn, print_fn)
            continue
        if choice == "n":
            name = input_fn("Learner name: ").strip()
            if not name:
                print_fn("A name is required.")
                continue
            try:
                created = service.create_profile(name)
            except sqlite3.IntegrityError:
                print_fn(f"A learner named {name!r} already exists.")
                continue
            return (created.id, created.name)

        index = _pick_index(choice, len(profiles))
        if index is None:
            print_fn("Invalid choice.")
            continue
        return (profiles[index].id, profiles[index].name)


def _delete_profile_flow(service: LevelService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Delete a learner after typed confirmation."""
    profiles = service.list_profiles()
    if not profiles:
        print_fn("Nothing to delete.")
        return

    print_fn("\nDelete learner")
    for idx, profile in enumerate(profiles, start=1):
        print_fn(f"{idx}) {profile.name}")
    print_fn("b) Back")
    choice = input_fn("Learner to delete: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    index = _pick_index(choice, len(profiles))
    if index is None:
        print_fn("Invalid choice.")
        return

    target = profiles[index]
    print_fn(f"This removes '{target.name}' with all XP, lessons and placement results.")
    if input_fn("Type YES to delete: ").strip() != "YES":
        print_fn("Kept learner.")
        return
    if service.delete_profile(target.id):
        print_fn(f"Removed learner '{target.name}'.")
    else:
        print_fn("Learner no longer exists.")


def _choose_level(service: LevelService, input_fn: InputFn, print_fn: PrintFn, prompt: str) -> Level | None:
    for idx, level in enumerate(service.levels, start=1):
        print_fn(f"{idx}) {level.name} ({level.localized_name}) {level.min_xp}-{level.max_xp} XP")
    print_fn("b) Back")
    print_fn("q) Quit")
    choice = input_fn(prompt).strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return None
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    index = _pick_index(choice, len(service.levels))
    if index is None:
        print_fn("Invalid choice.")
        return None
    return service.levels[index]


def _overview_flow(service: LevelService, profile_id: int, print_fn: PrintFn) -> None:
    """Print current level, XP standing, requirements and the level path."""
    overview = service.level_overview(profile_id)
    level = overview.current_level
    progress = overview.progress

    print_fn("\n=== Levels ===")
    print_fn(f"Level: {level.name} ({level.localized_name})")
    print_fn(f"XP: {progress.current_xp} ({overview.percent:.0f}% through {level.min_xp}-{level.max_xp})")
    if overview.next_level is not None and overview.xp_to_next is not None:
        print_fn(f"{overview.xp_to_next} XP to {overview.next_level.name}")
    else:
        print_fn("Max Level!")
    print_fn(level.description)
    if not progress.placement_test_taken:
        print_fn("Not sure where to start? Take the placement test (menu option 3).")

    print_fn("\nLevel requirements:")
    for requirement in level.requirements:
        mark = "x" if requirement.met else " "
        print_fn(
            f"[{mark}] {requirement.description:<28} "
            f"{requirement.current}/{requirement.target} ({requirement.progress_percent:.0f}%)"
        )

    print_fn("\nLearning path:")
    name_width = max(len(entry.level.name) for entry in overview.path)
    for entry in overview.path:
        if entry.current:
            status = "current"
        elif entry.completed:
            status = "completed"
        elif entry.locked:
            status = "locked"
        else:
            status = "open"
        print_fn(f"{entry.level.name:<{name_width}} {entry.level.min_xp:>6}-{entry.level.max_xp:<6} {status}")


def _level_details_flow(service: LevelService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Show units and lessons for one selected level."""
    print_fn("\n=== Level Details ===")
    level = _choose_level(service, input_fn, print_fn, "Choose level: ")
    if level is None:
        return
    print_fn(f"\n{level.name} ({level.localized_name})")
    print_fn(level.description)
    print_fn(f"Units: {len(level.units)}  Lessons: {level.lesson_count}  XP range: {level.min_xp}-{level.max_xp}")
    for number, unit in enumerate(level.units, start=1):
        status = "completed" if unit.completed else ("unlocked" if unit.unlocked else "locked")
        print_fn(f"\n{number}. {unit.name} ({unit.localized_name}) [{status}] {unit.progress}%")
        print_fn(f"   {unit.description}")
        print_fn(f"   {len(unit.lessons)} lessons, {unit.estimated_time}min, {unit.xp_reward} XP")
        for lesson in unit.lessons:
            print_fn(f"   - {lesson.title} ({lesson.type}, {lesson.xp_reward} XP, {lesson.duration}min)")


def _placement_flow(
    service: LevelService,
    profile_id: int,
    input_fn: InputFn,
    print_fn: PrintFn,
    now_fn: NowFn,
) -> None:
    """Run the timed placement test and offer to accept the recommendation."""
    session = service.new_placement_session()
    test = session.test
    print_fn("\n=== Placement Test ===")
    print_fn(test.description)
    print_fn(f"{test.time_limit} minutes, {len(test.questions)} questions.")
    print_fn("Enter a choice number, blank to skip, or :q to leave.")
    session = session.start(now_fn())

    while not session.completed:
        question = session.current_question
        print_fn(
            f"\nQuestion {session.current_index + 1} of {len(test.questions)}"
            f"  [{format_time(session.time_remaining(now_fn()))}]"
        )
        print_fn(question.question)
        if question.localized_text:
            print_fn(question.localized_text)
        if question.pinyin:
            print_fn(question.pinyin)
        for idx, choice in enumerate(question.choices, start=1):
            print_fn(f"{idx}) {choice}")

        answer = input_fn("Answer: ").strip().lower()
        if answer in FLOW_EXIT_COMMANDS:
            print_fn("Placement test abandoned.")
            return
        if answer:
            index = _pick_index(answer, len(question.choices))
            if index is None:
                print_fn("Invalid choice.")
                continue
            session = session.select_answer(index, now_fn())
            if session.completed:
                break
        session = session.next_question(now_fn())

    if session.time_remaining(now_fn()) == 0:
        print_fn("Time is up.")
    result = service.submit_placement(profile_id, session)
    print_fn(f"\nScore: {result.score}/{test.max_score}")
    print_fn(f"Recommended level: {result.recommended_level}")
    if input_fn("Accept this level? (y/n): ").strip().lower() == "y":
        service.accept_placement(profile_id, result.recommended_level)
        print_fn(f"Your learning level has been set to {result.recommended_level}.")


def _lesson_flow(service: LevelService, profile_id: int, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Mark a lesson of the current level as completed."""
    level = service.level_overview(profile_id).current_level
    lessons = [lesson for unit in level.units for lesson in unit.lessons]
    print_fn(f"\n=== Lessons in {level.name} ===")
    if not lessons:
        print_fn("No lessons defined.")
        return
    for idx, lesson in enumerate(lessons, start=1):
        print_fn(f"{idx}) {lesson.title} ({lesson.localized_title}) +{lesson.xp_reward} XP")
    print_fn("b) Back")
    choice = input_fn("Choose lesson: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    index = _pick_index(choice, len(lessons))
    if index is None:
        print_fn("Invalid choice.")
        return

    accuracy_text = input_fn("Accuracy % (blank to skip): ").strip()
    try:
        accuracy = float(accuracy_text) if accuracy_text else None
        outcome = service.complete_lesson(profile_id, lessons[index].id, accuracy=accuracy)
    except (ValueError, LevelPathError) as exc:
        print_fn(f"Could not record lesson: {exc}")
        return
    if not outcome.first_completion:
        print_fn("Lesson was already completed. No XP awarded.")
        return
    print_fn(f"+{outcome.xp_awarded} XP (total {outcome.progress.current_xp})")
    if outcome.leveled_up:
        print_fn(f"Level up! You are now {outcome.progress.current_level}.")


def _requirement_flow(service: LevelService, profile_id: int, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Set tracked progress for one requirement type."""
    print_fn("\n=== Requirement Progress ===")
    for idx, requirement_type in enumerate(REQUIREMENT_TYPES, start=1):
        print_fn(f"{idx}) {requirement_type}")
    print_fn("b) Back")
    choice = input_fn("Choose requirement: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    index = _pick_index(choice, len(REQUIREMENT_TYPES))
    if index is None:
        print_fn("Invalid choice.")
        return
    value_text = input_fn("Current value: ").strip()
    if not value_text.isdecimal():
        print_fn("Value must be a whole number.")
        return
    service.update_requirement(profile_id, REQUIREMENT_TYPES[index], int(value_text))
    print_fn(f"{REQUIREMENT_TYPES[index]} set to {value_text}.")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
