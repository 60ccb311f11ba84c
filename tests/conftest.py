from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from levelpath.content_loader import load_levels, load_placement_test  # noqa: E402
from levelpath.models import Level, PlacementTest  # noqa: E402


@pytest.fixture(scope="session")
def levels() -> tuple[Level, ...]:
    return load_levels()


@pytest.fixture(scope="session")
def placement_test() -> PlacementTest:
    return load_placement_test()
