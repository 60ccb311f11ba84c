"""Level catalog, XP resolution and placement testing for a Chinese learning path."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]


def _checkout_version() -> str | None:
    """Return ``[project].version`` when running from a source tree."""
    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    if not pyproject.is_file():
        return None
    with pyproject.open("rb") as handle:
        project = tomllib.load(handle).get("project", {})
    return project.get("version")


try:
    __version__ = _checkout_version() or version("levelpath")
except PackageNotFoundError:
    __version__ = "0+unknown"
