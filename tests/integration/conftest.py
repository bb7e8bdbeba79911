"""Fixtures for integration tests."""

import stat
from pathlib import Path
from typing import Protocol

import pytest


class WriteScriptFn(Protocol):
    """Protocol for shell script creation function."""

    def __call__(self, name: str, body: str) -> Path:
        """Write an executable script and return its path."""


@pytest.fixture
def write_script(tmp_path: Path) -> WriteScriptFn:
    """Factory for executable shell scripts in the test directory."""
    scripts = tmp_path / "bin"
    scripts.mkdir()

    def _write(name: str, body: str) -> Path:
        path = scripts / name
        path.write_text(f"#!/bin/sh\n{body}\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return path

    return _write


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Directory for generated reports."""
    return tmp_path / "reports"
