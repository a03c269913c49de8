"""Shared test fixtures and configuration."""

from __future__ import annotations

import asyncio
import os
import shutil
import subprocess
from pathlib import Path

import pytest

os.environ.setdefault("AUTOUPDATER_ENV", "test")
os.environ.setdefault("AUTOUPDATER_LOG_LEVEL", "WARNING")

from autoupdater.config import UpdaterConfig, build_config

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(*args: str, cwd: Path) -> str:
    """Run git in ``cwd`` with a throwaway identity and return stdout."""
    result = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    """Write ``name`` in ``repo``, commit it and return the new HEAD."""
    (repo / name).write_text(content, encoding="utf-8")
    git("add", name, cwd=repo)
    git("commit", "-m", message, cwd=repo)
    return git("rev-parse", "HEAD", cwd=repo)


@pytest.fixture
def upstream_repo(tmp_path: Path) -> Path:
    """A non-bare origin repository with one commit on ``master``."""
    repo = tmp_path / "origin"
    repo.mkdir()
    git("init", "-q", cwd=repo)
    git("symbolic-ref", "HEAD", "refs/heads/master", cwd=repo)
    commit_file(repo, "app.txt", "v1\n", "initial")
    return repo


@pytest.fixture
def interval_config(tmp_path: Path) -> UpdaterConfig:
    """Interval-mode configuration pointing at a local path."""
    return build_config(path=tmp_path / "work", frequency="60")


@pytest.fixture
def command_config(tmp_path: Path) -> UpdaterConfig:
    """Interval-mode configuration with a supervised command."""
    return build_config(path=tmp_path / "work", frequency="60", command=["server", "--port", "8080"])


# Ignores SIGINT and SIGTERM; writes a readiness marker to argv[1] once they are ignored.
STUBBORN_CHILD = """
import signal, sys, time
signal.signal(signal.SIGINT, signal.SIG_IGN)
signal.signal(signal.SIGTERM, signal.SIG_IGN)
open(sys.argv[1], "w").write("ready")
while True:
    time.sleep(0.05)
"""


@pytest.fixture
def stubborn_script(tmp_path: Path) -> Path:
    script = tmp_path / "stubborn.py"
    script.write_text(STUBBORN_CHILD, encoding="utf-8")
    return script


async def wait_until_ready(marker: Path) -> None:
    for _ in range(200):
        if marker.exists() and marker.read_text().strip():
            return
        await asyncio.sleep(0.025)
    raise AssertionError("child never became ready")
