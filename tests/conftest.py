"""Shared pytest fixtures for git-submodulize tests."""

import logging
import subprocess
from pathlib import Path

import pytest

from git_submodulize.log import LOGGER_NAME
from git_submodulize.prompts import Prompter
from git_submodulize.selector import Selector


def git(*args, cwd):
    return subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)


def init_repo(path: Path) -> Path:
    """Create a git repository with one commit at `path`."""
    path.mkdir(parents=True, exist_ok=True)
    git("init", "-b", "main", cwd=path)
    git("config", "user.email", "test@example.com", cwd=path)
    git("config", "user.name", "Test User", cwd=path)
    (path / "README.md").write_text(f"# {path.name}\n")
    git("add", "README.md", cwd=path)
    git("commit", "-m", "Initial commit", cwd=path)
    return path


class ScriptedPrompter(Prompter):
    """Answers questions from a list, recording every question asked."""

    def __init__(self, answers=()):
        self.answers = list(answers)
        self.questions = []

    def ask(self, question, default=""):
        self.questions.append(question)
        if not self.answers:
            raise EOFError(f"No scripted answer for: {question}")
        return self.answers.pop(0) or default


class ScriptedSelector(Selector):
    """Picks the rows whose first column is in `paths`, in that order."""

    def __init__(self, paths=()):
        self.paths = list(paths)
        self.rows = None

    def pick(self, rows, header=""):
        self.rows = rows
        by_path = {row.split("\t", 1)[0]: row for row in rows}
        return [by_path[path] for path in self.paths if path in by_path]


@pytest.fixture(autouse=True)
def git_environment(monkeypatch, tmp_path):
    """Isolate git from the user's config and allow cloning local paths."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    # Submodules cloned from local bare repositories need file transport
    monkeypatch.setenv("GIT_CONFIG_COUNT", "1")
    monkeypatch.setenv("GIT_CONFIG_KEY_0", "protocol.file.allow")
    monkeypatch.setenv("GIT_CONFIG_VALUE_0", "always")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handlers installed by configure_logging."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def git_repo(tmp_path):
    """
    Create a temporary git repository for testing.

    Returns:
        Path: Path to the temporary git repository
    """
    return init_repo(tmp_path / "test-repo")


@pytest.fixture
def make_nested(tmp_path, git_repo):
    """
    Factory for repositories nested inside `git_repo`.

    `make_nested("vendor/lib-a")` creates a repository with a bare origin
    under `tmp_path / "remotes"` and pushes `main` to it. Pass
    `origin=False` for a repository without remote.

    Returns:
        Callable returning (nested_repo_path, origin_url_or_None)
    """
    def make(path, origin=True):
        nested = init_repo(git_repo / path)
        url = None
        if origin:
            remote = tmp_path / "remotes" / f"{Path(path).name}.git"
            remote.mkdir(parents=True)
            git("init", "--bare", "-b", "main", cwd=remote)
            url = str(remote)
            git("remote", "add", "origin", url, cwd=nested)
            git("push", "-u", "origin", "main", cwd=nested)
        return nested, url

    return make


def snapshot(directory: Path) -> dict[str, bytes]:
    """Map every file below `directory` to its content."""
    return {
        path.relative_to(directory).as_posix(): path.read_bytes()
        for path in sorted(directory.rglob("*"))
        if path.is_file()
    }
