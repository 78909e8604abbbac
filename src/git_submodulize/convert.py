"""
Conversion of nested repositories into submodules.

Each candidate goes through a two-phase commit:

    PENDING_CONFIRM -> CONFIRMED -> BACKING_UP -> CLEANING_RESIDUE -> REGISTERING
        -> SUCCEEDED | ROLLED_BACK

Phase 1 (backup and residue cleanup) only moves the tree out of the parent
and removes stale bookkeeping. It is undone by putting the saved index
entries back and moving the tree back. Phase 2 (`git submodule add`) is the
only irreversible step; its failure triggers `Converter._rollback`.

A former submodule keeps its git dir under the parent's `.git/modules`.
That directory is moved into the tree before the backup, so the backup
carries the whole history.

The terminal states SKIPPED, ABORTED and FAILED cover the operator saying
no, a candidate that vanished, and phase 1 (or the rollback) failing.
"""

import enum
import logging
import shutil
import subprocess
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .git import (
    GITMODULES,
    get_git_dir,
    index_entries,
    is_inside_work_tree,
    is_tracked,
    remove_submodule_section,
    restore_index_entries,
    show_toplevel,
    submodule_add,
    submodule_sections,
    unset_core_worktree,
    untrack,
)
from .paths import is_repo_root
from .prompts import Prompter
from .scanner import Candidate

logger = logging.getLogger(__name__)


class State(enum.Enum):
    PENDING_CONFIRM = "pending confirmation"
    CONFIRMED = "confirmed"
    BACKING_UP = "backing up"
    CLEANING_RESIDUE = "cleaning residue"
    REGISTERING = "registering"
    SUCCEEDED = "succeeded"
    ROLLED_BACK = "rolled back"
    SKIPPED = "skipped"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({
    State.SUCCEEDED,
    State.ROLLED_BACK,
    State.SKIPPED,
    State.ABORTED,
    State.FAILED,
})


@dataclass
class Outcome:
    """What happened to one candidate."""

    path: str
    state: State = State.PENDING_CONFIRM
    backup: Path | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.state is State.SUCCEEDED


class Converter:
    """
    Turns nested repositories of `parent` into submodules.

    Args:
        parent: Root of the parent working tree.
        prompter: Asks for per-item confirmation and missing remote URLs.
        backup_root: Directory receiving one timestamped backup per attempt.
                     Backups are never deleted.

    Example:
        converter = Converter(Path("/repo"), TerminalPrompter(), Path("/tmp/backups"))
        outcomes = converter.convert_all(candidates)

    """

    def __init__(self, parent: Path, prompter: Prompter, backup_root: Path):
        self.parent = parent
        self.prompter = prompter
        self.backup_root = backup_root

    def convert_all(self, candidates: Iterable[Candidate]) -> list[Outcome]:
        """Convert candidates in order; one failure never stops the rest."""
        return [self.convert(candidate) for candidate in candidates]

    def convert(self, candidate: Candidate) -> Outcome:
        outcome = Outcome(candidate.path)
        source = self.parent / candidate.path

        # A previous item of the batch may have moved or consumed this one
        if not source.is_dir():
            return self._finish(outcome, State.ABORTED, f"{source} no longer exists")
        if not self._is_repo_root(source):
            return self._finish(outcome, State.ABORTED, f"{source} is no longer a git working tree")

        answer = self.prompter.ask(
            f"Convert {candidate.path} ({candidate.url}, {candidate.branch}) into a submodule? "
            "Enter converts, anything else skips"
        )
        if answer:
            return self._finish(outcome, State.SKIPPED, "skipped by operator")
        self._enter(outcome, State.CONFIRMED)

        url = candidate.url if candidate.has_url else self.prompter.ask(
            f"{candidate.path} has no origin remote. URL to register (empty skips)"
        )
        if not url:
            return self._finish(outcome, State.SKIPPED, "no remote URL")

        # Phase 1
        self._enter(outcome, State.BACKING_UP)
        try:
            saved_index = index_entries(self.parent, candidate.path, GITMODULES)
            self._absorb_git_dir(source)
            outcome.backup = self._backup(source, candidate.path)
        except (OSError, subprocess.CalledProcessError) as e:
            return self._finish(outcome, State.FAILED, f"backup failed: {_describe_error(e)}")

        self._enter(outcome, State.CLEANING_RESIDUE)
        try:
            self._clean_residue(candidate.path)
        except (OSError, subprocess.CalledProcessError) as e:
            logger.error("Cleaning stale state for %s failed: %s", candidate.path, _describe_error(e))
            index_restored = self._restore_index(candidate.path, saved_index)
            if self._restore(outcome, source) and index_restored:
                return self._finish(outcome, State.FAILED, "residue cleanup failed, original restored")
            return self._finish(outcome, State.FAILED, f"residue cleanup failed, backup at {outcome.backup}")

        # Phase 2
        self._enter(outcome, State.REGISTERING)
        try:
            submodule_add(url, candidate.path, self.parent)
        except subprocess.CalledProcessError as e:
            logger.error("git submodule add failed for %s: %s", candidate.path, _describe_error(e))
            return self._rollback(outcome, source, saved_index)

        return self._finish(outcome, State.SUCCEEDED, f"registered from {url}, backup kept at {outcome.backup}")

    def _is_repo_root(self, directory: Path) -> bool:
        return (
            is_repo_root(directory)
            and is_inside_work_tree(directory)
            and show_toplevel(directory) == directory.resolve()
        )

    def _absorb_git_dir(self, source: Path) -> None:
        """
        Replace a `.git` file pointing into the parent's `.git/modules` with
        the directory it points to, like `git submodule absorbgitdirs` in
        reverse. Other trees are left alone.

        """
        marker = source / ".git"
        if not marker.is_file():
            return

        git_dir = get_git_dir(source)
        if not git_dir.is_relative_to(get_git_dir(self.parent) / "modules"):
            return

        logger.info("Moving git dir %s into %s", git_dir, source)
        marker.unlink()
        shutil.move(str(git_dir), str(marker))
        unset_core_worktree(marker)

    def _backup(self, source: Path, path: str) -> Path:
        self.backup_root.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        slug = path.replace("/", "_")
        backup_dir = Path(tempfile.mkdtemp(prefix=f"{slug}-{stamp}-", dir=self.backup_root))

        target = backup_dir / source.name
        logger.info("Backing up %s to %s", path, target)
        shutil.move(str(source), str(target))
        return target

    def _clean_residue(self, path: str) -> None:
        """
        Remove what an earlier failed attempt at `path` may have left behind.

        The tree itself is already in the backup, so nothing here touches
        the operator's files.

        """
        if is_tracked(path, self.parent):
            logger.info("Removing stale index entry for %s", path)
            untrack(path, self.parent)

        names = [name for name, section_path in submodule_sections(self.parent).items() if section_path == path]
        for name in names:
            logger.info("Removing stale %s section %r", GITMODULES, name)
            remove_submodule_section(name, self.parent)
        self._drop_empty_gitmodules()

        modules = get_git_dir(self.parent) / "modules"
        for name in dict.fromkeys([path, *names]):
            if (stale := modules / name).exists():
                logger.info("Removing stale submodule metadata %s", stale)
                shutil.rmtree(stale)

    def _drop_empty_gitmodules(self) -> None:
        gitmodules = self.parent / GITMODULES
        if (
            gitmodules.is_file()
            and not gitmodules.read_text().strip()
            and not is_tracked(GITMODULES, self.parent)
        ):
            gitmodules.unlink()

    def _rollback(self, outcome: Outcome, source: Path, saved_index: list[str]) -> Outcome:
        """Undo a failed registration, put the index entries and the original tree back."""
        try:
            if source.is_symlink() or source.is_file():
                source.unlink()
            elif source.exists():
                logger.info("Removing partial clone at %s", outcome.path)
                shutil.rmtree(source)
        except OSError as e:
            logger.error("Could not remove partial clone at %s: %s", source, e)
            return self._finish(outcome, State.FAILED, f"rollback failed, backup at {outcome.backup}")

        try:
            self._clean_residue(outcome.path)
        except (OSError, subprocess.CalledProcessError) as e:
            logger.warning("Stale submodule state for %s may remain: %s", outcome.path, _describe_error(e))

        index_restored = self._restore_index(outcome.path, saved_index)
        if not self._restore(outcome, source):
            return self._finish(outcome, State.FAILED, f"rollback failed, backup at {outcome.backup}")
        if not index_restored:
            return self._finish(outcome, State.FAILED, "original restored, index entries not restored")
        return self._finish(outcome, State.ROLLED_BACK, "registration failed, original restored")

    def _restore_index(self, path: str, saved: list[str]) -> bool:
        try:
            restore_index_entries(saved, [path, GITMODULES], self.parent)
            self._drop_empty_gitmodules()
        except (OSError, subprocess.CalledProcessError) as e:
            logger.error("Could not restore index entries for %s: %s", path, _describe_error(e))
            return False
        return True

    def _restore(self, outcome: Outcome, source: Path) -> bool:
        try:
            source.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(outcome.backup), str(source))
        except OSError as e:
            logger.error("Could not restore %s from %s: %s", source, outcome.backup, e)
            return False
        logger.info("Restored %s from backup", outcome.path)
        return True

    def _enter(self, outcome: Outcome, state: State) -> None:
        outcome.state = state
        logger.debug("%s: %s", outcome.path, state.value)

    def _finish(self, outcome: Outcome, state: State, detail: str) -> Outcome:
        if not state.is_terminal:
            raise ValueError(f"{state.value!r} is not a final state")
        self._enter(outcome, state)
        outcome.detail = detail
        level = {
            State.SUCCEEDED: logging.INFO,
            State.SKIPPED: logging.INFO,
            State.ABORTED: logging.WARNING,
        }.get(state, logging.ERROR)
        logger.log(level, "%s: %s (%s)", outcome.path, state.value, detail)
        return outcome


def _describe_error(error: Exception) -> str:
    if isinstance(error, subprocess.CalledProcessError) and error.stderr:
        return error.stderr.strip()
    return str(error)


def summarize(outcomes: list[Outcome]) -> int:
    """
    Log one line per outcome and return how many conversions went wrong.

    Skipped items don't count as failures.

    """
    if not outcomes:
        return 0

    logger.info("Summary:")
    failures = 0
    for outcome in outcomes:
        if outcome.ok or outcome.state is State.SKIPPED:
            logger.info("  %-11s %s", outcome.state.value, outcome.path)
        else:
            failures += 1
            logger.error("  %-11s %s: %s", outcome.state.value, outcome.path, outcome.detail)
    return failures
