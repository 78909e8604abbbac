"""Selection of candidates, interactively through fzf."""

import logging
import shutil
import subprocess

from .prompts import Prompter
from .scanner import Candidate

logger = logging.getLogger(__name__)

ALL = "ALL"


class MissingToolError(RuntimeError):
    """Raised when a required external program is not installed."""


def is_fzf_available() -> bool:
    """
    Check if fzf command is available in PATH.

    Example:
        if not is_fzf_available():
            print("brew install fzf")
    """
    return shutil.which("fzf") is not None


def ensure_fzf() -> None:
    """
    Raise `MissingToolError` unless fzf is installed.

    """
    if not is_fzf_available():
        raise MissingToolError("fzf is required for selecting repositories but was not found in PATH")


class Selector:
    """Lets the operator pick any number of rows from a table."""

    def pick(self, rows: list[str], header: str = "") -> list[str]:
        """
        Return the chosen rows, unchanged, in the order they were chosen.

        Rows are tab separated; an empty list means nothing was chosen.

        """
        raise NotImplementedError


class FzfSelector(Selector):
    """Multi-select with fzf (TAB marks rows, Ctrl-A marks all)."""

    def pick(self, rows: list[str], header: str = "") -> list[str]:
        cmd = [
            "fzf",
            "--multi",
            "--delimiter=\t",
            "--bind=ctrl-a:select-all",
            "--prompt=submodules> ",
        ]
        if header:
            cmd.append(f"--header={header}")

        # fzf draws on /dev/tty itself, only stdout is captured
        result = subprocess.run(
            cmd,
            input="\n".join(rows) + "\n",
            stdout=subprocess.PIPE,
            text=True,
            check=False,
        )

        # 1: no match, 130: cancelled with ESC or Ctrl-C
        if result.returncode in (1, 130):
            return []
        if result.returncode != 0:
            logger.error("fzf exited with status %d", result.returncode)
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]


def format_row(candidate: Candidate) -> str:
    return "\t".join((candidate.path, candidate.url, candidate.branch))


def choose_candidates(
    candidates: list[Candidate],
    prompter: Prompter,
    selector: Selector,
) -> list[Candidate]:
    """
    Let the operator choose which candidates to convert.

    - No candidates: nothing to choose, returns an empty list.
    - One candidate: a yes/no confirmation instead of the selector.
    - Several: the selector, with an extra `ALL` row on top. Picking `ALL`
      returns every candidate in scan order; otherwise picks are returned
      in the order the selector reported them, without duplicates.

    Args:
        candidates: Scanner output.
        prompter: Used for the single-candidate confirmation.
        selector: Used for multi-selection.

    Returns:
        The chosen candidates, possibly empty.

    """
    if not candidates:
        logger.info("No nested repositories to convert")
        return []

    if len(candidates) == 1:
        only = candidates[0]
        logger.info("Found one nested repository: %s (%s, %s)", only.path, only.url, only.branch)
        if prompter.confirm(f"Continue with {only.path}?", default=True):
            return [only]
        return []

    logger.info("Found %d nested repositories", len(candidates))
    by_path = {candidate.path: candidate for candidate in candidates}
    rows = [f"{ALL}\t\t"] + [format_row(candidate) for candidate in candidates]
    picked = selector.pick(rows, header="path\torigin\tbranch")

    chosen: list[Candidate] = []
    for row in picked:
        path = row.split("\t", 1)[0].strip()
        if path == ALL:
            return list(candidates)
        if (candidate := by_path.get(path)) and candidate not in chosen:
            chosen.append(candidate)

    if not chosen:
        logger.info("Nothing selected")
    return chosen
