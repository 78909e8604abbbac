"""The interactive scan, select and convert loop."""

import logging
from pathlib import Path

from .config import Settings, get_exclude_patterns
from .convert import Converter, summarize
from .git import status_lines
from .prompts import Prompter
from .resolve import find_parent_root, resolve_start_directory
from .scanner import find_candidates
from .selector import Selector, choose_candidates
from .state import LastPathStore

logger = logging.getLogger(__name__)

RESCAN = "r"
NEW_DIRECTORY = "n"
QUIT = "q"

_DIRTY_PREVIEW = 10


def confirm_dirty_tree(parent: Path, prompter: Prompter) -> bool:
    """
    Warn about uncommitted changes in `parent` and ask whether to go on.

    Returns True right away for a clean tree. The default answer is no.

    """
    if not (changes := status_lines(parent)):
        return True

    logger.warning("%s has %d uncommitted change(s):", parent, len(changes))
    for line in changes[:_DIRTY_PREVIEW]:
        logger.warning("  %s", line)
    if len(changes) > _DIRTY_PREVIEW:
        logger.warning("  ... and %d more", len(changes) - _DIRTY_PREVIEW)

    return prompter.confirm("Continue with a dirty working tree?", default=False)


def process_parent(
    parent: Path,
    prompter: Prompter,
    selector: Selector,
    settings: Settings,
) -> int:
    """
    Scan `parent` once, let the operator choose and convert the choice.

    Returns:
        Number of conversions that failed.

    """
    exclude = settings.exclude if settings.exclude is not None else get_exclude_patterns(parent)
    candidates = find_candidates(parent, exclude)
    chosen = choose_candidates(candidates, prompter, selector)
    if not chosen:
        return 0

    converter = Converter(parent, prompter, settings.backup_dir)
    failures = summarize(converter.convert_all(chosen))
    if failures:
        logger.error("%d conversion(s) failed, details in %s", failures, settings.log_file)
    return failures


def run_session(
    start: str | Path | None,
    prompter: Prompter,
    selector: Selector,
    store: LastPathStore,
    settings: Settings,
) -> int:
    """
    Run the interactive loop until the operator quits.

    After every batch the operator can rescan the same parent, pick a new
    directory, or quit. The dirty-tree check runs once per resolved parent,
    not before rescans, so the changes staged by a conversion don't ask
    again. Declining to work on a dirty tree leads back to picking a
    directory.

    Args:
        start: Directory given on the command line, if any. Only used for
               the first resolution.
        prompter: Answers every question.
        selector: Used when several candidates are found.
        store: Remembers the last accepted directory.
        settings: Exclusion patterns, backup and log locations.

    Returns:
        Total number of failed conversions over the session.

    Raises:
        NotARepositoryError: If a resolved directory has no working tree root.

    """
    failures = 0
    while True:
        directory = resolve_start_directory(start, prompter, store)
        start = None
        parent = find_parent_root(directory)

        if not confirm_dirty_tree(parent, prompter):
            continue

        while True:
            failures += process_parent(parent, prompter, selector, settings)

            choice = prompter.ask(
                f"[{RESCAN}] rescan {parent}, [{NEW_DIRECTORY}] new directory, [{QUIT}] quit",
                default=RESCAN,
            ).lower()
            if choice.startswith(QUIT):
                return failures
            if choice.startswith(NEW_DIRECTORY):
                break
