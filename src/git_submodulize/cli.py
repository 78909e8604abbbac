"""Command line entry point."""

import logging
import sys
from pathlib import Path

import click

from .config import load_settings
from .git import NotARepositoryError
from .log import configure_logging
from .prompts import TerminalPrompter
from .selector import FzfSelector, MissingToolError, ensure_fzf
from .session import run_session
from .state import FileLastPathStore, MemoryLastPathStore

logger = logging.getLogger(__name__)


@click.command()
@click.argument(
    "start_dir",
    required=False,
    type=click.Path(file_okay=False, path_type=Path),
)
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="Gitignore-style pattern of directories not to scan; repeatable "
    "(default: submodulize.exclude or common build and dependency directories)",
)
@click.option(
    "--backup-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where backups of converted repositories go (default: submodulize.backupDir or <tmp>/git-submodulize)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Log file, truncated on every run (default: submodulize.logFile or <tmp>/git-submodulize.log)",
)
@click.option(
    "--state-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="File remembering the last directory (default: submodulize.stateFile or ~/.config/git-submodulize/last-path)",
)
@click.option("--no-state", is_flag=True, help="Don't read or remember the last directory")
@click.option("--verbose", "-v", is_flag=True, help="Show git commands and state transitions")
def main(
    start_dir: Path | None,
    exclude: tuple[str, ...],
    backup_dir: Path | None,
    log_file: Path | None,
    state_file: Path | None,
    no_state: bool,
    verbose: bool,
) -> None:
    """Convert nested git repositories into submodules of their parent.

    Scans the repository containing START_DIR for nested repositories that
    aren't submodules yet, lets you pick some, and registers each one as a
    submodule from its origin URL. Every converted directory is first moved
    to a backup directory and restored if registration fails.
    """
    settings = load_settings(
        exclude=list(exclude),
        backup_dir=backup_dir.expanduser() if backup_dir else None,
        log_file=log_file.expanduser() if log_file else None,
        state_file=state_file.expanduser() if state_file else None,
    )
    configure_logging(settings.log_file, verbose=verbose)
    logger.debug("Settings: %s", settings)

    try:
        ensure_fzf()
    except MissingToolError as e:
        logger.error("%s (install it with `brew install fzf`)", e)
        sys.exit(1)

    store = MemoryLastPathStore() if no_state else FileLastPathStore(settings.state_file)

    try:
        failures = run_session(start_dir, TerminalPrompter(), FzfSelector(), store, settings)
    except NotARepositoryError as e:
        logger.error("%s, see %s", e, settings.log_file)
        sys.exit(1)

    logger.info("Done. Log written to %s", settings.log_file)
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
