"""Start directory and parent repository resolution."""

import logging
from pathlib import Path

from .git import is_inside_work_tree, show_toplevel
from .paths import resolve_path
from .prompts import Prompter
from .state import LastPathStore

logger = logging.getLogger(__name__)


def resolve_start_directory(
    initial: str | Path | None,
    prompter: Prompter,
    store: LastPathStore,
) -> Path:
    """
    Get a directory inside a git working tree, asking until one is given.

    `initial` is accepted without asking if it is valid. Otherwise the
    operator is asked for a directory, with the remembered last path (or the
    current directory) as default. The accepted path is saved in `store`.

    Args:
        initial: Directory given on the command line, if any.
        prompter: Asks for a directory when needed.
        store: Supplies the default and remembers the result.

    Returns:
        Absolute path of the accepted directory.

    """
    answer = str(initial) if initial else ""
    while True:
        if answer:
            path = resolve_path(answer)
            if not path.is_dir():
                logger.warning("%s does not exist", path)
            elif not is_inside_work_tree(path):
                logger.warning("%s is not inside a git working tree", path)
            else:
                store.save(str(path))
                return path

        default = store.load() or str(Path.cwd())
        answer = prompter.ask("Directory to scan for nested repositories", default=default)


def find_parent_root(start: Path) -> Path:
    """
    Get the root of the working tree that will own the new submodules.

    Raises:
        NotARepositoryError: If `start` is not inside a working tree.

    """
    parent = show_toplevel(start)
    logger.info("Parent repository: %s", parent)
    return parent
