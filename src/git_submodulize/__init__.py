"""Convert nested git repositories into submodules of their parent.

The package finds repositories nested inside a parent working tree, lets an
operator pick some of them, and registers each pick as a submodule, keeping
a backup and restoring it if registration fails.
"""

# Re-export the public API from submodules
from .convert import (
    Converter,
    Outcome,
    State,
    summarize,
)
from .git import (
    NotARepositoryError,
    branch_label,
    find_nested_repos,
    has_uncommitted_changes,
    remote_url,
    run_git,
    show_toplevel,
    submodule_add,
    submodule_paths,
)
from .prompts import (
    Prompter,
    TerminalPrompter,
)
from .resolve import (
    find_parent_root,
    resolve_start_directory,
)
from .scanner import (
    Candidate,
    find_candidates,
    scan_nested_paths,
)
from .selector import (
    FzfSelector,
    MissingToolError,
    Selector,
    choose_candidates,
)
from .session import run_session
from .state import (
    FileLastPathStore,
    LastPathStore,
    MemoryLastPathStore,
)

__all__ = (
    "Candidate",
    "Converter",
    "FileLastPathStore",
    "FzfSelector",
    "LastPathStore",
    "MemoryLastPathStore",
    "MissingToolError",
    "NotARepositoryError",
    "Outcome",
    "Prompter",
    "Selector",
    "State",
    "TerminalPrompter",
    "branch_label",
    "choose_candidates",
    "find_candidates",
    "find_nested_repos",
    "find_parent_root",
    "has_uncommitted_changes",
    "remote_url",
    "resolve_start_directory",
    "run_git",
    "run_session",
    "scan_nested_paths",
    "show_toplevel",
    "submodule_add",
    "submodule_paths",
    "summarize",
)
