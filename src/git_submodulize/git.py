"""Core git operations."""

import logging
import os
import subprocess
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from .paths import has_git_marker, resolve_path

logger = logging.getLogger(__name__)

GITMODULES = ".gitmodules"


class NotARepositoryError(RuntimeError):
    """Raised when a directory is not inside a git working tree."""


def run_git(
    *args: str,
    repo: Path | None = None,
    check: bool = True,
    capture: bool = False,
    **kwargs: Any,
) -> subprocess.CompletedProcess:
    """
    Run a git command and return the result.

    Args:
        *args: Git command arguments (e.g., "status", "--porcelain")
        repo: Optional repository path. If None, runs in current directory.
        check: Whether to raise CalledProcessError on non-zero exit (default: True)
        capture: Whether to capture stdout/stderr (default: False)
        **kwargs: Additional arguments to pass to subprocess.run()

    Returns:
        CompletedProcess result

    Example:
        # Run in current directory
        run_git("status", "--short", capture=True)

        # Run in specific repo
        run_git("submodule", "add", url, "vendor/lib", repo=Path("/path/to/repo"))
    """
    cmd = ["git"]

    # Add -C flag if repo is specified
    if repo is not None:
        cmd.extend(["-C", str(repo)])

    cmd.extend(args)
    logger.debug("$ %s", " ".join(cmd))

    # Set up capture if requested
    if capture:
        result = subprocess.run(
            cmd, capture_output=True, text=True, check=False, **kwargs
        )
        if result.returncode != 0 and result.stderr.strip():
            logger.debug("git exited %d: %s", result.returncode, result.stderr.strip())
        if check:
            result.check_returncode()
        return result

    return subprocess.run(cmd, check=check, **kwargs)


def git_config(
    key: str,
    repo: Path | None = None,
    default: str | None = None,
) -> str | None:
    """
    Get a git config value.

    Args:
        key: Config key to retrieve (e.g., "user.name", "submodulize.backupDir")
        repo: Optional repository path. If None, uses current directory.
        default: Default value if config key is not set.

    Returns:
        Config value if set, otherwise default.

    Example:
        backup_dir = git_config("submodulize.backupDir", default="/tmp")
    """
    result = run_git("config", key, repo=repo, capture=True, check=False)
    if result.returncode == 0 and result.stdout.strip():
        return result.stdout.strip()
    return default


def is_inside_work_tree(path: str | Path) -> bool:
    """
    Check if a directory is inside a git working tree.

    Returns False for missing directories instead of raising.

    Example:
        if not is_inside_work_tree("~/notes"):
            print("not a repository")
    """
    path = resolve_path(path)
    if not path.is_dir():
        return False
    result = run_git("rev-parse", "--is-inside-work-tree", repo=path, capture=True, check=False)
    return result.returncode == 0 and result.stdout.strip() == "true"


def show_toplevel(path: str | Path) -> Path:
    """
    Get the top-level directory of the working tree containing `path`.

    Args:
        path: Any directory inside the working tree.

    Returns:
        Absolute, resolved path of the working tree root.

    Raises:
        NotARepositoryError: If `path` is not inside a working tree.

    Example:
        root = show_toplevel(Path("/repo/src/pkg"))  # Path("/repo")
    """
    path = resolve_path(path)
    result = run_git("rev-parse", "--show-toplevel", repo=path, capture=True, check=False)
    if result.returncode != 0 or not (toplevel := result.stdout.strip()):
        raise NotARepositoryError(f"{path} is not inside a git working tree")
    return Path(toplevel).resolve()


def get_git_dir(repo: Path) -> Path:
    """
    Get the .git directory of a repository.

    For submodules and worktrees this follows the `.git` file to the real
    directory.

    Args:
        repo: Repository path.

    Returns:
        Path to the .git directory (always absolute).

    """
    result = run_git("rev-parse", "--git-dir", repo=repo, capture=True)
    git_dir = Path(result.stdout.strip())

    # The output may be relative to the repo, not cwd
    if not git_dir.is_absolute():
        git_dir = repo / git_dir

    return git_dir.resolve()


def current_branch(repo: Path | None = None) -> str:
    """
    Get the currently checked out branch name.

    Returns an empty string when HEAD is detached.

    Example:
        branch = current_branch()
        branch = current_branch(Path("/path/to/repo"))
    """
    result = run_git("branch", "--show-current", repo=repo, capture=True)
    return result.stdout.strip()


def branch_label(repo: Path) -> str:
    """
    Describe what a repository has checked out.

    Returns:
        The branch name, `detached@<short-hash>` for a detached HEAD, or
        `"unknown"` when the repository has no commits yet.

    Example:
        branch_label(Path("/repo/vendor/lib"))  # "main" or "detached@1a2b3c4"
    """
    head = run_git("rev-parse", "--short", "--verify", "-q", "HEAD", repo=repo, capture=True, check=False)
    if head.returncode != 0 or not (short_hash := head.stdout.strip()):
        return "unknown"

    if branch := current_branch(repo):
        return branch
    return f"detached@{short_hash}"


def remote_url(repo: Path, remote_name: str = "origin") -> str | None:
    """
    Get the URL of a remote, or None if the remote is not configured.

    Example:
        url = remote_url(Path("/repo/vendor/lib"))
    """
    result = run_git("remote", "get-url", remote_name, repo=repo, capture=True, check=False)
    if result.returncode == 0 and (url := result.stdout.strip()):
        return url
    return None


def status_lines(repo: Path | None = None) -> list[str]:
    """
    Get the short status of the working tree, one entry per changed path.

    This includes both tracked and untracked files.

    Example:
        for line in status_lines(Path("/repo")):
            print(line)  # "?? vendor/"
    """
    result = run_git("status", "--porcelain", repo=repo, capture=True)
    return [line for line in result.stdout.splitlines() if line.strip()]


def has_uncommitted_changes(repo: Path | None = None) -> bool:
    """
    Check if there are uncommitted changes in the working tree.

    This includes both tracked and untracked files.

    Args:
        repo: Optional repository path. If None, uses current directory.

    Returns:
        True if there are uncommitted changes, False otherwise

    Example:
        if has_uncommitted_changes():
            print("You have uncommitted changes")
    """
    return bool(status_lines(repo))


def find_nested_repos(
    root_dir: str | Path,
    exclude: Iterable[str] = (),
) -> Iterator[Path]:
    """
    Find git repositories nested below root_dir.

    Yields repository paths (parent of .git file/directory), never root_dir
    itself. Directories matching one of the gitignore-style `exclude`
    patterns are pruned before they are walked, so nothing below them is
    visited. `.git` directories are never walked either.

    Args:
        root_dir: Root directory to search for git repositories
        exclude: Gitignore-style patterns, matched against paths relative
                 to root_dir (e.g., "node_modules", "third-party/*/build")

    Yields:
        Repository paths in walk order

    Example:
        for repo in find_nested_repos(Path("/repo"), exclude=["node_modules"]):
            print(repo)
    """
    import pathspec

    root_dir = Path(root_dir)

    # Create pathspec matcher (handles gitignore syntax)
    spec = pathspec.GitIgnoreSpec.from_lines(exclude)

    for dirpath, dirnames, _filenames in os.walk(root_dir):
        current = Path(dirpath)

        if current != root_dir and has_git_marker(current):
            yield current

        rel_dir = current.relative_to(root_dir)
        # Prune in place so os.walk doesn't descend
        dirnames[:] = sorted(
            name for name in dirnames
            if name != ".git"
            and not spec.match_file(f"{(rel_dir / name).as_posix()}/")
        )


def submodule_sections(repo: Path) -> dict[str, str]:
    """
    Read the submodule sections declared in `.gitmodules`.

    Uses `git config -f .gitmodules --get-regexp` with NUL separated output
    so names and paths with spaces survive.

    Args:
        repo: Repository path.

    Returns:
        Mapping of submodule name to its `path` value. Empty if there is no
        `.gitmodules`.

    """
    if not (repo / GITMODULES).is_file():
        return {}

    result = run_git(
        "config", "-f", GITMODULES, "-z", "--get-regexp", r"^submodule\..*\.path$",
        repo=repo,
        capture=True,
        check=False,
    )

    if result.returncode != 0 or not result.stdout:
        return {}

    # Output format: "submodule.NAME.path\nVALUE\0"
    sections = {}
    for entry in result.stdout.split("\0"):
        key, sep, value = entry.partition("\n")
        if not sep:
            continue
        name = key.removeprefix("submodule.").removesuffix(".path")
        sections[name] = value
    return sections


def submodule_paths(repo: Path) -> set[str]:
    """
    Get the set of paths registered in `.gitmodules`.

    Example:
        if "vendor/lib" in submodule_paths(Path("/repo")):
            print("already a submodule")
    """
    return set(submodule_sections(repo).values())


def remove_submodule_section(name: str, repo: Path) -> None:
    """
    Remove `submodule.<name>` from `.gitmodules` and from the local config.

    The local config section only exists once a submodule was initialized,
    so its removal is allowed to fail.

    """
    run_git("config", "-f", GITMODULES, "--remove-section", f"submodule.{name}", repo=repo, capture=True)
    run_git("config", "--remove-section", f"submodule.{name}", repo=repo, capture=True, check=False)


def is_tracked(path: str, repo: Path) -> bool:
    """
    Check if the index has any entry at or below `path`.

    Works when the files are gone from the working tree.

    """
    result = run_git("ls-files", "--stage", "--", path, repo=repo, capture=True)
    return bool(result.stdout.strip())


def untrack(path: str, repo: Path) -> None:
    """
    Remove `path` from the index, leaving the working tree alone.

    Example:
        untrack("vendor/lib", repo=Path("/repo"))
    """
    run_git("rm", "-r", "-q", "--cached", "--", path, repo=repo, capture=True)


def index_entries(repo: Path, *paths: str) -> list[str]:
    """
    Get the raw index entries at or below `paths`.

    Each entry is a `git ls-files --stage` line ("<mode> <object> <stage>\\t<path>"),
    the format `restore_index_entries` feeds back to `git update-index`.

    Example:
        saved = index_entries(Path("/repo"), "vendor/lib", ".gitmodules")
    """
    result = run_git("ls-files", "--stage", "-z", "--", *paths, repo=repo, capture=True)
    return [entry for entry in result.stdout.split("\0") if entry]


def restore_index_entries(entries: list[str], paths: Iterable[str], repo: Path) -> None:
    """
    Make the index hold exactly `entries` at or below `paths`.

    Whatever is staged there now is dropped first; the working tree is not
    touched.

    """
    paths = list(paths)
    run_git("rm", "-r", "-q", "-f", "--cached", "--ignore-unmatch", "--", *paths, repo=repo, capture=True)
    if entries:
        run_git(
            "update-index", "-z", "--index-info",
            repo=repo,
            capture=True,
            input="".join(f"{entry}\0" for entry in entries),
        )


def unset_core_worktree(git_dir: Path) -> None:
    """Drop `core.worktree` from the config of `git_dir`, if it is set."""
    run_git("config", "-f", str(git_dir / "config"), "--unset", "core.worktree", capture=True, check=False)


def submodule_add(url: str, path: str, repo: Path) -> None:
    """
    Register a new submodule at `path` cloned from `url`.

    Raises:
        subprocess.CalledProcessError: If git refuses or the clone fails.
        The captured stderr is available on the exception.

    Example:
        submodule_add("https://github.com/org/lib.git", "vendor/lib", Path("/repo"))
    """
    run_git("submodule", "add", "--", url, path, repo=repo, capture=True)
