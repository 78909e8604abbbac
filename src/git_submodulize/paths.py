"""Path resolution utilities."""

from pathlib import Path


def resolve_path(path: str | Path | None = None) -> Path:
    """
    Resolve a path to an absolute Path object.

    Args:
        path: Path to resolve. If None or empty string, returns current directory.

    Returns:
        Absolute Path object

    Example:
        resolve_path("~/projects")  # Returns /home/user/projects
        resolve_path(None)           # Returns current directory
    """
    if not path:
        return Path.cwd()

    return Path(path).expanduser().resolve()


def has_git_marker(directory: Path) -> bool:
    """
    Check if a directory carries a `.git` marker.

    The marker is a directory for plain clones and a file for submodules
    and worktrees. Exotic filesystem objects (pipes, devices) don't count.

    Example:
        if has_git_marker(Path("/repo/vendor/lib")):
            print("nested repository")
    """
    marker = directory / ".git"
    return marker.is_dir() or marker.is_file()


def is_repo_root(repo: Path) -> bool:
    """
    Check if the given path looks like the root of a repository on disk.

    Only the filesystem is inspected; `Converter` also asks git whether the
    directory is the top of its own working tree.

    Args:
        repo: Path to check

    Returns:
        True if path is absolute, is a directory, and contains a .git marker

    Example:
        if is_repo_root(Path("/repo/vendor/lib")):
            print("still a nested repository")
    """
    return repo.is_absolute() and repo.is_dir() and has_git_marker(repo)


def relative_posix(path: Path, root: Path) -> str:
    """
    Express `path` relative to `root` with forward slashes.

    This is the form git uses for `.gitmodules` paths and index entries.

    >>> relative_posix(Path("/repo/vendor/lib"), Path("/repo"))
    'vendor/lib'

    """
    return path.relative_to(root).as_posix()
