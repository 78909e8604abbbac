"""Discovery of nested repositories that are not submodules yet."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .git import branch_label, find_nested_repos, remote_url, submodule_paths
from .paths import relative_posix

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


@dataclass(frozen=True)
class Candidate:
    """
    A nested repository that could become a submodule.

    `path` is relative to the parent root, with forward slashes. `url` and
    `branch` are informational and fall back to `UNKNOWN`.

    """

    path: str
    url: str = UNKNOWN
    branch: str = UNKNOWN

    @property
    def has_url(self) -> bool:
        return self.url != UNKNOWN


def scan_nested_paths(parent: Path, exclude: Iterable[str] = ()) -> list[str]:
    """
    List nested repository paths below `parent` that aren't submodules.

    Args:
        parent: Root of the parent working tree.
        exclude: Gitignore-style patterns of directories to prune.

    Returns:
        Sorted, duplicate-free relative paths. Paths listed in the parent's
        `.gitmodules` are left out, so converted repositories never show up
        again.

    Example:
        scan_nested_paths(Path("/repo"), exclude=["node_modules"])
        # ["vendor/lib-a", "vendor/lib-b"]
    """
    registered = submodule_paths(parent)
    found = {relative_posix(repo, parent) for repo in find_nested_repos(parent, exclude)}
    return sorted(found - registered)


def describe(parent: Path, path: str) -> Candidate:
    """Attach origin URL and branch label to a nested repository path."""
    repo = parent / path
    return Candidate(
        path=path,
        url=remote_url(repo) or UNKNOWN,
        branch=branch_label(repo),
    )


def find_candidates(parent: Path, exclude: Iterable[str] = ()) -> list[Candidate]:
    """
    Scan `parent` for nested repositories and describe each one.

    Example:
        for candidate in find_candidates(Path("/repo")):
            print(candidate.path, candidate.url, candidate.branch)
    """
    candidates = [describe(parent, path) for path in scan_nested_paths(parent, exclude)]
    logger.debug("Found %d nested repositories below %s", len(candidates), parent)
    return candidates
