"""Configuration read from git config under the `submodulize.*` namespace."""

import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from .git import git_config

DEFAULT_EXCLUDES = [
    "node_modules",
    ".venv",
    "venv",
    "__pycache__",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    "dist",
    "build",
    "target",
    "Pods",
    "DerivedData",
    ".build",
    "vendor/bundle",
]


def get_submodulize_config(
    key: str,
    repo: Path | None = None,
    default: str | None = None,
) -> str | None:
    """
    Get a submodulize configuration value.

    Reads from git config under the `submodulize.*` namespace, so a value
    set in the repository overrides the global one.

    Args:
        key: Config key without the "submodulize." prefix (e.g., "backupDir").
        repo: Optional repository path. If None, uses current directory.
        default: Default value if config key is not set.

    Returns:
        Config value if set, otherwise default.

    Example:
        backup_dir = get_submodulize_config("backupDir", default="/tmp")

    """
    return git_config(f"submodulize.{key}", repo=repo, default=default)


def _parse_csv_config(value: str) -> list[str]:
    """
    Parse a comma-separated config value into a list.

    Splits on commas, strips whitespace, and filters out empty strings.

    """
    return [stripped for item in value.split(",") if (stripped := item.strip())]


def _config_path(key: str, repo: Path | None, default: Path) -> Path:
    if value := get_submodulize_config(key, repo=repo):
        return Path(value).expanduser()
    return default


def get_exclude_patterns(repo: Path | None = None) -> list[str]:
    """
    Get gitignore-style patterns for directories the scanner never enters.

    Reads from `submodulize.exclude` (comma-separated), which replaces the
    defaults entirely.
    Default: `DEFAULT_EXCLUDES`

    """
    if config := get_submodulize_config("exclude", repo=repo):
        return _parse_csv_config(config)
    return list(DEFAULT_EXCLUDES)


def get_backup_dir(repo: Path | None = None) -> Path:
    """
    Get the directory that receives backups of converted repositories.

    Reads from `submodulize.backupDir`.
    Default: `<tempdir>/git-submodulize`

    """
    return _config_path("backupDir", repo, Path(tempfile.gettempdir()) / "git-submodulize")


def get_log_file(repo: Path | None = None) -> Path:
    """
    Get the log file path.

    Reads from `submodulize.logFile`.
    Default: `<tempdir>/git-submodulize.log`

    """
    return _config_path("logFile", repo, Path(tempfile.gettempdir()) / "git-submodulize.log")


def get_state_file(repo: Path | None = None) -> Path:
    """
    Get the file remembering the last used directory.

    Reads from `submodulize.stateFile`.
    Default: `~/.config/git-submodulize/last-path`

    """
    return _config_path(
        "stateFile", repo, Path.home() / ".config" / "git-submodulize" / "last-path"
    )


@dataclass
class Settings:
    """
    Resolved settings for one run.

    `exclude` stays None unless given explicitly; the patterns are then read
    from each parent repository's config when it is scanned.

    """

    exclude: list[str] | None = None
    backup_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "git-submodulize")
    log_file: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "git-submodulize.log")
    state_file: Path | None = None


def load_settings(
    repo: Path | None = None,
    *,
    exclude: list[str] | None = None,
    backup_dir: Path | None = None,
    log_file: Path | None = None,
    state_file: Path | None = None,
) -> Settings:
    """
    Load settings from git config, letting explicit arguments win.

    Empty or None arguments fall back to config, then to the defaults.
    Exclusion patterns are the exception, see `Settings`.

    Example:
        settings = load_settings(backup_dir=Path("~/backups"))

    """
    return Settings(
        exclude=list(exclude) if exclude else None,
        backup_dir=backup_dir or get_backup_dir(repo),
        log_file=log_file or get_log_file(repo),
        state_file=state_file or get_state_file(repo),
    )
