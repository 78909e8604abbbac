"""Tests for convert module."""

import shutil
import subprocess

import pytest

import git_submodulize.convert
from conftest import ScriptedPrompter, git, init_repo, snapshot
from git_submodulize.convert import Converter, Outcome, State, summarize
from git_submodulize.git import is_tracked, submodule_add, submodule_sections
from git_submodulize.scanner import Candidate, describe, scan_nested_paths


@pytest.fixture
def nested(git_repo, make_nested):
    """Parent with vendor/lib-a (origin, branch main) and vendor/lib-b (no origin)."""
    lib_a, url_a = make_nested("vendor/lib-a")
    (lib_a / "data.txt").write_text("uncommitted work\n")
    make_nested("vendor/lib-b", origin=False)
    return git_repo, url_a


@pytest.fixture
def backups(tmp_path):
    return tmp_path / "backups"


def converter_for(parent, answers, backups):
    return Converter(parent, ScriptedPrompter(answers), backups)


def gitlink_entries(parent, path):
    stage = git("ls-files", "--stage", "--", path, cwd=parent).stdout
    return [line for line in stage.splitlines() if line.startswith("160000 ")]


def failing_add(url, path, repo):
    raise subprocess.CalledProcessError(128, ["git", "submodule", "add", url, path], stderr="fatal: boom\n")


class TestSuccessfulConversion:
    """Conversions that end in SUCCEEDED."""

    def test_scenario(self, nested, backups):
        parent, url_a = nested
        assert scan_nested_paths(parent) == ["vendor/lib-a", "vendor/lib-b"]

        outcome = converter_for(parent, [""], backups).convert(describe(parent, "vendor/lib-a"))

        assert outcome.state is State.SUCCEEDED
        assert outcome.ok
        assert submodule_sections(parent) == {"vendor/lib-a": "vendor/lib-a"}
        url = git("config", "-f", ".gitmodules", "submodule.vendor/lib-a.url", cwd=parent).stdout.strip()
        assert url == url_a
        assert len(gitlink_entries(parent, "vendor/lib-a")) == 1
        assert scan_nested_paths(parent) == ["vendor/lib-b"]

    def test_backup_is_kept(self, nested, backups):
        parent, _ = nested
        outcome = converter_for(parent, [""], backups).convert(describe(parent, "vendor/lib-a"))

        assert outcome.backup.is_relative_to(backups)
        assert outcome.backup.parent.name.startswith("vendor_lib-a-")
        assert (outcome.backup / "data.txt").read_text() == "uncommitted work\n"
        assert (outcome.backup / ".git").is_dir()
        # The submodule is a fresh clone without the uncommitted file
        assert not (parent / "vendor" / "lib-a" / "data.txt").exists()
        assert (parent / "vendor" / "lib-a" / "README.md").exists()

    def test_asks_for_missing_url(self, nested, backups, tmp_path):
        parent, _ = nested
        upstream = init_repo(tmp_path / "upstream-b")
        converter = converter_for(parent, ["", str(upstream)], backups)

        outcome = converter.convert(describe(parent, "vendor/lib-b"))

        assert outcome.state is State.SUCCEEDED
        assert len(converter.prompter.questions) == 2
        assert "no origin remote" in converter.prompter.questions[1]
        assert submodule_sections(parent) == {"vendor/lib-b": "vendor/lib-b"}


class TestSkippedAndAborted:
    """Items that never reach registration."""

    def test_non_empty_answer_skips(self, nested, backups):
        parent, _ = nested
        before = snapshot(parent / "vendor" / "lib-a")

        outcome = converter_for(parent, ["s"], backups).convert(describe(parent, "vendor/lib-a"))

        assert outcome.state is State.SKIPPED
        assert outcome.backup is None
        assert snapshot(parent / "vendor" / "lib-a") == before
        assert not backups.exists()

    def test_empty_url_skips(self, nested, backups):
        parent, _ = nested
        outcome = converter_for(parent, ["", ""], backups).convert(describe(parent, "vendor/lib-b"))

        assert outcome.state is State.SKIPPED
        assert outcome.detail == "no remote URL"
        assert (parent / "vendor" / "lib-b" / ".git").is_dir()

    def test_vanished_directory_aborts(self, nested, backups):
        parent, _ = nested
        candidate = describe(parent, "vendor/lib-a")
        shutil.rmtree(parent / "vendor" / "lib-a")
        converter = converter_for(parent, [], backups)

        outcome = converter.convert(candidate)

        assert outcome.state is State.ABORTED
        assert converter.prompter.questions == []

    def test_no_longer_a_repository_aborts(self, nested, backups):
        parent, _ = nested
        candidate = describe(parent, "vendor/lib-a")
        shutil.rmtree(parent / "vendor" / "lib-a" / ".git")

        outcome = converter_for(parent, [], backups).convert(candidate)

        assert outcome.state is State.ABORTED
        assert "no longer a git working tree" in outcome.detail


class TestRollback:
    """Registration failures restore the original tree."""

    def test_forced_failure_restores_exact_tree(self, nested, backups, monkeypatch):
        parent, _ = nested
        candidate = describe(parent, "vendor/lib-a")
        before = snapshot(parent / "vendor" / "lib-a")
        monkeypatch.setattr(git_submodulize.convert, "submodule_add", failing_add)

        outcome = converter_for(parent, [""], backups).convert(candidate)

        assert outcome.state is State.ROLLED_BACK
        assert not outcome.ok
        assert snapshot(parent / "vendor" / "lib-a") == before
        assert submodule_sections(parent) == {}
        assert not is_tracked("vendor/lib-a", parent)

    def test_unreachable_url_restores_tree(self, nested, backups, tmp_path):
        parent, _ = nested
        before = snapshot(parent / "vendor" / "lib-a")
        candidate = Candidate("vendor/lib-a", str(tmp_path / "missing.git"), "main")

        outcome = converter_for(parent, [""], backups).convert(candidate)

        assert outcome.state is State.ROLLED_BACK
        assert snapshot(parent / "vendor" / "lib-a") == before
        assert submodule_sections(parent) == {}
        assert not (parent / ".git" / "modules" / "vendor" / "lib-a").exists()

    def test_partial_registration_is_cleaned(self, nested, backups, monkeypatch):
        parent, url_a = nested

        def half_add(url, path, repo):
            git("config", "-f", ".gitmodules", f"submodule.{path}.path", path, cwd=repo)
            git("config", "-f", ".gitmodules", f"submodule.{path}.url", url, cwd=repo)
            (repo / ".git" / "modules" / path).mkdir(parents=True)
            (repo / path).mkdir()
            (repo / path / "partial").write_text("half cloned")
            failing_add(url, path, repo)

        monkeypatch.setattr(git_submodulize.convert, "submodule_add", half_add)
        before = snapshot(parent / "vendor" / "lib-a")

        outcome = converter_for(parent, [""], backups).convert(describe(parent, "vendor/lib-a"))

        assert outcome.state is State.ROLLED_BACK
        assert snapshot(parent / "vendor" / "lib-a") == before
        assert submodule_sections(parent) == {}
        assert not (parent / ".git" / "modules" / "vendor" / "lib-a").exists()

    def test_committed_gitlink_is_restored(self, nested, backups, monkeypatch):
        parent, _ = nested
        git("add", "vendor/lib-a", cwd=parent)
        git("commit", "-q", "-m", "Track lib-a", cwd=parent)
        status = git("status", "--porcelain", cwd=parent).stdout
        monkeypatch.setattr(git_submodulize.convert, "submodule_add", failing_add)

        outcome = converter_for(parent, [""], backups).convert(describe(parent, "vendor/lib-a"))

        assert outcome.state is State.ROLLED_BACK
        assert git("status", "--porcelain", cwd=parent).stdout == status
        assert len(gitlink_entries(parent, "vendor/lib-a")) == 1

    def test_cleanup_failure_restores_index(self, nested, backups, monkeypatch):
        parent, _ = nested
        git("add", "vendor/lib-a", cwd=parent)
        git("commit", "-q", "-m", "Track lib-a", cwd=parent)
        status = git("status", "--porcelain", cwd=parent).stdout
        before = snapshot(parent / "vendor" / "lib-a")

        def broken_sections(repo):
            raise subprocess.CalledProcessError(1, ["git", "config"], stderr="error: could not lock config file\n")

        monkeypatch.setattr(git_submodulize.convert, "submodule_sections", broken_sections)

        outcome = converter_for(parent, [""], backups).convert(describe(parent, "vendor/lib-a"))

        assert outcome.state is State.FAILED
        assert outcome.detail == "residue cleanup failed, original restored"
        assert snapshot(parent / "vendor" / "lib-a") == before
        assert git("status", "--porcelain", cwd=parent).stdout == status


class TestFormerSubmodule:
    """Candidates whose `.git` file points into the parent's `.git/modules`."""

    @pytest.fixture
    def former(self, git_repo, tmp_path):
        upstream = init_repo(tmp_path / "upstream")
        git("submodule", "add", str(upstream), "vendor/lib", cwd=git_repo)
        git("commit", "-q", "-m", "Add lib", cwd=git_repo)
        lib = git_repo / "vendor" / "lib"
        (lib / "work.txt").write_text("local work\n")
        git("add", "work.txt", cwd=lib)
        git("commit", "-q", "-m", "Unpushed local work", cwd=lib)
        git("rm", "-q", "--cached", "vendor/lib", cwd=git_repo)
        git("config", "-f", ".gitmodules", "--remove-section", "submodule.vendor/lib", cwd=git_repo)
        assert (lib / ".git").is_file()
        return git_repo, lib

    def test_is_a_candidate(self, former):
        parent, _ = former
        assert scan_nested_paths(parent) == ["vendor/lib"]

    def test_history_survives_rollback(self, former, backups, monkeypatch):
        parent, lib = former
        monkeypatch.setattr(git_submodulize.convert, "submodule_add", failing_add)

        outcome = converter_for(parent, [""], backups).convert(describe(parent, "vendor/lib"))

        assert outcome.state is State.ROLLED_BACK
        assert (lib / ".git").is_dir()
        assert git("log", "-1", "--format=%s", cwd=lib).stdout.strip() == "Unpushed local work"
        assert git("status", "--porcelain", cwd=lib).stdout == ""
        assert not (parent / ".git" / "modules" / "vendor" / "lib").exists()

    def test_history_is_kept_in_backup(self, former, backups):
        parent, _ = former

        outcome = converter_for(parent, [""], backups).convert(describe(parent, "vendor/lib"))

        assert outcome.state is State.SUCCEEDED
        assert (outcome.backup / ".git").is_dir()
        assert git("log", "-1", "--format=%s", cwd=outcome.backup).stdout.strip() == "Unpushed local work"
        assert submodule_sections(parent) == {"vendor/lib": "vendor/lib"}


class TestResidue:
    """Stale state from earlier attempts never duplicates entries."""

    def test_stale_index_entry_and_section(self, nested, backups):
        parent, url_a = nested
        git("add", "vendor/lib-a", cwd=parent)
        git("config", "-f", ".gitmodules", "submodule.vendor/lib-a.path", "vendor/lib-a", cwd=parent)
        git("config", "-f", ".gitmodules", "submodule.vendor/lib-a.url", url_a, cwd=parent)
        (parent / ".git" / "modules" / "vendor" / "lib-a").mkdir(parents=True)

        outcome = converter_for(parent, [""], backups).convert(describe(parent, "vendor/lib-a"))

        assert outcome.state is State.SUCCEEDED
        assert submodule_sections(parent) == {"vendor/lib-a": "vendor/lib-a"}
        assert (parent / ".gitmodules").read_text().count("path = vendor/lib-a") == 1
        assert len(gitlink_entries(parent, "vendor/lib-a")) == 1

    def test_section_under_other_name(self, nested, backups):
        parent, url_a = nested
        git("config", "-f", ".gitmodules", "submodule.old-name.path", "vendor/lib-a", cwd=parent)
        git("config", "-f", ".gitmodules", "submodule.old-name.url", url_a, cwd=parent)

        outcome = converter_for(parent, [""], backups).convert(describe(parent, "vendor/lib-a"))

        assert outcome.state is State.SUCCEEDED
        assert submodule_sections(parent) == {"vendor/lib-a": "vendor/lib-a"}

    def test_retry_after_failure(self, nested, backups, monkeypatch):
        parent, _ = nested
        candidate = describe(parent, "vendor/lib-a")

        monkeypatch.setattr(git_submodulize.convert, "submodule_add", failing_add)
        first = converter_for(parent, [""], backups).convert(candidate)
        monkeypatch.setattr(git_submodulize.convert, "submodule_add", submodule_add)
        second = converter_for(parent, [""], backups).convert(candidate)

        assert first.state is State.ROLLED_BACK
        assert second.state is State.SUCCEEDED
        assert (parent / ".gitmodules").read_text().count("path = vendor/lib-a") == 1
        assert len(gitlink_entries(parent, "vendor/lib-a")) == 1
        assert first.backup.parent != second.backup.parent


class TestConvertAll:
    """Tests for Converter.convert_all."""

    def test_failure_does_not_block_later_items(self, nested, backups, tmp_path):
        parent, _ = nested
        upstream = init_repo(tmp_path / "upstream-b")
        broken = Candidate("vendor/lib-a", str(tmp_path / "missing.git"), "main")
        working = Candidate("vendor/lib-b", str(upstream), "main")

        outcomes = converter_for(parent, ["", ""], backups).convert_all([broken, working])

        assert [o.state for o in outcomes] == [State.ROLLED_BACK, State.SUCCEEDED]
        assert scan_nested_paths(parent) == ["vendor/lib-a"]

    def test_items_consumed_by_earlier_items_abort(self, git_repo, make_nested, backups):
        outer, _ = make_nested("vendor/outer")
        init_repo(outer / "inner")
        candidates = [describe(git_repo, "vendor/outer"), describe(git_repo, "vendor/outer/inner")]

        outcomes = converter_for(git_repo, [""], backups).convert_all(candidates)

        # The fresh clone of outer doesn't contain the inner repository
        assert [o.state for o in outcomes] == [State.SUCCEEDED, State.ABORTED]


class TestStateAndSummary:
    """Tests for State and summarize."""

    def test_terminal_states(self):
        assert State.SUCCEEDED.is_terminal
        assert State.ROLLED_BACK.is_terminal
        assert State.SKIPPED.is_terminal
        assert not State.REGISTERING.is_terminal
        assert not State.PENDING_CONFIRM.is_terminal

    def test_finishing_in_a_transient_state_is_rejected(self, git_repo, backups):
        converter = converter_for(git_repo, [], backups)
        with pytest.raises(ValueError, match="registering"):
            converter._finish(Outcome("vendor/lib"), State.REGISTERING, "still working")

    def test_summarize_counts_failures(self):
        outcomes = [
            Outcome("a", State.SUCCEEDED),
            Outcome("b", State.SKIPPED),
            Outcome("c", State.ROLLED_BACK, detail="registration failed"),
            Outcome("d", State.ABORTED, detail="gone"),
        ]
        assert summarize(outcomes) == 2

    def test_summarize_empty(self):
        assert summarize([]) == 0
