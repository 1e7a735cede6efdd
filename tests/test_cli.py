"""Tests for the forgesync CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from git import Actor, Repo
from typer.testing import CliRunner

from forgesync.cli import app
from forgesync.config.loader import DEFAULT_CONFIG_TEMPLATE
from forgesync.errors import NotFoundError
from forgesync.ingest import RepositoryService, ServiceResult

runner = CliRunner()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _restore_logger():
    logger = logging.getLogger("forgesync")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers = handlers
    logger.setLevel(level)


@pytest.fixture
def workspace(tmp_path, monkeypatch) -> Path:
    """Config file pointing the store and local source into tmp_path."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path / "fakehome")
    monkeypatch.setenv("FS_TEST_SECRET", "test-secret")
    monkeypatch.delenv("FORGESYNC_TOKEN", raising=False)

    repos = tmp_path / "repos"
    repo = Repo.init(str(repos / "demo"))
    (repos / "demo" / "main.py").write_text("print('hi')\n")
    (repos / "demo" / "gone.txt").write_text("bye\n")
    repo.index.add(["main.py", "gone.txt"])
    alice = Actor("alice", "alice@example.com")
    repo.index.commit("Initial commit", author=alice, committer=alice)
    repo.index.remove(["gone.txt"], working_tree=True)
    repo.index.commit("Remove gone.txt", author=alice, committer=alice)

    cfg = tmp_path / "forgesync-test.yaml"
    cfg.write_text(
        f"store:\n  db_path: \"{tmp_path / 'fs.db'}\"\n"
        f"source:\n  provider: local\n  repos_dir: \"{repos}\"\n"
        "auth:\n  secret_env: FS_TEST_SECRET\n"
        "log_level: error\n"
    )
    return cfg


def _invoke(cfg: Path, *args: str):
    return runner.invoke(app, ["-c", str(cfg), *args])


@pytest.fixture
def seeded(workspace) -> Path:
    result = _invoke(workspace, "languages", "seed")
    assert result.exit_code == 0, result.output
    return workspace


# ---------------------------------------------------------------------------
# forgesync ingest
# ---------------------------------------------------------------------------


class TestIngestCommand:
    def test_success(self, seeded, token):
        result = _invoke(seeded, "ingest", "demo", "--language", "python", "--token", token)
        assert result.exit_code == 0, result.output
        assert "Imported" in result.output
        assert "2 commits" in result.output
        assert "2 files" in result.output

    def test_token_from_env(self, seeded, token, monkeypatch):
        monkeypatch.setenv("FORGESYNC_TOKEN", token)
        result = _invoke(seeded, "ingest", "demo")
        assert result.exit_code == 0, result.output

    def test_conflict_on_second_run(self, seeded, token):
        _invoke(seeded, "ingest", "demo", "--token", token)
        result = _invoke(seeded, "ingest", "demo", "--token", token)
        assert result.exit_code == 1
        assert "CONFLICT" in result.output

    def test_bad_token(self, seeded):
        result = _invoke(seeded, "ingest", "demo", "--token", "nope")
        assert result.exit_code == 1
        assert "BAD_REQUEST" in result.output

    def test_unknown_language(self, seeded, token):
        result = _invoke(seeded, "ingest", "demo", "-l", "cobol", "--token", token)
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output

    def test_missing_upstream(self, seeded, token):
        result = _invoke(seeded, "ingest", "ghost", "--token", token)
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output

    def test_missing_secret(self, seeded, token, monkeypatch):
        monkeypatch.delenv("FS_TEST_SECRET")
        result = _invoke(seeded, "ingest", "demo", "--token", token)
        assert result.exit_code == 1
        assert "FS_TEST_SECRET" in result.output

    def test_summary_failure_is_reported(self, seeded, token, monkeypatch):
        async def missing(self, name, owner):
            return ServiceResult.fail(NotFoundError("repository", "Repository vanished."))

        monkeypatch.setattr(RepositoryService, "get_info", missing)
        result = _invoke(seeded, "ingest", "demo", "--token", token)
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output
        assert isinstance(result.exception, SystemExit)


# ---------------------------------------------------------------------------
# forgesync info / search
# ---------------------------------------------------------------------------


class TestReadCommands:
    @pytest.fixture
    def imported(self, seeded, token) -> Path:
        result = _invoke(seeded, "ingest", "demo", "--token", token)
        assert result.exit_code == 0, result.output
        return seeded

    def test_info(self, imported):
        result = _invoke(imported, "info", "demo", "--owner", "alice-id")
        assert result.exit_code == 0, result.output
        assert "alice-id/demo" in result.output
        assert "main.py" in result.output
        assert "gone.txt (deleted)" in result.output

    def test_info_missing(self, imported):
        result = _invoke(imported, "info", "demo", "--owner", "bob-id")
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output

    def test_search(self, imported):
        result = _invoke(imported, "search", "de")
        assert result.exit_code == 0, result.output
        assert "demo" in result.output

    def test_search_no_match(self, imported):
        result = _invoke(imported, "search", "zzz")
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# forgesync languages
# ---------------------------------------------------------------------------


class TestLanguagesCommands:
    def test_list_empty(self, workspace):
        result = _invoke(workspace, "languages", "list")
        assert result.exit_code == 0
        assert "No languages registered" in result.output

    def test_seed_then_list(self, seeded):
        result = _invoke(seeded, "languages", "list")
        assert result.exit_code == 0
        assert "python" in result.output
        assert ".py" in result.output


# ---------------------------------------------------------------------------
# forgesync config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_show(self, workspace):
        result = _invoke(workspace, "config", "show")
        assert result.exit_code == 0
        assert "FS_TEST_SECRET" in result.output

    def test_init_creates_file(self, workspace, tmp_path):
        result = _invoke(workspace, "config", "init")
        assert result.exit_code == 0
        assert (tmp_path / "forgesync.yaml").read_text() == DEFAULT_CONFIG_TEMPLATE

    def test_init_refuses_overwrite(self, workspace, tmp_path):
        (tmp_path / "forgesync.yaml").write_text("log_level: debug\n")
        result = _invoke(workspace, "config", "init")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_init_force(self, workspace, tmp_path):
        (tmp_path / "forgesync.yaml").write_text("log_level: debug\n")
        result = _invoke(workspace, "config", "init", "--force")
        assert result.exit_code == 0
        assert (tmp_path / "forgesync.yaml").read_text() == DEFAULT_CONFIG_TEMPLATE

    def test_invalid_config_file(self, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("source:\n  provider: svn\n")
        result = runner.invoke(app, ["-c", str(bad), "config", "show"])
        assert result.exit_code == 1
        assert "Invalid config" in result.output
