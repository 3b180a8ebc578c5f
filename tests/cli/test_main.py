"""Tests for the cwv command line."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from codeweave.cli.main import cli
from codeweave.cli.utils import find_repo_root
from codeweave.config.constants import DATA_DIR_NAME, INDEX_DIR_NAME
from codeweave.index.ops import IndexCoordinator
from fakes import FakeEmbeddingService


@pytest.fixture(autouse=True)
def _isolate_global_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("codeweave.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml")
    for var in ("CODEWEAVE__EMBEDDING__ENABLED", "CODEWEAVE__INDEX__INDEX_PATH"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def repo(sample_repo: Path) -> Path:
    """Sample repository with embeddings switched off in its config."""
    (sample_repo / ".git").mkdir()
    data_dir = sample_repo / DATA_DIR_NAME
    data_dir.mkdir()
    (data_dir / "config.yaml").write_text("embedding:\n  enabled: false\n")
    return sample_repo


@pytest.fixture
def embedded_repo(sample_repo: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Sample repository whose coordinators embed with the fake service."""
    (sample_repo / ".git").mkdir()
    service = FakeEmbeddingService()

    def _coordinator(repo_root: Path, config) -> IndexCoordinator:
        return IndexCoordinator(repo_root, config, services=(service, service))

    monkeypatch.setattr("codeweave.cli.utils.IndexCoordinator", _coordinator)
    return sample_repo


class TestFindRepoRoot:
    def test_walks_up_to_git(self, tmp_path: Path) -> None:
        (tmp_path / ".git").mkdir()
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_repo_root(nested) == tmp_path.resolve()

    def test_data_dir_marks_root(self, tmp_path: Path) -> None:
        (tmp_path / DATA_DIR_NAME).mkdir()
        (tmp_path / "pkg").mkdir()
        assert find_repo_root(tmp_path / "pkg") == tmp_path.resolve()

    def test_file_starts_from_parent(self, tmp_path: Path) -> None:
        (tmp_path / ".git").mkdir()
        target = tmp_path / "main.py"
        target.write_text("x = 1\n")
        assert find_repo_root(target) == tmp_path.resolve()

    def test_plain_directory_falls_back_to_itself(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()
        root = find_repo_root(plain)
        if not any((p / ".git").exists() or (p / DATA_DIR_NAME).exists() for p in plain.resolve().parents):
            assert root == plain.resolve()


class TestCliGroup:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("index", "search", "status", "clear"):
            assert name in result.output


class TestIndexCommand:
    def test_json_stats(self, runner: CliRunner, repo: Path) -> None:
        result = runner.invoke(cli, ["index", str(repo), "--json"])

        assert result.exit_code == 0, result.output
        stats = json.loads(result.stdout)
        assert stats["files_indexed"] == 3
        assert stats["embeddings_added"] == 0
        assert (repo / DATA_DIR_NAME / INDEX_DIR_NAME / "metadata.json").exists()

    def test_second_run_is_incremental(self, runner: CliRunner, repo: Path) -> None:
        runner.invoke(cli, ["index", str(repo)])
        result = runner.invoke(cli, ["index", str(repo), "--json"])
        assert json.loads(result.stdout)["files_unchanged"] == 3

    def test_full(self, runner: CliRunner, repo: Path) -> None:
        runner.invoke(cli, ["index", str(repo)])
        result = runner.invoke(cli, ["index", str(repo), "--full", "--json"])
        assert json.loads(result.stdout)["files_indexed"] == 3

    def test_human_output(self, runner: CliRunner, repo: Path) -> None:
        result = runner.invoke(cli, ["index", str(repo)])
        assert result.exit_code == 0
        assert "Indexed 3 files" in result.output

    def test_missing_path(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["index", str(tmp_path / "nope")])
        assert result.exit_code != 0

    def test_bad_config_is_reported(self, runner: CliRunner, repo: Path) -> None:
        (repo / DATA_DIR_NAME / "config.yaml").write_text("embedding: [unclosed\n")
        result = runner.invoke(cli, ["index", str(repo)])
        assert result.exit_code == 1
        assert "Error" in result.output


class TestStatusCommand:
    def test_not_built(self, runner: CliRunner, repo: Path) -> None:
        result = runner.invoke(cli, ["status", str(repo)])
        assert result.exit_code == 0
        assert "not built" in result.output

    def test_json_after_index(self, runner: CliRunner, repo: Path) -> None:
        runner.invoke(cli, ["index", str(repo)])

        result = runner.invoke(cli, ["status", str(repo), "--json"])

        info = json.loads(result.stdout)
        assert info["files"] == 3
        assert info["embeddings"] == 0
        assert info["embeddings_ready"] is False
        assert info["languages"] == {"python": 1, "typescript": 2}

    def test_human_after_index(self, runner: CliRunner, repo: Path) -> None:
        runner.invoke(cli, ["index", str(repo)])
        result = runner.invoke(cli, ["status", str(repo)])
        assert "Files: 3" in result.output
        assert "unavailable" in result.output


class TestSearchCommand:
    def test_without_embeddings(self, runner: CliRunner, repo: Path) -> None:
        runner.invoke(cli, ["index", str(repo)])

        result = runner.invoke(cli, ["search", "login", "--path", str(repo), "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == []

    def test_json_results(self, runner: CliRunner, embedded_repo: Path) -> None:
        runner.invoke(cli, ["index", str(embedded_repo)])

        result = runner.invoke(cli, ["search", "login user", "-k", "5", "--path", str(embedded_repo), "--json"])

        assert result.exit_code == 0, result.output
        hits = json.loads(result.stdout)
        assert 0 < len(hits) <= 5
        assert {"chunkId", "filePath", "relevance", "content"} <= set(hits[0])

    def test_table_output(self, runner: CliRunner, embedded_repo: Path) -> None:
        runner.invoke(cli, ["index", str(embedded_repo)])
        result = runner.invoke(cli, ["search", "render chart", "--path", str(embedded_repo)])
        assert result.exit_code == 0, result.output
        assert "Relevance" in result.output

    def test_negative_top_k_rejected(self, runner: CliRunner, repo: Path) -> None:
        result = runner.invoke(cli, ["search", "x", "-k", "-1", "--path", str(repo)])
        assert result.exit_code == 2


class TestClearCommand:
    def test_removes_index_keeps_config(self, runner: CliRunner, repo: Path) -> None:
        runner.invoke(cli, ["index", str(repo)])

        result = runner.invoke(cli, ["clear", str(repo), "--yes"])

        assert result.exit_code == 0
        assert not (repo / DATA_DIR_NAME / INDEX_DIR_NAME).exists()
        assert (repo / DATA_DIR_NAME / "config.yaml").exists()

    def test_confirmation_declined(self, runner: CliRunner, repo: Path) -> None:
        runner.invoke(cli, ["index", str(repo)])
        result = runner.invoke(cli, ["clear", str(repo)], input="n\n")
        assert result.exit_code == 0
        assert (repo / DATA_DIR_NAME / INDEX_DIR_NAME).exists()

    def test_nothing_to_clear(self, runner: CliRunner, repo: Path) -> None:
        result = runner.invoke(cli, ["clear", str(repo), "--yes"])
        assert result.exit_code == 0

    def test_empty_data_dir_removed(self, runner: CliRunner, embedded_repo: Path) -> None:
        runner.invoke(cli, ["index", str(embedded_repo)])
        result = runner.invoke(cli, ["clear", str(embedded_repo), "-y"])
        assert result.exit_code == 0
        assert not (embedded_repo / DATA_DIR_NAME).exists()
