"""Tests for the command line interface."""

from unittest.mock import MagicMock, patch

import pytest
import yaml
from factories import make_account
from typer.testing import CliRunner

from valocoach import __version__
from valocoach.cli import app
from valocoach.core.errors import ValorantAPIError
from valocoach.pipeline.ingest import SaveMatchResult
from valocoach.pipeline.knowledge import KnowledgeResult

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Run every command from an empty directory with no home config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / ".config"))
    monkeypatch.setenv("VALORANT_STORE_URL", "sqlite:///stats.db")


@pytest.fixture
def services():
    services = MagicMock()
    with patch("valocoach.cli._services", return_value=services):
        yield services


class TestBasics:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_config(self, tmp_path):
        result = runner.invoke(app, ["init-config", "custom.yaml"])

        assert result.exit_code == 0
        assert yaml.safe_load((tmp_path / "custom.yaml").read_text())["vector_store"]["dimension"] == 768

    def test_init_config_refuses_overwrite(self, tmp_path):
        (tmp_path / "valocoach.yaml").write_text("llm:\n  tier: deep\n")

        result = runner.invoke(app, ["init-config"])

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_init_config_rejects_toml(self, tmp_path):
        result = runner.invoke(app, ["init-config", "valocoach.toml"])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert not (tmp_path / "valocoach.toml").exists()

    def test_info_hides_key_values(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-very-secret")

        result = runner.invoke(app, ["info"])

        assert result.exit_code == 0
        assert "sk-ant-very-secret" not in result.output
        assert "stats.db" in result.output


class TestCommands:
    def test_save_match(self, services):
        services.ingestion.save_match.return_value = SaveMatchResult(request_size=3, process_size=3)

        result = runner.invoke(app, ["save-match", "Target", "JP1", "-n", "3", "-r", "eu"])

        assert result.exit_code == 0
        assert "Saved 3 match(es)" in result.output
        request = services.ingestion.save_match.call_args.args[0]
        assert (request.name, request.tag, request.size, request.region) == ("Target", "JP1", 3, "eu")

    def test_save_match_rejects_large_size(self, services):
        result = runner.invoke(app, ["save-match", "Target", "JP1", "-n", "11"])

        assert result.exit_code != 0
        services.ingestion.save_match.assert_not_called()

    def test_api_error_is_reported(self, services):
        services.ingestion.save_match.side_effect = ValorantAPIError("API request failed with status 404: {}", 404)

        result = runner.invoke(app, ["save-match", "Nobody", "0000"])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_save_all_matches_uses_page_size(self, services):
        services.ingestion.save_all_matches.return_value = SaveMatchResult(request_size=23, process_size=23)

        result = runner.invoke(app, ["save-all-matches", "Target", "JP1"])

        assert result.exit_code == 0
        assert services.ingestion.save_all_matches.call_args.args[0].size == 10

    def test_sizes_default_from_config(self, services, tmp_path):
        (tmp_path / "valocoach.yaml").write_text(
            "pipeline:\n  default_page_size: 4\n  knowledge_page_size: 3\n"
        )
        services.ingestion.save_match.return_value = SaveMatchResult(request_size=4, process_size=4)
        services.knowledge.save_knowledge.return_value = []

        assert runner.invoke(app, ["save-match", "Target", "JP1"]).exit_code == 0
        assert runner.invoke(app, ["save-knowledge", "Target", "JP1"]).exit_code == 0

        assert services.ingestion.save_match.call_args.args[0].size == 4
        assert services.knowledge.save_knowledge.call_args.args[0].size == 3

    def test_explicit_size_beats_config(self, services, tmp_path):
        (tmp_path / "valocoach.yaml").write_text("pipeline:\n  knowledge_page_size: 3\n")
        services.knowledge.save_knowledge.return_value = []

        runner.invoke(app, ["save-knowledge", "Target", "JP1", "-n", "7"])

        assert services.knowledge.save_knowledge.call_args.args[0].size == 7

    def test_save_knowledge_table(self, services):
        services.knowledge.save_knowledge.return_value = [KnowledgeResult("match-001", 7)]

        result = runner.invoke(app, ["save-knowledge", "Target", "JP1"])

        assert result.exit_code == 0
        assert "match-001" in result.output
        assert services.knowledge.save_knowledge.call_args.args[0].mode == "competitive"

    def test_research_saves_summary(self, services):
        services.llm.research.return_value = "# Lotus\nDouble controller."
        services.knowledge.save_text_knowledge.return_value = 2

        result = runner.invoke(app, ["research", "Lotus meta"])

        assert result.exit_code == 0
        services.knowledge.save_text_knowledge.assert_called_once_with(
            "# Lotus\nDouble controller.", "Lotus meta", "web_research"
        )
        assert "Stored 2 chunk(s)" in result.output

    def test_research_without_saving(self, services):
        services.llm.research.return_value = "summary"

        result = runner.invoke(app, ["research", "Lotus meta", "--no-save"])

        assert result.exit_code == 0
        services.knowledge.save_text_knowledge.assert_not_called()

    def test_research_from_file(self, services, tmp_path):
        notes = tmp_path / "notes.md"
        notes.write_text("Smoke mid before contact.", encoding="utf-8")
        services.knowledge.save_text_knowledge.return_value = 1

        result = runner.invoke(app, ["research", "Split mid", "--from-file", str(notes)])

        assert result.exit_code == 0
        services.llm.research.assert_not_called()
        services.knowledge.save_text_knowledge.assert_called_once_with(
            "Smoke mid before contact.", "Split mid", source=str(notes)
        )

    def test_ask_continues_a_thread(self, services):
        agent = services.agent.return_value
        agent.name = "valorantCoachAgent"
        agent.generate.return_value = "Hold angles."

        result = runner.invoke(app, ["ask", "How do I hold B?", "--agent", "match-coach", "--thread", "t1"])

        assert result.exit_code == 0
        services.agent.assert_called_once_with("match-coach")
        agent.generate.assert_called_once_with("How do I hold B?", thread_id="t1")
        assert "thread: t1" in result.output

    def test_ask_unknown_agent(self, services):
        services.agent.side_effect = KeyError("Unknown agent 'nope'")

        result = runner.invoke(app, ["ask", "hi", "--agent", "nope"])

        assert result.exit_code == 1

    def test_account_panel(self, services):
        services.api.get_account.return_value = make_account()
        mmr = MagicMock()
        mmr.current.tier.name = "Platinum 1"
        mmr.current.rr = 42
        mmr.peak.tier.name = "Diamond 2"
        services.api.get_mmr_by_puuid.return_value = mmr

        result = runner.invoke(app, ["account", "Target", "JP1"])

        assert result.exit_code == 0
        assert "Platinum 1" in result.output
        assert "Diamond 2" in result.output
