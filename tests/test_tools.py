"""Tests for the agent tool registry and tool builders."""

import json
from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest
from factories import TARGET_PUUID

from valocoach.ai.tools import (
    Tool,
    ToolRegistry,
    aimlab_tools,
    database_tools,
    knowledge_query_tool,
    match_summary_tool,
    research_tool,
    to_jsonable,
    valorant_api_tools,
    workflow_tools,
)
from valocoach.core.errors import ValorantAPIError
from valocoach.pipeline.ingest import SaveMatchRequest
from valocoach.pipeline.knowledge import KnowledgeResult, SaveKnowledgeRequest


def _tool(name="echo", handler=None):
    return Tool(name, "Echo the input.", {"type": "object", "properties": {}}, handler or (lambda a: a))


@dataclass
class _Point:
    x: int
    y: int


class TestToolRegistry:
    def test_definitions(self):
        registry = ToolRegistry([_tool()])

        assert registry.definitions() == [
            {"name": "echo", "description": "Echo the input.", "input_schema": {"type": "object", "properties": {}}}
        ]
        assert "echo" in registry
        assert len(registry) == 1

    def test_duplicate_names_rejected(self):
        registry = ToolRegistry([_tool()])
        with pytest.raises(ValueError, match="echo"):
            registry.register(_tool())

    def test_execute_returns_json(self):
        registry = ToolRegistry([_tool()])
        assert json.loads(registry.execute("echo", {"a": 1})) == {"a": 1}

    def test_unknown_tool(self):
        assert json.loads(ToolRegistry().execute("nope", {})) == {"error": "Unknown tool: nope"}

    def test_handler_errors_become_error_json(self):
        def fail(_):
            raise ValorantAPIError("API request failed with status 404: not found", 404)

        result = json.loads(ToolRegistry([_tool(handler=fail)]).execute("echo", {}))
        assert result == {"error": "ValorantAPIError: API request failed with status 404: not found"}

    def test_missing_argument_is_reported(self):
        registry = ToolRegistry([_tool(handler=lambda a: a["required"])])
        assert "KeyError" in json.loads(registry.execute("echo", {}))["error"]

    def test_unexpected_errors_propagate(self):
        def fail(_):
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            ToolRegistry([_tool(handler=fail)]).execute("echo", {})


class TestToJsonable:
    def test_models_and_dataclasses(self, account):
        data = to_jsonable({"account": account, "points": [_Point(1, 2)]})

        assert data["account"]["puuid"] == TARGET_PUUID
        assert data["points"] == [{"x": 1, "y": 2}]
        json.dumps(data)

    def test_none_fields_dropped_from_models(self):
        request = SaveMatchRequest(name="Target", tag="JP1")
        assert "mode" not in to_jsonable(request)


class TestValorantApiTools:
    @pytest.fixture
    def registry(self, mock_api):
        return ToolRegistry(valorant_api_tools(mock_api))

    def test_expected_tools(self, registry):
        assert {
            "valorant_get_account",
            "valorant_get_matches_by_puuid",
            "valorant_get_match_summary",
            "valorant_get_mmr",
            "valorant_get_leaderboard",
            "valorant_get_premier_team",
            "valorant_get_store_offers",
            "valorant_get_queue_status",
            "valorant_get_status",
            "valorant_get_season_history_by_puuid",
            "valorant_generate_crosshair_image",
            "valorant_get_content",
        } <= set(registry.names())

    def test_region_and_platform_defaults(self, registry, mock_api):
        mock_api.get_mmr.return_value = {"current": None}

        registry.execute("valorant_get_mmr", {"name": "Target", "tag": "JP1"})

        mock_api.get_mmr.assert_called_once_with("Target", "JP1", "ap", "pc")

    def test_account(self, registry, mock_api):
        result = json.loads(registry.execute("valorant_get_account", {"name": "Target", "tag": "JP1"}))
        assert result["puuid"] == TARGET_PUUID

    def test_crosshair_url(self, registry, mock_api):
        mock_api.get_crosshair_image_url.return_value = "https://api.example/crosshair?id=0;P;c;5"

        result = json.loads(registry.execute("valorant_generate_crosshair_image", {"crosshair_id": "0;P;c;5"}))

        assert result == {"url": "https://api.example/crosshair?id=0;P;c;5"}


class TestMatchSummaryTool:
    def test_player_view(self, mock_api, match):
        mock_api.get_match.return_value = match
        registry = ToolRegistry([match_summary_tool(mock_api)])

        view = json.loads(
            registry.execute("valorant_get_match_summary", {"puuid": TARGET_PUUID, "match_id": "match-001"})
        )

        mock_api.get_match.assert_called_once_with("match-001", "ap")
        assert view["player_summary"]["agent_name"] == "Jett"

    def test_absent_player(self, mock_api, match):
        mock_api.get_match.return_value = match
        registry = ToolRegistry([match_summary_tool(mock_api)])

        result = json.loads(
            registry.execute("valorant_get_match_summary", {"puuid": "stranger", "match_id": "match-001"})
        )
        assert result["error"].startswith("MatchDataError")


class TestAimlabTools:
    def test_plays_aggregate(self):
        aimlab = MagicMock()
        aimlab.get_plays_aggregate.return_value = []
        registry = ToolRegistry(aimlab_tools(aimlab))

        assert json.loads(registry.execute("aimlab_get_plays_agg", {"user_id": "u1"})) == []
        aimlab.get_plays_aggregate.assert_called_once_with("u1")


class TestDatabaseTools:
    def test_player_round_trip(self, db):
        registry = ToolRegistry(database_tools(db))

        stored = json.loads(
            registry.execute("db_upsert_player", {"puuid": "p1", "game_name": "Target", "tag_line": "JP1"})
        )
        found = json.loads(
            registry.execute("db_get_player_by_name_and_tag", {"game_name": "Target", "tag_line": "JP1"})
        )

        assert found["id"] == stored["id"]
        assert json.loads(registry.execute("db_get_player_by_puuid", {"puuid": "nobody"})) is None

    def test_stats_with_default_limit(self, db):
        player = db.upsert_player("p1", "Target", "JP1")
        db.upsert_match("m1", "Bind", "2024-05-01T12:00:00Z")
        registry = ToolRegistry(database_tools(db))
        registry.execute(
            "db_upsert_player_match_stat",
            {"player_id": player["id"], "match_id": "m1", "agent_name": "Sage", "kills": 7, "won": True},
        )

        stats = json.loads(registry.execute("db_get_player_match_stats", {"player_id": player["id"]}))

        assert [(s["match_id"], s["kills"], s["won"]) for s in stats] == [("m1", 7, True)]


class TestKnowledgeQueryTool:
    def test_embeds_query_and_searches(self):
        embedder = MagicMock()
        embedder.embed_query.return_value = [0.5, 0.5]
        store = MagicMock()
        store.query.return_value = [{"id": "a", "score": 0.9, "metadata": {"text": "hold B"}}]
        registry = ToolRegistry([knowledge_query_tool(embedder, store, "k", top_k=5)])

        result = json.loads(
            registry.execute("search_valorant_knowledge", {"query": "B site", "filter": {"type": "research"}})
        )

        assert result[0]["metadata"]["text"] == "hold B"
        embedder.embed_query.assert_called_once_with("B site")
        store.query.assert_called_once_with("k", [0.5, 0.5], top_k=5, filter={"type": "research"})


class TestWorkflowTools:
    def test_only_given_pipelines_are_exposed(self):
        assert workflow_tools() == []
        assert [t.name for t in workflow_tools(ingest=MagicMock())] == ["save_match"]
        assert [t.name for t in workflow_tools(knowledge=MagicMock())] == [
            "save_knowledge",
            "save_research_knowledge",
        ]

    def test_save_match_validates_input(self):
        ingest = MagicMock()
        registry = ToolRegistry(workflow_tools(ingest=ingest))

        result = json.loads(registry.execute("save_match", {"name": "Target", "tag": "JP1", "size": 50}))

        assert result["error"].startswith("ValidationError")
        ingest.save_match.assert_not_called()

    def test_save_knowledge(self):
        knowledge = MagicMock()
        knowledge.save_knowledge.return_value = [KnowledgeResult("m1", 7)]
        registry = ToolRegistry(workflow_tools(knowledge=knowledge))

        result = json.loads(registry.execute("save_knowledge", {"name": "Target", "tag": "JP1"}))

        assert result == [{"match_id": "m1", "chunks": 7, "success": True}]
        request = knowledge.save_knowledge.call_args.args[0]
        assert isinstance(request, SaveKnowledgeRequest)
        assert request.size == 5


class TestResearchTool:
    def test_returns_summary(self):
        llm = MagicMock()
        llm.research.return_value = "Summary"
        registry = ToolRegistry([research_tool(llm)])

        assert json.loads(registry.execute("web_research", {"topic": "Icebox"})) == {
            "topic": "Icebox",
            "summary": "Summary",
        }
