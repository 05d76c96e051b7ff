"""
Tool registry for the coaching agents.

A Tool pairs an Anthropic tool definition (name, description, JSON input
schema) with a handler that receives the model's input dict. The registry
executes tool calls and always answers with a JSON string, which is what a
``tool_result`` block carries back to the model.

Builders below wrap the API clients, the database, the knowledge index and
the pipelines so each agent can be assembled from the groups it needs.
"""

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, is_dataclass
from typing import Any

import requests
from pydantic import BaseModel, ValidationError

from valocoach.analysis.extract import extract_player_view
from valocoach.core.errors import AimlabAPIError, MatchDataError, ValorantAPIError
from valocoach.integrations.valorant_models import (
    DEFAULT_PLATFORM,
    DEFAULT_REGION,
    Mode,
    Platform,
    Region,
)
from valocoach.pipeline.ingest import SaveMatchRequest
from valocoach.pipeline.knowledge import SaveKnowledgeRequest

logger = logging.getLogger(__name__)

# Errors a tool reports back to the model instead of aborting the agent turn
TOOL_ERRORS = (
    ValorantAPIError,
    AimlabAPIError,
    MatchDataError,
    ValidationError,
    LookupError,
    ValueError,
    requests.RequestException,
)


@dataclass
class Tool:
    name: str
    description: str
    input_schema: dict[str, Any]
    handler: Callable[[dict[str, Any]], Any]

    def definition(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


def to_jsonable(value: Any) -> Any:
    """Convert pydantic models and dataclasses (also nested in lists/dicts) to plain data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, list | tuple):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


class ToolRegistry:
    """Name -> Tool mapping shared by an agent's tool-use loop."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        self.extend(tools)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def extend(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def definitions(self) -> list[dict[str, Any]]:
        """Tool definitions in the Messages API ``tools`` format."""
        return [tool.definition() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def execute(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """
        Run a tool and serialize its result.

        Returns:
            JSON string. Unknown tools and tool failures yield {"error": ...}
        """
        tool = self._tools.get(name)
        if tool is None:
            return json.dumps({"error": f"Unknown tool: {name}"})

        try:
            result = tool.handler(arguments or {})
        except TOOL_ERRORS as e:
            logger.warning("Tool %s failed: %s", name, e)
            return json.dumps({"error": f"{type(e).__name__}: {e}"}, ensure_ascii=False)
        return json.dumps(to_jsonable(result), ensure_ascii=False, default=str)


# =============================================================================
# Schema helpers
# =============================================================================


def _schema(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required or []}


def _str(description: str) -> dict[str, str]:
    return {"type": "string", "description": description}


def _int(description: str, minimum: int | None = None, maximum: int | None = None) -> dict:
    prop: dict[str, Any] = {"type": "integer", "description": description}
    if minimum is not None:
        prop["minimum"] = minimum
    if maximum is not None:
        prop["maximum"] = maximum
    return prop


NAME = _str("Riot ID game name (the part before #)")
TAG = _str("Riot ID tag line (the part after #)")
PUUID = _str("Riot account puuid")
REGION = {"type": "string", "enum": [r.value for r in Region], "description": "Shard region"}
PLATFORM = {"type": "string", "enum": [p.value for p in Platform]}
MODE = {"type": "string", "enum": [m.value for m in Mode], "description": "Game mode filter"}
SIZE = _int("Number of matches (1-10)", 1, 10)
START = _int("Offset of the first match", 0)


def _region(args: dict[str, Any]) -> str:
    return args.get("region") or DEFAULT_REGION


def _platform(args: dict[str, Any]) -> str:
    return args.get("platform") or DEFAULT_PLATFORM


# =============================================================================
# VALORANT API tools
# =============================================================================


def content_tool(api) -> Tool:
    return Tool(
        "valorant_get_content",
        "Current patch catalogue: agents, maps, game modes, skins and other content names.",
        _schema({"locale": _str("Locale such as en-US or ja-JP")}),
        lambda a: api.get_content(a.get("locale")),
    )


def match_summary_tool(api) -> Tool:
    def handler(args: dict[str, Any]) -> Any:
        match = api.get_match(args["match_id"], _region(args))
        view = extract_player_view(match, args["puuid"])
        if view is None:
            raise MatchDataError(f"Player {args['puuid']} is not in match {args['match_id']}")
        return view

    return Tool(
        "valorant_get_match_summary",
        "One player's view of a match: metadata, overall stats, per-round stats and kills.",
        _schema({"puuid": PUUID, "match_id": _str("Match id"), "region": REGION}, ["puuid", "match_id"]),
        handler,
    )


def valorant_api_tools(api) -> list[Tool]:
    """Read-only tools over the HenrikDev API."""
    riot_id = {"name": NAME, "tag": TAG, "region": REGION, "platform": PLATFORM}
    by_puuid = {"puuid": PUUID, "region": REGION, "platform": PLATFORM}
    history = {"mode": MODE, "size": SIZE, "start": START}

    return [
        Tool(
            "valorant_get_account",
            "Resolve a Riot ID to the account (puuid, region, level, card).",
            _schema({"name": NAME, "tag": TAG}, ["name", "tag"]),
            lambda a: api.get_account(a["name"], a["tag"]),
        ),
        Tool(
            "valorant_get_account_by_puuid",
            "Account details for a puuid.",
            _schema({"puuid": PUUID}, ["puuid"]),
            lambda a: api.get_account_by_puuid(a["puuid"]),
        ),
        Tool(
            "valorant_get_matches",
            "Recent full matches of a Riot ID, newest first.",
            _schema({**riot_id, **history}, ["name", "tag"]),
            lambda a: api.get_matches(
                a["name"], a["tag"], _region(a), _platform(a), a.get("mode"), a.get("size"), a.get("start")
            ),
        ),
        Tool(
            "valorant_get_matches_by_puuid",
            "Recent full matches of a puuid, newest first.",
            _schema({**by_puuid, **history}, ["puuid"]),
            lambda a: api.get_matches_by_puuid(
                a["puuid"], _region(a), _platform(a), a.get("mode"), a.get("size"), a.get("start")
            ),
        ),
        Tool(
            "valorant_get_match_ids_by_puuid",
            "Match ids of a puuid's recent matches.",
            _schema({**by_puuid, **history}, ["puuid"]),
            lambda a: api.get_match_ids_by_puuid(
                a["puuid"], _region(a), _platform(a), a.get("mode"), a.get("size"), a.get("start")
            ),
        ),
        match_summary_tool(api),
        Tool(
            "valorant_get_match",
            "Full match payload by id, including every player and kill event.",
            _schema({"match_id": _str("Match id"), "region": REGION}, ["match_id"]),
            lambda a: api.get_match(a["match_id"], _region(a)),
        ),
        Tool(
            "valorant_get_mmr",
            "Current rank, peak rank and seasonal results of a Riot ID.",
            _schema(riot_id, ["name", "tag"]),
            lambda a: api.get_mmr(a["name"], a["tag"], _region(a), _platform(a)),
        ),
        Tool(
            "valorant_get_mmr_by_puuid",
            "Current rank, peak rank and seasonal results of a puuid.",
            _schema(by_puuid, ["puuid"]),
            lambda a: api.get_mmr_by_puuid(a["puuid"], _region(a), _platform(a)),
        ),
        Tool(
            "valorant_get_mmr_history",
            "RR change per recent competitive match of a Riot ID.",
            _schema(riot_id, ["name", "tag"]),
            lambda a: api.get_mmr_history(a["name"], a["tag"], _region(a), _platform(a)),
        ),
        Tool(
            "valorant_get_mmr_history_by_puuid",
            "RR change per recent competitive match of a puuid.",
            _schema(by_puuid, ["puuid"]),
            lambda a: api.get_mmr_history_by_puuid(a["puuid"], _region(a), _platform(a)),
        ),
        Tool(
            "valorant_get_season_history_by_puuid",
            "Per-act competitive results (wins, games, final rank) of a puuid.",
            _schema({"puuid": PUUID, "region": REGION}, ["puuid"]),
            lambda a: api.get_season_history_by_puuid(a["puuid"], _region(a)),
        ),
        Tool(
            "valorant_get_leaderboard",
            "Ranked leaderboard of a region, optionally filtered to one player or season.",
            _schema(
                {
                    "region": REGION,
                    "platform": PLATFORM,
                    "puuid": PUUID,
                    "name": NAME,
                    "tag": TAG,
                    "season_short": _str("Season short name such as e9a1"),
                    "size": _int("Number of entries", 1),
                    "start_index": _int("Offset of the first entry", 0),
                }
            ),
            lambda a: api.get_leaderboard(
                _region(a),
                _platform(a),
                puuid=a.get("puuid"),
                name=a.get("name"),
                tag=a.get("tag"),
                season_short=a.get("season_short"),
                size=a.get("size"),
                start_index=a.get("start_index"),
            ),
        ),
        Tool(
            "valorant_get_premier_team",
            "Premier team details by team id.",
            _schema({"team_id": _str("Premier team id")}, ["team_id"]),
            lambda a: api.get_premier_team(a["team_id"]),
        ),
        Tool(
            "valorant_get_premier_team_history",
            "Premier league match history of a team.",
            _schema({"team_id": _str("Premier team id")}, ["team_id"]),
            lambda a: api.get_premier_team_history(a["team_id"]),
        ),
        Tool(
            "valorant_search_premier_teams",
            "Search Premier teams by name, tag, division or conference.",
            _schema(
                {
                    "name": _str("Team name"),
                    "tag": _str("Team tag"),
                    "division": _int("Division", 1),
                    "conference": _str("Conference id"),
                }
            ),
            lambda a: api.search_premier_teams(
                a.get("name"), a.get("tag"), a.get("division"), a.get("conference")
            ),
        ),
        Tool(
            "valorant_get_premier_leaderboard",
            "Premier standings of a region, optionally narrowed to conference and division.",
            _schema(
                {"region": REGION, "conference": _str("Conference id"), "division": _int("Division", 1)}
            ),
            lambda a: api.get_premier_leaderboard(_region(a), a.get("conference"), a.get("division")),
        ),
        Tool(
            "valorant_get_premier_seasons",
            "Premier seasons and their events for a region.",
            _schema({"region": REGION}),
            lambda a: api.get_premier_seasons(_region(a)),
        ),
        Tool(
            "valorant_get_store_featured",
            "Currently featured store bundles.",
            _schema({}),
            lambda a: api.get_store_featured(),
        ),
        Tool(
            "valorant_get_store_offers",
            "All store offers with prices.",
            _schema({}),
            lambda a: api.get_store_offers(),
        ),
        Tool(
            "valorant_get_esports_schedule",
            "Upcoming and recent esports matches.",
            _schema({"region": _str("Esports region"), "league": _str("League id")}),
            lambda a: api.get_esports_schedule(a.get("region"), a.get("league")),
        ),
        Tool(
            "valorant_get_queue_status",
            "Enabled queues and their settings for a region.",
            _schema({"region": REGION}),
            lambda a: api.get_queue_status(_region(a)),
        ),
        Tool(
            "valorant_get_status",
            "Ongoing maintenances and incidents for a region.",
            _schema({"region": REGION}),
            lambda a: api.get_status(_region(a)),
        ),
        Tool(
            "valorant_generate_crosshair_image",
            "URL of a rendered image of a crosshair code.",
            _schema({"crosshair_id": _str("Crosshair code")}, ["crosshair_id"]),
            lambda a: {"url": api.get_crosshair_image_url(a["crosshair_id"])},
        ),
        content_tool(api),
    ]


# =============================================================================
# Aim Lab tools
# =============================================================================


def aimlab_tools(aimlab) -> list[Tool]:
    return [
        Tool(
            "aimlab_get_profile",
            "Aim Lab profile of a user: rank, skill scores and the user id.",
            _schema({"username": _str("Aim Lab username")}, ["username"]),
            lambda a: aimlab.get_profile(a["username"]),
        ),
        Tool(
            "aimlab_get_plays_agg",
            "Per-task Aim Lab training aggregates (plays, average and best score and accuracy).",
            _schema({"user_id": _str("Aim Lab user id from the profile")}, ["user_id"]),
            lambda a: aimlab.get_plays_aggregate(a["user_id"]),
        ),
    ]


# =============================================================================
# Database tools
# =============================================================================


def database_tools(db) -> list[Tool]:
    """Tools over the match stats database."""
    match_id = _str("External match id")
    player_id = _int("Internal player id from the players table", 1)

    return [
        Tool(
            "db_upsert_player",
            "Insert or update a player by puuid.",
            _schema({"puuid": PUUID, "game_name": NAME, "tag_line": TAG}, ["puuid", "game_name", "tag_line"]),
            lambda a: db.upsert_player(a["puuid"], a["game_name"], a["tag_line"]),
        ),
        Tool(
            "db_get_player_by_name_and_tag",
            "Stored player by Riot ID.",
            _schema({"game_name": NAME, "tag_line": TAG}, ["game_name", "tag_line"]),
            lambda a: db.get_player_by_name_and_tag(a["game_name"], a["tag_line"]),
        ),
        Tool(
            "db_get_player_by_puuid",
            "Stored player by puuid.",
            _schema({"puuid": PUUID}, ["puuid"]),
            lambda a: db.get_player_by_puuid(a["puuid"]),
        ),
        Tool(
            "db_upsert_match",
            "Insert or update a match by its external id.",
            _schema(
                {
                    "match_id": match_id,
                    "map_name": _str("Map name"),
                    "match_start_at": _str("ISO 8601 start time"),
                    "game_mode": _str("Queue id"),
                    "game_version": _str("Game version"),
                },
                ["match_id", "map_name", "match_start_at"],
            ),
            lambda a: db.upsert_match(
                a["match_id"], a["map_name"], a["match_start_at"], a.get("game_mode"), a.get("game_version")
            ),
        ),
        Tool(
            "db_get_match_by_id",
            "Stored match by external id.",
            _schema({"match_id": match_id}, ["match_id"]),
            lambda a: db.get_match_by_id(a["match_id"]),
        ),
        Tool(
            "db_get_matches_by_player_id",
            "Stored matches a player took part in, newest first.",
            _schema({"player_id": player_id, "limit": _int("Maximum rows", 1)}, ["player_id"]),
            lambda a: db.get_matches_by_player_id(a["player_id"], a.get("limit") or 50),
        ),
        Tool(
            "db_upsert_player_match_stat",
            "Insert or update a player's stat row for a match.",
            _schema(
                {
                    "player_id": player_id,
                    "match_id": match_id,
                    "agent_name": _str("Agent played"),
                    "kills": _int("Kills", 0),
                    "deaths": _int("Deaths", 0),
                    "assists": _int("Assists", 0),
                    "combat_score": _int("Combat score", 0),
                    "won": {"type": "boolean"},
                    "etc_data": {"type": "object"},
                },
                ["player_id", "match_id", "agent_name"],
            ),
            lambda a: db.upsert_player_match_stat(
                a["player_id"],
                a["match_id"],
                a["agent_name"],
                kills=a.get("kills", 0),
                deaths=a.get("deaths", 0),
                assists=a.get("assists", 0),
                combat_score=a.get("combat_score", 0),
                won=a.get("won", False),
                etc_data=a.get("etc_data"),
            ),
        ),
        Tool(
            "db_get_player_match_stat",
            "A player's stat row for one match.",
            _schema({"player_id": player_id, "match_id": match_id}, ["player_id", "match_id"]),
            lambda a: db.get_player_match_stat(a["player_id"], a["match_id"]),
        ),
        Tool(
            "db_upsert_match_round",
            "Insert or update one round of a match.",
            _schema(
                {
                    "match_id": match_id,
                    "round_number": _int("1-based round number", 1),
                    "winning_team": _str("Winning team id"),
                    "round_result": _str("How the round ended"),
                },
                ["match_id", "round_number"],
            ),
            lambda a: db.upsert_match_round(
                a["match_id"], a["round_number"], a.get("winning_team"), a.get("round_result")
            ),
        ),
        Tool(
            "db_get_match_rounds_by_match_id",
            "Stored rounds of a match in order.",
            _schema({"match_id": match_id}, ["match_id"]),
            lambda a: db.get_match_rounds_by_match_id(a["match_id"]),
        ),
        Tool(
            "db_get_player_match_stats",
            "A player's recent stat rows with map and start time, newest first.",
            _schema({"player_id": player_id, "limit": _int("Maximum rows", 1)}, ["player_id"]),
            lambda a: db.get_player_match_stats(a["player_id"], a.get("limit") or 20),
        ),
    ]


# =============================================================================
# Knowledge, workflow and research tools
# =============================================================================


def knowledge_query_tool(embedder, store, index_name: str, top_k: int = 10) -> Tool:
    """Semantic search over the knowledge index."""

    def handler(args: dict[str, Any]) -> list[dict[str, Any]]:
        vector = embedder.embed_query(args["query"])
        return store.query(
            index_name,
            vector,
            top_k=args.get("top_k") or top_k,
            filter=args.get("filter"),
        )

    return Tool(
        "search_valorant_knowledge",
        "Search stored coaching knowledge: past match analyses, round and kill "
        "breakdowns, and researched strategy notes. Results carry the text and metadata.",
        _schema(
            {
                "query": _str("What to look for"),
                "top_k": _int("Number of results", 1, 50),
                "filter": {
                    "type": "object",
                    "description": 'Exact metadata matches, e.g. {"type": "player_coaching_advice"}',
                },
            },
            ["query"],
        ),
        handler,
    )


def workflow_tools(ingest=None, knowledge=None) -> list[Tool]:
    """Tools that run the save pipelines. Only pipelines passed in are exposed."""
    riot_id = {"name": NAME, "tag": TAG, "region": REGION, "platform": PLATFORM, "mode": MODE, "size": SIZE}
    tools = []
    if ingest is not None:
        tools.append(
            Tool(
                "save_match",
                "Save a player's recent matches, rounds and stats into the database.",
                _schema({**riot_id, "start": START}, ["name", "tag"]),
                lambda a: ingest.save_match(SaveMatchRequest.model_validate(a)),
            )
        )
    if knowledge is not None:
        tools.append(
            Tool(
                "save_knowledge",
                "Analyze a player's recent matches and store the coaching knowledge for later search.",
                _schema(riot_id, ["name", "tag"]),
                lambda a: knowledge.save_knowledge(SaveKnowledgeRequest.model_validate(a)),
            )
        )
        tools.append(
            Tool(
                "save_research_knowledge",
                "Research a topic on the web and store the summary for later search.",
                _schema({"topic": _str("Topic to research")}, ["topic"]),
                lambda a: {"topic": a["topic"], "chunks": knowledge.save_research_knowledge(a["topic"])},
            )
        )
    return tools


def research_tool(llm) -> Tool:
    return Tool(
        "web_research",
        "Research a VALORANT topic on the web and return a sourced markdown summary.",
        _schema({"topic": _str("Topic to research")}, ["topic"]),
        lambda a: {"topic": a["topic"], "summary": llm.research(a["topic"])},
    )
