"""
ValoCoach Data Contracts

Every data structure that crosses a module boundary as a plain dict is
defined here. If you need a field that doesn't exist here, ADD IT HERE FIRST,
then update the producer and consumer.

Producers: analysis/extract.py, infra/database.py
Consumers: pipeline/knowledge.py, ai/llm_client.py, ai/tools.py
"""

from __future__ import annotations

from typing import Any, NotRequired, TypedDict

# ============================================================
# PLAYER VIEW: one player's slice of a match
# ============================================================
# Produced by: extract.py extract_player_view()
# Consumed by: knowledge.py, llm_client.py generate_coaching_narrative()


class MatchMetadataView(TypedDict):
    """Match-level fields copied onto every knowledge document."""

    match_id: str | None
    map_name: str | None
    queue_name: str | None
    started_at: str | None
    game_length_ms: int | float | None
    is_completed: bool | None
    winning_team: str | None  # team_id of the team with won == true
    rounds_played: int | None


class PlayerSummaryView(TypedDict):
    """Whole-match identity and aggregates for the target player."""

    puuid: str | None
    name: str | None
    tag: str | None
    team_id: str | None
    agent_name: str | None
    tier_name: str | None
    overall_stats: dict[str, Any] | None  # score, kills, deaths, ..., damage{dealt, received}
    overall_economy: dict[str, Any] | None  # spent{}, loadout_value{}
    overall_ability_casts: dict[str, Any] | None
    behavior: dict[str, Any] | None


class PlayerRoundView(TypedDict):
    """One round in which the target player has recorded stats."""

    round_id: int | None
    round_number: int  # 1-based position in the match's round list
    result: str | None
    winning_team: str | None
    bomb_planted: bool
    bomb_defused: bool
    plant_site: str | None
    plant_player: str | None
    defuse_player: str | None
    round_economy: dict[str, Any] | None
    round_stats: dict[str, Any] | None
    round_ability_casts: dict[str, Any] | None


class PlayerKillView(TypedDict):
    """A kill where the target player is killer or victim."""

    round: int | None
    time_in_round_ms: int | float | None
    killer_name: str | None
    killer_tag: str | None
    victim_name: str | None
    victim_tag: str | None
    weapon: str | None
    location: dict[str, Any] | None  # {"x": ..., "y": ...}


class PlayerView(TypedDict):
    """Complete output of extract_player_view()."""

    match_metadata: MatchMetadataView
    player_summary: PlayerSummaryView
    player_rounds: list[PlayerRoundView]
    player_relevant_kills: list[PlayerKillView]


# ============================================================
# PERSISTENCE ROWS: what DatabaseManager getters return
# ============================================================


class PlayerRow(TypedDict):
    id: int
    puuid: str
    game_name: str
    tag_line: str
    created_at: str | None


class MatchRow(TypedDict):
    id: str
    map_name: str
    game_mode: str | None
    match_start_at: str | None
    game_version: str | None


class MatchRoundRow(TypedDict):
    id: int
    match_id: str
    round_number: int
    winning_team: str | None
    round_result: str | None


class PlayerMatchStatRow(TypedDict):
    id: int
    player_id: int
    match_id: str
    agent_name: str
    kills: int
    deaths: int
    assists: int
    combat_score: int
    won: bool
    etc_data: dict[str, Any] | None
    # Joined in by get_player_match_stats()
    map_name: NotRequired[str]
    match_start_at: NotRequired[str | None]


class MessageRow(TypedDict):
    id: int
    thread_id: str
    resource_id: str | None
    role: str  # "user" or "assistant"
    content: Any  # str or list of provider content blocks
    created_at: str | None


# ============================================================
# VECTOR QUERY RESULTS
# ============================================================


class VectorQueryResult(TypedDict):
    id: str
    score: float  # cosine similarity, 1.0 = identical direction
    metadata: dict[str, Any]
