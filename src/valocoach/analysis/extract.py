"""
Player-view extraction.

Narrows a full v4 match payload down to the parts that matter when coaching
one player: match metadata, the player's whole-match summary, the rounds in
which the player has recorded stats, and every kill the player was part of.
The result is small enough to hand to an LLM and to chunk into a knowledge
index.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from valocoach.core.schemas import (
    MatchMetadataView,
    PlayerKillView,
    PlayerRoundView,
    PlayerSummaryView,
    PlayerView,
)
from valocoach.integrations.valorant_models import MatchV4


def _dump(model: BaseModel | None) -> dict[str, Any] | None:
    return model.model_dump(exclude_unset=True) if model is not None else None


def _match_metadata(match: MatchV4) -> MatchMetadataView:
    meta = match.metadata
    winner = next((t for t in match.teams or [] if t.won), None)
    return {
        "match_id": meta.match_id if meta else None,
        "map_name": meta.map.name if meta and meta.map else None,
        "queue_name": meta.queue.name if meta and meta.queue else None,
        "started_at": meta.started_at if meta else None,
        "game_length_ms": meta.game_length_in_ms if meta else None,
        "is_completed": meta.is_completed if meta else None,
        "winning_team": winner.team_id if winner else None,
        "rounds_played": len(match.rounds) if match.rounds is not None else None,
    }


def _player_rounds(match: MatchV4, puuid: str) -> list[PlayerRoundView]:
    rounds: list[PlayerRoundView] = []
    # Numbering follows list position; round ids can have gaps.
    for number, rnd in enumerate(match.rounds or [], start=1):
        entry = next(
            (s for s in rnd.stats or [] if s.player is not None and s.player.puuid == puuid),
            None,
        )
        if entry is None:
            continue
        rounds.append(
            {
                "round_id": rnd.id,
                "round_number": number,
                "result": rnd.result,
                "winning_team": rnd.winning_team,
                "bomb_planted": rnd.plant is not None,
                "bomb_defused": rnd.defuse is not None,
                "plant_site": rnd.plant.site if rnd.plant else None,
                "plant_player": rnd.plant.player.name if rnd.plant and rnd.plant.player else None,
                "defuse_player": rnd.defuse.player.name if rnd.defuse and rnd.defuse.player else None,
                "round_economy": _dump(entry.economy),
                "round_stats": _dump(entry.stats),
                "round_ability_casts": _dump(entry.ability_casts),
            }
        )
    return rounds


def _relevant_kills(match: MatchV4, puuid: str) -> list[PlayerKillView]:
    kills: list[PlayerKillView] = []
    for kill in match.kills or []:
        killer, victim = kill.killer, kill.victim
        if not ((killer and killer.puuid == puuid) or (victim and victim.puuid == puuid)):
            continue
        kills.append(
            {
                "round": kill.round,
                "time_in_round_ms": kill.time_in_round_in_ms,
                "killer_name": killer.name if killer else None,
                "killer_tag": killer.tag if killer else None,
                "victim_name": victim.name if victim else None,
                "victim_tag": victim.tag if victim else None,
                "weapon": kill.weapon.name if kill.weapon else None,
                "location": _dump(kill.location),
            }
        )
    return kills


def extract_player_view(match: MatchV4 | dict[str, Any], target_puuid: str) -> PlayerView | None:
    """
    Build one player's view of a match.

    Args:
        match: A validated MatchV4 or the raw API dict (validated here)
        target_puuid: The player to extract

    Returns:
        The PlayerView, or None when the player is not on the match roster.
        Rounds where the player has no recorded stats are left out of
        player_rounds; the remaining rounds keep their 1-based position in
        the match as round_number.
    """
    if not isinstance(match, MatchV4):
        match = MatchV4.model_validate(match)

    player = match.find_player(target_puuid)
    if player is None:
        return None

    summary: PlayerSummaryView = {
        "puuid": player.puuid,
        "name": player.name,
        "tag": player.tag,
        "team_id": player.team_id,
        "agent_name": player.agent.name if player.agent else None,
        "tier_name": player.tier.name if player.tier else None,
        "overall_stats": _dump(player.stats),
        "overall_economy": _dump(player.economy),
        "overall_ability_casts": _dump(player.ability_casts),
        "behavior": _dump(player.behavior),
    }

    return {
        "match_metadata": _match_metadata(match),
        "player_summary": summary,
        "player_rounds": _player_rounds(match, target_puuid),
        "player_relevant_kills": _relevant_kills(match, target_puuid),
    }
