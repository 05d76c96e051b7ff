"""
Match Ingestion Pipeline - save a player's matches into the relational store.

Flow for "save match":
  1. Resolve the Riot ID (name#tag) to an account
  2. Upsert the Player row keyed by puuid
  3. Fetch one page of matches for that puuid
  4. Per match: validate required fields, then upsert the match, its rounds
     and the player's stat row in one transaction

"Save all matches" replaces step 3 with a paging loop that sleeps between
pages and stops at the first empty page.

The first error aborts the run. Matches already written stay written; the
upserts make a re-run safe.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel, Field

from valocoach.core.errors import MatchDataError
from valocoach.infra.database import DatabaseManager
from valocoach.integrations.valorant_api import ValorantAPIClient
from valocoach.integrations.valorant_models import (
    DEFAULT_PLATFORM,
    DEFAULT_REGION,
    MatchV4,
    Mode,
    Platform,
    Region,
)

logger = logging.getLogger(__name__)

# The API allows ~30 requests/minute
DEFAULT_PAGE_DELAY_SECONDS = 5.0


class SaveMatchRequest(BaseModel):
    """Input of "save match" and "save all matches"."""

    name: str = Field(min_length=1, description="Riot ID game name")
    tag: str = Field(min_length=1, description="Riot ID tag line")
    region: Region = DEFAULT_REGION
    platform: Platform = DEFAULT_PLATFORM
    mode: Mode | None = None
    size: int = Field(default=1, ge=1, le=10, description="Matches per page")
    start: int = Field(default=0, ge=0, description="Offset of the first match")


@dataclass
class SaveMatchResult:
    request_size: int
    process_size: int


@dataclass(frozen=True)
class ResolvedPlayer:
    """The stored player a pipeline run works for."""

    id: int
    puuid: str
    name: str
    tag: str


def validate_match(match: MatchV4) -> None:
    """
    Check the fields the relational store needs.

    Raises:
        MatchDataError: listing every missing field
    """
    meta = match.metadata
    missing = []
    if not (meta and meta.match_id):
        missing.append("metadata.match_id")
    if not (meta and meta.map and meta.map.name):
        missing.append("metadata.map.name")
    if not (meta and meta.queue and meta.queue.id):
        missing.append("metadata.queue.id")
    if not (meta and meta.started_at):
        missing.append("metadata.started_at")
    if not (meta and meta.game_version):
        missing.append("metadata.game_version")
    if not match.rounds:
        missing.append("rounds")
    if not match.players:
        missing.append("players")

    if missing:
        match_id = meta.match_id if meta else None
        raise MatchDataError(
            f"Match {match_id or '<unknown>'} is missing required fields: {', '.join(missing)}",
            missing=missing,
        )


class MatchIngestionPipeline:
    """
    Saves matches for one player at a time.

    Example:
        >>> pipeline = MatchIngestionPipeline(api, db)
        >>> result = pipeline.save_match(SaveMatchRequest(name="Player", tag="JP1", size=5))
        >>> print(result.process_size)
    """

    def __init__(
        self,
        api: ValorantAPIClient,
        db: DatabaseManager,
        page_delay: float = DEFAULT_PAGE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api = api
        self.db = db
        self.page_delay = page_delay
        self._sleep = sleep

    # =========================================================================
    # Steps
    # =========================================================================

    def resolve_player(self, name: str, tag: str) -> ResolvedPlayer:
        """Look up the account and upsert the Player row."""
        account = self.api.get_account(name, tag)
        # The account endpoint echoes the canonical casing of the Riot ID
        game_name = account.name or name
        tag_line = account.tag or tag
        row = self.db.upsert_player(account.puuid, game_name, tag_line)
        player = ResolvedPlayer(id=row["id"], puuid=account.puuid, name=game_name, tag=tag_line)
        logger.info("Resolved %s#%s to player id %d", game_name, tag_line, player.id)
        return player

    def fetch_page(
        self, player: ResolvedPlayer, request: SaveMatchRequest, start: int
    ) -> list[MatchV4]:
        matches = self.api.get_matches_by_puuid(
            player.puuid,
            request.region,
            request.platform,
            mode=request.mode,
            size=request.size,
            start=start,
        )
        logger.info(
            "Fetched %d matches for %s#%s (start=%d)", len(matches), player.name, player.tag, start
        )
        return matches

    def fetch_all_matches(self, player: ResolvedPlayer, request: SaveMatchRequest) -> list[MatchV4]:
        """Page through match history until the API returns an empty page."""
        all_matches: list[MatchV4] = []
        start = request.start
        while True:
            page = self.fetch_page(player, request, start)
            if not page:
                break
            all_matches.extend(page)
            start += len(page)
            self._sleep(self.page_delay)
        return all_matches

    def save_match_record(self, match: MatchV4, player: ResolvedPlayer) -> None:
        """
        Write one match, its rounds and the player's stat row.

        Validation runs before the transaction opens, so a match with missing
        fields writes nothing.
        """
        validate_match(match)
        meta = match.metadata
        match_id = meta.match_id

        with self.db.transaction() as session:
            self.db.upsert_match(
                match_id=match_id,
                map_name=meta.map.name,
                match_start_at=meta.started_at,
                game_mode=meta.queue.id,
                game_version=meta.game_version,
                session=session,
            )

            for number, rnd in enumerate(match.rounds, start=1):
                self.db.upsert_match_round(
                    match_id=match_id,
                    round_number=number,
                    winning_team=rnd.winning_team,
                    round_result=rnd.result,
                    session=session,
                )

            for entry in match.players:
                if entry.puuid != player.puuid:
                    continue
                team = next((t for t in match.teams or [] if t.team_id == entry.team_id), None)
                stats = entry.stats
                kills = [
                    k.model_dump(mode="json", exclude_none=True)
                    for k in match.kills or []
                    if k.killer is not None and k.killer.puuid == entry.puuid
                ]
                self.db.upsert_player_match_stat(
                    player_id=player.id,
                    match_id=match_id,
                    agent_name=(entry.agent.name if entry.agent else None) or "",
                    kills=int(stats.kills or 0) if stats else 0,
                    deaths=int(stats.deaths or 0) if stats else 0,
                    assists=int(stats.assists or 0) if stats else 0,
                    combat_score=int(stats.score or 0) if stats else 0,
                    won=bool(team.won) if team else False,
                    etc_data={"kill": kills},
                    session=session,
                )

        logger.info(
            "Saved match %s (%s, %d rounds) for %s#%s",
            match_id,
            meta.map.name,
            len(match.rounds),
            player.name,
            player.tag,
        )

    # =========================================================================
    # Pipelines
    # =========================================================================

    def save_match(self, request: SaveMatchRequest) -> SaveMatchResult:
        """Save one page of the player's recent matches."""
        player = self.resolve_player(request.name, request.tag)
        matches = self.fetch_page(player, request, request.start)
        for match in matches:
            self.save_match_record(match, player)
        return SaveMatchResult(request_size=request.size, process_size=len(matches))

    def save_all_matches(self, request: SaveMatchRequest) -> SaveMatchResult:
        """Save the player's whole available match history."""
        player = self.resolve_player(request.name, request.tag)
        matches = self.fetch_all_matches(player, request)
        logger.info("Saving %d matches for %s#%s", len(matches), player.name, player.tag)
        for match in matches:
            self.save_match_record(match, player)
        return SaveMatchResult(request_size=len(matches), process_size=len(matches))
