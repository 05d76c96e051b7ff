"""
ValoCoach HenrikDev VALORANT API Integration

Typed wrapper over the unofficial HenrikDev API: accounts, MMR, match
history, leaderboards, content, status, premier, store, esports and queues.
Each response is validated against a pydantic model from valorant_models.

The client does not retry, cache or rate limit. Callers that page through
match history are responsible for pacing (see pipeline.ingest).
"""

import logging
import os
from typing import Any
from urllib.parse import quote, urlencode

import requests
from pydantic import TypeAdapter

from valocoach.core.errors import ValorantAPIError
from valocoach.integrations.valorant_models import (
    DEFAULT_PLATFORM,
    DEFAULT_REGION,
    Account,
    Content,
    EsportsScheduleItem,
    FeaturedBundle,
    Leaderboard,
    MatchV4,
    Mmr,
    MmrHistory,
    Mode,
    PartialPremierTeam,
    Platform,
    PremierSeason,
    PremierTeam,
    PremierTeamHistory,
    QueueStatus,
    Region,
    SeasonResult,
    Status,
    StoreOffers,
)

logger = logging.getLogger(__name__)

# HenrikDev API base URL
VALORANT_API_BASE = "https://api.henrikdev.xyz"

_MATCH_LIST = TypeAdapter(list[MatchV4])
_SEASON_HISTORY = TypeAdapter(dict[str, SeasonResult])
_PREMIER_TEAMS = TypeAdapter(list[PartialPremierTeam])
_PREMIER_SEASONS = TypeAdapter(list[PremierSeason])
_FEATURED = TypeAdapter(list[FeaturedBundle])
_ESPORTS = TypeAdapter(list[EsportsScheduleItem])
_QUEUES = TypeAdapter(list[QueueStatus])


def _segment(value: Any) -> str:
    """Quote one path segment (riot names may contain spaces and unicode)."""
    return quote(str(value), safe="")


class ValorantAPIClient:
    """
    Client for the HenrikDev VALORANT API.

    Requires an API key from https://docs.henrikdev.xyz, sent verbatim in the
    Authorization header.

    Example:
        >>> from valocoach.integrations.valorant_api import ValorantAPIClient
        >>>
        >>> client = ValorantAPIClient(api_key="HDEV-...")
        >>> account = client.get_account("Player", "JP1")
        >>> matches = client.get_matches_by_puuid(account.puuid, "ap", "pc", size=5)
        >>> for match in matches:
        ...     print(match.metadata.map.name, match.metadata.started_at)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = VALORANT_API_BASE,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: HenrikDev API key. If not provided, will try to read from
                     VALORANT_API_KEY environment variable.
            base_url: API root, without trailing slash
            timeout: Per-request timeout in seconds
            session: Pre-built requests session (tests inject a mock here)
        """
        self.api_key = api_key or os.environ.get("VALORANT_API_KEY")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session

    def _get_session(self) -> requests.Session:
        """Get or create requests session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Accept": "application/json"})
        return self._session

    def _make_request(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """
        Issue one authenticated GET and unwrap the response envelope.

        Query parameters with falsy values are dropped, so a start offset of
        0 or an unset mode is never sent.

        Returns:
            payload["data"] when present and non-null, else the whole payload

        Raises:
            ValorantAPIError: missing key, non-2xx status, or an error envelope
        """
        if not self.api_key:
            raise ValorantAPIError("VALORANT_API_KEY environment variable is not set.")

        query = {key: str(value) for key, value in (params or {}).items() if value}
        url = f"{self.base_url}{endpoint}"
        if query:
            url = f"{url}?{urlencode(query)}"

        logger.debug("GET %s", url)
        response = self._get_session().get(
            url, headers={"Authorization": self.api_key}, timeout=self.timeout
        )

        if not response.ok:
            body = response.text
            raise ValorantAPIError(
                f"API request failed with status {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ValorantAPIError(
                f"API returned a non-JSON body: {response.text[:200]}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if isinstance(payload, dict):
            status = payload.get("status")
            if status and status != 200:
                raise ValorantAPIError(
                    f"API returned an error: {payload.get('errors')}",
                    status_code=status,
                    body=response.text,
                )
            if payload.get("data") is not None:
                return payload["data"]
        return payload

    # =========================================================================
    # Accounts
    # =========================================================================

    def get_account(self, name: str, tag: str) -> Account:
        """Resolve a Riot ID (name#tag) to an account."""
        data = self._make_request(f"/valorant/v2/account/{_segment(name)}/{_segment(tag)}")
        return Account.model_validate(data)

    def get_account_by_puuid(self, puuid: str) -> Account:
        data = self._make_request(f"/valorant/v2/by-puuid/account/{_segment(puuid)}")
        return Account.model_validate(data)

    # =========================================================================
    # MMR
    # =========================================================================

    def get_mmr(
        self,
        name: str,
        tag: str,
        region: Region | str = DEFAULT_REGION,
        platform: Platform | str = DEFAULT_PLATFORM,
    ) -> Mmr:
        """Current rank, peak rank and per-season results."""
        data = self._make_request(
            f"/valorant/v3/mmr/{region}/{platform}/{_segment(name)}/{_segment(tag)}"
        )
        return Mmr.model_validate(data)

    def get_mmr_by_puuid(
        self,
        puuid: str,
        region: Region | str = DEFAULT_REGION,
        platform: Platform | str = DEFAULT_PLATFORM,
    ) -> Mmr:
        data = self._make_request(f"/valorant/v3/by-puuid/mmr/{region}/{platform}/{_segment(puuid)}")
        return Mmr.model_validate(data)

    def get_mmr_history(
        self,
        name: str,
        tag: str,
        region: Region | str = DEFAULT_REGION,
        platform: Platform | str = DEFAULT_PLATFORM,
    ) -> MmrHistory:
        """RR change per recent competitive match."""
        data = self._make_request(
            f"/valorant/v2/mmr-history/{region}/{platform}/{_segment(name)}/{_segment(tag)}"
        )
        return MmrHistory.model_validate(data)

    def get_mmr_history_by_puuid(
        self,
        puuid: str,
        region: Region | str = DEFAULT_REGION,
        platform: Platform | str = DEFAULT_PLATFORM,
    ) -> MmrHistory:
        data = self._make_request(
            f"/valorant/v2/by-puuid/mmr-history/{region}/{platform}/{_segment(puuid)}"
        )
        return MmrHistory.model_validate(data)

    def get_season_history_by_puuid(
        self, puuid: str, region: Region | str = DEFAULT_REGION
    ) -> dict[str, SeasonResult]:
        """Legacy v1 per-act results keyed by act short name (e.g. "e9a1")."""
        data = self._make_request(f"/valorant/v1/by-puuid/mmr-history/{region}/{_segment(puuid)}")
        return _SEASON_HISTORY.validate_python(data)

    # =========================================================================
    # Leaderboards
    # =========================================================================

    def get_leaderboard(
        self,
        region: Region | str = DEFAULT_REGION,
        platform: Platform | str = DEFAULT_PLATFORM,
        puuid: str | None = None,
        name: str | None = None,
        tag: str | None = None,
        season_short: str | None = None,
        season_id: str | None = None,
        size: int | None = None,
        start_index: int | None = None,
    ) -> Leaderboard:
        """Ranked leaderboard (v3), optionally filtered to one player."""
        data = self._make_request(
            f"/valorant/v3/leaderboard/{region}/{platform}",
            {
                "puuid": puuid,
                "name": name,
                "tag": tag,
                "season_short": season_short,
                "season_id": season_id,
                "size": size,
                "start_index": start_index,
            },
        )
        return Leaderboard.model_validate(data)

    def get_legacy_leaderboard(
        self,
        region: Region | str = DEFAULT_REGION,
        puuid: str | None = None,
        name: str | None = None,
        tag: str | None = None,
        season: str | None = None,
    ) -> Leaderboard:
        data = self._make_request(
            f"/valorant/v2/leaderboard/{region}",
            {"puuid": puuid, "name": name, "tag": tag, "season": season},
        )
        return Leaderboard.model_validate(data)

    # =========================================================================
    # Matches
    # =========================================================================

    def get_matches(
        self,
        name: str,
        tag: str,
        region: Region | str = DEFAULT_REGION,
        platform: Platform | str = DEFAULT_PLATFORM,
        mode: Mode | str | None = None,
        size: int | None = None,
        start: int | None = None,
    ) -> list[MatchV4]:
        """One page of match history for a Riot ID, newest first."""
        data = self._make_request(
            f"/valorant/v4/matches/{region}/{platform}/{_segment(name)}/{_segment(tag)}",
            {"mode": mode, "size": size, "start": start},
        )
        return _MATCH_LIST.validate_python(data or [])

    def get_matches_by_puuid(
        self,
        puuid: str,
        region: Region | str = DEFAULT_REGION,
        platform: Platform | str = DEFAULT_PLATFORM,
        mode: Mode | str | None = None,
        size: int | None = None,
        start: int | None = None,
    ) -> list[MatchV4]:
        """One page of match history for a puuid, newest first."""
        data = self._make_request(
            f"/valorant/v4/by-puuid/matches/{region}/{platform}/{_segment(puuid)}",
            {"mode": mode, "size": size, "start": start},
        )
        return _MATCH_LIST.validate_python(data or [])

    def get_match(self, match_id: str, region: Region | str = DEFAULT_REGION) -> MatchV4:
        data = self._make_request(f"/valorant/v4/match/{region}/{_segment(match_id)}")
        return MatchV4.model_validate(data)

    def get_match_ids_by_puuid(
        self,
        puuid: str,
        region: Region | str = DEFAULT_REGION,
        platform: Platform | str = DEFAULT_PLATFORM,
        mode: Mode | str | None = None,
        size: int | None = None,
        start: int | None = None,
    ) -> list[str]:
        """Match ids of one history page, skipping entries without metadata."""
        matches = self.get_matches_by_puuid(puuid, region, platform, mode, size, start)
        return [m.match_id for m in matches if m.match_id]

    # =========================================================================
    # Content / status
    # =========================================================================

    def get_content(self, locale: str | None = None) -> Content:
        """Agents, maps, skins and other catalogue entries for the current patch."""
        data = self._make_request("/valorant/v1/content", {"locale": locale})
        return Content.model_validate(data)

    def get_status(self, region: Region | str = DEFAULT_REGION) -> Status:
        """Ongoing maintenances and incidents for a region."""
        data = self._make_request(f"/valorant/v1/status/{region}")
        return Status.model_validate(data)

    # =========================================================================
    # Premier
    # =========================================================================

    def get_premier_team(self, team_id: str) -> PremierTeam:
        data = self._make_request(f"/valorant/v1/premier/{_segment(team_id)}")
        return PremierTeam.model_validate(data)

    def get_premier_team_history(self, team_id: str) -> PremierTeamHistory:
        data = self._make_request(f"/valorant/v1/premier/{_segment(team_id)}/history")
        return PremierTeamHistory.model_validate(data)

    def search_premier_teams(
        self,
        name: str | None = None,
        tag: str | None = None,
        division: int | None = None,
        conference: str | None = None,
    ) -> list[PartialPremierTeam]:
        data = self._make_request(
            "/valorant/v1/premier/search",
            {"name": name, "tag": tag, "division": division, "conference": conference},
        )
        return _PREMIER_TEAMS.validate_python(data or [])

    def get_premier_leaderboard(
        self,
        region: Region | str = DEFAULT_REGION,
        conference: str | None = None,
        division: int | None = None,
    ) -> list[PartialPremierTeam]:
        """Premier standings; division is only applied together with a conference."""
        endpoint = f"/valorant/v1/premier/leaderboard/{region}"
        if conference:
            endpoint += f"/{_segment(conference)}"
            if division:
                endpoint += f"/{division}"
        data = self._make_request(endpoint)
        return _PREMIER_TEAMS.validate_python(data or [])

    def get_premier_seasons(self, region: Region | str = DEFAULT_REGION) -> list[PremierSeason]:
        data = self._make_request(f"/valorant/v1/premier/seasons/{region}")
        return _PREMIER_SEASONS.validate_python(data or [])

    # =========================================================================
    # Store / esports / queues
    # =========================================================================

    def get_store_featured(self) -> list[FeaturedBundle]:
        data = self._make_request("/valorant/v2/store-featured")
        return _FEATURED.validate_python(data or [])

    def get_store_offers(self) -> StoreOffers:
        data = self._make_request("/valorant/v2/store-offers")
        return StoreOffers.model_validate(data)

    def get_esports_schedule(
        self, region: str | None = None, league: str | None = None
    ) -> list[EsportsScheduleItem]:
        data = self._make_request(
            "/valorant/v1/esports/schedule", {"region": region, "league": league}
        )
        return _ESPORTS.validate_python(data or [])

    def get_queue_status(self, region: Region | str = DEFAULT_REGION) -> list[QueueStatus]:
        data = self._make_request(f"/valorant/v1/queue-status/{region}")
        return _QUEUES.validate_python(data or [])

    def get_crosshair_image_url(self, crosshair_id: str) -> str:
        """
        URL of the rendered crosshair PNG for a crosshair code.

        The endpoint answers with an image, not JSON, so no request is made;
        the URL is handed to whoever displays it.
        """
        return f"{self.base_url}/valorant/v1/crosshair/generate?{urlencode({'id': crosshair_id})}"
