"""
Response schemas for the HenrikDev VALORANT API.

Match payloads are validated leniently: every field of the v4 match tree is
optional because the API omits whole sections for custom games, deathmatch
and matches still being processed. Account payloads are validated strictly
since the ingestion pipeline depends on them.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

Number = int | float


class Region(StrEnum):
    EU = "eu"
    NA = "na"
    AP = "ap"
    KR = "kr"


class Platform(StrEnum):
    PC = "pc"
    CONSOLE = "console"


class Mode(StrEnum):
    COMPETITIVE = "competitive"
    CUSTOM = "custom"
    DEATHMATCH = "deathmatch"
    GGTEAM = "ggteam"
    HURM = "hurm"
    NEWMAP = "newmap"
    ONEFA = "onefa"
    SNOWBALL = "snowball"
    SPIKERUSH = "spikerush"
    SWIFTPLAY = "swiftplay"
    UNRATED = "unrated"


DEFAULT_REGION = Region.AP
DEFAULT_PLATFORM = Platform.PC
DEFAULT_MODE = Mode.COMPETITIVE


class ApiModel(BaseModel):
    """Base for response models; unknown fields are kept, not rejected."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ============================================================
# Account
# ============================================================


class Account(ApiModel):
    model_config = ConfigDict(extra="ignore")

    puuid: str
    region: str
    account_level: int
    name: str | None
    tag: str | None
    card: str
    title: str
    platforms: list[str]
    updated_at: datetime


# ============================================================
# MMR / leaderboards
# ============================================================


class Tier(ApiModel):
    id: int = Field(ge=0, le=27)
    name: str


class SeasonRef(ApiModel):
    id: str
    short: str


class AccountRef(ApiModel):
    puuid: str
    name: str | None = None
    tag: str | None = None


class LeaderboardPlacement(ApiModel):
    rank: int
    updated_at: datetime | None = None


class MmrCurrent(ApiModel):
    tier: Tier
    rr: int
    last_change: int
    elo: int
    games_needed_for_rating: int = 0
    rank_protection_shields: int = 0
    leaderboard_placement: LeaderboardPlacement | None = None


class MmrPeak(ApiModel):
    season: SeasonRef
    ranking_schema: str | None = None
    rr: int
    tier: Tier


class MmrSeason(ApiModel):
    season: SeasonRef
    wins: int
    games: int
    end_tier: Tier
    end_rr: int
    ranking_schema: str | None = None
    leaderboard_placement: LeaderboardPlacement | None = None
    act_wins: list[Tier] = Field(default_factory=list)


class Mmr(ApiModel):
    """v3 MMR: current rank, peak and per-season results."""

    account: AccountRef
    peak: MmrPeak | None = None
    current: MmrCurrent
    seasonal: list[MmrSeason] = Field(default_factory=list)


class MmrMapRef(ApiModel):
    id: str
    name: str


class MmrHistoryEntry(ApiModel):
    match_id: str
    tier: Tier
    map: MmrMapRef
    season: SeasonRef
    rr: int
    last_change: int
    elo: int
    refunded_rr: int = 0
    was_derank_protected: bool = False
    date: datetime


class MmrHistory(ApiModel):
    account: AccountRef
    history: list[MmrHistoryEntry] = Field(default_factory=list)


class ActRankWin(ApiModel):
    patched_tier: str
    tier: int


class SeasonResult(ApiModel):
    """One act in the v1 per-season history map."""

    error: bool | str = False
    wins: int = 0
    number_of_games: int = 0
    final_rank: int = 0
    final_rank_patched: str | None = None
    act_rank_wins: list[ActRankWin] = Field(default_factory=list)
    old: bool = False


class LeaderboardThreshold(ApiModel):
    tier: int
    start_index: int
    threshold: int


class LeaderboardPlayer(ApiModel):
    card: str | None = None
    title: str | None = None
    is_banned: bool = False
    is_anonymized: bool = False
    puuid: str | None = None
    name: str | None = None
    tag: str | None = None
    leaderboard_rank: int
    tier: int
    rr: int
    wins: int
    updated_at: datetime | None = None


class Leaderboard(ApiModel):
    updated_at: datetime | None = None
    thresholds: list[LeaderboardThreshold] = Field(default_factory=list)
    players: list[LeaderboardPlayer] = Field(default_factory=list)


# ============================================================
# Match v4 (all optional)
# ============================================================


class NamedRef(ApiModel):
    id: str | None = None
    name: str | None = None


class Location(ApiModel):
    x: Number | None = None
    y: Number | None = None


class PlayerRef(ApiModel):
    puuid: str | None = None
    name: str | None = None
    tag: str | None = None
    team: str | None = None


class PlayerLocation(PlayerRef):
    view_radians: Number | None = None
    location: Location | None = None


class QueueInfo(ApiModel):
    id: str | None = None
    name: str | None = None
    mode_type: str | None = None


class SeasonInfo(ApiModel):
    id: str | None = None
    short: str | None = None


class MatchMetadata(ApiModel):
    match_id: str | None = None
    map: NamedRef | None = None
    game_version: str | None = None
    game_length_in_ms: Number | None = None
    started_at: str | None = None
    is_completed: bool | None = None
    queue: QueueInfo | None = None
    season: SeasonInfo | None = None
    platform: str | None = None
    premier: Any = None
    party_rr_penaltys: list[dict[str, Any]] | None = None
    region: str | None = None
    cluster: str | None = None


class Damage(ApiModel):
    dealt: Number | None = None
    received: Number | None = None


class PlayerStats(ApiModel):
    score: Number | None = None
    kills: Number | None = None
    deaths: Number | None = None
    assists: Number | None = None
    headshots: Number | None = None
    legshots: Number | None = None
    bodyshots: Number | None = None
    damage: Damage | None = None


class AbilityCasts(ApiModel):
    grenade: Number | None = None
    ability_1: Number | None = None
    ability_2: Number | None = None
    ultimate: Number | None = None


class TierRef(ApiModel):
    id: int | None = None
    name: str | None = None


class FriendlyFire(ApiModel):
    incoming: Number | None = None
    outgoing: Number | None = None


class Behavior(ApiModel):
    afk_rounds: Number | None = None
    friendly_fire: FriendlyFire | None = None
    rounds_in_spawn: Number | None = None


class OverallAverage(ApiModel):
    overall: Number | None = None
    average: Number | None = None


class PlayerEconomy(ApiModel):
    spent: OverallAverage | None = None
    loadout_value: OverallAverage | None = None


class MatchPlayer(ApiModel):
    puuid: str | None = None
    name: str | None = None
    tag: str | None = None
    team_id: str | None = None
    platform: str | None = None
    party_id: str | None = None
    agent: NamedRef | None = None
    stats: PlayerStats | None = None
    ability_casts: AbilityCasts | None = None
    tier: TierRef | None = None
    card_id: str | None = None
    title_id: str | None = None
    prefered_level_border: str | None = None
    account_level: int | None = None
    session_playtime_in_ms: Number | None = None
    behavior: Behavior | None = None
    economy: PlayerEconomy | None = None


class MatchObserver(ApiModel):
    puuid: str | None = None
    name: str | None = None
    tag: str | None = None
    account_level: int | None = None
    session_playtime_in_ms: Number | None = None
    card_id: str | None = None
    title_id: str | None = None
    party_id: str | None = None


class MatchCoach(ApiModel):
    puuid: str | None = None
    team_id: str | None = None


class TeamRounds(ApiModel):
    won: int | None = None
    lost: int | None = None


class MatchTeam(ApiModel):
    team_id: str | None = None
    rounds: TeamRounds | None = None
    won: bool | None = None
    premier_roster: dict[str, Any] | None = None


class SpikeEvent(ApiModel):
    round_time_in_ms: Number | None = None
    site: str | None = None
    location: Location | None = None
    player: PlayerRef | None = None
    player_locations: list[PlayerLocation] | None = None


class DamageEvent(PlayerRef):
    bodyshots: Number | None = None
    headshots: Number | None = None
    legshots: Number | None = None
    damage: Number | None = None


class RoundPlayerNumbers(ApiModel):
    bodyshots: Number | None = None
    headshots: Number | None = None
    legshots: Number | None = None
    damage: Number | None = None
    kills: Number | None = None
    assists: Number | None = None
    score: Number | None = None


class Weapon(ApiModel):
    id: str | None = None
    name: str | None = None
    type: str | None = None


class RoundEconomy(ApiModel):
    loadout_value: Number | None = None
    remaining: Number | None = None
    weapon: Weapon | None = None
    armor: NamedRef | None = None


class RoundPlayerStats(ApiModel):
    ability_casts: AbilityCasts | None = None
    player: PlayerRef | None = None
    damage_events: list[DamageEvent] | None = None
    stats: RoundPlayerNumbers | None = None
    economy: RoundEconomy | None = None
    was_afk: bool | None = None
    received_penalty: bool | None = None
    stayed_in_spawn: bool | None = None


class MatchRound(ApiModel):
    id: int | None = None
    result: str | None = None
    ceremony: str | None = None
    winning_team: str | None = None
    plant: SpikeEvent | None = None
    defuse: SpikeEvent | None = None
    stats: list[RoundPlayerStats] | None = None


class KillEvent(ApiModel):
    round: int | None = None
    time_in_round_in_ms: Number | None = None
    time_in_match_in_ms: Number | None = None
    killer: PlayerRef | None = None
    victim: PlayerRef | None = None
    assistants: list[PlayerRef] | None = None
    location: Location | None = None
    weapon: Weapon | None = None
    secondary_fire_mode: bool | None = None
    player_locations: list[PlayerLocation] | None = None


class MatchV4(ApiModel):
    """A full v4 match payload."""

    metadata: MatchMetadata | None = None
    players: list[MatchPlayer] | None = None
    observers: list[MatchObserver] | None = None
    coaches: list[MatchCoach] | None = None
    teams: list[MatchTeam] | None = None
    rounds: list[MatchRound] | None = None
    kills: list[KillEvent] | None = None

    @property
    def match_id(self) -> str | None:
        return self.metadata.match_id if self.metadata else None

    def find_player(self, puuid: str) -> MatchPlayer | None:
        for player in self.players or []:
            if player.puuid == puuid:
                return player
        return None


# ============================================================
# Content / status
# ============================================================


class Content(ApiModel):
    """Game content catalogue; entries are kept as raw dicts."""

    version: str | None = None
    characters: list[dict[str, Any]] = Field(default_factory=list)
    maps: list[dict[str, Any]] = Field(default_factory=list)
    chromas: list[dict[str, Any]] = Field(default_factory=list)
    skins: list[dict[str, Any]] = Field(default_factory=list)
    skin_levels: list[dict[str, Any]] = Field(default_factory=list, alias="skinLevels")
    equips: list[dict[str, Any]] = Field(default_factory=list)
    game_modes: list[dict[str, Any]] = Field(default_factory=list, alias="gameModes")
    sprays: list[dict[str, Any]] = Field(default_factory=list)
    player_cards: list[dict[str, Any]] = Field(default_factory=list, alias="playerCards")
    player_titles: list[dict[str, Any]] = Field(default_factory=list, alias="playerTitles")
    acts: list[dict[str, Any]] = Field(default_factory=list)
    ceremonies: list[dict[str, Any]] = Field(default_factory=list)


class LocalizedText(ApiModel):
    content: str
    locale: str


class StatusUpdate(ApiModel):
    id: int
    created_at: str | None = None
    updated_at: str | None = None
    publish: bool = True
    translations: list[LocalizedText] = Field(default_factory=list)
    publish_locations: list[str] = Field(default_factory=list)
    author: str | None = None


class StatusEntry(ApiModel):
    id: int
    maintenance_status: str | None = None
    incident_severity: str | None = None
    titles: list[LocalizedText] = Field(default_factory=list)
    updates: list[StatusUpdate] = Field(default_factory=list)
    created_at: str | None = None
    archive_at: str | None = None
    updated_at: str | None = None
    platforms: list[str] = Field(default_factory=list)


class Status(ApiModel):
    maintenances: list[StatusEntry] = Field(default_factory=list)
    incidents: list[StatusEntry] = Field(default_factory=list)


# ============================================================
# Premier
# ============================================================


class PremierCustomization(ApiModel):
    icon: str | None = None
    image: str | None = None
    primary: str | None = None
    secondary: str | None = None
    tertiary: str | None = None


class PremierTeamStats(ApiModel):
    wins: int = 0
    matches: int = 0
    losses: int = 0


class PremierPlacement(ApiModel):
    points: int = 0
    conference: str | None = None
    division: int = Field(default=1, ge=1, le=20)
    place: int = 0


class PremierTeam(ApiModel):
    id: str
    name: str
    tag: str
    enrolled: bool = False
    stats: PremierTeamStats | None = None
    placement: PremierPlacement | None = None
    customization: PremierCustomization | None = None
    member: list[AccountRef] = Field(default_factory=list)


class PremierLeagueMatch(ApiModel):
    id: str
    points_before: int
    points_after: int
    started_at: datetime


class PremierTeamHistory(ApiModel):
    league_matches: list[PremierLeagueMatch] = Field(default_factory=list)


class PartialPremierTeam(ApiModel):
    id: str
    name: str
    tag: str
    conference: str | None = None
    division: int | None = Field(default=None, ge=1, le=20)
    affinity: str | None = None
    region: str | None = None
    losses: int = 0
    wins: int = 0
    score: int = 0
    ranking: int = 0
    customization: PremierCustomization | None = None


class PremierSeason(ApiModel):
    id: str
    championship_event_id: str | None = None
    championship_points_required: int = 0
    starts_at: datetime
    ends_at: datetime
    enrollment_starts_at: datetime | None = None
    enrollment_ends_at: datetime | None = None
    events: list[dict[str, Any]] = Field(default_factory=list)
    scheduled_events: list[dict[str, Any]] = Field(default_factory=list)


# ============================================================
# Store / esports / queues
# ============================================================


class BundleItem(ApiModel):
    uuid: str
    name: str
    image: str | None = None
    type: str
    amount: int = 1
    discount_percent: Number = 0
    base_price: int = 0
    discounted_price: int = 0
    promo_item: bool = False


class FeaturedBundle(ApiModel):
    bundle_uuid: str
    seconds_remaining: int
    bundle_price: int
    whole_sale_only: bool = False
    expires_at: str | None = None
    items: list[BundleItem] = Field(default_factory=list)


class ContentTier(ApiModel):
    name: str
    dev_name: str | None = None
    icon: str | None = None


class StoreOffer(ApiModel):
    offer_id: str
    cost: int
    name: str
    icon: str | None = None
    type: str
    skin_id: str | None = None
    content_tier: ContentTier | None = None


class StoreOffers(ApiModel):
    offers: list[StoreOffer] = Field(default_factory=list)


class EsportsLeague(ApiModel):
    name: str
    identifier: str
    icon: str | None = None
    region: str | None = None


class EsportsTournament(ApiModel):
    name: str
    season: str | None = None


class EsportsRecord(ApiModel):
    wins: int = 0
    losses: int = 0


class EsportsTeam(ApiModel):
    name: str
    code: str | None = None
    icon: str | None = None
    has_won: bool = False
    game_wins: int = 0
    record: EsportsRecord | None = None


class EsportsGameType(ApiModel):
    type: str | None = None
    count: int | None = None


class EsportsMatch(ApiModel):
    id: str | None = None
    game_type: EsportsGameType | None = None
    teams: list[EsportsTeam] = Field(default_factory=list)


class EsportsScheduleItem(ApiModel):
    date: str
    state: str
    type: str
    vod: str | None = None
    league: EsportsLeague
    tournament: EsportsTournament
    match: EsportsMatch


class PartySize(ApiModel):
    max: int
    min: int
    invalid: list[int] = Field(default_factory=list)
    full_party_bypass: bool = False


class QueueStatus(ApiModel):
    mode: str
    mode_id: str
    enabled: bool
    team_size: int
    number_of_teams: int
    party_size: PartySize | None = None
    high_skill: dict[str, Any] | None = None
    ranked: bool = False
    tournament: bool = False
    skill_disparity: list[dict[str, Any]] = Field(default_factory=list)
    required_account_level: int = 0
    game_rules: dict[str, Any] | None = None
    platforms: list[str] = Field(default_factory=list)
    maps: list[dict[str, Any]] = Field(default_factory=list)
