"""
ValoCoach Match Stats Database.

Relational store for players, matches, match rounds and per-player match
stats, plus the conversation history used by the coaching agents.

Uses SQLAlchemy ORM over SQLite by default. Any SQLAlchemy URL works; for a
hosted libSQL/Turso database install the ``libsql`` extra and pass a
``sqlite+libsql://`` URL together with an auth token.

Every write is an idempotent upsert keyed on a natural identifier (puuid,
external match id, match + round number, player + match), so re-ingesting
the same match overwrites rows instead of duplicating them. Nothing here
deletes rows.
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    create_engine,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    """Parse an API timestamp such as ``2024-05-01T12:00:00.000Z``."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "sqlite:///valocoach.db"
Base = declarative_base()


# =============================================================================
# Database Models
# =============================================================================


class Player(Base):
    """A Riot account seen by the ingestion pipeline."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    puuid = Column(String(100), unique=True, nullable=False)
    game_name = Column(String(100), nullable=False)
    tag_line = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=_utc_now, nullable=False)

    stats = relationship("PlayerMatchStat", back_populates="player")

    __table_args__ = (Index("game_name_tag_line_idx", "game_name", "tag_line", unique=True),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "puuid": self.puuid,
            "game_name": self.game_name,
            "tag_line": self.tag_line,
            "created_at": _iso(self.created_at),
        }


class Match(Base):
    """Match metadata keyed by the external match id."""

    __tablename__ = "matches"

    id = Column(String(64), primary_key=True)
    map_name = Column(String(50), nullable=False)
    game_mode = Column(String(50))
    match_start_at = Column(DateTime, nullable=False)
    game_version = Column(String(100))

    rounds = relationship("MatchRound", back_populates="match")
    stats = relationship("PlayerMatchStat", back_populates="match")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "map_name": self.map_name,
            "game_mode": self.game_mode,
            "match_start_at": _iso(self.match_start_at),
            "game_version": self.game_version,
        }


class MatchRound(Base):
    """One round of a match; round_number is 1-based."""

    __tablename__ = "match_rounds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(String(64), ForeignKey("matches.id"), nullable=False)
    round_number = Column(Integer, nullable=False)
    winning_team = Column(String(20))
    round_result = Column(String(50))

    match = relationship("Match", back_populates="rounds")

    __table_args__ = (
        Index("match_id_idx", "match_id"),
        Index("match_id_round_number_idx", "match_id", "round_number", unique=True),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "match_id": self.match_id,
            "round_number": self.round_number,
            "winning_team": self.winning_team,
            "round_result": self.round_result,
        }


class PlayerMatchStat(Base):
    """A player's performance in one match. The central fact table."""

    __tablename__ = "player_match_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    match_id = Column(String(64), ForeignKey("matches.id"), nullable=False)
    agent_name = Column(String(50), nullable=False)
    kills = Column(Integer, nullable=False, default=0)
    deaths = Column(Integer, nullable=False, default=0)
    assists = Column(Integer, nullable=False, default=0)
    combat_score = Column(Integer, nullable=False, default=0)
    won = Column(Boolean, nullable=False, default=False)

    # Free-form auxiliary data, e.g. {"kill": [kill events by this player]}
    etc_data = Column(JSON)

    player = relationship("Player", back_populates="stats")
    match = relationship("Match", back_populates="stats")

    __table_args__ = (Index("player_id_match_id_idx", "player_id", "match_id", unique=True),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "player_id": self.player_id,
            "match_id": self.match_id,
            "agent_name": self.agent_name,
            "kills": self.kills,
            "deaths": self.deaths,
            "assists": self.assists,
            "combat_score": self.combat_score,
            "won": self.won,
            "etc_data": self.etc_data,
        }


class ConversationMessage(Base):
    """One turn of an agent conversation thread."""

    __tablename__ = "conversation_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(String(100), nullable=False)
    resource_id = Column(String(100))
    role = Column(String(20), nullable=False)
    content = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=_utc_now, nullable=False)

    __table_args__ = (Index("idx_message_thread_created", "thread_id", "created_at"),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "thread_id": self.thread_id,
            "resource_id": self.resource_id,
            "role": self.role,
            "content": self.content,
            "created_at": _iso(self.created_at),
        }


# =============================================================================
# Engine helpers
# =============================================================================


def build_engine(url: str, auth_token: str | None = None, echo: bool = False):
    """
    Create an engine for a SQLAlchemy URL.

    Local SQLite files get their parent directory created; in-memory SQLite
    shares one connection so every session sees the same tables. libSQL URLs
    receive the auth token as a connect argument.
    """
    parsed = make_url(url)
    kwargs: dict[str, Any] = {"echo": echo}

    if parsed.drivername == "sqlite+libsql":
        if auth_token:
            kwargs["connect_args"] = {"auth_token": auth_token}
    elif parsed.drivername.startswith("sqlite"):
        database = parsed.database
        if not database or database == ":memory:":
            kwargs["poolclass"] = StaticPool
        else:
            Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        kwargs["connect_args"] = {"check_same_thread": False}

    return create_engine(url, **kwargs)


def dialect_insert(session: Session):
    """Dialect-specific insert supporting ON CONFLICT DO UPDATE."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upserts are not supported on dialect '{dialect}'")


class DatabaseManager:
    """
    Manages database connections and operations.

    Build one per process (see valocoach.services) and pass it to whoever
    needs it.
    """

    def __init__(self, url: str | None = None, auth_token: str | None = None, echo: bool = False):
        """Initialize database connection and create missing tables."""
        self.url = url or os.environ.get("VALORANT_STORE_URL", DEFAULT_DB_URL)
        auth_token = auth_token or os.environ.get("VALORANT_STORE_AUTH_TOKEN")

        self.engine = build_engine(self.url, auth_token=auth_token, echo=echo)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        Base.metadata.create_all(self.engine)

        safe_url = make_url(self.url).render_as_string(hide_password=True)
        logger.info("Database initialized at: %s", safe_url)

    def get_session(self) -> Session:
        """Get a database session."""
        return self.SessionLocal()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        One session and one transaction.

        Commits when the block exits normally; rolls back and re-raises on
        any exception.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def _scope(self, session: Session | None) -> Iterator[Session]:
        """Use the caller's session as-is, or run in a transaction of our own."""
        if session is not None:
            yield session
        else:
            with self.transaction() as own:
                yield own

    # =========================================================================
    # Upserts
    # =========================================================================

    def upsert_player(
        self, puuid: str, game_name: str, tag_line: str, session: Session | None = None
    ) -> dict[str, Any]:
        """
        Insert a player, or update name and tag of the existing row for puuid.

        created_at is only set on insert.

        Returns:
            The stored player row as a dict
        """
        with self._scope(session) as s:
            insert = dialect_insert(s)
            stmt = insert(Player).values(
                puuid=puuid, game_name=game_name, tag_line=tag_line, created_at=_utc_now()
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[Player.puuid],
                set_={"game_name": stmt.excluded.game_name, "tag_line": stmt.excluded.tag_line},
            )
            s.execute(stmt)
            player = s.query(Player).filter(Player.puuid == puuid).one()
            logger.debug("Upserted player %s#%s (id=%s)", game_name, tag_line, player.id)
            return player.to_dict()

    def upsert_match(
        self,
        match_id: str,
        map_name: str,
        match_start_at: datetime | str,
        game_mode: str | None = None,
        game_version: str | None = None,
        session: Session | None = None,
    ) -> None:
        """Insert or overwrite a match row keyed by its external id."""
        values = {
            "id": match_id,
            "map_name": map_name,
            "game_mode": game_mode,
            "match_start_at": parse_timestamp(match_start_at),
            "game_version": game_version,
        }
        with self._scope(session) as s:
            insert = dialect_insert(s)
            stmt = insert(Match).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Match.id],
                set_={k: stmt.excluded[k] for k in values if k != "id"},
            )
            s.execute(stmt)

    def upsert_match_round(
        self,
        match_id: str,
        round_number: int,
        winning_team: str | None = None,
        round_result: str | None = None,
        session: Session | None = None,
    ) -> None:
        """Insert or overwrite the round keyed by (match_id, round_number)."""
        with self._scope(session) as s:
            insert = dialect_insert(s)
            stmt = insert(MatchRound).values(
                match_id=match_id,
                round_number=round_number,
                winning_team=winning_team,
                round_result=round_result,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[MatchRound.match_id, MatchRound.round_number],
                set_={
                    "winning_team": stmt.excluded.winning_team,
                    "round_result": stmt.excluded.round_result,
                },
            )
            s.execute(stmt)

    def upsert_player_match_stat(
        self,
        player_id: int,
        match_id: str,
        agent_name: str,
        kills: int = 0,
        deaths: int = 0,
        assists: int = 0,
        combat_score: int = 0,
        won: bool = False,
        etc_data: dict[str, Any] | None = None,
        session: Session | None = None,
    ) -> None:
        """Insert or overwrite the stat row keyed by (player_id, match_id)."""
        values = {
            "player_id": player_id,
            "match_id": match_id,
            "agent_name": agent_name,
            "kills": kills,
            "deaths": deaths,
            "assists": assists,
            "combat_score": combat_score,
            "won": won,
            "etc_data": etc_data,
        }
        with self._scope(session) as s:
            insert = dialect_insert(s)
            stmt = insert(PlayerMatchStat).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[PlayerMatchStat.player_id, PlayerMatchStat.match_id],
                set_={k: stmt.excluded[k] for k in values if k not in ("player_id", "match_id")},
            )
            s.execute(stmt)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_player_by_puuid(self, puuid: str) -> dict | None:
        with self._scope(None) as s:
            player = s.query(Player).filter(Player.puuid == puuid).first()
            return player.to_dict() if player else None

    def get_player_by_name_and_tag(self, game_name: str, tag_line: str) -> dict | None:
        with self._scope(None) as s:
            player = (
                s.query(Player)
                .filter(Player.game_name == game_name, Player.tag_line == tag_line)
                .first()
            )
            return player.to_dict() if player else None

    def get_match_by_id(self, match_id: str) -> dict | None:
        with self._scope(None) as s:
            match = s.query(Match).filter(Match.id == match_id).first()
            return match.to_dict() if match else None

    def get_matches_by_player_id(self, player_id: int, limit: int = 50) -> list[dict]:
        """Matches the player has a stat row for, newest first."""
        with self._scope(None) as s:
            matches = (
                s.query(Match)
                .join(PlayerMatchStat, PlayerMatchStat.match_id == Match.id)
                .filter(PlayerMatchStat.player_id == player_id)
                .order_by(Match.match_start_at.desc())
                .limit(limit)
                .all()
            )
            return [m.to_dict() for m in matches]

    def get_player_match_stat(self, player_id: int, match_id: str) -> dict | None:
        with self._scope(None) as s:
            stat = (
                s.query(PlayerMatchStat)
                .filter(PlayerMatchStat.player_id == player_id, PlayerMatchStat.match_id == match_id)
                .first()
            )
            return stat.to_dict() if stat else None

    def get_match_rounds_by_match_id(self, match_id: str) -> list[dict]:
        with self._scope(None) as s:
            rounds = (
                s.query(MatchRound)
                .filter(MatchRound.match_id == match_id)
                .order_by(MatchRound.round_number)
                .all()
            )
            return [r.to_dict() for r in rounds]

    def get_player_match_stats(self, player_id: int, limit: int = 20) -> list[dict]:
        """A player's recent stat rows joined with map and start time, newest first."""
        with self._scope(None) as s:
            rows = (
                s.query(PlayerMatchStat, Match)
                .join(Match, PlayerMatchStat.match_id == Match.id)
                .filter(PlayerMatchStat.player_id == player_id)
                .order_by(Match.match_start_at.desc())
                .limit(limit)
                .all()
            )
            result = []
            for stat, match in rows:
                row = stat.to_dict()
                row["map_name"] = match.map_name
                row["match_start_at"] = _iso(match.match_start_at)
                result.append(row)
            return result

    # =========================================================================
    # Conversation memory
    # =========================================================================

    def append_message(
        self,
        thread_id: str,
        role: str,
        content: Any,
        resource_id: str | None = None,
        session: Session | None = None,
    ) -> dict[str, Any]:
        with self._scope(session) as s:
            message = ConversationMessage(
                thread_id=thread_id, resource_id=resource_id, role=role, content=content
            )
            s.add(message)
            s.flush()
            return message.to_dict()

    def get_thread_messages(self, thread_id: str, limit: int | None = None) -> list[dict]:
        """Messages of a thread in chronological order; with limit, the most recent ones."""
        with self._scope(None) as s:
            query = (
                s.query(ConversationMessage)
                .filter(ConversationMessage.thread_id == thread_id)
                .order_by(ConversationMessage.created_at.desc(), ConversationMessage.id.desc())
            )
            if limit is not None:
                query = query.limit(limit)
            messages = query.all()
            return [m.to_dict() for m in reversed(messages)]
