"""Tests for the match ingestion pipeline (save match / save all matches)."""

from unittest.mock import MagicMock

import pytest
from factories import TARGET_PUUID, make_match, make_raw_match
from pydantic import ValidationError

from valocoach.core.errors import MatchDataError, ValorantAPIError
from valocoach.integrations.valorant_models import MatchV4
from valocoach.pipeline.ingest import (
    MatchIngestionPipeline,
    ResolvedPlayer,
    SaveMatchRequest,
    validate_match,
)


def _pipeline(mock_api, db, sleep=None):
    return MatchIngestionPipeline(mock_api, db, page_delay=5.0, sleep=sleep or MagicMock())


class TestSaveMatchRequest:
    def test_defaults(self):
        request = SaveMatchRequest(name="Target", tag="JP1")

        assert request.region == "ap"
        assert request.platform == "pc"
        assert request.mode is None
        assert request.size == 1
        assert request.start == 0

    @pytest.mark.parametrize("size", [0, 11])
    def test_size_bounds(self, size):
        with pytest.raises(ValidationError):
            SaveMatchRequest(name="Target", tag="JP1", size=size)

    def test_negative_start_rejected(self):
        with pytest.raises(ValidationError):
            SaveMatchRequest(name="Target", tag="JP1", start=-1)

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            SaveMatchRequest(name="", tag="JP1")


class TestValidateMatch:
    def test_complete_match_passes(self, match):
        validate_match(match)

    def test_lists_every_missing_field(self):
        raw = make_raw_match()
        raw["metadata"]["match_id"] = None
        raw["metadata"]["map"] = None
        raw["rounds"] = []

        with pytest.raises(MatchDataError) as exc_info:
            validate_match(MatchV4.model_validate(raw))

        assert exc_info.value.missing == ["metadata.match_id", "metadata.map.name", "rounds"]

    def test_missing_metadata(self):
        with pytest.raises(MatchDataError) as exc_info:
            validate_match(MatchV4())
        assert "metadata.match_id" in exc_info.value.missing
        assert "players" in exc_info.value.missing


class TestSaveMatch:
    def test_resolves_player_and_saves_page(self, mock_api, db, match):
        mock_api.get_matches_by_puuid.return_value = [match]
        request = SaveMatchRequest(name="target", tag="jp1", size=5, start=2)

        result = _pipeline(mock_api, db).save_match(request)

        assert result.request_size == 5
        assert result.process_size == 1
        mock_api.get_account.assert_called_once_with("target", "jp1")
        mock_api.get_matches_by_puuid.assert_called_once_with(
            TARGET_PUUID, "ap", "pc", mode=None, size=5, start=2
        )
        # Canonical casing from the account endpoint is stored
        player = db.get_player_by_puuid(TARGET_PUUID)
        assert (player["game_name"], player["tag_line"]) == ("Target", "JP1")

    def test_writes_match_rounds_and_stat(self, mock_api, db, match):
        mock_api.get_matches_by_puuid.return_value = [match]
        _pipeline(mock_api, db).save_match(SaveMatchRequest(name="Target", tag="JP1"))

        stored = db.get_match_by_id("match-001")
        assert stored["map_name"] == "Ascent"
        assert stored["game_mode"] == "competitive"
        assert stored["game_version"] == "release-09.02"

        rounds = db.get_match_rounds_by_match_id("match-001")
        # Numbered by position even though round ids are 0, 1, 5
        assert [r["round_number"] for r in rounds] == [1, 2, 3]
        assert [r["winning_team"] for r in rounds] == ["Red", "Blue", "Red"]
        assert rounds[1]["round_result"] == "Bomb defused"

        player = db.get_player_by_puuid(TARGET_PUUID)
        stat = db.get_player_match_stat(player["id"], "match-001")
        assert stat["agent_name"] == "Jett"
        assert (stat["kills"], stat["deaths"], stat["assists"]) == (18, 12, 3)
        assert stat["combat_score"] == 4200
        assert stat["won"] is True

    def test_etc_data_holds_only_the_players_kills(self, mock_api, db, match):
        mock_api.get_matches_by_puuid.return_value = [match]
        _pipeline(mock_api, db).save_match(SaveMatchRequest(name="Target", tag="JP1"))

        player = db.get_player_by_puuid(TARGET_PUUID)
        kills = db.get_player_match_stat(player["id"], "match-001")["etc_data"]["kill"]
        assert [k["weapon"]["name"] for k in kills] == ["Vandal", "Sheriff"]
        assert all(k["killer"]["puuid"] == TARGET_PUUID for k in kills)

    def test_only_the_target_gets_a_stat_row(self, mock_api, db, match):
        mock_api.get_matches_by_puuid.return_value = [match]
        _pipeline(mock_api, db).save_match(SaveMatchRequest(name="Target", tag="JP1"))

        player = db.get_player_by_puuid(TARGET_PUUID)
        assert len(db.get_player_match_stats(player["id"])) == 1
        assert db.get_player_by_puuid("puuid-enemy") is None

    def test_losing_team(self, mock_api, db):
        raw = make_raw_match()
        raw["teams"][0]["won"] = False
        mock_api.get_matches_by_puuid.return_value = [MatchV4.model_validate(raw)]
        _pipeline(mock_api, db).save_match(SaveMatchRequest(name="Target", tag="JP1"))

        player = db.get_player_by_puuid(TARGET_PUUID)
        assert db.get_player_match_stat(player["id"], "match-001")["won"] is False

    def test_resave_is_idempotent(self, mock_api, db, match):
        mock_api.get_matches_by_puuid.return_value = [match]
        pipeline = _pipeline(mock_api, db)
        pipeline.save_match(SaveMatchRequest(name="Target", tag="JP1"))
        pipeline.save_match(SaveMatchRequest(name="Target", tag="JP1"))

        player = db.get_player_by_puuid(TARGET_PUUID)
        assert len(db.get_matches_by_player_id(player["id"])) == 1
        assert len(db.get_match_rounds_by_match_id("match-001")) == 3
        assert len(db.get_player_match_stats(player["id"])) == 1

    def test_invalid_match_writes_nothing_and_aborts(self, mock_api, db):
        bad = make_raw_match("bad")
        bad["metadata"]["map"] = None
        mock_api.get_matches_by_puuid.return_value = [
            make_match("m-ok"),
            MatchV4.model_validate(bad),
            make_match("m-after"),
        ]

        with pytest.raises(MatchDataError):
            _pipeline(mock_api, db).save_match(SaveMatchRequest(name="Target", tag="JP1", size=3))

        assert db.get_match_by_id("m-ok") is not None
        assert db.get_match_by_id("bad") is None
        assert db.get_match_rounds_by_match_id("bad") == []
        assert db.get_match_by_id("m-after") is None

    def test_missing_match_id_writes_no_rows(self, mock_api, db):
        raw = make_raw_match()
        raw["metadata"]["match_id"] = None
        mock_api.get_matches_by_puuid.return_value = [MatchV4.model_validate(raw)]

        with pytest.raises(MatchDataError, match="metadata.match_id"):
            _pipeline(mock_api, db).save_match(SaveMatchRequest(name="Target", tag="JP1"))

        player = db.get_player_by_puuid(TARGET_PUUID)
        assert db.get_player_match_stats(player["id"]) == []

    def test_account_error_propagates(self, mock_api, db):
        mock_api.get_account.side_effect = ValorantAPIError("API request failed with status 404: {}", 404)

        with pytest.raises(ValorantAPIError):
            _pipeline(mock_api, db).save_match(SaveMatchRequest(name="Nobody", tag="0000"))
        mock_api.get_matches_by_puuid.assert_not_called()

    def test_empty_page(self, mock_api, db):
        mock_api.get_matches_by_puuid.return_value = []
        result = _pipeline(mock_api, db).save_match(SaveMatchRequest(name="Target", tag="JP1", size=3))

        assert (result.request_size, result.process_size) == (3, 0)


class TestSaveAllMatches:
    def test_pages_until_empty(self, mock_api, db):
        pages = [
            [make_match(f"a{i}") for i in range(10)],
            [make_match(f"b{i}") for i in range(10)],
            [make_match(f"c{i}") for i in range(3)],
            [],
        ]
        mock_api.get_matches_by_puuid.side_effect = pages
        sleep = MagicMock()

        result = _pipeline(mock_api, db, sleep=sleep).save_all_matches(
            SaveMatchRequest(name="Target", tag="JP1", size=10)
        )

        assert result.request_size == 23
        assert result.process_size == 23
        assert mock_api.get_matches_by_puuid.call_count == 4
        starts = [c.kwargs["start"] for c in mock_api.get_matches_by_puuid.call_args_list]
        assert starts == [0, 10, 20, 23]
        assert sleep.call_count == 3
        sleep.assert_called_with(5.0)

        player = db.get_player_by_puuid(TARGET_PUUID)
        assert len(db.get_player_match_stats(player["id"], limit=100)) == 23

    def test_starts_from_requested_offset(self, mock_api, db):
        mock_api.get_matches_by_puuid.side_effect = [[make_match("x")], []]
        _pipeline(mock_api, db).save_all_matches(SaveMatchRequest(name="Target", tag="JP1", start=7))

        starts = [c.kwargs["start"] for c in mock_api.get_matches_by_puuid.call_args_list]
        assert starts == [7, 8]

    def test_no_history(self, mock_api, db):
        mock_api.get_matches_by_puuid.return_value = []
        sleep = MagicMock()

        result = _pipeline(mock_api, db, sleep=sleep).save_all_matches(
            SaveMatchRequest(name="Target", tag="JP1")
        )

        assert (result.request_size, result.process_size) == (0, 0)
        sleep.assert_not_called()


class TestResolvedPlayer:
    def test_is_immutable(self):
        player = ResolvedPlayer(id=1, puuid="p", name="n", tag="t")
        with pytest.raises(AttributeError):
            player.id = 2
