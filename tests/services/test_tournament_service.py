import pytest
import json
from datetime import date, datetime

from app.core.exceptions import TournamentNotFoundError, ValidationError
from app.models.bracket_model import MatchStage, MatchStatus, TournamentFormat
from app.models.tournament_model import GameType, TournamentConfig, TournamentStatus
from app.services.tournament_service import TournamentService

TEST_TOURNAMENTS_FILE = "test_tournaments.json"
TEST_WINNERS_FILE = "test_winners.json"

@pytest.fixture
def temp_tournaments_file(tmp_path):
    return tmp_path / TEST_TOURNAMENTS_FILE

@pytest.fixture
def temp_winners_file(tmp_path):
    return tmp_path / TEST_WINNERS_FILE

@pytest.fixture
def tournament_service(temp_tournaments_file, temp_winners_file):
    return TournamentService(
        data_file_path=str(temp_tournaments_file),
        winners_file_path=str(temp_winners_file),
    )

def new_tournament(name="Friday Night Pool", fmt=TournamentFormat.KNOCKOUT, **kwargs):
    return TournamentConfig(
        name=name,
        game_type=GameType.POOL,
        game_variant="8 Ball",
        tournament_date=date(2026, 6, 5),
        tournament_format=fmt,
        **kwargs,
    )

def with_players(service, tournament, *names):
    for name in names:
        tournament = service.add_player(tournament.id, name)
    return tournament

def player_id(tournament, name):
    return next(p.id for p in tournament.players if p.name == name)

def match_between(tournament, name1, name2):
    ids = {player_id(tournament, name1), player_id(tournament, name2)}
    return next(m for m in tournament.matches if {m.player1_id, m.player2_id} == ids)


class TestTournamentRecords:

    def test_create_tournament_success(self, tournament_service: TournamentService, temp_tournaments_file):
        created = tournament_service.create_tournament(new_tournament())
        assert created.status == TournamentStatus.UPCOMING
        assert created.max_players == 16
        assert created.entry_fee == 250

        with open(temp_tournaments_file, "r") as f:
            tournaments_in_file = json.load(f)
        assert len(tournaments_in_file) == 1
        assert tournaments_in_file[0]["name"] == "Friday Night Pool"

    def test_create_duplicate_id(self, tournament_service: TournamentService):
        tournament = tournament_service.create_tournament(new_tournament())
        with pytest.raises(ValueError, match="already exists"):
            tournament_service.create_tournament(tournament)

    def test_game_variant_only_for_pool(self):
        with pytest.raises(ValueError, match="only used for Pool"):
            TournamentConfig(name="FIFA Cup", game_type=GameType.PS5, game_variant="Snooker", tournament_date=date(2026, 1, 1))

    def test_get_tournament_by_id_not_found(self, tournament_service: TournamentService):
        assert tournament_service.get_tournament_by_id("nonexistent_id") is None

    def test_list_newest_first(self, tournament_service: TournamentService):
        first = tournament_service.create_tournament(new_tournament(name="First Cup", created_at=datetime(2026, 1, 1)))
        second = tournament_service.create_tournament(new_tournament(name="Second Cup", created_at=datetime(2026, 2, 1)))
        assert [t.id for t in tournament_service.list_tournaments()] == [second.id, first.id]

    def test_delete_tournament(self, tournament_service: TournamentService):
        tournament = tournament_service.create_tournament(new_tournament())
        assert tournament_service.delete_tournament(tournament.id) is True
        assert tournament_service.get_tournament_by_id(tournament.id) is None

    def test_delete_tournament_not_found(self, tournament_service: TournamentService):
        with pytest.raises(TournamentNotFoundError, match="Tournament with ID fake_id not found."):
            tournament_service.delete_tournament("fake_id")

    def test_corrupt_file_reads_as_empty(self, tournament_service: TournamentService, temp_tournaments_file):
        temp_tournaments_file.write_text("{not json")
        assert tournament_service.list_tournaments() == []


class TestRoster:

    def test_add_player(self, tournament_service: TournamentService):
        tournament = tournament_service.create_tournament(new_tournament())
        updated = tournament_service.add_player(tournament.id, "  Ravi ", customer_id="cust-1")
        assert [p.name for p in updated.players] == ["Ravi"]
        assert updated.players[0].customer_id == "cust-1"

        retrieved = tournament_service.get_tournament_by_id(tournament.id)
        assert retrieved.players == updated.players

    def test_add_player_duplicate_name(self, tournament_service: TournamentService):
        tournament = with_players(tournament_service, tournament_service.create_tournament(new_tournament()), "Ravi")
        with pytest.raises(ValidationError, match='A player named "ravi" is already added'):
            tournament_service.add_player(tournament.id, "ravi")

    def test_add_player_duplicate_customer(self, tournament_service: TournamentService):
        tournament = tournament_service.create_tournament(new_tournament())
        tournament_service.add_player(tournament.id, "Ravi", customer_id="cust-1")
        with pytest.raises(ValidationError, match="Customer cust-1 is already added"):
            tournament_service.add_player(tournament.id, "Ravi K", customer_id="cust-1")

    def test_add_player_limit(self, tournament_service: TournamentService):
        tournament = tournament_service.create_tournament(new_tournament(max_players=2))
        with_players(tournament_service, tournament, "A1", "B1")
        with pytest.raises(ValidationError, match="limited to 2 players"):
            tournament_service.add_player(tournament.id, "C1")

    def test_add_player_unknown_tournament(self, tournament_service: TournamentService):
        with pytest.raises(TournamentNotFoundError):
            tournament_service.add_player("fake_tournament_id", "Ravi")

    def test_roster_locked_after_generation(self, tournament_service: TournamentService):
        tournament = with_players(tournament_service, tournament_service.create_tournament(new_tournament()), "A1", "B1")
        tournament_service.generate_tournament_matches(tournament.id)
        with pytest.raises(ValidationError, match="cannot be added"):
            tournament_service.add_player(tournament.id, "C1")
        with pytest.raises(ValidationError, match="cannot be removed"):
            tournament_service.remove_player(tournament.id, player_id(tournament, "A1"))

    def test_rename_player(self, tournament_service: TournamentService):
        tournament = with_players(tournament_service, tournament_service.create_tournament(new_tournament()), "A1", "B1")
        updated = tournament_service.rename_player(tournament.id, player_id(tournament, "A1"), "Arjun")
        assert [p.name for p in updated.players] == ["Arjun", "B1"]

        with pytest.raises(ValidationError, match="Another player with this name"):
            tournament_service.rename_player(tournament.id, player_id(tournament, "B1"), "arjun")

    def test_remove_player(self, tournament_service: TournamentService):
        tournament = with_players(tournament_service, tournament_service.create_tournament(new_tournament()), "A1", "B1")
        updated = tournament_service.remove_player(tournament.id, player_id(tournament, "A1"))
        assert [p.name for p in updated.players] == ["B1"]


class TestMatchesAndOutcome:

    def test_generate_requires_two_players(self, tournament_service: TournamentService):
        tournament = with_players(tournament_service, tournament_service.create_tournament(new_tournament()), "A1")
        with pytest.raises(ValidationError, match="at least 2 players"):
            tournament_service.generate_tournament_matches(tournament.id)

    def test_generate_knockout_schedules_from_tournament_date(self, tournament_service: TournamentService):
        tournament = with_players(tournament_service, tournament_service.create_tournament(new_tournament()), "A1", "B1", "C1", "D1")
        updated = tournament_service.generate_tournament_matches(tournament.id)

        assert updated.status == TournamentStatus.IN_PROGRESS
        assert len(updated.matches) == 3
        assert updated.matches[0].scheduled_date == date(2026, 6, 5)
        assert updated.matches[-1].stage == MatchStage.FINAL

        # Persisted round trip keeps the bracket
        assert tournament_service.get_tournament_by_id(tournament.id).matches == updated.matches

    def test_full_knockout_flow(self, tournament_service: TournamentService, temp_winners_file):
        tournament = with_players(tournament_service, tournament_service.create_tournament(new_tournament()), "A1", "B1", "C1", "D1")
        tournament = tournament_service.generate_tournament_matches(tournament.id)

        tournament = tournament_service.record_match_result(tournament.id, match_between(tournament, "A1", "B1").id, player_id(tournament, "A1"))
        tournament = tournament_service.record_match_result(tournament.id, match_between(tournament, "C1", "D1").id, player_id(tournament, "C1"))
        assert tournament.status == TournamentStatus.IN_PROGRESS
        assert tournament.winner is None

        final_match = match_between(tournament, "A1", "C1")
        assert final_match.stage == MatchStage.FINAL
        tournament = tournament_service.record_match_result(tournament.id, final_match.id, player_id(tournament, "A1"))

        assert tournament.status == TournamentStatus.COMPLETED
        assert tournament.winner.name == "A1"
        assert tournament.runner_up.name == "C1"

        outcome = tournament_service.get_outcome(tournament.id)
        assert (outcome.winner.name, outcome.runner_up.name) == ("A1", "C1")

        with open(temp_winners_file, "r") as f:
            winners = json.load(f)
        assert len(winners) == 1
        assert winners[0]["winner_name"] == "A1"
        assert winners[0]["runner_up_name"] == "C1"

        with pytest.raises(ValidationError, match="completed tournaments"):
            tournament_service.generate_tournament_matches(tournament.id)

    def test_league_flow_and_standings(self, tournament_service: TournamentService):
        tournament = tournament_service.create_tournament(new_tournament(fmt=TournamentFormat.LEAGUE))
        tournament = with_players(tournament_service, tournament, "A1", "B1", "C1")
        tournament = tournament_service.generate_tournament_matches(tournament.id, start_date=date(2026, 7, 1))
        assert len(tournament.matches) == 3
        assert tournament.matches[0].scheduled_date == date(2026, 7, 1)

        for p1, p2, winner in [("A1", "B1", "B1"), ("A1", "C1", "C1"), ("B1", "C1", "B1")]:
            tournament = tournament_service.record_match_result(
                tournament.id, match_between(tournament, p1, p2).id, player_id(tournament, winner)
            )

        assert tournament.status == TournamentStatus.COMPLETED
        assert tournament.winner.name == "B1"
        standings = tournament_service.get_standings(tournament.id)
        assert [(s.player.name, s.wins) for s in standings] == [("B1", 2), ("C1", 1), ("A1", 0)]

    def test_schedule_and_status_updates(self, tournament_service: TournamentService):
        tournament = with_players(tournament_service, tournament_service.create_tournament(new_tournament()), "A1", "B1")
        tournament = tournament_service.generate_tournament_matches(tournament.id)
        match_id = tournament.matches[0].id

        tournament = tournament_service.update_match_schedule(tournament.id, match_id, date(2026, 6, 6), "21:00")
        assert tournament.matches[0].scheduled_time == "21:00"

        tournament = tournament_service.update_match_status(tournament.id, match_id, MatchStatus.CANCELLED)
        assert tournament_service.get_tournament_by_id(tournament.id).matches[0].status == MatchStatus.CANCELLED

    def test_completed_tournament_cannot_be_reopened(self, tournament_service: TournamentService, temp_winners_file):
        tournament = tournament_service.create_tournament(new_tournament(fmt=TournamentFormat.LEAGUE))
        tournament = with_players(tournament_service, tournament, "A1", "B1", "C1")
        tournament = tournament_service.generate_tournament_matches(tournament.id)

        for p1, p2 in [("A1", "B1"), ("A1", "C1")]:
            tournament = tournament_service.record_match_result(
                tournament.id, match_between(tournament, p1, p2).id, player_id(tournament, "A1")
            )
        last_match_id = match_between(tournament, "B1", "C1").id
        tournament = tournament_service.update_match_status(tournament.id, last_match_id, MatchStatus.CANCELLED)
        assert tournament.status == TournamentStatus.COMPLETED
        assert (tournament.winner.name, tournament.runner_up.name) == ("A1", "B1")

        with pytest.raises(ValidationError, match="completed tournaments"):
            tournament_service.update_match_status(tournament.id, last_match_id, MatchStatus.SCHEDULED)
        with pytest.raises(ValidationError, match="completed tournaments"):
            tournament_service.update_match_schedule(tournament.id, last_match_id, date(2026, 6, 9), "20:00")

        stored = tournament_service.get_tournament_by_id(tournament.id)
        assert stored.status == TournamentStatus.COMPLETED
        assert stored.runner_up.name == "B1"
        assert stored.matches[2].status == MatchStatus.CANCELLED

        with open(temp_winners_file, "r") as f:
            winners = json.load(f)
        assert [(w["winner_name"], w["runner_up_name"]) for w in winners] == [("A1", "B1")]

    def test_match_history_skips_byes_and_open_matches(self, tournament_service: TournamentService):
        tournament = with_players(tournament_service, tournament_service.create_tournament(new_tournament()), "A1", "B1", "C1")
        tournament = tournament_service.generate_tournament_matches(tournament.id)
        assert tournament_service.get_match_history(tournament.id) == []

        tournament = tournament_service.record_match_result(tournament.id, match_between(tournament, "B1", "C1").id, player_id(tournament, "C1"))
        history = tournament_service.get_match_history(tournament.id)
        assert len(history) == 1
        assert (history[0].player1_name, history[0].player2_name, history[0].winner_name) == ("B1", "C1", "C1")
        assert history[0].match_stage == MatchStage.SEMI_FINAL


class TestLeaderboard:

    def _win(self, service, name, winner_name, loser_name):
        tournament = with_players(service, service.create_tournament(new_tournament(name=name)), winner_name, loser_name)
        tournament = service.generate_tournament_matches(tournament.id)
        return service.record_match_result(tournament.id, tournament.matches[0].id, player_id(tournament, winner_name))

    def test_leaderboard_counts_titles(self, tournament_service: TournamentService):
        self._win(tournament_service, "Cup One", "Ravi", "Sam")
        self._win(tournament_service, "Cup Two", "Sam", "Ravi")
        self._win(tournament_service, "Cup Three", "Sam", "Ravi")

        leaderboard = tournament_service.get_leaderboard()
        assert [(e.player, e.wins) for e in leaderboard] == [("Sam", 2), ("Ravi", 1)]
        assert leaderboard[0].tournaments == ["Cup Two", "Cup Three"]

    def test_delete_removes_winner_record(self, tournament_service: TournamentService):
        tournament = self._win(tournament_service, "Cup One", "Ravi", "Sam")
        tournament_service.delete_tournament(tournament.id)
        assert tournament_service.get_leaderboard() == []
        with open(tournament_service.winners_file_path, "r") as f:
            assert json.load(f) == []
