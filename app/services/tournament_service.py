import json
import logging
import os
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from app.core.config import settings
from app.core.exceptions import TournamentNotFoundError, ValidationError
from app.models.bracket_model import MatchModel, MatchStatus, OutcomeModel, Player, StandingModel
from app.models.tournament_model import (
    LeaderboardEntry,
    MatchHistoryEntry,
    TournamentConfig,
    TournamentStatus,
    WinnerRecord,
)
from app.services import bracket_service, outcome_service

logger = logging.getLogger(__name__)

TOURNAMENTS_FILE = settings.TOURNAMENTS_FILE
WINNERS_FILE = settings.WINNERS_FILE

class TournamentService:
    """
    Stores tournaments in a JSON file and drives their brackets.

    Bracket logic lives in :mod:`app.services.bracket_service` and
    :mod:`app.services.outcome_service`; this class only loads a tournament,
    hands its matches to those functions and writes the result back.
    """

    def __init__(self, data_file_path: str = TOURNAMENTS_FILE, winners_file_path: str = WINNERS_FILE):
        self.data_file_path = data_file_path
        self.winners_file_path = winners_file_path
        for path in (self.data_file_path, self.winners_file_path):
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            if not os.path.exists(path):
                self._save_records(path, [])

    def _load_records(self, path: str) -> List[Dict[str, Any]]:
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r") as f:
                return json.load(f)
        except json.JSONDecodeError:
            logger.warning("Could not decode JSON from %s; treating it as empty", path)
            return []

    def _save_records(self, path: str, records: List[Dict[str, Any]]):
        with open(path, "w") as f:
            json.dump(records, f, indent=4, default=str)

    def _load_tournaments(self) -> List[Dict[str, Any]]:
        return self._load_records(self.data_file_path)

    def _save_tournaments(self, tournaments: List[Dict[str, Any]]):
        self._save_records(self.data_file_path, tournaments)

    def _require_tournament(self, tournament_id: str) -> TournamentConfig:
        tournament = self.get_tournament_by_id(tournament_id)
        if not tournament:
            raise TournamentNotFoundError(tournament_id)
        return tournament

    def _store(self, tournament: TournamentConfig) -> TournamentConfig:
        tournament.updated_at = datetime.utcnow()
        tournaments = self._load_tournaments()
        for i, t_dict in enumerate(tournaments):
            if t_dict.get("id") == tournament.id:
                tournaments[i] = tournament.model_dump(mode="json")
                break
        else:
            tournaments.append(tournament.model_dump(mode="json"))
        self._save_tournaments(tournaments)
        return tournament

    # --- Tournament records ---

    def create_tournament(self, tournament_data: TournamentConfig) -> TournamentConfig:
        tournaments = self._load_tournaments()
        if any(t.get("id") == tournament_data.id for t in tournaments):
            raise ValueError(f"Tournament with ID {tournament_data.id} already exists.")
        tournaments.append(tournament_data.model_dump(mode="json"))
        self._save_tournaments(tournaments)
        logger.info("Created tournament %s (%s)", tournament_data.id, tournament_data.name)
        return tournament_data

    def get_tournament_by_id(self, tournament_id: str) -> Optional[TournamentConfig]:
        for t_dict in self._load_tournaments():
            if t_dict.get("id") == tournament_id:
                return TournamentConfig.model_validate(t_dict)
        return None

    def list_tournaments(self) -> List[TournamentConfig]:
        tournaments = [TournamentConfig.model_validate(t) for t in self._load_tournaments()]
        return sorted(tournaments, key=lambda t: t.created_at, reverse=True)

    def delete_tournament(self, tournament_id: str) -> bool:
        tournaments = self._load_tournaments()
        remaining = [t for t in tournaments if t.get("id") != tournament_id]
        if len(remaining) == len(tournaments):
            raise TournamentNotFoundError(tournament_id)
        self._save_tournaments(remaining)

        winners = self._load_records(self.winners_file_path)
        self._save_records(self.winners_file_path, [w for w in winners if w.get("tournament_id") != tournament_id])
        logger.info("Deleted tournament %s and its winner records", tournament_id)
        return True

    # --- Roster ---

    def add_player(self, tournament_id: str, name: str, customer_id: Optional[str] = None) -> TournamentConfig:
        tournament = self._require_tournament(tournament_id)
        name = name.strip()

        if tournament.matches:
            raise ValidationError("Players cannot be added after matches have been generated.")
        if len(tournament.players) >= tournament.max_players:
            raise ValidationError(
                f"This tournament is limited to {tournament.max_players} players. Cannot add more players."
            )
        if customer_id and any(p.customer_id == customer_id for p in tournament.players):
            raise ValidationError(f"Customer {customer_id} is already added to this tournament.")
        if any(p.name.lower() == name.lower() for p in tournament.players):
            raise ValidationError(f'A player named "{name}" is already added to this tournament.')

        tournament.players.append(Player(name=name, customer_id=customer_id))
        logger.info("Added player %s to tournament %s", name, tournament_id)
        return self._store(tournament)

    def rename_player(self, tournament_id: str, player_id: str, new_name: str) -> TournamentConfig:
        tournament = self._require_tournament(tournament_id)
        new_name = new_name.strip()
        player = tournament.get_player(player_id)
        if not player:
            raise ValidationError(f"Player {player_id} is not part of tournament {tournament_id}.")
        if any(p.id != player_id and p.name.lower() == new_name.lower() for p in tournament.players):
            raise ValidationError("Another player with this name already exists.")

        renamed = Player(id=player.id, name=new_name, customer_id=player.customer_id)
        tournament.players = [renamed if p.id == player_id else p for p in tournament.players]
        # Winner and runner-up are stored as copies of the player
        if tournament.winner and tournament.winner.id == player_id:
            tournament.winner = renamed
        if tournament.runner_up and tournament.runner_up.id == player_id:
            tournament.runner_up = renamed
        return self._store(tournament)

    def remove_player(self, tournament_id: str, player_id: str) -> TournamentConfig:
        tournament = self._require_tournament(tournament_id)
        if tournament.matches:
            raise ValidationError("Players cannot be removed after matches have been generated.")
        if not tournament.get_player(player_id):
            raise ValidationError(f"Player {player_id} is not part of tournament {tournament_id}.")
        tournament.players = [p for p in tournament.players if p.id != player_id]
        logger.info("Removed player %s from tournament %s", player_id, tournament_id)
        return self._store(tournament)

    # --- Matches ---

    def generate_tournament_matches(self, tournament_id: str, start_date: Optional[date] = None) -> TournamentConfig:
        tournament = self._require_tournament(tournament_id)
        if tournament.status == TournamentStatus.COMPLETED:
            raise ValidationError("Cannot regenerate fixtures for completed tournaments.")
        if len(tournament.players) < 2:
            raise ValidationError("Tournament needs at least 2 players to generate matches.")

        tournament.matches = bracket_service.generate_matches(
            tournament.players,
            tournament.tournament_format,
            start_date=start_date or tournament.tournament_date,
        )
        return self._apply_outcome(tournament)

    def record_match_result(self, tournament_id: str, match_id: str, winner_id: str) -> TournamentConfig:
        return self._update_matches(
            tournament_id,
            lambda matches: bracket_service.record_match_result(matches, match_id, winner_id),
        )

    def update_match_schedule(
        self, tournament_id: str, match_id: str, scheduled_date: Optional[date], scheduled_time: Optional[str]
    ) -> TournamentConfig:
        return self._update_matches(
            tournament_id,
            lambda matches: bracket_service.update_match_schedule(matches, match_id, scheduled_date, scheduled_time),
        )

    def update_match_status(self, tournament_id: str, match_id: str, status: MatchStatus) -> TournamentConfig:
        return self._update_matches(
            tournament_id,
            lambda matches: bracket_service.update_match_status(matches, match_id, status),
        )

    def _update_matches(
        self, tournament_id: str, change: Callable[[List[MatchModel]], List[MatchModel]]
    ) -> TournamentConfig:
        tournament = self._require_tournament(tournament_id)
        # The winner record is written once, so a finished result stays final
        if tournament.status == TournamentStatus.COMPLETED:
            raise ValidationError("Matches of completed tournaments cannot be changed.")
        tournament.matches = change(tournament.matches)
        return self._apply_outcome(tournament)

    def _apply_outcome(self, tournament: TournamentConfig) -> TournamentConfig:
        outcome = outcome_service.resolve_outcome(tournament.matches, tournament.players)
        tournament.winner = outcome.winner
        tournament.runner_up = outcome.runner_up
        if outcome.winner:
            tournament.status = TournamentStatus.COMPLETED
        elif tournament.matches:
            tournament.status = TournamentStatus.IN_PROGRESS
        else:
            tournament.status = TournamentStatus.UPCOMING

        self._store(tournament)
        if tournament.status == TournamentStatus.COMPLETED:
            logger.info("Tournament %s won by %s", tournament.id, outcome.winner.name)
            self._save_winner_record(tournament)
        return tournament

    # --- Results ---

    def get_outcome(self, tournament_id: str) -> OutcomeModel:
        tournament = self._require_tournament(tournament_id)
        return outcome_service.resolve_outcome(tournament.matches, tournament.players)

    def get_standings(self, tournament_id: str) -> List[StandingModel]:
        tournament = self._require_tournament(tournament_id)
        return outcome_service.compute_standings(tournament.matches, tournament.players)

    def get_match_history(self, tournament_id: str) -> List[MatchHistoryEntry]:
        tournament = self._require_tournament(tournament_id)
        history: List[MatchHistoryEntry] = []
        for match in tournament.matches:
            if not match.completed or not match.winner_id or match.is_bye:
                continue
            player1 = tournament.get_player(match.player1_id)
            player2 = tournament.get_player(match.player2_id)
            winner = tournament.get_player(match.winner_id)
            if player1 and player2 and winner:
                history.append(MatchHistoryEntry(
                    match_id=match.id,
                    player1_name=player1.name,
                    player2_name=player2.name,
                    winner_name=winner.name,
                    match_stage=match.stage,
                    match_date=match.scheduled_date or tournament.tournament_date,
                ))
        return history

    def _save_winner_record(self, tournament: TournamentConfig):
        winners = self._load_records(self.winners_file_path)
        if any(w.get("tournament_id") == tournament.id for w in winners):
            return
        record = WinnerRecord(
            tournament_id=tournament.id,
            tournament_name=tournament.name,
            winner_name=tournament.winner.name,
            runner_up_name=tournament.runner_up.name if tournament.runner_up else None,
            tournament_date=tournament.tournament_date,
            game_type=tournament.game_type,
            game_variant=tournament.game_variant,
        )
        winners.append(record.model_dump(mode="json"))
        self._save_records(self.winners_file_path, winners)

    def get_winner_records(self) -> List[WinnerRecord]:
        return [WinnerRecord.model_validate(w) for w in self._load_records(self.winners_file_path)]

    def get_leaderboard(self) -> List[LeaderboardEntry]:
        """Tournament titles per winner name, most titles first."""
        entries: Dict[str, LeaderboardEntry] = {}
        for record in sorted(self.get_winner_records(), key=lambda r: r.created_at):
            entry = entries.setdefault(record.winner_name, LeaderboardEntry(player=record.winner_name, wins=0))
            entry.wins += 1
            entry.tournaments.append(record.tournament_name)
        # sorted() is stable, so ties keep the order of the first title
        return sorted(entries.values(), key=lambda e: -e.wins)
