import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Response
from pydantic import BaseModel, Field

from app.core.exceptions import InvariantViolation, MatchNotFoundError, TournamentNotFoundError
from app.models.bracket_model import MatchStatus, OutcomeModel, StandingModel, TournamentFormat
from app.models.tournament_model import (
    DiscountCoupon,
    GameType,
    LeaderboardEntry,
    MatchHistoryEntry,
    TournamentConfig,
)
from app.services.tournament_service import TournamentService

logger = logging.getLogger(__name__)

router = APIRouter()
tournament_service = TournamentService() # Instantiated service


def get_tournament_or_404(
    tournament_id: str = Path(..., description="The ID of the tournament"),
) -> TournamentConfig:
    """
    Dependency that loads a tournament or answers 404.
    """
    tournament = tournament_service.get_tournament_by_id(tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def _run(operation, *args, **kwargs):
    """Calls a service method and maps domain errors onto HTTP errors."""
    try:
        return operation(*args, **kwargs)
    except (TournamentNotFoundError, MatchNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvariantViolation as e:
        logger.warning("Bracket data is inconsistent: %s", e)
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e: # ValidationError and pydantic validation errors
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Unexpected error in %s", getattr(operation, "__name__", operation))
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {str(e)}")


# --- DTOs (Data Transfer Objects) for request bodies ---

class TournamentCreationRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=100, description="Name of the tournament")
    game_type: GameType = Field(..., description="PS5 or Pool")
    game_variant: Optional[str] = Field(None, description="Pool variant, e.g. 8 Ball or Snooker")
    game_title: Optional[str] = Field(None, description="PS5 game title, e.g. FIFA")
    tournament_date: date
    tournament_format: TournamentFormat = TournamentFormat.KNOCKOUT
    max_players: Optional[int] = Field(None, ge=2)
    entry_fee: Optional[float] = Field(None, ge=0)
    discount_coupons: List[DiscountCoupon] = Field(default_factory=list)
    budget: Optional[float] = None
    winner_prize: Optional[float] = None
    runner_up_prize: Optional[float] = None
    third_prize: Optional[float] = None
    winner_prize_text: Optional[str] = None
    runner_up_prize_text: Optional[str] = None
    third_prize_text: Optional[str] = None

class AddPlayerRequest(BaseModel):
    """Payload for adding a player to a tournament."""
    name: str = Field(..., min_length=1, max_length=100)
    customer_id: Optional[str] = Field(None, description="Customer this player is registered as, if any.")

class RenamePlayerRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

class GenerateMatchesRequest(BaseModel):
    start_date: Optional[date] = Field(None, description="First match day; defaults to the tournament date.")

class MatchResultPayload(BaseModel):
    winner_id: str = Field(..., description="Player ID of the match winner")

class MatchSchedulePayload(BaseModel):
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = Field(None, description="24-hour time, HH:MM")

class MatchStatusPayload(BaseModel):
    status: MatchStatus


# --- Tournament Endpoints ---

@router.post("", response_model=TournamentConfig, status_code=201, summary="Create New Tournament")
async def create_tournament(tournament_data: TournamentCreationRequest):
    """
    Creates a new tournament with an empty roster.

    - **tournament_format**: `knockout` (single elimination) or `league` (round robin).
    - **max_players** / **entry_fee** (optional): fall back to the configured defaults.
    """
    config_data_dict = tournament_data.model_dump(exclude_none=True)
    try:
        tournament_config = TournamentConfig(**config_data_dict)
    except ValueError as e: # Pydantic validation error
        raise HTTPException(status_code=422, detail=str(e))
    return _run(tournament_service.create_tournament, tournament_config)


@router.get("", response_model=List[TournamentConfig], summary="List Tournaments")
async def list_tournaments():
    return tournament_service.list_tournaments()


@router.get("/leaderboard", response_model=List[LeaderboardEntry], summary="Tournament titles per player")
async def get_leaderboard():
    return tournament_service.get_leaderboard()


@router.get("/{tournament_id}", response_model=TournamentConfig, summary="Get Tournament Details")
async def get_tournament(tournament: TournamentConfig = Depends(get_tournament_or_404)):
    return tournament


@router.delete("/{tournament_id}", status_code=204, summary="Delete Tournament")
async def delete_tournament(tournament: TournamentConfig = Depends(get_tournament_or_404)):
    _run(tournament_service.delete_tournament, tournament.id)
    return Response(status_code=204)


# --- Roster Endpoints ---

@router.post("/{tournament_id}/players", response_model=TournamentConfig, status_code=201, summary="Add Player")
async def add_player(payload: AddPlayerRequest, tournament: TournamentConfig = Depends(get_tournament_or_404)):
    return _run(tournament_service.add_player, tournament.id, payload.name, payload.customer_id)


@router.patch("/{tournament_id}/players/{player_id}", response_model=TournamentConfig, summary="Rename Player")
async def rename_player(
    payload: RenamePlayerRequest,
    player_id: str = Path(..., description="The ID of the player"),
    tournament: TournamentConfig = Depends(get_tournament_or_404),
):
    return _run(tournament_service.rename_player, tournament.id, player_id, payload.name)


@router.delete("/{tournament_id}/players/{player_id}", response_model=TournamentConfig, summary="Remove Player")
async def remove_player(
    player_id: str = Path(..., description="The ID of the player"),
    tournament: TournamentConfig = Depends(get_tournament_or_404),
):
    return _run(tournament_service.remove_player, tournament.id, player_id)


# --- Match Endpoints ---

@router.post("/{tournament_id}/generate-matches", response_model=TournamentConfig, summary="Generate matches")
async def generate_matches(
    payload: Optional[GenerateMatchesRequest] = None,
    tournament: TournamentConfig = Depends(get_tournament_or_404),
):
    """
    Generates the fixtures for the tournament's format, replacing any existing ones.
    Completed tournaments cannot be regenerated.
    """
    start_date = payload.start_date if payload else None
    return _run(tournament_service.generate_tournament_matches, tournament.id, start_date)


@router.post("/{tournament_id}/matches/{match_id}/result", response_model=TournamentConfig, summary="Record the result of a match")
async def record_match_result(
    payload: MatchResultPayload,
    match_id: str = Path(..., description="The ID of the match"),
    tournament: TournamentConfig = Depends(get_tournament_or_404),
):
    """
    Records the winner of a match. In knockout brackets the winner moves on to
    the next round; winning the final completes the tournament.
    """
    return _run(tournament_service.record_match_result, tournament.id, match_id, payload.winner_id)


@router.patch("/{tournament_id}/matches/{match_id}/schedule", response_model=TournamentConfig, summary="Reschedule a match")
async def update_match_schedule(
    payload: MatchSchedulePayload,
    match_id: str = Path(..., description="The ID of the match"),
    tournament: TournamentConfig = Depends(get_tournament_or_404),
):
    return _run(
        tournament_service.update_match_schedule,
        tournament.id, match_id, payload.scheduled_date, payload.scheduled_time,
    )


@router.patch("/{tournament_id}/matches/{match_id}/status", response_model=TournamentConfig, summary="Change match status")
async def update_match_status(
    payload: MatchStatusPayload,
    match_id: str = Path(..., description="The ID of the match"),
    tournament: TournamentConfig = Depends(get_tournament_or_404),
):
    return _run(tournament_service.update_match_status, tournament.id, match_id, payload.status)


# --- Result Endpoints ---

@router.get("/{tournament_id}/outcome", response_model=OutcomeModel, summary="Winner and runner-up")
async def get_outcome(tournament: TournamentConfig = Depends(get_tournament_or_404)):
    return _run(tournament_service.get_outcome, tournament.id)


@router.get("/{tournament_id}/standings", response_model=List[StandingModel], summary="Win/loss table")
async def get_standings(tournament: TournamentConfig = Depends(get_tournament_or_404)):
    return _run(tournament_service.get_standings, tournament.id)


@router.get("/{tournament_id}/history", response_model=List[MatchHistoryEntry], summary="Completed matches")
async def get_match_history(tournament: TournamentConfig = Depends(get_tournament_or_404)):
    return _run(tournament_service.get_match_history, tournament.id)
