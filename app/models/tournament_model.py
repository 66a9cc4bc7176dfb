from datetime import date, datetime
from typing import List, Optional
from uuid import uuid4
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from app.core.config import settings
from app.models.bracket_model import MatchModel, MatchStage, Player, TournamentFormat

class GameType(str, Enum):
    PS5 = "PS5"
    POOL = "Pool"

class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

class DiscountCoupon(BaseModel):
    code: str = Field(min_length=1)
    discount_percentage: float = Field(gt=0, le=100)
    description: Optional[str] = None

class TournamentConfig(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(min_length=3, max_length=100)
    game_type: GameType
    game_variant: Optional[str] = None # e.g. "8 Ball", "Snooker"
    game_title: Optional[str] = None # e.g. "FIFA", "COD"
    tournament_date: date
    tournament_format: TournamentFormat = TournamentFormat.KNOCKOUT
    status: TournamentStatus = TournamentStatus.UPCOMING

    players: List[Player] = Field(default_factory=list)
    matches: List[MatchModel] = Field(default_factory=list)
    winner: Optional[Player] = None
    runner_up: Optional[Player] = None

    max_players: int = Field(default_factory=lambda: settings.DEFAULT_MAX_PLAYERS, ge=2)
    entry_fee: float = Field(default_factory=lambda: settings.DEFAULT_ENTRY_FEE, ge=0)
    discount_coupons: List[DiscountCoupon] = Field(default_factory=list)
    budget: Optional[float] = None
    winner_prize: Optional[float] = None
    runner_up_prize: Optional[float] = None
    third_prize: Optional[float] = None
    winner_prize_text: Optional[str] = None
    runner_up_prize_text: Optional[str] = None
    third_prize_text: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator('game_variant')
    @classmethod
    def variant_only_for_pool(cls, v, info):
        if v and info.data.get('game_type') != GameType.POOL:
            raise ValueError('Game variant is only used for Pool tournaments')
        return v

    def get_player(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)


class WinnerRecord(BaseModel):
    """A finished tournament, kept for the hall of fame."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    tournament_id: str
    tournament_name: str
    winner_name: str
    runner_up_name: Optional[str] = None
    tournament_date: date
    game_type: GameType
    game_variant: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class LeaderboardEntry(BaseModel):
    player: str
    wins: int
    tournaments: List[str] = Field(default_factory=list)


class MatchHistoryEntry(BaseModel):
    match_id: str
    player1_name: str
    player2_name: str
    winner_name: str
    match_stage: MatchStage
    match_date: date
