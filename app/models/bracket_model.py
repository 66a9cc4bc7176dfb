from datetime import date
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import AliasGenerator, BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

class TournamentFormat(str, Enum):
    KNOCKOUT = "knockout"
    LEAGUE = "league"

class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class MatchStage(str, Enum):
    REGULAR = "regular"
    QUARTER_FINAL = "quarter_final"
    SEMI_FINAL = "semi_final"
    FINAL = "final"


class Player(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(min_length=1, max_length=100)
    customer_id: Optional[str] = None

    class Config:
        frozen = True
        populate_by_name = True
        # Records from the hosted database use camelCase keys
        alias_generator = AliasGenerator(validation_alias=to_camel)


class MatchModel(BaseModel):
    """One match of a bracket.

    Matches are immutable snapshots; every change goes through ``model_copy``
    so callers can keep the previous bracket around. A bye is a round-1 match
    with ``player2_id`` unset that is already completed in favour of
    ``player1_id``.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    round: int = Field(ge=1)
    match_in_round: int = Field(ge=1)
    stage: MatchStage = MatchStage.REGULAR

    player1_id: Optional[str] = None
    player2_id: Optional[str] = None

    completed: bool = False
    winner_id: Optional[str] = None
    status: MatchStatus = MatchStatus.SCHEDULED

    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = Field(None, pattern=r"^([01]?\d|2[0-3]):[0-5]\d$") # 24h "HH:MM"

    class Config:
        frozen = True
        populate_by_name = True
        alias_generator = AliasGenerator(validation_alias=to_camel)

    @field_validator("player1_id", "player2_id", "winner_id", mode="before")
    @classmethod
    def empty_reference_is_unset(cls, v):
        # The hosted database stores "" for "to be decided"
        if v == "":
            return None
        return v

    @property
    def participant_ids(self) -> List[str]:
        return [pid for pid in (self.player1_id, self.player2_id) if pid]

    @property
    def is_bye(self) -> bool:
        return self.round == 1 and bool(self.player1_id) and not self.player2_id and self.completed

    @property
    def loser_id(self) -> Optional[str]:
        if not self.completed or not self.winner_id or self.is_bye:
            return None
        others = [pid for pid in self.participant_ids if pid != self.winner_id]
        return others[0] if others else None


class OutcomeModel(BaseModel):
    winner: Optional[Player] = None
    runner_up: Optional[Player] = None

    @property
    def is_decided(self) -> bool:
        return self.winner is not None


class StandingModel(BaseModel):
    rank: int
    player: Player
    played: int = 0
    wins: int = 0
    losses: int = 0
