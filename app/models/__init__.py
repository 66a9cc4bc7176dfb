# Re-export the models so callers can import them from one place
from .bracket_model import MatchModel, MatchStage, MatchStatus, OutcomeModel, Player, StandingModel, TournamentFormat
from .tournament_model import (
    DiscountCoupon,
    GameType,
    LeaderboardEntry,
    MatchHistoryEntry,
    TournamentConfig,
    TournamentStatus,
    WinnerRecord,
)
