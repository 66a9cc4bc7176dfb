class ValidationError(ValueError):
    """Malformed input to a bracket operation (bad format, duplicate ids, illegal result)."""


class InvariantViolation(Exception):
    """Match data contradicts the bracket invariants, e.g. a completed final with no winner."""


class TournamentNotFoundError(ValueError):
    def __init__(self, tournament_id: str):
        super().__init__(f"Tournament with ID {tournament_id} not found.")
        self.tournament_id = tournament_id


class MatchNotFoundError(ValidationError):
    def __init__(self, match_id: str):
        super().__init__(f"Match with ID {match_id} not found.")
        self.match_id = match_id
