from typing import Dict, List, Optional, Sequence

from app.core.exceptions import InvariantViolation
from app.models.bracket_model import MatchModel, MatchStage, MatchStatus, OutcomeModel, Player, StandingModel


def _roster_lookup(players: Sequence[Player]) -> Dict[str, Player]:
    return {p.id: p for p in players}


def _check_completed_match(match: MatchModel, roster: Dict[str, Player]) -> None:
    if not match.winner_id:
        raise InvariantViolation(f"Match {match.id} is completed but has no winner.")
    if match.winner_id not in match.participant_ids:
        raise InvariantViolation(
            f"Winner {match.winner_id} of match {match.id} is not one of its participants."
        )
    if match.winner_id not in roster:
        raise InvariantViolation(f"Winner {match.winner_id} of match {match.id} is not in the roster.")


def resolve_outcome(matches: Sequence[MatchModel], players: Sequence[Player]) -> OutcomeModel:
    """
    Reads the tournament winner and runner-up from a match list.

    Knockout brackets are decided by their single ``final`` match. A list of
    round-1 ``regular`` matches only is a league, decided by the standings
    once every non-cancelled match has been played. A bracket with later
    rounds but no final has no outcome.
    """
    roster = _roster_lookup(players)
    finals = [m for m in matches if m.stage == MatchStage.FINAL]

    if not finals:
        if all(m.stage == MatchStage.REGULAR and m.round == 1 for m in matches):
            return _resolve_league(matches, players)
        return OutcomeModel()
    if len(finals) > 1:
        raise InvariantViolation(f"Bracket has {len(finals)} final matches; expected exactly one.")

    final_match = finals[0]
    if not final_match.completed:
        return OutcomeModel()
    _check_completed_match(final_match, roster)

    runner_up = None
    loser_id = final_match.loser_id
    if loser_id:
        if loser_id not in roster:
            raise InvariantViolation(f"Finalist {loser_id} is not in the roster.")
        runner_up = roster[loser_id]
    return OutcomeModel(winner=roster[final_match.winner_id], runner_up=runner_up)


def _resolve_league(matches: Sequence[MatchModel], players: Sequence[Player]) -> OutcomeModel:
    fixtures = [m for m in matches if m.stage == MatchStage.REGULAR and m.status != MatchStatus.CANCELLED]
    if not fixtures or not all(m.completed for m in fixtures):
        return OutcomeModel()

    standings = compute_standings(matches, players)
    winner = standings[0].player if standings else None
    runner_up = standings[1].player if len(standings) > 1 else None
    return OutcomeModel(winner=winner, runner_up=runner_up)


def compute_standings(matches: Sequence[MatchModel], players: Sequence[Player]) -> List[StandingModel]:
    """
    Win/loss table over completed, non-bye matches.

    Ordered by wins descending; ties keep the roster's input order.
    """
    roster = _roster_lookup(players)
    wins: Dict[str, int] = {p.id: 0 for p in players}
    losses: Dict[str, int] = {p.id: 0 for p in players}

    for match in matches:
        if not match.completed or match.status == MatchStatus.CANCELLED:
            continue
        _check_completed_match(match, roster)
        if match.is_bye:
            continue
        wins[match.winner_id] += 1
        loser_id: Optional[str] = match.loser_id
        if loser_id in losses:
            losses[loser_id] += 1

    order = {p.id: index for index, p in enumerate(players)}
    ranked = sorted(players, key=lambda p: (-wins[p.id], order[p.id]))
    return [
        StandingModel(
            rank=rank,
            player=player,
            played=wins[player.id] + losses[player.id],
            wins=wins[player.id],
            losses=losses[player.id],
        )
        for rank, player in enumerate(ranked, start=1)
    ]
