import logging
import math # For calculating rounds, byes
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import InvariantViolation, MatchNotFoundError, ValidationError
from app.models.bracket_model import MatchModel, MatchStage, MatchStatus, Player, TournamentFormat

logger = logging.getLogger(__name__)

# Scheduling defaults used by the lounge: evening slots from 4 PM
FIRST_MATCH_HOUR = 16
KNOCKOUT_ROUND_INTERVAL_DAYS = 7
KNOCKOUT_SLOTS_PER_DAY = 8
LEAGUE_MATCHES_PER_DAY = 4

IdFactory = Callable[[], str]


def _new_id() -> str:
    return str(uuid4())


def _check_format(tournament_format) -> TournamentFormat:
    try:
        return TournamentFormat(tournament_format)
    except ValueError:
        raise ValidationError(
            f"Invalid tournament format '{tournament_format}'. "
            f"Expected one of {[f.value for f in TournamentFormat]}."
        )


def _check_unique_ids(players: Sequence[Player]) -> None:
    seen = set()
    for player in players:
        if player.id in seen:
            raise ValidationError(f"Duplicate player id '{player.id}' in roster.")
        seen.add(player.id)


def bracket_size_for(num_players: int) -> int:
    """Smallest power of two that fits ``num_players`` (1 for an empty roster)."""
    size = 1
    while size < num_players:
        size *= 2
    return size


def stage_for_round(round_number: int, num_rounds: int) -> MatchStage:
    rounds_left = num_rounds - round_number
    if rounds_left == 0:
        return MatchStage.FINAL
    if rounds_left == 1:
        return MatchStage.SEMI_FINAL
    if rounds_left == 2:
        return MatchStage.QUARTER_FINAL
    return MatchStage.REGULAR


def next_slot(round_number: int, match_in_round: int) -> Tuple[int, int, int]:
    """Where the winner of a knockout match goes.

    Returns ``(round, match_in_round, player_slot)``: slot ``k`` of round ``N``
    feeds slot ``ceil(k/2)`` of round ``N+1``, odd slots into ``player1_id``
    and even slots into ``player2_id``.
    """
    return round_number + 1, (match_in_round + 1) // 2, 1 if match_in_round % 2 == 1 else 2


def generate_matches(
    players: Sequence[Player],
    tournament_format,
    id_factory: Optional[IdFactory] = None,
    start_date: Optional[date] = None,
) -> List[MatchModel]:
    """
    Builds the initial match list for a roster.

    Knockout brackets are emitted as a full skeleton (every round, later
    rounds with empty player slots); league rosters get one match per pair.
    Fewer than two players yields an empty list.
    """
    tournament_format = _check_format(tournament_format)
    _check_unique_ids(players)
    id_factory = id_factory or _new_id

    if len(players) < 2:
        logger.info("Roster has %d player(s); no %s matches generated", len(players), tournament_format.value)
        return []

    if tournament_format == TournamentFormat.KNOCKOUT:
        matches = _generate_knockout_matches(players, id_factory, start_date)
    else:
        matches = _generate_league_matches(players, id_factory, start_date)

    logger.info("Generated %d %s matches for %d players", len(matches), tournament_format.value, len(players))
    return matches


def _knockout_schedule(start_date: Optional[date], round_number: int, match_in_round: int) -> Dict[str, object]:
    if start_date is None:
        return {}
    hour = FIRST_MATCH_HOUR + (match_in_round - 1) % KNOCKOUT_SLOTS_PER_DAY
    return {
        "scheduled_date": start_date + timedelta(days=(round_number - 1) * KNOCKOUT_ROUND_INTERVAL_DAYS),
        "scheduled_time": f"{hour}:00",
    }


def _generate_knockout_matches(
    players: Sequence[Player], id_factory: IdFactory, start_date: Optional[date]
) -> List[MatchModel]:
    num_players = len(players)
    bracket_size = bracket_size_for(num_players)
    num_rounds = int(math.log2(bracket_size))
    num_byes = bracket_size - num_players

    # Arena indexed by (round, match_in_round); filled with plain dicts first
    # so byes can be pushed forward before the models are frozen.
    arena: Dict[Tuple[int, int], Dict[str, object]] = {}
    for round_number in range(1, num_rounds + 1):
        stage = stage_for_round(round_number, num_rounds)
        for match_in_round in range(1, bracket_size // 2 ** round_number + 1):
            arena[(round_number, match_in_round)] = {
                "id": id_factory(),
                "round": round_number,
                "match_in_round": match_in_round,
                "stage": stage,
                **_knockout_schedule(start_date, round_number, match_in_round),
            }

    # The first `num_byes` players get byes, the rest are paired in input order
    playing = list(players[num_byes:])
    for match_in_round in range(1, bracket_size // 2 + 1):
        match = arena[(1, match_in_round)]
        if match_in_round <= num_byes:
            bye_player = players[match_in_round - 1]
            match.update(
                player1_id=bye_player.id,
                completed=True,
                winner_id=bye_player.id,
                status=MatchStatus.COMPLETED,
            )
            target_round, target_match, player_slot = next_slot(1, match_in_round)
            arena[(target_round, target_match)][f"player{player_slot}_id"] = bye_player.id
        else:
            offset = (match_in_round - num_byes - 1) * 2
            match.update(player1_id=playing[offset].id, player2_id=playing[offset + 1].id)

    return [MatchModel(**arena[key]) for key in sorted(arena)]


def _generate_league_matches(
    players: Sequence[Player], id_factory: IdFactory, start_date: Optional[date]
) -> List[MatchModel]:
    matches: List[MatchModel] = []
    for i in range(len(players)):
        for j in range(i + 1, len(players)):
            match_number = len(matches)
            schedule = {}
            if start_date is not None:
                schedule = {
                    "scheduled_date": start_date + timedelta(days=match_number // LEAGUE_MATCHES_PER_DAY),
                    "scheduled_time": f"{FIRST_MATCH_HOUR + match_number % LEAGUE_MATCHES_PER_DAY}:00",
                }
            matches.append(MatchModel(
                id=id_factory(),
                round=1, # League matches are not round-partitioned
                match_in_round=match_number + 1,
                stage=MatchStage.REGULAR,
                player1_id=players[i].id,
                player2_id=players[j].id,
                **schedule,
            ))
    return matches


def _find_match(matches: Sequence[MatchModel], match_id: str) -> int:
    for index, match in enumerate(matches):
        if match.id == match_id:
            return index
    raise MatchNotFoundError(match_id)


def record_match_result(matches: Sequence[MatchModel], match_id: str, winner_id: str) -> List[MatchModel]:
    """
    Marks a match as won by ``winner_id`` and advances the winner.

    Returns a new match list; the input is left untouched. Knockout winners
    are written into the next round's slot given by :func:`next_slot`.
    League matches (round 1 only, no later rounds) are simply completed.
    """
    updated = list(matches)
    index = _find_match(updated, match_id)
    current_match = updated[index]

    if current_match.status == MatchStatus.CANCELLED:
        raise ValidationError("Match is cancelled. Only scheduled matches can be updated.")
    if current_match.completed:
        raise ValidationError(f"Match status is '{current_match.status.value}'. Only scheduled matches can be updated.")
    if not current_match.player1_id or not current_match.player2_id:
        raise ValidationError("Match does not have two players assigned.")
    if winner_id not in current_match.participant_ids:
        raise ValidationError(f"Player {winner_id} is not a participant of match {match_id}.")

    updated[index] = current_match.model_copy(update={
        "completed": True,
        "winner_id": winner_id,
        "status": MatchStatus.COMPLETED,
    })

    # --- Advancement Logic ---
    if current_match.stage == MatchStage.FINAL:
        return updated
    target_round, target_match, player_slot = next_slot(current_match.round, current_match.match_in_round)
    for k, potential_next_match in enumerate(updated):
        if potential_next_match.round == target_round and potential_next_match.match_in_round == target_match:
            field = f"player{player_slot}_id"
            occupant = getattr(potential_next_match, field)
            if occupant and occupant != winner_id:
                raise InvariantViolation(
                    f"Slot {player_slot} of round {target_round} match {target_match} "
                    f"is already taken by {occupant}."
                )
            updated[k] = potential_next_match.model_copy(update={field: winner_id})
            break
    # No next-round match: league fixture or a bracket without later rounds
    return updated


def update_match_schedule(
    matches: Sequence[MatchModel],
    match_id: str,
    scheduled_date: Optional[date],
    scheduled_time: Optional[str],
) -> List[MatchModel]:
    updated = list(matches)
    index = _find_match(updated, match_id)
    # Re-validate so a malformed time string is rejected
    data = updated[index].model_dump()
    data.update(scheduled_date=scheduled_date, scheduled_time=scheduled_time)
    try:
        updated[index] = MatchModel.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid schedule for match {match_id}: {e.errors()[0]['msg']}")
    return updated


def update_match_status(matches: Sequence[MatchModel], match_id: str, status) -> List[MatchModel]:
    """
    Moves an open match between ``scheduled`` and ``cancelled``.

    A knockout match whose winner feeds a later round cannot be cancelled,
    since its slot in the next round would never be filled.
    """
    try:
        status = MatchStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid status value: {status}")
    if status == MatchStatus.COMPLETED:
        raise ValidationError("Matches are completed by recording a result, not by setting the status.")

    updated = list(matches)
    index = _find_match(updated, match_id)
    if updated[index].completed:
        raise ValidationError("Completed matches cannot change status.")
    if status == MatchStatus.CANCELLED:
        target_round, target_match, _ = next_slot(updated[index].round, updated[index].match_in_round)
        if any(m.round == target_round and m.match_in_round == target_match for m in updated):
            raise ValidationError(
                f"Match {match_id} feeds round {target_round} match {target_match} and cannot be cancelled."
            )
    updated[index] = updated[index].model_copy(update={"status": status})
    return updated
