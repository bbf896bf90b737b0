"""Round state machine.

Dealing -> Submitting -> Judging -> Revealing -> Complete, strictly forward.
Functions here mutate one ``Round`` (and the hands/scores of the players
involved) and raise ``GameError`` subclasses on invalid requests. They never
touch storage; the orchestrator calls them inside a gateway transaction.
"""

from typing import Dict, Iterable, List, Optional, Sequence

from .errors import (
    AlreadySubmitted,
    CardNotInHand,
    InvalidPhase,
    InvalidWinner,
    JudgeCannotSubmit,
    NotJudge,
    WrongCardCount,
)
from .scoring import award_point
from .state import GameSettings, Player, PromptRef, Round, RoundPhase, Submission

OUTCOME_WINNER = 'winner'
OUTCOME_NO_SUBMISSIONS = 'no_submissions'
OUTCOME_JUDGING_TIMEOUT = 'judging_timeout'
OUTCOME_JUDGE_DISCONNECTED = 'judge_disconnected'
OUTCOME_FORCED = 'forced'


def _advance(rnd: Round, phase: RoundPhase, now: float) -> None:
    if phase.rank <= rnd.phase.rank:
        raise InvalidPhase(f'Round {rnd.round_number} cannot move from {rnd.phase.value} to {phase.value}.')
    rnd.phase = phase
    rnd.phase_history.append({'phase': phase.value, 'at': now})


def open_round(round_number: int, judge_id: str, prompt: PromptRef, settings: GameSettings, now: float) -> Round:
    rnd = Round(round_number=round_number, judge_id=judge_id, prompt=prompt, started_at=now)
    rnd.phase_history.append({'phase': RoundPhase.DEALING.value, 'at': now})
    if settings.submission_time_limit:
        rnd.submission_deadline = now + settings.submission_time_limit
    # Dealing ends as soon as the prompt is resolved
    _advance(rnd, RoundPhase.SUBMITTING, now)
    return rnd


def submission_overdue(rnd: Round, now: float) -> bool:
    return rnd.submission_deadline is not None and now >= rnd.submission_deadline


def judging_overdue(rnd: Round, now: float) -> bool:
    return rnd.judging_deadline is not None and now >= rnd.judging_deadline


def submit_cards(rnd: Round, player: Player, card_ids: Sequence[str], now: float) -> Submission:
    if rnd.phase != RoundPhase.SUBMITTING:
        raise InvalidPhase('Submissions are closed for this round.')
    if player.id == rnd.judge_id:
        raise JudgeCannotSubmit()
    if player.id in rnd.submissions:
        raise AlreadySubmitted()
    chosen = list(card_ids)
    hand = set(player.hand)
    if len(set(chosen)) != len(chosen) or any(cid not in hand for cid in chosen):
        raise CardNotInHand()
    if len(chosen) != rnd.prompt.pick:
        raise WrongCardCount(rnd.prompt.pick, len(chosen))

    picked = set(chosen)
    player.hand = [cid for cid in player.hand if cid not in picked]
    submission = Submission(player_id=player.id, card_ids=chosen, submitted_at=now)
    rnd.submissions[player.id] = submission
    return submission


def ready_for_judging(rnd: Round, expected_ids: Iterable[str], now: float) -> bool:
    """All expected submitters are in, or the submission deadline has passed."""
    if rnd.phase != RoundPhase.SUBMITTING:
        return False
    if submission_overdue(rnd, now):
        return True
    expected = set(expected_ids) - {rnd.judge_id}
    return bool(expected) and expected.issubset(rnd.submissions)


def close_submissions(rnd: Round, settings: Optional[GameSettings], now: float) -> None:
    if rnd.phase != RoundPhase.SUBMITTING:
        raise InvalidPhase('Round is not accepting submissions.')
    _advance(rnd, RoundPhase.JUDGING, now)
    if settings is not None and settings.judging_time_limit:
        rnd.judging_deadline = now + settings.judging_time_limit


def select_winner(rnd: Round, players: Dict[str, Player], caller_id: str, winner_id: str, now: float) -> None:
    if caller_id != rnd.judge_id:
        raise NotJudge()
    if rnd.phase != RoundPhase.JUDGING:
        raise InvalidPhase('The round is not being judged.')
    if winner_id not in rnd.submissions or winner_id not in players:
        raise InvalidWinner()
    rnd.winner_id = winner_id
    award_point(players, winner_id)
    _finish(rnd, OUTCOME_WINNER, now)


def complete_without_winner(rnd: Round, outcome: str, now: float) -> None:
    if rnd.phase != RoundPhase.JUDGING:
        raise InvalidPhase('Only a round being judged can be closed without a winner.')
    _finish(rnd, outcome, now)


def _finish(rnd: Round, outcome: str, now: float) -> None:
    # Revealing is a display pause for clients; the engine passes straight through
    _advance(rnd, RoundPhase.REVEALING, now)
    _advance(rnd, RoundPhase.COMPLETE, now)
    rnd.outcome = outcome
    rnd.ended_at = now


def force_transition(rnd: Round, target: RoundPhase, settings: Optional[GameSettings], now: float) -> RoundPhase:
    """Operator escape hatch. Only the two transitions that cannot corrupt state are allowed."""
    previous = rnd.phase
    if previous == RoundPhase.SUBMITTING and target == RoundPhase.JUDGING:
        close_submissions(rnd, settings, now)
    elif previous == RoundPhase.JUDGING and target == RoundPhase.COMPLETE:
        complete_without_winner(rnd, OUTCOME_FORCED, now)
    else:
        raise InvalidPhase(f'Cannot force round {rnd.round_number} from {previous.value} to {target.value}.')
    return previous


def observed_phases(rnd: Round) -> List[RoundPhase]:
    return [RoundPhase(entry['phase']) for entry in rnd.phase_history]
