import time
from typing import Optional, Set, Tuple

from punchline import socketio

from .errors import GameError, InfrastructureError
from .gateway import get_gateway
from .state import GameStatus, RoundPhase


_scheduled_deadline_keys: Set[Tuple[str, str, int]] = set()


def _current_deadline(game) -> Tuple[Optional[str], Optional[float], int]:
    rnd = game.active_round
    if game.status != GameStatus.PLAYING or rnd is None:
        return None, None, 0
    if rnd.phase == RoundPhase.SUBMITTING:
        return rnd.phase.value, rnd.submission_deadline, rnd.round_number
    if rnd.phase == RoundPhase.JUDGING:
        return rnd.phase.value, rnd.judging_deadline, rnd.round_number
    return None, None, rnd.round_number


def schedule_deadline_timer(app, game_id: str) -> None:
    """Fire a settle transaction when the current round's deadline passes.

    - No-ops in TESTING mode and when DEADLINE_TIMERS_ENABLED is off
    - Ensures a single timer per (game_id, phase, round)
    - The timer only runs ``gameplay.tick``; deadlines are also enforced by
      whichever player action arrives first
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return
    if not app.config.get('DEADLINE_TIMERS_ENABLED', True):
        return

    with app.app_context():
        try:
            game = get_gateway(app).load(game_id)
        except (GameError, InfrastructureError) as exc:
            app.logger.warning(f"[timer-skip] game={game_id} unreadable: {exc!r}")
            return
        phase, deadline, round_idx = _current_deadline(game)
        if phase is None or deadline is None:
            return
        key = (game_id, phase, round_idx)
        if key in _scheduled_deadline_keys:
            app.logger.info(f"[timer-skip] game={game_id} phase={phase} round={round_idx} already scheduled")
            return
        _scheduled_deadline_keys.add(key)
        app.logger.info(f"[timer-set] game={game_id} phase={phase} round={round_idx} deadline={deadline}")

    def _worker(timer_key: Tuple[str, str, int], fire_at: float):
        delay = max(0.0, fire_at - time.time())
        if delay:
            time.sleep(delay)
        from .gameplay import tick

        with app.app_context():
            _scheduled_deadline_keys.discard(timer_key)
            try:
                settled = tick(game_id)
            except (GameError, InfrastructureError) as exc:
                app.logger.warning(f"[timer-abort] game={game_id} error={exc!r}")
                return
            rnd = settled.rounds.get(settled.current_round)
            app.logger.info(
                f"[timer-fire] game={game_id} expected_phase={timer_key[1]} expected_round={timer_key[2]} "
                f"actual_phase={rnd.phase.value if rnd else None} actual_round={settled.current_round}"
            )
        schedule_deadline_timer(app, game_id)

    if app.config.get('TESTING'):
        _worker(key, deadline)
    else:
        socketio.start_background_task(_worker, key, deadline)
