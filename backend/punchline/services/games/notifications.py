"""Post-commit fan-out: realtime ``state_update`` pushes and telemetry.

Nothing here may fail a game action. Both channels log and swallow their
own errors; they only ever run after the transaction has committed.
"""

from typing import Iterable

from flask import current_app

from .state import GameState


def room_for(game_id: str) -> str:
    return f"game:{game_id}"


def publish_state(game: GameState) -> None:
    from punchline import socketio

    rnd = game.rounds.get(game.current_round)
    payload = {
        'game_id': game.id,
        'status': game.status.value,
        'round': game.current_round,
        'phase': rnd.phase.value if rnd else None,
    }
    try:
        socketio.emit('state_update', payload, to=room_for(game.id), namespace='/ws')
    except Exception as exc:
        current_app.logger.warning(f"[push-failed] game={game.id} error={exc!r}")


def track(event: str, **fields) -> None:
    try:
        details = ' '.join(f"{k}={v}" for k, v in fields.items())
        current_app.logger.info(f"[{event}] {details}".rstrip())
    except Exception:
        pass


def publish(game: GameState, events: Iterable[dict]) -> None:
    events = list(events)
    for event in events:
        fields = {k: v for k, v in event.items() if k != 'type'}
        track(event['type'], **fields)
    if events:
        publish_state(game)


def track_error(action: str, game_id: str, exc: Exception) -> None:
    code = getattr(exc, 'code', type(exc).__name__)
    track('action_failed', action=action, game=game_id, error=code)
