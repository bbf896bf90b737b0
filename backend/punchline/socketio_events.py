from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from flask_login import current_user
from typing import Dict, Any, Tuple

from punchline.services.games import gameplay
from punchline.services.games.errors import GameError, InfrastructureError
from punchline.services.games.notifications import room_for
from punchline.services.games.state import GameStatus, PlayerStatus


# Socket id -> {'game_id', 'player_id'}; presence is counted per (game, player)
# because one player may have several tabs open.
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_presence: Dict[Tuple[str, str], int] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _player_id():
    if current_user and current_user.is_authenticated:
        return current_user.id
    return None


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def _release_presence(game_id: str, player_id: str) -> None:
    """Drop one connection of the player; the last one marks them disconnected."""
    key = (game_id, player_id)
    remaining = _presence.get(key, 0) - 1
    if remaining > 0:
        _presence[key] = remaining
        return
    _presence.pop(key, None)
    try:
        gameplay.disconnect(game_id, player_id)
    except (GameError, InfrastructureError) as exc:
        current_app.logger.warning(f"[presence] game={game_id} player={player_id} disconnect not recorded: {exc!r}")


def handle_disconnect(reason=None):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx or not ctx.get('player_id'):
        return
    _release_presence(ctx['game_id'], ctx['player_id'])


def handle_join_game(data):
    game_id = (data or {}).get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    room = room_for(game_id)
    join_room(room)
    player_id = _player_id()
    _sid_to_ctx[_get_sid()] = {'game_id': game_id, 'player_id': player_id}
    if player_id:
        key = (game_id, player_id)
        _presence[key] = _presence.get(key, 0) + 1
        try:
            game = gameplay.get_state(game_id)
            player = game.players.get(player_id)
            if game.status == GameStatus.PLAYING and player and player.status == PlayerStatus.DISCONNECTED:
                gameplay.reconnect(game_id, player_id)
        except (GameError, InfrastructureError) as exc:
            emit('error', exc.to_dict())
            return
    emit('joined', {'room': room})


def handle_leave_game(data):
    game_id = (data or {}).get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    room = room_for(game_id)
    leave_room(room)
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('game_id') == game_id and ctx.get('player_id'):
        player_id = ctx['player_id']
        ctx['player_id'] = None
        _release_presence(game_id, player_id)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from punchline import socketio

    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('join_game', handle_join_game, namespace='/ws')
    socketio.on_event('leave_game', handle_leave_game, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
        socketio.on_event('join_game', handle_join_game, namespace='/')
        socketio.on_event('leave_game', handle_leave_game, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
