"""Application-facing game operations.

Each mutating call runs exactly one orchestrator function inside one
gateway transaction, then publishes the committed snapshot. Callers pass
the authenticated player id; nothing here re-derives identity.
"""

import random
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence

from flask import current_app

from . import orchestrator
from .catalog import CardCatalog, CardView, DeckInfo
from .errors import ConcurrentUpdateFailed, GameError, InfrastructureError, InvalidSettings, NotFound
from .gateway import get_gateway
from .notifications import publish, track_error
from .scheduler import schedule_deadline_timer
from .state import GameSettings, GameState, RoundPhase

CATALOG_EXTENSION = 'punchline.catalog'


def _now() -> float:
    return time.time()


def get_catalog() -> CardCatalog:
    return current_app.extensions[CATALOG_EXTENSION]


def _rng() -> random.Random:
    seed = current_app.config.get('SHUFFLE_SEED')
    if seed in (None, ''):
        return random.Random()
    return random.Random(seed)


def _run(action: str, game_id: str, op) -> GameState:
    try:
        game, events = get_gateway().transact(game_id, op)
    except GameError as exc:
        track_error(action, game_id, exc)
        if not isinstance(exc, (ConcurrentUpdateFailed, NotFound)):
            # A rejected action still counts as the interaction that enforces due deadlines
            _settle_due(game_id)
        raise
    publish(game, events)
    schedule_deadline_timer(current_app._get_current_object(), game.id)
    return game


def _settle_due(game_id: str) -> None:
    catalog = get_catalog()
    try:
        game, events = get_gateway().transact(game_id, lambda g: orchestrator.tick(g, catalog, _now()))
    except (GameError, InfrastructureError) as exc:
        current_app.logger.warning(f"[settle-skip] game={game_id} error={exc!r}")
        return
    publish(game, events)


def build_settings(data: Optional[Dict[str, Any]]) -> GameSettings:
    data = dict(data or {})
    cfg = current_app.config
    deck_id = data.get('deck_id')
    if not deck_id:
        raise InvalidSettings('A deck must be selected.')
    get_catalog().get_deck(deck_id)

    def _optional_seconds(key):
        value = data.get(key)
        if value in (None, '', 0):
            return None
        return int(value)

    try:
        return GameSettings(
            deck_id=deck_id,
            player_limit=int(data.get('player_limit', cfg.get('DEFAULT_PLAYER_LIMIT', 8))),
            min_players=int(data.get('min_players', 3)),
            rounds_per_player=int(data.get('rounds_per_player', cfg.get('DEFAULT_ROUNDS_PER_PLAYER', 1))),
            cards_per_player=int(data.get('cards_per_player', cfg.get('DEFAULT_HAND_SIZE', 7))),
            submission_time_limit=_optional_seconds('submission_time_limit'),
            judging_time_limit=_optional_seconds('judging_time_limit'),
            family_mode=bool(data.get('family_mode', False)),
        )
    except (TypeError, ValueError) as exc:
        raise InvalidSettings(f'Invalid game settings: {exc}') from exc


# ---- Reads ----

def get_state(game_id: str) -> GameState:
    return get_gateway().load(game_id)


def get_hand(game_id: str, player_id: str) -> List[CardView]:
    game = get_state(game_id)
    player = game.players.get(player_id)
    if player is None:
        return []
    return get_catalog().get_cards(game.settings.deck_id, player.hand)


def get_round_view(game_id: str, viewer_id: Optional[str] = None, round_number: Optional[int] = None) -> Dict[str, Any]:
    game = get_state(game_id)
    number = round_number or game.current_round
    rnd = game.rounds.get(number)
    if rnd is None:
        raise NotFound(f'Round {number} not found.')
    catalog = get_catalog()
    deck_id = game.settings.deck_id
    view = rnd.to_dict()
    view['prompt'] = catalog.get_card(deck_id, rnd.prompt.card_id).to_dict()
    hidden = rnd.phase == RoundPhase.SUBMITTING
    view['submissions'] = {
        pid: {
            'player_id': pid,
            'submitted_at': sub.submitted_at,
            'cards': [] if hidden and pid != viewer_id else [c.to_dict() for c in catalog.get_cards(deck_id, sub.card_ids)],
        }
        for pid, sub in rnd.submissions.items()
    }
    return view


def list_decks() -> List[DeckInfo]:
    return get_catalog().list_decks()


# ---- Lobby ----

def create_game(host_id: str, display_name: str, settings_data: Optional[Dict[str, Any]]) -> GameState:
    settings = build_settings(settings_data)
    game = orchestrator.create_game(uuid.uuid4().hex[:12], host_id, display_name, settings, _now())
    get_gateway().create(game)
    publish(game, [{'type': 'game_created', 'game_id': game.id, 'host_id': host_id, 'deck_id': settings.deck_id}])
    return game


def join_game(game_id: str, player_id: str, display_name: str) -> GameState:
    return _run('join', game_id, lambda g: orchestrator.join_game(g, player_id, display_name, _now()))


def set_ready(game_id: str, player_id: str, ready: bool) -> GameState:
    return _run('ready', game_id, lambda g: orchestrator.set_ready(g, player_id, ready, _now()))


def leave_game(game_id: str, player_id: str) -> GameState:
    catalog = get_catalog()
    return _run('leave', game_id, lambda g: orchestrator.leave_game(g, player_id, catalog, _now()))


def reconnect(game_id: str, player_id: str) -> GameState:
    return _run('reconnect', game_id, lambda g: orchestrator.reconnect(g, player_id, _now()))


def disconnect(game_id: str, player_id: str) -> GameState:
    catalog = get_catalog()
    return _run('disconnect', game_id, lambda g: orchestrator.disconnect(g, player_id, catalog, _now()))


def kick_player(game_id: str, actor_id: str, target_id: str) -> GameState:
    return _run('kick', game_id, lambda g: orchestrator.kick_player(g, actor_id, target_id, _now()))


def cancel_game(game_id: str, actor_id: str) -> GameState:
    return _run('cancel', game_id, lambda g: orchestrator.cancel_game(g, actor_id, _now()))


# ---- Play ----

def start_game(game_id: str, actor_id: str) -> GameState:
    catalog = get_catalog()
    return _run('start', game_id, lambda g: orchestrator.start_game(g, actor_id, catalog, _rng(), _now()))


def submit_cards(game_id: str, actor_id: str, card_ids: Sequence[str]) -> GameState:
    catalog = get_catalog()
    return _run('submit', game_id, lambda g: orchestrator.submit_cards(g, actor_id, card_ids, catalog, _now()))


def select_winner(game_id: str, actor_id: str, winner_id: str) -> GameState:
    catalog = get_catalog()
    return _run('select_winner', game_id,
                lambda g: orchestrator.select_winner(g, actor_id, winner_id, catalog, _now()))


def tick(game_id: str) -> GameState:
    catalog = get_catalog()
    return _run('tick', game_id, lambda g: orchestrator.tick(g, catalog, _now()))


def force_transition(game_id: str, actor_id: str, target: str, reason: str) -> GameState:
    try:
        phase = RoundPhase(target)
    except ValueError as exc:
        raise InvalidSettings(f'Unknown phase {target!r}.') from exc
    catalog = get_catalog()
    return _run('force', game_id,
                lambda g: orchestrator.force_transition(g, actor_id, phase, reason, catalog, _now()))
