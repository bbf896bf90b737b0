"""Game orchestration: lobby membership, start, judge rotation, hand
replenishment, game end and lazy deadline settlement.

Every public function takes the ``GameState`` read by the gateway, mutates
it in place and returns the list of events it produced. Events are plain
dicts published by the gameplay service after the transaction commits.
A raised ``GameError`` aborts the whole transaction, so functions may
validate lazily without leaving partial writes behind.
"""

import random
from typing import Iterable, List, Optional, Sequence, Set

from . import draw_pool, rounds
from .catalog import CardCatalog
from .errors import (
    DeckExhausted,
    GameFull,
    InsufficientPlayers,
    InvalidPhase,
    InvalidState,
    InvalidWinner,
    NotHost,
    PlayerNotInGame,
    PlayersNotReady,
)
from .scoring import final_scores, leaders, round_summary
from .state import (
    DeckState,
    GameSettings,
    GameState,
    GameStatus,
    Player,
    PlayerStatus,
    PromptRef,
    Round,
    RoundPhase,
)

Events = List[dict]


def _event(game: GameState, kind: str, **fields) -> dict:
    payload = {'type': kind, 'game_id': game.id}
    payload.update(fields)
    return payload


# ---- Pure helpers ----

def next_judge(order: Sequence[str], previous: Optional[str], eligible: Optional[Iterable[str]] = None) -> str:
    """Next player after ``previous`` in the cyclic ``order``.

    Players outside ``eligible`` are skipped; if nobody is eligible the plain
    cyclic successor is returned. ``previous=None`` yields the first eligible
    player.
    """
    if not order:
        raise ValueError('Cannot rotate an empty play order')
    allowed: Optional[Set[str]] = set(eligible) if eligible is not None else None
    idx = order.index(previous) if previous in order else -1
    count = len(order)
    for step in range(1, count + 1):
        candidate = order[(idx + step) % count]
        if allowed is None or candidate in allowed:
            return candidate
    return order[(idx + 1) % count]


def total_rounds(game: GameState) -> int:
    return game.settings.rounds_per_player * len(game.play_order)


def _connected(game: GameState) -> Set[str]:
    return {pid for pid, p in game.players.items() if p.status != PlayerStatus.DISCONNECTED}


def _expected_submitters(game: GameState, judge_id: str) -> List[str]:
    return [
        pid for pid in game.play_order
        if pid != judge_id and game.players[pid].status == PlayerStatus.PLAYING
    ]


def _require_player(game: GameState, player_id: str) -> Player:
    player = game.players.get(player_id)
    if player is None:
        raise PlayerNotInGame()
    return player


def _require_lobby(game: GameState) -> None:
    if game.status != GameStatus.LOBBY:
        raise InvalidState('Game has already started or ended.')


def _require_playing(game: GameState) -> None:
    if game.status != GameStatus.PLAYING:
        raise InvalidState('Game is not in progress.')


# ---- Lobby ----

def create_game(game_id: str, host_id: str, display_name: str, settings: GameSettings, now: float) -> GameState:
    game = GameState(id=game_id, host_id=host_id, settings=settings, created_at=now, updated_at=now)
    game.players[host_id] = Player(
        id=host_id,
        display_name=display_name,
        seat=1,
        status=PlayerStatus.JOINED,
        is_host=True,
        joined_at=now,
        last_active=now,
    )
    return game


def join_game(game: GameState, player_id: str, display_name: str, now: float) -> Events:
    existing = game.players.get(player_id)
    if existing is not None:
        if game.status == GameStatus.PLAYING and existing.status == PlayerStatus.DISCONNECTED:
            return reconnect(game, player_id, now)
        _require_lobby(game)
        existing.status = PlayerStatus.JOINED
        existing.display_name = display_name or existing.display_name
        existing.last_active = now
        return [_event(game, 'player_rejoined', player_id=player_id)]

    _require_lobby(game)
    if len(game.players) >= game.settings.player_limit:
        raise GameFull()
    game.players[player_id] = Player(
        id=player_id,
        display_name=display_name,
        seat=game.next_seat(),
        joined_at=now,
        last_active=now,
    )
    return [_event(game, 'player_joined', player_id=player_id)]


def set_ready(game: GameState, player_id: str, ready: bool, now: float) -> Events:
    player = _require_player(game, player_id)
    _require_lobby(game)
    player.status = PlayerStatus.READY if ready else PlayerStatus.JOINED
    player.last_active = now
    return [_event(game, 'player_ready', player_id=player_id, ready=ready)]


def kick_player(game: GameState, actor_id: str, target_id: str, now: float) -> Events:
    if actor_id != game.host_id:
        raise NotHost('Only the host can kick players.')
    _require_lobby(game)
    _require_player(game, target_id)
    if target_id == game.host_id:
        raise InvalidState('Cannot kick the host.')
    del game.players[target_id]
    return [_event(game, 'player_kicked', player_id=target_id)]


def cancel_game(game: GameState, actor_id: str, now: float) -> Events:
    if actor_id != game.host_id:
        raise NotHost('Only the host can cancel the game.')
    _require_lobby(game)
    game.status = GameStatus.CANCELLED
    game.ended_at = now
    return [_event(game, 'game_cancelled')]


def leave_game(game: GameState, player_id: str, catalog: CardCatalog, now: float) -> Events:
    player = _require_player(game, player_id)
    if game.status == GameStatus.LOBBY:
        if player_id == game.host_id:
            return cancel_game(game, player_id, now)
        del game.players[player_id]
        return [_event(game, 'player_left', player_id=player_id)]
    _require_playing(game)
    if player.status == PlayerStatus.DISCONNECTED:
        return []
    player.status = PlayerStatus.DISCONNECTED
    player.last_active = now
    events = [_event(game, 'player_disconnected', player_id=player_id)]
    # The departing player may have been the last one everybody was waiting on
    events += settle(game, catalog, now)
    return events


def disconnect(game: GameState, player_id: str, catalog: CardCatalog, now: float) -> Events:
    """Transport-level drop. Only a game in progress keeps track of it."""
    if game.status != GameStatus.PLAYING or player_id not in game.players:
        return []
    return leave_game(game, player_id, catalog, now)


def reconnect(game: GameState, player_id: str, now: float) -> Events:
    player = _require_player(game, player_id)
    _require_playing(game)
    player.last_active = now
    if player.status != PlayerStatus.DISCONNECTED:
        return []
    player.status = PlayerStatus.PLAYING
    return [_event(game, 'player_reconnected', player_id=player_id)]


# ---- Start ----

def _check_deck_covers_game(catalog: CardCatalog, game: GameState, deck: DeckState, order: Sequence[str]) -> None:
    settings = game.settings
    rounds_needed = settings.rounds_per_player * len(order)
    if len(deck.remaining_prompt_ids) < rounds_needed:
        raise DeckExhausted(
            f'This game needs {rounds_needed} prompt cards but the deck only has {len(deck.remaining_prompt_ids)}.'
        )
    # Prompt order is fixed by the shuffle, so the replenishment demand is known up front
    upcoming = deck.remaining_prompt_ids[:rounds_needed - 1]
    picks = sum(card.pick or 1 for card in catalog.get_cards(settings.deck_id, upcoming))
    needed = len(order) * settings.cards_per_player + (len(order) - 1) * picks
    if len(deck.remaining_answer_ids) < needed:
        raise DeckExhausted(
            f'This game needs {needed} answer cards but the deck only has {len(deck.remaining_answer_ids)}.'
        )


def start_game(game: GameState, actor_id: str, catalog: CardCatalog, rng: Optional[random.Random], now: float) -> Events:
    if actor_id != game.host_id:
        raise NotHost('Only the host can start the game.')
    _require_lobby(game)
    if len(game.players) < game.settings.min_players:
        raise InsufficientPlayers(game.settings.min_players)
    if any(p.status != PlayerStatus.READY for p in game.players.values() if not p.is_host):
        raise PlayersNotReady()

    order = [p.id for p in game.seated_players()]
    deck = draw_pool.initialize(catalog, game.settings.deck_id, rng, family_mode=game.settings.family_mode)
    _check_deck_covers_game(catalog, game, deck, order)

    for pid in order:
        player = game.players[pid]
        player.hand = draw_pool.draw_answers(deck, game.settings.cards_per_player)
        player.status = PlayerStatus.PLAYING
        player.score = 0
    game.deck = deck
    game.play_order = order
    game.status = GameStatus.PLAYING
    game.started_at = now
    game.current_round = 0

    events = [_event(game, 'game_started', players=len(order), total_rounds=total_rounds(game))]
    events += _open_round(game, catalog, order[0], now)
    return events


def _open_round(game: GameState, catalog: CardCatalog, judge_id: str, now: float) -> Events:
    card_id = draw_pool.draw_prompt(game.deck)
    card = catalog.get_card(game.settings.deck_id, card_id)
    number = game.current_round + 1
    rnd = rounds.open_round(number, judge_id, PromptRef(card_id=card_id, pick=card.pick or 1), game.settings, now)
    game.rounds[number] = rnd
    game.current_round = number
    game.current_judge_id = judge_id
    return [_event(game, 'round_started', round=number, judge_id=judge_id, prompt_id=card_id)]


def _conclude_round(game: GameState, catalog: CardCatalog, now: float) -> Events:
    """Round just reached Complete: end the game or replenish and open the next."""
    rnd = game.rounds[game.current_round]
    events = [_event(game, 'round_ended', **round_summary(rnd))]
    if rnd.round_number >= total_rounds(game):
        game.status = GameStatus.ENDED
        game.ended_at = now
        events.append(_event(game, 'game_ended', winner_ids=leaders(game), final_scores=final_scores(game)))
        return events

    for pid, submission in rnd.submissions.items():
        game.players[pid].hand.extend(draw_pool.draw_answers(game.deck, len(submission.card_ids)))
    judge_id = next_judge(game.play_order, rnd.judge_id, _connected(game))
    events += _open_round(game, catalog, judge_id, now)
    return events


# ---- Round actions ----

def settle(game: GameState, catalog: CardCatalog, now: float) -> Events:
    """Apply every transition that is due at ``now``."""
    events: Events = []
    while game.status == GameStatus.PLAYING:
        rnd = game.active_round
        if rnd is None:
            break
        if rnd.phase == RoundPhase.SUBMITTING:
            if not rounds.ready_for_judging(rnd, _expected_submitters(game, rnd.judge_id), now):
                break
            rounds.close_submissions(rnd, game.settings, now)
            events.append(_event(game, 'judging_started', round=rnd.round_number,
                                 submissions=len(rnd.submissions)))
            continue
        if rnd.phase == RoundPhase.JUDGING:
            if not rnd.submissions:
                outcome = rounds.OUTCOME_NO_SUBMISSIONS
            elif rounds.judging_overdue(rnd, now):
                outcome = rounds.OUTCOME_JUDGING_TIMEOUT
            elif game.players[rnd.judge_id].status == PlayerStatus.DISCONNECTED:
                outcome = rounds.OUTCOME_JUDGE_DISCONNECTED
            else:
                break
            rounds.complete_without_winner(rnd, outcome, now)
            events += _conclude_round(game, catalog, now)
            continue
        break
    return events


def submit_cards(game: GameState, actor_id: str, card_ids: Sequence[str], catalog: CardCatalog, now: float) -> Events:
    _require_playing(game)
    player = _require_player(game, actor_id)
    events = reconnect(game, actor_id, now)
    events += settle(game, catalog, now)
    _require_playing(game)
    rnd = game.active_round
    if rnd is None:
        raise InvalidPhase('There is no active round.')
    rounds.submit_cards(rnd, player, card_ids, now)
    player.last_active = now
    events.append(_event(game, 'cards_submitted', round=rnd.round_number, player_id=actor_id))
    events += settle(game, catalog, now)
    return events


def _empty_round_under_judgement(game: GameState, now: float) -> Optional[Round]:
    """The active round if it is (or is due to be) judged with nothing submitted."""
    rnd = game.active_round
    if rnd is None or rnd.submissions:
        return None
    if rnd.phase == RoundPhase.JUDGING:
        return rnd
    if rnd.phase == RoundPhase.SUBMITTING and rounds.submission_overdue(rnd, now):
        return rnd
    return None


def select_winner(game: GameState, actor_id: str, winner_id: str, catalog: CardCatalog, now: float) -> Events:
    _require_playing(game)
    caller = _require_player(game, actor_id)
    empty = _empty_round_under_judgement(game, now)
    if empty is not None and empty.judge_id == actor_id:
        # No id can win an empty round; the next settle closes it without a winner
        raise InvalidWinner()
    events = reconnect(game, actor_id, now)
    events += settle(game, catalog, now)
    _require_playing(game)
    rnd = game.active_round
    if rnd is None:
        raise InvalidPhase('There is no active round.')
    rounds.select_winner(rnd, game.players, actor_id, winner_id, now)
    caller.last_active = now
    events.append(_event(game, 'winner_selected', round=rnd.round_number, winner_id=winner_id, judge_id=actor_id))
    events += _conclude_round(game, catalog, now)
    events += settle(game, catalog, now)
    return events


def tick(game: GameState, catalog: CardCatalog, now: float) -> Events:
    return settle(game, catalog, now)


def force_transition(game: GameState, actor_id: str, target: RoundPhase, reason: str,
                     catalog: CardCatalog, now: float) -> Events:
    if actor_id != game.host_id:
        raise NotHost('Only the host can force a round transition.')
    _require_playing(game)
    rnd = game.active_round
    if rnd is None:
        raise InvalidPhase('There is no active round.')
    previous = rounds.force_transition(rnd, target, game.settings, now)
    game.audit_log.append({
        'at': now,
        'actor_id': actor_id,
        'round': rnd.round_number,
        'from': previous.value,
        'to': target.value,
        'reason': reason,
    })
    events = [_event(game, 'round_forced', round=rnd.round_number, to=target.value, actor_id=actor_id)]
    if rnd.is_complete:
        events += _conclude_round(game, catalog, now)
    events += settle(game, catalog, now)
    return events
