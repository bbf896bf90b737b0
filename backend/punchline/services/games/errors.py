"""Typed errors for the round engine.

Every expected failure of a game operation is a ``GameError`` subclass. The
HTTP layer turns them into a JSON envelope using ``http_status`` and
``to_dict()``. Only ``ConcurrentUpdateFailed`` is ``retryable``; every other
kind means the request itself was invalid for the current state.

``InfrastructureError`` sits outside the hierarchy: it wraps storage
failures (driver errors, undecodable documents) that this layer cannot
recover from.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    AUTHORIZATION = 'authorization'
    STATE = 'state'
    VALIDATION = 'validation'
    RESOURCE = 'resource'
    NOT_FOUND = 'not_found'
    CONCURRENCY = 'concurrency'


class GameError(Exception):
    code = 'game_error'
    kind = ErrorKind.VALIDATION
    http_status = 400
    retryable = False
    default_message = 'The request could not be completed.'

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            'error': {
                'code': self.code,
                'kind': self.kind.value,
                'message': self.message,
                'retryable': self.retryable,
            }
        }


# Authorization

class NotHost(GameError):
    code = 'not_host'
    kind = ErrorKind.AUTHORIZATION
    http_status = 403
    default_message = 'Only the host can do that.'


class NotJudge(GameError):
    code = 'not_judge'
    kind = ErrorKind.AUTHORIZATION
    http_status = 403
    default_message = 'Only the judge can pick the winner.'


# State / phase

class InvalidState(GameError):
    code = 'invalid_state'
    kind = ErrorKind.STATE
    http_status = 409
    default_message = 'The game is not in a state that allows this.'


class InvalidPhase(GameError):
    code = 'invalid_phase'
    kind = ErrorKind.STATE
    http_status = 409
    default_message = 'The round is not in a phase that allows this.'


# Validation

class WrongCardCount(GameError):
    code = 'wrong_card_count'

    def __init__(self, expected: int, got: int):
        self.expected = expected
        self.got = got
        noun = 'card' if expected == 1 else 'cards'
        super().__init__(f'Select exactly {expected} {noun}.')


class CardNotInHand(GameError):
    code = 'card_not_in_hand'
    default_message = 'You can only play cards from your own hand.'


class InvalidWinner(GameError):
    code = 'invalid_winner'
    default_message = 'Pick one of the submitted answers.'


class AlreadySubmitted(GameError):
    code = 'already_submitted'
    default_message = 'You already submitted cards this round.'


class JudgeCannotSubmit(GameError):
    code = 'judge_cannot_submit'
    default_message = 'The judge does not submit cards this round.'


class InvalidSettings(GameError):
    code = 'invalid_settings'
    default_message = 'Those game settings are not valid.'


class PlayerNotInGame(GameError):
    code = 'player_not_in_game'
    default_message = 'You are not a player in this game.'


# Resource

class DeckExhausted(GameError):
    code = 'deck_exhausted'
    kind = ErrorKind.RESOURCE
    http_status = 409
    default_message = 'The deck does not have enough cards for this game.'


class InsufficientPlayers(GameError):
    code = 'insufficient_players'
    kind = ErrorKind.RESOURCE
    http_status = 409

    def __init__(self, minimum: int):
        self.minimum = minimum
        super().__init__(f'Need at least {minimum} players to start.')


class PlayersNotReady(GameError):
    code = 'players_not_ready'
    kind = ErrorKind.RESOURCE
    http_status = 409
    default_message = 'All players must be ready to start.'


class GameFull(GameError):
    code = 'game_full'
    kind = ErrorKind.RESOURCE
    http_status = 409
    default_message = 'Game is full.'


# Lookup

class NotFound(GameError):
    code = 'not_found'
    kind = ErrorKind.NOT_FOUND
    http_status = 404
    default_message = 'Not found.'


class GameNotFound(NotFound):
    code = 'game_not_found'
    default_message = 'Game not found.'


# Concurrency

class ConcurrentUpdateFailed(GameError):
    code = 'concurrent_update_failed'
    kind = ErrorKind.CONCURRENCY
    http_status = 409
    retryable = True
    default_message = 'The game changed while we were saving. Please try again.'


class InfrastructureError(Exception):
    """Storage transport or serialization failure."""

    http_status = 503

    def to_dict(self) -> dict:
        return {
            'error': {
                'code': 'infrastructure_error',
                'kind': 'infrastructure',
                'message': 'The game service is unavailable right now.',
                'retryable': False,
            }
        }
