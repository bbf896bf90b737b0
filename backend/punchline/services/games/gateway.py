"""Transactional persistence for the game aggregate.

``transact`` is the only write path for an existing game. It reads the row,
hands a fresh ``GameState`` to the caller's mutation and writes the whole
document back. The write is conditioned on the row version that was read
(SQLAlchemy ``version_id_col``); when another writer got there first the
mutation is re-run against the newly read state, so validation is always
repeated rather than replayed.
"""

import logging
import time
from typing import Callable, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from punchline.models import GameRecord

from .errors import ConcurrentUpdateFailed, GameError, GameNotFound, InfrastructureError
from .state import GameState

T = TypeVar('T')

logger = logging.getLogger(__name__)


class GameGateway:
    def __init__(self, session, max_attempts: int = 5, backoff_ms: int = 0):
        self.session = session
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_ms = max(0, int(backoff_ms))

    def create(self, game: GameState) -> GameState:
        record = GameRecord(id=game.id)
        record.store_document(game.to_dict())
        try:
            self.session.add(record)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise InfrastructureError(f'Could not create game {game.id}') from exc
        return game

    def _read(self, game_id: str) -> Tuple[GameRecord, GameState]:
        record = self.session.get(GameRecord, game_id, populate_existing=True)
        if record is None:
            raise GameNotFound()
        try:
            return record, GameState.from_dict(record.load_document())
        except (ValueError, KeyError, TypeError) as exc:
            raise InfrastructureError(f'Game {game_id} has an unreadable document') from exc

    def load(self, game_id: str) -> GameState:
        try:
            _, game = self._read(game_id)
            return game
        except SQLAlchemyError as exc:
            raise InfrastructureError(f'Could not read game {game_id}') from exc
        finally:
            self.session.rollback()

    def transact(self, game_id: str, mutate: Callable[[GameState], T]) -> Tuple[GameState, T]:
        for attempt in range(1, self.max_attempts + 1):
            try:
                record, game = self._read(game_id)
                before = game.to_dict()
                result = mutate(game)
                after = game.to_dict()
                if after == before:
                    self.session.rollback()
                    return game, result
                game.updated_at = time.time()
                record.store_document(game.to_dict())
                self.session.commit()
                return game, result
            except StaleDataError:
                self.session.rollback()
                logger.info(f"[txn-conflict] game={game_id} attempt={attempt}/{self.max_attempts}")
                if self.backoff_ms and attempt < self.max_attempts:
                    time.sleep(self.backoff_ms * attempt / 1000.0)
            except (GameError, InfrastructureError):
                self.session.rollback()
                raise
            except SQLAlchemyError as exc:
                self.session.rollback()
                raise InfrastructureError(f'Storage failure while updating game {game_id}') from exc
            except Exception:
                self.session.rollback()
                raise
        logger.warning(f"[txn-abort] game={game_id} gave up after {self.max_attempts} attempts")
        raise ConcurrentUpdateFailed()


def get_gateway(app=None) -> GameGateway:
    from flask import current_app
    from punchline import db

    app = app or current_app
    cfg = app.config
    return GameGateway(
        db.session,
        max_attempts=int(cfg.get('TRANSACTION_MAX_ATTEMPTS', 5)),
        backoff_ms=int(cfg.get('TRANSACTION_RETRY_BACKOFF_MS', 0)),
    )
