import random

import pytest
from sqlalchemy import create_engine, update
from sqlalchemy.orm import Session

from punchline import db
from punchline.models import GameRecord
from punchline.services.games import orchestrator
from punchline.services.games.errors import (
    ConcurrentUpdateFailed,
    GameNotFound,
    InfrastructureError,
    NotHost,
)
from punchline.services.games.gateway import GameGateway, get_gateway
from punchline.services.games.state import GameSettings, GameStatus, RoundPhase


def _create(gateway, game_id='g1'):
    game = orchestrator.create_game(game_id, 'p1', 'P1', GameSettings(deck_id='d'), 1000.0)
    return gateway.create(game)


def _version(game_id='g1'):
    return db.session.get(GameRecord, game_id, populate_existing=True).version


def test_create_and_load_round_trip(app_ctx):
    gateway = get_gateway()
    created = _create(gateway)
    loaded = gateway.load('g1')
    assert loaded.to_dict() == created.to_dict()
    record = db.session.get(GameRecord, 'g1')
    assert record.status == 'lobby'
    assert record.host_id == 'p1'


def test_missing_game(app_ctx):
    gateway = get_gateway()
    with pytest.raises(GameNotFound):
        gateway.load('nope')
    with pytest.raises(GameNotFound):
        gateway.transact('nope', lambda g: [])


def test_transact_persists_and_bumps_version(app_ctx):
    gateway = get_gateway()
    _create(gateway)
    before = _version()
    game, events = gateway.transact('g1', lambda g: orchestrator.join_game(g, 'p2', 'P2', 1001.0))
    assert events[0]['type'] == 'player_joined'
    assert _version() == before + 1
    assert 'p2' in gateway.load('g1').players


def test_unchanged_document_is_not_written(app_ctx):
    gateway = get_gateway()
    _create(gateway)
    before = _version()
    game, events = gateway.transact('g1', lambda g: orchestrator.disconnect(g, 'p1', None, 1001.0))
    assert events == []
    assert _version() == before


def test_game_errors_roll_back_without_retry(app_ctx):
    gateway = get_gateway()
    _create(gateway)
    calls = []

    def mutate(game):
        calls.append(1)
        game.status = GameStatus.CANCELLED
        raise NotHost()

    with pytest.raises(NotHost):
        gateway.transact('g1', mutate)
    assert len(calls) == 1
    assert gateway.load('g1').status == GameStatus.LOBBY


def test_conflicts_exhaust_into_concurrent_update_failed(app_ctx):
    gateway = GameGateway(db.session, max_attempts=3)
    _create(gateway)
    attempts = []

    def mutate(game):
        attempts.append(1)
        # Another writer bumps the row between our read and our write
        db.session.execute(
            update(GameRecord).where(GameRecord.id == 'g1').values(version=GameRecord.version + 1)
            .execution_options(synchronize_session=False)
        )
        orchestrator.join_game(game, 'p2', 'P2', 1001.0)

    with pytest.raises(ConcurrentUpdateFailed) as excinfo:
        gateway.transact('g1', mutate)
    assert len(attempts) == 3
    assert excinfo.value.retryable is True
    assert 'p2' not in gateway.load('g1').players


def test_conflict_is_retried_against_fresh_state(file_db_app):
    gateway = get_gateway()
    _create(gateway, 'race')
    engine = create_engine(file_db_app.config['SQLALCHEMY_DATABASE_URI'])
    seen = []

    def mutate(game):
        seen.append(sorted(game.players))
        if len(seen) == 1:
            with Session(engine) as other:
                GameGateway(other).transact('race', lambda g: orchestrator.join_game(g, 'p2', 'P2', 1001.0))
        return orchestrator.join_game(game, 'p3', 'P3', 1002.0)

    try:
        game, _ = gateway.transact('race', mutate)
    finally:
        engine.dispose()

    assert seen == [['p1'], ['p1', 'p2']]
    assert sorted(game.players) == ['p1', 'p2', 'p3']
    stored = gateway.load('race')
    assert stored.players['p2'].seat == 2
    assert stored.players['p3'].seat == 3


def test_racing_final_submissions_open_judging_once(file_db_app, make_lobby, make_catalog):
    catalog = make_catalog()
    game = make_lobby(players=3)
    orchestrator.start_game(game, 'p1', catalog, random.Random(42), 2000.0)
    gateway = get_gateway()
    gateway.create(game)
    engine = create_engine(file_db_app.config['SQLALCHEMY_DATABASE_URI'])
    attempts = []
    other_events = []

    def submit(player_id, now):
        def _mutate(g):
            return orchestrator.submit_cards(g, player_id, g.players[player_id].hand[:1], catalog, now)
        return _mutate

    def mutate(g):
        attempts.append(1)
        if len(attempts) == 1:
            with Session(engine) as other:
                _, events = GameGateway(other).transact('g1', submit('p2', 2001.0))
                other_events.extend(events)
        return submit('p3', 2002.0)(g)

    try:
        _, events = gateway.transact('g1', mutate)
    finally:
        engine.dispose()

    assert len(attempts) == 2
    assert [e['type'] for e in other_events] == ['cards_submitted']
    assert [e['type'] for e in events + other_events].count('judging_started') == 1
    stored = gateway.load('g1').rounds[1]
    assert stored.phase == RoundPhase.JUDGING
    assert sorted(stored.submissions) == ['p2', 'p3']


def test_unreadable_document_is_an_infrastructure_error(app_ctx):
    gateway = get_gateway()
    _create(gateway)
    db.session.execute(update(GameRecord).where(GameRecord.id == 'g1').values(state="{not json")
                       .execution_options(synchronize_session=False))
    db.session.commit()
    with pytest.raises(InfrastructureError):
        gateway.load('g1')
