import os
import sys
from contextlib import contextmanager

import pytest

# Ensure the backend root (containing the `punchline` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from punchline import create_app, db, socketio
from punchline.services.games import orchestrator
from punchline.services.games.catalog import CardCatalog, CardType, CardView, DeckInfo
from punchline.services.games.gameplay import CATALOG_EXTENSION
from punchline.services.games.state import GameSettings, PlayerStatus


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    TRANSACTION_MAX_ATTEMPTS = 3
    TRANSACTION_RETRY_BACKOFF_MS = 0
    DEADLINE_TIMERS_ENABLED = False
    SHUFFLE_SEED = 'punchline-tests'


@contextmanager
def _built_app(config_class):
    # No app context stays pushed while clients run: Flask reuses an active
    # context for every request, and the loaded player would stick to it.
    application = create_app(config_class)
    with application.app_context():
        # Ensure models are imported so tables are created
        import punchline.models  # noqa: F401
        db.create_all()
    try:
        yield application
    finally:
        with application.app_context():
            db.session.remove()
            db.drop_all()


@pytest.fixture()
def flask_app():
    with _built_app(TestConfig) as application:
        yield application


@pytest.fixture()
def app_ctx(flask_app):
    """App context for tests that use the session directly, without a client."""
    with flask_app.app_context():
        yield flask_app


@pytest.fixture()
def file_db_app(tmp_path):
    """App backed by an on-disk SQLite file so a second engine can write concurrently."""

    class FileDbConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'punchline.db'}"

    with _built_app(FileDbConfig) as application, application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


def player_headers(player_id, name=None):
    return {'X-Player-Id': player_id, 'X-Player-Name': name or player_id.upper()}


@pytest.fixture()
def as_player():
    return player_headers


@pytest.fixture()
def seed_deck():
    """Insert a deck into the catalog tables of ``app``."""

    def _seed(app, deck_id='base', prompts=10, answers=60, picks=None, warning_answers=0):
        from punchline.models import Card, Deck

        with app.app_context():
            db.session.add(Deck(id=deck_id, name=f'{deck_id.title()} Deck'))
            for i in range(prompts):
                db.session.add(Card(
                    id=f'{deck_id}-p{i:03d}',
                    deck_id=deck_id,
                    card_type='prompt',
                    text=f'Prompt {i}: ____.',
                    pick=picks[i] if picks else 1,
                    position=i,
                ))
            for i in range(answers):
                db.session.add(Card(
                    id=f'{deck_id}-a{i:03d}',
                    deck_id=deck_id,
                    card_type='answer',
                    text=f'Answer {i}',
                    content_warning=i < warning_answers,
                    position=i,
                ))
            db.session.commit()
            app.extensions[CATALOG_EXTENSION].invalidate(deck_id)
        return deck_id

    return _seed


@pytest.fixture()
def make_catalog():
    """In-memory catalog with the same contract as the database-backed one."""

    def _factory(deck_id='mem', prompts=10, answers=60, picks=None, warning_answers=0):
        info = DeckInfo(id=deck_id, name='Memory Deck')
        cards = [
            CardView(id=f'{deck_id}-p{i:03d}', deck_id=deck_id, card_type=CardType.PROMPT,
                     text=f'Prompt {i}: ____.', pick=picks[i] if picks else 1)
            for i in range(prompts)
        ]
        cards += [
            CardView(id=f'{deck_id}-a{i:03d}', deck_id=deck_id, card_type=CardType.ANSWER,
                     text=f'Answer {i}', content_warning=i < warning_answers)
            for i in range(answers)
        ]
        decks = {deck_id: (info, cards)}
        return CardCatalog(loader=decks.get, deck_lister=lambda: [d[0] for d in decks.values()])

    return _factory


@pytest.fixture()
def make_lobby():
    """Lobby state with host p1 and ready players p2..pN, seated in that order."""

    def _factory(players=3, deck_id='mem', now=1000.0, **settings):
        game = orchestrator.create_game('g1', 'p1', 'P1', GameSettings(deck_id=deck_id, **settings), now)
        for i in range(2, players + 1):
            orchestrator.join_game(game, f'p{i}', f'P{i}', now + i)
            orchestrator.set_ready(game, f'p{i}', True, now + i)
        return game

    return _factory


@pytest.fixture()
def api_lobby(client, flask_app, seed_deck):
    """Create a game over HTTP with host p1 and ready players p2..pN. Returns the game id."""

    def _factory(players=3, deck_kwargs=None, **settings):
        deck_id = seed_deck(flask_app, **(deck_kwargs or {}))
        body = {'settings': dict({'deck_id': deck_id}, **settings)}
        res = client.post('/api/games/create', json=body, headers=player_headers('p1'))
        assert res.status_code == 201, res.get_json()
        game_id = res.get_json()['id']
        for i in range(2, players + 1):
            pid = f'p{i}'
            assert client.post(f'/api/games/{game_id}/join', headers=player_headers(pid)).status_code == 200
            assert client.post(f'/api/games/{game_id}/ready', json={'ready': True},
                               headers=player_headers(pid)).status_code == 200
        return game_id

    return _factory


def all_dealt_ids(game):
    """Every answer/prompt id currently held, submitted or played, with repeats kept."""
    ids = []
    for player in game.players.values():
        ids.extend(player.hand)
    for rnd in game.rounds.values():
        ids.append(rnd.prompt.card_id)
        for sub in rnd.submissions.values():
            ids.extend(sub.card_ids)
    return ids


@pytest.fixture()
def dealt_ids():
    return all_dealt_ids


@pytest.fixture()
def playing_ids():
    def _ids(game):
        return [pid for pid, p in game.players.items() if p.status == PlayerStatus.PLAYING]
    return _ids
