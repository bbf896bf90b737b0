from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from punchline.services.games import gameplay
from punchline.services.games.errors import GameError, InfrastructureError


games = Blueprint('games', __name__)


@games.errorhandler(GameError)
def handle_game_error(exc):
    return jsonify(exc.to_dict()), exc.http_status


@games.errorhandler(InfrastructureError)
def handle_infrastructure_error(exc):
    return jsonify(exc.to_dict()), exc.http_status


def _state_response(game, status=200):
    return jsonify(game.public_view(current_user.id)), status


@games.route('/decks', methods=['GET'])
def list_decks():
    return jsonify([d.to_dict() for d in gameplay.list_decks()])


@games.route('/create', methods=['POST'])
@login_required
def create_game():
    data = request.get_json(silent=True) or {}
    game = gameplay.create_game(current_user.id, current_user.display_name, data.get('settings') or data)
    return _state_response(game, 201)


@games.route('/<string:game_id>/state', methods=['GET'])
@login_required
def get_game_state(game_id):
    return _state_response(gameplay.get_state(game_id))


@games.route('/<string:game_id>/hand', methods=['GET'])
@login_required
def get_hand(game_id):
    cards = gameplay.get_hand(game_id, current_user.id)
    return jsonify({'cards': [c.to_dict() for c in cards]})


@games.route('/<string:game_id>/round', methods=['GET'])
@login_required
def get_round(game_id):
    number = request.args.get('number', type=int)
    return jsonify(gameplay.get_round_view(game_id, current_user.id, number))


@games.route('/<string:game_id>/join', methods=['POST'])
@login_required
def join_game(game_id):
    return _state_response(gameplay.join_game(game_id, current_user.id, current_user.display_name))


@games.route('/<string:game_id>/ready', methods=['POST'])
@login_required
def set_ready(game_id):
    data = request.get_json(silent=True) or {}
    return _state_response(gameplay.set_ready(game_id, current_user.id, bool(data.get('ready', True))))


@games.route('/<string:game_id>/leave', methods=['POST'])
@login_required
def leave_game(game_id):
    return _state_response(gameplay.leave_game(game_id, current_user.id))


@games.route('/<string:game_id>/kick', methods=['POST'])
@login_required
def kick_player(game_id):
    data = request.get_json(silent=True) or {}
    player_id = data.get('player_id')
    if not player_id:
        return jsonify({'error': {'code': 'bad_request', 'kind': 'validation',
                                  'message': 'player_id is required', 'retryable': False}}), 400
    return _state_response(gameplay.kick_player(game_id, current_user.id, player_id))


@games.route('/<string:game_id>/cancel', methods=['POST'])
@login_required
def cancel_game(game_id):
    return _state_response(gameplay.cancel_game(game_id, current_user.id))


@games.route('/<string:game_id>/start', methods=['POST'])
@login_required
def start_game(game_id):
    return _state_response(gameplay.start_game(game_id, current_user.id))


@games.route('/<string:game_id>/submit', methods=['POST'])
@login_required
def submit_cards(game_id):
    data = request.get_json(silent=True) or {}
    card_ids = data.get('card_ids')
    if not isinstance(card_ids, list) or not all(isinstance(c, str) for c in card_ids):
        return jsonify({'error': {'code': 'bad_request', 'kind': 'validation',
                                  'message': 'card_ids must be a list of card ids', 'retryable': False}}), 400
    return _state_response(gameplay.submit_cards(game_id, current_user.id, card_ids))


@games.route('/<string:game_id>/winner', methods=['POST'])
@login_required
def select_winner(game_id):
    data = request.get_json(silent=True) or {}
    winner_id = data.get('winner_id')
    if not winner_id:
        return jsonify({'error': {'code': 'bad_request', 'kind': 'validation',
                                  'message': 'winner_id is required', 'retryable': False}}), 400
    return _state_response(gameplay.select_winner(game_id, current_user.id, winner_id))


@games.route('/<string:game_id>/tick', methods=['POST'])
@login_required
def tick(game_id):
    return _state_response(gameplay.tick(game_id))


@games.route('/<string:game_id>/force', methods=['POST'])
@login_required
def force_transition(game_id):
    data = request.get_json(silent=True) or {}
    target = data.get('phase')
    reason = (data.get('reason') or '').strip()
    if not target or not reason:
        return jsonify({'error': {'code': 'bad_request', 'kind': 'validation',
                                  'message': 'phase and reason are required', 'retryable': False}}), 400
    return _state_response(gameplay.force_transition(game_id, current_user.id, target, reason))
