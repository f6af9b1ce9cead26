from datetime import datetime

from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from trivia.services.games.errors import GameError, InvalidPayload, NotFound, Forbidden


games = Blueprint('games', __name__)


def _repository():
    return current_app.extensions['game_repository']


def _parse_date_of_event(value):
    if not value:
        return None
    for fmt in ('%d-%m-%Y', '%Y-%m-%d'):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise InvalidPayload(f'Invalid date_of_event: {value}')


@games.errorhandler(GameError)
def handle_game_error(exc):
    return jsonify({'error': exc.message, 'code': exc.code}), exc.http_status


@games.route('/create', methods=['POST'])
@login_required
def create_game():
    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    if not title:
        raise InvalidPayload('title is required')

    try:
        game = _repository().create_game(
            host_id=current_user.id,
            name=title,
            date=_parse_date_of_event(data.get('date_of_event')),
            settings=data.get('settings') or {},
            rounds=data.get('rounds') or [],
            teams=data.get('teams') or [],
        )
    except (KeyError, TypeError) as exc:
        raise InvalidPayload(f'Malformed game payload: {exc}') from exc
    except SQLAlchemyError:
        current_app.logger.exception(f"[create-failed] host={current_user.id}")
        return jsonify({'error': 'Failed to create game', 'code': 'INTERNAL_ERROR'}), 500

    current_app.logger.info(f"[create] game={game.id} host={current_user.id} passcode={game.passcode}")
    return jsonify({'game': game.to_dict(include_rounds=True)}), 201


@games.route('/<int:game_id>', methods=['GET'])
@login_required
def get_game(game_id):
    game = _repository().find_game_by_id(game_id)
    if not game:
        raise NotFound('Game not found')
    if game.host_id != current_user.id:
        raise Forbidden('You are not the host of this game')
    return jsonify({'game': game.to_dict(include_rounds=True)})


@games.route('/check/<int:passcode>', methods=['GET'])
def check_game(passcode):
    """Player entry point: resolve a passcode to a joinable game and its teams."""
    game = _repository().find_game_by_passcode(passcode)
    if not game:
        raise NotFound('Game not found')
    return jsonify({
        'game_id': game.id,
        'game_name': game.name,
        'teams': [
            {'team_id': p.team_id, 'name': p.team.name, 'is_available': p.is_available}
            for p in game.participants
        ],
    })
