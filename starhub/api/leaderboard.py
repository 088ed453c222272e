from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from starhub.models import LEADERBOARD_TYPES
from starhub.services import leaderboard as boards
from starhub.services.games.catalog import GAMES_CONFIG


leaderboard = Blueprint('leaderboard', __name__)


def _limit():
    default = int(current_app.config.get('LEADERBOARD_LIMIT', 50))
    limit = request.args.get('limit', type=int) or default
    return max(1, min(limit, 500))


@leaderboard.route('/game/<game_id>', methods=['GET'])
def game_board(game_id):
    try:
        gid = int(game_id)
    except ValueError:
        gid = None
    if gid not in GAMES_CONFIG:
        return jsonify({'message': 'Invalid game ID'}), 400
    kind = request.args.get('type', 'monthly')
    if kind not in LEADERBOARD_TYPES:
        kind = 'monthly'
    try:
        rows = boards.game_leaderboard(gid, kind, _limit())
    except Exception:
        # Leaderboard views degrade to an empty list
        current_app.logger.exception(f"[leaderboard] game={gid} read failed")
        return jsonify([])
    return jsonify([r.to_dict() for r in rows])


@leaderboard.route('/global', methods=['GET'])
def global_board():
    try:
        rows = boards.global_leaderboard(_limit())
    except Exception:
        current_app.logger.exception("[leaderboard] global read failed")
        return jsonify([])
    return jsonify([r.to_dict() for r in rows])


@leaderboard.route('', methods=['GET'])
def legacy_board():
    return jsonify([u.to_public_dict() for u in boards.all_users_for_leaderboard()])


@leaderboard.route('/position', methods=['GET'])
@login_required
def position():
    game_id = request.args.get('gameId', type=int)
    if game_id is not None and game_id not in GAMES_CONFIG:
        return jsonify({'message': 'Invalid game ID'}), 400
    kind = request.args.get('type', 'monthly')
    if kind not in LEADERBOARD_TYPES:
        return jsonify({'message': 'Invalid leaderboard type'}), 400
    return jsonify({'position': boards.user_position(current_user.id, game_id, kind)})
