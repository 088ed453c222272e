from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from starhub import db
from starhub.models import User
from starhub.services.credits import InsufficientCredits
from starhub.services.games.catalog import catalog, check_game_id, start_play, UnknownGame
from starhub.services import leaderboard as boards


games = Blueprint('games', __name__)


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


@games.route('/games/config', methods=['GET'])
def games_config():
    return jsonify(catalog())


@games.route('/games/<int:game_id>/start', methods=['POST'])
@login_required
def start_game(game_id):
    user = current_user._get_current_object()
    try:
        charged = start_play(user, game_id)
    except UnknownGame as exc:
        return jsonify({'message': str(exc)}), 400
    except InsufficientCredits as exc:
        return jsonify({'message': 'Insufficient credits', 'credits': exc.balance}), 400
    return jsonify({'success': True, 'gameId': game_id, 'charged': charged, 'credits': user.credits})


@games.route('/games/score', methods=['POST'])
@login_required
def record_score():
    data = request.get_json(silent=True) or {}
    game_id = data.get('gameId')
    score = data.get('score')
    points = data.get('points')
    if game_id is None or score is None or points is None:
        return jsonify({'message': 'Game ID, score, and points are required'}), 400
    try:
        check_game_id(game_id)
    except UnknownGame as exc:
        return jsonify({'message': str(exc)}), 400
    if not _is_count(score) or not _is_count(points):
        return jsonify({'message': 'Invalid score or points'}), 400

    user = current_user._get_current_object()
    try:
        boards.add_game_score(game_id, user, score)
    except Exception:
        db.session.rollback()
        current_app.logger.exception(f"[score] failed user={user.id} game={game_id}")
        return jsonify({'message': 'Server error'}), 500

    return jsonify({
        'success': True,
        'message': 'Score recorded successfully',
        'gameId': game_id,
        'score': score,
        'points': points,
    })


@games.route('/games/session', methods=['POST'])
@login_required
def record_session():
    data = request.get_json(silent=True) or {}
    game_id = data.get('gameId')
    try:
        check_game_id(game_id)
    except UnknownGame:
        return jsonify({'message': 'Invalid game ID'}), 400
    if not _is_count(data.get('score')):
        return jsonify({'message': 'Invalid score'}), 400
    if not _is_count(data.get('points')):
        return jsonify({'message': 'Invalid points'}), 400

    user = current_user._get_current_object()
    try:
        boards.add_game_score(game_id, user, data['score'])
    except Exception:
        db.session.rollback()
        current_app.logger.exception(f"[session] failed user={user.id} game={game_id}")
        return jsonify({'message': 'Server error'}), 500
    return jsonify({'success': True, 'message': 'Game session recorded successfully'})


@games.route('/user/game-result', methods=['POST'])
@login_required
def game_result():
    data = request.get_json(silent=True) or {}
    points = data.get('points')
    if not _is_count(points):
        return jsonify({'message': 'Invalid points'}), 400
    user = boards.update_game_result(current_user._get_current_object(), points)
    return jsonify(user.to_dict())


@games.route('/user/<user_id>/game-breakdown', methods=['GET'])
def game_breakdown(user_id):
    try:
        uid = int(user_id)
    except ValueError:
        return jsonify({'message': 'Invalid user ID'}), 400
    return jsonify(boards.game_breakdown(uid))


@games.route('/user/<user_id>/reset-game-data', methods=['DELETE'])
def reset_game_data(user_id):
    try:
        uid = int(user_id)
    except ValueError:
        uid = None
    # Users may only reset their own data
    if not current_user.is_authenticated or current_user.id != uid:
        return jsonify({'message': 'Not authorized'}), 401
    user = db.session.get(User, uid)
    boards.reset_user_game_data(user)
    return jsonify({
        'success': True,
        'message': 'Game data reset successfully. All scores and progress have been cleared.',
    })
