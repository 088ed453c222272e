from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from starhub.services.credits import (
    add_credits, spend_credits, list_transactions, InvalidAmount, InsufficientCredits,
)

credits = Blueprint('credits', __name__)


def _amount_and_description():
    data = request.get_json(silent=True) or {}
    return data.get('amount'), data.get('description') or ''


@credits.route('/add', methods=['POST'])
@login_required
def add():
    amount, description = _amount_and_description()
    try:
        user = add_credits(current_user._get_current_object(), amount, description)
    except InvalidAmount:
        return jsonify({'message': 'Invalid amount'}), 400
    return jsonify(user.to_dict())


@credits.route('/spend', methods=['POST'])
@login_required
def spend():
    amount, description = _amount_and_description()
    try:
        user = spend_credits(current_user._get_current_object(), amount, description)
    except InvalidAmount:
        return jsonify({'message': 'Invalid amount'}), 400
    except InsufficientCredits as exc:
        return jsonify({'message': 'Insufficient credits', 'credits': exc.balance}), 400
    return jsonify(user.to_dict())


@credits.route('/transactions', methods=['GET'])
@login_required
def transactions():
    limit = request.args.get('limit', type=int) or current_app.config.get('TRANSACTION_HISTORY_LIMIT', 100)
    rows = list_transactions(current_user._get_current_object(), limit=max(1, min(limit, 500)))
    return jsonify([t.to_dict() for t in rows])
