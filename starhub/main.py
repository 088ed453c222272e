import re
import secrets

from flask import Blueprint, request, jsonify, redirect, session, current_app
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import IntegrityError

from starhub import db
from starhub.models import User, FACTIONS
from starhub.services.credits import open_account, set_credits, notify_balance, InvalidAmount
from starhub.services.leaderboard import global_total
from starhub.services import discord

main = Blueprint('main', __name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LEN = 6


def _is_email(value) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value))


def _start_session(user):
    session.permanent = True
    login_user(user, remember=True)


@main.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    email = data.get('email')
    password = data.get('password')
    if not (isinstance(username, str) and username.strip()) or not _is_email(email) \
            or not (isinstance(password, str) and len(password) >= MIN_PASSWORD_LEN):
        return jsonify({"message": "Invalid input"}), 400
    username = username.strip()

    if User.query.filter_by(email=email).first():
        return jsonify({"message": "Email already exists"}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"message": "Username already exists"}), 400

    user = User(username=username, email=email)
    user.set_password(password)
    try:
        open_account(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"message": "Username or email already exists"}), 400

    _start_session(user)
    current_app.logger.info(f"[register] user={user.id}")
    return jsonify({"user": user.to_dict()}), 201


@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    password = data.get('password')
    if not email or not password:
        return jsonify({"message": "Email and password are required"}), 400

    user = User.query.filter_by(email=email).first()
    if user and user.check_password(password):
        _start_session(user)
        return jsonify({"user": user.to_dict()})
    return jsonify({"message": "Invalid credentials"}), 401


@main.route('/logout', methods=['POST'])
def logout():
    logout_user()
    return jsonify({"message": "Logged out successfully"})


@main.route('/user', methods=['GET'])
@login_required
def get_user():
    payload = current_user.to_dict()
    # The hall of fame entry holds the authoritative best-score total
    total = global_total(current_user.id)
    if total is not None:
        payload['totalPoints'] = total
    return jsonify(payload)


@main.route('/user/profile', methods=['PUT'])
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}
    user = current_user._get_current_object()

    if 'faction' in data:
        faction = data['faction']
        if faction is not None and faction not in FACTIONS:
            return jsonify({"message": "Invalid input"}), 400
        user.faction = faction

    email = data.get('email')
    if email:
        if not _is_email(email):
            return jsonify({"message": "Invalid input"}), 400
        other = User.query.filter_by(email=email).first()
        if other and other.id != user.id:
            return jsonify({"message": "Email already exists"}), 400
        user.email = email

    if 'solanaWallet' in data:
        wallet = data['solanaWallet']
        if wallet is not None and not isinstance(wallet, str):
            return jsonify({"message": "Invalid input"}), 400
        user.solana_wallet = wallet or None

    credits_changed = False
    if 'credits' in data:
        try:
            set_credits(user, data['credits'])
            credits_changed = True
        except InvalidAmount:
            db.session.rollback()
            return jsonify({"message": "Invalid input"}), 400

    db.session.commit()
    if credits_changed:
        notify_balance(user)
    return jsonify(user.to_dict())


@main.route('/auth/discord', methods=['GET'])
def discord_login():
    state = secrets.token_urlsafe(16)
    session['discord_state'] = state
    try:
        return redirect(discord.authorize_url(state))
    except discord.DiscordAuthError as exc:
        current_app.logger.warning(f"[discord] {exc}")
        return jsonify({"message": str(exc)}), 503


@main.route('/auth/discord/callback', methods=['GET'])
def discord_callback():
    frontend = current_app.config.get('FRONTEND_URL', '').rstrip('/')
    expected = session.pop('discord_state', None)
    code = request.args.get('code')
    if not code or not expected or request.args.get('state') != expected:
        return redirect(f'{frontend}/login?error=discord')
    try:
        token = discord.exchange_code(code)
        user = discord.resolve_user(discord.fetch_profile(token))
    except discord.DiscordAuthError as exc:
        current_app.logger.warning(f"[discord] {exc}")
        return redirect(f'{frontend}/login?error=discord')
    _start_session(user)
    return redirect(f'{frontend}/dashboard')
