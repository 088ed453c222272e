"""Discord OAuth2 login.

Authorization-code flow with the ``identify email`` scopes. The profile is
matched to an account by Discord id first, then by email for accounts that
predate Discord login, and otherwise a new account is opened.
"""

from urllib.parse import urlencode

import requests
from flask import current_app

from starhub import db
from starhub.models import User
from starhub.services.credits import open_account

DISCORD_API = 'https://discord.com/api'
AUTHORIZE_URL = 'https://discord.com/oauth2/authorize'
SCOPES = 'identify email'
TIMEOUT_SEC = 10


class DiscordAuthError(Exception):
    pass


def authorize_url(state: str) -> str:
    cfg = current_app.config
    if not cfg.get('DISCORD_CLIENT_ID'):
        raise DiscordAuthError('Discord login is not configured')
    query = urlencode({
        'client_id': cfg['DISCORD_CLIENT_ID'],
        'redirect_uri': cfg['DISCORD_CALLBACK_URL'],
        'response_type': 'code',
        'scope': SCOPES,
        'state': state,
        'prompt': 'none',
    })
    return f'{AUTHORIZE_URL}?{query}'


def exchange_code(code: str) -> str:
    cfg = current_app.config
    try:
        resp = requests.post(
            f'{DISCORD_API}/oauth2/token',
            data={
                'client_id': cfg.get('DISCORD_CLIENT_ID'),
                'client_secret': cfg.get('DISCORD_CLIENT_SECRET'),
                'grant_type': 'authorization_code',
                'code': code,
                'redirect_uri': cfg.get('DISCORD_CALLBACK_URL'),
            },
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            timeout=TIMEOUT_SEC,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise DiscordAuthError(f'Token exchange failed: {exc}') from exc
    token = resp.json().get('access_token')
    if not token:
        raise DiscordAuthError('Token exchange returned no access token')
    return token


def fetch_profile(access_token: str) -> dict:
    try:
        resp = requests.get(
            f'{DISCORD_API}/users/@me',
            headers={'Authorization': f'Bearer {access_token}'},
            timeout=TIMEOUT_SEC,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise DiscordAuthError(f'Profile fetch failed: {exc}') from exc
    return resp.json()


def _unique_username(base: str) -> str:
    candidate = base
    n = 1
    while User.query.filter_by(username=candidate).first():
        n += 1
        candidate = f'{base}{n}'
    return candidate


def resolve_user(profile: dict) -> User:
    discord_id = str(profile['id'])
    username = profile.get('username') or f'discord-{discord_id}'
    email = profile.get('email')
    avatar = profile.get('avatar')

    user = User.query.filter_by(discord_id=discord_id).first()
    if user:
        user.discord_username = username
        user.discord_avatar = avatar
        if email and email != user.email and not User.query.filter_by(email=email).first():
            user.email = email
        db.session.commit()
        current_app.logger.info(f"[discord] updated user={user.id}")
        return user

    if email:
        user = User.query.filter_by(email=email).first()
        if user and not user.discord_id:
            user.discord_id = discord_id
            user.discord_username = username
            user.discord_avatar = avatar
            db.session.commit()
            current_app.logger.info(f"[discord] linked user={user.id}")
            return user

    for candidate in (email, f'{username}@discord.user', f'{discord_id}@discord.user'):
        if candidate and not User.query.filter_by(email=candidate).first():
            email = candidate
            break

    user = User(
        username=_unique_username(username),
        email=email,
        discord_id=discord_id,
        discord_username=username,
        discord_avatar=avatar,
    )
    open_account(user)
    db.session.commit()
    current_app.logger.info(f"[discord] created user={user.id}")
    return user
