"""HTTP client for the hub API.

Mirrors what the browser does: a cookie session, an optimistic local
credit transaction list, and the two-call game result report (score
first, then the legacy per-user counters). Network failures are logged
and reported as ``False`` or ``[]``; nothing is retried.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)

MAX_TRANSACTIONS = 100


class HubClient:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.user = None
        self.transactions: List[dict] = []

    def _url(self, path: str) -> str:
        return f'{self.base_url}{path}'

    def _post(self, path: str, payload: dict):
        return self.session.post(self._url(path), json=payload, timeout=self.timeout)

    def _get(self, path: str, params: Optional[dict] = None):
        return self.session.get(self._url(path), params=params, timeout=self.timeout)

    @property
    def credits(self) -> int:
        if self.user and self.user.get('credits') is not None:
            return self.user['credits']
        return 0

    def can_afford(self, amount: int) -> bool:
        return self.credits >= amount

    # --- auth ---

    def login(self, email: str, password: str) -> bool:
        return self._auth('/api/login', {'email': email, 'password': password})

    def register(self, username: str, email: str, password: str) -> bool:
        return self._auth('/api/register', {'username': username, 'email': email, 'password': password})

    def _auth(self, path: str, payload: dict) -> bool:
        try:
            resp = self._post(path, payload)
        except requests.RequestException as exc:
            logger.error('Auth request to %s failed: %s', path, exc)
            return False
        if not resp.ok:
            logger.warning('Auth request to %s rejected: %s', path, resp.status_code)
            return False
        self.user = resp.json().get('user')
        return True

    def logout(self) -> None:
        try:
            self._post('/api/logout', {})
        except requests.RequestException as exc:
            logger.warning('Logout failed: %s', exc)
        self.user = None

    def refresh(self) -> bool:
        """Reload the current user (and with it the credit balance)."""
        try:
            resp = self._get('/api/user')
        except requests.RequestException as exc:
            logger.error('Error refreshing user: %s', exc)
            return False
        if not resp.ok:
            self.user = None
            return False
        self.user = resp.json()
        return True

    # --- credits ---

    def _record(self, kind: str, amount: int, description: str) -> dict:
        txn = {
            'id': f'{int(time.time() * 1000)}{uuid.uuid4().hex[:9]}',
            'type': kind,
            'amount': amount,
            'description': description,
            'timestamp': datetime.now(timezone.utc),
        }
        self.transactions = [txn] + self.transactions[:MAX_TRANSACTIONS - 1]
        return txn

    def add_credits(self, amount: int, description: str) -> bool:
        if amount <= 0 or not self.user:
            return False
        return self._credit_call('/api/user/credits/add', 'earned', amount, description)

    def spend_credits(self, amount: int, description: str) -> bool:
        if amount <= 0 or not self.user or not self.can_afford(amount):
            return False
        return self._credit_call('/api/user/credits/spend', 'spent', amount, description)

    def _credit_call(self, path: str, kind: str, amount: int, description: str) -> bool:
        try:
            resp = self._post(path, {'amount': amount, 'description': description})
        except requests.RequestException as exc:
            logger.error('Error %s credits: %s', 'adding' if kind == 'earned' else 'spending', exc)
            return False
        if not resp.ok:
            return False
        self._record(kind, amount, description)
        self.refresh()
        return True

    def reset_transactions(self) -> None:
        self.transactions = []

    # --- games and leaderboards ---

    def record_game_session(self, game_id: int, score: int, points: int) -> bool:
        """Report one finished play.

        The score call decides the result. The follow-up game-result call is
        best effort: its failure is only logged, so the two may disagree.
        """
        try:
            resp = self._post('/api/games/score', {'gameId': game_id, 'score': score, 'points': points})
        except requests.RequestException as exc:
            logger.error('Error recording game session: %s', exc)
            return False
        if not resp.ok:
            logger.error('Failed to record game session: %s %s', resp.status_code, resp.text)
            return False

        try:
            follow_up = self._post('/api/user/game-result', {'points': points, 'gameId': game_id})
            if not follow_up.ok:
                logger.warning('Global leaderboard update rejected: %s', follow_up.status_code)
        except requests.RequestException as exc:
            logger.warning('Failed to update global leaderboard: %s', exc)
        return True

    def submit_game_result(self, score: int, game_key: str) -> bool:
        """Record a result for a game keyed like ``game3``, then refresh the user."""
        try:
            game_id = int(str(game_key).replace('game', ''))
        except ValueError:
            logger.error('Unknown game key %r', game_key)
            return False
        if not self.record_game_session(game_id, score, score):
            return False
        self.refresh()
        return True

    def _get_list(self, path: str, params: Optional[dict] = None) -> list:
        try:
            resp = self._get(path, params)
        except requests.RequestException as exc:
            logger.error('Error fetching %s: %s', path, exc)
            return []
        if not resp.ok:
            logger.error('Failed to fetch %s: %s', path, resp.status_code)
            return []
        return resp.json()

    def game_leaderboard(self, game_id: int, kind: str = 'monthly', limit: int = 50) -> list:
        return self._get_list(f'/api/leaderboard/game/{game_id}', {'type': kind, 'limit': limit})

    def global_leaderboard(self, limit: int = 50) -> list:
        return self._get_list('/api/leaderboard/global', {'limit': limit})

    def user_game_breakdown(self, user_id: int) -> list:
        return self._get_list(f'/api/user/{user_id}/game-breakdown')
