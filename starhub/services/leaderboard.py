"""Per-game, global and legacy leaderboards.

Each recorded play writes one monthly and one yearly ``GameScore`` row.
The global (hall of fame) total for a user is the sum of that user's best
score in each game; it is recomputed, never incremented.
"""

import calendar
from datetime import datetime
from typing import Optional, Tuple

from flask import current_app
from sqlalchemy import func

from starhub import db, socketio
from starhub.models import User, GameScore, GlobalLeaderboardEntry, LEADERBOARD_TYPES, utcnow
from starhub.services.games.catalog import check_game_id, game_name, GAME_IDS


def check_kind(kind: str) -> str:
    if kind not in LEADERBOARD_TYPES:
        raise ValueError(f'Invalid leaderboard type: {kind!r}')
    return kind


def current_period(kind: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Return the (start, end) bounds of the calendar month or year containing now."""
    check_kind(kind)
    now = now or utcnow()
    if kind == 'monthly':
        last_day = calendar.monthrange(now.year, now.month)[1]
        start = datetime(now.year, now.month, 1)
        end = datetime(now.year, now.month, last_day, 23, 59, 59, 999999)
    else:
        start = datetime(now.year, 1, 1)
        end = datetime(now.year, 12, 31, 23, 59, 59, 999999)
    return start, end


def add_game_score(game_id: int, user: User, score: int):
    """Record one play. Points equal the score."""
    check_game_id(game_id)
    if isinstance(score, bool) or not isinstance(score, int) or score < 0:
        raise ValueError(f'Invalid score: {score!r}')
    now = utcnow()
    rows = []
    for kind in LEADERBOARD_TYPES:
        start, end = current_period(kind, now)
        row = GameScore(
            game_id=game_id,
            user_id=user.id,
            username=user.username,
            score=score,
            points=score,
            played_at=now,
            leaderboard_type=kind,
            period_start=start,
            period_end=end,
        )
        db.session.add(row)
        rows.append(row)
    db.session.flush()
    # Rows and the global entry land in one commit
    entry = _refresh_global_entry(user)
    db.session.commit()
    current_app.logger.info(
        f"[score] user={user.id} game={game_id} score={score} total={entry.total_points} rank={entry.rank}"
    )
    socketio.emit('leaderboard_update', {'game_id': game_id}, namespace='/ws')
    return {'monthly': rows[0], 'yearly': rows[1]}


def _best_scores(user_id: int):
    return dict(
        db.session.query(GameScore.game_id, func.max(GameScore.score))
        .filter(GameScore.user_id == user_id)
        .group_by(GameScore.game_id)
        .all()
    )


def _play_counts(user_id: int):
    return dict(
        db.session.query(GameScore.game_id, func.count(GameScore.id))
        .filter(GameScore.user_id == user_id, GameScore.leaderboard_type == 'yearly')
        .group_by(GameScore.game_id)
        .all()
    )


def _refresh_global_entry(user: User) -> GlobalLeaderboardEntry:
    best = _best_scores(user.id)
    total = sum(int(best.get(gid) or 0) for gid in GAME_IDS)
    plays = sum(_play_counts(user.id).values())

    entry = GlobalLeaderboardEntry.query.filter_by(user_id=user.id).first()
    if entry is None:
        entry = GlobalLeaderboardEntry(user_id=user.id)
        db.session.add(entry)
    entry.total_points = total
    entry.last_updated = utcnow()

    user.total_points = total
    user.games_played = plays
    db.session.add(user)
    db.session.flush()
    _recompute_ranks()
    return entry


def update_global_leaderboard(user: User) -> GlobalLeaderboardEntry:
    entry = _refresh_global_entry(user)
    db.session.commit()
    current_app.logger.info(
        f"[global] user={user.id} total={entry.total_points} plays={user.games_played} rank={entry.rank}"
    )
    return entry


def _recompute_ranks() -> None:
    ordered = (
        GlobalLeaderboardEntry.query
        .order_by(GlobalLeaderboardEntry.total_points.desc(), GlobalLeaderboardEntry.id.asc())
        .all()
    )
    for idx, entry in enumerate(ordered, start=1):
        entry.rank = idx


def update_game_result(user: User, points: int) -> User:
    """Legacy per-user counters bumped by the client after a recorded play."""
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        raise ValueError(f'Invalid points: {points!r}')
    user.total_points = (user.total_points or 0) + points
    user.games_played = (user.games_played or 0) + 1
    db.session.add(user)
    db.session.commit()
    return user


def game_leaderboard(game_id: int, kind: str = 'monthly', limit: int = 50):
    """Rows of the current period for one game, best score first."""
    check_game_id(game_id)
    start, _ = current_period(kind)
    return (
        GameScore.query
        .filter_by(game_id=game_id, leaderboard_type=check_kind(kind), period_start=start)
        .order_by(GameScore.score.desc(), GameScore.played_at.asc(), GameScore.id.asc())
        .limit(limit)
        .all()
    )


def global_leaderboard(limit: int = 50):
    return (
        GlobalLeaderboardEntry.query
        .order_by(GlobalLeaderboardEntry.total_points.desc(), GlobalLeaderboardEntry.id.asc())
        .limit(limit)
        .all()
    )


def global_total(user_id: int) -> Optional[int]:
    entry = GlobalLeaderboardEntry.query.filter_by(user_id=user_id).first()
    return entry.total_points if entry else None


def all_users_for_leaderboard():
    return User.query.order_by(User.total_points.desc(), User.id.asc()).all()


def user_position(user_id: int, game_id: Optional[int] = None, kind: str = 'monthly') -> int:
    """1-based position of the user's best row, or 0 when not ranked."""
    if game_id:
        start, _ = current_period(kind)
        ordered = (
            db.session.query(GameScore.user_id)
            .filter_by(game_id=check_game_id(game_id), leaderboard_type=kind, period_start=start)
            .order_by(GameScore.score.desc(), GameScore.played_at.asc(), GameScore.id.asc())
            .all()
        )
        for idx, (uid,) in enumerate(ordered, start=1):
            if uid == user_id:
                return idx
        return 0
    entry = GlobalLeaderboardEntry.query.filter_by(user_id=user_id).first()
    return entry.rank if entry else 0


def reset_period(kind: str) -> int:
    removed = GameScore.query.filter_by(leaderboard_type=check_kind(kind)).delete()
    db.session.commit()
    current_app.logger.info(f"[reset] kind={kind} removed={removed}")
    return removed


def reset_user_game_data(user: User) -> None:
    GameScore.query.filter_by(user_id=user.id).delete()
    GlobalLeaderboardEntry.query.filter_by(user_id=user.id).delete()
    user.total_points = 0
    user.games_played = 0
    db.session.add(user)
    db.session.flush()
    _recompute_ranks()
    db.session.commit()
    current_app.logger.info(f"[reset] user={user.id} game data cleared")


def game_breakdown(user_id: int):
    best = _best_scores(user_id)
    plays = _play_counts(user_id)
    breakdown = []
    for gid in GAME_IDS:
        if gid not in best:
            continue
        breakdown.append({
            'gameId': gid,
            'gameName': game_name(gid),
            'bestScore': best[gid],
            'totalPoints': best[gid],
            'gamesPlayed': plays.get(gid, 0),
        })
    return breakdown
