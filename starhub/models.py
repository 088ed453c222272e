from starhub import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone

FACTIONS = ('oni', 'mud', 'ustur')
LEADERBOARD_TYPES = ('monthly', 'yearly')


def utcnow():
    """Naive UTC timestamp, as stored by every DateTime column here."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(255), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    # Discord-only accounts have no password
    password_hash = db.Column(db.String(255), nullable=True)
    solana_wallet = db.Column(db.String(255), nullable=True)
    faction = db.Column(db.String(16), nullable=True)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    games_played = db.Column(db.Integer, nullable=False, default=0)
    achievements = db.Column(db.Integer, nullable=False, default=0)
    credits = db.Column(db.Integer, nullable=False, default=0)
    discord_id = db.Column(db.String(64), unique=True, nullable=True, index=True)
    discord_username = db.Column(db.String(255), nullable=True)
    discord_avatar = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint('credits >= 0', name='ck_users_credits_non_negative'),
    )

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_public_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'faction': self.faction,
            'totalPoints': self.total_points,
            'gamesPlayed': self.games_played,
        }

    def to_dict(self):
        data = self.to_public_dict()
        data.update({
            'email': self.email,
            'solanaWallet': self.solana_wallet,
            'achievements': self.achievements,
            'credits': self.credits,
            'discordId': self.discord_id,
            'discordUsername': self.discord_username,
            'discordAvatar': self.discord_avatar,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        })
        return data


class CreditTransaction(db.Model):
    """Append-only credits ledger. Spent rows carry a negative amount."""
    __tablename__ = 'credit_transactions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False, default='')
    type = db.Column(db.String(16), nullable=False)  # earned, spent
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    user = db.relationship('User', backref=db.backref('transactions', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'amount': abs(self.amount),
            'description': self.description,
            'timestamp': _iso(self.created_at),
        }


class GameScore(db.Model):
    """One per-game leaderboard row; every recorded play writes a monthly and a yearly row."""
    __tablename__ = 'game_scores'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    username = db.Column(db.String(255), nullable=False)
    score = db.Column(db.Integer, nullable=False)
    points = db.Column(db.Integer, nullable=False)
    played_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    leaderboard_type = db.Column(db.String(16), nullable=False, index=True)
    period_start = db.Column(db.DateTime, nullable=False)
    period_end = db.Column(db.DateTime, nullable=False)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'gameId': self.game_id,
            'userId': self.user_id,
            'username': self.username,
            'score': self.score,
            'points': self.points,
            'playedAt': _iso(self.played_at),
            'leaderboardType': self.leaderboard_type,
            'periodStart': _iso(self.period_start),
            'periodEnd': _iso(self.period_end),
            'user': self.user.to_public_dict() if self.user else None,
        }


class GlobalLeaderboardEntry(db.Model):
    __tablename__ = 'global_leaderboards'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    rank = db.Column(db.Integer, nullable=False, default=0)
    last_updated = db.Column(db.DateTime, nullable=False, default=utcnow)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'totalPoints': self.total_points,
            'rank': self.rank,
            'lastUpdated': _iso(self.last_updated),
            'user': self.user.to_public_dict() if self.user else None,
        }


class Payment(db.Model):
    __tablename__ = 'payments'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    stripe_payment_intent_id = db.Column(db.String(255), unique=True, nullable=False)
    package_id = db.Column(db.String(32), nullable=False)
    package_name = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    credits = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(8), nullable=False, default='usd')
    status = db.Column(db.String(16), nullable=False, default='pending')  # pending, succeeded, failed
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'stripePaymentIntentId': self.stripe_payment_intent_id,
            'packageId': self.package_id,
            'packageName': self.package_name,
            'amount': float(self.amount),
            'credits': self.credits,
            'currency': self.currency,
            'status': self.status,
            'createdAt': _iso(self.created_at),
        }
