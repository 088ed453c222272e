"""Credits ledger.

The balance lives on ``User.credits``; every change also appends a
``CreditTransaction`` row in the same database transaction.
"""

from flask import current_app
from sqlalchemy import update

from starhub import db, socketio
from starhub.models import User, CreditTransaction, utcnow


class LedgerError(Exception):
    """Base class for credit ledger failures."""


class InvalidAmount(LedgerError):
    pass


class InsufficientCredits(LedgerError):
    def __init__(self, balance: int, amount: int):
        super().__init__(f'Insufficient credits: balance {balance}, needed {amount}')
        self.balance = balance
        self.amount = amount


def _check_amount(amount) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f'Invalid amount: {amount!r}')
    return amount


def _notify(user: User) -> None:
    socketio.emit(
        'credits_update',
        {'user_id': user.id, 'credits': user.credits},
        to=f"user:{user.id}",
        namespace='/ws',
    )


def open_account(user: User) -> User:
    """Add a new user and grant the starting credits. Caller commits."""
    grant = int(current_app.config.get('STARTING_CREDITS', 10))
    user.credits = grant
    db.session.add(user)
    db.session.flush()
    if grant > 0:
        db.session.add(CreditTransaction(
            user_id=user.id, amount=grant, description='Welcome bonus', type='earned'
        ))
    return user


def add_credits(user: User, amount, description: str = '') -> User:
    amount = _check_amount(amount)
    db.session.execute(
        update(User)
        .where(User.id == user.id)
        .values(credits=User.credits + amount, updated_at=utcnow())
    )
    db.session.add(CreditTransaction(
        user_id=user.id, amount=amount, description=description or 'Credits added', type='earned'
    ))
    db.session.commit()
    db.session.refresh(user)
    current_app.logger.info(f"[credits-add] user={user.id} amount={amount} balance={user.credits}")
    _notify(user)
    return user


def spend_credits(user: User, amount, description: str = '') -> User:
    """Deduct credits; the balance check and the write are one conditional UPDATE."""
    amount = _check_amount(amount)
    result = db.session.execute(
        update(User)
        .where(User.id == user.id, User.credits >= amount)
        .values(credits=User.credits - amount, updated_at=utcnow())
    )
    if result.rowcount == 0:
        db.session.rollback()
        db.session.refresh(user)
        current_app.logger.info(
            f"[credits-denied] user={user.id} amount={amount} balance={user.credits}"
        )
        raise InsufficientCredits(user.credits, amount)
    db.session.add(CreditTransaction(
        user_id=user.id, amount=-amount, description=description or 'Credits spent', type='spent'
    ))
    db.session.commit()
    db.session.refresh(user)
    current_app.logger.info(f"[credits-spend] user={user.id} amount={amount} balance={user.credits}")
    _notify(user)
    return user


def set_credits(user: User, credits: int) -> User:
    """Overwrite the balance, logging the difference as a ledger row. Caller commits."""
    if isinstance(credits, bool) or not isinstance(credits, int) or credits < 0:
        raise InvalidAmount(f'Invalid credits: {credits!r}')
    delta = credits - (user.credits or 0)
    if delta == 0:
        return user
    user.credits = credits
    db.session.add(CreditTransaction(
        user_id=user.id,
        amount=delta,
        description='Balance adjusted',
        type='earned' if delta > 0 else 'spent',
    ))
    current_app.logger.info(f"[credits-set] user={user.id} delta={delta} balance={credits}")
    return user


def list_transactions(user: User, limit: int = None):
    if limit is None:
        limit = int(current_app.config.get('TRANSACTION_HISTORY_LIMIT', 100))
    return (
        CreditTransaction.query
        .filter_by(user_id=user.id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        .limit(limit)
        .all()
    )


def notify_balance(user: User) -> None:
    _notify(user)
