import pytest

from starhub.models import CreditTransaction
from starhub.services.credits import (
    add_credits, spend_credits, list_transactions, InvalidAmount, InsufficientCredits,
)


def test_add_and_spend_credits(user_client):
    res = user_client.post('/api/user/credits/add', json={'amount': 40, 'description': 'Quest reward'})
    assert res.status_code == 200
    assert res.get_json()['credits'] == 50

    res = user_client.post('/api/user/credits/spend', json={'amount': 15, 'description': 'Shop'})
    assert res.status_code == 200
    assert res.get_json()['credits'] == 35

    history = user_client.get('/api/user/credits/transactions').get_json()
    assert [(t['type'], t['amount'], t['description']) for t in history] == [
        ('spent', 15, 'Shop'),
        ('earned', 40, 'Quest reward'),
        ('earned', 10, 'Welcome bonus'),
    ]


@pytest.mark.parametrize('amount', [0, -5, '5', True, None, 1.5])
def test_invalid_amounts_rejected(user_client, amount):
    for path in ('/api/user/credits/add', '/api/user/credits/spend'):
        res = user_client.post(path, json={'amount': amount})
        assert res.status_code == 400
        assert res.get_json()['message'] == 'Invalid amount'


def test_spend_more_than_balance(user_client):
    res = user_client.post('/api/user/credits/spend', json={'amount': 11})
    assert res.status_code == 400
    assert res.get_json()['message'] == 'Insufficient credits'
    assert user_client.get('/api/user').get_json()['credits'] == 10
    history = user_client.get('/api/user/credits/transactions').get_json()
    assert len(history) == 1


def test_spend_exact_balance_reaches_zero(make_user):
    user = make_user('bob', credits=3)
    spend_credits(user, 3, 'All in')
    assert user.credits == 0
    with pytest.raises(InsufficientCredits) as exc:
        spend_credits(user, 1, 'One more')
    assert exc.value.balance == 0
    assert user.credits == 0


def test_balance_matches_ledger_sum(make_user):
    user = make_user('carol')
    add_credits(user, 7, 'a')
    spend_credits(user, 4, 'b')
    add_credits(user, 2, 'c')
    total = sum(t.amount for t in CreditTransaction.query.filter_by(user_id=user.id))
    assert total == user.credits == 15


def test_service_rejects_bad_amounts(make_user):
    user = make_user('dave')
    with pytest.raises(InvalidAmount):
        add_credits(user, 0)
    with pytest.raises(InvalidAmount):
        spend_credits(user, -2)


def test_transaction_history_limit(make_user):
    user = make_user('erin')
    for _ in range(5):
        add_credits(user, 1, 'tick')
    assert len(list_transactions(user, limit=3)) == 3
    assert len(list_transactions(user)) == 6
