from decimal import Decimal
from unittest.mock import patch

import stripe
from sqlalchemy import update

from starhub import db
from starhub.models import Payment
from starhub.services import payments


def _credits(client):
    return client.get('/api/user').get_json()['credits']


def _webhook(client, event):
    with patch('starhub.services.payments.stripe.Webhook.construct_event', return_value=event) as construct:
        res = client.post('/api/stripe/webhook', data=b'{}', headers={'Stripe-Signature': 't=1,v1=abc'})
    return res, construct


def test_packages(client):
    pkgs = {p['id']: p for p in client.get('/api/stripe/packages').get_json()}
    assert set(pkgs) == {'starter', 'gamer', 'champion'}
    assert pkgs['gamer']['price'] == 9.99
    assert pkgs['gamer']['popular'] is True


def test_package_helpers():
    assert payments.total_credits('gamer') == 300
    assert payments.total_credits('champion') == 600
    assert payments.total_credits('nope') == 0
    assert payments.amount_in_cents(payments.get_package('starter')) == 499
    assert payments.get_package(None) is None


def test_test_mode_credits_immediately(flask_app, user_client):
    flask_app.config['STRIPE_TEST_MODE'] = True
    res = user_client.post('/api/stripe/create-payment-intent', json={'packageId': 'gamer'})
    assert res.status_code == 200
    body = res.get_json()
    assert body['testMode'] is True
    assert body['credits'] == 300
    assert body['amount'] == 999
    assert _credits(user_client) == 310

    history = user_client.get('/api/stripe/payment-history').get_json()
    assert len(history) == 1
    assert history[0]['status'] == 'succeeded'
    assert history[0]['stripePaymentIntentId'].startswith('pi_test_')


def test_payment_intent_then_webhook_settles_once(user_client):
    intent = {'id': 'pi_123', 'client_secret': 'pi_123_secret'}
    with patch('starhub.services.payments.stripe.PaymentIntent.create', return_value=intent) as create:
        res = user_client.post('/api/stripe/create-payment-intent', json={'packageId': 'starter'})
    assert res.status_code == 200
    assert res.get_json()['clientSecret'] == 'pi_123_secret'
    kwargs = create.call_args.kwargs
    assert kwargs['amount'] == 499
    assert kwargs['currency'] == 'usd'
    assert kwargs['metadata']['credits'] == '100'
    assert _credits(user_client) == 10

    event = {'type': 'payment_intent.succeeded', 'data': {'object': {'id': 'pi_123', 'metadata': {}}}}
    res, construct = _webhook(user_client, event)
    assert res.status_code == 200
    assert construct.call_args.args[2] == 'whsec_test'
    assert _credits(user_client) == 110

    _webhook(user_client, event)
    assert _credits(user_client) == 110
    assert user_client.get('/api/stripe/payment-history').get_json()[0]['status'] == 'succeeded'


def test_failed_intent_marks_payment(user_client):
    with patch('starhub.services.payments.stripe.PaymentIntent.create', return_value={'id': 'pi_9', 'client_secret': 's'}):
        user_client.post('/api/stripe/create-payment-intent', json={'packageId': 'champion'})
    _webhook(user_client, {'type': 'payment_intent.payment_failed', 'data': {'object': {'id': 'pi_9'}}})
    assert user_client.get('/api/stripe/payment-history').get_json()[0]['status'] == 'failed'
    assert _credits(user_client) == 10


def _checkout_event(user_client, event_type='checkout.session.completed', session_id='cs_live_1', **fields):
    obj = {
        'id': session_id,
        'payment_status': 'paid',
        'metadata': {'userId': str(user_client.user['id']), 'packageId': 'gamer', 'credits': '300'},
    }
    obj.update(fields)
    return {'type': event_type, 'data': {'object': obj}}


def test_checkout_completed_credits_metadata_user(user_client):
    res, _ = _webhook(user_client, _checkout_event(user_client))
    assert res.get_json() == {'received': True}
    assert _credits(user_client) == 310

    history = user_client.get('/api/stripe/payment-history').get_json()
    assert len(history) == 1
    assert history[0]['stripePaymentIntentId'] == 'cs_live_1'
    assert history[0]['status'] == 'succeeded'


def test_webhook_rejections(flask_app, client):
    assert client.post('/api/stripe/webhook', data=b'{}').status_code == 400

    err = stripe.SignatureVerificationError('bad signature', 'sig')
    with patch('starhub.services.payments.stripe.Webhook.construct_event', side_effect=err):
        res = client.post('/api/stripe/webhook', data=b'{}', headers={'Stripe-Signature': 'x'})
    assert res.status_code == 400

    flask_app.config['STRIPE_WEBHOOK_SECRET'] = ''
    res = client.post('/api/stripe/webhook', data=b'{}', headers={'Stripe-Signature': 'x'})
    assert res.status_code == 400
    assert res.get_json()['message'] == 'Stripe webhook secret not configured'


def test_payment_intent_errors(user_client):
    res = user_client.post('/api/stripe/create-payment-intent', json={'packageId': 'mega'})
    assert res.status_code == 400
    assert res.get_json()['message'] == 'Invalid package ID'
    assert user_client.post('/api/stripe/create-payment-intent', json={}).status_code == 400

    with patch('starhub.services.payments.stripe.PaymentIntent.create', side_effect=stripe.StripeError('declined')):
        res = user_client.post('/api/stripe/create-payment-intent', json={'packageId': 'starter'})
    assert res.status_code == 400
    assert res.get_json()['message'] == 'Payment processing error'
    assert user_client.get('/api/stripe/payment-history').get_json() == []


def test_checkout_session_url(user_client):
    session = {'id': 'cs_1', 'url': 'https://checkout.stripe.test/cs_1'}
    with patch('starhub.services.payments.stripe.checkout.Session.create', return_value=session) as create:
        res = user_client.post('/api/stripe/create-checkout-session', json={'packageId': 'starter'})
    assert res.get_json() == {'url': 'https://checkout.stripe.test/cs_1'}
    kwargs = create.call_args.kwargs
    assert kwargs['success_url'].startswith('http://frontend.test/credits?success=true')
    assert kwargs['metadata']['userId'] == str(user_client.user['id'])
    history = user_client.get('/api/stripe/payment-history').get_json()
    assert [(p['stripePaymentIntentId'], p['status']) for p in history] == [('cs_1', 'pending')]


def test_checkout_redelivery_credits_once(user_client):
    event = _checkout_event(user_client)
    _webhook(user_client, event)
    res, _ = _webhook(user_client, event)
    assert res.status_code == 200
    assert _credits(user_client) == 310
    assert len(user_client.get('/api/stripe/payment-history').get_json()) == 1


def test_checkout_session_settles_its_stored_payment(user_client):
    session = {'id': 'cs_2', 'url': 'https://checkout.stripe.test/cs_2'}
    with patch('starhub.services.payments.stripe.checkout.Session.create', return_value=session):
        user_client.post('/api/stripe/create-checkout-session', json={'packageId': 'starter'})
    _webhook(user_client, _checkout_event(user_client, session_id='cs_2', metadata={}))
    assert _credits(user_client) == 110
    history = user_client.get('/api/stripe/payment-history').get_json()
    assert [(p['stripePaymentIntentId'], p['status']) for p in history] == [('cs_2', 'succeeded')]


def test_unpaid_checkout_waits_for_async_result(user_client):
    _webhook(user_client, _checkout_event(user_client, payment_status='unpaid'))
    assert _credits(user_client) == 10
    assert user_client.get('/api/stripe/payment-history').get_json()[0]['status'] == 'pending'

    async_event = _checkout_event(user_client, event_type='checkout.session.async_payment_succeeded')
    _webhook(user_client, async_event)
    _webhook(user_client, async_event)
    assert _credits(user_client) == 310
    assert user_client.get('/api/stripe/payment-history').get_json()[0]['status'] == 'succeeded'


def test_async_checkout_failure_does_not_credit(user_client):
    _webhook(user_client, _checkout_event(user_client, payment_status='unpaid'))
    _webhook(user_client, _checkout_event(user_client, event_type='checkout.session.async_payment_failed'))
    assert _credits(user_client) == 10
    assert user_client.get('/api/stripe/payment-history').get_json()[0]['status'] == 'failed'

    # a late success for a failed payment changes nothing
    _webhook(user_client, _checkout_event(user_client, event_type='checkout.session.async_payment_succeeded'))
    assert _credits(user_client) == 10


def test_malformed_checkout_metadata_is_skipped(user_client):
    bad = {'userId': 'abc', 'packageId': 'gamer', 'credits': '300'}
    res, _ = _webhook(user_client, _checkout_event(user_client, metadata=bad))
    assert res.status_code == 200
    res, _ = _webhook(user_client, _checkout_event(user_client, session_id='cs_3', metadata={'packageId': 'gamer'}))
    assert res.status_code == 200
    assert _credits(user_client) == 10
    assert user_client.get('/api/stripe/payment-history').get_json() == []


def test_webhook_handler_failure_rolls_back(user_client):
    with patch('starhub.services.payments.stripe.PaymentIntent.create', return_value={'id': 'pi_7', 'client_secret': 's'}):
        user_client.post('/api/stripe/create-payment-intent', json={'packageId': 'starter'})
    event = {'type': 'payment_intent.succeeded', 'data': {'object': {'id': 'pi_7'}}}
    with patch('starhub.services.payments.add_credits', side_effect=RuntimeError('db down')):
        res, _ = _webhook(user_client, event)
    assert res.status_code == 500
    assert user_client.get('/api/stripe/payment-history').get_json()[0]['status'] == 'pending'

    # the retried delivery still settles
    _webhook(user_client, event)
    assert _credits(user_client) == 110


def test_settle_skips_payment_already_settled_elsewhere(make_user):
    user = make_user('alice')
    payment = Payment(
        user_id=user.id, stripe_payment_intent_id='pi_race', package_id='starter',
        package_name='Starter Pack', amount=Decimal('4.99'), credits=100,
    )
    db.session.add(payment)
    db.session.commit()
    assert payment.status == 'pending'

    # another worker settles the row; this session still holds the stale 'pending' object
    db.session.execute(
        update(Payment)
        .where(Payment.id == payment.id)
        .values(status='succeeded')
        .execution_options(synchronize_session=False)
    )
    payments.settle_payment('pi_race')
    db.session.refresh(user)
    assert user.credits == 10


def test_test_mode_ids_are_unique(flask_app, user_client):
    flask_app.config['STRIPE_TEST_MODE'] = True
    for _ in range(2):
        assert user_client.post('/api/stripe/create-payment-intent', json={'packageId': 'starter'}).status_code == 200
    ids = {p['stripePaymentIntentId'] for p in user_client.get('/api/stripe/payment-history').get_json()}
    assert len(ids) == 2
    assert _credits(user_client) == 210
