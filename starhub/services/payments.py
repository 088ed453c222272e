"""Stripe credit purchases.

Packages are priced in dollars; Stripe receives cents. A payment credits
its user once, when it moves from pending to succeeded.
"""

import uuid
from decimal import Decimal

import stripe
from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from starhub import db
from starhub.models import User, Payment, utcnow
from starhub.services.credits import add_credits

CREDIT_PACKAGES = {
    'starter': {
        'id': 'starter',
        'name': 'Starter Pack',
        'credits': 100,
        'bonus': 0,
        'price': Decimal('4.99'),
        'description': 'Perfect for casual players',
        'popular': False,
    },
    'gamer': {
        'id': 'gamer',
        'name': 'Gamer Pack',
        'credits': 250,
        'bonus': 50,
        'price': Decimal('9.99'),
        'description': 'Best value for dedicated gamers',
        'popular': True,
    },
    'champion': {
        'id': 'champion',
        'name': 'Champion Pack',
        'credits': 500,
        'bonus': 100,
        'price': Decimal('19.99'),
        'description': 'For the ultimate gaming experience',
        'popular': False,
    },
}


class PaymentError(Exception):
    pass


class UnknownPackage(PaymentError):
    pass


def get_package(package_id):
    return CREDIT_PACKAGES.get(package_id) if isinstance(package_id, str) else None


def total_credits(package_id) -> int:
    pkg = get_package(package_id)
    if not pkg:
        return 0
    return pkg['credits'] + pkg['bonus']


def amount_in_cents(pkg) -> int:
    return int((pkg['price'] * 100).to_integral_value())


def packages_payload():
    return [dict(pkg, price=float(pkg['price'])) for pkg in CREDIT_PACKAGES.values()]


def _configure():
    stripe.api_key = current_app.config.get('STRIPE_SECRET_KEY') or None


def _require_package(package_id):
    pkg = get_package(package_id)
    if not pkg:
        raise UnknownPackage(f'Invalid package ID: {package_id!r}')
    return pkg


def create_payment_intent(user: User, package_id: str, currency: str = 'usd') -> dict:
    pkg = _require_package(package_id)
    credits = total_credits(package_id)
    cents = amount_in_cents(pkg)

    if current_app.config.get('STRIPE_TEST_MODE'):
        payment = Payment(
            user_id=user.id,
            stripe_payment_intent_id=f"pi_test_{uuid.uuid4().hex}",
            package_id=package_id,
            package_name=pkg['name'],
            amount=pkg['price'],
            credits=credits,
            currency=currency,
        )
        db.session.add(payment)
        db.session.commit()
        settle_payment(payment.stripe_payment_intent_id)
        current_app.logger.info(
            f"[stripe-test] user={user.id} package={package_id} credits={credits}"
        )
        return {
            'success': True,
            'clientSecret': 'test_client_secret',
            'packageId': package_id,
            'credits': credits,
            'amount': cents,
            'testMode': True,
        }

    _configure()
    intent = stripe.PaymentIntent.create(
        amount=cents,
        currency=currency,
        automatic_payment_methods={'enabled': True},
        metadata={
            'userId': str(user.id),
            'packageId': package_id,
            'credits': str(credits),
            'username': user.username,
        },
        description=f"Star Seekers Hub - {pkg['name']} ({credits} credits)",
    )
    db.session.add(Payment(
        user_id=user.id,
        stripe_payment_intent_id=intent['id'],
        package_id=package_id,
        package_name=pkg['name'],
        amount=pkg['price'],
        credits=credits,
        currency=currency,
    ))
    db.session.commit()
    current_app.logger.info(f"[stripe-intent] user={user.id} intent={intent['id']} package={package_id}")
    return {
        'clientSecret': intent['client_secret'],
        'packageId': package_id,
        'credits': credits,
        'amount': cents,
    }


def create_checkout_session(user: User, package_id: str) -> str:
    pkg = _require_package(package_id)
    credits = total_credits(package_id)
    frontend = current_app.config.get('FRONTEND_URL', '').rstrip('/')
    _configure()
    session = stripe.checkout.Session.create(
        mode='payment',
        line_items=[{
            'price_data': {
                'currency': 'usd',
                'unit_amount': amount_in_cents(pkg),
                'product_data': {'name': pkg['name'], 'description': pkg['description']},
            },
            'quantity': 1,
        }],
        success_url=f"{frontend}/credits?success=true&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{frontend}/credits?canceled=true",
        customer_email=user.email,
        metadata={
            'userId': str(user.id),
            'packageId': package_id,
            'credits': str(credits),
        },
    )
    # Keyed by session id; the completion webhook settles this row
    db.session.add(Payment(
        user_id=user.id,
        stripe_payment_intent_id=session['id'],
        package_id=package_id,
        package_name=pkg['name'],
        amount=pkg['price'],
        credits=credits,
        currency='usd',
    ))
    db.session.commit()
    current_app.logger.info(f"[stripe-checkout] user={user.id} session={session['id']} package={package_id}")
    return session['url']


def construct_event(payload, signature: str):
    secret = current_app.config.get('STRIPE_WEBHOOK_SECRET')
    if not secret:
        raise PaymentError('Stripe webhook secret not configured')
    event = stripe.Webhook.construct_event(payload, signature, secret)
    # handle_event works on plain dicts
    return event.to_dict() if hasattr(event, 'to_dict') else event


def settle_payment(intent_id: str):
    """Mark a pending payment succeeded and credit its user.

    The pending check and the status write are one conditional UPDATE, so
    repeated or concurrent deliveries credit at most once.
    """
    payment = Payment.query.filter_by(stripe_payment_intent_id=intent_id).first()
    if payment is None:
        current_app.logger.warning(f"[stripe-settle] unknown payment id={intent_id}")
        return None
    result = db.session.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status == 'pending')
        .values(status='succeeded', updated_at=utcnow())
    )
    if result.rowcount != 1:
        db.session.rollback()
        current_app.logger.info(f"[stripe-settle] id={intent_id} already {payment.status}")
        return payment
    user = db.session.get(User, payment.user_id)
    # add_credits commits the status change together with the ledger row
    add_credits(user, payment.credits, f"Purchased {payment.package_name}")
    db.session.refresh(payment)
    return payment


def fail_payment(intent_id: str) -> None:
    db.session.execute(
        update(Payment)
        .where(Payment.stripe_payment_intent_id == intent_id, Payment.status == 'pending')
        .values(status='failed', updated_at=utcnow())
    )
    db.session.commit()


def _checkout_payment(session, source: str):
    """Find the payment row for a checkout session, creating it from the session metadata if needed."""
    session_id = session.get('id')
    if not session_id:
        current_app.logger.warning(f"[stripe-webhook] {source} session without id")
        return None
    payment = Payment.query.filter_by(stripe_payment_intent_id=session_id).first()
    if payment is not None:
        return payment

    metadata = session.get('metadata') or {}
    pkg = get_package(metadata.get('packageId'))
    try:
        user_id = int(metadata.get('userId'))
        credits = int(metadata.get('credits'))
    except (TypeError, ValueError):
        current_app.logger.warning(f"[stripe-webhook] {source} missing or malformed metadata: {metadata}")
        return None
    if pkg is None or credits <= 0:
        current_app.logger.warning(f"[stripe-webhook] {source} bad package metadata: {metadata}")
        return None
    if db.session.get(User, user_id) is None:
        current_app.logger.warning(f"[stripe-webhook] {source} unknown user={user_id}")
        return None

    payment = Payment(
        user_id=user_id,
        stripe_payment_intent_id=session_id,
        package_id=pkg['id'],
        package_name=pkg['name'],
        amount=pkg['price'],
        credits=credits,
        currency=session.get('currency') or 'usd',
    )
    db.session.add(payment)
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent delivery inserted it first
        db.session.rollback()
        payment = Payment.query.filter_by(stripe_payment_intent_id=session_id).first()
    return payment


def _settle_checkout(session, source: str) -> None:
    payment = _checkout_payment(session, source)
    if payment is None:
        return
    settle_payment(payment.stripe_payment_intent_id)
    current_app.logger.info(
        f"[stripe-webhook] {source} user={payment.user_id} credits={payment.credits} package={payment.package_id}"
    )


def handle_event(event) -> None:
    event_type = event['type']
    obj = event['data']['object']
    metadata = obj.get('metadata') or {}
    current_app.logger.info(f"[stripe-webhook] event={event_type}")

    if event_type == 'checkout.session.completed':
        # Delayed payment methods complete later via async_payment_succeeded
        if obj.get('payment_status', 'paid') == 'paid':
            _settle_checkout(obj, 'checkout')
        else:
            _checkout_payment(obj, 'checkout')
    elif event_type == 'checkout.session.async_payment_succeeded':
        _settle_checkout(obj, 'checkout-async')
    elif event_type == 'checkout.session.async_payment_failed':
        if obj.get('id'):
            fail_payment(obj['id'])
        current_app.logger.warning(
            f"[stripe-webhook] payment failed user={metadata.get('userId')} package={metadata.get('packageId')}"
        )
    elif event_type == 'payment_intent.succeeded':
        settle_payment(obj['id'])
    elif event_type == 'payment_intent.payment_failed':
        fail_payment(obj['id'])
        current_app.logger.warning(f"[stripe-webhook] intent failed id={obj['id']}")
    else:
        current_app.logger.info(f"[stripe-webhook] unhandled event type {event_type}")


def payment_history(user: User):
    return (
        Payment.query
        .filter_by(user_id=user.id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )
