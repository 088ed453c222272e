import stripe
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from starhub import db
from starhub.services import payments as svc


payments = Blueprint('payments', __name__)


@payments.route('/packages', methods=['GET'])
def packages():
    return jsonify(svc.packages_payload())


@payments.route('/create-payment-intent', methods=['POST'])
@login_required
def create_payment_intent():
    data = request.get_json(silent=True) or {}
    package_id = data.get('packageId')
    currency = data.get('currency') or 'usd'
    if not isinstance(package_id, str) or not package_id or not isinstance(currency, str):
        return jsonify({'message': 'Invalid request data'}), 400

    user = current_user._get_current_object()
    try:
        return jsonify(svc.create_payment_intent(user, package_id, currency.lower()))
    except svc.UnknownPackage:
        return jsonify({'message': 'Invalid package ID'}), 400
    except stripe.StripeError as exc:
        db.session.rollback()
        current_app.logger.warning(f"[stripe-intent] user={user.id} package={package_id} error={exc}")
        return jsonify({'message': 'Payment processing error', 'error': str(exc)}), 400


@payments.route('/create-checkout-session', methods=['POST'])
@login_required
def create_checkout_session():
    data = request.get_json(silent=True) or {}
    user = current_user._get_current_object()
    try:
        url = svc.create_checkout_session(user, data.get('packageId'))
    except svc.UnknownPackage:
        return jsonify({'message': 'Invalid package ID'}), 400
    except stripe.StripeError as exc:
        current_app.logger.warning(f"[stripe-checkout] user={user.id} error={exc}")
        return jsonify({'message': 'Failed to create checkout session'}), 500
    return jsonify({'url': url})


@payments.route('/webhook', methods=['POST'])
def webhook():
    signature = request.headers.get('Stripe-Signature')
    if not signature:
        return jsonify({'message': 'Missing stripe signature'}), 400
    try:
        event = svc.construct_event(request.get_data(), signature)
    except (ValueError, svc.PaymentError, stripe.SignatureVerificationError) as exc:
        current_app.logger.warning(f"[stripe-webhook] rejected: {exc}")
        return jsonify({'message': str(exc)}), 400
    try:
        svc.handle_event(event)
    except Exception:
        db.session.rollback()
        current_app.logger.exception(f"[stripe-webhook] failed handling {event.get('type')}")
        return jsonify({'message': 'Webhook handler failed'}), 500
    return jsonify({'received': True})


@payments.route('/payment-history', methods=['GET'])
@login_required
def payment_history():
    rows = svc.payment_history(current_user._get_current_object())
    return jsonify([p.to_dict() for p in rows])
