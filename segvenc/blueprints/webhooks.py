"""
Webhooks Blueprint for payment gateway notifications (Kiwify).
Every body is logged verbatim before the subscription is reconciled.
"""

import hmac
import logging
from flask import Blueprint, request, jsonify, current_app
from segvenc.database import get_session
from segvenc.middleware import unsigned_calls_allowed
from segvenc.services.subscription_service import SubscriptionReconciler, ingest_webhook

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/webhooks')


def verify_kiwify_secret(received: str) -> bool:
    """
    Verify the shared secret Kiwify sends as ``?secret=`` in the URL.

    Fails closed when KIWIFY_WEBHOOK_SECRET is not configured, except in
    TESTING or DEBUG mode.
    """
    secret = current_app.config.get('KIWIFY_WEBHOOK_SECRET')
    if not secret:
        if unsigned_calls_allowed():
            logger.info("Skipping Kiwify webhook secret verification (not configured, debug/testing)")
            return True
        logger.error("KIWIFY_WEBHOOK_SECRET is not configured; rejecting webhook")
        return False
    return hmac.compare_digest(received or '', secret)


@webhooks_bp.route('/kiwify', methods=['POST'])
def kiwify_webhook():
    """
    Handle Kiwify order/subscription notifications.

    Responses:
    - 200 processed/ignored (unknown event, or no matching subscription)
    - 400 malformed JSON or missing buyer email
    - 401 wrong shared secret
    - 500 reconciliation failure
    """
    if not verify_kiwify_secret(request.args.get('secret', '')):
        logger.warning("Invalid Kiwify webhook secret")
        return jsonify({'status': 'error', 'message': 'Unauthorized'}), 401

    session = get_session()
    config = current_app.config
    reconciler = SubscriptionReconciler(
        session,
        gateway='kiwify',
        default_days=config.get('SUBSCRIPTION_DEFAULT_DAYS', 30),
        default_company_name=config.get('DEFAULT_COMPANY_NAME', 'Nova Empresa'),
        default_plan_name=config.get('DEFAULT_PLAN_NAME', 'Plano Kiwify'),
    )

    result = ingest_webhook(
        session,
        'kiwify',
        request.get_data(as_text=True),
        reconciler=reconciler,
    )
    return jsonify(result), 200


@webhooks_bp.route('/test', methods=['GET'])
def test_webhook():
    """Test endpoint to verify webhook is accessible."""
    return jsonify({
        'status': 'ok',
        'message': 'Webhook endpoint is active'
    }), 200
