"""Scheduled jobs triggered over HTTP by an external cron."""
import hmac
import logging
from flask import Blueprint, request, jsonify, current_app
from segvenc.database import get_session
from segvenc.middleware import unsigned_calls_allowed
from segvenc.services.digest_service import run_daily_digest

logger = logging.getLogger(__name__)

jobs_bp = Blueprint('jobs', __name__, url_prefix='/jobs')


def verify_cron_secret() -> bool:
    """
    Check the ``Authorization: Bearer <CRON_SECRET>`` header.

    Fails closed when CRON_SECRET is not configured, except in TESTING or
    DEBUG mode.
    """
    secret = current_app.config.get('CRON_SECRET')
    if not secret:
        if unsigned_calls_allowed():
            return True
        logger.error("CRON_SECRET is not configured; rejecting job trigger")
        return False
    header = request.headers.get('Authorization', '')
    token = header[len('Bearer '):] if header.startswith('Bearer ') else ''
    return hmac.compare_digest(token, secret)


@jobs_bp.route('/daily-digest', methods=['POST'])
def daily_digest():
    """Build and send the daily expiry digest for every company."""
    if not verify_cron_secret():
        logger.warning("Rejected daily digest trigger with invalid cron secret")
        return jsonify({'status': 'error', 'message': 'Unauthorized'}), 401

    result = run_daily_digest(get_session(), current_app.config)
    return jsonify({'status': 'ok', **result.to_dict()})
