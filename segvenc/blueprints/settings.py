"""
Company settings blueprint - company data, digest recipients, users and
subscription status (JSON API).
"""
from flask import Blueprint, request, g, jsonify
from segvenc.database import get_session
from segvenc.exceptions import ValidationError
from segvenc.middleware import require_login, require_tenant, require_role
from segvenc.services.email_service import send_test_email
from segvenc.services.subscription_service import get_active_subscription
from segvenc.services.tenant_service import (
    add_notification_email,
    get_company,
    get_notification_email,
    list_notification_emails,
    remove_notification_email,
    set_notification_email_active,
    update_company_settings,
)
from segvenc.services.user_service import change_user_role, list_company_users
import logging

logger = logging.getLogger(__name__)

settings_bp = Blueprint('settings', __name__, url_prefix='/api/settings')


def _payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Corpo JSON inválido')
    return data


@settings_bp.route('/company', methods=['GET'])
@require_login
@require_tenant
def company():
    session = get_session()
    return jsonify(get_company(session, g.tenant_id).to_dict())


@settings_bp.route('/company', methods=['PATCH'])
@require_login
@require_tenant
@require_role('admin')
def update_company():
    session = get_session()
    try:
        company = update_company_settings(session, get_company(session, g.tenant_id), _payload())
        session.commit()
        return jsonify(company.to_dict())
    except Exception:
        session.rollback()
        raise


# ============================================================================
# Digest recipients
# ============================================================================

@settings_bp.route('/notification-emails', methods=['GET'])
@require_login
@require_tenant
def notification_emails():
    session = get_session()
    return jsonify({'items': [e.to_dict() for e in list_notification_emails(session, g.tenant_id)]})


@settings_bp.route('/notification-emails', methods=['POST'])
@require_login
@require_tenant
@require_role('admin')
def add_email():
    session = get_session()
    data = _payload()
    try:
        row = add_notification_email(session, g.tenant_id, data.get('email'), data.get('name'))
        session.commit()
        return jsonify(row.to_dict()), 201
    except Exception:
        session.rollback()
        raise


@settings_bp.route('/notification-emails/<int:email_id>', methods=['PATCH'])
@require_login
@require_tenant
@require_role('admin')
def toggle_email(email_id: int):
    session = get_session()
    data = _payload()
    if 'active' not in data:
        raise ValidationError("Campo 'active' é obrigatório")
    row = set_notification_email_active(session, g.tenant_id, email_id, data['active'])
    session.commit()
    return jsonify(row.to_dict())


@settings_bp.route('/notification-emails/<int:email_id>', methods=['DELETE'])
@require_login
@require_tenant
@require_role('admin')
def remove_email(email_id: int):
    session = get_session()
    remove_notification_email(session, g.tenant_id, email_id)
    session.commit()
    return jsonify({'status': 'ok', 'id': email_id})


@settings_bp.route('/notification-emails/<int:email_id>/test', methods=['POST'])
@require_login
@require_tenant
@require_role('admin')
def test_email(email_id: int):
    """Send a test message to one recipient."""
    session = get_session()
    row = get_notification_email(session, g.tenant_id, email_id)
    if not send_test_email(row.email):
        return jsonify({'status': 'error', 'message': 'Falha ao enviar e-mail de teste.'}), 502
    return jsonify({'status': 'ok'})


# ============================================================================
# Users
# ============================================================================

@settings_bp.route('/users', methods=['GET'])
@require_login
@require_tenant
def users():
    session = get_session()
    return jsonify({'items': [u.to_dict() for u in list_company_users(session, g.tenant_id)]})


@settings_bp.route('/users/<int:user_id>/role', methods=['PATCH'])
@require_login
@require_tenant
def change_role(user_id: int):
    """Admins only; enforced by the service so the rule holds everywhere."""
    session = get_session()
    data = _payload()
    try:
        user = change_user_role(session, g.user, user_id, data.get('role'))
        session.commit()
        return jsonify(user.to_dict())
    except Exception:
        session.rollback()
        raise


# ============================================================================
# Subscription
# ============================================================================

@settings_bp.route('/subscription', methods=['GET'])
@require_login
@require_tenant
def subscription():
    session = get_session()
    active = get_active_subscription(session, g.tenant_id)
    return jsonify({
        'active': active is not None,
        'subscription': active.to_dict() if active else None,
    })
