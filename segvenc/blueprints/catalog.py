"""Certification catalog and custom filters blueprint - Multi-Tenant (JSON API)."""
from flask import Blueprint, request, g, jsonify
from segvenc.database import get_session
from segvenc.exceptions import ValidationError
from segvenc.middleware import require_login, require_tenant
from segvenc.services.roster_service import (
    catalog_to_dict,
    custom_filter_to_dict,
    get_certification,
    get_custom_filter,
    list_custom_filters,
    save_certification,
    save_custom_filter,
)
from segvenc.services.record_service import load_catalog
import logging

logger = logging.getLogger(__name__)

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


def _payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Corpo JSON inválido')
    return data


# ============================================================================
# Certifications (exams and courses)
# ============================================================================

@catalog_bp.route('/certifications', methods=['GET'])
@require_login
@require_tenant
def list_certifications():
    session = get_session()
    items = load_catalog(session, g.tenant_id)
    return jsonify({'items': [catalog_to_dict(c) for c in items]})


@catalog_bp.route('/certifications', methods=['POST'])
@require_login
@require_tenant
def create_certification():
    session = get_session()
    try:
        certification = save_certification(session, g.tenant_id, _payload())
        session.commit()
        logger.info(f"Created certification {certification.id} for company {g.tenant_id}")
        return jsonify(catalog_to_dict(certification)), 201
    except Exception:
        session.rollback()
        raise


@catalog_bp.route('/certifications/<int:certification_id>', methods=['PATCH'])
@require_login
@require_tenant
def update_certification(certification_id: int):
    session = get_session()
    certification = get_certification(session, g.tenant_id, certification_id)
    try:
        save_certification(session, g.tenant_id, _payload(), certification=certification)
        session.commit()
        return jsonify(catalog_to_dict(certification))
    except Exception:
        session.rollback()
        raise


@catalog_bp.route('/certifications/<int:certification_id>', methods=['DELETE'])
@require_login
@require_tenant
def delete_certification(certification_id: int):
    session = get_session()
    certification = get_certification(session, g.tenant_id, certification_id)
    session.delete(certification)
    session.commit()
    return jsonify({'status': 'ok', 'id': certification_id})


# ============================================================================
# Custom filters
# ============================================================================

@catalog_bp.route('/custom-filters', methods=['GET'])
@require_login
@require_tenant
def list_filters():
    session = get_session()
    return jsonify({'items': [custom_filter_to_dict(f) for f in list_custom_filters(session, g.tenant_id)]})


@catalog_bp.route('/custom-filters', methods=['POST'])
@require_login
@require_tenant
def create_filter():
    session = get_session()
    try:
        custom_filter = save_custom_filter(session, g.tenant_id, _payload())
        session.commit()
        return jsonify(custom_filter_to_dict(custom_filter)), 201
    except Exception:
        session.rollback()
        raise


@catalog_bp.route('/custom-filters/<int:filter_id>', methods=['PATCH'])
@require_login
@require_tenant
def update_filter(filter_id: int):
    session = get_session()
    custom_filter = get_custom_filter(session, g.tenant_id, filter_id)
    try:
        save_custom_filter(session, g.tenant_id, _payload(), custom_filter=custom_filter)
        session.commit()
        return jsonify(custom_filter_to_dict(custom_filter))
    except Exception:
        session.rollback()
        raise


@catalog_bp.route('/custom-filters/<int:filter_id>', methods=['DELETE'])
@require_login
@require_tenant
def delete_filter(filter_id: int):
    session = get_session()
    custom_filter = get_custom_filter(session, g.tenant_id, filter_id)
    session.delete(custom_filter)
    session.commit()
    return jsonify({'status': 'ok', 'id': filter_id})
