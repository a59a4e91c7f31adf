"""Employee roster blueprint - Multi-Tenant (JSON API)."""
from flask import Blueprint, request, g, jsonify, Response
from segvenc.database import get_session
from segvenc.exceptions import ValidationError
from segvenc.middleware import require_login, require_tenant
from segvenc.models import Employee
from segvenc.services import csv_service
from segvenc.services.roster_service import (
    apply_employee_payload,
    employee_to_dict,
    get_employee,
    list_custom_filters,
    list_employees,
)
from segvenc.blueprints.records import read_uploaded_text
import logging

logger = logging.getLogger(__name__)

employees_bp = Blueprint('employees', __name__, url_prefix='/api/employees')


def _custom_columns(session):
    return [f.field_name for f in list_custom_filters(session, g.tenant_id) if f.origin == 'colaboradores']


def _payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Corpo JSON inválido')
    return data


@employees_bp.route('', methods=['GET'])
@require_login
@require_tenant
def list_all():
    session = get_session()
    items = [employee_to_dict(e) for e in list_employees(session, g.tenant_id)]
    return jsonify({'items': items, 'count': len(items)})


@employees_bp.route('', methods=['POST'])
@require_login
@require_tenant
def create():
    session = get_session()
    data = _payload()
    if not (data.get('name') or '').strip():
        raise ValidationError('O nome do colaborador é obrigatório.')

    try:
        employee = apply_employee_payload(Employee(company_id=g.tenant_id), data)
        session.add(employee)
        session.commit()
        logger.info(f"Created employee {employee.id} for company {g.tenant_id}")
        return jsonify(employee_to_dict(employee)), 201
    except Exception:
        session.rollback()
        raise


@employees_bp.route('/<int:employee_id>', methods=['PATCH'])
@require_login
@require_tenant
def update(employee_id: int):
    session = get_session()
    data = _payload()
    employee = get_employee(session, g.tenant_id, employee_id)
    if 'name' in data and not (data.get('name') or '').strip():
        raise ValidationError('O nome do colaborador é obrigatório.')

    try:
        apply_employee_payload(employee, data)
        session.commit()
        return jsonify(employee_to_dict(employee))
    except Exception:
        session.rollback()
        raise


@employees_bp.route('/<int:employee_id>', methods=['DELETE'])
@require_login
@require_tenant
def delete(employee_id: int):
    session = get_session()
    employee = get_employee(session, g.tenant_id, employee_id)
    session.delete(employee)
    session.commit()
    logger.info(f"Deleted employee {employee_id} from company {g.tenant_id}")
    return jsonify({'status': 'ok', 'id': employee_id})


@employees_bp.route('/export.csv', methods=['GET'])
@require_login
@require_tenant
def export_csv():
    session = get_session()
    items = [employee_to_dict(e) for e in list_employees(session, g.tenant_id)]
    content = csv_service.employees_to_csv(items, extra_columns=_custom_columns(session))
    return Response(
        content,
        mimetype=csv_service.CSV_MIMETYPE,
        headers={'Content-Disposition': 'attachment; filename=colaboradores.csv'},
    )


@employees_bp.route('/import', methods=['POST'])
@require_login
@require_tenant
def import_csv():
    """Import employees from CSV. Rows without a name are rejected."""
    session = get_session()
    rows = csv_service.csv_to_employees(read_uploaded_text(), extra_columns=_custom_columns(session))

    try:
        for index, row in enumerate(rows, start=2):
            if not (row.get('name') or '').strip():
                raise ValidationError(f"Linha {index}: o nome do colaborador é obrigatório.")
            try:
                employee = apply_employee_payload(Employee(company_id=g.tenant_id), row)
            except ValidationError as e:
                raise ValidationError(f"Linha {index}: {e.message}")
            session.add(employee)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Imported {len(rows)} employee(s) for company {g.tenant_id}")
    return jsonify({'status': 'ok', 'imported': len(rows)}), 201
