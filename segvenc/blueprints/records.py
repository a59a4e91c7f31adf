"""Expiry records and dashboard blueprint - Multi-Tenant (JSON API)."""
from flask import Blueprint, request, g, jsonify, Response
from segvenc.database import get_session
from segvenc.exceptions import ValidationError
from segvenc.middleware import require_login, require_tenant
from segvenc.models import ExpiryRecord
from segvenc.services import csv_service
from segvenc.services.record_service import (
    apply_record_payload,
    dashboard_summary,
    enrich,
    filter_records,
    get_record,
    list_records,
    load_catalog,
)
from segvenc.services.roster_service import (
    employees_by_registration,
    list_custom_filters,
    list_employees,
)
from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)

records_bp = Blueprint('records', __name__, url_prefix='/api')

CRITERIA_KEYS = ('department', 'jobRole', 'kind', 'certificationName', 'tier', 'status')


def criteria_from_args(args) -> Dict[str, Any]:
    """
    Build filter criteria from query parameters.

    Custom filters are passed as ``custom_<filter id>=<value>``.
    """
    criteria = {key: args.get(key, '').strip() for key in CRITERIA_KEYS if args.get(key, '').strip()}
    custom = {
        name[len('custom_'):]: value.strip()
        for name, value in args.items()
        if name.startswith('custom_') and value.strip()
    }
    if custom:
        criteria['custom'] = custom
    return criteria


def _filtered_records(session, view: str) -> List[Dict[str, Any]]:
    records = [enrich(r) for r in list_records(session, g.tenant_id)]
    employees = list_employees(session, g.tenant_id)
    return filter_records(
        records,
        criteria_from_args(request.args),
        custom_filters=list_custom_filters(session, g.tenant_id),
        view=view,
        employees_by_registration=employees_by_registration(employees),
    )


def _custom_columns(records: List[Dict[str, Any]]) -> List[str]:
    names = set()
    for record in records:
        names.update((record.get('customFields') or {}).keys())
    return sorted(names)


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Corpo JSON inválido')
    return data


@records_bp.route('/records', methods=['GET'])
@require_login
@require_tenant
def list_all():
    """List enriched records, filtered and sorted by urgency."""
    session = get_session()
    records = _filtered_records(session, view='records')
    return jsonify({'items': records, 'count': len(records)})


@records_bp.route('/dashboard', methods=['GET'])
@require_login
@require_tenant
def dashboard():
    """Dashboard cards plus the filtered record list."""
    session = get_session()
    records = _filtered_records(session, view='dashboard')
    return jsonify({'summary': dashboard_summary(records), 'items': records})


@records_bp.route('/records', methods=['POST'])
@require_login
@require_tenant
def create():
    session = get_session()
    data = _json_body()

    try:
        record = ExpiryRecord(company_id=g.tenant_id)
        apply_record_payload(
            record, data,
            catalog=load_catalog(session, g.tenant_id),
            employees=list_employees(session, g.tenant_id),
        )
        session.add(record)
        session.commit()
        logger.info(f"Created record {record.id} for company {g.tenant_id}")
        return jsonify(enrich(record)), 201
    except Exception:
        session.rollback()
        raise


@records_bp.route('/records/<int:record_id>', methods=['PATCH'])
@require_login
@require_tenant
def update(record_id: int):
    session = get_session()
    data = _json_body()
    record = get_record(session, g.tenant_id, record_id)

    try:
        apply_record_payload(
            record, data,
            catalog=load_catalog(session, g.tenant_id),
            employees=list_employees(session, g.tenant_id),
        )
        session.commit()
        return jsonify(enrich(record))
    except Exception:
        session.rollback()
        raise


@records_bp.route('/records/<int:record_id>', methods=['DELETE'])
@require_login
@require_tenant
def delete(record_id: int):
    session = get_session()
    record = get_record(session, g.tenant_id, record_id)
    session.delete(record)
    session.commit()
    logger.info(f"Deleted record {record_id} from company {g.tenant_id}")
    return jsonify({'status': 'ok', 'id': record_id})


@records_bp.route('/records/export.csv', methods=['GET'])
@require_login
@require_tenant
def export_csv():
    """
    Export the filtered records.

    ``?format=xls`` serves the same content with the Excel MIME type.
    """
    session = get_session()
    records = _filtered_records(session, view='records')
    content = csv_service.records_to_csv(records, extra_columns=_custom_columns(records))

    if request.args.get('format') == 'xls':
        mimetype, filename = csv_service.XLS_MIMETYPE, 'registros.xls'
    else:
        mimetype, filename = csv_service.CSV_MIMETYPE, 'registros.csv'

    return Response(
        content,
        mimetype=mimetype,
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


def read_uploaded_text() -> str:
    """CSV text from a multipart ``file`` field or the raw request body."""
    upload = request.files.get('file')
    raw = upload.read() if upload else request.get_data()
    if not raw:
        raise ValidationError('Arquivo CSV vazio')
    try:
        return raw.decode('utf-8-sig')
    except UnicodeDecodeError:
        return raw.decode('latin-1')


@records_bp.route('/records/import', methods=['POST'])
@require_login
@require_tenant
def import_csv():
    """Import records from CSV. All rows are applied or none."""
    session = get_session()
    text = read_uploaded_text()
    extra = [f.field_name for f in list_custom_filters(session, g.tenant_id) if f.origin == 'registros']
    rows = csv_service.csv_to_records(text, extra_columns=extra)

    catalog = load_catalog(session, g.tenant_id)
    employees = list_employees(session, g.tenant_id)
    try:
        for index, row in enumerate(rows, start=2):
            record = ExpiryRecord(company_id=g.tenant_id)
            try:
                apply_record_payload(record, row, catalog=catalog, employees=employees)
            except ValidationError as e:
                raise ValidationError(f"Linha {index}: {e.message}")
            session.add(record)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Imported {len(rows)} record(s) for company {g.tenant_id}")
    return jsonify({'status': 'ok', 'imported': len(rows)}), 201
