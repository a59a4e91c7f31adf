"""
Expiry record service: row mapping, enrichment, due date recomputation
and dashboard/records filtering.

Stored rows use the original store identifiers (``vencimento``,
``data_ultimo_evento``...); the application layer speaks camelCase
English keys (``dueDate``, ``lastEventDate``...). ``RECORD_FIELD_MAP`` is
the single source of truth for that translation.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from segvenc.exceptions import NotFoundError, ValidationError
from segvenc.models import CertificationKind, CertificationType, CustomFilter, ExpiryRecord
from segvenc.utils.dates import (
    Tier,
    add_days,
    day_offset,
    legacy_status_from_offset,
    parse_date,
    tier_from_offset,
    to_iso,
)

logger = logging.getLogger(__name__)

# application key -> (model attribute, stored column, value type)
RECORD_FIELD_MAP = {
    'registrationNumber': ('registration_number', 'matricula', 'str'),
    'employeeName': ('employee_name', 'colaborador_nome', 'str'),
    'jobRole': ('job_role', 'funcao', 'str'),
    'department': ('department', 'setor', 'str'),
    'operatingBase': ('operating_base', 'base_operacional', 'str'),
    'kind': ('kind', 'tipo', 'str'),
    'certificationName': ('certification_name', 'curso_exame', 'str'),
    'admissionDate': ('admission_date', 'data_admissao', 'date'),
    'lastEventDate': ('last_event_date', 'data_ultimo_evento', 'date'),
    'dueDate': ('due_date', 'vencimento', 'date'),
    'daysRemaining': ('days_remaining', 'qtde_dias', 'int'),
    'status': ('status', 'status', 'str'),
}

# Changing any of these re-derives the due date from the catalog
DUE_DATE_TRIGGERS = ('lastEventDate', 'kind', 'certificationName')

# Roster fields copied onto a record when its registration number matches
EMPLOYEE_AUTOFILL = {
    'employee_name': 'name',
    'job_role': 'job_role',
    'department': 'department',
    'operating_base': 'operating_base',
    'admission_date': 'admission_date',
}


def to_app_value(value, value_type: str):
    """Stored value -> application value (nulls become empty strings)."""
    if value is None:
        return ''
    if value_type == 'date':
        return to_iso(value)
    return value


def to_stored_value(value, value_type: str):
    """Application value -> stored value (empty strings become nulls)."""
    if value is None or (isinstance(value, str) and value.strip() == ''):
        return None
    if value_type == 'date':
        parsed = parse_date(value)
        if parsed is None:
            raise ValidationError(f"Data inválida: {value}")
        return parsed
    if value_type == 'int':
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Número inválido: {value}")
    return str(value).strip()


def map_to_app(instance, field_map: Dict[str, tuple]) -> Dict[str, Any]:
    """Translate a stored row into an application-level dict."""
    data = {'id': instance.id}
    for key, (attr, _column, value_type) in field_map.items():
        data[key] = to_app_value(getattr(instance, attr), value_type)
    data['customFields'] = dict(getattr(instance, 'custom_fields', None) or {})
    return data


def map_to_stored(data: Dict[str, Any], field_map: Dict[str, tuple]) -> Dict[str, Any]:
    """
    Translate application-level keys into stored column names.

    Only keys present in ``data`` are returned; unknown keys are ignored.
    """
    row = {}
    for key, (_attr, column, value_type) in field_map.items():
        if key in data:
            row[column] = to_stored_value(data[key], value_type)
    return row


def map_from_stored(row: Dict[str, Any], field_map: Dict[str, tuple]) -> Dict[str, Any]:
    """Translate a raw stored row (column names) into application keys."""
    data = {}
    for key, (_attr, column, value_type) in field_map.items():
        data[key] = to_app_value(row.get(column), value_type)
    return data


def record_to_dict(record: ExpiryRecord) -> Dict[str, Any]:
    """Application-level dict for a stored record (cached fields as stored)."""
    return map_to_app(record, RECORD_FIELD_MAP)


# ============================================================================
# Enrichment
# ============================================================================

def enrich(record, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Attach the computed day offset and risk tier to a record.

    Pure: the store is never touched. Accepts a stored ExpiryRecord or an
    application-level dict.

    Args:
        record: ExpiryRecord instance or dict with a ``dueDate`` key
        today: Date to use as reference (defaults to date.today())

    Returns:
        dict: the record's fields plus ``offset``, ``tier``, ``tierLabel``
        and ``legacyStatus``
    """
    data = record_to_dict(record) if isinstance(record, ExpiryRecord) else dict(record)
    offset = day_offset(data.get('dueDate'), today=today)
    tier = tier_from_offset(offset)
    data['offset'] = offset
    data['daysRemaining'] = offset
    data['tier'] = tier.value
    data['tierLabel'] = tier.label
    data['legacyStatus'] = legacy_status_from_offset(offset).value
    return data


def refresh_cached_status(record: ExpiryRecord, today: Optional[date] = None) -> ExpiryRecord:
    """Refresh the denormalized day count and status cache from the due date."""
    if record.due_date is None:
        record.days_remaining = None
        record.status = None
        return record
    offset = day_offset(record.due_date, today=today)
    record.days_remaining = offset
    record.status = legacy_status_from_offset(offset).value
    return record


def find_certification_type(catalog: Iterable[CertificationType], kind: str, name: str) -> Optional[CertificationType]:
    """Exact (kind, name) lookup; no fuzzy matching."""
    for certification in catalog:
        if certification.kind == kind and certification.name == name:
            return certification
    return None


def recompute_due_date(record: ExpiryRecord, catalog: Iterable[CertificationType],
                       today: Optional[date] = None) -> ExpiryRecord:
    """
    Derive the due date from the last event date and the catalog validity.

    When no catalog entry matches (kind, certification name), or the last
    event date is missing, the due date is left untouched.

    Returns:
        ExpiryRecord: the same record, possibly updated
    """
    certification = find_certification_type(catalog, record.kind, record.certification_name)
    if certification is None:
        logger.debug(
            f"No catalog entry for ({record.kind}, {record.certification_name}); due date kept"
        )
        return record
    if not record.last_event_date:
        return record

    record.due_date = parse_date(add_days(record.last_event_date, certification.validity_days))
    refresh_cached_status(record, today=today)
    return record


def apply_record_payload(record: ExpiryRecord, data: Dict[str, Any],
                         catalog: Iterable[CertificationType] = (),
                         employees: Iterable = (),
                         today: Optional[date] = None) -> ExpiryRecord:
    """
    Apply an application-level dict to a stored record.

    - Matching ``registrationNumber`` against the roster fills the
      denormalized employee fields.
    - Changing the last event date, kind or certification name re-derives
      the due date from the catalog.
    - An explicit ``dueDate`` without a recompute refreshes the cache.
    """
    if 'kind' in data and data['kind'] not in {k.value for k in CertificationKind}:
        raise ValidationError(f"Tipo inválido: {data['kind']}. Use 'Exame' ou 'Curso'.")

    before = {key: getattr(record, RECORD_FIELD_MAP[key][0]) for key in DUE_DATE_TRIGGERS}

    for key, (attr, _column, value_type) in RECORD_FIELD_MAP.items():
        if key in ('daysRemaining', 'status'):
            continue  # cache, derived below
        if key in data:
            setattr(record, attr, to_stored_value(data[key], value_type))

    if record.kind is None:
        record.kind = CertificationKind.EXAM.value
    if record.certification_name is None:
        record.certification_name = ''

    if 'customFields' in data:
        record.custom_fields = {
            str(k): ('' if v is None else v) for k, v in (data['customFields'] or {}).items()
        }

    if 'registrationNumber' in data and record.registration_number:
        employee = next(
            (e for e in employees if e.registration_number == record.registration_number), None
        )
        if employee is not None:
            record.employee_id = employee.id
            for record_attr, employee_attr in EMPLOYEE_AUTOFILL.items():
                setattr(record, record_attr, getattr(employee, employee_attr))

    triggered = any(
        key in data and getattr(record, RECORD_FIELD_MAP[key][0]) != before[key]
        for key in DUE_DATE_TRIGGERS
    )
    if triggered:
        recompute_due_date(record, catalog, today=today)
    if 'dueDate' in data or triggered or record.days_remaining is None:
        refresh_cached_status(record, today=today)
    return record


# ============================================================================
# Queries
# ============================================================================

def get_record(session, company_id: int, record_id: int) -> ExpiryRecord:
    """Fetch a record scoped to its company or raise NotFoundError."""
    record = session.query(ExpiryRecord).filter(
        ExpiryRecord.company_id == company_id,
        ExpiryRecord.id == record_id,
    ).first()
    if not record:
        raise NotFoundError(f"Registro {record_id} não encontrado")
    return record


def list_records(session, company_id: int) -> List[ExpiryRecord]:
    return session.query(ExpiryRecord).filter(
        ExpiryRecord.company_id == company_id
    ).order_by(ExpiryRecord.due_date.asc(), ExpiryRecord.id.asc()).all()


def load_catalog(session, company_id: int) -> List[CertificationType]:
    return session.query(CertificationType).filter(
        CertificationType.company_id == company_id
    ).all()


# ============================================================================
# Filtering
# ============================================================================

def _field_value(data: Dict[str, Any], field_name: str):
    """Look a field up by application key, stored column or custom attribute."""
    if field_name in data:
        return data[field_name]
    for key, (_attr, column, _type) in RECORD_FIELD_MAP.items():
        if column == field_name:
            return data.get(key)
    return (data.get('customFields') or {}).get(field_name)


def _matches(value, expected) -> bool:
    return str(value if value is not None else '').strip().lower() == str(expected).strip().lower()


def filter_records(records: List[Dict[str, Any]], criteria: Optional[Dict[str, Any]] = None,
                   custom_filters: Iterable[CustomFilter] = (),
                   view: str = 'records',
                   employees_by_registration: Optional[Dict[str, Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    """
    Filter enriched records the way the dashboard and records views do.

    Args:
        records: Enriched record dicts (see ``enrich``)
        criteria: Built-in filters (``department``, ``jobRole``, ``kind``,
            ``certificationName``, ``tier``, ``status``) plus ``custom``,
            a mapping of custom filter id -> expected value
        custom_filters: The company's CustomFilter rows
        view: ``dashboard`` or ``records``; only custom filters enabled
            for that view are applied
        employees_by_registration: Employee dicts keyed by registration
            number, for custom filters whose origin is the roster

    Returns:
        list: matching records sorted by offset (most urgent first)
    """
    criteria = criteria or {}
    employees_by_registration = employees_by_registration or {}

    active_custom = []
    custom_values = criteria.get('custom') or {}
    for custom_filter in custom_filters:
        enabled = custom_filter.use_in_dashboard if view == 'dashboard' else custom_filter.use_in_records
        expected = custom_values.get(str(custom_filter.id))
        if enabled and expected not in (None, ''):
            active_custom.append((custom_filter, expected))

    result = []
    for data in records:
        if any(
            criteria.get(key) and not _matches(data.get(key), criteria[key])
            for key in ('department', 'jobRole', 'kind', 'certificationName')
        ):
            continue
        if criteria.get('tier') and data.get('tier') != criteria['tier']:
            continue
        if criteria.get('status') and data.get('legacyStatus') != criteria['status']:
            continue

        keep = True
        for custom_filter, expected in active_custom:
            if custom_filter.origin == 'colaboradores':
                source = employees_by_registration.get(data.get('registrationNumber'), {})
            else:
                source = data
            if not _matches(_field_value(source, custom_filter.field_name), expected):
                keep = False
                break
        if keep:
            result.append(data)

    return sorted(result, key=lambda r: r.get('offset', 0))


def dashboard_summary(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Card counters for the dashboard.

    Args:
        records: Enriched record dicts

    Returns:
        dict with ``total``, per-tier counts under ``tiers`` and legacy
        counts (``overdue``, ``within30``, ``ok``)
    """
    tiers = {tier.value: 0 for tier in Tier}
    for data in records:
        tiers[data['tier']] += 1
    overdue = tiers[Tier.OVERDUE.value]
    ok = tiers[Tier.OK.value]
    return {
        'total': len(records),
        'tiers': tiers,
        'overdue': overdue,
        'within30': len(records) - overdue - ok,
        'ok': ok,
    }
