"""
Roster, certification catalog and custom filter management (tenant-scoped).
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from segvenc.exceptions import BusinessLogicError, NotFoundError, ValidationError
from segvenc.models import (
    CertificationKind,
    CertificationType,
    CustomFilter,
    Employee,
    FilterOrigin,
)
from segvenc.services.record_service import to_stored_value, map_to_app

logger = logging.getLogger(__name__)

EMPLOYEE_FIELD_MAP = {
    'registrationNumber': ('registration_number', 'matricula', 'str'),
    'name': ('name', 'nome', 'str'),
    'jobRole': ('job_role', 'funcao', 'str'),
    'department': ('department', 'setor', 'str'),
    'operatingBase': ('operating_base', 'base_operacional', 'str'),
    'admissionDate': ('admission_date', 'data_admissao', 'date'),
}


# ============================================================================
# Employees
# ============================================================================

def employee_to_dict(employee: Employee) -> Dict[str, Any]:
    return map_to_app(employee, EMPLOYEE_FIELD_MAP)


def apply_employee_payload(employee: Employee, data: Dict[str, Any]) -> Employee:
    """Apply an application-level dict to a stored employee."""
    for key, (attr, _column, value_type) in EMPLOYEE_FIELD_MAP.items():
        if key in data:
            setattr(employee, attr, to_stored_value(data[key], value_type))
    if 'customFields' in data:
        employee.custom_fields = {
            str(k): ('' if v is None else v) for k, v in (data['customFields'] or {}).items()
        }
    return employee


def list_employees(session, company_id: int) -> List[Employee]:
    return session.query(Employee).filter(
        Employee.company_id == company_id
    ).order_by(Employee.name.asc(), Employee.id.asc()).all()


def get_employee(session, company_id: int, employee_id: int) -> Employee:
    employee = session.query(Employee).filter(
        Employee.company_id == company_id,
        Employee.id == employee_id,
    ).first()
    if not employee:
        raise NotFoundError(f"Colaborador {employee_id} não encontrado")
    return employee


def employees_by_registration(employees: List[Employee]) -> Dict[str, Dict[str, Any]]:
    """Employee dicts keyed by registration number (custom filters by roster field)."""
    return {
        e.registration_number: employee_to_dict(e)
        for e in employees
        if e.registration_number
    }


# ============================================================================
# Certification catalog
# ============================================================================

def catalog_to_dict(certification: CertificationType) -> Dict[str, Any]:
    return {
        'id': certification.id,
        'kind': certification.kind,
        'name': certification.name or '',
        'validityDays': certification.validity_days,
    }


def _validate_certification(session, company_id: int, kind: str, name: str, validity_days,
                            exclude_id: Optional[int] = None) -> int:
    """Centralized catalog validation. Returns the parsed validity in days."""
    if kind not in {k.value for k in CertificationKind}:
        raise ValidationError(f"Tipo inválido: {kind}. Use 'Exame' ou 'Curso'.")
    if not name:
        raise ValidationError("O nome do exame/curso é obrigatório.")
    try:
        days = int(validity_days)
    except (TypeError, ValueError):
        raise ValidationError("A validade deve ser um número inteiro de dias.")
    if days < 0:
        raise ValidationError("A validade não pode ser negativa.")

    query = session.query(CertificationType).filter(
        CertificationType.company_id == company_id,
        CertificationType.kind == kind,
        CertificationType.name == name,
    )
    if exclude_id:
        query = query.filter(CertificationType.id != exclude_id)
    if query.first():
        raise BusinessLogicError(f"Já existe um {kind.lower()} chamado '{name}'.", status_code=409)
    return days


def save_certification(session, company_id: int, data: Dict[str, Any],
                       certification: Optional[CertificationType] = None) -> CertificationType:
    """Create or update a catalog entry."""
    kind = data.get('kind', certification.kind if certification else CertificationKind.EXAM.value)
    name = (data.get('name', certification.name if certification else '') or '').strip()
    validity = data.get('validityDays', certification.validity_days if certification else 365)

    days = _validate_certification(
        session, company_id, kind, name, validity,
        exclude_id=certification.id if certification else None,
    )

    if certification is None:
        certification = CertificationType(company_id=company_id)
        session.add(certification)
    certification.kind = kind
    certification.name = name
    certification.validity_days = days
    session.flush()
    return certification


def get_certification(session, company_id: int, certification_id: int) -> CertificationType:
    certification = session.query(CertificationType).filter(
        CertificationType.company_id == company_id,
        CertificationType.id == certification_id,
    ).first()
    if not certification:
        raise NotFoundError(f"Exame/curso {certification_id} não encontrado")
    return certification


# ============================================================================
# Custom filters
# ============================================================================

def custom_filter_to_dict(custom_filter: CustomFilter) -> Dict[str, Any]:
    return {
        'id': str(custom_filter.id),
        'fieldName': custom_filter.field_name,
        'origin': custom_filter.origin,
        'useInDashboard': bool(custom_filter.use_in_dashboard),
        'useInRecords': bool(custom_filter.use_in_records),
    }


def save_custom_filter(session, company_id: int, data: Dict[str, Any],
                       custom_filter: Optional[CustomFilter] = None) -> CustomFilter:
    """Create or update a custom filter definition."""
    if custom_filter is None:
        custom_filter = CustomFilter(company_id=company_id, use_in_dashboard=False, use_in_records=False)
        session.add(custom_filter)

    if 'fieldName' in data:
        custom_filter.field_name = (data['fieldName'] or '').strip()
    if not custom_filter.field_name:
        raise ValidationError("O nome do campo é obrigatório.")

    origin = data.get('origin', custom_filter.origin or FilterOrigin.RECORDS.value)
    if origin not in {o.value for o in FilterOrigin}:
        raise ValidationError(f"Origem inválida: {origin}")
    custom_filter.origin = origin

    if 'useInDashboard' in data:
        custom_filter.use_in_dashboard = bool(data['useInDashboard'])
    if 'useInRecords' in data:
        custom_filter.use_in_records = bool(data['useInRecords'])

    session.flush()
    return custom_filter


def list_custom_filters(session, company_id: int) -> List[CustomFilter]:
    return session.query(CustomFilter).filter(
        CustomFilter.company_id == company_id
    ).order_by(func.lower(CustomFilter.field_name)).all()


def get_custom_filter(session, company_id: int, filter_id: int) -> CustomFilter:
    custom_filter = session.query(CustomFilter).filter(
        CustomFilter.company_id == company_id,
        CustomFilter.id == filter_id,
    ).first()
    if not custom_filter:
        raise NotFoundError(f"Filtro {filter_id} não encontrado")
    return custom_filter
