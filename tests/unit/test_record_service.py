"""
Unit tests for record mapping, enrichment, due date recomputation and filters.
"""

import pytest
from datetime import date

from segvenc.exceptions import ValidationError
from segvenc.models import CertificationType, CustomFilter, Employee, ExpiryRecord
from segvenc.services.record_service import (
    RECORD_FIELD_MAP,
    apply_record_payload,
    dashboard_summary,
    enrich,
    filter_records,
    map_from_stored,
    map_to_stored,
    record_to_dict,
    recompute_due_date,
)
from segvenc.utils.dates import Tier

TODAY = date(2025, 1, 3)


def make_record(**kwargs):
    defaults = dict(
        id=1,
        company_id=1,
        registration_number='M-001',
        employee_name='Jane Doe',
        kind='Exame',
        certification_name='ASO Periódico',
        custom_fields={},
    )
    defaults.update(kwargs)
    return ExpiryRecord(**defaults)


def make_catalog():
    return [
        CertificationType(id=1, company_id=1, kind='Exame', name='ASO Periódico', validity_days=365),
        CertificationType(id=2, company_id=1, kind='Curso', name='NR-35', validity_days=730),
    ]


class TestRowMapping:
    """Stored identifiers <-> application identifiers."""

    def test_nulls_become_empty_strings(self):
        data = record_to_dict(make_record(job_role=None, due_date=None))
        assert data['jobRole'] == ''
        assert data['dueDate'] == ''
        assert data['employeeName'] == 'Jane Doe'

    def test_dates_are_iso_strings(self):
        data = record_to_dict(make_record(due_date=date(2025, 1, 10)))
        assert data['dueDate'] == '2025-01-10'

    def test_custom_fields_side_map(self):
        data = record_to_dict(make_record(custom_fields={'Turno': 'B'}))
        assert data['customFields'] == {'Turno': 'B'}
        assert 'Turno' not in data

    def test_round_trip_through_stored_columns(self):
        app_data = {
            'registrationNumber': 'M-9',
            'dueDate': '2025-03-01',
            'lastEventDate': '',
            'daysRemaining': '12',
        }
        stored = map_to_stored(app_data, RECORD_FIELD_MAP)
        assert stored['matricula'] == 'M-9'
        assert stored['vencimento'] == date(2025, 3, 1)
        assert stored['data_ultimo_evento'] is None
        assert stored['qtde_dias'] == 12

        back = map_from_stored(stored, RECORD_FIELD_MAP)
        assert back['registrationNumber'] == 'M-9'
        assert back['dueDate'] == '2025-03-01'
        assert back['lastEventDate'] == ''
        assert back['employeeName'] == ''

    def test_invalid_date_rejected(self):
        with pytest.raises(ValidationError):
            map_to_stored({'dueDate': '2025-13-45'}, RECORD_FIELD_MAP)


class TestEnrich:
    """Tests for enrich."""

    def test_adds_offset_and_tier(self):
        data = enrich(make_record(due_date=date(2025, 1, 10)), today=TODAY)
        assert data['offset'] == 7
        assert data['tier'] == Tier.HIGH_RISK.value
        assert data['tierLabel'] == Tier.HIGH_RISK.label
        assert data['legacyStatus'] == 'Vence em 30 dias'

    def test_does_not_touch_stored_record(self):
        record = make_record(due_date=date(2025, 1, 10), days_remaining=99, status='Ok')
        enrich(record, today=TODAY)
        assert record.days_remaining == 99
        assert record.status == 'Ok'

    def test_accepts_application_dict(self):
        data = enrich({'dueDate': '2024-12-29', 'employeeName': 'X'}, today=TODAY)
        assert data['offset'] == -5
        assert data['tier'] == Tier.OVERDUE.value


class TestRecomputeDueDate:
    """Tests for recompute_due_date."""

    def test_jane_doe_scenario(self):
        # 2024 has a leap day, so 365 days after 2024-01-10 is 2025-01-09
        record = make_record(last_event_date=date(2024, 1, 10))
        recompute_due_date(record, make_catalog(), today=TODAY)
        assert record.due_date == date(2025, 1, 9)
        assert enrich(record, today=TODAY)['tier'] == Tier.HIGH_RISK.value

    def test_due_in_seven_days_is_high_risk(self):
        record = make_record(last_event_date=date(2024, 1, 11))
        recompute_due_date(record, make_catalog(), today=TODAY)
        assert record.due_date == date(2025, 1, 10)
        data = enrich(record, today=TODAY)
        assert data['offset'] == 7
        assert data['tier'] == Tier.HIGH_RISK.value

    def test_refreshes_cached_status(self):
        record = make_record(last_event_date=date(2023, 1, 1))
        recompute_due_date(record, make_catalog(), today=TODAY)
        assert record.due_date == date(2024, 1, 1)
        assert record.days_remaining == -368
        assert record.status == 'Vencido'

    def test_no_catalog_match_leaves_due_date(self):
        record = make_record(certification_name='aso periodico', last_event_date=date(2024, 1, 10),
                             due_date=date(2030, 1, 1))
        recompute_due_date(record, make_catalog(), today=TODAY)
        assert record.due_date == date(2030, 1, 1)

    def test_missing_last_event_leaves_due_date(self):
        record = make_record(due_date=date(2030, 1, 1))
        recompute_due_date(record, make_catalog(), today=TODAY)
        assert record.due_date == date(2030, 1, 1)


class TestApplyRecordPayload:
    """Tests for apply_record_payload."""

    def test_changing_last_event_recomputes(self):
        record = make_record(last_event_date=date(2023, 6, 1), due_date=date(2024, 5, 31))
        apply_record_payload(record, {'lastEventDate': '2024-06-01'}, catalog=make_catalog(), today=TODAY)
        assert record.due_date == date(2025, 6, 1)
        assert record.status == 'Ok'

    def test_unrelated_change_keeps_due_date(self):
        record = make_record(last_event_date=date(2023, 6, 1), due_date=date(2030, 1, 1), days_remaining=1824)
        apply_record_payload(record, {'department': 'Manutenção'}, catalog=make_catalog(), today=TODAY)
        assert record.due_date == date(2030, 1, 1)
        assert record.department == 'Manutenção'

    def test_registration_number_autofills_employee(self):
        employee = Employee(id=7, company_id=1, registration_number='M-777', name='João Silva',
                            job_role='Soldador', department='Produção', operating_base='Base Sul')
        record = make_record(employee_name=None)
        apply_record_payload(record, {'registrationNumber': 'M-777'}, employees=[employee], today=TODAY)
        assert record.employee_id == 7
        assert record.employee_name == 'João Silva'
        assert record.job_role == 'Soldador'
        assert record.operating_base == 'Base Sul'

    def test_invalid_kind_rejected(self):
        with pytest.raises(ValidationError):
            apply_record_payload(make_record(), {'kind': 'Treinamento'})

    def test_custom_fields_replaced(self):
        record = make_record(custom_fields={'Turno': 'A'})
        apply_record_payload(record, {'customFields': {'Turno': 'B', 'Crachá': None}}, today=TODAY)
        assert record.custom_fields == {'Turno': 'B', 'Crachá': ''}


class TestFilters:
    """Tests for filter_records and dashboard_summary."""

    def _records(self):
        rows = [
            make_record(id=1, department='Produção', due_date=date(2024, 12, 29), custom_fields={'Turno': 'A'}),
            make_record(id=2, department='produção', due_date=date(2025, 1, 3), custom_fields={'Turno': 'B'}),
            make_record(id=3, department='Logística', due_date=date(2025, 1, 20), kind='Curso',
                        certification_name='NR-35', registration_number='M-002'),
            make_record(id=4, department='Logística', due_date=date(2025, 6, 1)),
        ]
        return [enrich(r, today=TODAY) for r in rows]

    def test_sorted_by_offset(self):
        result = filter_records(list(reversed(self._records())))
        assert [r['id'] for r in result] == [1, 2, 3, 4]

    def test_builtin_filters_are_case_insensitive(self):
        result = filter_records(self._records(), {'department': 'PRODUÇÃO'})
        assert [r['id'] for r in result] == [1, 2]

    def test_tier_and_legacy_status(self):
        assert [r['id'] for r in filter_records(self._records(), {'tier': 'low_risk'})] == [3]
        assert [r['id'] for r in filter_records(self._records(), {'status': 'Vence em 30 dias'})] == [2, 3]

    def test_custom_filter_only_in_enabled_view(self):
        turno = CustomFilter(id=5, company_id=1, field_name='Turno', origin='registros',
                             use_in_dashboard=True, use_in_records=False)
        criteria = {'custom': {'5': 'b'}}
        dashboard = filter_records(self._records(), criteria, custom_filters=[turno], view='dashboard')
        records = filter_records(self._records(), criteria, custom_filters=[turno], view='records')
        assert [r['id'] for r in dashboard] == [2]
        assert len(records) == 4

    def test_custom_filter_on_employee_field(self):
        base = CustomFilter(id=6, company_id=1, field_name='operatingBase', origin='colaboradores',
                            use_in_dashboard=True, use_in_records=True)
        employees = {'M-002': {'registrationNumber': 'M-002', 'operatingBase': 'Base Norte', 'customFields': {}}}
        result = filter_records(self._records(), {'custom': {'6': 'base norte'}}, custom_filters=[base],
                                employees_by_registration=employees)
        assert [r['id'] for r in result] == [3]

    def test_dashboard_summary(self):
        summary = dashboard_summary(self._records())
        assert summary['total'] == 4
        assert summary['overdue'] == 1
        assert summary['within30'] == 2
        assert summary['ok'] == 1
        assert summary['tiers']['due_today'] == 1
        assert summary['tiers']['low_risk'] == 1
