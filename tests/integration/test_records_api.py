"""
Integration tests for the records, dashboard, employees and catalog endpoints.
"""

import io
from datetime import date, timedelta

from segvenc.models import CertificationType, CustomFilter, Employee, ExpiryRecord


def _iso(offset):
    return (date.today() + timedelta(days=offset)).isoformat()


class TestRecordsApi:

    def test_create_derives_due_date_from_catalog(self, session, authenticated_client, company1):
        session.add(CertificationType(company_id=company1.id, kind='Curso', name='NR-35', validity_days=730))
        session.add(Employee(company_id=company1.id, registration_number='M-10', name='João Silva',
                             department='Manutenção', custom_fields={}))
        session.commit()

        last_event = date.today() - timedelta(days=725)
        response = authenticated_client.post('/api/records', json={
            'registrationNumber': 'M-10',
            'kind': 'Curso',
            'certificationName': 'NR-35',
            'lastEventDate': last_event.isoformat(),
        })
        assert response.status_code == 201
        data = response.get_json()
        assert data['employeeName'] == 'João Silva'
        assert data['department'] == 'Manutenção'
        assert data['dueDate'] == (last_event + timedelta(days=730)).isoformat()
        assert data['offset'] == 5
        assert data['tier'] == 'high_risk'

    def test_invalid_kind_is_400(self, authenticated_client):
        response = authenticated_client.post('/api/records', json={'kind': 'Treinamento'})
        assert response.status_code == 400
        assert response.get_json()['status'] == 'error'

    def test_update_and_delete(self, session, authenticated_client, company1):
        record = ExpiryRecord(company_id=company1.id, employee_name='Ana', kind='Exame',
                              certification_name='ASO', due_date=date.today(), custom_fields={})
        session.add(record)
        session.commit()
        record_id = record.id

        response = authenticated_client.patch(f'/api/records/{record_id}', json={'dueDate': _iso(-2)})
        assert response.status_code == 200
        assert response.get_json()['tier'] == 'overdue'
        assert response.get_json()['status'] == 'Vencido'

        assert authenticated_client.delete(f'/api/records/{record_id}').status_code == 200
        assert authenticated_client.get('/api/records').get_json()['count'] == 0

    def test_list_filters_and_dashboard(self, session, authenticated_client, company1):
        session.add_all([
            ExpiryRecord(company_id=company1.id, employee_name='A', department='Produção', kind='Exame',
                         certification_name='ASO', due_date=date.today() + timedelta(days=40),
                         custom_fields={'Turno': 'A'}),
            ExpiryRecord(company_id=company1.id, employee_name='B', department='Produção', kind='Exame',
                         certification_name='ASO', due_date=date.today() - timedelta(days=1),
                         custom_fields={'Turno': 'B'}),
            ExpiryRecord(company_id=company1.id, employee_name='C', department='Logística', kind='Curso',
                         certification_name='NR-10', due_date=date.today() + timedelta(days=10),
                         custom_fields={}),
        ])
        turno = CustomFilter(company_id=company1.id, field_name='Turno', origin='registros',
                             use_in_dashboard=True, use_in_records=True)
        session.add(turno)
        session.commit()
        turno_id = turno.id

        items = authenticated_client.get('/api/records').get_json()['items']
        assert [i['employeeName'] for i in items] == ['B', 'C', 'A']

        items = authenticated_client.get('/api/records', query_string={'department': 'produção'}).get_json()['items']
        assert [i['employeeName'] for i in items] == ['B', 'A']

        items = authenticated_client.get(f'/api/records?custom_{turno_id}=a').get_json()['items']
        assert [i['employeeName'] for i in items] == ['A']

        summary = authenticated_client.get('/api/dashboard').get_json()['summary']
        assert summary['total'] == 3
        assert summary['overdue'] == 1
        assert summary['within30'] == 1
        assert summary['ok'] == 1

    def test_export_csv(self, session, authenticated_client, company1):
        session.add(ExpiryRecord(company_id=company1.id, employee_name='Ana "Aninha"', kind='Exame',
                                 certification_name='ASO', due_date=date.today() + timedelta(days=3),
                                 custom_fields={'Turno': 'B'}))
        session.commit()

        response = authenticated_client.get('/api/records/export.csv')
        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        lines = response.get_data(as_text=True).split('\r\n')
        assert lines[0].startswith('"Matrícula";"Colaborador"')
        assert lines[0].endswith('"Status";"Turno"')
        assert '"Ana ""Aninha"""' in lines[1]
        assert lines[1].endswith('"3";"Vence em 30 dias";"B"')

        xls = authenticated_client.get('/api/records/export.csv?format=xls')
        assert xls.mimetype == 'application/vnd.ms-excel'

    def test_import_csv(self, authenticated_client):
        body = (
            'Matrícula;Colaborador;Tipo;Curso/Exame;Vencimento\r\n'
            f'M-1;Jane Doe;Exame;ASO;{_iso(7)}\r\n'
            '\r\n'
            f'M-2;João;Curso;NR-10;{(date.today() + timedelta(days=60)).strftime("%d/%m/%Y")}\r\n'
        )
        response = authenticated_client.post(
            '/api/records/import',
            data={'file': (io.BytesIO(body.encode('utf-8')), 'registros.csv')},
            content_type='multipart/form-data',
        )
        assert response.status_code == 201
        assert response.get_json()['imported'] == 2

        items = authenticated_client.get('/api/records').get_json()['items']
        assert [(i['employeeName'], i['offset']) for i in items] == [('Jane Doe', 7), ('João', 60)]

    def test_import_is_all_or_nothing(self, authenticated_client):
        body = 'Colaborador;Tipo\nAna;Exame\nBruno;Treinamento\n'
        response = authenticated_client.post('/api/records/import', data=body.encode('utf-8'),
                                             content_type='text/csv')
        assert response.status_code == 400
        assert response.get_json()['message'].startswith('Linha 3:')
        assert authenticated_client.get('/api/records').get_json()['count'] == 0


class TestEmployeesApi:

    def test_crud(self, authenticated_client):
        response = authenticated_client.post('/api/employees', json={'name': 'Ana', 'registrationNumber': '1'})
        assert response.status_code == 201
        employee_id = response.get_json()['id']

        response = authenticated_client.patch(f'/api/employees/{employee_id}', json={'department': 'SESMT'})
        assert response.get_json()['department'] == 'SESMT'

        assert authenticated_client.post('/api/employees', json={'name': ' '}).status_code == 400
        assert authenticated_client.delete(f'/api/employees/{employee_id}').status_code == 200

    def test_csv_round_trip(self, session, authenticated_client, company1):
        session.add(CustomFilter(company_id=company1.id, field_name='Turno', origin='colaboradores',
                                 use_in_dashboard=False, use_in_records=True))
        session.commit()

        body = 'Matrícula;Nome;Função;Data Admissão;Turno\r\n7;Ana;Técnica;05/03/2020;B\r\n'
        response = authenticated_client.post('/api/employees/import', data=body.encode('utf-8'),
                                             content_type='text/csv')
        assert response.status_code == 201

        exported = authenticated_client.get('/api/employees/export.csv').get_data(as_text=True)
        header, row = exported.split('\r\n')
        assert header.endswith('"Data Admissão";"Turno"')
        assert row == '"7";"Ana";"Técnica";"";"";"2020-03-05";"B"'

    def test_import_requires_name(self, authenticated_client):
        response = authenticated_client.post('/api/employees/import', data='Nome;Setor\nAna;RH\n;TI\n'.encode('utf-8'),
                                             content_type='text/csv')
        assert response.status_code == 400
        assert response.get_json()['message'].startswith('Linha 3:')
        assert authenticated_client.get('/api/employees').get_json()['count'] == 0


class TestCatalogApi:

    def test_duplicate_certification_conflict(self, authenticated_client):
        payload = {'kind': 'Exame', 'name': 'Audiometria', 'validityDays': 365}
        assert authenticated_client.post('/api/certifications', json=payload).status_code == 201
        assert authenticated_client.post('/api/certifications', json=payload).status_code == 409

    def test_negative_validity_rejected(self, authenticated_client):
        response = authenticated_client.post('/api/certifications',
                                             json={'kind': 'Curso', 'name': 'NR-20', 'validityDays': -1})
        assert response.status_code == 400

    def test_custom_filters(self, authenticated_client):
        response = authenticated_client.post('/api/custom-filters', json={
            'fieldName': 'Turno', 'origin': 'registros', 'useInDashboard': True,
        })
        assert response.status_code == 201
        filter_id = response.get_json()['id']

        response = authenticated_client.patch(f'/api/custom-filters/{filter_id}', json={'useInRecords': True})
        assert response.get_json()['useInRecords'] is True
        assert authenticated_client.post('/api/custom-filters', json={'fieldName': 'X', 'origin': 'outro'}).status_code == 400
