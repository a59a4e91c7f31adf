"""
Tests for the daily expiry digest.
"""

from datetime import date, timedelta

from segvenc.models import ExpiryRecord, NotificationEmail
from segvenc.services import digest_service
from segvenc.services.digest_service import (
    DEFAULT_SUBJECT,
    DigestComposer,
    DigestItem,
    TenantDigest,
    build_digest_html,
    group_by_tenant,
    run_daily_digest,
)

TODAY = date(2025, 1, 3)


def record(company_id, name, offset, **kwargs):
    due = TODAY + timedelta(days=offset) if offset is not None else None
    return ExpiryRecord(company_id=company_id, employee_name=name, kind=kwargs.pop('kind', 'Exame'),
                        certification_name=kwargs.pop('certification_name', 'ASO'),
                        due_date=due, custom_fields={}, **kwargs)


class FakeSender:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def __call__(self, recipients, subject, html):
        if set(recipients) & self.fail_for:
            raise RuntimeError('smtp down')
        self.sent.append((recipients, subject, html))
        return 'sent'


class TestGrouping:

    def test_offsets_partition(self):
        records = [
            record(1, 'A', -5, certification_name='ASO'),
            record(1, 'A', -5, certification_name='NR-10'),
            record(1, 'B', 0),
            record(1, 'C', 3),
            record(1, 'D', 40),
        ]
        grouped = group_by_tenant(records, today=TODAY)
        digest = TenantDigest(company_id=1, company_name='Alfa', items=grouped[1])

        assert digest.overdue.employee_count == 1
        assert digest.overdue.item_count == 2
        assert digest.due_today.employee_count == 1
        assert digest.due_today.item_count == 1
        assert digest.due_soon.employee_count == 1
        assert digest.due_soon.item_count == 1
        assert digest.total.item_count == 4
        assert digest.total.employee_count == 3
        assert 'D' not in {i.employee_name for i in digest.items}

    def test_threshold_is_inclusive(self):
        grouped = group_by_tenant([record(1, 'A', 30), record(1, 'B', 31)], today=TODAY)
        assert [i.employee_name for i in grouped[1]] == ['A']

    def test_offset_ignores_cached_days(self):
        stale = record(1, 'A', 2, days_remaining=200, status='Ok')
        grouped = group_by_tenant([stale], today=TODAY)
        assert grouped[1][0].offset == 2

    def test_records_without_due_date_skipped(self):
        assert group_by_tenant([record(1, 'A', None)], today=TODAY) == {}

    def test_items_sorted_by_urgency(self):
        grouped = group_by_tenant([record(1, 'Z', 5), record(1, 'B', -1), record(1, 'A', -1)], today=TODAY)
        assert [(i.offset, i.employee_name) for i in grouped[1]] == [(-1, 'A'), (-1, 'B'), (5, 'Z')]

    def test_grouped_per_company(self):
        grouped = group_by_tenant([record(1, 'A', 1), record(2, 'B', 1), record(3, 'C', 90)], today=TODAY)
        assert sorted(grouped) == [1, 2]


class TestHtml:

    def _digest(self, **kwargs):
        items = [DigestItem(employee_name=kwargs.get('name', 'Jane Doe'), kind='Exame',
                            certification_name='ASO', due_date=date(2025, 1, 10), offset=7, status='')]
        return TenantDigest(company_id=1, company_name=kwargs.get('company', 'Alfa'), items=items)

    def test_contains_summary_and_rows(self):
        html = build_digest_html(self._digest(), 'https://app.segvenc.com.br')
        assert 'Vencidos:' in html
        assert 'Vencem HOJE:' in html
        assert 'Vencem em até 30 dias:' in html
        assert 'Total geral:' in html
        assert '10/01/2025' in html
        assert 'Vence em 7 dia(s)' in html
        assert 'href="https://app.segvenc.com.br"' in html

    def test_values_are_escaped(self):
        html = build_digest_html(self._digest(name='<script>x</script>', company='A & B'), 'https://x')
        assert '<script>' not in html
        assert '&lt;script&gt;' in html
        assert 'A &amp; B' in html


class TestComposer:

    def _seed(self, session, company1, company2):
        session.add_all([
            record(company1.id, 'Jane Doe', -5),
            record(company1.id, 'Jane Doe', -5, certification_name='NR-35', kind='Curso'),
            record(company1.id, 'João', 0),
            record(company1.id, 'Maria', 3),
            record(company1.id, 'Pedro', 40),
            record(company2.id, 'Carlos', 1),
        ])
        session.add(NotificationEmail(company_id=company1.id, email='sesmt@alfa.com.br', active=True))
        session.add(NotificationEmail(company_id=company1.id, email='antigo@alfa.com.br', active=False))
        session.commit()

    def test_one_email_per_company_with_recipients(self, session, company1, company2):
        self._seed(session, company1, company2)
        sender = FakeSender()
        result = DigestComposer(session, sender, 'https://app').run(today=TODAY)

        assert result.total_items == 5
        assert result.tenants_with_items == 2
        assert result.emails_sent == 1
        assert result.tenants_without_email == [company2.id]
        assert result.tenants_failed == []

        recipients, subject, html = sender.sent[0]
        assert recipients == ['sesmt@alfa.com.br']
        assert subject == DEFAULT_SUBJECT
        assert 'Pedro' not in html
        assert 'Carlos' not in html

    def test_notification_email_on_company_is_not_a_recipient(self, session, company1):
        session.add(record(company1.id, 'Jane Doe', 1))
        session.commit()
        sender = FakeSender()
        result = DigestComposer(session, sender, 'https://app').run(today=TODAY)
        assert sender.sent == []
        assert result.tenants_without_email == [company1.id]

    def test_failure_does_not_stop_other_companies(self, session, company1, company2):
        self._seed(session, company1, company2)
        session.add(NotificationEmail(company_id=company2.id, email='rh@beta.com.br', active=True))
        session.commit()

        sender = FakeSender(fail_for=['sesmt@alfa.com.br'])
        result = DigestComposer(session, sender, 'https://app').run(today=TODAY)

        assert result.tenants_failed == [company1.id]
        assert result.emails_sent == 1
        assert sender.sent[0][0] == ['rh@beta.com.br']

    def test_nothing_to_send(self, session, company1, recipients1):
        session.add(record(company1.id, 'Jane Doe', 90))
        session.commit()
        sender = FakeSender()
        result = DigestComposer(session, sender, 'https://app').run(today=TODAY)
        assert result.to_dict() == {
            'totalItems': 0,
            'tenantsWithItems': 0,
            'emailsSent': 0,
            'tenantsWithoutEmail': [],
            'tenantsFailed': [],
            'tenantsSkipped': [],
        }
        assert sender.sent == []

    def test_run_daily_digest_reads_config(self, session, company1, recipients1):
        session.add(record(company1.id, 'Jane Doe', 20))
        session.commit()
        sender = FakeSender()
        config = {'APP_URL': 'https://painel', 'DIGEST_SUBJECT': 'Alertas', 'DIGEST_DAYS_THRESHOLD': '15'}
        result = run_daily_digest(session, config, sender=sender, today=TODAY)
        assert result.total_items == 0

        config['DIGEST_DAYS_THRESHOLD'] = 30
        result = run_daily_digest(session, config, sender=sender, today=TODAY)
        assert result.emails_sent == 1
        assert sender.sent[0][1] == 'Alertas'
        assert 'https://painel' in sender.sent[0][2]

    def test_lookup_error_does_not_stop_other_companies(self, session, company1, company2, monkeypatch):
        self._seed(session, company1, company2)
        session.add(NotificationEmail(company_id=company2.id, email='rh@beta.com.br', active=True))
        session.commit()
        company1_id = company1.id
        real_active_recipients = digest_service.active_recipients

        def flaky_recipients(session, company):
            if company.id == company1_id:
                raise RuntimeError('db hiccup')
            return real_active_recipients(session, company)

        monkeypatch.setattr(digest_service, 'active_recipients', flaky_recipients)
        sender = FakeSender()
        result = DigestComposer(session, sender, 'https://app').run(today=TODAY)

        assert result.tenants_failed == [company1_id]
        assert result.emails_sent == 1
        assert sender.sent[0][0] == ['rh@beta.com.br']

    def test_disabled_delivery_is_not_counted_as_sent(self, session, company1, recipients1):
        session.add(record(company1.id, 'Jane Doe', 0))
        session.commit()
        company1_id = company1.id

        result = DigestComposer(session, lambda recipients, subject, html: 'skipped', 'https://app').run(today=TODAY)

        assert result.emails_sent == 0
        assert result.tenants_skipped == [company1_id]
        assert result.tenants_failed == []

    def test_mail_suppressed_config_sends_nothing(self, app, session, company1, recipients1):
        session.add(record(company1.id, 'Jane Doe', 0))
        session.commit()
        company1_id = company1.id

        assert app.config['MAIL_SUPPRESS_SEND'] is True
        with app.app_context():
            result = run_daily_digest(session, app.config, today=TODAY)

        assert result.total_items == 1
        assert result.emails_sent == 0
        assert result.tenants_skipped == [company1_id]
