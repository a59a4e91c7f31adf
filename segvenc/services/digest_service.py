"""
Daily expiry digest.

Collects every record that is overdue or due within the threshold, groups
them by company and emails one HTML summary per company to its active
notification addresses.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional

from markupsafe import escape
from sqlalchemy.orm import Session

from segvenc.models import Company, ExpiryRecord, NotificationEmail
from segvenc.utils.dates import day_offset
from segvenc.utils.formatters import date_br, situation_br

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Resumo diário de vencimentos"

# (recipients, subject, html) -> "sent" or another outcome such as "skipped"; raises on failure
Sender = Callable[[List[str], str, str], str]

SENT = "sent"


@dataclass
class DigestItem:
    """One qualifying record with its offset computed at run time."""
    employee_name: str
    kind: str
    certification_name: str
    due_date: Optional[date]
    offset: int
    status: str = ''


@dataclass
class Partition:
    items: List[DigestItem] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def employee_count(self) -> int:
        return len({item.employee_name for item in self.items})


@dataclass
class TenantDigest:
    """Grouped digest content for one company."""
    company_id: int
    company_name: str
    items: List[DigestItem]

    @property
    def overdue(self) -> Partition:
        return Partition([i for i in self.items if i.offset < 0])

    @property
    def due_today(self) -> Partition:
        return Partition([i for i in self.items if i.offset == 0])

    @property
    def due_soon(self) -> Partition:
        return Partition([i for i in self.items if i.offset > 0])

    @property
    def total(self) -> Partition:
        return Partition(list(self.items))


@dataclass
class DigestResult:
    total_items: int = 0
    tenants_with_items: int = 0
    emails_sent: int = 0
    tenants_without_email: List[int] = field(default_factory=list)
    tenants_failed: List[int] = field(default_factory=list)
    tenants_skipped: List[int] = field(default_factory=list)

    def to_dict(self):
        return {
            'totalItems': self.total_items,
            'tenantsWithItems': self.tenants_with_items,
            'emailsSent': self.emails_sent,
            'tenantsWithoutEmail': self.tenants_without_email,
            'tenantsFailed': self.tenants_failed,
            'tenantsSkipped': self.tenants_skipped,
        }


def group_by_tenant(records: Iterable[ExpiryRecord], today: Optional[date] = None,
                    threshold: int = 30) -> Dict[int, List[DigestItem]]:
    """
    Qualifying records (offset <= threshold) grouped by company, most urgent first.

    Offsets are computed from the due date, never from the cached
    ``qtde_dias`` column. Records without a due date are left out.
    """
    grouped: Dict[int, List[DigestItem]] = {}
    for record in records:
        if not record.due_date:
            continue
        offset = day_offset(record.due_date, today=today)
        if offset > threshold:
            continue
        grouped.setdefault(record.company_id, []).append(DigestItem(
            employee_name=record.employee_name or '',
            kind=record.kind or '',
            certification_name=record.certification_name or '',
            due_date=record.due_date,
            offset=offset,
            status=record.status or '',
        ))
    for items in grouped.values():
        items.sort(key=lambda i: (i.offset, i.employee_name))
    return grouped


def build_digest_html(digest: TenantDigest, app_url: str) -> str:
    """Render the HTML body for one company. Every interpolated value is escaped."""
    overdue, today, soon, total = digest.overdue, digest.due_today, digest.due_soon, digest.total
    cell = 'style="padding:4px 8px;border:1px solid #ddd;"'
    head = 'style="padding:6px 8px;border:1px solid #ddd;"'
    url = escape(app_url)

    rows = "".join(
        f"""
        <tr>
            <td {cell}>{escape(item.employee_name)}</td>
            <td {cell}>{escape(item.kind)}</td>
            <td {cell}>{escape(item.certification_name)}</td>
            <td {cell}>{escape(date_br(item.due_date))}</td>
            <td {cell}>{escape(situation_br(item.offset))}</td>
            <td {cell}>{escape(item.status)}</td>
        </tr>
        """
        for item in digest.items
    )

    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="UTF-8"></head>
    <body style="font-family: Arial, sans-serif; color: #333;">
        <p>Bom dia!</p>
        <p>Segue o resumo diário de exames e cursos vencidos ou que vencem em até 30 dias
        para <strong>{escape(digest.company_name)}</strong>.</p>

        <p><strong>Resumo por situação (colaboradores afetados):</strong></p>
        <ul>
            <li><strong>Vencidos:</strong> {overdue.employee_count} colaborador(es) ({overdue.item_count} item(ns))</li>
            <li><strong>Vencem HOJE:</strong> {today.employee_count} colaborador(es) ({today.item_count} item(ns))</li>
            <li><strong>Vencem em até 30 dias:</strong> {soon.employee_count} colaborador(es) ({soon.item_count} item(ns))</li>
        </ul>

        <p><strong>Total geral:</strong> {total.employee_count} colaborador(es), {total.item_count} item(ns)</p>

        <table style="border-collapse:collapse;font-family:Arial, sans-serif;font-size:13px;">
            <thead>
                <tr style="background:#f2f2f2;">
                    <th {head}>Colaborador</th>
                    <th {head}>Tipo</th>
                    <th {head}>Exame/Curso</th>
                    <th {head}>Data de vencimento</th>
                    <th {head}>Situação</th>
                    <th {head}>Status</th>
                </tr>
            </thead>
            <tbody>
                {rows}
            </tbody>
        </table>

        <p style="margin-top:16px;">
            Para ver os detalhes completos, acesse o painel:<br />
            <a href="{url}">{url}</a>
        </p>
    </body>
    </html>
    """


def active_recipients(session: Session, company: Company) -> List[str]:
    """Active notification addresses of a company."""
    return [
        n.email for n in session.query(NotificationEmail).filter(
            NotificationEmail.company_id == company.id,
            NotificationEmail.active.is_(True),
        ).order_by(NotificationEmail.id.asc()).all()
        if n.email
    ]


class DigestComposer:
    """
    Build and deliver the daily digest for every company.

    Args:
        session: Database session
        sender: Callable ``(recipients, subject, html)``; raises on failure
        app_url: Panel link rendered in every email
        subject: Email subject
        threshold: Maximum day offset included in the digest
    """

    def __init__(self, session: Session, sender: Sender, app_url: str,
                 subject: str = DEFAULT_SUBJECT, threshold: int = 30):
        self.session = session
        self.sender = sender
        self.app_url = app_url
        self.subject = subject
        self.threshold = threshold

    def collect(self, today: Optional[date] = None) -> List[TenantDigest]:
        records = self.session.query(ExpiryRecord).filter(
            ExpiryRecord.due_date.isnot(None)
        ).all()
        grouped = group_by_tenant(records, today=today, threshold=self.threshold)
        if not grouped:
            return []

        companies = {
            c.id: c for c in self.session.query(Company).filter(Company.id.in_(list(grouped))).all()
        }
        return [
            TenantDigest(
                company_id=company_id,
                company_name=companies[company_id].name if company_id in companies else '',
                items=items,
            )
            for company_id, items in sorted(grouped.items())
        ]

    def _deliver(self, digest: TenantDigest) -> Optional[str]:
        """Send one company's digest. Returns None when it has no active recipients."""
        company = self.session.get(Company, digest.company_id)
        recipients = active_recipients(self.session, company) if company else []
        if not recipients:
            return None
        html = build_digest_html(digest, self.app_url)
        return self.sender(recipients, self.subject, html)

    def run(self, today: Optional[date] = None) -> DigestResult:
        result = DigestResult()
        digests = self.collect(today=today)
        logger.info(f"Daily digest: {len(digests)} company(ies) with qualifying records")

        for digest in digests:
            result.total_items += len(digest.items)
            result.tenants_with_items += 1

            try:
                outcome = self._deliver(digest)
            except Exception as e:
                self.session.rollback()
                logger.exception(f"Digest delivery failed for company {digest.company_id}: {e}")
                result.tenants_failed.append(digest.company_id)
                continue

            if outcome is None:
                logger.warning(f"Company {digest.company_id} has no active notification email; digest skipped")
                result.tenants_without_email.append(digest.company_id)
            elif outcome == SENT:
                result.emails_sent += 1
                logger.info(f"Digest sent to company {digest.company_id} ({len(digest.items)} item(s))")
            else:
                logger.warning(f"Digest for company {digest.company_id} not dispatched ({outcome})")
                result.tenants_skipped.append(digest.company_id)

        logger.info(f"Daily digest finished: {result.to_dict()}")
        return result


def run_daily_digest(session: Session, config, sender: Optional[Sender] = None,
                     today: Optional[date] = None) -> DigestResult:
    """Entry point shared by the CLI command and the jobs endpoint."""
    if sender is None:
        from segvenc.services.email_service import send_html_email
        sender = send_html_email
    composer = DigestComposer(
        session,
        sender=sender,
        app_url=config.get('APP_URL', ''),
        subject=config.get('DIGEST_SUBJECT', DEFAULT_SUBJECT),
        threshold=int(config.get('DIGEST_DAYS_THRESHOLD', 30)),
    )
    return composer.run(today=today)
