"""
Tenant Service - company provisioning on first login and company settings.
"""

import logging
import re
from typing import Optional, Dict, Any, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from segvenc.exceptions import BusinessLogicError, NotFoundError, ValidationError
from segvenc.models import Company, InternalUser, NotificationEmail, UserRole

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def _normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


def ensure_company_for_identity(
    session: Session,
    auth_user_id: str,
    email: Optional[str],
    name: Optional[str] = None,
    default_company_name: str = 'Nova Empresa',
) -> InternalUser:
    """
    Resolve the internal user of an authenticated identity.

    Order:
    1. User already linked to ``auth_user_id``
    2. User provisioned by a payment webhook with the same email and no
       identity yet: the identity is linked now
    3. Otherwise a new company plus an admin user are created

    Args:
        session: Database session
        auth_user_id: Identity id issued by the authentication provider
        email: Identity email
        name: Display name (optional)

    Returns:
        InternalUser: The user, flushed
    """
    if not auth_user_id:
        raise ValidationError("Identidade sem auth_user_id")

    user = session.query(InternalUser).filter(
        InternalUser.auth_user_id == auth_user_id
    ).first()
    if user:
        return user

    email = _normalize_email(email)
    if email:
        pending = session.query(InternalUser).filter(
            func.lower(InternalUser.email) == email,
            InternalUser.auth_user_id.is_(None),
        ).order_by(InternalUser.id.asc()).first()
        if pending:
            pending.auth_user_id = auth_user_id
            if name and not pending.name:
                pending.name = name
            session.flush()
            logger.info(f"Linked identity {auth_user_id} to provisioned user {pending.id}")
            return pending

    company = Company(
        name=name or default_company_name,
        notification_email=email or None,
    )
    session.add(company)
    session.flush()

    user = InternalUser(
        company_id=company.id,
        auth_user_id=auth_user_id,
        email=email or None,
        name=name,
        role=UserRole.ADMIN.value,
        active=True,
    )
    session.add(user)
    session.flush()

    logger.info(f"Created company {company.id} and admin user {user.id} on first login")
    return user


def get_company(session: Session, company_id: int) -> Company:
    company = session.get(Company, company_id)
    if not company:
        raise NotFoundError(f"Empresa {company_id} não encontrada")
    return company


def update_company_settings(session: Session, company: Company, data: Dict[str, Any]) -> Company:
    """
    Update company name, tax id (CNPJ) and notification email.

    Raises:
        ValidationError: Empty name or malformed email
    """
    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError("O nome da empresa é obrigatório.")
        company.name = name

    if 'taxId' in data:
        company.tax_id = (data.get('taxId') or '').strip() or None

    if 'notificationEmail' in data:
        email = _normalize_email(data.get('notificationEmail'))
        if email and not EMAIL_RE.match(email):
            raise ValidationError(f"E-mail inválido: {email}")
        company.notification_email = email or None

    session.flush()
    logger.info(f"Updated settings for company {company.id}")
    return company


# ============================================================================
# Notification addresses
# ============================================================================

def list_notification_emails(session: Session, company_id: int) -> List[NotificationEmail]:
    return session.query(NotificationEmail).filter(
        NotificationEmail.company_id == company_id
    ).order_by(NotificationEmail.id.asc()).all()


def get_notification_email(session: Session, company_id: int, email_id: int) -> NotificationEmail:
    row = session.query(NotificationEmail).filter(
        NotificationEmail.company_id == company_id,
        NotificationEmail.id == email_id,
    ).first()
    if not row:
        raise NotFoundError(f"E-mail de notificação {email_id} não encontrado")
    return row


def add_notification_email(session: Session, company_id: int, email: str,
                           name: Optional[str] = None) -> NotificationEmail:
    """Register a digest recipient for a company."""
    email = _normalize_email(email)
    if not email or not EMAIL_RE.match(email):
        raise ValidationError(f"E-mail inválido: {email}")

    exists = session.query(NotificationEmail).filter(
        NotificationEmail.company_id == company_id,
        func.lower(NotificationEmail.email) == email,
    ).first()
    if exists:
        raise BusinessLogicError(f"O e-mail {email} já está cadastrado.", status_code=409)

    row = NotificationEmail(company_id=company_id, email=email, name=(name or '').strip() or None, active=True)
    session.add(row)
    session.flush()
    logger.info(f"Added notification email {row.id} to company {company_id}")
    return row


def set_notification_email_active(session: Session, company_id: int, email_id: int,
                                  active: bool) -> NotificationEmail:
    row = get_notification_email(session, company_id, email_id)
    row.active = bool(active)
    session.flush()
    return row


def remove_notification_email(session: Session, company_id: int, email_id: int) -> None:
    row = get_notification_email(session, company_id, email_id)
    session.delete(row)
    session.flush()
    logger.info(f"Removed notification email {email_id} from company {company_id}")
