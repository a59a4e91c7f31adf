"""
Subscription Service - reconciles company subscriptions from payment gateway events.

State per (company, gateway, gateway subscription id):
none -> active -> past_due -> canceled, and back to active on a later payment.
"""

import hashlib
import json
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from segvenc.exceptions import ValidationError
from segvenc.models import (
    Company,
    InternalUser,
    Subscription,
    SubscriptionStatus,
    UserRole,
    WebhookEvent,
)
from segvenc.services.webhook_classifier import EventKind, GatewayEvent, decode_event

logger = logging.getLogger(__name__)


class SubscriptionReconciler:
    """
    Apply classified gateway events to the subscription store.

    The reconciler only flushes; the caller owns the transaction.
    """

    def __init__(self, session: Session, gateway: str = 'kiwify', default_days: int = 30,
                 default_company_name: str = 'Nova Empresa', default_plan_name: str = 'Plano Kiwify',
                 today: Optional[date] = None):
        self.session = session
        self.gateway = gateway
        self.default_days = default_days
        self.default_company_name = default_company_name
        self.default_plan_name = default_plan_name
        self.today = today

    def _today(self) -> date:
        return self.today or date.today()

    def handle(self, event: GatewayEvent) -> Optional[Subscription]:
        """
        Apply one event.

        Returns:
            The subscription row touched, or None for no-op events
        """
        if event.kind == EventKind.PAID_OR_RENEWED:
            return self.apply_payment(event)
        if event.kind == EventKind.CANCELED_OR_REFUNDED:
            return self.set_status(event, SubscriptionStatus.CANCELED)
        if event.kind == EventKind.PAST_DUE:
            return self.set_status(event, SubscriptionStatus.PAST_DUE)

        logger.info(f"Ignoring unknown {self.gateway} event for {event.buyer_email}")
        return None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_user_by_email(self, email: str) -> Optional[InternalUser]:
        return self.session.query(InternalUser).filter(
            func.lower(InternalUser.email) == email.lower()
        ).order_by(InternalUser.id.asc()).first()

    def find_company_by_notification_email(self, email: str) -> Optional[Company]:
        return self.session.query(Company).filter(
            func.lower(Company.notification_email) == email.lower()
        ).order_by(Company.id.asc()).first()

    def find_subscription(self, company_id: int, subscription_id: Optional[str]) -> Optional[Subscription]:
        query = self.session.query(Subscription).filter(
            Subscription.company_id == company_id,
            Subscription.gateway == self.gateway,
        )
        if subscription_id is None:
            query = query.filter(Subscription.gateway_subscription_id.is_(None))
        else:
            query = query.filter(Subscription.gateway_subscription_id == subscription_id)
        return query.first()

    def resolve_company(self, event: GatewayEvent) -> Tuple[Company, InternalUser]:
        """
        Find (or provision) the company and user that paid.

        Order: user by email, company by notification email (an admin user
        is created there for the buyer), else a brand new company.
        """
        user = self.find_user_by_email(event.buyer_email)
        if user:
            return user.company, user

        company = self.find_company_by_notification_email(event.buyer_email)
        if company is None:
            company = Company(
                name=event.buyer_name or self.default_company_name,
                tax_id=None,
                notification_email=event.buyer_email,
            )
            self.session.add(company)
            self.session.flush()
            logger.info(f"Provisioned company {company.id} for buyer {event.buyer_email}")

        # auth_user_id stays empty until the buyer's first login
        user = InternalUser(
            company_id=company.id,
            email=event.buyer_email,
            name=event.buyer_name,
            role=UserRole.ADMIN.value,
            active=True,
        )
        self.session.add(user)
        self.session.flush()
        logger.info(f"Provisioned admin user {user.id} in company {company.id}")
        return company, user

    def resolve_existing_company(self, email: str) -> Optional[Company]:
        user = self.find_user_by_email(email)
        if user:
            return user.company
        return self.find_company_by_notification_email(email)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _subscription_key(self, event: GatewayEvent) -> Optional[str]:
        return event.subscription_id or event.sale_id

    def apply_payment(self, event: GatewayEvent) -> Subscription:
        """Upsert the subscription as active with fresh dates."""
        company, user = self.resolve_company(event)
        key = self._subscription_key(event)

        start = event.start_date or event.approved_date or self._today()
        end = event.next_payment or (start + timedelta(days=self.default_days))
        plan = event.plan_label or self.default_plan_name

        subscription = self.find_subscription(company.id, key)
        if subscription is None:
            subscription = Subscription(
                company_id=company.id,
                user_id=user.id if user else None,
                gateway=self.gateway,
                gateway_subscription_id=key,
            )
            self.session.add(subscription)
            logger.info(f"Creating {self.gateway} subscription {key} for company {company.id}")
        else:
            logger.info(f"Renewing {self.gateway} subscription {key} for company {company.id}")

        subscription.plan = plan
        subscription.status = SubscriptionStatus.ACTIVE.value
        subscription.start_date = start
        subscription.end_date = end
        subscription.gateway_sale_id = event.sale_id
        self.session.flush()
        return subscription

    def set_status(self, event: GatewayEvent, status: SubscriptionStatus) -> Optional[Subscription]:
        """Move an existing subscription to ``status``; end date untouched."""
        company = self.resolve_existing_company(event.buyer_email)
        if company is None:
            logger.warning(f"No company for {event.buyer_email}; {status.value} event ignored")
            return None

        key = self._subscription_key(event)
        subscription = self.find_subscription(company.id, key)
        if subscription is None and event.subscription_id and event.sale_id:
            subscription = self.find_subscription(company.id, event.sale_id)
        if subscription is None:
            logger.warning(
                f"No {self.gateway} subscription {key} for company {company.id}; {status.value} event ignored"
            )
            return None

        subscription.status = status.value
        self.session.flush()
        logger.info(f"Subscription {subscription.id} marked as {status.value}")
        return subscription


def get_active_subscription(session: Session, tenant_id: int, today: Optional[date] = None) -> Optional[Subscription]:
    """
    Most recent active subscription of a company that has not ended yet.

    Args:
        session: Database session
        tenant_id: Company id
        today: Reference date (defaults to date.today())
    """
    today = today or date.today()
    return session.query(Subscription).filter(
        Subscription.company_id == tenant_id,
        Subscription.status == SubscriptionStatus.ACTIVE.value,
        Subscription.end_date >= today,
    ).order_by(Subscription.end_date.desc(), Subscription.id.desc()).first()


def ingest_webhook(session: Session, gateway: str, raw_body: str,
                   reconciler: Optional[SubscriptionReconciler] = None) -> Dict[str, Any]:
    """
    Persist a webhook body, then reconcile it.

    The log row is committed, already classified, before any derived
    mutation so no body is ever lost.

    Raises:
        ValidationError: Malformed JSON or missing buyer email (log row REJECTED)
        Exception: Any downstream failure after rollback (log row FAILED)
    """
    raw_body = raw_body or ''
    log = WebhookEvent(
        gateway=gateway,
        event_type='invalid',
        raw_body=raw_body,
        dedupe_key=hashlib.sha256(raw_body.encode('utf-8')).hexdigest(),
        status=WebhookEvent.RECEIVED,
    )
    session.add(log)

    try:
        payload = json.loads(raw_body)
    except ValueError:
        payload = None

    if payload is not None:
        log.payload_json = payload

    rejection = None
    try:
        if payload is None:
            raise ValidationError("JSON inválido")
        event = decode_event(gateway, payload)
        log.event_type = event.kind.value
    except ValidationError as e:
        log.status = WebhookEvent.REJECTED
        log.error = e.message
        log.processed_at = datetime.now(timezone.utc)
        rejection = e

    session.commit()
    logger.info(f"Stored {gateway} webhook {log.id} (dedupe_key={log.dedupe_key[:12]})")

    if rejection is not None:
        logger.warning(f"Rejected {gateway} webhook {log.id}: {rejection.message}")
        raise rejection

    reconciler = reconciler or SubscriptionReconciler(session, gateway=gateway)

    try:
        subscription = reconciler.handle(event)
        log.status = WebhookEvent.PROCESSED if subscription is not None else WebhookEvent.IGNORED
        log.processed_at = datetime.now(timezone.utc)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.exception(f"Error reconciling {gateway} webhook {log.id}: {e}")
        log.status = WebhookEvent.FAILED
        log.error = str(e)
        log.processed_at = datetime.now(timezone.utc)
        session.commit()
        raise

    return {
        'status': log.status.lower(),
        'event': event.kind.value,
        'logId': log.id,
        'subscription': subscription.to_dict() if subscription is not None else None,
    }
