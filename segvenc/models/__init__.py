"""Models package - exports all SQLAlchemy models."""
# SaaS Core Models
from segvenc.models.company import Company
from segvenc.models.internal_user import InternalUser, UserRole
from segvenc.models.notification_email import NotificationEmail

# Compliance Models
from segvenc.models.employee import Employee
from segvenc.models.certification_type import CertificationType, CertificationKind
from segvenc.models.expiry_record import ExpiryRecord
from segvenc.models.custom_filter import CustomFilter, FilterOrigin

# Billing
from segvenc.models.subscription import Subscription, SubscriptionStatus
from segvenc.models.webhook_event import WebhookEvent

__all__ = [
    # SaaS Core
    'Company', 'InternalUser', 'UserRole', 'NotificationEmail',
    # Compliance
    'Employee', 'CertificationType', 'CertificationKind', 'ExpiryRecord',
    'CustomFilter', 'FilterOrigin',
    # Billing
    'Subscription', 'SubscriptionStatus', 'WebhookEvent',
]
