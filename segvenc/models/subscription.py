"""
Subscription model - company plan status driven by payment gateway events.
"""
import enum
from sqlalchemy import Column, BigInteger, String, Date, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship, backref
from sqlalchemy.sql import func
from segvenc.database import Base, BigIntPK


class SubscriptionStatus(enum.Enum):
    """Subscription lifecycle states."""
    ACTIVE = 'active'
    PAST_DUE = 'past_due'
    CANCELED = 'canceled'


class Subscription(Base):
    """
    Company subscription as reported by a payment gateway.

    Upsert key: (company_id, gateway, gateway_subscription_id).
    """
    __tablename__ = 'assinaturas'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    company_id = Column('empresa_id', BigInteger, ForeignKey('empresas.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column('usuario_id', BigInteger, ForeignKey('usuarios.id', ondelete='SET NULL'), nullable=True)

    # Plan and Status
    plan = Column('plano', String(200), nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)

    # Dates
    start_date = Column('data_inicio', Date, nullable=False)
    end_date = Column('data_fim', Date, nullable=False)

    # Gateway Integration
    gateway = Column(String(40), nullable=False)
    gateway_subscription_id = Column(String(120), nullable=True)
    gateway_sale_id = Column(String(120), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Use backref to avoid circular import in Company model
    company = relationship('Company', backref=backref('subscriptions', order_by='Subscription.end_date.desc()'))

    # Table constraints
    __table_args__ = (
        CheckConstraint("status IN ('active', 'past_due', 'canceled')", name='check_assinatura_status'),
        UniqueConstraint('empresa_id', 'gateway', 'gateway_subscription_id', name='uq_assinatura_gateway_subscription'),
    )

    def __repr__(self):
        return f'<Subscription company_id={self.company_id} plan={self.plan} status={self.status}>'

    @property
    def is_active(self):
        """Check if subscription is active."""
        return self.status == SubscriptionStatus.ACTIVE.value

    @property
    def is_past_due(self):
        """Check if subscription payment is overdue."""
        return self.status == SubscriptionStatus.PAST_DUE.value

    @property
    def is_canceled(self):
        """Check if subscription is canceled."""
        return self.status == SubscriptionStatus.CANCELED.value

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'companyId': self.company_id,
            'plan': self.plan,
            'status': self.status,
            'startDate': self.start_date.isoformat() if self.start_date else '',
            'endDate': self.end_date.isoformat() if self.end_date else '',
            'gateway': self.gateway,
            'gatewaySubscriptionId': self.gateway_subscription_id or '',
            'gatewaySaleId': self.gateway_sale_id or '',
        }
