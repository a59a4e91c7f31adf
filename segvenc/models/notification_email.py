"""NotificationEmail model - digest recipients configured per company."""
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from segvenc.database import Base, BigIntPK


class NotificationEmail(Base):
    """Address that receives the daily expiry digest for a company."""

    __tablename__ = 'empresas_emails_alerta'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    company_id = Column('empresa_id', BigInteger, ForeignKey('empresas.id', ondelete='CASCADE'), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    name = Column('nome', String(200), nullable=True)
    active = Column('ativo', Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    company = relationship('Company', back_populates='notification_emails')

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name or '',
            'active': bool(self.active),
        }

    def __repr__(self):
        return f"<NotificationEmail(company_id={self.company_id}, email='{self.email}', active={self.active})>"
