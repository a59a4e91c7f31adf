"""Company model - the tenant that owns every roster, catalog and record."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from segvenc.database import Base, BigIntPK


class Company(Base):
    """Company (tenant) - each customer organization."""

    __tablename__ = 'empresas'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column('nome', String(200), nullable=False)
    tax_id = Column('cnpj', String(32), nullable=True)
    notification_email = Column('email_notificacao', String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    users = relationship('InternalUser', back_populates='company')
    notification_emails = relationship(
        'NotificationEmail', back_populates='company', cascade='all, delete-orphan'
    )

    def to_dict(self):
        """Application-level representation (nulls become empty strings)."""
        return {
            'id': self.id,
            'name': self.name or '',
            'taxId': self.tax_id or '',
            'notificationEmail': self.notification_email or '',
        }

    def __repr__(self):
        return f"<Company(id={self.id}, name='{self.name}')>"
