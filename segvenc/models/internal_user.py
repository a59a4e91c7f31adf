"""InternalUser model - people with access to a company's workspace."""
import enum
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from segvenc.database import Base, BigIntPK


class UserRole(enum.Enum):
    """User roles within a company."""
    ADMIN = 'admin'
    USER = 'user'


class InternalUser(Base):
    """
    Internal user linked to an authentication identity.

    ``auth_user_id`` stays empty for users provisioned from a payment
    webhook; it is filled on their first authenticated login.
    """

    __tablename__ = 'usuarios'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    company_id = Column('empresa_id', BigInteger, ForeignKey('empresas.id'), nullable=False, index=True)
    auth_user_id = Column(String(64), nullable=True, unique=True)
    email = Column(String(255), nullable=True, index=True)
    name = Column('nome', String(200), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    active = Column('acesso_ativo', Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    company = relationship('Company', back_populates='users')

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'user')", name='check_usuario_role'),
    )

    def is_admin(self):
        """Check if user is admin of the company."""
        return self.role == UserRole.ADMIN.value

    def to_dict(self):
        return {
            'id': self.id,
            'authUserId': self.auth_user_id or '',
            'email': self.email or '',
            'name': self.name or '',
            'role': self.role,
        }

    def __repr__(self):
        return f"<InternalUser(id={self.id}, company_id={self.company_id}, role='{self.role}')>"
