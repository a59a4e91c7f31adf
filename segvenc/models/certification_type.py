"""CertificationType model - catalog of exams and courses with validity."""
import enum
from sqlalchemy import Column, BigInteger, String, Integer, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.sql import func
from segvenc.database import Base, BigIntPK


class CertificationKind(enum.Enum):
    """Kinds of certification tracked."""
    EXAM = 'Exame'
    COURSE = 'Curso'


class CertificationType(Base):
    """Exam or course type, used to derive due dates from the last event."""

    __tablename__ = 'exames_cursos'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    company_id = Column('empresa_id', BigInteger, ForeignKey('empresas.id'), nullable=False, index=True)
    kind = Column('tipo', String(10), nullable=False, default=CertificationKind.EXAM.value)
    name = Column('nome', String(200), nullable=False)
    validity_days = Column('validade_dias', Integer, nullable=False, default=365)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("tipo IN ('Exame', 'Curso')", name='check_exame_curso_tipo'),
        CheckConstraint("validade_dias >= 0", name='check_validade_dias'),
        UniqueConstraint('empresa_id', 'tipo', 'nome', name='uq_exame_curso_empresa_tipo_nome'),
    )

    def __repr__(self):
        return f"<CertificationType(kind='{self.kind}', name='{self.name}', validity_days={self.validity_days})>"
