"""ExpiryRecord model - one certification held by one employee."""
from sqlalchemy import Column, BigInteger, String, Integer, Date, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from segvenc.database import Base, BigIntPK, JSONType


class ExpiryRecord(Base):
    """
    Expiry record for an employee certification.

    Employee fields are denormalized (matched by registration number).
    ``days_remaining`` and ``status`` are a cache refreshed when the due
    date is recomputed; readers always recompute them from ``due_date``.
    """

    __tablename__ = 'registros'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    company_id = Column('empresa_id', BigInteger, ForeignKey('empresas.id'), nullable=False, index=True)
    employee_id = Column('colaborador_id', BigInteger, ForeignKey('colaboradores.id', ondelete='SET NULL'), nullable=True)
    registration_number = Column('matricula', String(60), nullable=True, index=True)
    employee_name = Column('colaborador_nome', String(200), nullable=True)
    job_role = Column('funcao', String(120), nullable=True)
    department = Column('setor', String(120), nullable=True)
    operating_base = Column('base_operacional', String(120), nullable=True)
    kind = Column('tipo', String(10), nullable=False, default='Exame')
    certification_name = Column('curso_exame', String(200), nullable=False, default='')
    admission_date = Column('data_admissao', Date, nullable=True)
    last_event_date = Column('data_ultimo_evento', Date, nullable=True)
    due_date = Column('vencimento', Date, nullable=True, index=True)
    days_remaining = Column('qtde_dias', Integer, nullable=True)
    status = Column(String(60), nullable=True)
    custom_fields = Column('campos_extras', JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("tipo IN ('Exame', 'Curso')", name='check_registro_tipo'),
    )

    def __repr__(self):
        return f"<ExpiryRecord(id={self.id}, company_id={self.company_id}, certification='{self.certification_name}', due_date={self.due_date})>"
