"""Employee model - a company's roster entry."""
from sqlalchemy import Column, BigInteger, String, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from segvenc.database import Base, BigIntPK, JSONType


class Employee(Base):
    """
    Employee owned by exactly one company.

    Arbitrary named attributes created by the company live in
    ``custom_fields`` instead of extra columns.
    """

    __tablename__ = 'colaboradores'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    company_id = Column('empresa_id', BigInteger, ForeignKey('empresas.id'), nullable=False, index=True)
    registration_number = Column('matricula', String(60), nullable=True, index=True)
    name = Column('nome', String(200), nullable=True)
    job_role = Column('funcao', String(120), nullable=True)
    department = Column('setor', String(120), nullable=True)
    operating_base = Column('base_operacional', String(120), nullable=True)
    admission_date = Column('data_admissao', Date, nullable=True)
    custom_fields = Column('campos_extras', JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Employee(id={self.id}, registration_number='{self.registration_number}', name='{self.name}')>"
