"""CustomFilter model - company-defined fields offered as filters."""
import enum
from sqlalchemy import Column, BigInteger, String, Boolean, ForeignKey, CheckConstraint
from segvenc.database import Base, BigIntPK


class FilterOrigin(enum.Enum):
    """Which entity the filtered field belongs to."""
    RECORDS = 'registros'
    EMPLOYEES = 'colaboradores'


class CustomFilter(Base):
    """Named field the company wants to filter by in the dashboard and/or records views."""

    __tablename__ = 'custom_filters'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    company_id = Column('empresa_id', BigInteger, ForeignKey('empresas.id'), nullable=False, index=True)
    field_name = Column('nome', String(120), nullable=False)
    origin = Column('origem', String(20), nullable=False, default=FilterOrigin.RECORDS.value)
    use_in_dashboard = Column('usar_no_dashboard', Boolean, nullable=False, default=False)
    use_in_records = Column('usar_nos_registros', Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("origem IN ('registros', 'colaboradores')", name='check_custom_filter_origem'),
    )

    def __repr__(self):
        return f"<CustomFilter(field_name='{self.field_name}', origin='{self.origin}')>"
