"""
CSV import/export for expiry records and employees.

Format: semicolon-delimited, every field wrapped in double quotes with
embedded quotes doubled, CRLF line endings, header row of column labels.
Excel opens the same content when served as .xls.
"""
import csv
import io
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from segvenc.utils.dates import day_offset, legacy_status_from_offset, parse_date

logger = logging.getLogger(__name__)

# (application key, column label)
RECORD_COLUMNS: List[Tuple[str, str]] = [
    ('registrationNumber', 'Matrícula'),
    ('employeeName', 'Colaborador'),
    ('jobRole', 'Função'),
    ('department', 'Setor'),
    ('operatingBase', 'Base Operacional'),
    ('certificationName', 'Curso/Exame'),
    ('kind', 'Tipo'),
    ('admissionDate', 'Data Admissão'),
    ('lastEventDate', 'Data Último Evento'),
    ('dueDate', 'Vencimento'),
    ('daysRemaining', 'Qtde Dias'),
    ('status', 'Status'),
]

EMPLOYEE_COLUMNS: List[Tuple[str, str]] = [
    ('registrationNumber', 'Matrícula'),
    ('name', 'Nome'),
    ('jobRole', 'Função'),
    ('department', 'Setor'),
    ('operatingBase', 'Base Operacional'),
    ('admissionDate', 'Data Admissão'),
]

CSV_MIMETYPE = 'text/csv; charset=utf-8'
XLS_MIMETYPE = 'application/vnd.ms-excel'


def _columns_with_extras(columns: Sequence[Tuple[str, str]], extra_columns: Iterable[str]) -> List[Tuple[str, str]]:
    all_columns = list(columns)
    for name in extra_columns:
        if name not in {label for _key, label in all_columns}:
            all_columns.append((name, name))
    return all_columns


def _cell(row: Dict[str, Any], key: str) -> str:
    if key in row:
        value = row[key]
    else:
        value = (row.get('customFields') or {}).get(key)
    return '' if value is None else str(value)


def rows_to_csv(columns: Sequence[Tuple[str, str]], rows: Iterable[Dict[str, Any]],
                extra_columns: Iterable[str] = ()) -> str:
    """
    Serialize application dicts to the semicolon CSV format.

    Args:
        columns: (key, label) pairs for the built-in columns
        rows: Application-level dicts; custom attributes are read from
            their ``customFields`` side-map
        extra_columns: Custom attribute names exported after the built-ins
    """
    all_columns = _columns_with_extras(columns, extra_columns)
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=';', quotechar='"', quoting=csv.QUOTE_ALL, lineterminator='\r\n')
    writer.writerow([label for _key, label in all_columns])
    for row in rows:
        writer.writerow([_cell(row, key) for key, _label in all_columns])
    return buffer.getvalue().rstrip('\r\n')


def records_to_csv(records: Iterable[Dict[str, Any]], extra_columns: Iterable[str] = (),
                   today: Optional[date] = None) -> str:
    """
    Export records; the Status column carries the legacy three-tier text.

    Args:
        records: Record dicts (``record_to_dict`` or ``enrich`` output)
    """
    rows = []
    for record in records:
        row = dict(record)
        if row.get('dueDate'):
            offset = day_offset(row['dueDate'], today=today)
            row['daysRemaining'] = offset
            row['status'] = legacy_status_from_offset(offset).value
        rows.append(row)
    return rows_to_csv(RECORD_COLUMNS, rows, extra_columns)


def employees_to_csv(employees: Iterable[Dict[str, Any]], extra_columns: Iterable[str] = ()) -> str:
    return rows_to_csv(EMPLOYEE_COLUMNS, employees, extra_columns)


def parse_csv(text: str) -> List[List[str]]:
    """
    Parse CSV text into a matrix of cells.

    The delimiter is a semicolon unless the header line has none and has
    commas instead.
    """
    text = (text or '').lstrip('﻿').strip()
    if not text:
        return []
    header_line = text.splitlines()[0]
    delimiter = ';' if ';' in header_line or ',' not in header_line else ','
    reader = csv.reader(io.StringIO(text), delimiter=delimiter, quotechar='"')
    return [row for row in reader]


def csv_to_rows(text: str, columns: Sequence[Tuple[str, str]],
                extra_columns: Iterable[str] = ()) -> List[Dict[str, Any]]:
    """
    Import CSV text into application dicts.

    Header cells are matched to column labels case-insensitively; header
    columns matching no label are ignored. Blank lines are skipped.
    Custom attribute columns land in the ``customFields`` side-map.
    """
    matrix = parse_csv(text)
    if not matrix:
        return []

    header, *lines = matrix
    builtin_keys = {key for key, _label in columns}
    all_columns = _columns_with_extras(columns, extra_columns)

    index_to_key = {}
    for key, label in all_columns:
        for idx, cell in enumerate(header):
            if cell.strip().lower() == label.lower():
                index_to_key[idx] = key
                break

    unmatched = [cell for idx, cell in enumerate(header) if idx not in index_to_key]
    if unmatched:
        logger.info(f"Ignoring unmatched CSV columns: {unmatched}")

    rows = []
    for cells in lines:
        if not any(cell.strip() for cell in cells):
            continue
        row: Dict[str, Any] = {'customFields': {}}
        for idx, key in index_to_key.items():
            value = cells[idx].strip() if idx < len(cells) else ''
            if key in builtin_keys:
                row[key] = value
            else:
                row['customFields'][key] = value
        rows.append(row)
    return rows


def csv_to_records(text: str, extra_columns: Iterable[str] = (),
                   today: Optional[date] = None) -> List[Dict[str, Any]]:
    """
    Import record rows; rows with a due date get offset and status computed.

    Imported dates may be ISO (``2025-01-10``) or pt-BR (``10/01/2025``).
    """
    rows = csv_to_rows(text, RECORD_COLUMNS, extra_columns)
    for row in rows:
        for key in ('admissionDate', 'lastEventDate', 'dueDate'):
            if row.get(key):
                row[key] = normalize_imported_date(row[key])
        if not row.get('kind'):
            row['kind'] = 'Exame'
        if row.get('dueDate'):
            offset = day_offset(row['dueDate'], today=today)
            row['daysRemaining'] = offset
            row['status'] = legacy_status_from_offset(offset).value
        else:
            row.pop('daysRemaining', None)
            row.pop('status', None)
    return rows


def csv_to_employees(text: str, extra_columns: Iterable[str] = ()) -> List[Dict[str, Any]]:
    rows = csv_to_rows(text, EMPLOYEE_COLUMNS, extra_columns)
    for row in rows:
        if row.get('admissionDate'):
            row['admissionDate'] = normalize_imported_date(row['admissionDate'])
    return rows


def normalize_imported_date(value: str) -> str:
    """Accept ``YYYY-MM-DD`` or ``DD/MM/YYYY``; anything else is returned as-is."""
    value = (value or '').strip()
    if '/' in value:
        parts = value.split('/')
        if len(parts) == 3 and len(parts[2]) == 4:
            try:
                return date(int(parts[2]), int(parts[1]), int(parts[0])).isoformat()
            except ValueError:
                return value
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else value
