"""
Utilidades de formatação para e-mails e respostas.
Inclui datas e textos de situação no padrão brasileiro (pt-BR).
"""
from datetime import date, datetime
from typing import Union

from segvenc.utils.dates import parse_date


def date_br(value: Union[date, datetime, str, None]) -> str:
    """
    Formata uma data no padrão brasileiro: DD/MM/AAAA

    Args:
        value: Data a formatar (date, datetime ou string ISO)

    Returns:
        String formatada ou "-" se vazia/inválida

    Examples:
        date_br(date(2025, 1, 10)) -> "10/01/2025"
        date_br("2025-01-10") -> "10/01/2025"
    """
    parsed = parse_date(value)
    if parsed is None:
        return "-"
    return parsed.strftime("%d/%m/%Y")


def situation_br(offset: int) -> str:
    """
    Texto de situação usado no resumo diário.

    Examples:
        situation_br(-3) -> "VENCIDO"
        situation_br(0) -> "Vence HOJE"
        situation_br(5) -> "Vence em 5 dia(s)"
    """
    if offset < 0:
        return "VENCIDO"
    if offset == 0:
        return "Vence HOJE"
    return f"Vence em {offset} dia(s)"
