"""
utils.py
Dates, identifiers, form parsing/validation and display formatting.
"""

from __future__ import annotations

import random
import re
import uuid
from datetime import date
from urllib.parse import quote

from models import AgeType, AidType, HistoryType

MAX_INFANT_MONTHS = 11
VISIT_TITLE = "Visita Pastoral"
AID_FALLBACK_TITLE = "Doação"
PENDING_STATUS_DESCRIPTION = "Em análise"
WHATSAPP_COUNTRY_CODE = "55"


def new_id() -> str:
    return str(uuid.uuid4())


def generate_family_code(year: int | None = None, number: int | None = None) -> str:
    """Human-readable case number, e.g. #FAM-2024-007."""
    year = year or date.today().year
    if number is None:
        number = random.randint(0, 999)
    return f"#FAM-{year}-{number:03d}"


def default_family_name(responsible_name: str) -> str:
    parts = responsible_name.split()
    return f"Família {parts[-1] if parts else ''}".strip()


def avatar_url(seed: str | None = None) -> str:
    return f"https://picsum.photos/seed/{seed or uuid.uuid4().hex}/200/200"


def split_tags(raw: str) -> list[str]:
    return [t.strip() for t in raw.split(",") if t.strip()]


def validate_member_inputs(name: str, role: str, age, age_type: str) -> list[str]:
    errors: list[str] = []
    if not name.strip() or not role.strip():
        errors.append("Nome e Parentesco são obrigatórios para adicionar um membro.")
    try:
        value = int(age or 0)
        if value < 0:
            errors.append("A idade não pode ser negativa.")
        elif age_type == AgeType.MONTHS and value > MAX_INFANT_MONTHS:
            errors.append(
                "Para bebês, a idade em meses deve ser entre 0 e 11. "
                "Para 12 meses ou mais, selecione 'Anos'."
            )
    except (TypeError, ValueError):
        errors.append("A idade deve ser um número inteiro.")
    return errors


def parse_amount(raw: str) -> float:
    """Parse a typed amount; accepts a comma as decimal separator ("12,50")."""
    return float(raw.strip().replace(",", "."))


def validate_amount(raw: str) -> list[str]:
    try:
        amount = parse_amount(raw)
    except ValueError:
        return ["Insira um valor válido."]
    if not amount > 0:
        return ["Insira um valor válido."]
    return []


def history_title(record_type: HistoryType, aid_type: AidType | None = None, custom_detail: str = "") -> str:
    if record_type == HistoryType.VISIT:
        return VISIT_TITLE
    if aid_type == AidType.OTHER:
        return custom_detail.strip() or AID_FALLBACK_TITLE
    return aid_type.value if aid_type else AID_FALLBACK_TITLE


def format_amount_br(value: float) -> str:
    """1234.5 -> "1234,50" (no thousands separator)."""
    return f"{value:.2f}".replace(".", ",")


def format_currency(value: float) -> str:
    """1234.5 -> "R$ 1.234,50"."""
    text = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{'-' if value < 0 else ''}R$ {text}"


def format_income_input(raw: str) -> str:
    """Digits typed into the income field read as cents: "123456" -> "1.234,56"."""
    digits = re.sub(r"\D", "", raw)
    if not digits:
        return ""
    text = f"{int(digits) / 100:,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_date_br(date_iso: str) -> str:
    return "/".join(reversed(date_iso.split("-")))


def phone_digits(phone: str | None) -> str:
    return re.sub(r"\D", "", phone or "")


def whatsapp_link(phone: str | None, whatsapp: str | None = None) -> str:
    digits = phone_digits(whatsapp) if whatsapp else phone_digits(phone)
    return f"https://wa.me/{WHATSAPP_COUNTRY_CODE}{digits}" if digits else ""


def map_link(address: str, neighborhood: str | None = None) -> str:
    query = quote(f"{address}, {neighborhood or ''}")
    return f"https://www.google.com/maps/search/?api=1&query={query}"
