"""
exports.py
CSV exports (family roster backup, consolidated period report).

Files are UTF-8 with a byte-order mark so spreadsheets pick up accents.
Text columns are quoted with inner quotes doubled, integer columns are
left bare, and money goes out as quoted text with a decimal comma.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from datetime import date

import pandas as pd

from models import Family
from stats import ReportRow
from utils import format_amount_br, format_date_br

FAMILY_COLUMNS = [
    "ID",
    "Codigo",
    "Nome da Familia",
    "Responsavel",
    "Status",
    "Telefone",
    "WhatsApp",
    "Bairro",
    "Endereco",
    "Qtd Membros",
    "Membro Igreja",
    "Congregacao",
    "Necessidade Principal",
]

REPORT_COLUMNS = [
    "Data",
    "Tipo de Registro",
    "Categoria/Item",
    "Descricao",
    "Valor (R$)",
    "Destino/Origem",
    "Responsavel",
]


def _to_csv_bytes(records: list[list], columns: list[str]) -> bytes:
    # One physical line per record: line breaks inside text cells become a space
    df = pd.DataFrame(records, columns=columns).replace(r"[\r\n]+", " ", regex=True)
    text = df.to_csv(index=False, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    return text.encode("utf-8-sig")


def families_to_csv_bytes(families: Iterable[Family]) -> bytes:
    records = [
        [
            f.id,
            f.code,
            f.name,
            f.responsible_name,
            f.status.value,
            f.phone,
            f.whatsapp or "",
            f.neighborhood or "",
            f.address,
            len(f.members),
            "Sim" if f.church_member else "Não",
            f.congregation or "",
            f.main_need or "",
        ]
        for f in families
    ]
    return _to_csv_bytes(records, FAMILY_COLUMNS)


def report_to_csv_bytes(rows: Iterable[ReportRow]) -> bytes:
    records = [
        [
            format_date_br(r.date),
            r.type_label,
            r.title,
            r.description or "",
            format_amount_br(r.amount) if r.amount is not None else "",
            r.target,
            r.responsible,
        ]
        for r in rows
    ]
    return _to_csv_bytes(records, REPORT_COLUMNS)


def families_export_filename(day: date | None = None) -> str:
    return f"relatorio_familias_{(day or date.today()).isoformat()}.csv"


def report_export_filename(month: int, year: int) -> str:
    """month is 0-based (0 = January); the file name uses 1-12."""
    return f"relatorio_geral_{year}_{month + 1}.csv"
