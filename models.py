"""
models.py
Domain records (families, members, history, cash-flow entries), enums and
mapping to/from the hosted tables.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Status(str, Enum):
    ACTIVE = "Active"
    CRITICAL = "Critical"
    ARCHIVED = "Archived"


class AidType(str, Enum):
    # Values are the labels stored as the title of Aid history records
    FOOD_BASKET = "Cesta Básica"
    CLOTHES = "Roupas"
    MEDICINE = "Medicamentos"
    FINANCIAL = "Financeiro"
    SPIRITUAL = "Apoio Espiritual"
    GAS = "Gás"
    OTHER = "Outros"


class TransactionType(str, Enum):
    INCOME = "Income"
    EXPENSE = "Expense"


class HistoryType(str, Enum):
    VISIT = "Visit"
    AID = "Aid"
    UPDATE = "Update"


class AgeType(str, Enum):
    YEARS = "Years"
    MONTHS = "Months"  # infants under 12 months only


AID_STATS_COLORS = {
    AidType.FOOD_BASKET: "#f97316",
    AidType.CLOTHES: "#EAB308",
    AidType.MEDICINE: "#14b8a6",
    AidType.GAS: "#ef4444",
    AidType.FINANCIAL: "#22c55e",
    AidType.SPIRITUAL: "#a855f7",
    AidType.OTHER: "#64748b",
}

STATUS_LABELS = {
    Status.ACTIVE: "Ativa",
    Status.CRITICAL: "Crítica",
    Status.ARCHIVED: "Arquivada",
}

TRANSACTION_TYPE_LABELS = {
    TransactionType.INCOME: "Entrada",
    TransactionType.EXPENSE: "Saída",
}

# Suggested (not enforced) ledger categories
INCOME_CATEGORIES = ["Dízimos", "Ofertas", "Doação", "Venda de Eventos", "Outros"]
EXPENSE_CATEGORIES = [
    "Ajuda Social",
    "Contas (Luz/Água)",
    "Manutenção",
    "Material de Limpeza",
    "Combustível",
    "Outros",
]

SYSTEM_RESPONSIBLE = "Sistema"


def _map_nested(items: Any, mapper: Callable[[dict], Any], kind: str, family_id: Any) -> list:
    """Map the entries of a nested JSON array; a bad entry is skipped, not the family."""
    if not isinstance(items, list):
        return []
    mapped = []
    for item in items:
        try:
            mapped.append(mapper(item))
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Skipping %s entry of family %r: %r", kind, family_id, exc)
    return mapped


@dataclass(frozen=True)
class FamilyMember:
    id: str
    name: str
    role: str  # free-text relationship label
    age: int
    age_type: AgeType = AgeType.YEARS
    tags: list[str] = field(default_factory=list)

    @property
    def age_in_years(self) -> float:
        if self.age_type == AgeType.MONTHS:
            return self.age / 12
        return float(self.age)

    @classmethod
    def from_dict(cls, data: dict) -> FamilyMember:
        tags = data.get("tags") or []
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            role=data.get("role") or "",
            age=int(data.get("age") or 0),
            age_type=AgeType(data.get("ageType") or AgeType.YEARS.value),
            tags=[str(t) for t in tags],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "age": self.age,
            "ageType": self.age_type.value,
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class HistoryRecord:
    id: str
    date: str  # YYYY-MM-DD
    type: HistoryType
    title: str
    description: str = ""
    responsible: str = SYSTEM_RESPONSIBLE

    @classmethod
    def from_dict(cls, data: dict) -> HistoryRecord:
        return cls(
            id=str(data["id"]),
            date=str(data["date"]),
            type=HistoryType(data["type"]),
            title=data.get("title") or "",
            description=data.get("description") or "",
            responsible=data.get("responsible") or SYSTEM_RESPONSIBLE,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "responsible": self.responsible,
        }


@dataclass(frozen=True)
class Family:
    id: str
    code: str
    name: str
    responsible_name: str
    avatar_url: str = ""
    status: Status = Status.ACTIVE
    status_description: str = ""
    address: str = ""
    neighborhood: str | None = None
    phone: str = ""
    whatsapp: str | None = None
    church_member: bool = False
    congregation: str | None = None
    income: str | None = None
    social_class: str | None = None
    professional_status: str | None = None
    main_need: str | None = None
    observations: str | None = None
    members: list[FamilyMember] = field(default_factory=list)  # display order
    history: list[HistoryRecord] = field(default_factory=list)  # newest first

    @classmethod
    def from_row(cls, row: dict) -> Family:
        members = row.get("members")
        history = row.get("history")
        return cls(
            id=str(row["id"]),
            code=row.get("code") or "",
            name=row["name"],
            responsible_name=row.get("responsible_name") or "",
            avatar_url=row.get("avatar_url") or "",
            status=Status(row.get("status") or Status.ACTIVE.value),
            status_description=row.get("status_description") or "",
            address=row.get("address") or "",
            neighborhood=row.get("neighborhood"),
            phone=row.get("phone") or "",
            whatsapp=row.get("whatsapp"),
            church_member=bool(row.get("church_member")),
            congregation=row.get("congregation"),
            income=row.get("income"),
            social_class=row.get("social_class"),
            professional_status=row.get("professional_status"),
            main_need=row.get("main_need"),
            observations=row.get("observations"),
            members=_map_nested(members, FamilyMember.from_dict, "member", row["id"]),
            history=_map_nested(history, HistoryRecord.from_dict, "history", row["id"]),
        )

    def update_row(self) -> dict:
        """Columns written by an edit (identity, avatar and history are left alone)."""
        return {
            "name": self.name,
            "responsible_name": self.responsible_name,
            "status": self.status.value,
            "status_description": self.status_description,
            "address": self.address,
            "neighborhood": self.neighborhood,
            "phone": self.phone,
            "whatsapp": self.whatsapp,
            "church_member": self.church_member,
            "congregation": self.congregation,
            "income": self.income,
            "social_class": self.social_class,
            "professional_status": self.professional_status,
            "main_need": self.main_need,
            "observations": self.observations,
            "members": [m.to_dict() for m in self.members],
        }

    def to_row(self) -> dict:
        row = {"id": self.id, "code": self.code, "avatar_url": self.avatar_url}
        row.update(self.update_row())
        row["history"] = self.history_payload()
        return row

    def history_payload(self) -> list[dict]:
        return [h.to_dict() for h in self.history]


@dataclass(frozen=True)
class Transaction:
    id: str
    date: str  # YYYY-MM-DD
    type: TransactionType
    category: str
    amount: float  # always > 0; sign comes from type
    description: str = ""
    responsible: str = SYSTEM_RESPONSIBLE

    @property
    def signed_amount(self) -> float:
        return self.amount if self.type == TransactionType.INCOME else -self.amount

    @classmethod
    def from_row(cls, row: dict) -> Transaction:
        return cls(
            id=str(row["id"]),
            date=str(row["date"]),
            type=TransactionType(row["type"]),
            category=row.get("category") or "",
            amount=float(row["amount"]),
            description=row.get("description") or "",
            responsible=row.get("responsible") or SYSTEM_RESPONSIBLE,
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "type": self.type.value,
            "category": self.category,
            "amount": self.amount,
            "description": self.description,
            "responsible": self.responsible,
        }
