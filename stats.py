"""
stats.py
Pure derivations over the in-memory collections: balances, category
totals, aid histogram, family filters and the consolidated period report.

Nothing here mutates its inputs; views recompute on every rerun.
Periods are (month, year) with a 0-based month (0 = January), matching the
period selectors.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import pandas as pd

from models import (
    AID_STATS_COLORS,
    AgeType,
    AidType,
    Family,
    HistoryType,
    Status,
    Transaction,
    TransactionType,
    TRANSACTION_TYPE_LABELS,
)

ALL = "All"
DEFAULT_MIN_AGE = 0
DEFAULT_MAX_AGE = 100
CHILD_MAX_AGE = 18

REPORT_VIEWS = ("all", "aid", "financial")
AID_REPORT_LABEL = "Doação"
INCOME_TARGET = "Igreja (Receita)"
EXPENSE_TARGET = "Despesa Social"

# Aid types always shown on the dashboard chart, even with zero records
BASELINE_AID_TYPES = [
    AidType.FOOD_BASKET,
    AidType.CLOTHES,
    AidType.MEDICINE,
    AidType.GAS,
    AidType.FINANCIAL,
    AidType.SPIRITUAL,
]


@dataclass(frozen=True)
class PeriodTotals:
    income: float
    expense: float

    @property
    def balance(self) -> float:
        return self.income - self.expense


@dataclass
class CategoryTotal:
    income: float = 0.0
    expense: float = 0.0


@dataclass(frozen=True)
class AidStat:
    name: str
    value: int
    fill: str


@dataclass(frozen=True)
class ReportRow:
    id: str
    date: str
    type_label: str
    title: str
    description: str
    target: str
    responsible: str
    amount: float | None
    is_financial: bool


# ---------- Balances ----------

def total_balance(transactions: Iterable[Transaction]) -> float:
    total = 0.0
    for t in transactions:
        total += t.signed_amount
    return total


def in_period(date_iso: str, month: int, year: int) -> bool:
    parts = date_iso.split("-")
    if len(parts) < 2:
        return False
    try:
        y, m = int(parts[0]), int(parts[1])
    except ValueError:
        return False
    return y == year and m - 1 == month


def period_transactions(transactions: Iterable[Transaction], month: int, year: int) -> list[Transaction]:
    return [t for t in transactions if in_period(t.date, month, year)]


def period_totals(transactions: Iterable[Transaction], month: int, year: int) -> PeriodTotals:
    income = 0.0
    expense = 0.0
    for t in period_transactions(transactions, month, year):
        if t.type == TransactionType.INCOME:
            income += t.amount
        else:
            expense += t.amount
    return PeriodTotals(income=income, expense=expense)


def period_balance(transactions: Iterable[Transaction], month: int, year: int) -> float:
    return period_totals(transactions, month, year).balance


def category_totals(transactions: Iterable[Transaction], month: int, year: int) -> dict[str, CategoryTotal]:
    """Income and expense subtotals per category, in first-seen order."""
    totals: dict[str, CategoryTotal] = {}
    for t in period_transactions(transactions, month, year):
        entry = totals.setdefault(t.category, CategoryTotal())
        if t.type == TransactionType.INCOME:
            entry.income += t.amount
        else:
            entry.expense += t.amount
    return totals


def cash_flow_chart(totals: PeriodTotals) -> list[dict]:
    return [
        {"name": "Entradas", "value": totals.income, "fill": "#22c55e"},
        {"name": "Saídas", "value": totals.expense, "fill": "#ef4444"},
    ]


def filter_by_type(transactions: Iterable[Transaction], type_filter: str = ALL) -> list[Transaction]:
    return [t for t in transactions if type_filter == ALL or t.type == type_filter]


def monthly_summary(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Income, expense and balance per YYYY-MM, newest month first."""
    df = pd.DataFrame(
        [{"month": t.date[:7], "type": t.type.value, "amount": t.amount} for t in transactions]
    )
    if df.empty:
        return pd.DataFrame(columns=["month", "income", "expense", "balance"])
    income, expense = TransactionType.INCOME.value, TransactionType.EXPENSE.value
    pivot = df.pivot_table(index="month", columns="type", values="amount", aggfunc="sum", fill_value=0.0)
    pivot = pivot.reindex(columns=[income, expense], fill_value=0.0)
    out = pivot.rename(columns={income: "income", expense: "expense"}).reset_index()
    out.columns.name = None
    out["balance"] = out["income"] - out["expense"]
    return out.sort_values("month", ascending=False).reset_index(drop=True)


# ---------- Dashboard ----------

def aid_color(title: str) -> str:
    try:
        return AID_STATS_COLORS[AidType(title)]
    except ValueError:
        return AID_STATS_COLORS[AidType.OTHER]


def aid_histogram(families: Iterable[Family]) -> list[AidStat]:
    counts: dict[str, int] = {t.value: 0 for t in BASELINE_AID_TYPES}
    for family in families:
        for record in family.history:
            if record.type == HistoryType.AID:
                counts[record.title] = counts.get(record.title, 0) + 1
    stats = [AidStat(name=name, value=value, fill=aid_color(name)) for name, value in counts.items()]
    return sorted(stats, key=lambda s: s.value, reverse=True)


def dashboard_summary(families: Sequence[Family], transactions: Iterable[Transaction]) -> dict:
    return {
        "total_families": len(families),
        "critical_families": sum(1 for f in families if f.status == Status.CRITICAL),
        "total_balance": total_balance(transactions),
    }


# ---------- Family filters ----------

def matches_search(family: Family, query: str) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    return q in family.name.lower() or q in family.code.lower() or q in family.responsible_name.lower()


def matches_status(family: Family, status: str = ALL) -> bool:
    return status == ALL or family.status == status


def matches_age(
    family: Family,
    babies_only: bool = False,
    min_age: int | None = None,
    max_age: int | None = None,
) -> bool:
    """
    Babies only: some member is counted in months or is under one year.
    Range: some member's age in years (months / 12) is within [min, max].
    With neither criterion every family matches.
    """
    if babies_only:
        return any(m.age_type == AgeType.MONTHS or m.age_in_years < 1 for m in family.members)
    if min_age is None and max_age is None:
        return True
    low = DEFAULT_MIN_AGE if min_age is None else min_age
    high = DEFAULT_MAX_AGE if max_age is None else max_age
    return any(low <= m.age_in_years <= high for m in family.members)


def filter_families(
    families: Iterable[Family],
    query: str = "",
    status: str = ALL,
    babies_only: bool = False,
    min_age: int | None = None,
    max_age: int | None = None,
) -> list[Family]:
    return [
        f
        for f in families
        if matches_search(f, query)
        and matches_status(f, status)
        and matches_age(f, babies_only, min_age, max_age)
    ]


def children_count(family: Family) -> int:
    return sum(1 for m in family.members if m.age_in_years <= CHILD_MAX_AGE)


def has_baby(family: Family) -> bool:
    return any(m.age_type == AgeType.MONTHS for m in family.members)


# ---------- Reports ----------

def consolidate_report(
    families: Iterable[Family],
    transactions: Iterable[Transaction],
    month: int,
    year: int,
    view: str = "all",
) -> list[ReportRow]:
    """Aid records and ledger entries of one period, newest first."""
    if view not in REPORT_VIEWS:
        raise ValueError(f"Unknown report view: {view!r}")

    rows: list[ReportRow] = []
    if view in ("all", "aid"):
        for family in families:
            for record in family.history:
                if record.type != HistoryType.AID or not in_period(record.date, month, year):
                    continue
                rows.append(
                    ReportRow(
                        id=record.id,
                        date=record.date,
                        type_label=AID_REPORT_LABEL,
                        title=record.title,
                        description=record.description,
                        target=family.name,
                        responsible=record.responsible,
                        amount=None,
                        is_financial=False,
                    )
                )

    if view in ("all", "financial"):
        for t in period_transactions(transactions, month, year):
            income = t.type == TransactionType.INCOME
            rows.append(
                ReportRow(
                    id=t.id,
                    date=t.date,
                    type_label=TRANSACTION_TYPE_LABELS[t.type],
                    title=t.category,
                    description=t.description,
                    target=INCOME_TARGET if income else EXPENSE_TARGET,
                    responsible=t.responsible,
                    amount=t.amount,
                    is_financial=True,
                )
            )

    # ISO dates sort chronologically as strings; sorted() is stable for ties
    return sorted(rows, key=lambda r: r.date, reverse=True)
