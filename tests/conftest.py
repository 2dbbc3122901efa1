"""Test fixtures for the social care desk."""

import asyncio
import os
from unittest.mock import MagicMock

import pytest

# Keep settings independent of any developer .env
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test_key")

from db import FAMILIES_TABLE, TRANSACTIONS_TABLE
from exceptions import RemoteStoreError
from models import (
    AgeType,
    Family,
    FamilyMember,
    HistoryRecord,
    HistoryType,
    Status,
    Transaction,
    TransactionType,
)


class FakeRemote:
    """In-memory stand-in for db.RemoteStore."""

    def __init__(self, families=None, transactions=None):
        self.tables = {
            FAMILIES_TABLE: list(families or []),
            TRANSACTIONS_TABLE: list(transactions or []),
        }
        self.fail: set[str] = set()  # operations to fail: fetch, insert, update, delete
        self.calls: list[tuple] = []
        self.hold: asyncio.Event | None = None  # when set, writes wait for it

    async def _maybe_hold(self):
        if self.hold is not None:
            await self.hold.wait()

    async def fetch_all(self, table, order, desc=False):
        self.calls.append(("fetch", table, order, desc))
        if "fetch" in self.fail or f"fetch:{table}" in self.fail:
            raise RemoteStoreError("network down")
        return sorted(self.tables[table], key=lambda r: r[order], reverse=desc)

    async def insert(self, table, row):
        self.calls.append(("insert", table, row))
        await self._maybe_hold()
        if "insert" in self.fail:
            raise RemoteStoreError("duplicate key value violates unique constraint")
        self.tables[table].append(row)

    async def update(self, table, row_id, values):
        self.calls.append(("update", table, row_id, values))
        await self._maybe_hold()
        if "update" in self.fail:
            raise RemoteStoreError("permission denied for table families")
        for row in self.tables[table]:
            if row["id"] == row_id:
                row.update(values)

    async def delete(self, table, row_id):
        self.calls.append(("delete", table, row_id))
        await self._maybe_hold()
        if "delete" in self.fail:
            raise RemoteStoreError("delete rejected")
        self.tables[table] = [r for r in self.tables[table] if r["id"] != row_id]


class FakeGateway:
    """In-memory stand-in for auth.AuthGateway."""

    def __init__(self, session=None, delay=0.0, error=None, notify=False):
        self.session = session
        self.notify = notify  # announce sign-in through the subscription, like the hosted service
        self.delay = delay
        self.error = error
        self.callback = None
        self.subscription = MagicMock()
        self.signed_out = False

    async def get_session(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.session

    async def sign_in(self, email, password):
        res = MagicMock(session=object(), user=object())
        if self.notify and self.callback is not None:
            self.callback("SIGNED_IN", res.session)
        return res

    async def sign_up(self, email, password):
        return MagicMock(session=None, user=object())

    async def sign_out(self):
        self.signed_out = True

    def subscribe(self, callback):
        self.callback = callback
        return self.subscription


def make_family(family_id="f1", name="Família Silva", **overrides) -> Family:
    data = dict(
        id=family_id,
        code=f"#FAM-2024-{family_id[-1:].rjust(3, '0')}",
        name=name,
        responsible_name="Maria Silva",
        status=Status.ACTIVE,
        address="Rua das Flores, 10",
    )
    data.update(overrides)
    return Family(**data)


def make_transaction(tx_id="t1", amount=100.0, type=TransactionType.INCOME, date="2024-01-15",
                     category="Dízimos", **overrides) -> Transaction:
    return Transaction(id=tx_id, date=date, type=type, category=category, amount=amount, **overrides)


def family_row(family_id="f1", name="Família Silva", **overrides) -> dict:
    row = {
        "id": family_id,
        "code": "#FAM-2024-001",
        "name": name,
        "responsible_name": "Maria Silva",
        "avatar_url": "https://picsum.photos/seed/x/200/200",
        "status": "Active",
        "status_description": "Em análise",
        "address": "Rua das Flores, 10",
        "neighborhood": "Centro",
        "phone": "(11) 99999-0000",
        "whatsapp": None,
        "church_member": True,
        "congregation": "Sede",
        "income": "1.200,00",
        "social_class": "D",
        "professional_status": "Desempregado",
        "main_need": "Alimentação",
        "observations": None,
        "members": [],
        "history": [],
    }
    row.update(overrides)
    return row


def transaction_row(tx_id="t1", date="2024-01-15", type="Income", amount="50.5", **overrides) -> dict:
    row = {
        "id": tx_id,
        "date": date,
        "type": type,
        "category": "Ofertas",
        "amount": amount,
        "description": "Culto de domingo",
        "responsible": "Administrador",
    }
    row.update(overrides)
    return row


@pytest.fixture
def sample_families():
    """Three families with members and aid/visit history."""
    return [
        make_family(
            "f1",
            "Família Silva",
            members=[
                FamilyMember(id="m1", name="Maria", role="Mãe", age=34),
                FamilyMember(id="m2", name="Ana", role="Filha", age=6, age_type=AgeType.MONTHS),
            ],
            history=[
                HistoryRecord(id="h1", date="2024-01-20", type=HistoryType.AID, title="Cesta Básica"),
                HistoryRecord(id="h2", date="2024-01-10", type=HistoryType.VISIT, title="Visita Pastoral"),
            ],
        ),
        make_family(
            "f2",
            "Família Souza",
            responsible_name="João Souza",
            status=Status.CRITICAL,
            members=[FamilyMember(id="m3", name="Pedro", role="Filho", age=12)],
            history=[
                HistoryRecord(id="h3", date="2024-01-05", type=HistoryType.AID, title="Cesta Básica"),
                HistoryRecord(id="h4", date="2024-02-02", type=HistoryType.AID, title="Roupas"),
            ],
        ),
        make_family(
            "f3",
            "Família Lima",
            responsible_name="Carla Lima",
            status=Status.ARCHIVED,
            members=[FamilyMember(id="m4", name="Carla", role="Mãe", age=70)],
        ),
    ]


@pytest.fixture
def sample_transactions():
    return [
        make_transaction("t1", 500.0, TransactionType.INCOME, "2024-01-15", "Dízimos"),
        make_transaction("t2", 120.0, TransactionType.EXPENSE, "2024-01-20", "Ajuda Social"),
        make_transaction("t3", 80.0, TransactionType.INCOME, "2024-01-28", "Ofertas"),
        make_transaction("t4", 40.0, TransactionType.EXPENSE, "2024-02-01", "Combustível"),
        make_transaction("t5", 300.0, TransactionType.INCOME, "2023-01-15", "Dízimos"),
    ]


@pytest.fixture
def fake_remote():
    return FakeRemote(
        families=[family_row("f2", "Família Souza"), family_row("f1", "Família Alves")],
        transactions=[transaction_row("t1", "2024-01-15"), transaction_row("t2", "2024-03-01", "Expense", 20)],
    )


@pytest.fixture
def signed_in_gateway():
    return FakeGateway(session=object())
