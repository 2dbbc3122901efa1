"""
store.py
In-memory application state (families, cash-flow entries, auth, theme).

Every mutation is applied locally first, then written to the hosted tables;
when the write fails the local change is compensated and the failure is
returned as an Outcome for the view to show.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import auth
from auth import AuthEvent, AuthGateway, AuthResult, AuthState
from config import settings
from db import FAMILIES_TABLE, TRANSACTIONS_TABLE, RemoteStore
from models import Family, HistoryRecord, Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> Outcome:
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> Outcome:
        return cls(ok=False, error=error)


def _map_rows(rows: list[dict], mapper: Callable[[dict], Any], kind: str) -> list:
    mapped = []
    for row in rows:
        try:
            mapped.append(mapper(row))
        except (KeyError, ValueError, TypeError) as exc:
            logger.warning("Dropping %s row %r: %s", kind, row.get("id"), exc)
    return mapped


class AppStore:
    """Single source of truth for the views; only its own methods mutate the collections."""

    def __init__(
        self,
        remote: RemoteStore,
        gateway: AuthGateway,
        session_timeout: float | None = None,
    ):
        self._remote = remote
        self._gateway = gateway
        self._session_timeout = (
            settings.session_check_timeout if session_timeout is None else session_timeout
        )
        self._families: tuple[Family, ...] = ()
        self._transactions: tuple[Transaction, ...] = ()
        self._auth_state = AuthState.UNKNOWN
        self._theme = "light"
        self._subscription = None
        self._pending: set[asyncio.Task] = set()
        self._reload_task: asyncio.Task | None = None

    # ---------- Snapshots ----------

    @property
    def families(self) -> tuple[Family, ...]:
        return self._families

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self._transactions

    @property
    def auth_state(self) -> AuthState:
        return self._auth_state

    @property
    def is_authenticated(self) -> bool:
        return self._auth_state == AuthState.AUTHENTICATED

    @property
    def theme(self) -> str:
        return self._theme

    def find_family(self, family_id: str) -> Family | None:
        return next((f for f in self._families if f.id == family_id), None)

    # ---------- Lifecycle ----------

    async def start(self) -> None:
        """Subscribe to session changes, resolve the initial session and load data."""
        self._subscription = self._gateway.subscribe(self._on_auth_change)
        event = await auth.check_session(self._gateway, self._session_timeout)
        self._transition(event)
        if self.is_authenticated:
            await self.reload()

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()

    def _transition(self, event: AuthEvent) -> None:
        new_state = auth.next_state(self._auth_state, event)
        if new_state != self._auth_state:
            logger.info("Auth state %s -> %s (%s)", self._auth_state.value, new_state.value, event.value)
        self._auth_state = new_state
        if new_state == AuthState.UNAUTHENTICATED:
            self._clear()

    def _clear(self) -> None:
        if self._reload_task is not None and not self._reload_task.done():
            self._reload_task.cancel()
        self._reload_task = None
        self._families = ()
        self._transactions = ()

    def _on_auth_change(self, event: Any, session: Any) -> None:
        if session is not None:
            self._transition(AuthEvent.SIGNED_IN)
            self._schedule_reload()
        else:
            self._transition(AuthEvent.SIGNED_OUT)

    def _schedule_reload(self) -> asyncio.Task | None:
        """Start a background reload unless one is already running."""
        if self._reload_task is not None and not self._reload_task.done():
            return self._reload_task
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Notification fired outside the event loop; nothing to run the reload on
            logger.warning("Session change outside the event loop, reload skipped.")
            return None
        task = loop.create_task(self.reload())
        self._reload_task = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _load_new_session(self) -> None:
        # The auth service usually announces the new session itself; share that reload
        task = self._reload_task or self._schedule_reload()
        if task is not None:
            # Returns normally when a sign-out cancels the reload
            await asyncio.wait({task})

    async def reload(self) -> None:
        """Replace both collections with the remote rows. Never raises."""
        try:
            rows = await self._remote.fetch_all(FAMILIES_TABLE, order="name")
        except Exception as exc:
            logger.warning("Could not load families: %s", exc)
        else:
            self._families = tuple(_map_rows(rows, Family.from_row, "family"))

        try:
            rows = await self._remote.fetch_all(TRANSACTIONS_TABLE, order="date", desc=True)
        except Exception as exc:
            logger.warning("Could not load cash-flow entries: %s", exc)
        else:
            self._transactions = tuple(_map_rows(rows, Transaction.from_row, "transaction"))

    async def reload_families(self) -> None:
        try:
            rows = await self._remote.fetch_all(FAMILIES_TABLE, order="name")
        except Exception as exc:
            logger.warning("Could not reload families: %s", exc)
            return
        self._families = tuple(_map_rows(rows, Family.from_row, "family"))

    # ---------- Auth ----------

    async def sign_in(self, email: str, password: str) -> AuthResult:
        result = await auth.sign_in(self._gateway, email, password)
        if result.ok:
            self._transition(AuthEvent.SIGNED_IN)
            await self._load_new_session()
        return result

    async def sign_up(self, email: str, password: str) -> AuthResult:
        result = await auth.sign_up(self._gateway, email, password)
        if result.ok and not result.needs_confirmation:
            self._transition(AuthEvent.SIGNED_IN)
            await self._load_new_session()
        return result

    async def sign_out(self) -> None:
        try:
            await self._gateway.sign_out()
        except Exception:
            logger.exception("Sign out failed on the auth service")
        self._transition(AuthEvent.SIGNED_OUT)

    def toggle_theme(self) -> str:
        self._theme = "dark" if self._theme == "light" else "light"
        return self._theme

    # ---------- Mutations ----------

    async def _commit(
        self,
        action: str,
        remote: Callable[[], Awaitable[None]],
        compensate: Callable[[], Awaitable[None] | None],
    ) -> Outcome:
        """Second phase of a mutation: remote write, then compensation on failure."""
        try:
            await remote()
        except Exception as exc:
            logger.exception("%s failed, reverting local change", action)
            undo = compensate()
            if undo is not None:
                await undo
            return Outcome.failure(str(exc) or exc.__class__.__name__)
        return Outcome.success()

    async def add_family(self, family: Family) -> Outcome:
        self._families = (family, *self._families)

        def compensate():
            self._families = tuple(f for f in self._families if f.id != family.id)

        return await self._commit(
            "add_family",
            lambda: self._remote.insert(FAMILIES_TABLE, family.to_row()),
            compensate,
        )

    async def update_family(self, family: Family) -> Outcome:
        self._families = tuple(family if f.id == family.id else f for f in self._families)
        # Drift after a failed update is resolved by re-reading the table
        return await self._commit(
            "update_family",
            lambda: self._remote.update(FAMILIES_TABLE, family.id, family.update_row()),
            self.reload_families,
        )

    async def remove_family(self, family_id: str) -> Outcome:
        index, removed = _find(self._families, family_id)
        self._families = tuple(f for f in self._families if f.id != family_id)

        def compensate():
            if removed is not None:
                self._families = _reinsert(self._families, index, removed)

        return await self._commit(
            "remove_family",
            lambda: self._remote.delete(FAMILIES_TABLE, family_id),
            compensate,
        )

    async def add_history_record(self, family_id: str, record: HistoryRecord) -> Outcome:
        family = self.find_family(family_id)
        if family is None:
            return Outcome.failure(f"Família {family_id} não encontrada.")

        previous = family.history
        updated = dataclasses.replace(family, history=[record, *previous])
        self._families = tuple(updated if f.id == family_id else f for f in self._families)

        def compensate():
            self._families = tuple(
                dataclasses.replace(f, history=[h for h in f.history if h.id != record.id])
                if f.id == family_id
                else f
                for f in self._families
            )

        return await self._commit(
            "add_history_record",
            lambda: self._remote.update(FAMILIES_TABLE, family_id, {"history": updated.history_payload()}),
            compensate,
        )

    async def add_transaction(self, transaction: Transaction) -> Outcome:
        self._transactions = (transaction, *self._transactions)

        def compensate():
            self._transactions = tuple(t for t in self._transactions if t.id != transaction.id)

        return await self._commit(
            "add_transaction",
            lambda: self._remote.insert(TRANSACTIONS_TABLE, transaction.to_row()),
            compensate,
        )

    async def remove_transaction(self, transaction_id: str) -> Outcome:
        index, removed = _find(self._transactions, transaction_id)
        self._transactions = tuple(t for t in self._transactions if t.id != transaction_id)

        def compensate():
            if removed is not None:
                self._transactions = _reinsert(self._transactions, index, removed)

        return await self._commit(
            "remove_transaction",
            lambda: self._remote.delete(TRANSACTIONS_TABLE, transaction_id),
            compensate,
        )


def _find(items: tuple, item_id: str) -> tuple[int, Any]:
    for i, item in enumerate(items):
        if item.id == item_id:
            return i, item
    return -1, None


def _reinsert(items: tuple, index: int, item: Any) -> tuple:
    index = min(max(index, 0), len(items))
    return (*items[:index], item, *items[index:])
