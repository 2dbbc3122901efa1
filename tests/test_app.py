"""Tests for the Streamlit views, driven through streamlit's AppTest."""

import asyncio
from datetime import date
from pathlib import Path

from streamlit.testing.v1 import AppTest

from conftest import FakeGateway, FakeRemote, family_row, transaction_row
from db import TRANSACTIONS_TABLE
from store import AppStore

APP_PATH = str(Path(__file__).resolve().parent.parent / "app.py")


def _signed_in_store(remote) -> AppStore:
    store = AppStore(remote, FakeGateway(session=object()), session_timeout=1.0)
    asyncio.run(store.start())
    return store


def _open(store, page, **state) -> AppTest:
    at = AppTest.from_file(APP_PATH, default_timeout=10)
    at.session_state["store"] = store
    at.session_state["page"] = page
    for key, value in state.items():
        at.session_state[key] = value
    at.run()
    assert not at.exception
    return at


def _ledger():
    return FakeRemote(transactions=[transaction_row("t1", date.today().isoformat())])


def test_ledger_delete_waits_for_confirmation():
    remote = _ledger()
    store = _signed_in_store(remote)
    at = _open(store, "Caixa")

    at.button(key="del_tx_t1").click().run()

    assert [t.id for t in store.transactions] == ["t1"]
    assert not [c for c in remote.calls if c[0] == "delete"]
    assert at.warning[0].value == "Excluir este lançamento permanentemente?"

    at.button(key="confirm_del_tx_t1").click().run()

    assert store.transactions == ()
    assert ("delete", TRANSACTIONS_TABLE, "t1") in remote.calls


def test_ledger_delete_can_be_cancelled():
    remote = _ledger()
    store = _signed_in_store(remote)
    at = _open(store, "Caixa")

    at.button(key="del_tx_t1").click().run()
    at.button(key="cancel_del_tx_t1").click().run()

    assert [t.id for t in store.transactions] == ["t1"]
    assert "confirm_del_tx" not in at.session_state
    assert not at.warning


def test_sidebar_leaves_family_detail_for_family_list():
    store = _signed_in_store(FakeRemote(families=[family_row("f1")]))
    at = _open(store, "Família", family_id="f1")
    nav = at.sidebar.radio[0]
    assert nav.value is None

    nav.set_value("Famílias").run()

    assert at.session_state["page"] == "Famílias"
    assert at.sidebar.radio[0].value == "Famílias"
