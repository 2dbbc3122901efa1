"""Tests for the background event loop runner and settings."""

import asyncio

import pytest

from conftest import FakeGateway, FakeRemote
from config import Settings
from runtime import LoopRunner
from store import AppStore


@pytest.fixture
def runner():
    r = LoopRunner(name="test-loop")
    yield r
    r.stop()


def test_run_returns_coroutine_result(runner):
    async def add(a, b):
        await asyncio.sleep(0)
        return a + b

    assert runner.run(add(2, 3), timeout=2) == 5


def test_run_propagates_exceptions(runner):
    async def fail():
        raise ValueError("bad input")

    with pytest.raises(ValueError, match="bad input"):
        runner.run(fail(), timeout=2)


def test_loop_state_survives_between_calls(runner):
    async def current_loop():
        return asyncio.get_running_loop()

    assert runner.run(current_loop()) is runner.run(current_loop())


def test_stop_ends_thread():
    r = LoopRunner(name="short-loop")
    assert r.is_running
    r.stop()
    assert not r.is_running
    r.stop()  # second stop is a no-op


def test_stop_runs_closers_on_the_loop_first():
    r = LoopRunner(name="closing-loop")
    seen = []

    async def close():
        seen.append(asyncio.get_running_loop().is_running())

    async def broken():
        raise RuntimeError("already gone")

    r.add_closer(broken)
    r.add_closer(close)
    r.stop()
    assert seen == [True]
    assert not r.is_running


def test_stop_closes_session_store():
    r = LoopRunner(name="store-loop")
    gateway = FakeGateway(session=object())
    store = AppStore(FakeRemote(), gateway, session_timeout=1.0)
    r.run(store.start(), timeout=2)
    r.add_closer(store.close)

    r.stop()

    gateway.subscription.unsubscribe.assert_called_once()


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("SESSION_CHECK_TIMEOUT", raising=False)
    s = Settings(_env_file=None, supabase_url="", supabase_key="")
    assert s.session_check_timeout == 4.0
    assert s.operator_name == "Administrador"
    assert not s.is_configured


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("SESSION_CHECK_TIMEOUT", "1.5")
    monkeypatch.setenv("OPERATOR_NAME", "Pr. João")
    s = Settings(_env_file=None)
    assert s.session_check_timeout == 1.5
    assert s.operator_name == "Pr. João"
    assert s.is_configured
