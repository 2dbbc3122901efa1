"""
auth.py
Authentication against the hosted auth service (session check with a
failsafe timeout, sign in / sign up / sign out, error messages).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from exceptions import AuthError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthState(str, Enum):
    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class AuthEvent(str, Enum):
    SESSION_FOUND = "session_found"
    NO_SESSION = "no_session"
    CHECK_TIMED_OUT = "check_timed_out"
    CHECK_FAILED = "check_failed"
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"


# Pairs not listed leave the state unchanged
TRANSITIONS = {
    (AuthState.UNKNOWN, AuthEvent.SESSION_FOUND): AuthState.AUTHENTICATED,
    (AuthState.UNKNOWN, AuthEvent.SIGNED_IN): AuthState.AUTHENTICATED,
    (AuthState.UNKNOWN, AuthEvent.NO_SESSION): AuthState.UNAUTHENTICATED,
    (AuthState.UNKNOWN, AuthEvent.CHECK_TIMED_OUT): AuthState.UNAUTHENTICATED,
    (AuthState.UNKNOWN, AuthEvent.CHECK_FAILED): AuthState.UNAUTHENTICATED,
    (AuthState.UNKNOWN, AuthEvent.SIGNED_OUT): AuthState.UNAUTHENTICATED,
    (AuthState.AUTHENTICATED, AuthEvent.SIGNED_OUT): AuthState.UNAUTHENTICATED,
    (AuthState.AUTHENTICATED, AuthEvent.NO_SESSION): AuthState.UNAUTHENTICATED,
    (AuthState.UNAUTHENTICATED, AuthEvent.SIGNED_IN): AuthState.AUTHENTICATED,
    (AuthState.UNAUTHENTICATED, AuthEvent.SESSION_FOUND): AuthState.AUTHENTICATED,
}


def next_state(state: AuthState, event: AuthEvent) -> AuthState:
    return TRANSITIONS.get((state, event), state)


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    error: str | None = None
    needs_confirmation: bool = False  # sign-up accepted, e-mail confirmation pending


def translate_auth_error(message: str) -> str:
    """Map known auth service messages to user-facing Portuguese text."""
    if "Invalid login credentials" in message:
        return "E-mail ou senha incorretos."
    if "User already registered" in message:
        return "Este e-mail já está cadastrado."
    if "Password should be at least" in message:
        return f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres."
    return "Erro na autenticação: " + message


class AuthGateway:
    """Thin wrapper over the Supabase auth client."""

    def __init__(self, client: Any):
        self._auth = client.auth

    async def get_session(self):
        return await self._auth.get_session()

    async def sign_in(self, email: str, password: str):
        try:
            return await self._auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            raise AuthError(getattr(exc, "message", None) or str(exc)) from exc

    async def sign_up(self, email: str, password: str):
        try:
            return await self._auth.sign_up({"email": email, "password": password})
        except Exception as exc:
            raise AuthError(getattr(exc, "message", None) or str(exc)) from exc

    async def sign_out(self) -> None:
        await self._auth.sign_out()

    def subscribe(self, callback: Callable[[Any, Any], None]):
        """Register for session-change events; returns an object with unsubscribe()."""
        return self._auth.on_auth_state_change(callback)


async def check_session(gateway: AuthGateway, timeout: float) -> AuthEvent:
    """
    Race the initial session check against a timer.

    Whichever finishes first decides; the other task is cancelled. A check
    that is still pending when the timer fires counts as "no session" so the
    UI is never left waiting on a slow network.
    """
    check = asyncio.ensure_future(gateway.get_session())
    timer = asyncio.ensure_future(asyncio.sleep(timeout))
    try:
        done, _ = await asyncio.wait({check, timer}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (check, timer):
            if not task.done():
                task.cancel()

    if check not in done:
        logger.warning("Session check did not answer in %.1fs, assuming signed out.", timeout)
        return AuthEvent.CHECK_TIMED_OUT

    exc = check.exception()
    if exc is not None:
        logger.error("Session check failed: %s", exc)
        return AuthEvent.CHECK_FAILED
    return AuthEvent.SESSION_FOUND if check.result() else AuthEvent.NO_SESSION


async def sign_in(gateway: AuthGateway, email: str, password: str) -> AuthResult:
    try:
        res = await gateway.sign_in(email.strip(), password)
    except AuthError as exc:
        return AuthResult(ok=False, error=translate_auth_error(str(exc)))
    except Exception:
        logger.exception("Unexpected error while signing in")
        return AuthResult(ok=False, error="Ocorreu um erro inesperado. Tente novamente.")
    if getattr(res, "session", None) is None:
        return AuthResult(ok=False, error=translate_auth_error("no session returned"))
    return AuthResult(ok=True)


async def sign_up(gateway: AuthGateway, email: str, password: str) -> AuthResult:
    if len(password) < MIN_PASSWORD_LENGTH:
        return AuthResult(ok=False, error=translate_auth_error("Password should be at least 6 characters"))
    try:
        res = await gateway.sign_up(email.strip(), password)
    except AuthError as exc:
        return AuthResult(ok=False, error=translate_auth_error(str(exc)))
    except Exception:
        logger.exception("Unexpected error while signing up")
        return AuthResult(ok=False, error="Ocorreu um erro inesperado. Tente novamente.")
    if getattr(res, "session", None) is None and getattr(res, "user", None) is not None:
        return AuthResult(ok=True, needs_confirmation=True)
    return AuthResult(ok=True)
