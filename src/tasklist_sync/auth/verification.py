# src/tasklist_sync/auth/verification.py

from __future__ import annotations

"""
Email verification flow.

Gates the task list behind a verified identity-service session:

    Unauthenticated -> LoggedInUnverified -> LoggedInVerified

Entering the unverified state sends the verification email once and starts a
resend cooldown. A failed send waives the cooldown so the user can retry at once.
Leaving the flow before verification logs the session out.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TYPE_CHECKING, TypeVar

from ..core.errors import (
    AuthFailed,
    OperationTimeout,
    ResendNotAllowed,
    SessionReloadFailed,
    TaskListError,
    VerificationRequired,
)
from ..core.ports import AuthSession
from .validation import validate_login_form, validate_signup_form

if TYPE_CHECKING:
    from ..tasks.task_sync import TaskSyncController

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RESEND_COOLDOWN_SECONDS = 60.0


class VerificationState(StrEnum):
    UNAUTHENTICATED = "Unauthenticated"
    LOGGED_IN_UNVERIFIED = "LoggedInUnverified"
    LOGGED_IN_VERIFIED = "LoggedInVerified"


class CheckOutcome(StrEnum):
    VERIFIED = "Verified"
    NOT_YET_VERIFIED = "NotYetVerified"


class EmailVerificationFlow:
    def __init__(
        self,
        session: AuthSession,
        *,
        cooldown_seconds: float = DEFAULT_RESEND_COOLDOWN_SECONDS,
        send_timeout: float = 20.0,
        reload_timeout: float = 20.0,
        clock: Callable[[], float] = time.monotonic,
        on_session_change: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        """
        on_session_change runs whenever the session identity changes (login,
        register, logout, cancel), before the new identity is used. The
        composition root wires it to TaskSyncController.reset so the previous
        owner's list is closed and cleared.
        """
        self._session = session
        self._cooldown_s = max(0.0, float(cooldown_seconds))
        self._send_timeout = float(send_timeout)
        self._reload_timeout = float(reload_timeout)
        self._clock = clock
        self._on_session_change = on_session_change

        self._state = VerificationState.UNAUTHENTICATED
        self._resend_at: float | None = None
        self._last_error: TaskListError | None = None

    # ---- state ----

    @property
    def state(self) -> VerificationState:
        return self._state

    @property
    def verified(self) -> bool:
        return self._state == VerificationState.LOGGED_IN_VERIFIED

    @property
    def last_error(self) -> TaskListError | None:
        return self._last_error

    def cooldown_remaining(self) -> float:
        if self._resend_at is None:
            return 0.0
        return max(0.0, self._resend_at - self._clock())

    @property
    def can_resend(self) -> bool:
        return self._state == VerificationState.LOGGED_IN_UNVERIFIED and self.cooldown_remaining() <= 0.0

    # ---- helpers ----

    async def _with_timeout(self, aw: Awaitable[T], operation: str, seconds: float) -> T:
        try:
            return await asyncio.wait_for(aw, timeout=seconds)
        except asyncio.TimeoutError:
            raise OperationTimeout(operation, seconds) from None

    def _start_cooldown(self) -> None:
        self._resend_at = self._clock() + self._cooldown_s

    def _waive_cooldown(self) -> None:
        self._resend_at = None

    async def _session_changed(self) -> None:
        self._state = VerificationState.UNAUTHENTICATED
        self._waive_cooldown()
        self._last_error = None
        if self._on_session_change is not None:
            await self._on_session_change()

    async def _send(self) -> None:
        logger.debug("Sending verification email to %s", self._session.current_email())
        try:
            await self._with_timeout(
                self._session.send_verification_email(),
                "verification email",
                self._send_timeout,
            )
        except TaskListError as e:
            self._last_error = e
            self._waive_cooldown()
            logger.warning("Failed to send verification email: %s", e)
            raise
        self._last_error = None
        self._start_cooldown()
        logger.info("Verification email sent to %s", self._session.current_email())

    # ---- transitions ----

    async def enter(self) -> VerificationState:
        """
        Resolve the state from the current session.

        A send failure on entry does not raise; it is kept in `last_error`
        and resend becomes available immediately.
        """
        if not self._session.is_logged_in():
            self._state = VerificationState.UNAUTHENTICATED
            self._waive_cooldown()
            return self._state

        if self._session.is_verified():
            self._state = VerificationState.LOGGED_IN_VERIFIED
            return self._state

        self._state = VerificationState.LOGGED_IN_UNVERIFIED
        # Failure is kept in last_error; _send() has already re-enabled resend.
        with contextlib.suppress(TaskListError):
            await self._send()
        return self._state

    async def check_now(self) -> CheckOutcome:
        if not self._session.is_logged_in():
            self._state = VerificationState.UNAUTHENTICATED
            raise VerificationRequired("Not logged in")

        try:
            await self._with_timeout(self._session.reload_session(), "session reload", self._reload_timeout)
        except SessionReloadFailed as e:
            self._last_error = e
            logger.warning("Error checking verification: %s", e.reason)
            raise
        except OperationTimeout as e:
            self._last_error = e
            raise

        if self._session.is_verified():
            self._state = VerificationState.LOGGED_IN_VERIFIED
            self._waive_cooldown()
            logger.info("Email verified for %s", self._session.current_email())
            return CheckOutcome.VERIFIED

        self._state = VerificationState.LOGGED_IN_UNVERIFIED
        logger.debug("Email not verified yet")
        return CheckOutcome.NOT_YET_VERIFIED

    async def resend(self) -> None:
        if self._state != VerificationState.LOGGED_IN_UNVERIFIED:
            raise VerificationRequired(f"Resend is not available in state {self._state.value}")
        remaining = self.cooldown_remaining()
        if remaining > 0.0:
            raise ResendNotAllowed(remaining)
        # Block double-clicks while the request is in flight.
        self._start_cooldown()
        await self._send()

    async def cancel(self) -> None:
        """User backed out of verification: the session is forfeited."""
        if self._state != VerificationState.LOGGED_IN_VERIFIED:
            self._session.logout()
            logger.info("Verification cancelled; logged out")
        await self._session_changed()

    async def logout(self) -> None:
        await self._session_changed()
        if self._session.is_logged_in():
            self._session.logout()
            logger.info("Logged out")

    async def hand_off(self, controller: TaskSyncController) -> None:
        """Start the task subscription for the verified owner."""
        if self._state != VerificationState.LOGGED_IN_VERIFIED:
            raise VerificationRequired()
        await controller.start(self._session.current_user_id())

    # ---- entry points ----

    async def login(self, email: str, password: str) -> VerificationState:
        validate_login_form(email, password).raise_for_failure()
        await self._session.login(email.strip(), password.strip())
        await self._session_changed()
        try:
            await self._with_timeout(self._session.reload_session(), "session reload", self._reload_timeout)
        except (SessionReloadFailed, OperationTimeout) as e:
            # Logged in but verification status unknown; the flags from login still apply.
            logger.warning("Error checking verification status: %s", e)
        return await self.enter()

    async def register(
        self,
        email: str,
        password: str,
        username: str,
        confirm_password: str | None = None,
    ) -> VerificationState:
        if confirm_password is None:
            confirm_password = password
        validate_signup_form(username, email, password, confirm_password).raise_for_failure()
        try:
            await self._session.register(email.strip(), password.strip(), username.strip())
        except AuthFailed as e:
            logger.warning("Signup failed: %s", e.reason)
            raise
        await self._session_changed()
        return await self.enter()
