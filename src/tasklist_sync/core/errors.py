# src/tasklist_sync/core/errors.py

from __future__ import annotations

"""
Error taxonomy shared by the core and the backends.

Backends translate transport failures into these exceptions; the core re-raises
them unchanged so the message reaches the user as-is. Nothing here is fatal:
every failure leaves the caller free to repeat the same operation.
"""


class TaskListError(Exception):
    """Base class for every error raised by tasklist_sync."""


class ValidationFailed(TaskListError):
    """Local input check failed. Never reaches the store."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class NotAuthenticated(TaskListError):
    def __init__(self, message: str = "User not logged in") -> None:
        super().__init__(message)


class StoreWriteFailed(TaskListError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class StoreSubscribeFailed(TaskListError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class SessionReloadFailed(TaskListError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class OperationTimeout(TaskListError):
    """An awaited backend call did not complete in time."""

    def __init__(self, operation: str, seconds: float | None = None) -> None:
        msg = f"{operation} timed out"
        if seconds is not None:
            msg = f"{operation} timed out after {seconds:g}s"
        super().__init__(msg)
        self.operation = operation
        self.seconds = seconds


class AuthFailed(TaskListError):
    """Login / registration rejected by the identity service."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class VerificationEmailFailed(TaskListError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ResendNotAllowed(TaskListError):
    def __init__(self, remaining_seconds: float) -> None:
        super().__init__(f"Please wait {int(remaining_seconds + 0.999)}s before resending")
        self.remaining_seconds = remaining_seconds


class VerificationRequired(TaskListError):
    def __init__(self, message: str = "Email is not verified yet") -> None:
        super().__init__(message)
