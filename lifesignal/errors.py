"""
Error taxonomy for LifeSignal.

Every remote call (document store, relationship functions, notifications)
surfaces one of these. `AlreadyExists` is informational: callers show it as
a friendly notice, never as an error.

File: errors.py
Created: 2026-10-12
Last Modified: 2026-10-19
"""

import asyncio
import logging
import sqlite3
from enum import Enum
from typing import Optional

from pydantic import ValidationError

log = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    INVALID_ARGUMENT = "invalid_argument"
    PERMISSION_DENIED = "permission_denied"
    NETWORK_ERROR = "network_error"
    SERVER_ERROR = "server_error"


class LifeSignalError(Exception):
    """Base class for all errors raised by the core."""

    kind: ErrorKind = ErrorKind.SERVER_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    @property
    def is_informational(self) -> bool:
        return False

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class Unauthenticated(LifeSignalError):
    kind = ErrorKind.UNAUTHENTICATED


class NotFound(LifeSignalError):
    kind = ErrorKind.NOT_FOUND


class AlreadyExists(LifeSignalError):
    """The relationship is already present. Not a failure."""

    kind = ErrorKind.ALREADY_EXISTS

    @property
    def is_informational(self) -> bool:
        return True


class InvalidArgument(LifeSignalError):
    kind = ErrorKind.INVALID_ARGUMENT


class PermissionDenied(LifeSignalError):
    kind = ErrorKind.PERMISSION_DENIED


class NetworkError(LifeSignalError):
    kind = ErrorKind.NETWORK_ERROR


class Timeout(NetworkError):
    """A one-shot call exceeded its caller-supplied timeout."""


class ServerError(LifeSignalError):
    kind = ErrorKind.SERVER_ERROR


def from_exception(exc: BaseException, context: Optional[str] = None) -> LifeSignalError:
    """
    Map an arbitrary exception onto the error taxonomy.

    Args:
        exc: The raised exception
        context: Optional operation name prefixed to the message

    Returns:
        A LifeSignalError (the same instance if exc already is one)
    """
    if isinstance(exc, LifeSignalError):
        return exc

    prefix = f"{context}: " if context else ""

    if isinstance(exc, asyncio.TimeoutError):
        return Timeout(f"{prefix}request timed out")
    if isinstance(exc, sqlite3.OperationalError):
        # Lock wait ran out: the call hit its timeout
        if "locked" in str(exc) or "busy" in str(exc):
            return Timeout(f"{prefix}request timed out ({exc})")
        return NetworkError(f"{prefix}{exc}")
    if isinstance(exc, (ConnectionError, OSError)) and not isinstance(exc, PermissionError):
        return NetworkError(f"{prefix}{exc}")
    if isinstance(exc, PermissionError):
        return PermissionDenied(f"{prefix}{exc}")
    if isinstance(exc, ValidationError):
        return InvalidArgument(f"{prefix}{exc.error_count()} invalid field(s): {exc.errors()[0]['msg']}")
    if isinstance(exc, (ValueError, TypeError)):
        return InvalidArgument(f"{prefix}{exc}")

    log.debug(f"Unmapped exception {type(exc).__name__} treated as server error")
    return ServerError(f"{prefix}{exc}")


def user_message(error: BaseException) -> str:
    """Render an error for display. AlreadyExists gets a friendly notice."""
    mapped = from_exception(error)
    if isinstance(mapped, AlreadyExists):
        return "This person is already in your contacts."
    if isinstance(mapped, Unauthenticated):
        return "You need to sign in first."
    return mapped.message or mapped.kind.value.replace("_", " ")


__all__ = [
    "ErrorKind",
    "LifeSignalError",
    "Unauthenticated",
    "NotFound",
    "AlreadyExists",
    "InvalidArgument",
    "PermissionDenied",
    "NetworkError",
    "Timeout",
    "ServerError",
    "from_exception",
    "user_message",
]
