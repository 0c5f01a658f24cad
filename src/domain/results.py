"""
Typed operation results.

Every public AccountLifecycle operation returns either Ok[T] or Failure.
Business-rule failures never escape as exceptions; the transport layer
maps Failure.error to a user-facing response.
"""

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from .exceptions import ErrorKind, LifecycleError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """
    Successful outcome.

    warnings carries non-fatal problems (e.g. a notification that could
    not be delivered after the account mutation committed).
    """

    value: T
    warnings: tuple[str, ...] = ()
    ok: Literal[True] = True


@dataclass(frozen=True)
class Failure:
    """Failed outcome with a discriminating ErrorKind and a detail message."""

    error: ErrorKind
    detail: str
    ok: Literal[False] = False

    @classmethod
    def from_error(cls, exc: LifecycleError) -> "Failure":
        return cls(error=exc.kind, detail=str(exc))


Result = Ok[T] | Failure
