# Overview: Discriminated success/failure result returned by mutating operations.

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Any, Union

from ..errors import LedgerError
from ..extensions import db


@dataclass(frozen=True)
class Success:
    value: Any = None
    ok: bool = True


@dataclass(frozen=True)
class Failure:
    kind: str
    message: str
    ok: bool = False

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


Result = Union[Success, Failure]


def returns_result(func):
    """
    Wrap a mutating service operation so it always returns a Result.

    A LedgerError raised anywhere inside rolls the session back before the
    Failure is built, so callers never observe a partially applied change.
    Anything else (bugs, outages after retries) propagates.
    """
    @wraps(func)
    def wrapper(*args, **kwargs) -> Result:
        try:
            return Success(func(*args, **kwargs))
        except LedgerError as exc:
            db.session.rollback()
            return Failure(kind=exc.kind, message=str(exc))
    return wrapper
