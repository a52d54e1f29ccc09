"""Best-effort lookups that record a note instead of raising."""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

from kubetopo.errors import ClusterAccessError, NotFoundError
from kubetopo.observability.logging import get_logger

_logger = get_logger("cluster.lookup")

T = TypeVar("T")


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Outcome of an auxiliary lookup: either ``value`` or a ``note``."""

    value: T
    note: str | None = None
    not_found: bool = False

    @property
    def ok(self) -> bool:
        return self.note is None


async def best_effort(call: Awaitable[T], what: str, fallback: T) -> Lookup[T]:
    """Await *call*; on a cluster failure return *fallback* with a note.

    Only ``NotFoundError`` and ``ClusterAccessError`` are absorbed. Anything
    else is a programming error and propagates.
    """
    try:
        return Lookup(value=await call)
    except NotFoundError as exc:
        _logger.debug("lookup_not_found", what=what, error=str(exc))
        return Lookup(value=fallback, note=f"{what}: {exc}", not_found=True)
    except ClusterAccessError as exc:
        _logger.warning("lookup_failed", what=what, error=str(exc), status=exc.status)
        return Lookup(value=fallback, note=f"{what} failed: {exc}")
