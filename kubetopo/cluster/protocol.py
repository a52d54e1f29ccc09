"""Minimal cluster interface consumed by discovery and impact rules."""

from __future__ import annotations

from typing import Any, Protocol


class ClusterReader(Protocol):
    """Read-only access to cluster objects as plain camelCase dicts.

    ``get`` raises ``NotFoundError`` when the object does not exist and
    ``ClusterAccessError`` for every other failure, so callers can tell the
    two apart.
    """

    async def get(self, kind: str, name: str, namespace: str | None = None) -> dict[str, Any]: ...

    async def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> list[dict[str, Any]]: ...

    def default_namespace(self) -> str | None: ...
