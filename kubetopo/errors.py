"""Exception hierarchy shared by the cluster reader and the query facades."""

from __future__ import annotations


class KubeTopoError(Exception):
    """Base class for every error raised by kubetopo."""


class InvalidTargetError(KubeTopoError):
    """Raised before any cluster call when a query target is ill-formed."""

    def __init__(self, message: str, code: str = "INVALID_TARGET") -> None:
        super().__init__(message)
        self.code = code


class NotFoundError(KubeTopoError):
    """The requested object does not exist in the cluster."""

    def __init__(self, kind: str, name: str, namespace: str | None = None) -> None:
        where = f" in namespace {namespace}" if namespace else ""
        super().__init__(f"{kind} {name} not found{where}")
        self.kind = kind
        self.name = name
        self.namespace = namespace


class StartObjectNotFoundError(NotFoundError):
    """The start object of a traffic query does not exist."""


class ClusterAccessError(KubeTopoError):
    """Any cluster failure other than not-found (RBAC, timeout, transport)."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
