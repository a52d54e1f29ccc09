"""Service host normalisation for Istio destinations.

A destination host may be written as ``reviews``, ``reviews.default``,
``reviews.default.svc`` or ``reviews.default.svc.cluster.local``; all of
them name the same Service when it lives in ``default``.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

DEFAULT_CLUSTER_DOMAIN = "cluster.local"

_ROUTE_PROTOCOLS = ("http", "tcp", "tls")


def service_fqdn(name: str, namespace: str, domain: str = DEFAULT_CLUSTER_DOMAIN) -> str:
    return f"{name}.{namespace}.svc.{domain}"


def service_host_candidates(name: str, namespace: str, domain: str = DEFAULT_CLUSTER_DOMAIN) -> frozenset[str]:
    """Every spelling that addresses Service *name* in *namespace*."""
    return frozenset(
        {
            name,
            f"{name}.{namespace}",
            f"{name}.{namespace}.svc",
            service_fqdn(name, namespace, domain),
        }
    )


def host_matches_service(host: str, name: str, namespace: str, domain: str = DEFAULT_CLUSTER_DOMAIN) -> bool:
    return host == name or host.startswith(f"{name}.") or host == service_fqdn(name, namespace, domain)


def service_for_host(host: str, default_namespace: str, domain: str = DEFAULT_CLUSTER_DOMAIN) -> tuple[str, str] | None:
    """``(service, namespace)`` when *host* can only be an in-cluster Service.

    A short name lives in *default_namespace*; ``name.ns.svc`` and
    ``name.ns.svc.<domain>`` carry their namespace. Any other dotted host
    may be an external name (``httpbin.org``) and yields None.
    """
    parts = host.split(".")
    if not all(parts):
        return None
    if len(parts) == 1:
        return host, default_namespace
    if len(parts) >= 3 and parts[2] == "svc" and (len(parts) == 3 or ".".join(parts[3:]) == domain):
        return parts[0], parts[1]
    return None


def namespaced_host_guess(host: str) -> tuple[str, str] | None:
    """``(name, ns)`` for a two-label host that might be ``name.ns``.

    ``reviews.shop`` and ``httpbin.org`` look alike; callers confirm the
    Service exists before trusting the guess.
    """
    parts = host.split(".")
    if len(parts) == 2 and all(parts):
        return parts[0], parts[1]
    return None


def find_destination_rule(
    destination_rules: list[dict[str, Any]],
    destination_host: str,
    service: str,
    namespace: str,
    domain: str = DEFAULT_CLUSTER_DOMAIN,
) -> dict[str, Any] | None:
    """First DestinationRule whose ``spec.host`` addresses the destination.

    Matching is exact equality against every known spelling of the Service
    plus the host as the VirtualService wrote it, so a short-form rule
    matches an FQDN route and vice versa.
    """
    candidates = service_host_candidates(service, namespace, domain) | {destination_host}
    for dr in destination_rules:
        host = (dr.get("spec") or {}).get("host")
        if host and str(host) in candidates:
            return dr
    return None


def iter_route_destinations(vs_spec: dict[str, Any]) -> Iterator[tuple[str, dict[str, Any], Any]]:
    """Yield ``(protocol, destination, weight)`` for every http/tcp/tls route."""
    for protocol in _ROUTE_PROTOCOLS:
        for block in vs_spec.get(protocol) or []:
            for route in (block or {}).get("route") or []:
                destination = (route or {}).get("destination") or {}
                if destination.get("host"):
                    yield protocol, destination, route.get("weight")


def parse_gateway_ref(ref: str, default_namespace: str) -> tuple[str, str] | None:
    """Split ``ns/name`` or ``name`` gateway references; ``mesh`` is not a gateway."""
    if not ref or ref == "mesh":
        return None
    if "/" in ref:
        ns, _, name = ref.partition("/")
        return name, ns or default_namespace
    return ref, default_namespace
