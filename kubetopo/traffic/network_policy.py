"""Best-effort NetworkPolicy evaluation for ingress into a destination pod.

Only ``matchLabels`` selectors are evaluated. ``matchExpressions`` and
``ipBlock`` peers are reported in ``unsupported`` and, when nothing else
decides the outcome, make the verdict ``incomplete``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from kubetopo.cluster.lookup import best_effort
from kubetopo.cluster.protocol import ClusterReader
from kubetopo.models.network import NetworkPolicyEvaluation, NetworkPolicyFinding, PolicyVerdict
from kubetopo.observability.logging import get_logger
from kubetopo.selectors import has_match_expressions, match_labels_of, selects_all

_logger = get_logger("traffic.network_policy")


@dataclass(frozen=True)
class _Source:
    pod: str
    namespace: str
    pod_labels: dict[str, str] | None  # None: could not be read
    namespace_labels: dict[str, str] | None


def _labels(obj: dict[str, Any] | None) -> dict[str, str] | None:
    if obj is None:
        return None
    return dict((obj.get("metadata") or {}).get("labels") or {})


def port_allowed(ports: list[dict[str, Any]] | None, dest_port: int) -> bool:
    """Numeric ports must match exactly (or fall in ``endPort``); named ports match."""
    if not ports:
        return True
    for p in ports:
        port = (p or {}).get("port")
        if port is None or isinstance(port, str):
            return True
        end = p.get("endPort")
        if port == dest_port or (isinstance(end, int) and port <= dest_port <= end):
            return True
    return False


def _peer_matches(
    peer: dict[str, Any],
    policy_namespace: str,
    source: _Source,
    unsupported: list[str],
) -> tuple[bool | None, str]:
    """Match one ``from`` entry; ``None`` means it could not be evaluated."""
    if peer.get("ipBlock") is not None:
        unsupported.append("ipBlock")
        return None, ""

    pod_sel = peer.get("podSelector")
    ns_sel = peer.get("namespaceSelector")
    for label, sel in (("podSelector", pod_sel), ("namespaceSelector", ns_sel)):
        if has_match_expressions(sel):
            unsupported.append(f"{label}.matchExpressions")
            return None, ""

    if pod_sel is not None and ns_sel is not None:
        if source.pod_labels is None or source.namespace_labels is None:
            return None, ""
        ok = selects_all(source.namespace_labels, match_labels_of(ns_sel)) and selects_all(
            source.pod_labels, match_labels_of(pod_sel)
        )
        return ok, "ALLOW: ingress rule matches both namespaceSelector and podSelector."

    if ns_sel is not None:
        if source.namespace_labels is None:
            return None, ""
        ok = selects_all(source.namespace_labels, match_labels_of(ns_sel))
        return ok, "ALLOW: ingress rule matches source namespaceSelector."

    if pod_sel is not None:
        # A bare podSelector only admits pods from the policy's own namespace.
        if source.namespace != policy_namespace:
            return False, ""
        if source.pod_labels is None:
            return None, ""
        ok = selects_all(source.pod_labels, match_labels_of(pod_sel))
        return ok, "ALLOW: ingress rule matches source podSelector."

    return False, ""


def evaluate_policy(
    policy: dict[str, Any],
    source: _Source | None,
    dest_port: int | None,
) -> NetworkPolicyFinding:
    meta = policy.get("metadata") or {}
    spec = policy.get("spec") or {}
    name = str(meta.get("name") or "")
    policy_ns = str(meta.get("namespace") or "")
    policy_types = [str(t) for t in spec.get("policyTypes") or []]
    rules = spec.get("ingress")
    unsupported: list[str] = []
    if has_match_expressions(spec.get("podSelector")):
        unsupported.append("podSelector.matchExpressions")

    # The API server omits empty lists, so a missing ingress list is zero rules.
    has_ingress_type = "Ingress" in policy_types or rules is not None
    deny_all = has_ingress_type and not rules

    def _finding(verdict: PolicyVerdict, note: str, allow: bool | None = None) -> NetworkPolicyFinding:
        return NetworkPolicyFinding(
            policy=name,
            policy_types=policy_types,
            deny_all_ingress=deny_all,
            restricts_ingress=has_ingress_type,
            verdict=verdict,
            note=note,
            allow_from_source=allow,
            unsupported=sorted(set(unsupported)),
        )

    if not has_ingress_type:
        return _finding(PolicyVerdict.NOT_EVALUATED, "Policy does not restrict ingress.")
    if deny_all:
        note = "DENY: policy has Ingress with empty rules (deny-all ingress)."
        return _finding(PolicyVerdict.DENIED, note, allow=False if source else None)
    if source is None:
        return _finding(PolicyVerdict.NOT_EVALUATED, "NetworkPolicy selects destination pod; no source given.")

    incomplete = False
    for rule in rules:
        rule = rule or {}
        if dest_port is not None and not port_allowed(rule.get("ports"), dest_port):
            continue
        peers = rule.get("from") or []
        if not peers:
            return _finding(
                PolicyVerdict.ALLOWED,
                "ALLOW: ingress rule allows all sources (no 'from' restrictions).",
                allow=True,
            )
        for peer in peers:
            matched, note = _peer_matches(peer or {}, policy_ns, source, unsupported)
            if matched:
                return _finding(PolicyVerdict.ALLOWED, note, allow=True)
            if matched is None:
                incomplete = True

    if incomplete:
        return _finding(
            PolicyVerdict.INCOMPLETE,
            "Cannot fully evaluate: some ingress peers use selectors or sources that are not evaluated.",
        )
    return _finding(
        PolicyVerdict.DENIED,
        "POTENTIAL DENY: no ingress rule matched source pod/namespace (may block traffic).",
        allow=False,
    )


def _combine(findings: list[NetworkPolicyFinding], has_source: bool) -> tuple[PolicyVerdict, str]:
    restricting = [f for f in findings if f.restricts_ingress]
    if not restricting:
        return PolicyVerdict.NOT_EVALUATED, "No NetworkPolicy restricts ingress to this pod; traffic is allowed by default."
    if not has_source:
        if all(f.deny_all_ingress for f in restricting):
            return PolicyVerdict.DENIED, "All selecting policies deny every ingress source."
        return PolicyVerdict.NOT_EVALUATED, "Policies select this pod; give a source pod to evaluate them."
    verdicts = {f.verdict for f in restricting}
    if PolicyVerdict.ALLOWED in verdicts:
        return PolicyVerdict.ALLOWED, "At least one selecting policy admits the source."
    if PolicyVerdict.INCOMPLETE in verdicts:
        return PolicyVerdict.INCOMPLETE, "No policy clearly admits the source; some could not be fully evaluated."
    return PolicyVerdict.DENIED, "No selecting policy admits the source."


async def evaluate_network_policies(
    cluster: ClusterReader,
    namespace: str,
    dest_pod: dict[str, Any],
    source_pod_name: str | None = None,
    source_namespace: str | None = None,
    dest_port: int | None = None,
    max_policies: int = 20,
) -> NetworkPolicyEvaluation:
    """Evaluate the policies in *namespace* that select *dest_pod*. Never raises.

    Rule ``ports`` are checked only when *dest_port* is given; without it
    every rule is considered regardless of its port list.
    """
    pod_name = str((dest_pod.get("metadata") or {}).get("name") or "")
    dest_labels = _labels(dest_pod) or {}
    notes: list[str] = []

    source: _Source | None = None
    if source_pod_name:
        src_ns = source_namespace or namespace
        pod_lookup, ns_lookup = await asyncio.gather(
            best_effort(cluster.get("Pod", source_pod_name, src_ns), f"Source Pod {source_pod_name} lookup", None),
            best_effort(cluster.get("Namespace", src_ns), f"Namespace {src_ns} lookup", None),
        )
        notes.extend(n for n in (pod_lookup.note, ns_lookup.note) if n)
        source = _Source(
            pod=source_pod_name,
            namespace=src_ns,
            pod_labels=_labels(pod_lookup.value),
            namespace_labels=_labels(ns_lookup.value),
        )

    source_label = f"{source.namespace}/{source.pod}" if source else None
    policies = await best_effort(
        cluster.list("NetworkPolicy", namespace),
        f"NetworkPolicy lookup in namespace {namespace}",
        [],
    )
    if policies.note:
        notes.append(policies.note)
        return NetworkPolicyEvaluation(
            pod=pod_name,
            namespace=namespace,
            verdict=PolicyVerdict.INCOMPLETE,
            summary="NetworkPolicies could not be listed; ingress cannot be evaluated.",
            source=source_label,
            notes=notes,
        )

    if len(policies.value) > max_policies:
        notes.append(f"Only the first {max_policies} of {len(policies.value)} NetworkPolicies were evaluated.")

    findings = []
    for policy in policies.value[:max_policies]:
        selector = (policy.get("spec") or {}).get("podSelector")
        if not selects_all(dest_labels, match_labels_of(selector)):
            continue
        findings.append(evaluate_policy(policy, source, dest_port))

    verdict, summary = _combine(findings, source is not None)
    _logger.debug("network_policies_evaluated", pod=pod_name, namespace=namespace, verdict=verdict, findings=len(findings))
    return NetworkPolicyEvaluation(
        pod=pod_name,
        namespace=namespace,
        verdict=verdict,
        summary=summary,
        source=source_label,
        findings=findings,
        notes=notes,
    )
