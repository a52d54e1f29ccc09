"""Tests for best-effort NetworkPolicy evaluation."""

from __future__ import annotations

import pytest
from kube_fakes import FakeCluster, make_namespace, make_network_policy, make_pod

from kubetopo.models.network import PolicyVerdict
from kubetopo.traffic.network_policy import evaluate_network_policies, port_allowed

_DEST = make_pod("api-1", "shop", labels={"app": "api"})


def _cluster(*policies, extra=()) -> FakeCluster:
    return FakeCluster(
        _DEST,
        make_pod("web-1", "shop", labels={"app": "web"}),
        make_pod("batch-1", "jobs", labels={"app": "batch"}),
        make_namespace("shop", {"team": "shop"}),
        make_namespace("jobs", {"team": "data"}),
        *policies,
        *extra,
    )


class TestPortAllowed:
    @pytest.mark.parametrize(
        ("ports", "dest", "expected"),
        [
            (None, 80, True),
            ([], 80, True),
            ([{"port": 80}], 80, True),
            ([{"port": 443}], 80, False),
            ([{"port": "http"}], 80, True),
            ([{"protocol": "TCP"}], 80, True),
            ([{"port": 8000, "endPort": 9000}], 8080, True),
            ([{"port": 8000, "endPort": 9000}], 9001, False),
        ],
    )
    def test_port_allowed(self, ports, dest: int, expected: bool) -> None:
        assert port_allowed(ports, dest) is expected


class TestEvaluateNetworkPolicies:
    async def test_no_policy_is_not_evaluated(self) -> None:
        ev = await evaluate_network_policies(_cluster(), "shop", _DEST)
        assert ev.verdict == PolicyVerdict.NOT_EVALUATED
        assert ev.findings == []
        assert "allowed by default" in ev.summary

    async def test_policy_not_selecting_pod_is_ignored(self) -> None:
        policy = make_network_policy("db-only", "shop", {"app": "db"}, ingress=[], policy_types=["Ingress"])
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST)
        assert ev.verdict == PolicyVerdict.NOT_EVALUATED
        assert ev.findings == []

    async def test_deny_all_with_source(self) -> None:
        policy = make_network_policy("deny-all", "shop", None, ingress=[], policy_types=["Ingress"])
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST, source_pod_name="web-1")
        assert ev.verdict == PolicyVerdict.DENIED
        [finding] = ev.findings
        assert finding.deny_all_ingress is True
        assert finding.allow_from_source is False
        assert ev.source == "shop/web-1"

    async def test_deny_all_without_ingress_key(self) -> None:
        policy = make_network_policy("deny-all", "shop", None, policy_types=["Ingress"])
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST)
        assert ev.findings[0].deny_all_ingress is True
        assert ev.verdict == PolicyVerdict.DENIED

    async def test_egress_only_policy_does_not_restrict_ingress(self) -> None:
        policy = make_network_policy("egress", "shop", None, policy_types=["Egress"])
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST, source_pod_name="web-1")
        assert ev.findings[0].deny_all_ingress is False
        assert ev.verdict == PolicyVerdict.NOT_EVALUATED

    async def test_selecting_policy_without_source(self) -> None:
        policy = make_network_policy(
            "from-web", "shop", {"app": "api"}, ingress=[{"from": [{"podSelector": {"matchLabels": {"app": "web"}}}]}]
        )
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST)
        assert ev.verdict == PolicyVerdict.NOT_EVALUATED
        assert ev.findings[0].allow_from_source is None

    async def test_pod_selector_allows_same_namespace_source(self) -> None:
        policy = make_network_policy(
            "from-web", "shop", {"app": "api"}, ingress=[{"from": [{"podSelector": {"matchLabels": {"app": "web"}}}]}]
        )
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST, source_pod_name="web-1")
        assert ev.verdict == PolicyVerdict.ALLOWED
        assert ev.findings[0].allow_from_source is True

    async def test_pod_selector_does_not_admit_other_namespace(self) -> None:
        policy = make_network_policy(
            "from-batch", "shop", {"app": "api"}, ingress=[{"from": [{"podSelector": {"matchLabels": {"app": "batch"}}}]}]
        )
        ev = await evaluate_network_policies(
            _cluster(policy), "shop", _DEST, source_pod_name="batch-1", source_namespace="jobs"
        )
        assert ev.verdict == PolicyVerdict.DENIED
        assert "POTENTIAL DENY" in ev.findings[0].note

    async def test_namespace_and_pod_selector_combined(self) -> None:
        peer = {
            "namespaceSelector": {"matchLabels": {"team": "data"}},
            "podSelector": {"matchLabels": {"app": "batch"}},
        }
        policy = make_network_policy("from-data", "shop", {"app": "api"}, ingress=[{"from": [peer]}])
        allowed = await evaluate_network_policies(
            _cluster(policy), "shop", _DEST, source_pod_name="batch-1", source_namespace="jobs"
        )
        assert allowed.verdict == PolicyVerdict.ALLOWED

        denied = await evaluate_network_policies(_cluster(policy), "shop", _DEST, source_pod_name="web-1")
        assert denied.verdict == PolicyVerdict.DENIED

    async def test_rule_without_from_allows_everyone(self) -> None:
        policy = make_network_policy("open", "shop", {"app": "api"}, ingress=[{"ports": [{"port": 8080}]}])
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST, source_pod_name="web-1")
        assert ev.verdict == PolicyVerdict.ALLOWED

    async def test_port_mismatch_skips_rule(self) -> None:
        policy = make_network_policy("open-443", "shop", {"app": "api"}, ingress=[{"ports": [{"port": 443}]}])
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST, source_pod_name="web-1", dest_port=80)
        assert ev.verdict == PolicyVerdict.DENIED

    async def test_match_expressions_make_it_incomplete(self) -> None:
        peer = {"podSelector": {"matchExpressions": [{"key": "app", "operator": "In", "values": ["web"]}]}}
        policy = make_network_policy("expr", "shop", {"app": "api"}, ingress=[{"from": [peer]}])
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST, source_pod_name="web-1")
        assert ev.verdict == PolicyVerdict.INCOMPLETE
        assert ev.findings[0].verdict == PolicyVerdict.INCOMPLETE
        assert ev.findings[0].unsupported == ["podSelector.matchExpressions"]

    async def test_ip_block_flagged(self) -> None:
        policy = make_network_policy(
            "cidr", "shop", {"app": "api"}, ingress=[{"from": [{"ipBlock": {"cidr": "10.0.0.0/8"}}]}]
        )
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST, source_pod_name="web-1")
        assert ev.verdict == PolicyVerdict.INCOMPLETE
        assert "ipBlock" in ev.findings[0].unsupported

    async def test_first_matching_rule_wins_over_incomplete(self) -> None:
        rules = [
            {"from": [{"ipBlock": {"cidr": "10.0.0.0/8"}}]},
            {"from": [{"podSelector": {"matchLabels": {"app": "web"}}}]},
        ]
        policy = make_network_policy("mixed", "shop", {"app": "api"}, ingress=rules)
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST, source_pod_name="web-1")
        assert ev.verdict == PolicyVerdict.ALLOWED

    async def test_any_allowing_policy_allows(self) -> None:
        deny = make_network_policy("deny-all", "shop", None, ingress=[], policy_types=["Ingress"])
        allow = make_network_policy(
            "from-web", "shop", {"app": "api"}, ingress=[{"from": [{"podSelector": {"matchLabels": {"app": "web"}}}]}]
        )
        ev = await evaluate_network_policies(_cluster(deny, allow), "shop", _DEST, source_pod_name="web-1")
        assert ev.verdict == PolicyVerdict.ALLOWED
        assert [f.policy for f in ev.findings] == ["deny-all", "from-web"]

    async def test_unreadable_source_is_noted(self) -> None:
        policy = make_network_policy(
            "from-web", "shop", {"app": "api"}, ingress=[{"from": [{"podSelector": {"matchLabels": {"app": "web"}}}]}]
        )
        ev = await evaluate_network_policies(_cluster(policy), "shop", _DEST, source_pod_name="ghost")
        assert ev.verdict == PolicyVerdict.INCOMPLETE
        assert any("ghost" in n for n in ev.notes)

    async def test_list_failure_is_incomplete_not_error(self) -> None:
        cluster = _cluster().fail("NetworkPolicy")
        ev = await evaluate_network_policies(cluster, "shop", _DEST, source_pod_name="web-1")
        assert ev.verdict == PolicyVerdict.INCOMPLETE
        assert ev.notes

    async def test_policy_cap_is_noted(self) -> None:
        policies = [
            make_network_policy(f"p{i}", "shop", {"app": "other"}, ingress=[], policy_types=["Ingress"])
            for i in range(3)
        ]
        ev = await evaluate_network_policies(_cluster(*policies), "shop", _DEST, max_policies=2)
        assert any("first 2 of 3" in n for n in ev.notes)
