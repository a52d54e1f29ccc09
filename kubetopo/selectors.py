"""Label-selector predicates and namespace resolution.

Two predicates exist on purpose. Network policies and namespace selectors
treat an empty selector as "select everything" (``selects_all``); a
Service or workload without a selector selects no pods at all
(``selects_none``). Pick the one that matches the call site.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

DEFAULT_NAMESPACE = "default"


def _labels_contain(labels: Mapping[str, str] | None, selector: Mapping[str, str]) -> bool:
    if not labels:
        return False
    return all(labels.get(k) == v for k, v in selector.items())


def selects_all(labels: Mapping[str, str] | None, selector: Mapping[str, str] | None) -> bool:
    """matchLabels check where an empty or absent selector matches everything."""
    if not selector:
        return True
    return _labels_contain(labels, selector)


def selects_none(labels: Mapping[str, str] | None, selector: Mapping[str, str] | None) -> bool:
    """matchLabels check where an empty or absent selector matches nothing."""
    if not selector:
        return False
    return _labels_contain(labels, selector)


def to_label_selector(match_labels: Mapping[str, str] | None) -> str | None:
    """Render ``{"app": "web"}`` as ``app=web`` for list calls."""
    if not match_labels:
        return None
    parts = [f"{k}={v}" for k, v in match_labels.items() if k and v is not None]
    return ",".join(parts) or None


def match_labels_of(selector: Mapping[str, Any] | None) -> dict[str, str]:
    """Return the ``matchLabels`` part of a LabelSelector object."""
    if not selector:
        return {}
    return dict(selector.get("matchLabels") or {})


def has_match_expressions(selector: Mapping[str, Any] | None) -> bool:
    """True when a LabelSelector uses operators this engine does not evaluate."""
    return bool(selector and selector.get("matchExpressions"))


def resolve_namespace(explicit: str | None, context_default: str | None = None) -> str:
    return explicit or context_default or DEFAULT_NAMESPACE
