"""Reverse-dependency impact classification.

Submodules:
    reverse_lookup -- finders for objects that reference a target.
    rules          -- per-kind severity and summary rules.
    analyzer       -- ``analyze_impact`` query facade.
"""

from kubetopo.impact.analyzer import analyze_impact

__all__ = ["analyze_impact"]
