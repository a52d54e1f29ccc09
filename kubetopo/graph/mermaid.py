"""Render a traffic graph as a Mermaid ``graph LR`` flowchart."""

from __future__ import annotations

import re

from kubetopo.graph.models import TrafficGraph

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def mermaid_key(id_: str) -> str:
    """Mermaid node ids must be plain words; every other character becomes ``_``."""
    return "n_" + _UNSAFE_ID_CHARS.sub("_", id_)


def _escape_label(text: str) -> str:
    return text.replace('"', '\\"')


def to_mermaid(graph: TrafficGraph) -> str:
    lines = ["graph LR"]

    for n in graph.nodes:
        label = f"{n.kind}\\n{n.name}"
        if n.namespace:
            label += f"\\nns:{n.namespace}"
        lines.append(f'  {mermaid_key(n.id)}["{_escape_label(label)}"]')

    for e in graph.edges:
        lines.append(f'  {mermaid_key(e.from_id)} -->|"{_escape_label(e.reason)}"| {mermaid_key(e.to_id)}')

    return "\n".join(lines)
