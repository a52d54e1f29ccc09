"""Entry point for `python -m kubetopo`.

Usage:
    python -m kubetopo traffic Service checkout -n payments
    python -m kubetopo serve
"""

from __future__ import annotations

from kubetopo.cli import cli

cli(prog_name="kubetopo")
