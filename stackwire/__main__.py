"""Entry point for `python -m stackwire`.

Usage:
    python -m stackwire plan topology.yaml
    uv run python -m stackwire flowise --format text
"""

from __future__ import annotations

from stackwire.cli import cli

cli()
