"""stackwire command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``stackwire`` script).
"""

from stackwire.cli.main import cli

__all__ = ["cli"]
