"""fluxdoctor command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``fluxdoctor`` script).
"""

from fluxdoctor.cli.main import cli

__all__ = ["cli"]
