# src/__init__.py - v1
"""paygent: a pay-to-unlock agent run orchestrator with live event streaming."""

from paygent.version import __version__

__all__ = ["__version__"]
