"""CLI interface for Configwatch.

This package is the home of all Click commands. Run it with
``python -m configwatch.interfaces.cli`` or the ``configwatch`` script.
"""

from .__main__ import cli
from .metrics import metrics
from .show import get, show
from .sources import sources
from .watch import watch

__all__ = ["cli", "get", "metrics", "show", "sources", "watch"]
