"""Infrastructure layer for Configwatch.

Holds the adapters that touch the outside world (source backends, document
parsers) and the observability facade.
"""

from . import observability, parsers, sources

__all__ = ["observability", "parsers", "sources"]
