"""Domain layer facade for Configwatch.

This package groups the pure models and the error hierarchy that do not
concern infrastructure or interface details.
"""

from . import errors, models

__all__ = ["errors", "models"]
