"""Application orchestration layer.

Loads the settings file and turns it into the domain objects the services
layer runs on.
"""

from . import config

__all__ = ["config"]
