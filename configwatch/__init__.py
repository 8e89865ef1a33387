"""
Configwatch package initializer.

This package fetches externally hosted configuration (git repositories, mounted
directories or HTTP endpoints), merges it per profile and serves it to a running
process as versioned, immutable snapshots that are refreshed in the background.

The package exposes a ``__version__`` attribute indicating the installed
version of Configwatch. The version is read from pyproject.toml via
importlib.metadata – this is the single source of truth.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("configwatch")
except PackageNotFoundError:
    # Package is not installed (running from source without pip install -e .)
    __version__ = "0.0.0.dev"

__all__: list[str] = ["__version__"]
