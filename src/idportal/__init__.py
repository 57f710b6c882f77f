"""Self-service corporate identity portal backed by Active Directory."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

__version__: str
"""The version string of idportal (PEP 440 / SemVer compatible)."""

try:
    __version__ = version("idportal")
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0"
