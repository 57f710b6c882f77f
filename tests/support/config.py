"""Build test configuration for idportal."""

from __future__ import annotations

from pathlib import Path

from idportal.config import Config
from idportal.dependencies.config import config_dependency

__all__ = [
    "config_path",
    "configure",
]


def config_path(filename: str) -> Path:
    """Return the path to a test configuration file.

    Parameters
    ----------
    filename
        The base name of a test configuration file.

    Returns
    -------
    Path
        The path to that file.
    """
    return (
        Path(__file__).parent.parent / "data" / "config" / (filename + ".yaml")
    )


def configure(filename: str) -> Config:
    """Change the test application configuration.

    The database URL and session secret come from environment variables set
    by the ``environment`` fixture, so those must be set first.

    Parameters
    ----------
    filename
        Configuration file to use.

    Returns
    -------
    Config
        The new configuration.

    Notes
    -----
    This is used for tests that cannot be async, so itself must not be async.
    """
    config_dependency.set_config_path(config_path(filename))
    return config_dependency.config()
