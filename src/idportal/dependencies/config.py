"""Config dependency for FastAPI."""

from __future__ import annotations

import os
from pathlib import Path

from ..config import Config
from ..constants import CONFIG_PATH

__all__ = ["ConfigDependency", "config_dependency"]


class ConfigDependency:
    """Provides the idportal configuration as a dependency.

    The configuration is read lazily on first use from the path given by
    ``IDPORTAL_CONFIG_PATH``, falling back on
    :file:`/etc/idportal/idportal.yaml`.
    The test suite points the dependency at other files with
    `set_config_path`, which reloads the configuration immediately.
    """

    def __init__(self) -> None:
        self._path = Path(os.getenv("IDPORTAL_CONFIG_PATH", CONFIG_PATH))
        self._config: Config | None = None

    async def __call__(self) -> Config:
        return self.config()

    @property
    def config_path(self) -> Path:
        """Path from which the configuration is loaded."""
        return self._path

    def config(self) -> Config:
        """Return the configuration, loading it if needed.

        Usable from synchronous code such as the session cookie encoder,
        which cannot await the dependency.
        """
        if self._config is None:
            self._load()
        assert self._config
        return self._config

    def set_config_path(self, path: Path) -> None:
        """Load the configuration from a new path.

        Parameters
        ----------
        path
            Path to the new configuration file.
        """
        self._path = path
        self._load()

    def _load(self) -> None:
        self._config = Config.from_file(self._path)
        self._config.configure_logging()


config_dependency = ConfigDependency()
"""The dependency that will return the current configuration."""
