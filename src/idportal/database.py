"""Database utility functions for idportal."""

from __future__ import annotations

from safir.database import initialize_database
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from structlog.stdlib import BoundLogger

from .config import Config
from .schema import SchemaBase

__all__ = ["initialize_idportal_database"]


async def initialize_idportal_database(
    config: Config,
    logger: BoundLogger,
    engine: AsyncEngine | None = None,
    *,
    reset: bool = False,
) -> None:
    """Create the database schema.

    This is the internal async implementation of the ``init`` command.

    Parameters
    ----------
    config
        idportal configuration.
    logger
        Logger to use for status reporting.
    engine
        If given, database engine to use, which avoids the need to create
        another one. It is not disposed.
    reset
        If set to `True`, drop all tables first.
    """
    if engine:
        await initialize_database(
            engine, logger, schema=SchemaBase.metadata, reset=reset
        )
        return
    engine = create_async_engine(config.database_url)
    try:
        await initialize_database(
            engine, logger, schema=SchemaBase.metadata, reset=reset
        )
    finally:
        await engine.dispose()
