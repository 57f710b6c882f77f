"""Administrative command-line interface."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import structlog
import uvicorn
from cryptography.fernet import Fernet
from safir.asyncio import run_with_asyncio
from safir.click import display_help

from .database import initialize_idportal_database
from .dependencies.config import config_dependency
from .exceptions import BindError, CheckError, DirectoryConnectError
from .factory import Factory
from .main import create_openapi

__all__ = [
    "check_directory",
    "generate_session_secret",
    "help",
    "init",
    "main",
    "openapi_schema",
    "run",
]


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Administrative command-line interface for idportal."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic)


@main.command()
@click.option(
    "--config-path",
    envvar="IDPORTAL_CONFIG_PATH",
    type=click.Path(path_type=Path),
    default=None,
    help="Application configuration file.",
)
@click.option(
    "--username",
    default=None,
    help="Also check whether this user exists.",
)
@run_with_asyncio
async def check_directory(
    *, config_path: Path | None, username: str | None
) -> None:
    """Check that the directory service account works.

    Binds to the LDAP server with the configured service account and, if a
    username is given, checks whether that user exists.
    """
    if config_path:
        config_dependency.set_config_path(config_path)
    config = await config_dependency()
    ldap = config.ldap
    if not ldap.bind_dn or not ldap.password:
        raise click.ClickException("LDAP service account is not configured")
    async with Factory.standalone(config) as factory:
        session_factory = factory.directory_session_factory
        try:
            async with session_factory() as session:
                password = ldap.password.get_secret_value()
                await session.bind(ldap.bind_dn, password)
        except (BindError, DirectoryConnectError) as e:
            msg = f"Service account bind failed: {e!s}"
            raise click.ClickException(msg) from e
        click.echo(f"Bound to {ldap.url} as {ldap.bind_dn}")
        if username:
            checker = factory.create_existence_checker()
            try:
                exists = await checker.exists(username)
            except CheckError as e:
                raise click.ClickException(f"Check failed: {e!s}") from e
            result = "exists" if exists else "does not exist"
            click.echo(f"User {username} {result}")


@main.command()
def generate_session_secret() -> None:
    """Generate a new idportal session secret."""
    sys.stdout.write(Fernet.generate_key().decode() + "\n")


@main.command()
@click.option(
    "--config-path",
    envvar="IDPORTAL_CONFIG_PATH",
    type=click.Path(path_type=Path),
    default=None,
    help="Application configuration file.",
)
@click.option(
    "--reset",
    default=False,
    is_flag=True,
    help="Delete all existing data.",
)
@run_with_asyncio
async def init(*, config_path: Path | None, reset: bool) -> None:
    """Initialize the database storage."""
    if config_path:
        config_dependency.set_config_path(config_path)
    config = await config_dependency()
    logger = structlog.get_logger("idportal")
    logger.debug("Initializing database")
    await initialize_idportal_database(config, logger, reset=reset)
    logger.debug("Finished initializing database")


@main.command()
@click.option(
    "--output",
    default=None,
    type=click.Path(path_type=Path),
    help="Output path (output to stdout if not given).",
)
def openapi_schema(*, output: Path | None) -> None:
    """Generate the OpenAPI schema."""
    schema = create_openapi()
    if output:
        output.parent.mkdir(exist_ok=True)
        output.write_text(schema)
    else:
        sys.stdout.write(schema)


@main.command()
@click.option(
    "--port", default=8080, type=int, help="Port to run the application on."
)
def run(*, port: int) -> None:
    """Run the application (for testing only)."""
    uvicorn.run(
        "idportal.main:create_app",
        factory=True,
        port=port,
        reload=True,
        reload_dirs=["src"],
    )
