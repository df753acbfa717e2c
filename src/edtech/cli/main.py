"""EdTech admin CLI — run the server and bootstrap the database.

Usage:
    edtech serve                                   # uvicorn on EDTECH_HOST:EDTECH_PORT
    edtech init-db                                 # create tables + seed roles (dev/SQLite)
    edtech create-user admin@example.com --name Ada --surname Lovelace --role Administrator

Production databases are migrated with Alembic (`alembic upgrade head`);
init-db is for local development and throwaway databases.
"""

from __future__ import annotations

import asyncio
import sys

import click

from edtech import __version__
from edtech.config import Settings, load_settings
from edtech.db.engine import build_engine, build_session_factory
from edtech.db.models import DEFAULT_ROLES, ROLE_ADMINISTRATOR, Base
from edtech.errors import EmailAlreadyRegistered, RoleNotFound
from edtech.log import configure_logging
from edtech.services.role_service import RoleService
from edtech.services.user_service import UserService


def _settings() -> Settings:
    try:
        settings = load_settings()
    except ValueError as e:
        click.secho(f"Error: invalid configuration\n{e}", fg="red", err=True)
        sys.exit(1)
    configure_logging(settings)
    return settings


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="edtech")
def main() -> None:
    """EdTech backend administration."""


@main.command()
@click.option("--reload", is_flag=True, help="Restart on code changes (development).")
def serve(reload: bool) -> None:
    """Run the API server."""
    import uvicorn

    settings = _settings()
    uvicorn.run(
        "edtech.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=reload,
        log_config=None,
    )


async def _init_db(settings: Settings) -> int:
    engine = build_engine(settings)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with build_session_factory(engine)() as db:
            return await RoleService(db).ensure_default_roles()
    finally:
        await engine.dispose()


@main.command("init-db")
def init_db() -> None:
    """Create all tables and seed the default roles."""
    added = asyncio.run(_init_db(_settings()))
    click.echo(f"Database ready ({added} role(s) added).")


async def _create_user(
    settings: Settings,
    email: str,
    name: str,
    surname: str,
    password: str,
    role_name: str,
):
    engine = build_engine(settings)
    try:
        async with build_session_factory(engine)() as db:
            role = await RoleService(db).get_by_name(role_name)
            return await UserService(db, settings.bcrypt_rounds).create(
                name=name,
                surname=surname,
                email=email,
                password=password,
                role_id=role.id,
            )
    finally:
        await engine.dispose()


@main.command("create-user")
@click.argument("email")
@click.option("--name", required=True)
@click.option("--surname", required=True)
@click.option(
    "--role",
    "role_name",
    type=click.Choice(list(DEFAULT_ROLES.values())),
    default=ROLE_ADMINISTRATOR,
    show_default=True,
)
@click.password_option()
def create_user(email: str, name: str, surname: str, role_name: str, password: str) -> None:
    """Create an account directly in the database."""
    try:
        user = asyncio.run(
            _create_user(_settings(), email, name, surname, password, role_name)
        )
    except RoleNotFound:
        click.secho(f"Error: role {role_name!r} missing, run init-db first", fg="red", err=True)
        sys.exit(1)
    except EmailAlreadyRegistered:
        click.secho(f"Error: {email} is already registered", fg="red", err=True)
        sys.exit(1)
    except ValueError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"Created {role_name} {user.email} ({user.id})", fg="green")


if __name__ == "__main__":
    main()
