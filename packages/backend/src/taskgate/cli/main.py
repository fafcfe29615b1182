"""taskgate operator CLI — bootstrap and maintenance against the database.

Usage:
    taskgate init-db                                  # Create tables (dev; prod uses alembic)
    taskgate create-super --email admin@example.com   # Create or promote a SUPER account
    taskgate reset-password --email user@example.com  # Set a new password
    taskgate normalize-emails                         # Trim + lowercase stored emails
    taskgate check-user --email user@example.com      # Show one identity and its links
    taskgate identities                               # List all identities

These talk to the database directly rather than the HTTP API: the first
SUPER account has to exist before anyone can call the admin endpoints.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Awaitable, Callable, TypeVar

import click

from taskgate import __version__
from taskgate.config import settings
from taskgate.db.engine import Database
from taskgate.errors import AppError
from taskgate.identity.store import IdentityStore
from taskgate.services.identity_service import IdentityService

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(database_url: str, action: Callable[[IdentityService], Awaitable[T]]) -> T:
    """Open a Database for one command, hand a service to `action`, dispose."""

    async def runner() -> T:
        database = Database(database_url)
        try:
            async with database.session_factory() as session:
                return await action(IdentityService(session))
        finally:
            await database.dispose()

    try:
        return asyncio.run(runner())
    except AppError as e:
        click.secho(f"Error: {e.reason}", fg="red", err=True)
        sys.exit(1)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k) or "—")[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _role_color(role: str | None) -> str:
    return "magenta" if role == "SUPER" else "white"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="taskgate")
@click.option(
    "--database-url",
    envvar="TASKGATE_DATABASE_URL",
    default=settings.database_url,
    show_default=False,
    help="SQLAlchemy async URL (defaults to TASKGATE_DATABASE_URL).",
)
@click.pass_context
def main(ctx: click.Context, database_url: str):
    """taskgate — identity and task store maintenance."""
    ctx.obj = {"database_url": database_url}


@main.command("init-db")
@click.pass_obj
def init_db(obj: dict):
    """Create all tables that don't exist yet."""

    async def runner():
        database = Database(obj["database_url"])
        try:
            await database.create_all()
        finally:
            await database.dispose()

    asyncio.run(runner())
    click.secho("Schema ready.", fg="green")


@main.command("create-super")
@click.option("--email", "-e", required=True, help="Operator email")
@click.option("--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--name", default="Super Admin", show_default=True)
@click.pass_obj
def create_super(obj: dict, email: str, password: str, name: str):
    """Create a SUPER account, or promote an existing identity to SUPER.

    An existing identity keeps its password; one is set only if it had none.
    """
    identity, created = _run(
        obj["database_url"], lambda svc: svc.ensure_super(email, password, name=name)
    )
    verb = "Created" if created else "Promoted"
    click.secho(f"{verb} super user: {identity.email} ({identity.id})", fg="green")


@main.command("reset-password")
@click.option("--email", "-e", required=True)
@click.option("--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True)
@click.pass_obj
def reset_password(obj: dict, email: str, password: str):
    """Replace an identity's password (also enables password sign-in for OAuth-only users)."""
    if len(password) < settings.password_min_length:
        click.secho(
            f"Error: password must be at least {settings.password_min_length} characters",
            fg="red",
            err=True,
        )
        sys.exit(1)

    identity = _run(obj["database_url"], lambda svc: svc.reset_password(email, password))
    click.secho(f"Password reset for {identity.email}.", fg="green")


@main.command("normalize-emails")
@click.pass_obj
def normalize_emails(obj: dict):
    """Trim and lowercase every stored email (skips ones that would collide)."""
    changed, skipped = _run(obj["database_url"], lambda svc: svc.normalize_emails())

    for before, after in changed:
        click.echo(f"  {before!r} -> {after!r}")
    for email in skipped:
        click.secho(f"  skipped {email!r}: canonical form already in use", fg="yellow")
    click.echo(f"Done. Emails changed: {len(changed)}, skipped: {len(skipped)}")


@main.command("check-user")
@click.option("--email", "-e", required=True)
@click.pass_obj
def check_user(obj: dict, email: str):
    """Show one identity, whether it can use a password, and its provider links."""

    async def describe(svc: IdentityService):
        store = IdentityStore(svc.db)
        identity = await store.find_by_email(email)
        if identity is None:
            return None, []
        return identity, await store.links_for(identity.id)

    identity, links = _run(obj["database_url"], describe)
    if identity is None:
        click.secho(f"No identity for {email.strip().lower()}", fg="red", err=True)
        sys.exit(1)

    click.secho(identity.email, bold=True)
    click.echo(f"  id:        {identity.id}")
    click.echo(f"  name:      {identity.name or '—'}")
    click.echo("  role:      " + click.style(identity.role or "(unset)", fg=_role_color(identity.role)))
    click.echo(f"  password:  {'yes' if identity.password_hash else 'no'}")
    click.echo(f"  created:   {identity.created_at}")
    if links:
        click.echo("  linked:    " + ", ".join(
            f"{link.provider}:{link.provider_account_id}" for link in links
        ))
    else:
        click.echo("  linked:    —")


@main.command("identities")
@click.pass_obj
def identities(obj: dict):
    """List all identities."""
    rows = _run(obj["database_url"], lambda svc: svc.list_identities())
    if not rows:
        click.echo("No identities found.")
        return

    click.secho(f"Identities ({len(rows)}):", bold=True)
    _print_table(
        [
            {"id": str(i.id)[:8], "email": i.email, "name": i.name, "role": i.role}
            for i in rows
        ],
        [("ID", "id", 8), ("EMAIL", "email", 32), ("NAME", "name", 20), ("ROLE", "role", 6)],
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
