"""CollabSpace CLI — run the server and do account/session housekeeping.

Usage:
    collabspace serve --port 8000 --reload      # Run the API with uvicorn
    collabspace purge-sessions                  # Delete expired login sessions now
    collabspace create-admin ada@example.com    # Create (or promote) an admin
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import sys
from typing import Optional

import click

from collabspace import __version__
from collabspace.config import settings
from collabspace.errors import ApiError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


async def _with_session(fn):
    """Open a DB session, run fn(db), and dispose the engine afterwards."""
    from collabspace.db.engine import async_session_factory, engine

    try:
        async with async_session_factory() as db:
            return await fn(db)
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="collabspace")
def main():
    """CollabSpace — collaborative workspace backend."""


# ---------------------------------------------------------------------------
# collabspace serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: COLLAB_HOST)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: COLLAB_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "collabspace.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# collabspace purge-sessions
# ---------------------------------------------------------------------------


@main.command("purge-sessions")
def purge_sessions():
    """Delete every expired login session."""
    from collabspace.auth.sessions import SessionStore

    async def _purge(db):
        return await SessionStore(db).purge_expired()

    count = _run(_with_session(_purge))
    click.secho(f"Purged {count} expired session(s).", fg="green")


# ---------------------------------------------------------------------------
# collabspace create-admin
# ---------------------------------------------------------------------------


@main.command("create-admin")
@click.argument("email")
@click.option("--name", "-n", default=None, help="Display name")
@click.password_option(help="Password for a new account (prompted if omitted)")
def create_admin(email: str, name: Optional[str], password: str):
    """Create an admin account, or promote an existing user to admin.

    EMAIL identifies the account. An existing user keeps their password.
    """
    from collabspace.services.user_service import UserService

    async def _create(db):
        svc = UserService(db)
        user = await svc.get_by_email(email)
        if user is not None:
            await svc.set_role(user.id, "admin")
            return user, False
        return await svc.register(email, password, name=name, role="admin"), True

    try:
        user, created = _run(_with_session(_create))
    except ApiError as e:
        click.secho(f"Error: {e.message}", fg="red", err=True)
        sys.exit(1)

    verb = "Created" if created else "Promoted"
    click.secho(f"{verb} admin {user.email} ({user.id})", fg="green")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
