#!/usr/bin/env python
"""Terminal front end for browsing the directory and managing favorites."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from userdex.clients.randomuser import RandomUserClient
from userdex.db.connection import create_engine, create_session_factory, init_models
from userdex.schemas.directory import ViewState
from userdex.schemas.user import UserRecord
from userdex.services.directory_service import DirectoryService
from userdex.services.errors import ToggleError
from userdex.services.favorites import SqlFavoriteStore
from userdex.settings import settings

console = Console()
logger = logging.getLogger(__name__)

HELP_LINE = "[dim]n next | p previous | s <nat> search | f <#> favorite | d <#> detail | r reload | q quit[/dim]"


@asynccontextmanager
async def _open_service() -> AsyncIterator[DirectoryService]:
    logger.debug("Opening directory session against %s", settings.randomuser_base_url)
    engine = create_engine(settings.resolved_database_url)
    await init_models(engine)
    client = RandomUserClient(
        base_url=settings.randomuser_base_url,
        timeout=settings.http_timeout_seconds,
        user_agent=settings.http_user_agent,
    )
    store = SqlFavoriteStore(create_session_factory(engine))
    service = DirectoryService.create(
        client,
        store,
        page_size=settings.page_size,
        resubscribe_delay=settings.favorites_resubscribe_delay_seconds,
    )
    try:
        yield service
    finally:
        await service.aclose()
        await client.aclose()
        await engine.dispose()


def _render_page(state: ViewState) -> None:
    title = f"Page {state.page}"
    if state.query:
        title += f" (nat={state.query})"
    table = Table("#", "", "Name", "Email", "Country", title=title)
    for offset, user in enumerate(state.users, start=1):
        heart = "[red]♥[/red]" if state.is_favorite(user.identifier) else ""
        table.add_row(
            str(offset),
            heart,
            user.full_name,
            user.email,
            user.location.country,
        )
    console.print(table)

    flags = []
    if state.has_previous_page:
        flags.append("previous")
    if state.has_next_page:
        flags.append("next")
    console.print(f"[dim]Status: {state.status.value}; available: {', '.join(flags) or 'none'}[/dim]")
    if state.error:
        console.print(f"[red]Error:[/red] {escape(state.error)}")


def _render_detail(user: UserRecord, is_favorite: bool) -> None:
    table = Table("Field", "Value", title=user.full_name)
    table.add_row("Favorite", "yes" if is_favorite else "no")
    table.add_row("Gender", user.gender)
    table.add_row("Email", user.email)
    table.add_row("Phone", user.phone)
    table.add_row("Cell", user.cell)
    table.add_row("Username", user.login.username)
    table.add_row("Nationality", user.nat)
    table.add_row("Address", user.location.full_address)
    if user.dob.date is not None:
        table.add_row("Born", f"{user.dob.date:%Y-%m-%d} (age {user.dob.age})")
    table.add_row("Picture", user.picture.large)
    console.print(table)


def _pick(state: ViewState, argument: str) -> UserRecord | None:
    try:
        index = int(argument)
    except ValueError:
        console.print(f"[yellow]Expected a row number, got {escape(repr(argument))}[/yellow]")
        return None
    if not 1 <= index <= len(state.users):
        console.print(f"[yellow]Row {index} is not on this page[/yellow]")
        return None
    return state.users[index - 1]


async def _await_favorite(
    service: DirectoryService, identifier: str, expected: bool, timeout: float = 1.0
) -> None:
    """Wait until the view state shows the toggled heart, or give up after ``timeout``."""
    try:
        async with service.observe_view_state() as updates:
            async with asyncio.timeout(timeout):
                async for state in updates:
                    if state.is_favorite(identifier) == expected:
                        return
    except TimeoutError:
        logger.debug("Favorite change for %s not observed within %.1fs", identifier, timeout)


async def _browse(nationality: str | None) -> None:
    async with _open_service() as service:
        await service.refresh(nationality)
        while True:
            _render_page(service.state)
            console.print(HELP_LINE)
            raw = await asyncio.to_thread(click.prompt, ">", default="", show_default=False)
            command, _, argument = raw.strip().partition(" ")
            command = command.lower()
            argument = argument.strip()

            if command in {"q", "quit"}:
                break
            if command == "n":
                if not await service.next_page():
                    console.print("[yellow]No next page[/yellow]")
            elif command == "p":
                if not await service.previous_page():
                    console.print("[yellow]Already on the first page[/yellow]")
            elif command == "s":
                await service.search(argument)
            elif command == "r":
                await service.reload()
            elif command == "f":
                user = _pick(service.state, argument)
                if user is None:
                    continue
                try:
                    is_favorite = await service.toggle_favorite(user)
                except ToggleError:
                    continue
                await _await_favorite(service, user.identifier, is_favorite)
            elif command == "d":
                user = _pick(service.state, argument)
                if user is None:
                    continue
                service.cache_detail(user)
                detail = await service.get_detail(user.identifier)
                if detail is not None:
                    _render_detail(detail.user, detail.is_favorite)
            elif command:
                console.print(f"[yellow]Unknown command {escape(repr(command))}[/yellow]")


async def _list_favorites() -> None:
    async with _open_service() as service:
        entries = await service.list_favorites()

    if not entries:
        console.print("[dim]No favorites saved yet.[/dim]")
        return

    table = Table("Name", "Email", "Country", "Added", title="Favorites")
    for entry in entries:
        table.add_row(
            entry.full_name,
            entry.email,
            entry.country,
            f"{entry.added_at:%Y-%m-%d %H:%M}" if entry.added_at else "",
        )
    console.print(table)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable DEBUG logging")
def cli(verbose: bool) -> None:
    """Browse random users and keep a local list of favorites."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level_numeric,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command()
@click.option("--nat", default=None, help="Nationality code to filter by (e.g. US, FR)")
def browse(nat: str | None) -> None:
    """Page through the directory interactively."""
    asyncio.run(_browse(nat))


@cli.command()
def favorites() -> None:
    """Print the saved favorites."""
    asyncio.run(_list_favorites())


if __name__ == "__main__":
    cli()
