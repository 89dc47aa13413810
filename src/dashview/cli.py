"""Typer-based CLI entry point."""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlsplit

import typer
from rich import print
from rich.columns import Columns
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dashview.application.services.filter_adapter import FilterAdapter
from dashview.config import DEFAULT_PAGE_SIZE
from dashview.di import Container
from dashview.di.bootstrap import bootstrap
from dashview.domain.models.query import DropdownValue, QueryState, SortingRule, ViewMode
from dashview.errors import DashviewError, FilterValidationError, NetworkError, SettingsError
from dashview.errors.handler import ErrorHandler
from dashview.gui.factories import CollectionViewFactory
from dashview.gui.viewmodels.view_renderer import ColumnDef, RenderedView
from dashview.infrastructure.http.transport import HttpTransport, TokenAuth
from dashview.settings.manager import SettingsManager
from dashview.utils.logging import configure_logging

app = typer.Typer(help="Browse paginated REST collections from the terminal")
settings_app = typer.Typer(help="Inspect and change dashview settings")
app.add_typer(settings_app, name="settings")

console = Console()


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (FilterValidationError, SettingsError, NetworkError) as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc
        except DashviewError as exc:
            typer.echo(f"Unexpected error: {exc}", err=True)
            raise typer.Exit(1) from exc

    return wrapper


def _load_settings(path: Optional[Path]) -> SettingsManager:
    settings = SettingsManager(path)
    settings.load()
    return settings


def _parse_filters(entries: List[str]) -> dict[str, tuple[DropdownValue, ...]]:
    filters: dict[str, list[DropdownValue]] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            raise FilterValidationError(f"Expected KEY=VALUE, got {entry!r}")
        filters.setdefault(key, []).append(DropdownValue(value, value))
    return {key: tuple(values) for key, values in filters.items()}


def _columns_for(rows, names: List[str]) -> list[ColumnDef]:
    if names:
        return [ColumnDef(name, header=name) for name in names]
    if not rows:
        return []
    if not isinstance(rows[0], Mapping):
        return [ColumnDef("value", header="value", accessor=lambda row: row)]
    return [ColumnDef(str(key), header=str(key)) for key in rows[0].keys()]


def _print_view(view: RenderedView) -> None:
    if view.error is not None:
        console.print(Panel(view.error.message, title="Request failed", style="red"))
    if view.view_mode is ViewMode.GRID:
        panels = [
            Panel(
                "\n".join(f"[bold]{label}[/]: {value}" for label, value in card.fields),
                title=card.title,
                subtitle=card.subtitle or None,
            )
            for card in view.cards
        ]
        if panels:
            console.print(Columns(panels))
    elif view.table is not None and view.table.rows:
        table = Table(show_lines=False)
        for header in view.table.headers:
            marker = ""
            if view.table.sorted_column == header:
                marker = " ▼" if view.table.sort_desc else " ▲"
            table.add_column(f"{header}{marker}")
        for cells in view.table.rows:
            table.add_row(*cells)
        console.print(table)
    if view.is_empty and view.error is None:
        console.print(f"[yellow]{view.empty_text or 'No results.'}")
    console.print(f"[dim]{view.pagination.describe()}")


@app.command()
@_handle_errors
def browse(
    url: str = typer.Argument(..., help="Full URL of a list endpoint"),
    data_path: str = typer.Option("data", help="Dot path to the row list"),
    total_path: Optional[str] = typer.Option(None, help="Dot path to the total count"),
    page: int = typer.Option(1, min=1, help="1-based page number"),
    page_size: int = typer.Option(DEFAULT_PAGE_SIZE, help="Rows per page"),
    search: str = typer.Option("", help="Global search text"),
    sort: Optional[str] = typer.Option(None, help="Column to sort by"),
    desc: bool = typer.Option(False, help="Sort descending"),
    filter_: List[str] = typer.Option([], "--filter", help="KEY=VALUE, repeatable"),
    column: List[str] = typer.Option([], "--column", help="Columns to show, repeatable"),
    hide: List[str] = typer.Option([], "--hide", help="Columns to hide, repeatable"),
    view: ViewMode = typer.Option(ViewMode.TABLE, case_sensitive=False, help="table or grid"),
    token: Optional[str] = typer.Option(None, envvar="DASHVIEW_TOKEN", help="Bearer token"),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Settings file"),
    timeout: float = typer.Option(60.0, help="Seconds to wait for the page"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log request lifecycle"),
) -> None:
    """Fetch one page of a collection through the view engine and print it."""

    settings = _load_settings(settings_path)
    configure_logging(logging.DEBUG if verbose else settings.get("log_level", "WARNING"))

    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise FilterValidationError(f"Not an absolute URL: {url!r}")
    state = QueryState(
        page_index=page - 1,
        page_size=page_size,
        sorting=(SortingRule(sort, desc),) if sort else (),
        global_filter=search,
        filters=_parse_filters(filter_),
    )
    container = Container()
    bootstrap(container, settings)
    transport = HttpTransport(
        f"{parts.scheme}://{parts.netloc}",
        TokenAuth(token) if token else None,
        timeout=float(settings.get("api.timeout")),
        max_retries=int(settings.get("api.max_retries")),
    )
    container.register_instance(HttpTransport, transport, owned=True)
    escalated: list[str] = []
    container.resolve(ErrorHandler).register_ui_callback(lambda message, _severity: escalated.append(message))

    adapter = FilterAdapter(transport.endpoint(parts.path), data_path, total_path)
    factory = CollectionViewFactory(container)
    vm = factory.create(
        adapter,
        parts.path.strip("/").replace("/", ":") or "root",
        initial_state=state,
        view_mode=view,
        column_visibility={name: False for name in hide},
        page_size_options=(),
    )
    try:
        vm.mount()
        if not vm.coordinator.wait(timeout):
            typer.echo(f"Error: no response within {timeout:.0f}s", err=True)
            raise typer.Exit(1)
        renderer = factory.create_renderer(vm, _columns_for(vm.rows, column))
        rendered = renderer.render()
        _print_view(rendered)
        for message in escalated:
            typer.echo(f"Error: {message}", err=True)
        if rendered.error is not None or escalated:
            raise typer.Exit(1)
    finally:
        vm.dispose()
        container.close()


@settings_app.command("show")
@_handle_errors
def settings_show(
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Settings file"),
) -> None:
    """Print the effective settings."""

    settings = _load_settings(settings_path)
    print(f"[dim]{settings.path}")
    console.print_json(json.dumps(settings.data))


@settings_app.command("set")
@_handle_errors
def settings_set(
    key: str = typer.Argument(..., help="Dotted key, e.g. views.page_size"),
    value: str = typer.Argument(..., help="JSON value (bare words are strings)"),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Settings file"),
) -> None:
    """Change one setting and save it."""

    settings = _load_settings(settings_path)
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = value
    settings.set(key, parsed)
    print(f"[green]Set {key} = {parsed!r}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
