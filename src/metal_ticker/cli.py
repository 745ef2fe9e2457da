"""Click-based CLI for metal-ticker.

Thin wrapper around MetalTickerEngine. Commands hold no business logic.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from metal_ticker.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


def _open_store(ctx: click.Context):
    """Open the YAML settings store named in config, caching on first call."""
    if "store" not in ctx.obj:
        from metal_ticker.settings import YamlSettingsStore

        config = _load_config(ctx)
        ctx.obj["store"] = YamlSettingsStore(config.settings.path)
    return ctx.obj["store"]


def _make_source(config):
    """Create the HTTP price source for a session."""
    from metal_ticker.prices import HttpPriceSource

    return HttpPriceSource(config.source)


@asynccontextmanager
async def _engine_session(ctx: click.Context, refresh_on_start: bool = True):
    """Yield a started engine; tear everything down on exit."""
    from metal_ticker.engine import MetalTickerEngine

    config = _load_config(ctx)
    store = _open_store(ctx)
    refresh_config = config.refresh.model_copy(update={"refresh_on_start": refresh_on_start})
    source = _make_source(config)
    engine = MetalTickerEngine(store, source, refresh_config)
    try:
        await engine.start()
        yield engine
    finally:
        await engine.close()
        await source.close()


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise SystemExit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="METAL_TICKER_CONFIG",
    default=None,
    help="Path to metal-ticker.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="metal-ticker")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """metal-ticker: precious-metal prices on a self-healing watch list."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


@cli.command("list")
@click.pass_context
def list_metals(ctx: click.Context) -> None:
    """Show every registered metal and whether it is visible."""

    async def _run():
        async with _engine_session(ctx, refresh_on_start=False) as engine:
            toggles = engine.toggle_states()
            table = Table(title="Metals")
            table.add_column("ID", style="bold")
            table.add_column("Name")
            table.add_column("Custom", justify="center")
            table.add_column("Visible", justify="center")
            table.add_column("URL", overflow="fold")

            for metal in engine.metals:
                visible = metal.id in engine.visible_ids
                mark = "✓" if visible else ""
                if visible and not toggles[metal.id]:
                    mark += " (locked)"
                table.add_row(
                    metal.id,
                    metal.name,
                    "✓" if metal.is_custom else "",
                    mark,
                    metal.url,
                )
            console.print(table)

    _run_async(_run())


# ---------------------------------------------------------------------------
# prices
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--all", "all_metals", is_flag=True, default=False, help="Include hidden metals.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def prices(ctx: click.Context, all_metals: bool, output_format: str) -> None:
    """Fetch current prices once and print them."""

    async def _run():
        async with _engine_session(ctx) as engine:
            await engine.drain()
            metals = engine.metals if all_metals else engine.snapshot.visible_metals()

            if output_format == "json":
                click.echo(json.dumps({m.id: engine.price(m.id) for m in metals}, indent=2))
                return

            table = Table(title="Metal Prices")
            table.add_column("Metal", style="bold")
            table.add_column("Price (USD)", justify="right")
            for metal in metals:
                price = engine.price(metal.id)
                table.add_row(metal.name, f"{price}$" if price else "...")
            console.print(table)

    _run_async(_run())


# ---------------------------------------------------------------------------
# watch
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--iterations",
    "-n",
    type=int,
    default=None,
    help="Stop after this many refresh cycles. Default: run until interrupted.",
)
@click.option(
    "--poll-seconds",
    type=float,
    default=2.0,
    show_default=True,
    help="How often to check the settings file for outside edits.",
)
@click.pass_context
def watch(ctx: click.Context, iterations: int | None, poll_seconds: float) -> None:
    """Keep prices fresh and print each visible metal as it updates."""
    from metal_ticker.core import format_panel_label

    async def _run():
        store = _open_store(ctx)
        async with _engine_session(ctx) as engine:

            def on_price(metal_id: str) -> None:
                metal = engine.metal(metal_id)
                if metal is not None and metal_id in engine.visible_ids:
                    click.echo(format_panel_label(metal, engine.price(metal_id)))

            def on_registry() -> None:
                console.print(
                    f"[dim]{len(engine.metals)} metals, "
                    f"showing {', '.join(engine.visible_ids)}[/dim]"
                )

            engine.add_price_listener(on_price)
            engine.add_registry_listener(on_registry)
            on_registry()

            while True:
                await asyncio.sleep(poll_seconds)
                store.reload()
                if (
                    iterations is not None
                    and engine.orchestrator.cycles >= iterations
                    and engine.orchestrator.in_flight == 0
                ):
                    break

    try:
        _run_async(_run())
    except KeyboardInterrupt:
        console.print("Stopped.")


# ---------------------------------------------------------------------------
# add / remove
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name")
@click.argument("url")
@click.pass_context
def add(ctx: click.Context, name: str, url: str) -> None:
    """Add a custom metal tracked from a Google Finance quote URL."""
    from metal_ticker.core import RegistryError

    async def _run():
        async with _engine_session(ctx, refresh_on_start=False) as engine:
            try:
                metal = engine.add_custom_metal(name, url)
            except RegistryError as exc:
                _fail(str(exc))
            await engine.drain()
            price = engine.price(metal.id)
            console.print(
                f"[green]✓[/green] Added [bold]{metal.name}[/bold] as {metal.id}"
                + (f" (now {price}$)" if price else " (price unavailable)")
            )

    _run_async(_run())


@cli.command()
@click.argument("metal_id")
@click.pass_context
def remove(ctx: click.Context, metal_id: str) -> None:
    """Remove a custom metal."""

    async def _run():
        async with _engine_session(ctx, refresh_on_start=False) as engine:
            if not engine.remove_custom_metal(metal_id):
                _fail(f"No custom metal with id {metal_id!r}")
            console.print(f"[green]✓[/green] Removed {metal_id}")

    _run_async(_run())


# ---------------------------------------------------------------------------
# show / hide
# ---------------------------------------------------------------------------


def _set_visibility(ctx: click.Context, metal_id: str, show: bool) -> None:
    from metal_ticker.core import RegistryError

    async def _run():
        async with _engine_session(ctx, refresh_on_start=False) as engine:
            try:
                accepted = engine.set_visible(metal_id, show)
            except RegistryError as exc:
                _fail(str(exc))
            if not accepted:
                _fail(f"Cannot hide {metal_id}: at least one metal must stay visible")
            console.print(f"Visible: {', '.join(engine.visible_ids)}")

    _run_async(_run())


@cli.command()
@click.argument("metal_id")
@click.pass_context
def show(ctx: click.Context, metal_id: str) -> None:
    """Show a metal."""
    _set_visibility(ctx, metal_id, True)


@cli.command()
@click.argument("metal_id")
@click.pass_context
def hide(ctx: click.Context, metal_id: str) -> None:
    """Hide a metal. The last visible metal cannot be hidden."""
    _set_visibility(ctx, metal_id, False)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default: from config).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default: from config).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the REST API server."""
    import uvicorn

    from metal_ticker.api.app import create_app

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"Starting metal-ticker API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(create_app(config), host=host, port=port)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
