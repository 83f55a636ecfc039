"""Typer CLI entrypoint for catalog-harvester."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository
from .domain import BatchSummary, ItemStatus
from .engine import ThreadPoolManager
from .infra import ProxyPool, SQLiteManager, UserAgentPool
from .logging_conf import available_stage_logs, configure_logging, log_dir, tail_log
from .orchestrator import MAX_BATCH_SIZE, MAX_DISCOVERY_ITERATIONS, Orchestrator

app = typer.Typer(
    help="catalog-harvester command line",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    orchestrator: Orchestrator
    storage: SQLiteManager


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    config = repository.load_config()
    storage = SQLiteManager()
    proxy_pool = ProxyPool(config.fetch.proxies, file_path=config.fetch.proxy_file)
    ua_pool = UserAgentPool(config.fetch.user_agents, file_path=config.fetch.user_agent_file)
    orchestrator = Orchestrator(
        config_repository=repository,
        thread_pool=ThreadPoolManager(),
        storage=storage,
        proxy_pool=None if proxy_pool.empty else proxy_pool,
        ua_pool=ua_pool,
    )
    return AppState(repository=repository, orchestrator=orchestrator, storage=storage)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _render_summary(title: str, summary: BatchSummary) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("Succeeded", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Total", justify="right")
    table.add_row(str(summary.succeeded), str(summary.failed), str(summary.total))
    return table


def _run_batch(ctx: typer.Context, stage: str, size: int) -> None:
    orchestrator = _get_state(ctx).orchestrator
    operations = {
        "fetch": orchestrator.fetch_batch,
        "parse": orchestrator.parse_batch,
        "assets": orchestrator.fetch_assets_batch,
    }
    try:
        summary = operations[stage](size)
    except ValueError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1) from exc
    console.print(_render_summary(f"{stage} batch · size {size}", summary))


app.add_typer(log_app, name="log", help="List or tail log files")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True)
) -> None:
    state = build_state(verbose)
    ctx.obj = state
    ctx.call_on_close(state.orchestrator.close)


@app.command("discover", help="Scroll the listing page and enqueue unseen item URLs.")
def discover(
    ctx: typer.Context,
    iterations: Optional[int] = typer.Option(
        None,
        "--iterations",
        min=1,
        max=MAX_DISCOVERY_ITERATIONS,
        help="Maximum scroll rounds (defaults to the configured value).",
    ),
) -> None:
    orchestrator = _get_state(ctx).orchestrator
    future = orchestrator.run_discovery(iterations)
    if future is None:
        console.print("Discovery is already running.", style="yellow")
        raise typer.Exit(code=1)
    try:
        result = future.result()
    except Exception as exc:  # noqa: BLE001
        console.print(f"Discovery failed: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    table = Table(title="Discovery result", box=box.SIMPLE_HEAD)
    table.add_column("Rounds", justify="right")
    table.add_column("New items", justify="right", style="green")
    table.add_column("Stop reason")
    table.add_row(str(result.iterations), str(result.new_items), result.stop_reason)
    console.print(table)


@app.command("fetch", help="Fetch raw pages for NEW items.")
def fetch(
    ctx: typer.Context,
    size: int = typer.Option(100, "--size", min=1, max=MAX_BATCH_SIZE, help="Items per batch."),
) -> None:
    _run_batch(ctx, "fetch", size)


@app.command("parse", help="Extract records from FETCHED pages.")
def parse(
    ctx: typer.Context,
    size: int = typer.Option(100, "--size", min=1, max=MAX_BATCH_SIZE, help="Items per batch."),
) -> None:
    _run_batch(ctx, "parse", size)


@app.command("assets", help="Download assets of PARSED records.")
def assets(
    ctx: typer.Context,
    size: int = typer.Option(50, "--size", min=1, max=MAX_BATCH_SIZE, help="Items per batch."),
) -> None:
    _run_batch(ctx, "assets", size)


@app.command("status", help="Show queue item counts per status.")
def status(ctx: typer.Context) -> None:
    counts = _get_state(ctx).orchestrator.status_counts()
    table = Table(title="Queue status", box=box.SIMPLE_HEAD)
    table.add_column("Status", style="cyan")
    table.add_column("Items", justify="right")
    for item_status in ItemStatus:
        table.add_row(item_status.value, str(counts.get(item_status.value, 0)))
    table.add_row("TOTAL", str(counts.get("TOTAL", 0)), style="bold")
    console.print(table)


@app.command("reset", help="Delete extracted records and move every item back to NEW.")
def reset(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    if not yes:
        confirm = typer.confirm("Reset every queue item to NEW and drop all records?", default=False)
        if not confirm:
            console.print("Cancelled.", style="yellow")
            raise typer.Exit(code=0)
    count = state.orchestrator.reset_all()
    console.print(f"{count} items reset to NEW.", style="green")


@log_app.command("list", help="List stage log files.")
def log_list() -> None:
    logs = list(available_stage_logs())
    console.print("Log files:", style="cyan")
    if not logs:
        console.print("No stage logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("tail", help="Show the last lines of a log file.")
def log_tail(
    stage: Optional[str] = typer.Option(
        None, "--stage", help="Stage name (discovery, fetch, parse, assets); main log when omitted."
    ),
    lines: int = typer.Option(100, "--lines", min=1, help="Number of lines to show."),
) -> None:
    path = log_dir() / "stages" / f"{stage}.log" if stage else log_dir() / "harvester.log"
    content = tail_log(path, lines)
    if not content:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(content)} lines", style="cyan")
    console.print("".join(content), markup=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
