"""Typer CLI entrypoint for the EXPA notifier."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from .config import (
    ConfigMissing,
    ConfigRepository,
    NotifierConfig,
    RecordKind,
    RoutingKey,
)
from .engine import BaseRecordStore, MongoRecordStore, Notifier, SourceAdapter, SQLiteRecordStore
from .infra import SQLiteManager
from .logging_conf import available_kind_logs, configure_logging, kind_log_path, kind_logger, tail_log
from .orchestrator import CycleSummary, PollOrchestrator
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="Poll EXPA for new signups and applications and notify chat channels.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(name="config", help="Configuration commands", no_args_is_help=True, rich_markup_mode=None)
log_app = typer.Typer(name="log", help="Log viewing commands", no_args_is_help=True, rich_markup_mode=None)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: NotifierConfig
    scheduler: APSchedulerAdapter
    orchestrator: PollOrchestrator

    def close(self) -> None:
        self.orchestrator.source.close()
        self.orchestrator.notifier.close()
        self.orchestrator.store.close()


def build_store(repository: ConfigRepository, config: NotifierConfig) -> BaseRecordStore:
    if config.store.backend == "mongodb":
        return MongoRecordStore(config.store.uri, database=config.store.database)
    return SQLiteRecordStore(SQLiteManager(), repository.sqlite_path(config))


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    config = repository.load()
    log_dir = repository.locator.logs_dir
    logger = configure_logging(log_dir, verbose=verbose)
    orchestrator = PollOrchestrator(
        config=config,
        source=SourceAdapter(config.upstream),
        store=build_store(repository, config),
        notifier=Notifier(
            config.webhooks,
            time_zone=config.routing.time_zone,
            enabled=config.notifications_enabled,
            timeout=config.notify_timeout,
        ),
        logger=logger,
        kind_loggers={kind: kind_logger(log_dir, kind.value, verbose) for kind in RecordKind},
    )
    return AppState(
        repository=repository,
        config=config,
        scheduler=APSchedulerAdapter(logger),
        orchestrator=orchestrator,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


@contextmanager
def _session(ctx: typer.Context) -> Iterator[AppState]:
    state = _get_state(ctx)
    try:
        yield state
    finally:
        state.close()


def _require_config(state: AppState) -> NotifierConfig:
    try:
        return state.repository.load_validated()
    except ConfigMissing as exc:
        console.print("Missing required configuration:", style="red")
        for name in exc.missing:
            console.print(f"- {name}", style="red")
        console.print(f"Edit {state.repository.locator.config_path()} and retry.", style="dim")
        raise typer.Exit(code=1) from exc


def _render_summaries(summaries: Iterable[CycleSummary]) -> Table:
    table = Table(title="Poll results", box=box.SIMPLE_HEAD)
    table.add_column("Kind", style="cyan", no_wrap=True)
    for header in (
        "Fetched",
        "Invalid",
        "Inserted",
        "Duplicates",
        "Store failed",
        "Suppressed",
        "Notified",
        "Notify failed",
    ):
        table.add_column(header, style="green", justify="right")
    for summary in summaries:
        table.add_row(
            summary.kind.value,
            "failed" if summary.fetch_failed else str(summary.fetched),
            str(summary.invalid),
            str(summary.inserted),
            str(summary.duplicates),
            str(summary.store_failed),
            str(summary.suppressed),
            str(summary.notified),
            str(summary.notify_failed),
        )
    return table


def _render_jobs_table(jobs: Iterable[dict]) -> Table:
    table = Table(title="Scheduled jobs", box=box.SIMPLE_HEAD)
    table.add_column("Job ID", style="cyan", no_wrap=True)
    table.add_column("Next run", style="green")
    table.add_column("Trigger", style="magenta", overflow="fold")
    for job in jobs:
        table.add_row(
            str(job.get("id", "-")),
            str(job.get("next_run_time", "-")),
            str(job.get("trigger", "-")),
        )
    return table


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging")
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Poll continuously on the configured schedules.")
def run(
    ctx: typer.Context,
    announce: bool = typer.Option(True, "--announce/--no-announce", help="Post the startup test message."),
) -> None:
    with _session(ctx) as state:
        config = _require_config(state)
        orchestrator = state.orchestrator
        if announce and config.announce_on_start:
            orchestrator.announce()
        console.print(_render_summaries(orchestrator.run_once().values()))
        orchestrator.register_schedules(state.scheduler)
        console.print(_render_jobs_table(state.scheduler.list_jobs()))
        console.print("Polling; press Ctrl+C to stop.", style="dim")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("Stopping.", style="yellow")
        finally:
            state.scheduler.shutdown()


@app.command("poll", help="Run a single poll cycle and exit.")
def poll(
    ctx: typer.Context,
    kind: Optional[RecordKind] = typer.Argument(None, help="Record kind; all enabled kinds when omitted."),
) -> None:
    with _session(ctx) as state:
        _require_config(state)
        kinds = [kind] if kind is not None else None
        summaries = state.orchestrator.run_once(kinds)
    console.print(_render_summaries(summaries.values()))


@app.command("test-chat", help="Send a test message to chat channels.")
def test_chat(
    ctx: typer.Context,
    channel: Optional[RoutingKey] = typer.Argument(None, help="Channel; all configured channels when omitted."),
) -> None:
    with _session(ctx) as state:
        config = _require_config(state)
        channels = [channel] if channel is not None else config.required_channels()
        results = state.orchestrator.notifier.send_test_message(channels)
    table = Table(title="Test message", box=box.SIMPLE_HEAD)
    table.add_column("Channel", style="cyan")
    table.add_column("Outcome", style="green")
    for key, outcome in results.items():
        table.add_row(key.value, outcome.value)
    console.print(table)


@app.command("history", help="Show recently stored records.")
def history(
    ctx: typer.Context,
    kind: RecordKind = typer.Argument(..., help="Record kind."),
    limit: int = typer.Option(20, "--limit", help="Number of records to show."),
) -> None:
    with _session(ctx) as state:
        rows = state.orchestrator.history(kind, limit=limit)
    if not rows:
        console.print("No stored records.", style="dim")
        return
    table = Table(title=f"{kind.value}: latest {len(rows)}", box=box.SIMPLE_HEAD)
    table.add_column("Fetched at", style="green")
    table.add_column("ID", style="cyan")
    table.add_column("Created at")
    table.add_column("Name", overflow="fold")
    for row in rows:
        payload = row.payload
        name = payload.get("full_name") or (payload.get("person") or {}).get("full_name") or "-"
        table.add_row(str(row.fetched_at), row.record_id, str(row.created_at or "-"), str(name))
    console.print(table)


@config_app.command("show", help="Print the effective configuration.")
def config_show(ctx: typer.Context) -> None:
    with _session(ctx) as state:
        payload = state.config.model_dump(mode="json")
    if payload["upstream"]["token"]:
        payload["upstream"]["token"] = "***"
    console.print(yaml.safe_dump(payload, allow_unicode=True, sort_keys=False))


@config_app.command("check", help="Report missing required settings.")
def config_check(ctx: typer.Context) -> None:
    with _session(ctx) as state:
        _require_config(state)
    console.print("Configuration complete.", style="green")


@log_app.command("list", help="List available log files.")
def log_list(ctx: typer.Context) -> None:
    with _session(ctx) as state:
        logs = list(available_kind_logs(state.repository.locator.logs_dir))
    if not logs:
        console.print("No per-kind logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    ctx: typer.Context,
    kind: Optional[RecordKind] = typer.Option(None, "--kind", help="Kind log; global log when omitted."),
    tail: int = typer.Option(100, "--tail", help="Number of lines."),
) -> None:
    with _session(ctx) as state:
        log_dir = state.repository.locator.logs_dir
    path = kind_log_path(log_dir, kind.value) if kind else log_dir / "notifier.log"
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log lines yet.", style="dim")
        return
    console.print("".join(lines))


app.add_typer(config_app, name="config")
app.add_typer(log_app, name="log")


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
