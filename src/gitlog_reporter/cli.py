from __future__ import annotations
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from .bootstrap import build_app
from .core.errors import StreamError
from .core.models import Commit, ReportType
from .core.ports import CallbackSink

app = typer.Typer(add_completion=False, help="Stream AI-written reports from commit history.")

_err = Console(stderr=True)

DEFAULT_CONFIG = Path("config/default.yaml")


def _setup_logging(cfg: dict, override: Optional[str]) -> None:
    level = (override or (cfg.get("logging") or {}).get("level") or "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err, show_path=False)],
        force=True,
    )


def _echo_delta(text: str) -> None:
    typer.echo(text, nl=False)


def _load(config: Path, log_level: Optional[str]) -> dict:
    try:
        ctx = build_app(config)
    except (StreamError, FileNotFoundError) as e:
        _err.print(f"[bold red]config error:[/] {e}", markup=True, highlight=False)
        raise typer.Exit(code=2)
    _setup_logging(ctx["cfg"], log_level)
    return ctx


def _read_commits(path: Path) -> List[Commit]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise typer.BadParameter("commits file must hold a JSON list", param_hint="--commits")
    return [
        Commit(
            hash=str(item["hash"]),
            author=str(item.get("author", "")),
            email=str(item.get("email", "")),
            timestamp=int(item["timestamp"]),
            message=str(item.get("message", "")),
        )
        for item in data
    ]


@app.command()
def generate(
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c"),
    prompt: Optional[str] = typer.Option(None, "--prompt", "-p", help="Prompt text"),
    prompt_file: Optional[Path] = typer.Option(None, "--prompt-file", help="Read prompt from file"),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    """Send a prompt and stream the response to stdout."""
    if prompt is None:
        prompt = prompt_file.read_text(encoding="utf-8") if prompt_file else sys.stdin.read()
    if not prompt.strip():
        raise typer.BadParameter("prompt is empty", param_hint="--prompt")

    ctx = _load(config, log_level)

    async def _run() -> str:
        async with ctx["transport"]:
            return await ctx["engine"].generate(ctx["descriptor"], prompt, CallbackSink(_echo_delta))

    try:
        asyncio.run(_run())
    except StreamError as e:
        typer.echo("")
        _err.print(f"[bold red]error:[/] {e}", markup=True, highlight=False)
        raise typer.Exit(code=1)
    typer.echo("")


@app.command()
def report(
    commits: Path = typer.Option(..., "--commits", help="JSON list of commit records"),
    report_type: ReportType = typer.Option(ReportType.WEEKLY, "--type", "-t", case_sensitive=False),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c"),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    """Generate a weekly or monthly report from exported commit records."""
    records = _read_commits(commits)
    ctx = _load(config, log_level)

    async def _run():
        async with ctx["transport"]:
            return await ctx["reports"].generate(
                report_type, records, ctx["descriptor"], CallbackSink(_echo_delta)
            )

    try:
        asyncio.run(_run())
    except (StreamError, ValueError) as e:
        typer.echo("")
        _err.print(f"[bold red]error:[/] {e}", markup=True, highlight=False)
        raise typer.Exit(code=1)
    typer.echo("")


@app.command("test-connection")
def test_connection(
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c"),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    """Probe the configured backend with a minimal non-streaming request."""
    ctx = _load(config, log_level)

    async def _run() -> bool:
        async with ctx["transport"]:
            return await ctx["engine"].test_connection(ctx["descriptor"])

    try:
        ok = asyncio.run(_run())
    except StreamError as e:
        _err.print(f"[bold red]connection failed:[/] {e}", markup=True, highlight=False)
        raise typer.Exit(code=1)

    d = ctx["descriptor"]
    if ok:
        typer.echo(f"OK: {d.kind.value} {d.model}")
    else:
        typer.echo(f"FAILED: {d.kind.value} {d.model} rejected the request")
        raise typer.Exit(code=1)


@app.command()
def serve(
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c"),
    host: str = "127.0.0.1",
    port: int = 8000,
):
    """Run the HTTP API."""
    from .web.app import run

    run(config=config, host=host, port=port)
