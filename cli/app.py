from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_chat, render_stream, render_upload, render_window


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


class StreamAction(str, Enum):
    start = "start"
    pause = "pause"
    resume = "resume"
    stop = "stop"
    status = "status"


app = typer.Typer(
    help="Utilities for interacting with the soil dashboard service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Dashboard API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between status checks when waiting for a stream.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Maximum seconds to wait for a stream to finish.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        base_url=base_url,
        poll_interval=poll_interval,
        wait_timeout=timeout,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("upload")
def upload_command(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="CSV, JSON or Excel soil dataset."
    ),
) -> None:
    """Upload a dataset, replacing the current one, and show the soil analysis."""
    state = _get_state(ctx)
    typer.echo(f"Uploading {file} to {state.config.base_url} ...")
    payload = state.client.upload_dataset(file)
    typer.secho(f"Upload accepted. records={payload.get('record_count')}", fg=typer.colors.GREEN)
    typer.echo()
    render_upload(payload)


@app.command("window")
def window_command(
    ctx: typer.Context,
    start: Optional[datetime] = typer.Option(None, "--start", formats=["%Y-%m-%d"], help="First day to show."),
    end: Optional[datetime] = typer.Option(None, "--end", formats=["%Y-%m-%d"], help="Last day to show."),
    reset: bool = typer.Option(False, "--reset", help="Clear any date range."),
) -> None:
    """Show the display window, optionally narrowing it to a date range first."""
    state = _get_state(ctx)
    if reset:
        payload = state.client.reset_window()
    elif start is not None or end is not None:
        payload = state.client.filter_window(
            start.date() if start else None, end.date() if end else None
        )
    else:
        payload = state.client.get_window()
    render_window(payload)


@app.command("export")
def export_command(
    ctx: typer.Context,
    output: Path = typer.Argument(Path("soil_analysis_report.csv"), dir_okay=False, help="Destination CSV path."),
) -> None:
    """Download the display window as a CSV report."""
    state = _get_state(ctx)
    body = state.client.download_report()
    output.write_text(body, encoding="utf-8")
    typer.secho(f"Report written to {output}", fg=typer.colors.GREEN)


@app.command("stream")
def stream_command(
    ctx: typer.Context,
    action: StreamAction = typer.Argument(StreamAction.status, help="start, pause, resume, stop or status."),
    wait: bool = typer.Option(
        False,
        "--wait/--no-wait",
        help="After the action, wait until the stream stops streaming.",
    ),
) -> None:
    """Control the replay/live stream."""
    state = _get_state(ctx)
    payload = state.client.stream(action.value)
    if wait and payload.get("state") == "streaming":
        typer.echo(
            f"Waiting for stream (interval={state.config.poll_interval}s, "
            f"timeout={state.config.wait_timeout}s)..."
        )
        payload = state.client.wait_for_stream(
            interval=state.config.poll_interval, timeout=state.config.wait_timeout
        )
    render_stream(payload)


@app.command("chat")
def chat_command(
    ctx: typer.Context,
    message: str = typer.Argument(..., help="Question for the farm advisor."),
) -> None:
    """Ask the farm advisor a question about the loaded dataset."""
    state = _get_state(ctx)
    render_chat(state.client.chat(message))
