from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_upload(payload: Dict[str, Any]) -> None:
    echo_heading("Dataset")
    echo_key_values(
        [
            ("filename", payload.get("filename")),
            ("record_count", payload.get("record_count")),
        ]
    )
    typer.echo()
    render_analysis(payload.get("analysis"))


def render_analysis(view: Dict[str, Any] | None) -> None:
    echo_heading("Soil Analysis")
    if not view:
        typer.echo("No analysis available.")
        return
    if view.get("fallback"):
        typer.secho(
            f"Advisor unavailable, showing sample figures ({view.get('reason')}).",
            fg=typer.colors.YELLOW,
        )
    result = view.get("result") or {}
    echo_key_values(
        [
            ("yield", f"{result.get('yield')} tons/acre"),
            ("profit", f"${result.get('profit'):,.0f}" if result.get("profit") is not None else None),
            ("summary", result.get("summary")),
        ]
    )
    for label in ("diseases", "risks"):
        items = result.get(label) or []
        if items:
            typer.echo(f"{label}:")
            for item in items:
                typer.echo(f"  - {item.get('name')} ({item.get('probability')}): {item.get('explanation')}")


def render_window(payload: Dict[str, Any]) -> None:
    records = payload.get("records") or []
    echo_heading("Display Window")
    if payload.get("filtered"):
        typer.echo(f"range: {payload.get('start_date')} .. {payload.get('end_date')}")
    typer.echo(f"records: {len(records)}")
    if not records:
        typer.echo("Please upload your dataset to see results.")
        return
    typer.echo("date,moisture,fertility,temperature")
    for record in records:
        typer.echo(
            f"{record.get('date')},{record.get('moisture')},"
            f"{record.get('fertility')},{record.get('temperature')}"
        )


def render_stream(payload: Dict[str, Any]) -> None:
    echo_heading("Stream")
    echo_key_values(
        [
            ("state", payload.get("state")),
            ("mode", payload.get("mode")),
            ("progress", f"{payload.get('cursor')}/{payload.get('total')}"),
            ("window_size", payload.get("window_size")),
            ("last_update", payload.get("last_update")),
        ]
    )


def render_chat(payload: Dict[str, Any]) -> None:
    result = payload.get("result") or {}
    if payload.get("fallback"):
        typer.secho("(advisor unavailable)", fg=typer.colors.YELLOW)
    typer.echo(f"[{result.get('languageCode')}] {result.get('response')}")
