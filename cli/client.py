from __future__ import annotations

import time
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig

_CONTENT_TYPES = {
    ".csv": "text/csv",
    ".json": "application/json",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
}


class ApiClient:
    """Minimal HTTP client for the dashboard service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=60.0)

    def close(self) -> None:
        self._client.close()

    def upload_dataset(self, path: Path) -> Dict[str, Any]:
        if not path.is_file():
            raise typer.BadParameter(f"Path {path} is not a file.")
        content_type = _CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")
        with path.open("rb") as handle:
            return self._request(
                "POST", "/dashboard/dataset", files={"file": (path.name, handle, content_type)}
            )

    def get_window(self) -> Dict[str, Any]:
        return self._request("GET", "/dashboard/window")

    def filter_window(self, start: Optional[date], end: Optional[date]) -> Dict[str, Any]:
        body = {
            "start_date": start.isoformat() if start else None,
            "end_date": end.isoformat() if end else None,
        }
        return self._request("POST", "/dashboard/window/filter", json=body)

    def reset_window(self) -> Dict[str, Any]:
        return self._request("POST", "/dashboard/window/reset")

    def download_report(self) -> str:
        response = self._send("GET", "/dashboard/report.csv")
        return response.text

    def stream(self, action: str) -> Dict[str, Any]:
        if action == "status":
            return self._request("GET", "/dashboard/stream")
        return self._request("POST", f"/dashboard/stream/{action}")

    def wait_for_stream(self, interval: float, timeout: float) -> Dict[str, Any]:
        deadline = time.monotonic() + timeout
        last_payload: Dict[str, Any] | None = None
        while time.monotonic() <= deadline:
            last_payload = self.stream("status")
            if last_payload.get("state") != "streaming":
                return last_payload
            time.sleep(interval)
        typer.secho(
            (
                "Timed out waiting for the stream to finish. "
                f"Last state: {last_payload.get('state') if last_payload else 'unknown'}"
            ),
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    def chat(self, message: str, history: List[Dict[str, str]] | None = None) -> Dict[str, Any]:
        return self._request(
            "POST", "/advisor/chat", json={"message": message, "history": history or []}
        )

    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        return self._send(method, url, **kwargs).json()

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}", fg=typer.colors.RED, err=True
            )
            raise typer.Exit(code=1) from exc
        return response

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
