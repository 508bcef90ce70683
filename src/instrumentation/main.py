"""CLI entrypoint for the instrumentation bus."""

from __future__ import annotations

import logging
import subprocess
from typing import Any

import typer
from rich import print
from rich.logging import RichHandler

from instrumentation.config import settings
from instrumentation.notifier import Notifier
from instrumentation.sinks import LoggingSink, MemorySink, forward

app = typer.Typer(help="Instrumentation bus utilities")

CLI_NAMESPACE = "cli"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _render(payload: dict[str, Any]) -> dict[str, Any]:
    rendered = dict(payload)
    if isinstance(rendered.get("error"), BaseException):
        error = rendered["error"]
        rendered["error"] = f"{type(error).__name__}: {error}"
    return rendered


@app.command("settings")
def show_settings() -> None:
    """Show the effective runtime configuration."""
    print(
        {
            "app_name": settings.app_name,
            "log_level": settings.log_level,
            "subscriber_errors": settings.subscriber_errors.value,
            "log_events": settings.log_events,
        }
    )


@app.command("time", context_settings={"ignore_unknown_options": True})
def time_command(command: list[str] = typer.Argument(..., help="Command to run, e.g. -- sleep 1")) -> None:
    """Run a command under instrumentation and report its timing payload."""
    configure_logging(settings.log_level)
    notifier = Notifier.from_settings(settings)
    sink = MemorySink()
    forward(notifier, CLI_NAMESPACE, sink)
    if settings.log_events:
        forward(notifier, CLI_NAMESPACE, LoggingSink())

    def _run() -> tuple[int, dict[str, Any]]:
        completed = subprocess.run(command, check=False)
        return completed.returncode, {"argv": command, "returncode": completed.returncode}

    with notifier:
        try:
            returncode = notifier.instrument(CLI_NAMESPACE, _run, tag="command")
        except FileNotFoundError:
            for name, payload in sink.events():
                print({"event": name, "payload": _render(payload)})
            raise typer.Exit(code=127)

        for name, payload in sink.events():
            print({"event": name, "payload": _render(payload)})

    if returncode:
        raise typer.Exit(code=returncode)


if __name__ == "__main__":
    app()
