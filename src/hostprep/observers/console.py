# src/hostprep/observers/console.py
from .events import BaseEvent, StepApplied, StepFailed, StepSkipped

import typer


class ConsoleObserver:
    """Prints one line per step outcome."""

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, StepSkipped):
            typer.echo(f"  [skip]    {event.step}: {event.reason}")
        elif isinstance(event, StepApplied):
            typer.secho(f"  [applied] {event.step} ({event.duration_ms} ms)", fg=typer.colors.GREEN)
        elif isinstance(event, StepFailed):
            rc = "" if event.returncode is None else f" (exit {event.returncode})"
            typer.secho(f"  [FAILED]  {event.step}{rc}: {event.error}", fg=typer.colors.RED, err=True)
