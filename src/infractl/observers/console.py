# src/infractl/observers/console.py
import typer

from .events import BaseEvent
from .redact import redact


class ConsoleObserver:
    def notify(self, event: BaseEvent) -> None:
        d = redact(event.dict())
        k = event.__class__.__name__
        typer.echo(f"[{d['ts']}] {k} run={d['run_id']} service={d['service']} ns={d['namespace']} data={{"
                   + ", ".join(f"{x}={y}" for x, y in d.items() if x not in ('ts', 'run_id', 'service', 'namespace')) + "}")
