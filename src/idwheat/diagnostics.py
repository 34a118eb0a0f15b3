"""
diagnostics.py

Structured diagnostic events for the heatmap layer.

The layer reports what it does through a sink instead of printing. A sink is
any object with an ``emit(event, level, **fields)`` method. Two are provided:

- `LoggingSink` : forwards every event to a `logging.Logger` (the default).
- `RecordingSink` : keeps events in memory so tests can assert on them.
"""

from typing import Any, List, NamedTuple, Optional
import logging

logger = logging.getLogger(__name__)


class DiagnosticEvent(NamedTuple):
    event: str
    level: int
    fields: dict


class DiagnosticSink:
    """Base sink. Subclasses override `emit`."""

    def emit(self, event: str, level: int = logging.DEBUG, **fields: Any) -> None:
        raise NotImplementedError


class LoggingSink(DiagnosticSink):
    """Forward events to a logger as ``event | key=value | ...`` lines."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log if log is not None else logging.getLogger('idwheat.layer')

    def emit(self, event: str, level: int = logging.DEBUG, **fields: Any) -> None:
        if not self.log.isEnabledFor(level):
            return
        if fields:
            ctx_s = ' | '.join(f"{k}={v!r}" for k, v in fields.items())
            self.log.log(level, '%s | %s', event, ctx_s)
        else:
            self.log.log(level, '%s', event)


class RecordingSink(DiagnosticSink):
    """Keep every event in ``self.events``."""

    def __init__(self):
        self.events: List[DiagnosticEvent] = []

    def emit(self, event: str, level: int = logging.DEBUG, **fields: Any) -> None:
        self.events.append(DiagnosticEvent(event, level, dict(fields)))

    def names(self) -> List[str]:
        return [e.event for e in self.events]

    def find(self, event: str) -> List[DiagnosticEvent]:
        return [e for e in self.events if e.event == event]

    def clear(self) -> None:
        self.events.clear()

