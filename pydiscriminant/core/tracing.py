"""
Progress tracing for long-running procedures.

Procedures report checkpoints (dataset extracted, a test computed, a
candidate dropped, a stepwise step completed) to a Tracer. The default
tracer forwards events to the standard logging module at DEBUG level;
tests can swap in RecordingTracer to assert on the sequence of events.
Tracers observe only: nothing they do feeds back into the computation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Tracer(Protocol):
    """Receiver for named checkpoint events."""

    def event(self, name: str, **fields: Any) -> None:
        ...


class LoggingTracer:
    """
    Tracer that writes each event as one log record.

    Args:
        log: Logger to write to (defaults to this module's logger)
        level: Logging level for events
    """

    def __init__(self, log: logging.Logger | None = None, level: int = logging.DEBUG):
        self._log = log if log is not None else logger
        self._level = level

    def event(self, name: str, **fields: Any) -> None:
        if not self._log.isEnabledFor(self._level):
            return
        details = " ".join(f"{key}={value!r}" for key, value in fields.items())
        self._log.log(self._level, "%s %s", name, details)


class NullTracer:
    """Tracer that discards every event."""

    def event(self, name: str, **fields: Any) -> None:
        pass


@dataclass
class RecordingTracer:
    """Tracer that keeps every event in memory, in arrival order."""
    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def event(self, name: str, **fields: Any) -> None:
        self.events.append((name, dict(fields)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def default_tracer() -> Tracer:
    return LoggingTracer()
