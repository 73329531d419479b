"""Trace Port: optional observability hook consumed by the resolver and scanner.

Invariants:
    - Core NEVER logs directly; it emits events to a TraceSink when one is given
    - A sink's behavior never changes a decision or a finding
    - Passing no sink (None) is always valid and emits nothing

Design Decisions:
    - Protocol over ABC: any object with an `event` method qualifies,
      implementations live in infrastructure/
"""

from typing import Any, Protocol


class TraceSink(Protocol):
    """Receives structured diagnostic events from core computations."""

    def event(self, name: str, **fields: Any) -> None: ...


class RecordingTraceSink:
    """In-memory sink that keeps every event, for tests and ad-hoc debugging."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def event(self, name: str, **fields: Any) -> None:
        self.events.append((name, fields))

    def named(self, name: str) -> list[dict[str, Any]]:
        return [fields for event_name, fields in self.events if event_name == name]


def emit(sink: TraceSink | None, name: str, **fields: Any) -> None:
    """Send an event to `sink` if there is one."""
    if sink is not None:
        sink.event(name, **fields)
