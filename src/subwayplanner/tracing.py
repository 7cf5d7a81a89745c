"""Structured tracing for feed status, match reasons and timings."""

import logging
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Tracer:
    """
    Emits named diagnostic events with structured fields.

    Events go to a logger; pass a different logger (or a subclass of Tracer)
    to redirect them without touching the components that emit them.
    """

    def __init__(self, sink: Optional[logging.Logger] = None, level: int = logging.DEBUG):
        self.sink = sink or logger
        self.level = level

    def event(self, name: str, **fields: Any) -> None:
        if not self.sink.isEnabledFor(self.level):
            return
        details = " ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))
        self.sink.log(self.level, f"{name} {details}".rstrip(), extra={"trace_event": name, "trace_fields": fields})


class RecordingTracer(Tracer):
    """Keeps events in memory."""

    def __init__(self):
        super().__init__()
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def event(self, name: str, **fields: Any) -> None:
        self.events.append((name, fields))

    def named(self, name: str) -> List[Dict[str, Any]]:
        return [fields for event_name, fields in self.events if event_name == name]
