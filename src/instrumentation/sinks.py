"""Sinks that turn notifications into structured telemetry events."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Hashable
from enum import Enum
from typing import Any, Mapping, Protocol

from instrumentation.notifier import Notifier
from instrumentation.registry import CallbackShape, Subscription
from instrumentation.targets import Tag, describe


class Sink(Protocol):
    """Reports instrumentation events to some destination."""

    def emit(self, event_name: str, payload: Mapping[str, Any]) -> None:
        """Publish one event to the sink."""


def event_name(namespace: Hashable, tag: Tag) -> str:
    """``"cache.get"`` for a tagged event, ``"cache"`` otherwise."""
    base = describe(namespace) if isinstance(namespace, (str, Enum)) else str(namespace)
    label = describe(tag)
    return f"{base}.{label}" if label is not None else base


class LoggingSink:
    """Writes each event as one log record with the payload in ``extra``."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._logger = logger or logging.getLogger("instrumentation.events")
        self._level = level

    def emit(self, event_name: str, payload: Mapping[str, Any]) -> None:
        error = payload.get("error")
        if error is not None:
            self._logger.warning(
                event_name,
                extra={"payload": dict(payload), "duration_ms": payload.get("duration")},
                exc_info=error if isinstance(error, BaseException) else None,
            )
            return
        self._logger.log(
            self._level,
            event_name,
            extra={"payload": dict(payload), "duration_ms": payload.get("duration")},
        )


class MemorySink:
    """Bounded in-memory event buffer."""

    def __init__(self, maxlen: int = 1_000) -> None:
        self._events: deque[tuple[str, dict[str, Any]]] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def emit(self, event_name: str, payload: Mapping[str, Any]) -> None:
        with self._lock:
            self._events.append((event_name, dict(payload)))

    def events(self) -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


def forward(notifier: Notifier, namespace: Hashable, sink: Sink, target: object = None) -> Subscription:
    """Subscribe ``sink`` to ``namespace`` so every matching notification is emitted."""

    def _emit(tag: Tag, payload: Mapping[str, Any]) -> None:
        sink.emit(event_name(namespace, tag), payload)

    return notifier.subscribe(namespace, _emit, target, shape=CallbackShape.TAG_AND_PAYLOAD)
