"""Result of running a unit of instrumented work."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True, slots=True)
class Outcome:
    """Either the work's value and extra payload, or the exception it raised."""

    value: Any = None
    payload: Mapping[str, Any] = field(default_factory=dict)
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def unwrap(self) -> Any:
        """Return the value, or re-raise the captured exception with its traceback."""
        if self.error is not None:
            raise self.error
        return self.value


def capture(work: Callable[[], Any]) -> Outcome:
    """Run ``work`` and capture a plain return value."""
    try:
        value = work()
    except Exception as exc:  # noqa: BLE001 - failures are reported, then re-raised by the caller.
        return Outcome(error=exc)
    return Outcome(value=value)


def capture_pair(work: Callable[[], Any]) -> Outcome:
    """Run ``work`` that returns ``(value, extra_payload)``."""
    try:
        result = work()
        value, payload = _split(result)
    except Exception as exc:  # noqa: BLE001 - failures are reported, then re-raised by the caller.
        return Outcome(error=exc)
    return Outcome(value=value, payload=payload)


def _split(result: Any) -> tuple[Any, Mapping[str, Any]]:
    if not isinstance(result, tuple) or len(result) != 2:
        raise TypeError(f"instrumented work must return a (value, payload) pair, got {result!r}")
    value, payload = result
    if payload is None:
        return value, {}
    if isinstance(payload, Mapping):
        return value, payload
    try:
        return value, dict(payload)
    except (TypeError, ValueError) as exc:
        raise TypeError(f"instrumented payload must be a mapping, got {payload!r}") from exc
