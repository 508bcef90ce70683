"""Instrumentation wrapper and synchronous notification dispatch.

Work is timed, a payload is built from its outcome, and every subscriber whose
target matches the dispatch tag is called before control returns to the caller::

    notifier = Notifier()
    notifier.subscribe("cache", lambda payload: print(payload["duration"]), target="get")

    value = notifier.instrument("cache", lambda: (cache.get(key), {"key": key}), tag="get")
"""

from __future__ import annotations

import functools
import logging
import time as _time
from collections.abc import Hashable, Iterator, Mapping
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from instrumentation.errors import SubscriberErrors
from instrumentation.outcome import Outcome, capture, capture_pair
from instrumentation.registry import CallbackShape, Subscription, SubscriptionRegistry, check_namespace
from instrumentation.targets import Tag, describe, matches, validate_tag

if TYPE_CHECKING:
    from instrumentation.config import Settings

T = TypeVar("T")


class SubscriberErrorPolicy(str, Enum):
    """What happens when a subscriber raises while being notified."""

    ISOLATE = "isolate"
    PROPAGATE = "propagate"
    AGGREGATE = "aggregate"


class Notifier:
    """Owns a subscription registry and drives instrumentation through it."""

    def __init__(
        self,
        registry: SubscriptionRegistry | None = None,
        *,
        clock: Callable[[], float] = _time.monotonic,
        error_policy: SubscriberErrorPolicy = SubscriberErrorPolicy.ISOLATE,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry if registry is not None else SubscriptionRegistry()
        self._clock = clock
        self._error_policy = SubscriberErrorPolicy(error_policy)
        self._logger = logger or logging.getLogger("instrumentation.notifier")

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> Notifier:
        kwargs.setdefault("error_policy", settings.subscriber_errors)
        return cls(**kwargs)

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    @property
    def error_policy(self) -> SubscriberErrorPolicy:
        return self._error_policy

    def subscribe(
        self,
        namespace: Hashable,
        callback: Callable[..., Any],
        target: object = None,
        *,
        shape: CallbackShape | None = None,
    ) -> Subscription:
        """Register ``callback`` for notifications on ``namespace``.

        ``target`` of ``None`` matches every tag. A ``str`` or ``Enum`` member only
        matches an identical tag of the same kind, and a compiled regex is searched
        against string tags. Callbacks taking one argument receive the payload with
        ``tag`` added; callbacks taking two receive ``(tag, payload)``.
        """
        return self._registry.register(namespace, target, callback, shape=shape)

    def unsubscribe(self, subscription: Subscription) -> bool:
        return self._registry.unregister(subscription)

    def instrument(self, namespace: Hashable, work: Callable[[], tuple[T, Any]], tag: Tag = None) -> T:
        """Run ``work``, notify subscribers, and return the first item of its result.

        ``work`` returns ``(value, extra_payload)``. The extra payload is merged into
        the notification and ``duration`` (milliseconds) is always set by the bus.
        If ``work`` raises, subscribers get ``{"error": exc, "duration": ...}`` and the
        exception is re-raised unchanged.
        """
        check_namespace(namespace)
        tag = validate_tag(tag)
        start = self._clock()
        outcome = capture_pair(work)
        return self._finish(namespace, tag, outcome, self._elapsed_ms(start))

    def time(self, namespace: Hashable, work: Callable[[], T], tag: Tag = None) -> T:
        """Time ``work`` that has no extra payload and return its value."""
        check_namespace(namespace)
        tag = validate_tag(tag)
        start = self._clock()
        outcome = capture(work)
        return self._finish(namespace, tag, outcome, self._elapsed_ms(start))

    @contextmanager
    def measure(self, namespace: Hashable, tag: Tag = None) -> Iterator[dict[str, Any]]:
        """Block form of ``instrument``; fill the yielded dict with extra payload."""
        check_namespace(namespace)
        tag = validate_tag(tag)
        extra: dict[str, Any] = {}
        start = self._clock()
        try:
            yield extra
        except Exception as exc:
            self._report(namespace, tag, Outcome(error=exc), self._elapsed_ms(start))
            raise
        self._report(namespace, tag, Outcome(payload=extra), self._elapsed_ms(start))

    def instrumented(
        self,
        namespace: Hashable,
        tag: Tag = None,
        *,
        payload: Callable[[tuple, dict, Any], Mapping[str, Any]] | None = None,
    ) -> Callable[[Callable[..., T]], Callable[..., T]]:
        """Decorator that instruments every call of the wrapped function."""
        tag = validate_tag(tag)

        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            @functools.wraps(func)
            def wrapper(*args: Any, **kwargs: Any) -> T:
                def work() -> tuple[T, Mapping[str, Any]]:
                    result = func(*args, **kwargs)
                    return result, payload(args, kwargs, result) if payload else {}

                return self.instrument(namespace, work, tag=tag)

            return wrapper

        return decorator

    def notify(self, namespace: Hashable, tag: Tag, payload: Mapping[str, Any]) -> int:
        """Deliver ``payload`` to every matching subscriber; returns how many were called."""
        return self._dispatch(namespace, tag, payload, self._error_policy)

    def close(self) -> None:
        self._registry.clear()

    def __enter__(self) -> Notifier:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _finish(self, namespace: Hashable, tag: Tag, outcome: Outcome, duration: int) -> Any:
        self._report(namespace, tag, outcome, duration)
        return outcome.unwrap()

    def _report(self, namespace: Hashable, tag: Tag, outcome: Outcome, duration: int) -> None:
        if outcome.failed:
            # The caller always sees the work's own exception.
            failure = {"error": outcome.error, "duration": duration}
            self._dispatch(namespace, tag, failure, SubscriberErrorPolicy.ISOLATE)
            return

        payload = dict(outcome.payload)
        payload["duration"] = duration
        self._dispatch(namespace, tag, payload, self._error_policy)

    def _dispatch(
        self,
        namespace: Hashable,
        tag: Tag,
        payload: Mapping[str, Any],
        policy: SubscriberErrorPolicy,
    ) -> int:
        delivered = 0
        failures: list[Exception] = []
        for subscription in self._registry.lookup(namespace):
            if not matches(subscription.target, tag):
                continue
            delivered += 1
            try:
                self._invoke(subscription, tag, payload)
            except Exception as exc:
                if policy is SubscriberErrorPolicy.PROPAGATE:
                    raise
                self._logger.exception(
                    "subscriber_failed",
                    extra={
                        "subscription_id": subscription.id,
                        "namespace": str(namespace),
                        "tag": describe(tag),
                    },
                )
                failures.append(exc)

        if failures and policy is SubscriberErrorPolicy.AGGREGATE:
            raise SubscriberErrors(f"{len(failures)} subscriber(s) failed for {namespace!r}", failures)
        return delivered

    @staticmethod
    def _invoke(subscription: Subscription, tag: Tag, payload: Mapping[str, Any]) -> None:
        if subscription.shape is CallbackShape.TAG_AND_PAYLOAD:
            subscription.callback(tag, dict(payload))
            return
        delivered = dict(payload)
        delivered["tag"] = tag
        subscription.callback(delivered)

    def _elapsed_ms(self, start: float) -> int:
        return max(0, round((self._clock() - start) * 1000))
