"""Thread-safe registry of subscriptions keyed by namespace."""

from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Hashable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
from uuid import uuid4

from instrumentation.errors import ConfigurationError, InvalidSubscriberError
from instrumentation.targets import MatchTarget, parse_target


class CallbackShape(str, Enum):
    """How a subscriber callback expects to be invoked."""

    PAYLOAD = "payload"
    TAG_AND_PAYLOAD = "tag_and_payload"


@dataclass(frozen=True, slots=True)
class Subscription:
    """A registered callback and the filter deciding which notifications it gets."""

    namespace: Hashable
    target: MatchTarget
    callback: Callable[..., Any]
    shape: CallbackShape
    id: str = field(default_factory=lambda: uuid4().hex)


def resolve_shape(callback: Callable[..., Any]) -> CallbackShape:
    """Work out the invocation shape from the callback's positional parameters."""
    try:
        signature = inspect.signature(callback)
    except (TypeError, ValueError) as exc:
        raise InvalidSubscriberError(
            f"cannot inspect subscriber {callback!r}; pass an explicit shape"
        ) from exc

    required = 0
    optional = 0
    variadic = False
    for param in signature.parameters.values():
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            if param.default is param.empty:
                required += 1
            else:
                optional += 1
        elif param.kind is param.VAR_POSITIONAL:
            variadic = True
        elif param.kind is param.KEYWORD_ONLY and param.default is param.empty:
            raise InvalidSubscriberError(f"subscriber {callback!r} has required keyword-only parameters")

    if required == 1:
        return CallbackShape.PAYLOAD
    if required == 2:
        return CallbackShape.TAG_AND_PAYLOAD
    if required == 0 and (optional or variadic):
        return CallbackShape.PAYLOAD
    raise InvalidSubscriberError(f"bad arity for subscriber {callback!r}: expected 1 or 2 arguments")


class SubscriptionRegistry:
    """Namespace to subscriptions multimap.

    Writers serialise on a lock and replace the per-namespace tuple wholesale, so
    ``lookup`` hands out immutable snapshots without ever waiting on a writer.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._entries: dict[Hashable, tuple[Subscription, ...]] = {}
        self._lock = threading.RLock()
        self._logger = logger or logging.getLogger("instrumentation.registry")

    def register(
        self,
        namespace: Hashable,
        target: object,
        callback: Callable[..., Any],
        shape: CallbackShape | None = None,
    ) -> Subscription:
        """Add a subscription and return it as the handle for ``unregister``."""
        check_namespace(namespace)
        match_target = parse_target(target)
        if not callable(callback):
            raise InvalidSubscriberError(f"subscriber must be callable, got {callback!r}")
        if shape is None:
            shape = resolve_shape(callback)
        else:
            shape = CallbackShape(shape)

        subscription = Subscription(namespace=namespace, target=match_target, callback=callback, shape=shape)
        with self._lock:
            self._entries[namespace] = (*self._entries.get(namespace, ()), subscription)

        self._logger.debug(
            "subscription_registered",
            extra={
                "subscription_id": subscription.id,
                "namespace": str(namespace),
                "shape": shape.value,
            },
        )
        return subscription

    def lookup(self, namespace: Hashable) -> tuple[Subscription, ...]:
        """Return the subscriptions for ``namespace`` in registration order."""
        return self._entries.get(namespace, ())

    def unregister(self, subscription: Subscription) -> bool:
        """Remove a subscription. Returns ``False`` if it was already gone."""
        with self._lock:
            current = self._entries.get(subscription.namespace, ())
            remaining = tuple(entry for entry in current if entry.id != subscription.id)
            if len(remaining) == len(current):
                return False
            if remaining:
                self._entries[subscription.namespace] = remaining
            else:
                del self._entries[subscription.namespace]

        self._logger.debug("subscription_removed", extra={"subscription_id": subscription.id})
        return True

    def namespaces(self) -> list[Hashable]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        """Drop every subscription."""
        with self._lock:
            self._entries = {}

    def __len__(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._entries.values())

    def __contains__(self, subscription: object) -> bool:
        if not isinstance(subscription, Subscription):
            return False
        return any(entry.id == subscription.id for entry in self.lookup(subscription.namespace))


def check_namespace(namespace: object) -> None:
    if namespace is None:
        raise ConfigurationError("namespace is required")
    try:
        hash(namespace)
    except TypeError as exc:
        raise ConfigurationError(f"namespace must be hashable, got {namespace!r}") from exc
