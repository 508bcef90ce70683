from __future__ import annotations

import threading

import pytest

from instrumentation import CallbackShape, ConfigurationError, InvalidSubscriberError, SubscriptionRegistry
from instrumentation.registry import resolve_shape
from instrumentation.targets import ANY, ExactString


def test_register_and_lookup_in_registration_order() -> None:
    registry = SubscriptionRegistry()
    first = registry.register("cache", None, lambda payload: None)
    second = registry.register("cache", "get", lambda tag, payload: None)
    registry.register("db", None, lambda payload: None)

    assert registry.lookup("cache") == (first, second)
    assert first.target is ANY
    assert second.target == ExactString("get")
    assert first.shape is CallbackShape.PAYLOAD
    assert second.shape is CallbackShape.TAG_AND_PAYLOAD
    assert len(registry) == 3
    assert registry.lookup("missing") == ()


def test_lookup_returns_snapshot() -> None:
    registry = SubscriptionRegistry()
    registry.register("cache", None, lambda payload: None)

    snapshot = registry.lookup("cache")
    registry.register("cache", None, lambda payload: None)

    assert len(snapshot) == 1
    assert len(registry.lookup("cache")) == 2


def test_unregister_and_clear() -> None:
    registry = SubscriptionRegistry()
    sub = registry.register("cache", None, lambda payload: None)
    other = registry.register("db", None, lambda payload: None)

    assert sub in registry
    assert registry.unregister(sub) is True
    assert registry.unregister(sub) is False
    assert sub not in registry
    assert registry.namespaces() == ["db"]

    registry.clear()
    assert other not in registry
    assert len(registry) == 0


def test_register_rejects_bad_targets_and_namespaces() -> None:
    registry = SubscriptionRegistry()

    with pytest.raises(ConfigurationError):
        registry.register("cache", 123, lambda payload: None)
    with pytest.raises(ConfigurationError):
        registry.register(["cache"], None, lambda payload: None)
    with pytest.raises(ConfigurationError):
        registry.register(None, None, lambda payload: None)
    assert len(registry) == 0


def test_register_rejects_bad_callbacks() -> None:
    registry = SubscriptionRegistry()

    with pytest.raises(InvalidSubscriberError):
        registry.register("cache", None, "not callable")
    with pytest.raises(InvalidSubscriberError):
        registry.register("cache", None, lambda: None)
    with pytest.raises(InvalidSubscriberError):
        registry.register("cache", None, lambda a, b, c: None)
    assert len(registry) == 0


def test_explicit_shape_skips_inspection() -> None:
    registry = SubscriptionRegistry()
    sub = registry.register("cache", None, print, shape="tag_and_payload")

    assert sub.shape is CallbackShape.TAG_AND_PAYLOAD


def test_resolve_shape_variants() -> None:
    class Handler:
        def __call__(self, tag, payload) -> None:
            pass

        def on_event(self, payload) -> None:
            pass

    def with_default(payload, extra=None) -> None:
        pass

    def variadic(*args) -> None:
        pass

    def keyword_only(payload, *, required) -> None:
        pass

    assert resolve_shape(Handler()) is CallbackShape.TAG_AND_PAYLOAD
    assert resolve_shape(Handler().on_event) is CallbackShape.PAYLOAD
    assert resolve_shape(with_default) is CallbackShape.PAYLOAD
    assert resolve_shape(variadic) is CallbackShape.PAYLOAD
    with pytest.raises(InvalidSubscriberError):
        resolve_shape(keyword_only)


def test_concurrent_registration_keeps_every_subscription() -> None:
    registry = SubscriptionRegistry()
    errors: list[BaseException] = []
    barrier = threading.Barrier(8)

    def register_many() -> None:
        barrier.wait()
        for _ in range(200):
            registry.register("hot", None, lambda payload: None)

    def read_many() -> None:
        barrier.wait()
        try:
            for _ in range(200):
                for sub in registry.lookup("hot"):
                    assert sub.namespace == "hot"
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=register_many) for _ in range(4)]
    threads += [threading.Thread(target=read_many) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(registry.lookup("hot")) == 800
    assert len({sub.id for sub in registry.lookup("hot")}) == 800
