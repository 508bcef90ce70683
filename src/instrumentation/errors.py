"""Error types raised by the instrumentation bus."""

from __future__ import annotations


class InstrumentationError(Exception):
    """Base class for errors raised by the bus itself."""


class ConfigurationError(InstrumentationError, ValueError):
    """Raised when a namespace, tag, or match target has an unsupported shape."""


class InvalidSubscriberError(InstrumentationError, TypeError):
    """Raised when a callback cannot be invoked as a subscriber."""


class SubscriberErrors(ExceptionGroup):
    """Failures collected from every subscriber of one notification."""

    def derive(self, excs):
        return SubscriberErrors(self.message, excs)
