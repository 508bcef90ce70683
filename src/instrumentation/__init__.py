"""In-process instrumentation bus: time work and notify matching subscribers."""

from .errors import ConfigurationError, InstrumentationError, InvalidSubscriberError, SubscriberErrors
from .notifier import Notifier, SubscriberErrorPolicy
from .outcome import Outcome
from .registry import CallbackShape, Subscription, SubscriptionRegistry
from .sinks import LoggingSink, MemorySink, Sink, forward
from .targets import AnyTag, ExactString, ExactSymbol, MatchTarget, Pattern, matches, parse_target

__all__ = [
    "AnyTag",
    "CallbackShape",
    "ConfigurationError",
    "ExactString",
    "ExactSymbol",
    "InstrumentationError",
    "InvalidSubscriberError",
    "LoggingSink",
    "MatchTarget",
    "MemorySink",
    "Notifier",
    "Outcome",
    "Pattern",
    "Sink",
    "Subscription",
    "SubscriptionRegistry",
    "SubscriberErrorPolicy",
    "SubscriberErrors",
    "forward",
    "matches",
    "parse_target",
]
