"""Subscription match targets and the tag matching rules.

A tag is ``None``, a plain ``str``, or an ``Enum`` member (a symbolic constant).
Enum members are always treated as symbols, even ``str``-mixin ones, so a
symbol target never matches a textually equal string tag and vice versa.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Union

from instrumentation.errors import ConfigurationError

Tag = Union[str, Enum, None]


@dataclass(frozen=True, slots=True)
class AnyTag:
    """Matches every tag under the namespace, including ``None``."""


@dataclass(frozen=True, slots=True)
class ExactString:
    value: str


@dataclass(frozen=True, slots=True)
class ExactSymbol:
    value: Enum


@dataclass(frozen=True, slots=True)
class Pattern:
    regex: re.Pattern


MatchTarget = Union[AnyTag, ExactString, ExactSymbol, Pattern]

ANY = AnyTag()


def is_symbol(tag: object) -> bool:
    return isinstance(tag, Enum)


def is_string(tag: object) -> bool:
    return isinstance(tag, str) and not isinstance(tag, Enum)


def validate_tag(tag: object) -> Tag:
    """Return ``tag`` unchanged if it can be used to dispatch a notification."""
    if tag is None or is_symbol(tag) or is_string(tag):
        return tag
    raise ConfigurationError(f"invalid tag: {tag!r}")


def parse_target(value: object) -> MatchTarget:
    """Build the match target for a subscription from a user supplied filter."""
    if isinstance(value, (AnyTag, ExactString, ExactSymbol, Pattern)):
        return value
    if value is None:
        return ANY
    if is_symbol(value):
        return ExactSymbol(value)
    if is_string(value):
        return ExactString(value)
    if isinstance(value, re.Pattern):
        if not isinstance(value.pattern, str):
            raise ConfigurationError(f"byte patterns cannot match tags: {value!r}")
        return Pattern(value)
    raise ConfigurationError(f"invalid tag: {value!r}")


def matches(target: MatchTarget, tag: Tag) -> bool:
    """Decide whether a subscription with ``target`` receives a notification tagged ``tag``."""
    if isinstance(target, AnyTag):
        return True
    if isinstance(target, ExactString):
        return is_string(tag) and tag == target.value
    if isinstance(target, ExactSymbol):
        return is_symbol(tag) and tag is target.value
    if isinstance(target, Pattern):
        return is_string(tag) and target.regex.search(tag) is not None
    return False


def describe(tag: Tag) -> str | None:
    """Render a tag for event names and log lines."""
    if tag is None:
        return None
    if is_symbol(tag):
        return str(tag.value)
    return tag
