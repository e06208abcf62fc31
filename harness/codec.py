"""
List codec for the three ways the target app has stored a List<String>.

STRING_SET     native <set> entry. Order is NOT kept; only use it when the
               records carry their own order or order does not matter.
JSON           a plain JSON array inside a <string> entry.
PREFIXED_JSON  LIST_PREFIX + JSON array inside a <string> entry. The
               prefix is how the plugin tells "this string is a list".

Nothing here sniffs the data to pick a scheme: the installed app version
decides, so the caller has to say which one it is.
"""

from __future__ import annotations

import json
from collections.abc import Set
from enum import Enum
from typing import AbstractSet, Iterable, Union

# base64("This is the prefix for a list.") + "!" (JSON-encoded list marker)
LIST_PREFIX = "VGhpcyBpcyB0aGUgcHJlZml4IGZvciBhIGxpc3Qu!"

WireValue = Union[str, AbstractSet[str]]


class DecodeError(ValueError):
    """Stored list value is malformed for the configured scheme."""


class ListScheme(str, Enum):
    STRING_SET = "string_set"
    JSON = "json"
    PREFIXED_JSON = "prefixed_json"

    @property
    def is_set(self) -> bool:
        return self is ListScheme.STRING_SET

    @classmethod
    def parse(cls, value: str) -> "ListScheme":
        v = (value or "").strip().lower().replace("-", "_")
        for scheme in cls:
            if scheme.value == v:
                return scheme
        raise ValueError(f"Unknown list scheme: {value!r} (expected one of {[s.value for s in cls]})")


def _dumps(obj) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def encode(items: Iterable[str], scheme: ListScheme) -> WireValue:
    items = list(items)
    for item in items:
        if not isinstance(item, str):
            raise TypeError(f"list items must be str, got {type(item).__name__}")
    if scheme is ListScheme.STRING_SET:
        return frozenset(items)
    if scheme is ListScheme.JSON:
        return _dumps(items)
    if scheme is ListScheme.PREFIXED_JSON:
        return LIST_PREFIX + _dumps(items)
    raise ValueError(f"Unknown list scheme: {scheme!r}")


def _decode_json_array(text: str) -> list[str]:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"stored list is not valid JSON: {e}") from e
    if not isinstance(obj, list):
        raise DecodeError(f"stored list JSON is a {type(obj).__name__}, not an array")
    for item in obj:
        if not isinstance(item, str):
            raise DecodeError(f"stored list holds a non-string item: {item!r}")
    return obj


def decode(wire: WireValue, scheme: ListScheme) -> list[str]:
    if scheme is ListScheme.STRING_SET:
        if isinstance(wire, str) or not isinstance(wire, Set):
            raise DecodeError(f"expected a string set, got {type(wire).__name__}")
        return list(wire)

    if not isinstance(wire, str):
        raise DecodeError(f"expected a string entry for {scheme.value}, got {type(wire).__name__}")

    if scheme is ListScheme.JSON:
        return _decode_json_array(wire)

    if scheme is ListScheme.PREFIXED_JSON:
        if not wire.startswith(LIST_PREFIX):
            raise DecodeError("stored string does not start with the list prefix")
        return _decode_json_array(wire[len(LIST_PREFIX):])

    raise ValueError(f"Unknown list scheme: {scheme!r}")
