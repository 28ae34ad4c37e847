"""Inbound payload normalization.

The gateway answers in snake_case and sometimes pre-encodes nested
structures as JSON strings. The Normalizer turns every parsed frame into a
consistent shape:

1. every mapping key is converted snake_case -> camelCase, recursively;
2. a fixed allow-list of fields is opportunistically decoded from JSON
   strings into mappings/sequences (and then camelCased too).

Decoding failures leave the original string in place. Applying the
normalizer twice gives the same result as applying it once.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

WILDCARD = "*"

_SNAKE_SEGMENT = re.compile(r"(?<=[A-Za-z0-9])_+([A-Za-z0-9])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


def snake_to_camel(key: str) -> str:
    """Convert ``user_name`` to ``userName``.

    Leading and trailing underscores are kept; keys without inner
    underscores are returned unchanged.
    """
    if "_" not in key:
        return key
    return _SNAKE_SEGMENT.sub(lambda m: m.group(1).upper(), key)


def camel_to_snake(key: str) -> str:
    """Convert ``msgId`` to ``msg_id`` and ``MMBizMenu`` to ``mm_biz_menu``."""
    key = _ACRONYM_BOUNDARY.sub(r"\1_\2", key)
    return _CAMEL_BOUNDARY.sub(r"\1_\2", key).lower()


def camelize(value: Any) -> Any:
    """Recursively camelCase mapping keys. Returns new containers."""
    if isinstance(value, dict):
        return {
            (snake_to_camel(k) if isinstance(k, str) else k): camelize(v) for k, v in value.items()
        }
    if isinstance(value, list):
        return [camelize(v) for v in value]
    return value


def to_snake_keys(value: Any) -> Any:
    """Recursively snake_case mapping keys. Returns new containers."""
    if isinstance(value, dict):
        return {
            (camel_to_snake(k) if isinstance(k, str) else k): to_snake_keys(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [to_snake_keys(v) for v in value]
    return value


def try_decode_json(value: Any) -> tuple[bool, Any]:
    """Decode a JSON-encoded container string.

    Returns:
        (True, decoded) when ``value`` is a string holding a JSON object or
        array; (False, value) otherwise. Never raises.
    """
    if not isinstance(value, str):
        return False, value
    try:
        decoded = json.loads(value)
    except ValueError:
        return False, value
    if isinstance(decoded, dict | list):
        return True, decoded
    return False, value


@dataclass(frozen=True)
class DecodeRule:
    """A field that may hold a JSON-encoded mapping or sequence.

    ``path`` is a sequence of mapping keys; ``"*"`` steps into every element
    of a sequence. Key lookups are case-insensitive when no exact match
    exists.
    """

    path: tuple[str, ...]

    @classmethod
    def under(cls, prefix: Sequence[str], names: Iterable[str]) -> list[DecodeRule]:
        return [cls((*prefix, name)) for name in names]


# Sub-fields of the subscription-account ``info`` payload that arrive pre-encoded
INFO_FIELDS = (
    "BrandInfo",
    "externalInfo",
    "MMBizMenu",
    "RegisterSource",
    "VerifySource",
    "Location",
    "cookies",
    "brandInfo",
    "BindWxaInfo",
)

_RESULT = ("data", "data")

# Applied in order; a parent field must be listed before its children.
REPLY_DECODE_RULES: tuple[DecodeRule, ...] = (
    DecodeRule((*_RESULT, "external")),
    DecodeRule((*_RESULT, "info")),
    *DecodeRule.under((*_RESULT, "info"), INFO_FIELDS),
    *DecodeRule.under((*_RESULT, "info", "data", WILDCARD, "items", WILDCARD), INFO_FIELDS),
    DecodeRule((*_RESULT, "member")),
)

PUSH_ITEM_DECODE_RULES: tuple[DecodeRule, ...] = (DecodeRule(("member",)),)


def _find_key(mapping: dict[Any, Any], name: str) -> Any:
    if name in mapping:
        return name
    lowered = name.lower()
    for key in mapping:
        if isinstance(key, str) and key.lower() == lowered:
            return key
    return None


class Normalizer:
    """Recursive visitor applying camelCase conversion and allow-listed decoding."""

    def __init__(self, rules: Iterable[DecodeRule] = REPLY_DECODE_RULES) -> None:
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[DecodeRule, ...]:
        return self._rules

    def normalize(self, frame: Any) -> Any:
        """Return a normalized copy of ``frame``. Never raises."""
        result = camelize(frame)
        self.decode_fields(result, self._rules)
        return result

    def decode_fields(self, target: Any, rules: Iterable[DecodeRule]) -> Any:
        """Decode allow-listed fields of ``target`` in place and return it.

        Absent, null or wrongly shaped intermediate nodes are skipped.
        """
        for rule in rules:
            self._visit(target, rule.path)
        return target

    def _visit(self, node: Any, path: tuple[str, ...]) -> None:
        head, rest = path[0], path[1:]

        if head == WILDCARD:
            if not isinstance(node, list):
                return
            for index, child in enumerate(node):
                if rest:
                    self._visit(child, rest)
                else:
                    decoded, value = try_decode_json(child)
                    if decoded:
                        node[index] = camelize(value)
            return

        if not isinstance(node, dict):
            return
        key = _find_key(node, head)
        if key is None:
            return
        if rest:
            self._visit(node[key], rest)
            return
        decoded, value = try_decode_json(node[key])
        if decoded:
            node[key] = camelize(value)


_default = Normalizer()


def normalize(frame: Any) -> Any:
    """Normalize a parsed inbound frame with the default rules."""
    return _default.normalize(frame)
