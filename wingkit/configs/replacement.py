"""Single find/replace instructions applied to server configuration files."""

from __future__ import annotations

import enum
import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)

# Matches "{{ config.some.path }}" references to values in the daemon configuration.
CONFIG_MATCH = re.compile(r"{{\s?config\.([\w.-]+)\s?}}", re.ASCII)

_INT = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_TRUTHY = frozenset({"1", "t", "T", "TRUE", "true", "True"})


class ValueType(enum.Enum):
    """JSON type of a replacement value."""

    STRING = "string"
    NUMBER = "number"
    OBJECT = "object"
    ARRAY = "array"
    BOOLEAN = "boolean"
    NULL = "null"

    @classmethod
    def of(cls, value: Any) -> ValueType:
        if value is None:
            return cls.NULL
        if isinstance(value, bool):
            return cls.BOOLEAN
        if isinstance(value, (int, float)):
            return cls.NUMBER
        if isinstance(value, str):
            return cls.STRING
        if isinstance(value, Mapping):
            return cls.OBJECT
        return cls.ARRAY


@dataclass
class ReplaceValue:
    """A decoded JSON value used as the replacement, along with its JSON type."""

    value: Any
    value_type: ValueType = field(init=False)

    def __post_init__(self) -> None:
        self.value_type = ValueType.of(self.value)

    def __str__(self) -> str:
        if self.value_type is ValueType.STRING:
            return self.value
        if self.value_type is ValueType.NULL:
            return "<nil>"
        if self.value_type is ValueType.BOOLEAN:
            return "true" if self.value else "false"
        if self.value_type is ValueType.NUMBER:
            return json.dumps(self.value)
        return "<invalid>"


@dataclass
class ConfigurationFileReplacement:
    """One find/replace instruction for a configuration file."""

    match: str
    replace_with: ReplaceValue
    if_value: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConfigurationFileReplacement:
        """Build a replacement from its decoded JSON form.

        The older "value" key is accepted when "replace_with" is absent.
        """
        if not isinstance(data, Mapping):
            raise ValueError("replacement must be a JSON object")
        match = data.get("match")
        if not isinstance(match, str):
            raise ValueError('replacement requires a string "match" key')
        if_value = data.get("if_value", "")
        if not isinstance(if_value, str):
            raise ValueError('replacement "if_value" must be a string')
        if "replace_with" in data:
            raw = data["replace_with"]
        elif "value" in data:
            raw = data["value"]
        else:
            raise ValueError('replacement requires a "replace_with" key')
        return cls(match=match, replace_with=ReplaceValue(raw), if_value=if_value)

    def key_value(self, value: str) -> bool | int | str:
        """Convert a looked-up string into the type the replacement expects."""
        if self.replace_with.value_type is ValueType.BOOLEAN:
            return value in _TRUTHY
        if _INT.fullmatch(value):
            number = int(value)
            if _INT64_MIN <= number <= _INT64_MAX:
                return number
        return value


def _to_snake(text: str) -> str:
    s = text.strip()
    out: list[str] = []
    for i, ch in enumerate(s):
        is_cap = "A" <= ch <= "Z"
        is_low = "a" <= ch <= "z"
        if is_cap:
            ch = ch.lower()
        is_num = "0" <= ch <= "9"
        if i + 1 < len(s):
            nxt = s[i + 1]
            next_cap = "A" <= nxt <= "Z"
            next_low = "a" <= nxt <= "z"
            next_num = "0" <= nxt <= "9"
            if (
                (is_cap and (next_low or next_num))
                or (is_low and (next_cap or next_num))
                or (is_num and (next_cap or next_low))
            ):
                if is_cap and next_low and i > 0 and "A" <= s[i - 1] <= "Z":
                    out.append("_")
                out.append(ch)
                if is_low or is_num or next_num:
                    out.append("_")
                continue
        out.append("_" if ch in " _-." else ch)
    return "".join(out)


def _lookup(configuration: Any, path: list[str]) -> tuple[bool, Any]:
    node = configuration
    for key in path:
        if not isinstance(node, Mapping) or key not in node:
            return False, None
        node = node[key]
    return True, node


def _json_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def lookup_configuration_value(
    replacement: ConfigurationFileReplacement, configuration: Mapping[str, Any]
) -> str:
    """Resolve a "{{config.x.y}}" reference against the daemon configuration.

    Values that are not strings or hold no reference are returned as their
    string form. A reference to a missing key yields an empty string.
    """
    rw = replacement.replace_with
    if rw.value_type is not ValueType.STRING:
        return str(rw)
    found_ref = CONFIG_MATCH.search(rw.value)
    if found_ref is None:
        return str(rw)

    path = [_to_snake(part) for part in found_ref.group(1).split(".")]
    found, value = _lookup(configuration, path)
    if not found:
        log.debug(
            "attempted to load a configuration value that does not exist: path=%s", path
        )
        return ""
    text = _json_text(value)
    return CONFIG_MATCH.sub(lambda _m: text, rw.value)