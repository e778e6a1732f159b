"""Dot-path editing of decoded JSON documents driven by replacements."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from wingkit.configs.replacement import (
    ConfigurationFileReplacement,
    lookup_configuration_value,
)

log = logging.getLogger(__name__)

_ARRAY_ELEMENT = re.compile(r"([^\[\]]+)\[([0-9]+)](\..+)?", re.ASCII)
_INDEX = re.compile(r"[+-]?[0-9]+")
_TEMPLATE_REF = re.compile(r"\$(?:\$|\{(\w+)\}|(\w+))", re.ASCII)


class PathNotFoundError(LookupError):
    """The path needed for a replacement does not exist in the document."""


class NotAnArrayError(ValueError):
    """The value at a path is not an array."""


def _dot_path(path: str) -> list[str]:
    return [seg.replace("~1", ".").replace("~0", "~") for seg in path.split(".")]


def _index(segment: str) -> int | None:
    if not _INDEX.fullmatch(segment):
        return None
    return int(segment)


def _search(obj: Any, hierarchy: list[str]) -> tuple[bool, Any]:
    for seg in hierarchy:
        if isinstance(obj, dict):
            if seg not in obj:
                return False, None
            obj = obj[seg]
        elif isinstance(obj, list):
            idx = _index(seg)
            if idx is None or idx < 0 or idx >= len(obj):
                return False, None
            obj = obj[idx]
        else:
            return False, None
    return True, obj


def _set_path(root: Any, hierarchy: list[str], value: Any) -> None:
    obj = root
    last = len(hierarchy) - 1
    for pos, seg in enumerate(hierarchy):
        if isinstance(obj, dict):
            if pos == last:
                obj[seg] = value
                return
            nxt = obj.get(seg)
            if nxt is None:
                nxt = obj[seg] = {}
            obj = nxt
        elif isinstance(obj, list):
            if seg == "-":
                if pos == 0:
                    raise ValueError("unable to append new array index at root of path")
                nxt = value if pos == last else {}
                obj.append(nxt)
                if pos == last:
                    return
                obj = nxt
                continue
            idx = _index(seg)
            if idx is None or idx < 0:
                raise ValueError(
                    f"failed to resolve path segment {pos!r}: found array but "
                    f"segment {seg!r} is not a valid index"
                )
            if idx >= len(obj):
                raise ValueError(
                    f"failed to resolve path segment {pos!r}: index {idx} exceeds "
                    f"array size {len(obj)}"
                )
            if pos == last:
                obj[idx] = value
                return
            if obj[idx] is None:
                raise ValueError(
                    f"failed to resolve path segment {pos!r}: field {seg!r} was not found"
                )
            obj = obj[idx]
        else:
            raise ValueError(f"path collision at segment {pos!r} ({seg!r})")


def _array_at(container: Any, path: str) -> list[Any]:
    found, value = _search(container, _dot_path(path))
    if not found or not isinstance(value, list):
        raise NotAnArrayError(f"value at {path!r} is not an array")
    return value


def set_value_at_path(container: Any, path: str, value: Any) -> None:
    """Set ``value`` at a dot path, understanding one "name[i]" array element.

    A missing array is created only for index 0.
    """
    m = _ARRAY_ELEMENT.fullmatch(path)
    if m is None:
        _set_path(container, _dot_path(path), value)
        return

    base, index, rest = m.group(1), int(m.group(2)), m.group(3)
    try:
        array = _array_at(container, base)
        if index >= len(array):
            raise ValueError(f"index {index} is out of bounds for {base!r}")
    except NotAnArrayError as err:
        if index != 0:
            raise ValueError("error while parsing array element at path") from err
        array = [{}] if rest else [None]
        try:
            _set_path(container, _dot_path(base), array)
        except ValueError as set_err:
            raise ValueError(
                "failed to create empty array for missing element"
            ) from set_err
    except ValueError as err:
        raise ValueError("error while parsing array element at path") from err

    if not rest:
        array[index] = value
        return
    element = array[index]
    if element is None:
        element = array[index] = {}
    try:
        _set_path(element, _dot_path(rest[1:]), value)
    except ValueError as err:
        raise ValueError(f"failed to set value at config path: {path}") from err


def _expand_template(template: str, match: re.Match[str]) -> str:
    def ref(m: re.Match[str]) -> str:
        if m.group(0) == "$$":
            return "$"
        name = m.group(1) or m.group(2)
        try:
            group = match.group(int(name)) if name.isdigit() else match.group(name)
        except IndexError:
            return ""
        return group or ""

    return _TEMPLATE_REF.sub(ref, template)


def set_at_pathway(
    replacement: ConfigurationFileReplacement, container: Any, path: str, value: str
) -> None:
    """Apply one replacement at ``path``, honouring its ``if_value`` condition.

    With "regex:<pattern>" the existing value is rewritten by the pattern, using
    ``$1``-style references in ``value``; a missing path raises
    :class:`PathNotFoundError`. Any other ``if_value`` must equal the JSON text
    of the existing value for it to be replaced.
    """
    if not replacement.if_value:
        set_value_at_path(container, path, replacement.key_value(value))
        return

    found, current = _search(container, _dot_path(path))

    if replacement.if_value.startswith("regex:"):
        if not found:
            raise PathNotFoundError(path)
        pattern = replacement.if_value[len("regex:"):]
        try:
            regex = re.compile(pattern)
        except re.error as err:
            log.warning(
                "configuration if_value using invalid regexp, cannot perform "
                "replacement: if_value=%s error=%s",
                pattern,
                err,
            )
            return
        text = json.dumps(current, ensure_ascii=False, separators=(",", ":")).strip('"')
        if regex.search(text):
            set_value_at_path(
                container, path, regex.sub(lambda m: _expand_template(value, m), text)
            )
        return

    if found:
        existing = json.dumps(current, ensure_ascii=False, separators=(",", ":"))
        if existing != replacement.if_value:
            return
    set_value_at_path(container, path, replacement.key_value(value))


def _children(value: Any) -> list[Any]:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return list(value.values())
    return []


def iterate_over_json(
    replacements: Iterable[ConfigurationFileReplacement],
    configuration: Mapping[str, Any],
    data: bytes | str,
) -> Any:
    """Parse JSON ``data``, apply every replacement and return the document.

    A match such as "foo.*.bar" applies "bar" to every child of "foo"; only the
    first wildcard is expanded.
    """
    root = json.loads(data)
    if root is None:
        root = {}

    for replacement in replacements:
        value = lookup_configuration_value(replacement, configuration)

        if ".*" in replacement.match:
            head, tail = replacement.match.split(".*", 1)
            found, parent = _search(root, _dot_path(head.strip(".")))
            for child in _children(parent if found else None):
                if child is None:
                    continue
                try:
                    set_at_pathway(replacement, child, tail.strip("."), value)
                except PathNotFoundError:
                    continue
                except ValueError as err:
                    raise ValueError("failed to set config value of array child") from err
            continue

        try:
            set_at_pathway(replacement, root, replacement.match, value)
        except PathNotFoundError:
            continue
        except ValueError as err:
            raise ValueError(
                f"unable to set config value at pathway: {replacement.match}"
            ) from err

    return root