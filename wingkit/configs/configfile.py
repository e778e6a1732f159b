"""Server configuration files and the parsers that rewrite them at startup."""

from __future__ import annotations

import enum
import json
import logging
import os
import re
import string
import xml.etree.ElementTree as ET
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from wingkit.configs.jsonpath import iterate_over_json
from wingkit.configs.replacement import (
    ConfigurationFileReplacement,
    lookup_configuration_value,
)

log = logging.getLogger(__name__)

# Matches "[attribute='value']" replacement values used to set XML attributes.
XML_VALUE_MATCH = re.compile(r"\[(\w+)='(.*)'\]", re.ASCII)

_XML_DECLARATION = re.compile(r"\ufeff?\s*(<\?xml\b[^>]*\?>)")
_DEFAULT_XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_PROPERTY_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_ASCII_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    '"': '\\"',
}


class ConfigurationParser(str, enum.Enum):
    """The file formats a server configuration file can be parsed as."""

    FILE = "file"
    YAML = "yaml"
    PROPERTIES = "properties"
    INI = "ini"
    JSON = "json"
    XML = "xml"

    @classmethod
    def _missing_(cls, value: object) -> ConfigurationParser | None:
        if value == "yml":
            return cls.YAML
        return None

    def __str__(self) -> str:
        return self.value


def _read_creating(path: str) -> bytes:
    """Return the file contents, creating an empty file if it is missing."""
    with open(path, "a+b") as fh:
        fh.seek(0)
        return fh.read()


def _write(path: str, data: str) -> None:
    with open(path, "wb") as fh:
        fh.write(data.encode("utf-8"))


def _stringify_keys(value: Any) -> Any:
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if isinstance(key, bool):
                key = "true" if key else "false"
            out[str(key)] = _stringify_keys(item)
        return out
    if isinstance(value, list):
        return [_stringify_keys(item) for item in value]
    return value


# --- properties ------------------------------------------------------------


def _logical_lines(text: str) -> Iterator[str]:
    buffer: str | None = None
    for line in _LINE_BREAK.split(text):
        stripped = line.lstrip(" \t\f")
        if buffer is None:
            if not stripped or stripped[0] in "#!":
                continue
            buffer = ""
        trailing = len(stripped) - len(stripped.rstrip("\\"))
        if trailing % 2 == 1:
            buffer += stripped[:-1]
            continue
        buffer += stripped
        yield buffer
        buffer = None
    if buffer is not None:
        yield buffer


def _unescape_property(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        if i + 1 >= len(text):
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u":
            digits = text[i + 2 : i + 6]
            if len(digits) < 4 or any(d not in string.hexdigits for d in digits):
                raise ValueError(f"invalid unicode escape in properties value: {text!r}")
            out.append(chr(int(digits, 16)))
            i += 6
            continue
        out.append(_PROPERTY_ESCAPES.get(nxt, nxt))
        i += 2
    joined = "".join(out)
    return joined.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")


def _split_property(line: str) -> tuple[str, str]:
    i = 0
    key: list[str] = []
    while i < len(line):
        ch = line[i]
        if ch == "\\":
            key.append(line[i : i + 2])
            i += 2
            continue
        if ch in "=: \t\f":
            break
        key.append(ch)
        i += 1
    rest = line[i:].lstrip(" \t\f")
    if rest and rest[0] in "=:":
        rest = rest[1:].lstrip(" \t\f")
    return _unescape_property("".join(key)), _unescape_property(rest)


def _load_properties(text: str) -> dict[str, str]:
    properties: dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split_property(line)
        properties[key] = value
    return properties


def _quote_to_ascii(value: str) -> str:
    out = ['"']
    for ch in value:
        code = ord(ch)
        if ch in _ASCII_ESCAPES:
            out.append(_ASCII_ESCAPES[ch])
        elif 0x20 <= code < 0x7F:
            out.append(ch)
        elif code < 0x20 or code == 0x7F:
            out.append(f"\\x{code:02x}")
        elif code < 0x10000:
            out.append(f"\\u{code:04x}")
        else:
            out.append(f"\\U{code:08x}")
    out.append('"')
    return "".join(out)


# --- ini -------------------------------------------------------------------


@dataclass
class _IniKey:
    name: str
    value: str
    comments: list[str] = field(default_factory=list)


@dataclass
class _IniSection:
    name: str
    comments: list[str] = field(default_factory=list)
    keys: dict[str, _IniKey] = field(default_factory=dict)


class _IniDocument:
    def __init__(self) -> None:
        self.sections: dict[str, _IniSection] = {"": _IniSection("")}

    def section(self, name: str) -> _IniSection:
        if name == "DEFAULT":
            name = ""
        return self.sections.setdefault(name, _IniSection(name))

    @classmethod
    def loads(cls, text: str) -> _IniDocument:
        doc = cls()
        current = doc.section("")
        pending: list[str] = []
        for raw in _LINE_BREAK.split(text):
            line = raw.strip()
            if not line:
                continue
            if line[0] in "#;":
                pending.append(line)
                continue
            if line.startswith("[") and line.endswith("]"):
                current = doc.section(line[1:-1].strip())
                current.comments.extend(pending)
                pending = []
                continue
            positions = [p for p in (line.find("="), line.find(":")) if p >= 0]
            if not positions:
                raise ValueError(f"key-value delimiter not found: {line}")
            cut = min(positions)
            name = line[:cut].strip()
            current.keys[name] = _IniKey(name, line[cut + 1 :].strip(), pending)
            pending = []
        return doc

    def dumps(self) -> str:
        blocks: list[str] = []
        for section in self.sections.values():
            if not section.name and not section.keys and not section.comments:
                continue
            lines = list(section.comments)
            if section.name:
                lines.append(f"[{section.name}]")
            for key in section.keys.values():
                lines.extend(key.comments)
                lines.append(f"{key.name} = {key.value}")
            blocks.append("\n".join(lines) + "\n")
        return "\n".join(blocks)


def _ini_path(match: str) -> list[str]:
    path: list[str] = []
    buffer: list[str] = []
    depth = 0
    for ch in match:
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif ch == "." and depth <= 0 and len(path) != 1:
            path.append("".join(buffer))
            buffer = []
        else:
            buffer.append(ch)
    path.append("".join(buffer))
    return path


# --- xml -------------------------------------------------------------------


def _find_xml_elements(root: ET.Element, parts: list[str]) -> list[ET.Element]:
    first = parts[0]
    if first != "*" and first != root.tag:
        return []
    if len(parts) == 1:
        return [root]
    return root.findall("./" + "/".join(parts[1:]))


@dataclass
class ConfigurationFile:
    """A server configuration file and the replacements applied to it."""

    file_name: str
    parser: ConfigurationParser | str
    replace: list[ConfigurationFileReplacement] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.parser, ConfigurationParser):
            try:
                self.parser = ConfigurationParser(self.parser)
            except ValueError:
                pass

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConfigurationFile:
        """Build from decoded JSON; invalid replacements are dropped with a warning."""
        if not isinstance(data, Mapping):
            raise ValueError("configuration file must be a JSON object")
        file_name = data.get("file")
        if not isinstance(file_name, str):
            raise ValueError('configuration file requires a string "file" key')
        parser = data.get("parser")
        if not isinstance(parser, str):
            raise ValueError('configuration file requires a string "parser" key')

        raw = data.get("replace")
        replace: list[ConfigurationFileReplacement] = []
        if raw is not None:
            try:
                if not isinstance(raw, list):
                    raise ValueError('"replace" must be a JSON array')
                replace = [ConfigurationFileReplacement.from_dict(item) for item in raw]
            except ValueError as err:
                log.warning(
                    "failed to unmarshal configuration file replacement: file=%s error=%s",
                    file_name,
                    err,
                )
                replace = []
        return cls(file_name=file_name, parser=parser, replace=replace)

    def parse(self, path: str | os.PathLike[str], configuration: Mapping[str, Any] | None = None) -> None:
        """Apply every replacement to the file at ``path``.

        ``configuration`` is the daemon configuration that "{{config.x}}"
        references are resolved against. A missing file is created first.
        """
        self._parse(os.fspath(path), configuration or {}, internal=False)

    def _parse(self, path: str, configuration: Mapping[str, Any], internal: bool) -> None:
        log.debug("parsing server configuration file: path=%s parser=%s", path, self.parser)
        handlers = {
            ConfigurationParser.PROPERTIES: self._parse_properties_file,
            ConfigurationParser.FILE: self._parse_text_file,
            ConfigurationParser.YAML: self._parse_yaml_file,
            ConfigurationParser.JSON: self._parse_json_file,
            ConfigurationParser.INI: self._parse_ini_file,
            ConfigurationParser.XML: self._parse_xml_file,
        }
        handler = handlers.get(self.parser) if isinstance(self.parser, ConfigurationParser) else None
        if handler is None:
            return
        try:
            handler(path, configuration)
        except FileNotFoundError:
            if internal:
                return
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, mode=0o755, exist_ok=True)
            with open(path, "wb"):
                pass
            self._parse(path, configuration, internal=True)

    def _parse_xml_file(self, path: str, configuration: Mapping[str, Any]) -> None:
        raw = _read_creating(path)
        text = raw.decode("utf-8")
        found = _XML_DECLARATION.match(text)
        declaration = found.group(1) if found else None

        root: ET.Element | None = None
        if text.strip():
            builder = ET.TreeBuilder(insert_comments=True, insert_pis=True)
            root = ET.fromstring(raw, parser=ET.XMLParser(target=builder))
        if root is None:
            declaration = _DEFAULT_XML_DECLARATION

        for position, replacement in enumerate(self.replace):
            value = lookup_configuration_value(replacement, configuration)
            parts = replacement.match.split(".")
            if position == 0 and root is None:
                root = ET.Element(parts[0])
            if root is None:
                continue

            if "*" not in replacement.match:
                element = root
                for tag in parts[1:]:
                    child = element.find(tag)
                    element = child if child is not None else ET.SubElement(element, tag)

            attribute = XML_VALUE_MATCH.fullmatch(value)
            for element in _find_xml_elements(root, parts):
                if attribute:
                    element.set(attribute.group(1), attribute.group(2))
                else:
                    element.text = value

        output: list[str] = []
        if declaration:
            output.append(declaration + "\n")
        if root is not None:
            ET.indent(root, space="  ")
            output.append(ET.tostring(root, encoding="unicode") + "\n")
        _write(path, "".join(output))

    def _parse_ini_file(self, path: str, configuration: Mapping[str, Any]) -> None:
        doc = _IniDocument.loads(_read_creating(path).decode("utf-8"))
        for replacement in self.replace:
            parts = _ini_path(replacement.match)
            value = lookup_configuration_value(replacement, configuration)
            if len(parts) == 2:
                section, key = doc.section(parts[0]), parts[1]
            else:
                section, key = doc.section(""), parts[0]
            if key in section.keys:
                section.keys[key].value = value
            else:
                section.keys[key] = _IniKey(key, value)
        _write(path, doc.dumps())

    def _parse_json_file(self, path: str, configuration: Mapping[str, Any]) -> None:
        data = iterate_over_json(self.replace, configuration, _read_creating(path))
        _write(path, json.dumps(data, indent=4, sort_keys=True, ensure_ascii=False))

    def _parse_yaml_file(self, path: str, configuration: Mapping[str, Any]) -> None:
        loaded = yaml.safe_load(_read_creating(path))
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError(f"yaml document in {path} is not a mapping")
        encoded = json.dumps(_stringify_keys(loaded), default=str)
        data = iterate_over_json(self.replace, configuration, encoded)
        _write(
            path,
            yaml.safe_dump(
                data,
                sort_keys=True,
                allow_unicode=True,
                default_flow_style=False,
                indent=4,
            ),
        )

    def _parse_text_file(self, path: str, configuration: Mapping[str, Any]) -> None:
        with open(path, encoding="utf-8", newline="") as fh:
            lines = fh.read().split("\n")
        updated = []
        for line in lines:
            new_line = line
            for replacement in self.replace:
                if line.startswith(replacement.match):
                    new_line = str(replacement.replace_with)
            updated.append(new_line)
        _write(path, "\n".join(updated))

    def _parse_properties_file(self, path: str, configuration: Mapping[str, Any]) -> None:
        with open(path, encoding="utf-8", newline="") as fh:
            content = fh.read()

        # Comments at the head of the file are kept; all others are lost.
        header: list[str] = []
        lines = content.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        for line in lines:
            if line.endswith("\r"):
                line = line[:-1]
            if line and line[0] != "#":
                break
            header.append(line + "\n")

        try:
            properties = _load_properties(content)
        except ValueError as err:
            raise ValueError(
                f"parser: could not load properties file for configuration update: {err}"
            ) from err

        for replacement in self.replace:
            data = lookup_configuration_value(replacement, configuration)
            current = properties.get(replacement.match)
            if replacement.if_value and current != replacement.if_value:
                continue
            properties[replacement.match] = data

        # Values are written with non-ASCII characters escaped on purpose.
        body = [f"{key}={_quote_to_ascii(value).strip(chr(34))}\n" for key, value in properties.items()]
        _write(path, "".join(header) + "".join(body))