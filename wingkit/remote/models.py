"""Data exchanged with the Panel API."""

from __future__ import annotations

import base64
import enum
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from wingkit.configs.configfile import ConfigurationFile

log = logging.getLogger(__name__)

_REGEX_PREFIX = "regex:"


class SftpAuthRequestType(str, enum.Enum):
    """How an SFTP user is authenticating."""

    PASSWORD = "password"
    PUBLIC_KEY = "public_key"


class ProcessStopType(str, enum.Enum):
    """How a server process is stopped."""

    COMMAND = "command"
    SIGNAL = "signal"
    NATIVE_STOP = "stop"


def _mapping(data: Any) -> Mapping[str, Any]:
    return data if isinstance(data, Mapping) else {}


def _int(value: Any) -> int:
    return int(value) if value is not None else 0


def _str(value: Any) -> str:
    return str(value) if value is not None else ""


@dataclass
class Pagination:
    """Pagination metadata of a paged Panel response."""

    current_page: int = 0
    from_: int = 0
    last_page: int = 0
    per_page: int = 0
    to: int = 0
    total: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Pagination:
        data = _mapping(data)
        return cls(
            current_page=_int(data.get("current_page")),
            from_=_int(data.get("from")),
            last_page=_int(data.get("last_page")),
            per_page=_int(data.get("per_page")),
            to=_int(data.get("to")),
            total=_int(data.get("total")),
        )


class OutputLineMatcher:
    """Matches console output against a plain string or a "regex:" pattern."""

    def __init__(self, raw: str) -> None:
        self.raw = raw
        self.regex: re.Pattern[str] | None = None
        if raw.startswith(_REGEX_PREFIX) and len(raw) > len(_REGEX_PREFIX):
            try:
                self.regex = re.compile(raw[len(_REGEX_PREFIX):])
            except re.error as err:
                log.warning(
                    "failed to compile output line marked as being regex: raw=%s error=%s",
                    raw,
                    err,
                )

    def matches(self, line: str | bytes) -> bool:
        """Whether ``line`` contains the raw string or matches the pattern."""
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        if self.regex is None:
            return self.raw in line
        return self.regex.search(line) is not None

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"OutputLineMatcher({self.raw!r})"


@dataclass
class ProcessStopConfiguration:
    """What is used to stop a server instance."""

    type: str = ""
    value: str = ""


@dataclass
class ProcessConfiguration:
    """Startup detection, stop behaviour and configuration files of a server."""

    done: list[OutputLineMatcher] = field(default_factory=list)
    user_interaction: list[str] = field(default_factory=list)
    strip_ansi: bool = False
    stop: ProcessStopConfiguration = field(default_factory=ProcessStopConfiguration)
    configuration_files: list[ConfigurationFile] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProcessConfiguration:
        data = _mapping(data)
        startup = _mapping(data.get("startup"))
        stop = _mapping(data.get("stop"))
        return cls(
            done=[OutputLineMatcher(str(item)) for item in startup.get("done") or []],
            user_interaction=[str(item) for item in startup.get("user_interaction") or []],
            strip_ansi=bool(startup.get("strip_ansi")),
            stop=ProcessStopConfiguration(
                type=_str(stop.get("type")), value=_str(stop.get("value"))
            ),
            configuration_files=[
                ConfigurationFile.from_dict(item) for item in data.get("configs") or []
            ],
        )


@dataclass
class ServerConfigurationResponse:
    """Server settings and process configuration returned by the Panel."""

    settings: Any = None
    process_configuration: ProcessConfiguration | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServerConfigurationResponse:
        data = _mapping(data)
        process = data.get("process_configuration")
        return cls(
            settings=data.get("settings"),
            process_configuration=(
                ProcessConfiguration.from_dict(process) if process is not None else None
            ),
        )


@dataclass
class InstallationScript:
    """The script used to install a server."""

    container_image: str = ""
    entrypoint: str = ""
    script: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InstallationScript:
        data = _mapping(data)
        return cls(
            container_image=_str(data.get("container_image")),
            entrypoint=_str(data.get("entrypoint")),
            script=_str(data.get("script")),
        )


@dataclass
class RawServerData:
    """A server as listed by the Panel, with its settings left undecoded."""

    uuid: str = ""
    settings: Any = None
    process_configuration: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RawServerData:
        data = _mapping(data)
        return cls(
            uuid=_str(data.get("uuid")),
            settings=data.get("settings"),
            process_configuration=data.get("process_configuration"),
        )


def _b64(value: bytes | None) -> str | None:
    if value is None:
        return None
    return base64.b64encode(value).decode("ascii")


@dataclass
class SftpAuthRequest:
    """Credentials sent to the Panel for validation."""

    type: SftpAuthRequestType
    user: str
    password: str
    ip: str = ""
    session_id: bytes | None = None
    client_version: bytes | None = None

    def to_dict(self) -> dict[str, Any]:
        """The JSON body of the request; byte fields are base64 encoded."""
        return {
            "type": SftpAuthRequestType(self.type).value,
            "username": self.user,
            "password": self.password,
            "ip": self.ip,
            "session_id": _b64(self.session_id),
            "client_version": _b64(self.client_version),
        }


@dataclass
class SftpAuthResponse:
    """The server and permissions matched by valid SFTP credentials."""

    server: str = ""
    user: str = ""
    permissions: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SftpAuthResponse:
        data = _mapping(data)
        return cls(
            server=_str(data.get("server")),
            user=_str(data.get("user")),
            permissions=[str(p) for p in data.get("permissions") or []],
        )


@dataclass
class BackupRemoteUploadResponse:
    """Presigned upload URLs for a remote backup."""

    parts: list[str] = field(default_factory=list)
    part_size: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BackupRemoteUploadResponse:
        data = _mapping(data)
        return cls(
            parts=[str(p) for p in data.get("parts") or []],
            part_size=_int(data.get("part_size")),
        )


@dataclass
class BackupPart:
    """One uploaded part of a remote backup."""

    etag: str
    part_number: int


@dataclass
class BackupRequest:
    """The result of a backup, reported to the Panel."""

    checksum: str = ""
    checksum_type: str = ""
    size: int = 0
    successful: bool = False
    parts: list[BackupPart] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checksum": self.checksum,
            "checksum_type": self.checksum_type,
            "size": self.size,
            "successful": self.successful,
            "parts": [
                {"etag": part.etag, "part_number": part.part_number} for part in self.parts
            ],
        }