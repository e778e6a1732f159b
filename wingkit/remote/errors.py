"""Errors reported by the Panel API."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

MISSING_RESPONSE_CODE = "_MissingResponseCode"


class RequestError(Exception):
    """An error response returned by the Panel."""

    def __init__(
        self,
        code: str = MISSING_RESPONSE_CODE,
        status: str = "",
        detail: str = "",
        response: Any = None,
    ) -> None:
        super().__init__(code, detail)
        self.code = code
        self.status = status
        self.detail = detail
        self.response = response

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], response: Any = None) -> RequestError:
        """Build from one entry of the Panel's "errors" array."""
        return cls(
            code=str(data.get("code") or ""),
            status=str(data.get("status") or ""),
            detail=str(data.get("detail") or ""),
            response=response,
        )

    @property
    def status_code(self) -> int:
        """HTTP status code of the response, or 0 when there is none."""
        if self.response is None:
            return 0
        return int(self.response.status_code)

    def __str__(self) -> str:
        return (
            f"Error response from Panel: {self.code}: {self.detail} "
            f"(HTTP/{self.status_code})"
        )


class SftpInvalidCredentialsError(Exception):
    """The SFTP credentials were rejected by the Panel."""

    def __str__(self) -> str:
        return "the credentials provided were invalid"


def _chain(err: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.__cause__ or err.__context__


def as_request_error(err: BaseException | None) -> RequestError | None:
    """Return the RequestError in the exception chain of ``err``, if any."""
    for item in _chain(err):
        if isinstance(item, RequestError):
            return item
    return None


def is_request_error(err: BaseException | None) -> bool:
    """Whether ``err`` is, or was caused by, a RequestError."""
    return as_request_error(err) is not None