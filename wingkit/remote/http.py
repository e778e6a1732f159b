"""Authenticated HTTP client for the Panel's remote API."""

from __future__ import annotations

import json
import logging
import random
import time
from collections.abc import Callable, Mapping
from typing import Any

import requests

from wingkit.remote.errors import MISSING_RESPONSE_CODE, RequestError

log = logging.getLogger(__name__)

VERSION = "develop"
ACCEPT = "application/vnd.pterodactyl.v1+json"

_INITIAL_INTERVAL = 0.5
_MULTIPLIER = 1.5
_RANDOMIZATION = 0.5
_MAX_INTERVAL = 12.0
_MAX_ELAPSED = 30.0


class _ExponentialBackoff:
    """Randomised exponential delays, capped by elapsed time and retry count."""

    def __init__(self, max_retries: int) -> None:
        self._interval = _INITIAL_INTERVAL
        self._start = time.monotonic()
        self._retries = 0
        self._max_retries = max_retries

    def next_delay(self) -> float | None:
        """Seconds to wait before the next attempt, or None to give up."""
        if self._max_retries > 0:
            if self._retries >= self._max_retries:
                return None
            self._retries += 1
        elapsed = time.monotonic() - self._start
        delta = _RANDOMIZATION * self._interval
        delay = random.uniform(self._interval - delta, self._interval + delta)
        if self._interval >= _MAX_INTERVAL / _MULTIPLIER:
            self._interval = _MAX_INTERVAL
        else:
            self._interval *= _MULTIPLIER
        if elapsed + delay > _MAX_ELAPSED:
            return None
        return delay


class Response:
    """A Panel response with helpers for reading bodies and errors."""

    def __init__(self, raw: requests.Response | None) -> None:
        self.raw = raw

    @property
    def status_code(self) -> int:
        return self.raw.status_code if self.raw is not None else 0

    @property
    def headers(self) -> Mapping[str, str]:
        return self.raw.headers if self.raw is not None else {}

    def close(self) -> None:
        if self.raw is not None:
            self.raw.close()

    def __enter__(self) -> Response:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def has_error(self) -> bool:
        """True when a response exists and its status is outside 2xx."""
        if self.raw is None:
            return False
        return self.raw.status_code >= 300 or self.raw.status_code < 200

    def read(self) -> bytes:
        """Return the body; it can be read again afterwards."""
        if self.raw is None:
            raise ValueError("remote: attempting to read missing response")
        return self.raw.content or b""

    def bind_json(self) -> Any:
        """Decode the body as JSON."""
        body = self.read()
        try:
            return json.loads(body)
        except ValueError as err:
            raise ValueError("remote: could not unmarshal response") from err

    def error(self) -> RequestError | None:
        """The first error reported by the Panel, or None for a successful call."""
        if not self.has_error():
            return None
        try:
            payload = self.bind_json()
        except ValueError:
            payload = None
        errors = payload.get("errors") if isinstance(payload, Mapping) else None
        if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
            return RequestError.from_dict(errors[0], response=self.raw)
        return RequestError(
            code=MISSING_RESPONSE_CODE,
            status=str(self.status_code),
            detail="No error response returned from API endpoint.",
            response=self.raw,
        )


def _debug_log_request(prepared: requests.PreparedRequest) -> None:
    if not log.isEnabledFor(logging.DEBUG):
        return
    headers = {
        key: "(redacted)" if key.lower() == "authorization" and value else value
        for key, value in prepared.headers.items()
    }
    log.debug(
        "making request to external HTTP endpoint: method=%s endpoint=%s headers=%s",
        prepared.method,
        prepared.url,
        headers,
    )


def _encode(data: Any) -> bytes:
    if hasattr(data, "to_dict"):
        data = data.to_dict()
    return json.dumps(data).encode("utf-8")


class Client:
    """Makes authenticated requests to the Panel this node runs under."""

    def __init__(
        self,
        base: str,
        token_id: str = "",
        token: str = "",
        session: requests.Session | None = None,
        max_attempts: int = 0,
        timeout: float = 15.0,
    ) -> None:
        self.base_url = base.rstrip("/") + "/api/remote"
        self.token_id = token_id
        self.token = token
        self.session = session if session is not None else requests.Session()
        self.max_attempts = max_attempts
        self.timeout = timeout

    def get(self, path: str, query: Mapping[str, str] | None = None) -> Response:
        """Execute a GET request with the given query parameters."""
        params = dict(query or {})

        def add_query(req: requests.Request) -> None:
            req.params = {**dict(req.params or {}), **params}

        return self.request("GET", path, None, add_query)

    def post(self, path: str, data: Any = None) -> Response:
        """Execute a POST request with ``data`` encoded as JSON."""
        return self.request("POST", path, _encode(data))

    def request_once(
        self,
        method: str,
        path: str,
        body: bytes | None = None,
        prepare: Callable[[requests.Request], None] | None = None,
    ) -> Response:
        """Send a single authenticated request without retrying."""
        req = requests.Request(
            method=method or "GET",
            url=self.base_url + path,
            data=body if body else None,
            headers={
                "User-Agent": f"Wingkit/v{VERSION} (id:{self.token_id})",
                "Accept": ACCEPT,
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.token_id}.{self.token}",
            },
        )
        if prepare is not None:
            prepare(req)
        prepared = self.session.prepare_request(req)
        _debug_log_request(prepared)
        return Response(self.session.send(prepared, timeout=self.timeout))

    def request(
        self,
        method: str,
        path: str,
        body: bytes | None = None,
        prepare: Callable[[requests.Request], None] | None = None,
    ) -> Response:
        """Send a request, retrying transport failures and 5xx responses.

        Client errors (4xx) are raised at once as :class:`RequestError`. Once
        the backoff gives up, the last error is raised.
        """
        policy = _ExponentialBackoff(self.max_attempts)
        while True:
            try:
                res = self.request_once(method, path, body, prepare)
            except requests.RequestException as err:
                last: Exception = err
            else:
                if not res.has_error():
                    return res
                last = res.error()  # type: ignore[assignment]
                res.close()
                if 400 <= res.status_code < 500:
                    raise last
            delay = policy.next_delay()
            if delay is None:
                raise last
            time.sleep(delay)