"""Pooled HTTP client shared by transports for the lifetime of a run."""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from shipline.common.constants import DEFAULT_POOL_SIZE, USER_AGENT


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 20.0
    read: float = 40.0

    @classmethod
    def from_millis(cls, timeout_ms: int) -> "TimeoutConfig":
        seconds = timeout_ms / 1000.0
        return cls(connect=seconds, read=seconds)


@dataclass(frozen=True)
class PoolConfig:
    connections: int = DEFAULT_POOL_SIZE
    maxsize: int = DEFAULT_POOL_SIZE


class HttpClient:
    """Owns one ``requests.Session`` and its connection pool.

    Create once at startup, share between transports, and close at shutdown
    (or use as a context manager). Retries are handled by the transport, so
    urllib3-level retries are disabled on the mounted adapter.
    """

    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        pool: PoolConfig | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.pool = pool or PoolConfig()
        self.session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=self.pool.connections,
            pool_maxsize=self.pool.maxsize,
            max_retries=0,
        )
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT}
        if headers:
            out.update(headers)
        return out

    def post(
        self,
        url: str,
        *,
        data: bytes,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> requests.Response:
        """Issue a POST and return the unread, streamed response.

        The caller owns the response and must close it to hand the
        connection back to the pool.
        """
        req_timeout = timeout or self.timeout
        return self.session.request(
            method="POST",
            url=url,
            data=data,
            params=params,
            headers=self._headers(headers),
            auth=auth,
            timeout=(req_timeout.connect, req_timeout.read),
            stream=True,
        )
