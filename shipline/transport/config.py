"""Transport configuration values, immutable after load."""

from __future__ import annotations

from dataclasses import dataclass, field

from shipline.common.constants import (
    DEFAULT_BULK_API_PATH,
    DEFAULT_ES_PORT,
    DEFAULT_HTTP_PORT,
    DEFAULT_MAX_BATCH_SIZE,
    DEFAULT_MAX_BUFFER_BYTES,
    DEFAULT_POOL_SIZE,
    DEFAULT_RETRY_COUNT,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TIMEOUT_MS,
)


@dataclass(frozen=True)
class HttpTransportConfig:
    hostname: str
    port: int = DEFAULT_HTTP_PORT
    path: str = "/"
    use_ssl: bool = False
    use_gzip: bool = False
    retry_count: int = DEFAULT_RETRY_COUNT
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    http_headers: dict[str, str] = field(default_factory=dict)
    basic_auth: tuple[str, str] | None = None
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES
    pool_size: int = DEFAULT_POOL_SIZE

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{self.hostname}:{self.port}"

    @property
    def url(self) -> str:
        return self.base_url + self.path


@dataclass(frozen=True)
class ElasticSearchTransportConfig(HttpTransportConfig):
    port: int = DEFAULT_ES_PORT
    index: str = ""
    document_type: str | None = None
    bulk_api_path: str = DEFAULT_BULK_API_PATH
    index_time_format: str | None = None
    use_hashid: bool = False
    use_partitions_for_routing: bool = False

    @property
    def url(self) -> str:
        return self.base_url + self.bulk_api_path
