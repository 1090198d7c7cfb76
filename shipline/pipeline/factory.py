"""Build pipeline components from a loaded configuration."""

from __future__ import annotations

import time
from typing import Callable

from shipline.common.config_loader import PipelineConfig
from shipline.common.http import HttpClient, PoolConfig, TimeoutConfig
from shipline.deserializers.regex import RegexDeserializer
from shipline.operations.root_node import RootNodeOperation
from shipline.transport.config import ElasticSearchTransportConfig, HttpTransportConfig
from shipline.transport.elasticsearch import ElasticSearchSerializer, ElasticSearchTransport
from shipline.transport.http import HttpTransport
from shipline.transport.serializer import JsonLineSerializer


def build_http_client(cfg: HttpTransportConfig) -> HttpClient:
    return HttpClient(
        timeout=TimeoutConfig.from_millis(cfg.timeout_ms),
        pool=PoolConfig(connections=cfg.pool_size, maxsize=cfg.pool_size),
    )


def build_serializer(cfg: HttpTransportConfig):
    if isinstance(cfg, ElasticSearchTransportConfig):
        return ElasticSearchSerializer(
            cfg.index,
            document_type=cfg.document_type,
            index_time_format=cfg.index_time_format,
            use_hashid=cfg.use_hashid,
        )
    return JsonLineSerializer()


def build_transport(
    cfg: HttpTransportConfig,
    client: HttpClient,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> HttpTransport:
    kwargs = {
        "use_gzip": cfg.use_gzip,
        "retries": cfg.retry_count,
        "retry_delay_ms": cfg.retry_delay_ms,
        "headers": cfg.http_headers,
        "auth": cfg.basic_auth,
        "sleep": sleep,
    }
    if isinstance(cfg, ElasticSearchTransportConfig):
        return ElasticSearchTransport(
            client,
            cfg.url,
            use_partitions_for_routing=cfg.use_partitions_for_routing,
            **kwargs,
        )
    return HttpTransport(client, cfg.url, **kwargs)


def build_components(config: PipelineConfig):
    deserializer = RegexDeserializer.from_config(config.deserializer)
    operations = [RootNodeOperation.from_config(op) for op in config.operations]
    serializer = build_serializer(config.transport)
    return deserializer, operations, serializer
