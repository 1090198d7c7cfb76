"""Configuration loading and validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from shipline.common.errors import ConfigError
from shipline.common.fs import read_yaml
from shipline.common.models import FieldSpec, FieldType, RegexDeserializerConfig, RootNodeOperationConfig
from shipline.common.schema import validate_pipeline_config
from shipline.transport.config import ElasticSearchTransportConfig, HttpTransportConfig


@dataclass(frozen=True)
class PipelineConfig:
    deserializer: RegexDeserializerConfig
    operations: tuple[RootNodeOperationConfig, ...]
    transport: HttpTransportConfig


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path) or {}
    return _deep_merge(base, overlay)


def build_deserializer_config(cfg: dict) -> RegexDeserializerConfig:
    try:
        pattern = re.compile(cfg["regex"])
    except re.error as exc:
        raise ConfigError(f"Invalid deserializer regex: {exc}") from exc
    fields = tuple(
        FieldSpec(name=field["name"], type=FieldType(str(field["type"]).upper()), index=idx)
        for idx, field in enumerate(cfg["fields"])
    )
    return RegexDeserializerConfig(pattern=pattern, fields=fields)


def build_transport_config(cfg: dict) -> HttpTransportConfig:
    common: dict[str, Any] = {"hostname": cfg["hostname"]}
    renames = {"retry_delay": "retry_delay_ms", "timeout": "timeout_ms"}
    for key in (
        "port",
        "use_ssl",
        "use_gzip",
        "retry_count",
        "retry_delay",
        "timeout",
        "max_batch_size",
        "max_buffer_bytes",
        "pool_size",
    ):
        if key in cfg:
            common[renames.get(key, key)] = cfg[key]
    if "http_headers" in cfg:
        common["http_headers"] = {str(k): str(v) for k, v in cfg["http_headers"].items()}
    if "basic_auth" in cfg:
        auth = cfg["basic_auth"]
        common["basic_auth"] = (str(auth["username"]), str(auth["password"]))

    if cfg["type"] == "ElasticSearch":
        for key in (
            "index",
            "document_type",
            "bulk_api_path",
            "index_time_format",
            "use_hashid",
            "use_partitions_for_routing",
        ):
            if key in cfg:
                common[key] = cfg[key]
        return ElasticSearchTransportConfig(**common)

    if "path" in cfg:
        common["path"] = cfg["path"]
    return HttpTransportConfig(**common)


def load_pipeline_config(
    path: Path,
    *,
    allow_unknown: bool = False,
    overlay_path: Path | None = None,
) -> PipelineConfig:
    cfg = validate_pipeline_config(_load_yaml_with_overlay(path, overlay_path), allow_unknown=allow_unknown)
    return PipelineConfig(
        deserializer=build_deserializer_config(cfg["deserializer"]),
        operations=tuple(RootNodeOperationConfig(root_path=op["root_path"]) for op in cfg.get("operations") or []),
        transport=build_transport_config(cfg["transport"]),
    )
