"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from shipline.common.errors import ConfigError

DESERIALIZER_TYPES = {"Regex"}
OPERATION_TYPES = {"JsonRootNodeOperation"}
TRANSPORT_TYPES = {"Http", "ElasticSearch"}
FIELD_TYPES = {"BOOLEAN", "NUMBER", "STRING"}

HTTP_TRANSPORT_KEYS = {
    "type",
    "hostname",
    "port",
    "path",
    "use_ssl",
    "use_gzip",
    "retry_count",
    "retry_delay",
    "timeout",
    "http_headers",
    "basic_auth",
    "max_batch_size",
    "max_buffer_bytes",
    "pool_size",
}
ES_TRANSPORT_KEYS = (HTTP_TRANSPORT_KEYS - {"path"}) | {
    "index",
    "document_type",
    "bulk_api_path",
    "index_time_format",
    "use_hashid",
    "use_partitions_for_routing",
}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_mapping(obj: object, ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")


def _assert_int_range(obj: dict, key: str, ctx: str, minimum: int, maximum: int | None = None) -> None:
    if key not in obj:
        return
    value = obj[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{ctx}.{key} must be an integer")
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"[{minimum}, {maximum}]" if maximum is not None else f">= {minimum}"
        raise ConfigError(f"{ctx}.{key} must be {bound}, got {value}")


def validate_deserializer_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "deserializer")
    _assert_required_keys(cfg, {"type", "regex", "fields"}, "deserializer")
    _assert_no_unknown_keys(cfg, {"type", "regex", "fields"}, "deserializer", allow_unknown)
    if cfg["type"] not in DESERIALIZER_TYPES:
        raise ConfigError(f"Unsupported deserializer type: {cfg['type']}")
    if not isinstance(cfg["regex"], str) or not cfg["regex"]:
        raise ConfigError("deserializer.regex must be a non-empty string")
    if not isinstance(cfg["fields"], list) or not cfg["fields"]:
        raise ConfigError("deserializer.fields must be a non-empty list")

    names: list[str] = []
    for idx, field in enumerate(cfg["fields"]):
        ctx = f"deserializer.fields[{idx}]"
        _assert_mapping(field, ctx)
        _assert_required_keys(field, {"name", "type"}, ctx)
        _assert_no_unknown_keys(field, {"name", "type"}, ctx, allow_unknown)
        if not isinstance(field["name"], str) or not field["name"]:
            raise ConfigError(f"{ctx}.name must be a non-empty string")
        if str(field["type"]).upper() not in FIELD_TYPES:
            raise ConfigError(f"Unsupported field type in {ctx}: {field['type']}")
        names.append(field["name"])

    dupes = {name for name in names if names.count(name) > 1}
    if dupes:
        raise ConfigError(f"Duplicate deserializer fields: {', '.join(sorted(dupes))}")
    return cfg


def validate_operation_config(cfg: dict, idx: int, *, allow_unknown: bool = False) -> dict:
    ctx = f"operations[{idx}]"
    _assert_mapping(cfg, ctx)
    _assert_required_keys(cfg, {"type"}, ctx)
    if cfg["type"] not in OPERATION_TYPES:
        raise ConfigError(f"Unsupported operation type in {ctx}: {cfg['type']}")
    _assert_required_keys(cfg, {"root_path"}, ctx)
    _assert_no_unknown_keys(cfg, {"type", "root_path"}, ctx, allow_unknown)
    if not isinstance(cfg["root_path"], str):
        raise ConfigError(f"{ctx}.root_path must be a string")
    return cfg


def validate_transport_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "transport")
    _assert_required_keys(cfg, {"type", "hostname"}, "transport")
    if cfg["type"] not in TRANSPORT_TYPES:
        raise ConfigError(f"Unsupported transport type: {cfg['type']}")

    if cfg["type"] == "ElasticSearch":
        _assert_required_keys(cfg, {"index"}, "transport")
        _assert_no_unknown_keys(cfg, ES_TRANSPORT_KEYS, "transport", allow_unknown)
        if not str(cfg.get("bulk_api_path", "/")).startswith("/"):
            raise ConfigError("transport.bulk_api_path must start with '/'")
    else:
        _assert_no_unknown_keys(cfg, HTTP_TRANSPORT_KEYS, "transport", allow_unknown)

    _assert_int_range(cfg, "port", "transport", 1, 65535)
    _assert_int_range(cfg, "retry_count", "transport", 0)
    _assert_int_range(cfg, "retry_delay", "transport", 1)
    _assert_int_range(cfg, "timeout", "transport", 1)
    _assert_int_range(cfg, "max_batch_size", "transport", 1)
    _assert_int_range(cfg, "max_buffer_bytes", "transport", 1)
    _assert_int_range(cfg, "pool_size", "transport", 1)

    if "basic_auth" in cfg:
        _assert_mapping(cfg["basic_auth"], "transport.basic_auth")
        _assert_required_keys(cfg["basic_auth"], {"username", "password"}, "transport.basic_auth")
    if "http_headers" in cfg:
        _assert_mapping(cfg["http_headers"], "transport.http_headers")
    return cfg


def validate_pipeline_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "pipeline config")
    _assert_required_keys(cfg, {"deserializer", "transport"}, "pipeline config")
    _assert_no_unknown_keys(cfg, {"deserializer", "operations", "transport"}, "pipeline config", allow_unknown)

    validate_deserializer_config(cfg["deserializer"], allow_unknown=allow_unknown)
    operations = cfg.get("operations") or []
    if not isinstance(operations, list):
        raise ConfigError("operations must be a list")
    for idx, op in enumerate(operations):
        validate_operation_config(op, idx, allow_unknown=allow_unknown)
    validate_transport_config(cfg["transport"], allow_unknown=allow_unknown)
    return cfg
