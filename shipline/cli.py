"""CLI entrypoint for the shipline event shipper."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterator

from shipline.common.config_loader import load_pipeline_config
from shipline.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, LOGGER_NAME
from shipline.common.errors import ConfigError, PipelineError
from shipline.common.fs import iter_lines, write_json
from shipline.common.ids import generate_run_id
from shipline.common.logging import build_logger, log_event
from shipline.common.models import RawRecord
from shipline.pipeline.factory import build_components, build_http_client, build_transport
from shipline.pipeline.runner import BatchRunner

COMMANDS = ("ship", "check-config")


def parse_partition(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"partition must be key=value, got {value!r}")
    return key, val


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--config", default="./config/pipeline.yml")
    parser.add_argument("--overlay-config", default=None)
    parser.add_argument("--input", default="-")
    parser.add_argument("--partition", action="append", type=parse_partition, default=[])
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--report", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def _read_records(source: str, partitions: dict[str, str]) -> Iterator[RawRecord]:
    if source == "-":
        lines: Iterator[bytes] = (line.rstrip(b"\r\n") for line in sys.stdin.buffer)
        source_name = "stdin"
    else:
        lines = iter_lines(Path(source))
        source_name = source
    for line in lines:
        # Blank lines carry no event and are not counted in records_in.
        if line:
            yield RawRecord(payload=line, partitions=partitions, source=source_name)


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    logger = build_logger(run_id, level=args.log_level, log_dir=Path(args.log_dir) if args.log_dir else None)
    overlay = Path(args.overlay_config) if args.overlay_config else None

    try:
        config = load_pipeline_config(Path(args.config), overlay_path=overlay)
    except ConfigError as exc:
        log_event(
            logger,
            f"invalid configuration: {exc}",
            run_id=run_id,
            event="CONFIG_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL

    if args.command == "check-config":
        log_event(logger, "configuration ok", run_id=run_id, event="CONFIG_OK", status="ok")
        return EXIT_SUCCESS

    deserializer, operations, serializer = build_components(config)
    log_event(logger, "run start", run_id=run_id, stage="ship", event="RUN_START", status="ok")

    with build_http_client(config.transport) as client:
        runner = BatchRunner(
            deserializer,
            operations,
            serializer,
            build_transport(config.transport, client),
            max_batch_size=config.transport.max_batch_size,
            max_buffer_bytes=config.transport.max_buffer_bytes,
        )
        report = runner.run(_read_records(args.input, dict(args.partition)))

    log_event(
        logger,
        f"run end: {report.to_dict()}",
        run_id=run_id,
        stage="ship",
        event="RUN_END",
        status="ok" if not report.batches_failed and not report.failed_records else "partial",
        records_in=report.records_in,
        records_out=report.events_out,
    )

    if args.report:
        write_json(Path(args.report), {"run_id": run_id, **report.to_dict()})

    if report.batches_failed and not report.batches_sent:
        return EXIT_HARD_FAIL
    if report.batches_failed or report.failed_records:
        return EXIT_HARD_FAIL if args.strict else EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError as exc:
        logging.getLogger(LOGGER_NAME).error("run failed: %s", exc, extra={"error_code": exc.error_code})
        return EXIT_HARD_FAIL
    except Exception:
        logging.getLogger(LOGGER_NAME).exception("unexpected failure", extra={"error_code": "UNEXPECTED_ERROR"})
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
