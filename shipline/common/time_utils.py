"""UTC-focused time helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_timestamp_iso() -> str:
    return utc_now().isoformat(timespec="milliseconds")


def format_time_bucket(fmt: str, when: datetime | None = None) -> str:
    return (when or utc_now()).strftime(fmt)
