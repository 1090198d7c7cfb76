"""Filesystem helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def write_json(path: Path, payload) -> None:
    ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
        f.write("\n")


def iter_lines(path: Path) -> Iterator[bytes]:
    # Raw bytes: decoding happens per record so one bad line cannot end the file.
    with path.open("rb") as f:
        for line in f:
            yield line.rstrip(b"\r\n")
