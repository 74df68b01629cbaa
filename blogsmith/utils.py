from __future__ import annotations

import datetime as dt
import os
import shutil
from pathlib import Path
from typing import Union

from .errors import OutputError

MAX_WORKERS = 32


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def resolve_workers(value: int) -> int:
    if value <= 0:
        value = os.cpu_count() or 1
    return max(1, min(value, MAX_WORKERS))


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return base
    return f"{base}/{path}"


def as_datetime(value: Union[dt.date, dt.datetime]) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value
    return dt.datetime.combine(value, dt.time())


def iso_date(value: Union[dt.date, dt.datetime]) -> str:
    value = as_datetime(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def display_date(value: Union[dt.date, dt.datetime, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, dt.datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    return value.strftime("%Y-%m-%d")


def clean_output_dir(output_dir: Path, source_dir: Path) -> None:
    if not output_dir.exists():
        return
    output_resolved = output_dir.resolve()
    source_resolved = source_dir.resolve()
    cwd = Path.cwd().resolve()
    if output_resolved == cwd or output_resolved in cwd.parents:
        raise OutputError(f"Refusing to clean the working directory or its parent: {output_dir}")
    if output_resolved == source_resolved or source_resolved.is_relative_to(output_resolved):
        raise OutputError(f"Refusing to clean a directory containing the sources: {output_dir}")
    if not output_resolved.is_dir():
        raise OutputError(f"Output path is not a directory: {output_dir}")
    shutil.rmtree(output_dir)


def date_sort_key(value: Union[dt.date, dt.datetime, None]) -> dt.datetime:
    if value is None:
        return dt.datetime.min
    value = as_datetime(value)
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value
