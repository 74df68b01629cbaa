from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

import yaml

from .content import DEFAULT_PERMALINK
from .errors import ConfigError
from .utils import parse_bool, parse_int

CONFIG_NAMES = ("site.toml", "site.yaml", "site.yml", "site.json")
MODES = ("strict", "lenient")
FEED_LIMIT = 20
LAYOUTS_DIR = "_layouts"


@dataclass(frozen=True)
class SiteConfig:
    source: Path
    output: Path
    site_name: str = "My Blog"
    site_description: str = ""
    site_url: str = ""
    permalink: str = DEFAULT_PERMALINK
    index_layout: str = "default"
    mode: str = "strict"
    workers: int = 0
    drafts: bool = False
    feed: bool = True
    feed_limit: int = FEED_LIMIT
    sitemap: bool = True
    clean: bool = True

    @property
    def strict(self) -> bool:
        return self.mode == "strict"

    @property
    def layouts_dir(self) -> Path:
        return self.source / LAYOUTS_DIR

    def with_overrides(self, **overrides: object) -> "SiteConfig":
        values = {key: value for key, value in overrides.items() if value is not None}
        return validate(replace(self, **values))


def load_config(path: Path) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping: {path}")
    return data


def find_config(source: Path) -> Optional[Path]:
    for name in CONFIG_NAMES:
        path = source / name
        if path.is_file():
            return path
    return None


def validate(config: SiteConfig) -> SiteConfig:
    if config.mode not in MODES:
        raise ConfigError(f"mode must be one of {', '.join(MODES)}: {config.mode!r}")
    if config.feed_limit < 0:
        raise ConfigError(f"feed_limit must not be negative: {config.feed_limit}")
    try:
        config.permalink.format_map(
            {"path": "p", "slug": "s", "year": "2000", "month": "01", "day": "01"}
        )
    except (KeyError, ValueError, IndexError) as exc:
        raise ConfigError(f"Invalid permalink pattern {config.permalink!r}: {exc}") from exc
    return config


def config_from_mapping(data: dict, source: Path, output: Path) -> SiteConfig:
    """Build a config from a parsed file; unknown keys are ignored."""
    defaults = SiteConfig(source=source, output=output)
    values: dict[str, object] = {}
    for item in fields(SiteConfig):
        if item.name in {"source", "output"} or data.get(item.name) is None:
            continue
        raw = data[item.name]
        default = getattr(defaults, item.name)
        if isinstance(default, bool):
            values[item.name] = parse_bool(raw)
        elif isinstance(default, int):
            values[item.name] = parse_int(raw, default)
        else:
            values[item.name] = str(raw).strip()
    return validate(replace(defaults, **values))


def load_site_config(source: Path, output: Path, config_path: Optional[Path] = None) -> SiteConfig:
    if config_path is None:
        config_path = find_config(source)
    data = load_config(config_path) if config_path is not None else {}
    return config_from_mapping(data, source, output)
