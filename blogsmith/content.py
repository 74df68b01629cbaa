from __future__ import annotations

import datetime as dt
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

import yaml

from .errors import ParseError
from .utils import parse_bool

DOCUMENT_SUFFIXES = {".md", ".markdown"}
DEFAULT_PERMALINK = "/{path}.html"
# Permalinks ending in one of these are written as that file, not as a directory.
FILE_SUFFIXES = {".html", ".htm", ".xml", ".json", ".txt"}
FRONT_MATTER_MARKER = "---"
LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
DATE_KEYS = ("year", "month", "day")

DateValue = Union[dt.date, dt.datetime]


@dataclass(frozen=True)
class FrontMatter:
    layout: str
    title: str = ""
    date: Optional[DateValue] = None
    permalink: Optional[str] = None
    tags: tuple[str, ...] = ()
    draft: bool = False
    # Scalar keys outside the recognized set, kept for layout placeholders.
    extra: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Document:
    source: str
    path: Path
    front_matter: FrontMatter
    body: str
    body_line: int
    permalink: str
    output_path: str

    @property
    def title(self) -> str:
        return self.front_matter.title or title_from_body(self.body) or Path(self.source).stem

    @property
    def date(self) -> Optional[DateValue]:
        return self.front_matter.date

    @property
    def tags(self) -> tuple[str, ...]:
        return self.front_matter.tags


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def parse_list(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    else:
        items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def title_from_body(body: str) -> str:
    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith("# "):
            return stripped[2:].strip()
        if stripped:
            break
    return ""


def _parse_date(value: object, source: str, line: int) -> Optional[DateValue]:
    if value is None or value == "":
        return None
    if isinstance(value, (dt.date, dt.datetime)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if "T" in text or " " in text:
                return dt.datetime.fromisoformat(text)
            return dt.date.fromisoformat(text)
        except ValueError:
            pass
    raise ParseError(source, f"invalid date: {value!r}", line)


def _parse_tags(value: object, source: str, line: int) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = parse_list(value)
    elif isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value if item is not None]
    else:
        raise ParseError(source, f"tags must be a list or a string, got {type(value).__name__}", line)
    tags: list[str] = []
    for item in items:
        if item and item not in tags:
            tags.append(item)
    return tuple(tags)


def _scalar_extras(meta: dict) -> dict[str, str]:
    extra = {}
    for key, value in meta.items():
        if isinstance(value, (str, int, float, bool, dt.date)):
            extra[str(key)] = str(value)
    return extra


def parse_front_matter(text: str, source: str) -> tuple[FrontMatter, str, int]:
    """Split ``text`` into front-matter and body.

    Returns the typed front-matter, the raw body and the 1-based line number
    where the body starts. Raises ``ParseError`` with the offending line when
    the block is missing, unterminated or invalid.
    """
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_MARKER:
        raise ParseError(source, "missing front-matter block", 1)

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == FRONT_MATTER_MARKER:
            end = i
            break
    if end is None:
        raise ParseError(source, "unterminated front-matter block", 1)

    def key_line(key: str, default: int = 1) -> int:
        for i in range(1, end):
            if lines[i].strip().lower().startswith(key + ":"):
                return i + 1
        return default

    block = "\n".join(lines[1:end])
    try:
        meta = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 2 if mark is not None else 2
        problem = getattr(exc, "problem", None) or "invalid front-matter"
        raise ParseError(source, f"invalid front-matter: {problem}", line) from exc
    except ValueError as exc:
        # Timestamps that match YAML's pattern but are not real dates.
        raise ParseError(source, f"invalid front-matter: {exc}", key_line("date", 2)) from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise ParseError(source, "front-matter must be a mapping", 2)

    meta = {str(key).strip().lower(): value for key, value in meta.items()}
    layout = meta.pop("layout", None)
    if layout is None or not str(layout).strip():
        raise ParseError(source, "missing required key: layout", 1)

    permalink = meta.pop("permalink", None)
    front_matter = FrontMatter(
        layout=str(layout).strip(),
        title=str(meta.pop("title", "") or "").strip(),
        date=_parse_date(meta.pop("date", None), source, key_line("date")),
        permalink=str(permalink).strip() if permalink else None,
        tags=_parse_tags(meta.pop("tags", None), source, key_line("tags")),
        draft=parse_bool(meta.pop("draft", False)),
        extra=_scalar_extras(meta),
    )
    body = "\n".join(lines[end + 1 :])
    return front_matter, body, end + 2


def normalize_permalink(permalink: str, source: str) -> str:
    if "://" in permalink:
        raise ParseError(source, f"permalink must be a path: {permalink}", 1)
    if ".." in permalink.split("/"):
        raise ParseError(source, f"permalink escapes the output root: {permalink}", 1)
    trailing = permalink.endswith("/")
    clean = posixpath.normpath("/" + permalink.lstrip("/"))
    if trailing and clean != "/":
        clean += "/"
    return clean


def resolve_permalink(source: str, front_matter: FrontMatter, pattern: str = DEFAULT_PERMALINK) -> str:
    if front_matter.permalink:
        return normalize_permalink(front_matter.permalink, source)
    stem = posixpath.splitext(source)[0]
    values = {
        "path": "/".join(slugify(part) for part in stem.split("/")),
        "slug": slugify(posixpath.basename(stem)),
    }
    date = front_matter.date
    if date is not None:
        values.update(year=f"{date.year:04d}", month=f"{date.month:02d}", day=f"{date.day:02d}")
    elif any("{" + key + "}" in pattern for key in DATE_KEYS):
        pattern = DEFAULT_PERMALINK
    return normalize_permalink(pattern.format_map(values), source)


def permalink_to_path(permalink: str) -> str:
    rel = permalink.strip("/")
    if not rel:
        return "index.html"
    if permalink.endswith("/") or posixpath.splitext(rel)[1].lower() not in FILE_SUFFIXES:
        return f"{rel}/index.html"
    return rel


def is_hidden(rel: Path) -> bool:
    return any(part.startswith(("_", ".")) for part in rel.parts)


def iter_files(root: Path, exclude: tuple[Path, ...] = ()) -> Iterator[Path]:
    excluded = [path.resolve() for path in exclude]
    for path in sorted(root.rglob("*"), key=lambda p: p.as_posix()):
        if not path.is_file() or is_hidden(path.relative_to(root)):
            continue
        resolved = path.resolve()
        if any(resolved.is_relative_to(item) for item in excluded):
            continue
        yield path


def is_document(path: Path) -> bool:
    return path.suffix.lower() in DOCUMENT_SUFFIXES


def iter_sources(root: Path, exclude: tuple[Path, ...] = ()) -> Iterator[Path]:
    return (path for path in iter_files(root, exclude) if is_document(path))


def iter_assets(root: Path, exclude: tuple[Path, ...] = ()) -> Iterator[Path]:
    return (path for path in iter_files(root, exclude) if not is_document(path))


def load_document(path: Path, root: Path, pattern: str = DEFAULT_PERMALINK) -> Document:
    source = path.relative_to(root).as_posix()
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(source, f"not valid UTF-8: {exc.reason}") from exc
    front_matter, body, body_line = parse_front_matter(text, source)
    permalink = resolve_permalink(source, front_matter, pattern)
    return Document(
        source=source,
        path=path,
        front_matter=front_matter,
        body=body,
        body_line=body_line,
        permalink=permalink,
        output_path=permalink_to_path(permalink),
    )


def load_documents(root: Path, pattern: str = DEFAULT_PERMALINK) -> Iterator[Document]:
    """Lazily load every document under ``root``; the first bad file raises."""
    for path in iter_sources(root):
        yield load_document(path, root, pattern)


def normalize_list_spacing(text: str) -> str:
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        list_match = LIST_MARKER_RE.match(line)
        if list_match and not list_match.group("indent"):
            if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                out.append("")
        out.append(line)
    return "\n".join(out)
