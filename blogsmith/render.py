from __future__ import annotations

import posixpath
import re
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .content import DOCUMENT_SUFFIXES
from .errors import MissingLayoutError

IMG_SRC_RE = re.compile(r'<img([^>]*?)src="([^"]+)"', re.IGNORECASE)
HREF_RE = re.compile(r'<a([^>]*?)href="([^"]+)"', re.IGNORECASE)
ABSOLUTE_PREFIXES = ("http://", "https://", "mailto:", "data:", "#", "/", "//")
TAG_RE = re.compile(r"<[^>]+>")
LATE_KEYS = {"content", "toc"}


@dataclass(frozen=True)
class RenderedPage:
    path: str
    data: bytes
    source: Optional[str] = None


def relative_root(output_path: str) -> str:
    depth = output_path.count("/")
    if depth == 0:
        return "."
    return "/".join([".."] * depth)


def is_relative_url(url: str) -> bool:
    return bool(url) and not url.startswith(ABSOLUTE_PREFIXES) and ":" not in url.split("/", 1)[0]


def fix_relative_img_src(html_text: str, source_dir: str, root: str) -> str:
    """Point relative image sources at the copied asset under the output root."""

    def repl(match: re.Match) -> str:
        attrs = match.group(1)
        src = match.group(2)
        if not is_relative_url(src):
            return match.group(0)
        target = posixpath.normpath(posixpath.join(source_dir, src))
        if target.startswith(".."):
            return match.group(0)
        return f'<img{attrs}src="{root}/{target}"'

    return IMG_SRC_RE.sub(repl, html_text)


def rewrite_document_links(
    html_text: str, source_dir: str, root: str, output_paths: dict[str, str]
) -> tuple[str, list[str]]:
    """Rewrite relative links to ``.md`` sources into links to their pages.

    Returns the new HTML and the hrefs that matched no known document.
    """
    unresolved: list[str] = []

    def repl(match: re.Match) -> str:
        attrs = match.group(1)
        href = match.group(2)
        if not is_relative_url(href):
            return match.group(0)
        path, sep, fragment = href.partition("#")
        if posixpath.splitext(path)[1].lower() not in DOCUMENT_SUFFIXES:
            return match.group(0)
        target = posixpath.normpath(posixpath.join(source_dir, path))
        output = output_paths.get(target)
        if output is None:
            unresolved.append(href)
            return match.group(0)
        return f'<a{attrs}href="{root}/{output}{sep}{fragment}"'

    return HREF_RE.sub(repl, html_text), unresolved


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def render_template(template: str, **context: str) -> str:
    output = template
    for key, value in context.items():
        if key in LATE_KEYS:
            continue
        output = output.replace(f"{{{{{key}}}}}", value)
    for key in LATE_KEYS:
        if key in context:
            output = output.replace(f"{{{{{key}}}}}", context[key])
    return output


def load_layouts(layouts_dir: Path) -> dict[str, str]:
    if not layouts_dir.is_dir():
        return {}
    return {
        path.stem: path.read_text(encoding="utf-8")
        for path in sorted(layouts_dir.glob("*.html"))
        if path.is_file()
    }


def resolve_layout(layouts: dict[str, str], name: str, source: str) -> str:
    try:
        return layouts[name]
    except KeyError:
        raise MissingLayoutError(source, name) from None


def copy_assets(assets: Iterable[Path], root: Path, output_dir: Path) -> int:
    count = 0
    for item in assets:
        dest = output_dir / item.relative_to(root)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(item, dest)
        count += 1
    return count


def write_pages(pages: list[RenderedPage], output_dir: Path, workers: int = 1) -> None:
    for parent in sorted({(output_dir / page.path).parent for page in pages}):
        parent.mkdir(parents=True, exist_ok=True)

    def write_page(page: RenderedPage) -> None:
        (output_dir / page.path).write_bytes(page.data)

    workers = max(1, int(workers or 1))
    if workers <= 1 or len(pages) <= 1:
        for page in pages:
            write_page(page)
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(pages))) as executor:
            list(executor.map(write_page, pages))
