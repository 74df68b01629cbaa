"""Full site builds: load, validate, render, index and write."""

from __future__ import annotations

import html
import posixpath
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional, TypeVar, Union

from .config import CONFIG_NAMES, LAYOUTS_DIR, SiteConfig
from .content import Document, iter_assets, iter_sources, load_document
from .errors import ConfigError, DocumentError, DuplicatePermalinkError, RenderError, RenderWarning
from .markup import Fragment, render_markup
from .pages import (
    Entry,
    assign_tag_slugs,
    build_atom,
    build_index,
    build_sitemap,
    build_tag_index,
    build_tag_pages,
    build_tags_overview,
    page_context,
    sort_entries,
    summarize,
    tag_links,
)
from .render import (
    RenderedPage,
    copy_assets,
    fix_relative_img_src,
    load_layouts,
    relative_root,
    render_template,
    resolve_layout,
    rewrite_document_links,
    strip_tags,
    write_pages,
)
from .utils import clean_output_dir, display_date, resolve_workers

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class DocumentResult:
    page: RenderedPage
    entry: Entry
    warnings: tuple[RenderWarning, ...] = ()


@dataclass(frozen=True)
class RenderedBody:
    document: Document
    layout: str
    fragment: Fragment


@dataclass
class BuildResult:
    pages: list[RenderedPage] = field(default_factory=list)
    assets: int = 0
    skipped: list[DocumentError] = field(default_factory=list)
    warnings: list[RenderWarning] = field(default_factory=list)


def run_parallel(func: Callable[[T], R], items: list[T], workers: int) -> list[R]:
    if workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=min(workers, len(items))) as executor:
        return list(executor.map(func, items))


def collect(
    results: Iterable[Union[T, DocumentError]], strict: bool, skipped: list[DocumentError]
) -> list[T]:
    """Split worker results into successes and per-document failures.

    In strict mode the first failure (in source order) is raised.
    """
    kept = []
    for result in results:
        if isinstance(result, DocumentError):
            if strict:
                raise result
            skipped.append(result)
        else:
            kept.append(result)
    return kept


def check_permalinks(claims: dict[str, list[str]]) -> None:
    for path in sorted(claims):
        if len(claims[path]) > 1:
            raise DuplicatePermalinkError("/" + path, claims[path])


def claim_paths(
    items: Iterable[tuple[str, str]], claims: Optional[dict[str, list[str]]] = None
) -> dict[str, list[str]]:
    claims = {} if claims is None else claims
    for path, owner in items:
        claims.setdefault(path, []).append(owner)
    return claims


def render_body(document: Document, layouts: dict[str, str]) -> RenderedBody:
    layout = resolve_layout(layouts, document.front_matter.layout, document.source)
    try:
        fragment = render_markup(document.body, document.source, document.front_matter)
    except Exception as exc:
        raise RenderError(document.source, f"render failed: {exc}", document.body_line) from exc
    return RenderedBody(document=document, layout=layout, fragment=fragment)


def wrap_document(
    body: RenderedBody, config: SiteConfig, output_paths: dict[str, str], tag_slugs: dict[str, str]
) -> DocumentResult:
    document = body.document
    front_matter = document.front_matter
    fragment = body.fragment
    root = relative_root(document.output_path)
    source_dir = posixpath.dirname(document.source)
    content = fix_relative_img_src(fragment.html, source_dir, root)
    content, broken = rewrite_document_links(content, source_dir, root, output_paths)
    warnings = fragment.warnings + tuple(
        RenderWarning(document.source, f"link to unknown document {href}", href) for href in broken
    )

    context = page_context(
        config,
        document.output_path,
        document.title,
        content,
        url=document.permalink,
        permalink=document.permalink,
        date=display_date(document.date),
        tags=tag_links(document.tags, root, tag_slugs),
        toc=fragment.toc,
        source=html.escape(document.source),
    )
    for key, value in front_matter.extra.items():
        context.setdefault(key, html.escape(value))
    page = RenderedPage(
        path=document.output_path,
        data=render_template(body.layout, **context).encode("utf-8"),
        source=document.source,
    )
    summary = front_matter.extra.get("summary") or summarize(html.unescape(strip_tags(fragment.html)))
    entry = Entry(
        source=document.source,
        title=document.title,
        output_path=document.output_path,
        date=document.date,
        summary=summary,
        tags=document.tags,
    )
    return DocumentResult(page=page, entry=entry, warnings=warnings)


def build_site(config: SiteConfig) -> BuildResult:
    source_dir = Path(config.source)
    output_dir = Path(config.output)
    if not source_dir.is_dir():
        raise ConfigError(f"Source directory not found: {source_dir}")
    workers = resolve_workers(config.workers)
    exclude = (output_dir,)
    result = BuildResult()

    def load(path: Path) -> Union[Document, DocumentError]:
        try:
            return load_document(path, source_dir, config.permalink)
        except DocumentError as exc:
            return exc

    documents = collect(
        run_parallel(load, list(iter_sources(source_dir, exclude)), workers), config.strict, result.skipped
    )
    if not config.drafts:
        documents = [doc for doc in documents if not doc.front_matter.draft]

    check_permalinks(claim_paths((doc.output_path, doc.source) for doc in documents))

    layouts = load_layouts(config.layouts_dir)
    tag_slugs = assign_tag_slugs(name for doc in documents for name in doc.tags)

    def render(document: Document) -> Union[RenderedBody, DocumentError]:
        try:
            return render_body(document, layouts)
        except DocumentError as exc:
            return exc

    bodies = collect(run_parallel(render, documents, workers), config.strict, result.skipped)
    # Links resolve only to documents that survived rendering.
    output_paths = {body.document.source: body.document.output_path for body in bodies}

    def wrap(body: RenderedBody) -> DocumentResult:
        return wrap_document(body, config, output_paths, tag_slugs)

    rendered = run_parallel(wrap, bodies, workers)
    for item in rendered:
        result.warnings.extend(item.warnings)

    # Barrier: everything below folds the per-document results.
    entries = [item.entry for item in rendered]
    listed = sort_entries(entries)
    tags = build_tag_index(entries, tag_slugs)
    index_layout = resolve_layout(layouts, config.index_layout, f"{LAYOUTS_DIR}/{config.index_layout}.html")
    generated = [
        build_index(index_layout, config, listed, tag_slugs),
        build_tags_overview(index_layout, config, tags),
        *build_tag_pages(index_layout, config, tags),
    ]
    pages = [item.page for item in rendered] + generated
    if config.feed:
        feed = build_atom(config, listed)
        if feed is not None:
            generated.append(feed)
            pages.append(feed)
    if config.sitemap:
        sitemap = build_sitemap(config, pages, entries)
        if sitemap is not None:
            generated.append(sitemap)
            pages.append(sitemap)

    assets = [
        path for path in iter_assets(source_dir, exclude) if path.relative_to(source_dir).as_posix() not in CONFIG_NAMES
    ]
    asset_paths = [path.relative_to(source_dir).as_posix() for path in assets]
    claims = claim_paths((item.page.path, item.page.source) for item in rendered)
    claim_paths(((page.path, f"<generated {page.path}>") for page in generated), claims)
    claim_paths(((path, path) for path in asset_paths), claims)
    check_permalinks(claims)

    if config.clean:
        clean_output_dir(output_dir, source_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    result.assets = copy_assets(assets, source_dir, output_dir)
    pages.sort(key=lambda p: p.path)
    write_pages(pages, output_dir, workers)
    result.pages = pages
    return result
