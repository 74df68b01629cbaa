from __future__ import annotations

import datetime as dt
import html
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .config import SiteConfig
from .content import DateValue, slugify
from .render import RenderedPage, relative_root, render_template
from .utils import as_datetime, date_sort_key, display_date, iso_date, join_url

TAGS_DIR = "tags"
SUMMARY_LENGTH = 200
DATE_MIN = dt.datetime(1970, 1, 1)
# Symbols that carry meaning in tag names such as "c++" or "c#".
TAG_SYMBOLS = {"+": " plus ", "#": " sharp "}
# The tags overview is written to tags/index.html.
RESERVED_TAG_SLUGS = frozenset({"index"})


@dataclass(frozen=True)
class Entry:
    """What a rendered document contributes to listings, feeds and tags."""

    source: str
    title: str
    output_path: str
    date: Optional[DateValue] = None
    summary: str = ""
    tags: tuple[str, ...] = ()


@dataclass
class Tag:
    name: str
    slug: str
    entries: list[Entry] = field(default_factory=list)

    @property
    def output_path(self) -> str:
        return f"{TAGS_DIR}/{self.slug}.html"


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Dated entries, newest first; ties broken by output path."""
    dated = [entry for entry in entries if entry.date is not None]
    dated.sort(key=lambda e: e.output_path)
    dated.sort(key=lambda e: date_sort_key(e.date), reverse=True)
    return dated


def tag_slug(name: str) -> str:
    for symbol, word in TAG_SYMBOLS.items():
        name = name.replace(symbol, word)
    return slugify(name)


def assign_tag_slugs(names: Iterable[str]) -> dict[str, str]:
    """Give every distinct tag name its own slug.

    Names whose slugs clash, with each other or with a reserved page, get a
    numeric suffix in name order so the mapping stays stable between builds.
    """
    slugs: dict[str, str] = {}
    taken = set(RESERVED_TAG_SLUGS)
    for name in sorted(set(names)):
        base = tag_slug(name)
        slug = base
        suffix = 2
        while slug in taken:
            slug = f"{base}-{suffix}"
            suffix += 1
        taken.add(slug)
        slugs[name] = slug
    return slugs


def build_tag_index(entries: Iterable[Entry], slugs: Optional[dict[str, str]] = None) -> dict[str, Tag]:
    entries = sorted(entries, key=lambda e: e.source)
    if slugs is None:
        slugs = assign_tag_slugs(name for entry in entries for name in entry.tags)
    tags: dict[str, Tag] = {}
    for entry in entries:
        for name in entry.tags:
            slug = slugs[name]
            tag = tags.setdefault(slug, Tag(name=name, slug=slug))
            if entry not in tag.entries:
                tag.entries.append(entry)
    for tag in tags.values():
        tag.entries.sort(key=lambda e: e.output_path)
        tag.entries.sort(key=lambda e: date_sort_key(e.date), reverse=True)
    return dict(sorted(tags.items()))


def summarize(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= SUMMARY_LENGTH:
        return text
    return text[:SUMMARY_LENGTH] + "..."


def tag_links(tags: Iterable[str], root: str, slugs: dict[str, str]) -> str:
    return " ".join(
        f'<a class="chip" href="{root}/{TAGS_DIR}/{slugs[name]}.html">{html.escape(name)}</a>'
        for name in tags
    )


def page_context(config: SiteConfig, output_path: str, title: str, content: str, **extra: str) -> dict[str, str]:
    context = {
        "title": html.escape(title),
        "root": relative_root(output_path),
        "url": "/" + output_path,
        "permalink": "/" + output_path,
        "site_name": html.escape(config.site_name),
        "site_description": html.escape(config.site_description),
        "site_url": html.escape(config.site_url),
        "date": "",
        "tags": "",
        "toc": "",
        "source": "",
    }
    context.update(extra)
    context["content"] = content
    return context


def build_entry_list(entries: list[Entry], root: str, slugs: dict[str, str]) -> str:
    if not entries:
        return '<p class="post-empty">No posts yet.</p>'
    cards = []
    for entry in entries:
        url = f"{root}/{entry.output_path}"
        summary = f'<p class="post-summary">{html.escape(entry.summary)}</p>' if entry.summary else ""
        cards.append(
            '<article class="post-card">'
            '<div class="post-meta">'
            f'<span class="post-date">{display_date(entry.date)}</span>'
            f'<div class="post-tags">{tag_links(entry.tags, root, slugs)}</div></div>'
            f'<h2 class="post-title"><a href="{url}">{html.escape(entry.title)}</a></h2>'
            f"{summary}"
            "</article>"
        )
    return "\n".join(cards)


def build_index(layout: str, config: SiteConfig, entries: list[Entry], slugs: dict[str, str]) -> RenderedPage:
    path = "index.html"
    root = relative_root(path)
    content = (
        '<div class="section-head">'
        "<h2>Latest posts</h2>"
        "</div>"
        f'<div class="post-grid">{build_entry_list(entries, root, slugs)}</div>'
    )
    doc = render_template(layout, **page_context(config, path, config.site_name, content))
    return RenderedPage(path=path, data=doc.encode("utf-8"))


def build_tags_overview(layout: str, config: SiteConfig, tags: dict[str, Tag]) -> RenderedPage:
    path = f"{TAGS_DIR}/index.html"
    root = relative_root(path)
    items = [
        f'<li><a href="{root}/{tag.output_path}">{html.escape(tag.name)}</a>'
        f'<span class="count">{len(tag.entries)}</span></li>'
        for tag in sorted(tags.values(), key=lambda t: (-len(t.entries), t.slug))
    ]
    listing = "\n".join(items) if items else "<li>No tags yet.</li>"
    content = (
        '<div class="section-head"><h2>Tags</h2></div>'
        f'<ul class="tag-list">{listing}</ul>'
    )
    doc = render_template(layout, **page_context(config, path, f"Tags | {config.site_name}", content))
    return RenderedPage(path=path, data=doc.encode("utf-8"))


def build_tag_pages(layout: str, config: SiteConfig, tags: dict[str, Tag]) -> list[RenderedPage]:
    pages = []
    slugs = {tag.name: tag.slug for tag in tags.values()}
    for tag in tags.values():
        root = relative_root(tag.output_path)
        content = (
            '<div class="section-head">'
            f"<h2>{html.escape(tag.name)}</h2>"
            "<p>Posts tagged with this label.</p>"
            "</div>"
            f'<div class="post-grid">{build_entry_list(tag.entries, root, slugs)}</div>'
        )
        context = page_context(config, tag.output_path, f"{tag.name} | {config.site_name}", content)
        doc = render_template(layout, **context)
        pages.append(RenderedPage(path=tag.output_path, data=doc.encode("utf-8")))
    return pages


def build_atom(config: SiteConfig, entries: list[Entry]) -> Optional[RenderedPage]:
    if not config.site_url:
        return None
    site_url = config.site_url.rstrip("/")
    items = entries[: config.feed_limit]
    updated = iso_date(items[0].date) if items else iso_date(DATE_MIN)
    rows = []
    for entry in items:
        link = join_url(site_url, entry.output_path)
        rows.append(
            "\n".join(
                [
                    "<entry>",
                    f"<title>{html.escape(entry.title)}</title>",
                    f'<link href="{link}" />',
                    f"<id>{link}</id>",
                    f"<updated>{iso_date(entry.date)}</updated>",
                    f"<summary>{html.escape(entry.summary)}</summary>",
                    "</entry>",
                ]
            )
        )
    atom = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"<title>{html.escape(config.site_name)}</title>",
            f"<id>{site_url}/</id>",
            f"<updated>{updated}</updated>",
            f'<link href="{site_url}/atom.xml" rel="self" />',
            f'<link href="{site_url}/" />',
            "\n".join(rows),
            "</feed>",
        ]
    )
    return RenderedPage(path="atom.xml", data=atom.encode("utf-8"))


def build_sitemap(config: SiteConfig, pages: list[RenderedPage], entries: list[Entry]) -> Optional[RenderedPage]:
    if not config.site_url:
        return None
    site_url = config.site_url.rstrip("/")
    lastmod = {entry.output_path: entry.date for entry in entries}
    items = []
    for page in sorted(pages, key=lambda p: p.path):
        if not page.path.endswith(".html"):
            continue
        url = site_url + "/" if page.path == "index.html" else join_url(site_url, page.path)
        lines = ["<url>", f"<loc>{html.escape(url)}</loc>"]
        date = lastmod.get(page.path)
        if date is not None:
            lines.append(f"<lastmod>{as_datetime(date).date().isoformat()}</lastmod>")
        lines.append("</url>")
        items.append("\n".join(lines))
    sitemap = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )
    return RenderedPage(path="sitemap.xml", data=sitemap.encode("utf-8"))

