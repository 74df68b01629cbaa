"""Markdown body to HTML fragment conversion."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Optional

import markdown

from .content import FrontMatter, normalize_list_spacing
from .errors import RenderWarning
from .highlight import CodeLanguageExtension

FOOTNOTE_REF_RE = re.compile(r"\[\^(?P<label>[^\]]+)\]")
CODE_RE = re.compile(r"<(pre|code)\b.*?</\1>", re.DOTALL)
DEFAULT_TOC_DEPTH = "2-4"


@dataclass(frozen=True)
class Fragment:
    html: str
    toc: str
    warnings: tuple[RenderWarning, ...] = ()


def new_markdown(toc_depth: str = DEFAULT_TOC_DEPTH) -> markdown.Markdown:
    return markdown.Markdown(
        extensions=["fenced_code", "footnotes", "tables", "toc", CodeLanguageExtension()],
        extension_configs={"toc": {"toc_depth": toc_depth}},
    )


def unresolved_footnotes(html_text: str) -> list[str]:
    """Return footnote labels left as literal ``[^label]`` text in rendered HTML.

    The footnotes extension replaces every reference it can resolve, so any
    marker remaining outside code is one with no definition.
    """
    text = CODE_RE.sub("", html_text)
    labels: list[str] = []
    for match in FOOTNOTE_REF_RE.finditer(text):
        label = html.unescape(match.group("label"))
        if label not in labels:
            labels.append(label)
    return labels


def render_markup(
    body: str,
    source: str,
    front_matter: Optional[FrontMatter] = None,
    toc_depth: str = DEFAULT_TOC_DEPTH,
) -> Fragment:
    if front_matter is not None:
        toc_depth = front_matter.extra.get("toc_depth", toc_depth)
    text = normalize_list_spacing(body)
    md = new_markdown(toc_depth)
    html_content = md.convert(text)
    toc_html = md.toc
    md.reset()
    warnings = tuple(
        RenderWarning(source, f"unresolved footnote reference [^{label}]", label)
        for label in unresolved_footnotes(html_content)
    )
    return Fragment(html=html_content, toc=toc_html, warnings=warnings)
