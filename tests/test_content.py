from __future__ import annotations

import datetime as dt
import types

import pytest

from blogsmith.content import (
    FrontMatter,
    iter_assets,
    iter_sources,
    load_document,
    load_documents,
    normalize_list_spacing,
    parse_front_matter,
    permalink_to_path,
    resolve_permalink,
    slugify,
)
from blogsmith.errors import ParseError


def test_parse_front_matter_recognized_keys():
    text = '---\nlayout: post\ntitle: "Hello"\ndate: 2023-01-01\ntags: [a, b]\npermalink: /hello/\n---\n# Hi\n'
    meta, body, body_line = parse_front_matter(text, "hello.md")
    assert meta.layout == "post"
    assert meta.title == "Hello"
    assert meta.date == dt.date(2023, 1, 1)
    assert meta.tags == ("a", "b")
    assert meta.permalink == "/hello/"
    assert body == "# Hi"
    assert body_line == 8


def test_unknown_keys_are_kept_only_as_scalar_extras():
    text = "---\nlayout: post\nsummary: Short\nauthors:\n  - one\n  - two\n---\nbody"
    meta, _, _ = parse_front_matter(text, "x.md")
    assert meta.extra == {"summary": "Short"}


def test_tags_as_comma_separated_string():
    meta, _, _ = parse_front_matter("---\nlayout: post\ntags: golang, c, golang\n---\n", "x.md")
    assert meta.tags == ("golang", "c")


def test_bom_and_crlf_are_tolerated():
    meta, body, _ = parse_front_matter("\ufeff---\r\nlayout: page\r\n---\r\ntext\r\n", "x.md")
    assert meta.layout == "page"
    assert body == "text"


def test_missing_front_matter_block_is_an_error():
    with pytest.raises(ParseError) as info:
        parse_front_matter("# Just a heading\n", "bare.md")
    assert info.value.source == "bare.md"
    assert info.value.line == 1


def test_unterminated_block_is_an_error():
    with pytest.raises(ParseError) as info:
        parse_front_matter("---\nlayout: post\n# Title\n", "open.md")
    assert "unterminated" in str(info.value)
    assert str(info.value).startswith("open.md:1:")


def test_invalid_yaml_reports_a_line_inside_the_block():
    with pytest.raises(ParseError) as info:
        parse_front_matter("---\nlayout: post\ntitle: [unclosed\n---\nbody", "bad.md")
    assert info.value.line >= 2


def test_non_mapping_block_is_an_error():
    with pytest.raises(ParseError):
        parse_front_matter("---\n- a\n- b\n---\nbody", "list.md")


def test_layout_is_required():
    with pytest.raises(ParseError) as info:
        parse_front_matter("---\ntitle: No layout\n---\nbody", "nolayout.md")
    assert "layout" in str(info.value)


def test_invalid_date_points_at_its_line():
    with pytest.raises(ParseError) as info:
        parse_front_matter("---\nlayout: post\ndate: yesterday\n---\n", "date.md")
    assert info.value.line == 3


def test_impossible_calendar_date_is_a_parse_error():
    with pytest.raises(ParseError) as info:
        parse_front_matter("---\nlayout: post\ntitle: Bad\ndate: 2023-13-45\n---\n", "bad.md")
    assert info.value.line == 4
    assert str(info.value).startswith("bad.md:4: invalid front-matter")


def test_date_string_with_time():
    meta, _, _ = parse_front_matter('---\nlayout: post\ndate: "2023-01-02T10:30:00"\n---\n', "x.md")
    assert meta.date == dt.datetime(2023, 1, 2, 10, 30)


@pytest.mark.parametrize(
    "permalink,expected",
    [
        ("/", "index.html"),
        ("/a/b/", "a/b/index.html"),
        ("/a/b", "a/b/index.html"),
        ("/a/b.html", "a/b.html"),
        ("/feed.xml", "feed.xml"),
        ("/v1.2", "v1.2/index.html"),
        ("/docs/v1.2/", "docs/v1.2/index.html"),
    ],
)
def test_permalink_to_path(permalink, expected):
    assert permalink_to_path(permalink) == expected


def test_default_permalink_follows_source_path():
    meta = FrontMatter(layout="post")
    assert resolve_permalink("Posts/Hello World.md", meta) == "/posts/hello-world.html"


def test_permalink_pattern_with_date():
    meta = FrontMatter(layout="post", date=dt.date(2023, 3, 9))
    assert resolve_permalink("posts/endianness.md", meta, "/{year}/{month}/{slug}/") == "/2023/03/endianness/"


def test_dated_pattern_falls_back_for_undated_documents():
    meta = FrontMatter(layout="page")
    assert resolve_permalink("about.md", meta, "/{year}/{slug}/") == "/about.html"


def test_explicit_permalink_cannot_escape_output():
    meta = FrontMatter(layout="post", permalink="/../../etc/passwd")
    with pytest.raises(ParseError):
        resolve_permalink("x.md", meta)


def test_iter_sources_skips_layouts_and_hidden_files(source, write):
    write("posts/a.md", "a", layout="post")
    write("_drafts/b.md", "b", layout="post")
    write(".cache/c.md", "c", layout="post")
    write("img/pic.png", "png")
    sources = [path.relative_to(source).as_posix() for path in iter_sources(source)]
    assets = [path.relative_to(source).as_posix() for path in iter_assets(source)]
    assert sources == ["posts/a.md"]
    assert assets == ["img/pic.png"]


def test_load_documents_is_lazy(source, write):
    write("a.md", "# A", layout="post")
    write("b.md", "no front matter")
    documents = load_documents(source)
    assert isinstance(documents, types.GeneratorType)
    first = next(documents)
    assert first.source == "a.md"
    assert first.title == "A"
    with pytest.raises(ParseError):
        next(documents)


def test_load_document_resolves_output_path(source, write):
    path = write("posts/hello.md", "text", layout="post", permalink="/2023/hello/")
    document = load_document(path, source)
    assert document.permalink == "/2023/hello/"
    assert document.output_path == "2023/hello/index.html"
    assert document.body_line == 5


def test_slugify():
    assert slugify("C++ Tricks") == "c-tricks"
    assert slugify("!!!") == "post"


def test_normalize_list_spacing_leaves_fences_alone():
    text = "Intro\n- item\n```\ncode\n- not a list\n```"
    assert normalize_list_spacing(text) == "Intro\n\n- item\n```\ncode\n- not a list\n```"
