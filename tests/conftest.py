from __future__ import annotations

from pathlib import Path

import pytest

from blogsmith.config import SiteConfig

POST_LAYOUT = (
    '<html><body class="layout-post"><h1 class="title">{{title}}</h1>'
    '<p class="meta">{{date}} {{tags}}</p>{{content}}</body></html>'
)
DEFAULT_LAYOUT = '<html><body class="layout-default"><title>{{title}}</title>{{content}}</body></html>'


def front_matter(**fields: str) -> str:
    lines = ["---"]
    lines.extend(f"{key}: {value}" for key, value in fields.items())
    lines.append("---")
    return "\n".join(lines) + "\n"


@pytest.fixture
def source(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    layouts = root / "_layouts"
    layouts.mkdir(parents=True)
    (layouts / "post.html").write_text(POST_LAYOUT, encoding="utf-8")
    (layouts / "default.html").write_text(DEFAULT_LAYOUT, encoding="utf-8")
    return root


@pytest.fixture
def write(source: Path):
    def _write(rel: str, body: str = "", **fields: str) -> Path:
        path = source / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        text = front_matter(**fields) + body if fields else body
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_config(source: Path, tmp_path: Path):
    def _make(**overrides: object) -> SiteConfig:
        values = {"source": source, "output": tmp_path / "out", "workers": 1}
        values.update(overrides)
        return SiteConfig(**values)

    return _make
