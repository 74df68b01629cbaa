"""Errors raised while building a site."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class SiteError(Exception):
    """Base exception for all build errors."""


class ConfigError(SiteError):
    """Raised when the site config file or a config value is invalid."""


class OutputError(SiteError):
    """Raised when the output directory cannot be safely replaced."""


class DocumentError(SiteError):
    """An error tied to a single source document."""

    def __init__(self, source: str, message: str, line: Optional[int] = None):
        self.source = source
        self.line = line
        self.message = message
        super().__init__(self.location() + ": " + message)

    def location(self) -> str:
        if self.line is None:
            return self.source
        return f"{self.source}:{self.line}"


class ParseError(DocumentError):
    """Malformed or incomplete front-matter."""


class MissingLayoutError(DocumentError):
    """A document references a layout that does not exist."""

    def __init__(self, source: str, layout: str):
        self.layout = layout
        super().__init__(source, f"layout not found: {layout}")


class RenderError(DocumentError):
    """Rendering a document body failed."""


class DuplicatePermalinkError(SiteError):
    """Two or more pages resolve to the same output path."""

    def __init__(self, permalink: str, sources: list[str]):
        self.permalink = permalink
        self.sources = sorted(sources)
        joined = ", ".join(self.sources)
        super().__init__(f"duplicate permalink {permalink}: {joined}")


@dataclass(frozen=True)
class RenderWarning:
    source: str
    message: str
    marker: str = ""

    def __str__(self) -> str:
        return f"{self.source}: {self.message}"
