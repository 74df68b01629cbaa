from __future__ import annotations

import re
from functools import lru_cache

from markdown.extensions import Extension
from markdown.preprocessors import Preprocessor
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

# Same opening-line shape the fenced_code extension accepts.
FENCE_OPEN_RE = re.compile(r"^(?P<fence>`{3,}|~{3,})[ ]*(?P<lang>\.?[\w#.+-]*)(?P<rest>.*)$")


@lru_cache(maxsize=256)
def is_known_language(lang: str) -> bool:
    try:
        get_lexer_by_name(lang)
    except ClassNotFound:
        return False
    return True


class CodeLanguagePreprocessor(Preprocessor):
    """Drop fence languages that no highlighter would recognize.

    Only fence opening lines are touched, so ``language-*`` classes written
    in raw HTML reach the output unchanged.
    """

    def run(self, lines: list[str]) -> list[str]:
        out = []
        fence = ""
        for line in lines:
            if fence:
                if line.rstrip() == fence:
                    fence = ""
                out.append(line)
                continue
            match = FENCE_OPEN_RE.match(line)
            if match:
                fence = match.group("fence")
                lang = match.group("lang").lstrip(".")
                if lang and not is_known_language(lang.lower()):
                    line = fence + match.group("rest")
            out.append(line)
        return out


class CodeLanguageExtension(Extension):
    def extendMarkdown(self, md):
        # Must run before fenced_code (25) turns fences into stashed HTML.
        md.preprocessors.register(CodeLanguagePreprocessor(md), "code_language", 27)
