"""Inline TeX markup to HTML, with citation and footnote numbering."""

from __future__ import annotations

import html
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from paperpage.parser.bib_parser import replace_accents
from paperpage.parser.tex_parser import read_balanced_braces

_REF = re.compile(r"\\(?:auto|c|eq)?ref\{([^{}]*)\}")
_URL = re.compile(r"\\url\{([^{}]*)\}")
_HREF = re.compile(r"\\href\{([^{}]*)\}\{([^{}]*)\}")
_SPANS = (
    (re.compile(r"\\(?:emph|textit)\{([^{}]*)\}"), "<em>", "</em>"),
    (re.compile(r"\{\\(?:itshape|em|it)\s+([^{}]*)\}"), "<em>", "</em>"),
    (re.compile(r"\\textbf\{([^{}]*)\}"), "<strong>", "</strong>"),
    (re.compile(r"\{\\(?:bfseries|bf)\s+([^{}]*)\}"), "<strong>", "</strong>"),
    (re.compile(r"\\texttt\{([^{}]*)\}"), "<code>", "</code>"),
    (re.compile(r"\\mbox\{([^{}]*)\}"), '<span class="nowrap">', "</span>"),
)
_FOOTNOTE = "\\footnote{"
_CITE = re.compile(r"\\cite[pt]?(?:\[([^\]]*)\])?\{([^{}]*)\}")
_STASHED = re.compile(r"@@STASH_(\d+)@@")

_TYPOGRAPHY = (
    (re.compile(r"\\l?dots(?![A-Za-z])\s?"), "…"),
    (re.compile(r"``"), "“"),
    (re.compile(r"''"), "”"),
    (re.compile(r"`"), "‘"),
    (re.compile(r"(^|\s)'"), r"\1‘"),
    (re.compile(r"'"), "’"),
    (re.compile(r"(?<!\\)~"), "&nbsp;"),
    (re.compile(r"---"), "—"),
    (re.compile(r"--"), "–"),
    (re.compile(r"\\&"), "&amp;"),
)

_COMMAND_WITH_ARG = re.compile(r"\\[a-zA-Z]+\*?(?:\[[^\]]*\])?\{([^{}]*)\}")
_BARE_COMMAND = re.compile(r"\\[a-zA-Z]+\*?")
_TAG = re.compile(r"<[^>]+>")


@dataclass(slots=True)
class CitationRegistry:
    """Citation key to number, numbered by first appearance."""

    ids: dict[str, int] = field(default_factory=dict)

    def cite(self, key: str) -> int:
        if key not in self.ids:
            self.ids[key] = len(self.ids) + 1
        return self.ids[key]

    def __contains__(self, key: object) -> bool:
        return key in self.ids

    def __len__(self) -> int:
        return len(self.ids)


@dataclass(slots=True)
class FootnoteRegistry:
    """Footnote texts in encounter order; footnote ``n`` is ``texts[n - 1]``."""

    texts: list[str] = field(default_factory=list)

    def add(self, text: str) -> int:
        self.texts.append(text)
        return len(self.texts)

    def __len__(self) -> int:
        return len(self.texts)


class InlineTransformer:
    """Rewrite inline TeX markup in a text fragment into HTML.

    Citation and footnote numbers are assigned as fragments are transformed,
    so fragments must be passed in reading order and each exactly once.
    """

    def __init__(
        self,
        citations: CitationRegistry | None = None,
        footnotes: FootnoteRegistry | None = None,
        labels: Mapping[str, str] | None = None,
    ) -> None:
        self.citations = citations if citations is not None else CitationRegistry()
        self.footnotes = footnotes if footnotes is not None else FootnoteRegistry()
        self.labels = dict(labels or {})

    def transform(self, text: str) -> str:
        stash: list[str] = []

        def keep(fragment: str) -> str:
            return _stash(stash, fragment)

        text = text.replace("<", "&lt;").replace(">", "&gt;")
        text = self._substitute_links(text, keep)
        text = _substitute_spans(text)
        return self._finish(text, stash)

    def _finish(self, text: str, stash: list[str]) -> str:
        pending: list[tuple[int, str]] = []
        text = self._extract_footnotes(text, pending)
        text = self._substitute_citations(text, stash)
        text = _typography(text)
        text = strip_commands(text)
        text = _STASHED.sub(lambda m: stash[int(m.group(1))], text)

        # A footnote body is rendered after the text that carries it.
        for fn_id, content in pending:
            self.footnotes.texts[fn_id - 1] = self._finish(content, stash)
        return text

    def _substitute_links(self, text: str, keep) -> str:
        def ref(match: re.Match[str]) -> str:
            label = match.group(1).strip()
            shown = self.labels.get(label, label)
            return keep(f'<a href="#{html.escape(label)}">') + shown + keep("</a>")

        def url(match: re.Match[str]) -> str:
            target = html.escape(match.group(1).strip())
            return keep(f'<a href="{target}">{target}</a>')

        def href(match: re.Match[str]) -> str:
            target = html.escape(match.group(1).strip())
            return keep(f'<a href="{target}">') + match.group(2) + keep("</a>")

        text = _REF.sub(ref, text)
        text = _HREF.sub(href, text)
        return _URL.sub(url, text)

    def _extract_footnotes(self, text: str, pending: list[tuple[int, str]]) -> str:
        out = []
        i = 0
        while i < len(text):
            start = text.find(_FOOTNOTE, i)
            if start == -1:
                out.append(text[i:])
                break
            out.append(text[i:start])
            content, end = read_balanced_braces(text, start + len(_FOOTNOTE) - 1)
            fn_id = self.footnotes.add(content.strip())
            pending.append((fn_id, content.strip()))
            out.append(f'<sup><a href="#fn_{fn_id}" id="fnref_{fn_id}">{fn_id}</a></sup>')
            i = end
        return "".join(out)

    def _substitute_citations(self, text: str, stash: list[str]) -> str:
        def cite(match: re.Match[str]) -> str:
            pages = (match.group(1) or "").strip()
            links = []
            for key in (k.strip() for k in match.group(2).split(",")):
                if not key:
                    continue
                link = _stash(stash, f'<a href="#ref_{html.escape(key)}">{self.citations.cite(key)}</a>')
                if pages:
                    link += f", {pages}"
                links.append(link)
            return "[" + ", ".join(links) + "]"

        return _CITE.sub(cite, text)


def _stash(stash: list[str], fragment: str) -> str:
    stash.append(fragment)
    return f"@@STASH_{len(stash) - 1}@@"


def _substitute_spans(text: str) -> str:
    for pattern, opening, closing in _SPANS:
        text = pattern.sub(lambda m, o=opening, c=closing: f"{o}{m.group(1)}{c}", text)
    return text


def _typography(text: str) -> str:
    text = replace_accents(text)
    for pattern, replacement in _TYPOGRAPHY:
        text = pattern.sub(replacement, text)
    return text


def strip_commands(text: str) -> str:
    """Reduce any remaining ``\\command{arg}`` to ``arg`` and drop stray escapes."""
    previous = None
    while previous != text:
        previous = text
        text = _COMMAND_WITH_ARG.sub(r"\1", text)
    text = _BARE_COMMAND.sub("", text)
    text = text.replace("{", "").replace("}", "")
    return text.replace("\\", "")


def strip_tags(fragment: str) -> str:
    return html.unescape(_TAG.sub("", fragment))
