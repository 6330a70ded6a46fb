"""BibTeX loading into :class:`BibliographyEntry` records.

Each source is loaded independently. A missing or malformed source never
aborts the batch; it is recorded as a typed failure in the returned
:class:`BibliographyLoadReport`.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote_plus

from .base import BibliographyEntry
from .tex_parser import read_balanced_braces

logger = logging.getLogger(__name__)

_ENTRY_START = re.compile(r"@(\w+)\s*\{")
_FIELD_NAME = re.compile(r"\s*([A-Za-z][\w:-]*)\s*=\s*")
_SKIPPED_TYPES = {"string", "comment", "preamble"}

_COMBINING_MARKS = {
    '"': "\u0308",
    "'": "\u0301",
    "`": "\u0300",
    "^": "\u0302",
    "~": "\u0303",
    "c": "\u0327",
}
_ACCENT = re.compile(r"\{?\\([\"'`^~]|c(?=[\s{]))\s*\{?([A-Za-z])\}?\}?")
_LETTER_MACROS = {"\\aa": "å", "\\AA": "Å", "\\o": "ø", "\\O": "Ø", "\\ss": "ß", "\\ae": "æ", "\\oe": "œ"}


class BibliographyLoadError(Exception):
    """Base class for per-source bibliography failures."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class BibliographySourceMissing(BibliographyLoadError):
    pass


class BibliographySyntaxError(BibliographyLoadError):
    pass


@dataclass(slots=True)
class SourceResult:
    path: Path
    entry_count: int = 0
    error: BibliographyLoadError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class BibliographyLoadReport:
    entries: dict[str, BibliographyEntry] = field(default_factory=dict)
    results: list[SourceResult] = field(default_factory=list)

    @property
    def failures(self) -> list[SourceResult]:
        return [result for result in self.results if not result.ok]


def load_bibliography(paths: Iterable[Path]) -> BibliographyLoadReport:
    """Load every source in order; later sources override earlier keys."""
    report = BibliographyLoadReport()
    for path in paths:
        path = Path(path)
        try:
            if not path.is_file():
                raise BibliographySourceMissing(path, "no such file")
            text = path.read_text(encoding="utf-8", errors="ignore")
            entries = parse_bibtex(text, source=path)
        except BibliographyLoadError as exc:
            logger.warning("Skipping bibliography source: %s", exc)
            report.results.append(SourceResult(path=path, error=exc))
            continue

        logger.debug("Loaded %d bibliography entries from %s", len(entries), path)
        report.entries.update(entries)
        report.results.append(SourceResult(path=path, entry_count=len(entries)))
    return report


def parse_bibtex(text: str, source: Path | None = None) -> dict[str, BibliographyEntry]:
    entries: dict[str, BibliographyEntry] = {}
    pos = 0
    while True:
        match = _ENTRY_START.search(text, pos)
        if not match:
            break
        entry_type = match.group(1).lower()
        body, end = read_balanced_braces(text, match.end() - 1)
        pos = end

        if entry_type in _SKIPPED_TYPES:
            continue

        raw = text[match.end() - 1 : end]
        if raw.count("{") != raw.count("}"):
            raise BibliographySyntaxError(source or Path("<string>"), f"unterminated @{entry_type} entry")

        key, sep, rest = body.partition(",")
        key = key.strip()
        if not sep or not key:
            raise BibliographySyntaxError(source or Path("<string>"), f"@{entry_type} entry without a key")

        fields = _parse_fields(rest)
        authors = parse_bib_authors(fields.get("author", ""))
        entries[key] = BibliographyEntry(
            key=key,
            fields=fields,
            authors=authors,
            scholar_query=scholar_query(fields.get("title", ""), authors[0] if authors else ""),
            entry_type=entry_type,
        )
    return entries


def _parse_fields(body: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    pos = 0
    while pos < len(body):
        match = _FIELD_NAME.match(body, pos)
        if not match:
            break
        name = match.group(1).lower()
        pos = match.end()
        value, pos = _read_value(body, pos)
        fields[name] = clean_bib_value(value)
        comma = body.find(",", pos)
        if comma == -1:
            break
        pos = comma + 1
    return fields


def _read_value(body: str, pos: int) -> tuple[str, int]:
    if pos < len(body) and body[pos] == "{":
        return read_balanced_braces(body, pos)
    if pos < len(body) and body[pos] == '"':
        end = pos + 1
        depth = 0
        while end < len(body):
            ch = body[end]
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
            elif ch == '"' and depth == 0 and body[end - 1] != "\\":
                break
            end += 1
        return body[pos + 1 : end], end + 1
    end = pos
    while end < len(body) and body[end] not in ",\n":
        end += 1
    return body[pos:end].strip(), end


def clean_bib_value(value: str) -> str:
    """Strip braces and TeX escapes from a field value, keeping accented letters."""
    value = replace_accents(value)
    for macro, letter in _LETTER_MACROS.items():
        value = re.sub(re.escape(macro) + r"(?![A-Za-z])\s*", letter, value)
    value = value.replace("{", "").replace("}", "")
    value = value.replace("\\", "")
    return re.sub(r"\s+", " ", value).strip()


def replace_accents(text: str) -> str:
    """Compose ``\\"o``, ``\\'e``, ``\\c c`` and similar escapes into Unicode letters."""

    def compose(match: re.Match[str]) -> str:
        mark = _COMBINING_MARKS[match.group(1)]
        return unicodedata.normalize("NFC", match.group(2) + mark)

    return _ACCENT.sub(compose, text)


def parse_bib_authors(line: str) -> list[str]:
    """Split a BibTeX author field, turning ``Last, First`` into ``First Last``."""
    authors: list[str] = []
    for name in re.split(r"\s+and\s+", line.strip()):
        name = name.strip()
        if not name:
            continue
        if "," in name:
            last, _, first = name.partition(",")
            name = f"{first.strip()} {last.strip()}".strip()
        authors.append(name)
    return authors


def scholar_query(title: str, first_author: str = "") -> str:
    """URL-encoded Google Scholar query for a quoted title plus first author."""
    query = f'"{title}"'
    if first_author:
        query += f" {first_author}"
    return quote_plus(query)
