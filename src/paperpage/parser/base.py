"""Core intermediate representations (IR) for parsed papers.

Two layers are defined here. Raw nodes are produced by the tokenizer, one
per source line (or per multi-line block). Document nodes are the semantic
blocks consumed by the renderer.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Raw nodes (tokenizer output)
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Empty:
    line: int
    text: str = ""


@dataclass(slots=True)
class Text:
    line: int
    text: str


@dataclass(slots=True)
class Title:
    line: int
    title: str


@dataclass(slots=True)
class Subtitle:
    line: int
    subtitle: str


@dataclass(slots=True)
class SectionHeader:
    line: int
    depth: int
    header: str

    @property
    def level(self) -> int:
        """HTML heading level: sections are h2, subsections h3, subsubsections h4."""
        return self.depth + 1


@dataclass(slots=True)
class MultilineBlock:
    line: int
    kind: str
    lines: list[str] = field(default_factory=list)


@dataclass(slots=True)
class OneLineCommand:
    line: int
    text: str


RawNode = Empty | Text | Title | Subtitle | SectionHeader | MultilineBlock | OneLineCommand

# ---------------------------------------------------------------------------
# Document nodes (builder output)
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Paragraph:
    text: str


@dataclass(slots=True)
class Heading:
    level: int
    text: str


@dataclass(slots=True)
class Preformatted:
    text: str


@dataclass(slots=True)
class Blockquote:
    text: str


@dataclass(slots=True)
class UnorderedList:
    items: list[str] = field(default_factory=list)


@dataclass(slots=True)
class OrderedList:
    items: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FigureBlock:
    caption: str = ""
    graphics: str | None = None
    label: str | None = None
    number: int = 0


@dataclass(slots=True)
class TableBlock:
    rows: list[list[str]] = field(default_factory=list)
    caption: str = ""
    label: str | None = None
    number: int = 0


@dataclass(slots=True)
class Acknowledgements:
    text: str


DocumentNode = (
    Paragraph
    | Heading
    | Preformatted
    | Blockquote
    | UnorderedList
    | OrderedList
    | FigureBlock
    | TableBlock
    | Acknowledgements
)

# ---------------------------------------------------------------------------
# Bibliography and document container
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class BibliographyEntry:
    """A single reference.

    File-sourced entries carry BibTeX ``fields``; inline entries (defined in
    the document's own bibliography environment) carry free ``text`` instead
    and have ``inline`` set.
    """

    key: str
    fields: dict[str, str] = field(default_factory=dict)
    authors: list[str] = field(default_factory=list)
    scholar_query: str = ""
    text: str = ""
    inline: bool = False
    entry_type: str = ""

    @property
    def title(self) -> str:
        return self.fields.get("title", "")

    @property
    def year(self) -> str:
        return self.fields.get("year", "")

    @property
    def venue(self) -> str:
        for name in ("booktitle", "journal", "publisher", "howpublished"):
            value = self.fields.get(name)
            if value:
                return value
        return ""


@dataclass(slots=True)
class Document:
    title: str = ""
    subtitle: str = ""
    nodes: list[DocumentNode] = field(default_factory=list)
    bibliography: dict[str, BibliographyEntry] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
