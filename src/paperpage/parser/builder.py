"""Turn raw tokenizer nodes into semantic document nodes."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping

from .base import (
    Acknowledgements,
    BibliographyEntry,
    Blockquote,
    Document,
    Empty,
    FigureBlock,
    Heading,
    MultilineBlock,
    OneLineCommand,
    OrderedList,
    Paragraph,
    Preformatted,
    RawNode,
    SectionHeader,
    Subtitle,
    TableBlock,
    Text,
    Title,
    UnorderedList,
)
from .tex_parser import TeXSyntaxError, read_command_argument, strip_comment

logger = logging.getLogger(__name__)

_ITEM = re.compile(r"^\\item\b\s*")
_LABEL = re.compile(r"\\label\{([^{}]*)\}")
_BIBITEM = re.compile(r"^\\bibitem(?:\[[^\]]*\])?\{([^{}]*)\}\s*(.*)$")
_TABULAR_BEGIN = re.compile(r"^\\begin\{tabular[x*]?\}")
_TABULAR_END = re.compile(r"^\\end\{tabular[x*]?\}")
_RULE_LINE = re.compile(r"^\\(hline|toprule|midrule|bottomrule|cline\{[^}]*\})$")
_TRAILING_RULES = re.compile(r"(\s*\\(hline|toprule|midrule|bottomrule|cline\{[^}]*\}))+\s*$")
_ROW_END = re.compile(r"\\\\\s*$")
_CELL_SEPARATOR = re.compile(r"(?<!\\)&")


class DocumentBuilder:
    """Group raw nodes into paragraphs and structural blocks.

    Consecutive text lines accumulate into one paragraph; any other node
    flushes the accumulator first, so document order follows source order.
    """

    def __init__(self, bibliography: Mapping[str, BibliographyEntry] | None = None) -> None:
        self._bibliography = dict(bibliography or {})

    def build(self, raw_nodes: Iterable[RawNode]) -> Document:
        doc = Document(bibliography=dict(self._bibliography))
        paragraph: list[str] = []
        figures = 0
        tables = 0

        for node in raw_nodes:
            if isinstance(node, Text):
                paragraph.append(node.text)
                continue

            if paragraph:
                doc.nodes.append(Paragraph(text="\n".join(paragraph)))
                paragraph = []

            if isinstance(node, (Empty, OneLineCommand)):
                continue

            if isinstance(node, Title):
                doc.title = node.title
            elif isinstance(node, Subtitle):
                doc.subtitle = node.subtitle
            elif isinstance(node, SectionHeader):
                doc.nodes.append(Heading(level=node.level, text=node.header))
            elif isinstance(node, MultilineBlock):
                block = self._convert_block(node, doc)
                if isinstance(block, FigureBlock):
                    figures += 1
                    block.number = figures
                    if block.label:
                        doc.labels[block.label] = str(figures)
                elif isinstance(block, TableBlock):
                    tables += 1
                    block.number = tables
                    if block.label:
                        doc.labels[block.label] = str(tables)
                if block is not None:
                    doc.nodes.append(block)
            else:
                raise TypeError(f"Unexpected raw node: {node!r}")

        if paragraph:
            doc.nodes.append(Paragraph(text="\n".join(paragraph)))

        return doc

    def _convert_block(self, node: MultilineBlock, doc: Document):
        kind = node.kind
        if kind == "verbatim":
            return Preformatted(text="\n".join(node.lines))

        lines = _code_lines(node.lines)
        if kind in ("quotation", "quote"):
            return Blockquote(text="\n".join(lines))
        if kind == "itemize":
            return UnorderedList(items=_parse_items(lines))
        if kind == "enumerate":
            return OrderedList(items=_parse_items(lines))
        if kind in ("figure", "figure*"):
            return _parse_figure(lines, node.line)
        if kind in ("table", "table*"):
            return _parse_table(lines, node.line)
        if kind == "acks":
            return Acknowledgements(text="\n".join(lines))
        if kind == "thebibliography":
            for entry in _parse_inline_bibliography(node.lines, node.line).values():
                if entry.key in doc.bibliography:
                    logger.debug("Inline bibliography entry %s replaces file entry", entry.key)
                doc.bibliography[entry.key] = entry
            return None
        if kind in ("title", "subtitle"):
            value = read_command_argument("\n".join(lines), kind, node.line) or ""
            setattr(doc, kind, value)
            return None

        logger.debug("Dropping %s block at line %d", kind, node.line)
        return None


def build_document(
    raw_nodes: Iterable[RawNode],
    bibliography: Mapping[str, BibliographyEntry] | None = None,
) -> Document:
    return DocumentBuilder(bibliography).build(raw_nodes)


def _code_lines(lines: list[str]) -> list[str]:
    """Block lines with comments removed; comment-only lines are dropped entirely."""
    kept = []
    for line in lines:
        code = strip_comment(line)
        if code.strip() or not line.strip():
            kept.append(code)
    return kept


def _parse_items(lines: list[str]) -> list[str]:
    items: list[list[str]] = []
    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue
        if _ITEM.match(stripped):
            items.append([_ITEM.sub("", stripped, count=1)])
        elif items:
            items[-1].append(stripped)
    return ["\n".join(parts) for parts in items]


def _parse_figure(lines: list[str], line: int) -> FigureBlock:
    body = "\n".join(text.strip() for text in lines)
    caption = read_command_argument(body, "caption", line) or ""
    graphics = read_command_argument(body, "includegraphics", line)
    label = _LABEL.search(body)
    return FigureBlock(
        caption=_LABEL.sub("", caption).strip(),
        graphics=graphics.strip() if graphics else None,
        label=label.group(1).strip() if label else None,
    )


def _parse_table(lines: list[str], line: int) -> TableBlock:
    rows: list[list[str]] = []
    in_tabular = False
    seen_tabular = False
    for text in lines:
        stripped = text.strip()
        if _TABULAR_BEGIN.match(stripped):
            in_tabular = True
            seen_tabular = True
            continue
        if _TABULAR_END.match(stripped):
            in_tabular = False
            continue
        if not in_tabular or not stripped or _RULE_LINE.match(stripped):
            continue
        row = _TRAILING_RULES.sub("", stripped)
        row = _ROW_END.sub("", row)
        rows.append([cell.strip() for cell in _CELL_SEPARATOR.split(row)])

    if not seen_tabular:
        logger.warning("Table at line %d has no tabular environment", line)

    body = "\n".join(text.strip() for text in lines)
    caption = read_command_argument(body, "caption", line) or ""
    label = _LABEL.search(body)
    return TableBlock(
        rows=rows,
        caption=_LABEL.sub("", caption).strip(),
        label=label.group(1).strip() if label else None,
    )


def _parse_inline_bibliography(lines: list[str], line: int) -> dict[str, BibliographyEntry]:
    entries: dict[str, BibliographyEntry] = {}
    current: BibliographyEntry | None = None
    parts: list[str] = []

    def close() -> None:
        if current is not None:
            current.text = "\n".join(parts).strip()
            entries[current.key] = current

    for offset, text in enumerate(lines, start=1):
        code = strip_comment(text)
        if text.strip() and not code.strip():
            continue
        stripped = code.strip()
        if stripped.startswith("\\bibitem"):
            match = _BIBITEM.match(stripped)
            if not match:
                raise TeXSyntaxError(f"malformed bibliography item {stripped!r}", line + offset)
            close()
            current = BibliographyEntry(key=match.group(1).strip(), inline=True)
            parts = [match.group(2)] if match.group(2) else []
        elif not stripped:
            close()
            current = None
            parts = []
        elif current is not None:
            parts.append(stripped)

    close()
    return entries
