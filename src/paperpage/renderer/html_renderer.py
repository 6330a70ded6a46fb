"""Render a built Document into a self-contained HTML page."""

from __future__ import annotations

import base64
import html
import logging
import mimetypes
import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from paperpage.metadata import PaperMetadata
from paperpage.parser.base import (
    Acknowledgements,
    BibliographyEntry,
    Blockquote,
    Document,
    DocumentNode,
    FigureBlock,
    Heading,
    OrderedList,
    Paragraph,
    Preformatted,
    TableBlock,
    UnorderedList,
)
from paperpage.parser.bib_parser import scholar_query
from paperpage.renderer.inline import InlineTransformer, strip_tags

logger = logging.getLogger(__name__)

SCHOLAR_URL = "https://scholar.google.com/scholar?q="
_IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".svg")


class HTMLRenderer:
    """Render a Document and its metadata through the page template."""

    def __init__(self, template_path: Path | None = None) -> None:
        if template_path is None:
            template_path = Path(__file__).resolve().parent.parent / "template" / "paper.html"

        loader = FileSystemLoader(str(template_path.parent))
        self._env = Environment(loader=loader, autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self._template_name = template_path.name

    def render(
        self,
        document: Document,
        metadata: PaperMetadata | None = None,
        *,
        title_override: str | None = None,
        embed_images: bool = True,
        asset_root: Path | None = None,
    ) -> str:
        metadata = metadata or PaperMetadata()
        transformer = InlineTransformer(labels=document.labels)

        # Order matters: citation and footnote numbers follow the order of these calls.
        title_html = transformer.transform(title_override or metadata.title or document.title or "Untitled")
        subtitle_html = transformer.transform(document.subtitle) if document.subtitle else ""
        body_html = self.render_body(document, transformer, embed_images=embed_images, asset_root=asset_root)
        references = self._render_references(document.bibliography, transformer)
        footnotes = [
            {"id": fn_id, "html": text}
            for fn_id, text in enumerate(transformer.footnotes.texts, start=1)
        ]

        plain_title = strip_tags(title_html)
        author_names = [author.name for author in metadata.authors]
        first_author = author_names[0] if author_names else ""

        template = self._env.get_template(self._template_name)
        return template.render(
            page_title=plain_title,
            title_html=title_html,
            subtitle_html=subtitle_html,
            authors=metadata.authors,
            author_names=author_names,
            venue=metadata.venue,
            venue_link=metadata.venue_link,
            year=metadata.year,
            pdf=metadata.pdf,
            scholar_url=SCHOLAR_URL + scholar_query(plain_title, first_author),
            body_html=body_html,
            references=references,
            footnotes=footnotes,
            citation=format_citation(metadata, plain_title),
        )

    def render_body(
        self,
        document: Document,
        transformer: InlineTransformer,
        *,
        embed_images: bool = True,
        asset_root: Path | None = None,
    ) -> str:
        used_anchors: set[str] = set()
        parts = [
            self._render_node(
                node,
                transformer,
                used_anchors=used_anchors,
                embed_images=embed_images,
                asset_root=asset_root,
            )
            for node in document.nodes
        ]
        return "\n".join(part for part in parts if part)

    def _render_node(
        self,
        node: DocumentNode,
        transformer: InlineTransformer,
        *,
        used_anchors: set[str],
        embed_images: bool,
        asset_root: Path | None,
    ) -> str:
        inline = transformer.transform

        if isinstance(node, Heading):
            text = inline(node.text)
            anchor = _dedupe_anchor(slugify(strip_tags(text)) or "section", used_anchors)
            return f'<h{node.level} id="{anchor}">{text}</h{node.level}>'

        if isinstance(node, Paragraph):
            return f"<p>{inline(node.text)}</p>"

        if isinstance(node, Preformatted):
            return f"<pre>{html.escape(node.text)}</pre>"

        if isinstance(node, Blockquote):
            return f"<blockquote>\n{inline(node.text)}\n</blockquote>"

        if isinstance(node, (UnorderedList, OrderedList)):
            tag = "ul" if isinstance(node, UnorderedList) else "ol"
            items = "\n".join(f"<li>{inline(item)}</li>" for item in node.items)
            return f"<{tag}>\n{items}\n</{tag}>"

        if isinstance(node, FigureBlock):
            return self._render_figure(node, inline, embed_images=embed_images, asset_root=asset_root)

        if isinstance(node, TableBlock):
            return self._render_table(node, inline)

        if isinstance(node, Acknowledgements):
            return f"<h4>Acknowledgements</h4>\n<p>{inline(node.text)}</p>"

        raise TypeError(f"Unexpected document node: {node!r}")

    def _render_figure(self, block: FigureBlock, inline, *, embed_images: bool, asset_root: Path | None) -> str:
        anchor = f' id="{html.escape(block.label)}"' if block.label else ""
        image_html = ""
        if block.graphics:
            src = None
            if embed_images:
                src = _maybe_embed_image(asset_root or Path.cwd(), block.graphics)
            if src is None:
                src = html.escape(block.graphics)
            image_html = f'<img src="{src}" alt="Figure {block.number}"/>\n'

        caption = inline(block.caption) if block.caption else ""
        caption_html = f'<p class="caption">Figure {block.number}: {caption}</p>' if caption else ""
        return f'<div class="figure"{anchor}>\n{image_html}{caption_html}\n</div>'

    def _render_table(self, block: TableBlock, inline) -> str:
        anchor = f' id="{html.escape(block.label)}"' if block.label else ""
        rows = []
        for row in block.rows:
            cells = "".join(f"<td>{inline(cell)}</td>" for cell in row)
            rows.append(f"<tr>{cells}</tr>")
        caption = inline(block.caption) if block.caption else ""
        caption_html = f'\n<p class="caption">Table {block.number}: {caption}</p>' if caption else ""
        table_html = "<table>\n" + "\n".join(rows) + "\n</table>"
        return f'<div class="table"{anchor}>\n{table_html}{caption_html}\n</div>'

    def _render_references(
        self,
        bibliography: dict[str, BibliographyEntry],
        transformer: InlineTransformer,
    ) -> list[dict[str, object]]:
        references: list[dict[str, object]] = []
        index = 0
        # Inline entries may cite further keys, so the registry can grow while we iterate.
        while index < len(transformer.citations):
            key = list(transformer.citations.ids)[index]
            ref_id = transformer.citations.ids[key]
            index += 1

            entry = bibliography.get(key)
            if entry is None:
                logger.warning("Citation key %r has no bibliography entry", key)
                entry = BibliographyEntry(key=key)

            if entry.inline:
                references.append({"id": ref_id, "key": key, "inline": True, "html": transformer.transform(entry.text)})
                continue

            references.append(
                {
                    "id": ref_id,
                    "key": key,
                    "inline": False,
                    "authors": ", ".join(entry.authors),
                    "year": entry.year,
                    "title": entry.title,
                    "scholar_url": SCHOLAR_URL + entry.scholar_query if entry.scholar_query else "",
                    "venue": entry.venue,
                }
            )
        return references


def slugify(text: str) -> str:
    """URL-fragment anchor for a heading: ``"Alice's Results"`` -> ``"alices-results"``."""
    text = text.lower().replace("'", "").replace("’", "")
    return re.sub(r"[\W_]+", "-", text).strip("-")


def format_citation(metadata: PaperMetadata, title: str) -> str:
    """BibTeX snippet for the "How to cite" block."""
    record = metadata.citation
    if record is not None:
        entry_type, key, fields = record.entry_type, record.key, dict(record.fields)
    else:
        names = [author.name for author in metadata.authors]
        fields = {"title": title}
        if names:
            fields["author"] = " and ".join(_last_first(name) for name in names)
        if metadata.venue:
            fields["booktitle"] = metadata.venue
        if metadata.year:
            fields["year"] = metadata.year
        if metadata.month:
            fields["month"] = metadata.month
        entry_type = "inproceedings" if metadata.venue else "misc"
        key = _citation_key(names, metadata.year or "", title)

    lines = [f"@{entry_type}{{{key},"]
    lines.extend(f"  {name}={{{value}}}," for name, value in fields.items())
    if len(lines) > 1:
        lines[-1] = lines[-1].rstrip(",")
    lines.append("}")
    return "\n".join(lines)


def _last_first(name: str) -> str:
    parts = name.split()
    if len(parts) < 2:
        return name
    return f"{parts[-1]}, {' '.join(parts[:-1])}"


def _citation_key(names: list[str], year: str, title: str) -> str:
    surname = names[0].split()[-1] if names and names[0].split() else ""
    words = re.findall(r"[A-Za-z0-9]+", title)
    first_word = words[0] if words else ""
    return re.sub(r"[^a-z0-9]", "", f"{surname}{year}{first_word}".lower()) or "paper"


def _dedupe_anchor(anchor: str, used: set[str]) -> str:
    if anchor not in used:
        used.add(anchor)
        return anchor

    idx = 2
    while True:
        candidate = f"{anchor}-{idx}"
        if candidate not in used:
            used.add(candidate)
            return candidate
        idx += 1


def _maybe_embed_image(root: Path, reference: str) -> str | None:
    path = root / reference
    candidates = [path] if path.suffix else [path.with_name(path.name + ext) for ext in _IMAGE_EXTENSIONS]
    for candidate in candidates:
        if candidate.is_file():
            mime, _ = mimetypes.guess_type(candidate.name)
            mime = mime or "application/octet-stream"
            data = base64.b64encode(candidate.read_bytes()).decode("ascii")
            return f"data:{mime};base64,{data}"
    logger.warning("Image not found for %s", reference)
    return None
