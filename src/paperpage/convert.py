"""End-to-end conversion: TeX source and bibliography to one HTML page."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from paperpage.metadata import PaperMetadata
from paperpage.parser.base import Document
from paperpage.parser.bib_parser import BibliographyLoadReport, load_bibliography
from paperpage.parser.builder import build_document
from paperpage.parser.tex_parser import detect_main_tex, find_bibliography_sources, flatten_source, tokenize
from paperpage.renderer.html_renderer import HTMLRenderer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConversionResult:
    html: str
    document: Document
    root_path: Path
    bibliography: BibliographyLoadReport


def convert_paper(
    input_path: Path,
    metadata: PaperMetadata | None = None,
    *,
    extra_bibliographies: Iterable[Path] = (),
    title_override: str | None = None,
    embed_images: bool = True,
) -> ConversionResult:
    """Convert a root .tex file (or a directory holding one) into HTML."""
    metadata = metadata or PaperMetadata()
    input_path = Path(input_path)
    root_path = detect_main_tex(input_path, metadata.root) if input_path.is_dir() else input_path
    base_dir = root_path.parent
    logger.info("Converting %s", root_path)

    source = flatten_source(root_path)
    sources = find_bibliography_sources(source, base_dir)
    sources.extend(Path(p) for p in extra_bibliographies if Path(p) not in sources)
    report = load_bibliography(sources)

    document = build_document(tokenize(source), report.entries)
    html = HTMLRenderer().render(
        document,
        metadata,
        title_override=title_override,
        embed_images=embed_images,
        asset_root=base_dir,
    )
    return ConversionResult(html=html, document=document, root_path=root_path, bibliography=report)
