"""Renderer package."""

from .html_renderer import HTMLRenderer, format_citation, slugify
from .inline import CitationRegistry, FootnoteRegistry, InlineTransformer

__all__ = [
    "HTMLRenderer",
    "format_citation",
    "slugify",
    "CitationRegistry",
    "FootnoteRegistry",
    "InlineTransformer",
]
