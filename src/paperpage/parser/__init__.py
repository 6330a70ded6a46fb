"""Parser package."""

from .base import BibliographyEntry, Document, Heading, Paragraph, FigureBlock, TableBlock
from .bib_parser import BibliographyLoadReport, load_bibliography
from .builder import DocumentBuilder, build_document
from .tex_parser import TeXSyntaxError, TeXTokenizer, flatten_source, tokenize

__all__ = [
    "BibliographyEntry",
    "Document",
    "Heading",
    "Paragraph",
    "FigureBlock",
    "TableBlock",
    "BibliographyLoadReport",
    "load_bibliography",
    "DocumentBuilder",
    "build_document",
    "TeXSyntaxError",
    "TeXTokenizer",
    "flatten_source",
    "tokenize",
]
