"""Convert LaTeX papers into self-contained HTML pages."""

__version__ = "0.1.0"
