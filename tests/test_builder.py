from __future__ import annotations

import pytest

from paperpage.parser.base import (
    Acknowledgements,
    BibliographyEntry,
    Blockquote,
    FigureBlock,
    Heading,
    OrderedList,
    Paragraph,
    Preformatted,
    TableBlock,
    UnorderedList,
)
from paperpage.parser.builder import build_document
from paperpage.parser.tex_parser import TeXSyntaxError, tokenize


def _build(source: str, bibliography: dict[str, BibliographyEntry] | None = None):
    return build_document(tokenize(source), bibliography)


def test_paragraphs_merge_contiguous_text() -> None:
    doc = _build("First line\nsecond line\n\nNext paragraph\n\\noindent\nAfter command")

    assert doc.nodes == [
        Paragraph(text="First line\nsecond line"),
        Paragraph(text="Next paragraph"),
        Paragraph(text="After command"),
    ]


def test_title_and_subtitle_become_metadata() -> None:
    doc = _build("\\title{My Paper}\n\\subtitle{A Study}\n\\section{Results}\nBody.")

    assert doc.title == "My Paper"
    assert doc.subtitle == "A Study"
    assert doc.nodes == [Heading(level=2, text="Results"), Paragraph(text="Body.")]


def test_multiline_title() -> None:
    doc = _build("\\title{A Long\nTitle\n}\n")

    assert doc.title == "A Long\nTitle"
    assert doc.nodes == []


def test_itemize_and_enumerate() -> None:
    source = "\n".join(
        [
            "\\begin{itemize}",
            "  \\item First point",
            "",
            "  \\item Second point",
            "    continues here",
            "\\end{itemize}",
            "\\begin{enumerate}",
            "\\item One",
            "\\end{enumerate}",
        ]
    )
    doc = _build(source)

    assert doc.nodes == [
        UnorderedList(items=["First point", "Second point\ncontinues here"]),
        OrderedList(items=["One"]),
    ]


def test_verbatim_quote_and_acks() -> None:
    source = "\n".join(
        [
            "\\begin{verbatim}",
            "  x = {1}",
            "\\end{verbatim}",
            "\\begin{quote}",
            "Quoted words.",
            "\\end{quote}",
            "\\begin{quotation}",
            "Longer quote.",
            "\\end{quotation}",
            "\\begin{acks}",
            "Thanks to everyone.",
            "\\end{acks}",
        ]
    )
    doc = _build(source)

    assert doc.nodes == [
        Preformatted(text="  x = {1}"),
        Blockquote(text="Quoted words."),
        Blockquote(text="Longer quote."),
        Acknowledgements(text="Thanks to everyone."),
    ]


def test_figure_extraction_and_numbering() -> None:
    source = "\n".join(
        [
            "\\begin{figure}[t]",
            "  \\centering",
            "  \\includegraphics[width=\\linewidth]{figures/overview}",
            "  \\caption{System \\emph{overview}.}",
            "  \\label{fig:overview}",
            "\\end{figure}",
            "\\begin{figure*}",
            "  \\includegraphics{plot.png}",
            "\\end{figure*}",
        ]
    )
    doc = _build(source)

    assert doc.nodes == [
        FigureBlock(caption="System \\emph{overview}.", graphics="figures/overview", label="fig:overview", number=1),
        FigureBlock(caption="", graphics="plot.png", label=None, number=2),
    ]
    assert doc.labels == {"fig:overview": "1"}


def test_figure_with_broken_caption_is_fatal() -> None:
    with pytest.raises(TeXSyntaxError):
        _build("\\begin{figure}\n\\caption\n\\end{figure}")


def test_table_rows() -> None:
    source = "\n".join(
        [
            "\\begin{table}",
            "\\caption{Results}",
            "\\label{tab:results}",
            "\\begin{tabular}{lr}",
            "\\toprule",
            "Method & Score \\\\ \\midrule",
            "Ours & 0.9 \\\\",
            "R\\&D & 0.5 \\\\",
            "\\bottomrule",
            "\\end{tabular}",
            "\\end{table}",
        ]
    )
    doc = _build(source)

    assert doc.nodes == [
        TableBlock(
            rows=[["Method", "Score"], ["Ours", "0.9"], ["R\\&D", "0.5"]],
            caption="Results",
            label="tab:results",
            number=1,
        )
    ]
    assert doc.labels == {"tab:results": "1"}


def test_inline_bibliography_merges_into_mapping() -> None:
    file_entry = BibliographyEntry(key="doe", fields={"title": "From file"})
    other = BibliographyEntry(key="roe", fields={"title": "Other"})
    source = "\n".join(
        [
            "\\begin{thebibliography}{9}",
            "\\bibitem{doe} J. Doe.",
            "A book, 1999.",
            "",
            "ignored trailing text",
            "\\bibitem[Smith]{smith}",
            "  A. Smith. Notes.",
            "\\end{thebibliography}",
        ]
    )
    doc = _build(source, {"doe": file_entry, "roe": other})

    assert doc.nodes == []
    assert doc.bibliography["roe"] is other
    assert doc.bibliography["doe"].inline
    assert doc.bibliography["doe"].text == "J. Doe.\nA book, 1999."
    assert doc.bibliography["smith"].text == "A. Smith. Notes."


def test_dropped_blocks_still_break_paragraphs() -> None:
    source = "before\n\\iffalse\nhidden\n\\fi\nafter\n\\begin{CCSXML}\n<ccs/>\n\\end{CCSXML}"
    doc = _build(source)

    assert doc.nodes == [Paragraph(text="before"), Paragraph(text="after")]


def test_comments_inside_blocks_are_ignored() -> None:
    source = "\n".join(
        [
            "\\begin{figure}",
            "% \\includegraphics{old.png}",
            "\\includegraphics{new.png} % current version",
            "\\caption{Kept at 50\\% size}",
            "\\end{figure}",
            "\\begin{table}",
            "\\begin{tabular}{ll}",
            "a & b \\\\ % first row",
            "% c & d \\\\",
            "e & f \\\\",
            "\\end{tabular}",
            "\\end{table}",
            "\\begin{itemize}",
            "\\item One % aside",
            "% \\item Hidden",
            "\\item Two",
            "\\end{itemize}",
        ]
    )
    doc = _build(source)

    assert doc.nodes == [
        FigureBlock(caption="Kept at 50\\% size", graphics="new.png", label=None, number=1),
        TableBlock(rows=[["a", "b"], ["e", "f"]], caption="", label=None, number=1),
        UnorderedList(items=["One", "Two"]),
    ]


def test_commented_bibitem_does_not_split_entry() -> None:
    source = "\n".join(
        [
            "\\begin{thebibliography}{9}",
            "\\bibitem{doe} J. Doe. % check year",
            "% \\bibitem{old} Removed entry.",
            "A book, 1999.",
            "\\end{thebibliography}",
        ]
    )
    doc = _build(source)

    assert list(doc.bibliography) == ["doe"]
    assert doc.bibliography["doe"].text == "J. Doe.\nA book, 1999."


def test_label_inside_caption_is_removed_from_caption() -> None:
    doc = _build("\\begin{figure}\n\\includegraphics{a.png}\n\\caption{Overview\\label{fig:x}}\n\\end{figure}")

    assert doc.nodes == [FigureBlock(caption="Overview", graphics="a.png", label="fig:x", number=1)]
    assert doc.labels == {"fig:x": "1"}
