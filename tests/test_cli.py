"""End-to-end tests through ``convert_paper`` and the CLI."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from paperpage.cli import main
from paperpage.convert import convert_paper
from paperpage.metadata import PaperMetadata

_MAIN_TEX = r"""\documentclass{acmart}
\title{Evaluating Games Through Retellings}
\begin{document}
\maketitle

\section{Introduction}
Players tell stories~\cite{ryan2015} about play\footnote{See \url{https://example.org}.}.
Retellings are useful \cite[p. 4]{ryan2015}.

\input{method}

\begin{acks}
Thanks to \textbf{everyone}.
\end{acks}

\bibliographystyle{plain}
\bibliography{refs}
\end{document}
"""

_METHOD_TEX = r"""\section{Method}
\begin{itemize}
  \item First step
  \item Second step
\end{itemize}
"""

_REFS_BIB = r"""@inproceedings{ryan2015,
  title={Open-ended Proceduralism},
  author={Ryan, James},
  booktitle={Proceedings of a Workshop},
  year={2015}
}

@misc{uncited,
  title={Not Cited Anywhere}
}
"""


def _write_paper(root: Path) -> Path:
    (root / "paper.tex").write_text(_MAIN_TEX, encoding="utf-8")
    (root / "method.tex").write_text(_METHOD_TEX, encoding="utf-8")
    (root / "refs.bib").write_text(_REFS_BIB, encoding="utf-8")
    return root / "paper.tex"


def test_convert_paper_end_to_end(tmp_path: Path) -> None:
    _write_paper(tmp_path)

    result = convert_paper(tmp_path, PaperMetadata(year="2019"))

    html = result.html
    assert result.root_path == tmp_path / "paper.tex"
    assert [r.ok for r in result.bibliography.results] == [True]
    assert "<h1>Evaluating Games Through Retellings</h1>" in html
    assert '<h2 id="introduction">Introduction</h2>' in html
    assert '<h2 id="method">Method</h2>' in html
    assert 'stories&nbsp;[<a href="#ref_ryan2015">1</a>]' in html
    assert '[<a href="#ref_ryan2015">1</a>, p. 4]' in html
    assert "<li>First step</li>" in html
    assert "<h4>Acknowledgements</h4>\n<p>Thanks to <strong>everyone</strong>.</p>" in html
    assert "[1] James Ryan. 2015." in html
    assert "Not Cited Anywhere" not in html
    assert '<li id="fn_1">See <a href="https://example.org">https://example.org</a>.' in html
    assert "\\" not in html.split('<h2 id="cite">')[0]


def test_cli_writes_output_and_reports_skipped_bibliography(tmp_path: Path) -> None:
    paper = _write_paper(tmp_path)
    (tmp_path / "metadata.json").write_text(
        json.dumps({"title": "From Metadata", "authors": [{"name": "Ann Lee", "link": "https://ann.example"}]}),
        encoding="utf-8",
    )
    output = tmp_path / "out" / "index.html"

    runner = CliRunner()
    result = runner.invoke(main, [str(paper), "-o", str(output), "--bib", str(tmp_path / "missing.bib")])

    assert result.exit_code == 0, result.output
    assert "Rendered:" in result.output
    assert "missing.bib" in result.output
    html = output.read_text(encoding="utf-8")
    assert "<h1>From Metadata</h1>" in html
    assert '<a href="https://ann.example">Ann Lee</a>' in html


def test_cli_reports_syntax_errors(tmp_path: Path) -> None:
    paper = tmp_path / "broken.tex"
    paper.write_text("\\begin{itemize}\n\\item never closed\n", encoding="utf-8")

    result = CliRunner().invoke(main, [str(paper), "-o", str(tmp_path / "index.html")])

    assert result.exit_code != 0
    assert "line 1" in result.output
    assert not (tmp_path / "index.html").exists()


def test_cli_rejects_invalid_metadata(tmp_path: Path) -> None:
    paper = _write_paper(tmp_path)
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"authors": "not a list"}), encoding="utf-8")

    result = CliRunner().invoke(main, [str(paper), "--metadata", str(bad), "-o", str(tmp_path / "x.html")])

    assert result.exit_code != 0
    assert "authors" in result.output
