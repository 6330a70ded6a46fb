"""TeX source flattening and the line-oriented tokenizer."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from .base import Empty, MultilineBlock, OneLineCommand, RawNode, SectionHeader, Subtitle, Text, Title

logger = logging.getLogger(__name__)

_SECTION_DEPTHS = {
    "section": 1,
    "subsection": 2,
    "subsubsection": 3,
}

BLOCK_ENVIRONMENTS = (
    "acks",
    "CCSXML",
    "enumerate",
    "figure",
    "itemize",
    "quotation",
    "quote",
    "verbatim",
    "table",
    "thebibliography",
)

_ENV_BEGIN = re.compile(r"^\\begin\{(" + "|".join(BLOCK_ENVIRONMENTS) + r")(\*?)\}")
_UNCLOSED_BRACE = re.compile(r"^\\.*\{[^}]*$")
_COMMAND_NAME = re.compile(r"^\\([A-Za-z@]+\*?)")
_TITLE = re.compile(r"^\\title\{(.*)\}")
_SUBTITLE = re.compile(r"^\\subtitle\{(.*)\}")
_SECTION = re.compile(r"^\\(section|subsection|subsubsection)\*?(?:\[[^\]]*\])?\{(.*)\}")
_INLINE_SPAN = re.compile(r"^\\(citep|citet|cite|emph|textbf|textit|texttt|url|href|ref|footnote|mbox)\b")
_COMMENT = re.compile(r"(?<!\\)%")
_INPUT = re.compile(r"^([^%\n]*?)\\(?:input|include)\{([^{}]+)\}(.*)$", flags=re.MULTILINE)
_BIBLIOGRAPHY = re.compile(r"^[^%\n]*?\\(bibliography|addbibresource)(?:\[[^\]]*\])?\{([^{}]+)\}", flags=re.MULTILINE)

_DISCARD_BEGIN = "\\iffalse"
_DISCARD_END = "\\fi"
_BRACE_END = "}"


class TeXSyntaxError(ValueError):
    """Raised when a line that must match a structural pattern does not."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Source flattening
# ---------------------------------------------------------------------------


def flatten_source(root_path: Path) -> str:
    """Read the root TeX file and inline every ``\\input``/``\\include``."""
    root_path = Path(root_path)
    text = root_path.read_text(encoding="utf-8", errors="ignore")
    return resolve_inputs(text, root_path.parent, _seen={root_path.resolve()})


def resolve_inputs(text: str, base_dir: Path, *, _seen: set[Path] | None = None) -> str:
    seen = set() if _seen is None else _seen

    def replace(match: re.Match[str]) -> str:
        name = match.group(2).strip()
        path = _resolve_tex_path(base_dir, name)
        if path is None:
            logger.warning("Included file not found: %s", name)
            return match.group(1) + match.group(3)
        resolved = path.resolve()
        if resolved in seen:
            logger.warning("Skipping recursive include of %s", path)
            return match.group(1) + match.group(3)
        included = path.read_text(encoding="utf-8", errors="ignore")
        logger.debug("Inlining %s", path)
        body = resolve_inputs(included, base_dir, _seen=seen | {resolved})
        parts = [part for part in (match.group(1), body.rstrip("\n"), match.group(3)) if part.strip()]
        return "\n".join(parts)

    return _INPUT.sub(replace, text)


def _resolve_tex_path(base_dir: Path, name: str) -> Path | None:
    candidate = base_dir / name
    if not candidate.suffix:
        candidate = candidate.with_suffix(".tex")
    if candidate.is_file():
        return candidate
    return None


def detect_main_tex(root: Path, override: str | None = None) -> Path:
    """Pick the root TeX file inside a source directory."""
    if override:
        path = root / override
        if not path.is_file():
            raise FileNotFoundError(f"Root file not found: {path}")
        return path

    tex_files = sorted(root.rglob("*.tex"))
    if not tex_files:
        raise FileNotFoundError(f"No .tex file found in {root}")

    named_main = [p for p in tex_files if p.name.lower() in {"main.tex", "paper.tex"}]
    if named_main:
        return named_main[0]

    best_score = -1
    best_path = tex_files[0]
    for path in tex_files:
        text = path.read_text(encoding="utf-8", errors="ignore")
        score = text.count("\\begin{document}") * 10 + text.count("\\section")
        if score > best_score:
            best_score = score
            best_path = path
    return best_path


def find_bibliography_sources(text: str, base_dir: Path) -> list[Path]:
    """Return the .bib files named by bibliography directives, in order of appearance."""
    sources: list[Path] = []
    for match in _BIBLIOGRAPHY.finditer(text):
        for name in match.group(2).split(","):
            name = name.strip()
            if not name:
                continue
            path = base_dir / name
            if path.suffix != ".bib":
                path = path.with_name(path.name + ".bib")
            if path not in sources:
                sources.append(path)
    return sources


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _OpenBlock:
    kind: str
    end: str
    line: int
    lines: list[str] = field(default_factory=list)
    discard: bool = False


class TeXTokenizer:
    """Split flattened TeX source into raw nodes.

    The tokenizer is either idle or inside a multi-line block. While inside
    a block, lines are buffered verbatim until one equals the block's end
    marker; nothing inside a block is tokenized, so environments never nest.
    """

    def __init__(self) -> None:
        self._nodes: list[RawNode] = []
        self._block: _OpenBlock | None = None

    def tokenize(self, source: str) -> list[RawNode]:
        self._nodes = []
        self._block = None

        for lineno, line in enumerate(source.split("\n"), start=1):
            line = line.rstrip("\r")
            if self._block is not None:
                self._feed_block(line)
            else:
                self._feed_idle(line, lineno)

        if self._block is not None:
            raise TeXSyntaxError(
                f"unterminated {self._block.kind} block (expected {self._block.end!r})",
                self._block.line,
            )
        return self._nodes

    def _feed_block(self, line: str) -> None:
        block = self._block
        assert block is not None
        if line.rstrip() == block.end:
            self._nodes.append(MultilineBlock(line=block.line, kind=block.kind, lines=block.lines))
            self._block = None
        elif not block.discard:
            block.lines.append(line)

    def _feed_idle(self, line: str, lineno: int) -> None:
        if not line.strip():
            self._nodes.append(Empty(line=lineno, text=line))
            return

        if line.startswith(_DISCARD_BEGIN):
            self._block = _OpenBlock(kind="iffalse", end=_DISCARD_END, line=lineno, discard=True)
            return

        env = _ENV_BEGIN.match(line)
        if env:
            kind = env.group(1) + env.group(2)
            self._block = _OpenBlock(kind=kind, end=f"\\end{{{kind}}}", line=lineno)
            return

        if _UNCLOSED_BRACE.match(line):
            command = _COMMAND_NAME.match(line)
            if not command:
                raise TeXSyntaxError(f"cannot read command name from {line!r}", lineno)
            self._block = _OpenBlock(kind=command.group(1), end=_BRACE_END, line=lineno, lines=[line])
            return

        if line.startswith("\\"):
            node = _match_structural(line, lineno)
            if node is not None:
                self._nodes.append(node)
                return
            if not _INLINE_SPAN.match(line):
                self._nodes.append(OneLineCommand(line=lineno, text=line))
                return

        text = strip_comment(line)
        if text.strip():
            self._nodes.append(Text(line=lineno, text=text))
        else:
            self._nodes.append(Empty(line=lineno, text=text))


def tokenize(source: str) -> list[RawNode]:
    return TeXTokenizer().tokenize(source)


def strip_comment(line: str) -> str:
    """Drop everything from the first unescaped ``%`` on."""
    return _COMMENT.split(line, maxsplit=1)[0]


def _match_structural(line: str, lineno: int) -> RawNode | None:
    match = _TITLE.match(line)
    if match:
        return Title(line=lineno, title=match.group(1))

    match = _SUBTITLE.match(line)
    if match:
        return Subtitle(line=lineno, subtitle=match.group(1))

    match = _SECTION.match(line)
    if match:
        return SectionHeader(line=lineno, depth=_SECTION_DEPTHS[match.group(1)], header=match.group(2))

    return None


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def read_balanced_braces(text: str, brace_start: int) -> tuple[str, int]:
    """Read a ``{...}`` group starting at ``brace_start``.

    Returns the group's content (without the outer braces) and the index just
    past the closing brace. An unterminated group returns everything to the
    end of the text.
    """
    if brace_start >= len(text) or text[brace_start] != "{":
        return "", brace_start
    depth = 0
    chars = []
    i = brace_start
    while i < len(text):
        ch = text[i]
        if ch == "{" and (i == 0 or text[i - 1] != "\\"):
            depth += 1
            if depth > 1:
                chars.append(ch)
        elif ch == "}" and (i == 0 or text[i - 1] != "\\"):
            depth -= 1
            if depth == 0:
                return "".join(chars), i + 1
            chars.append(ch)
        else:
            if depth >= 1:
                chars.append(ch)
        i += 1
    return "".join(chars), i


def read_command_argument(text: str, command: str, line: int | None = None) -> str | None:
    """Return the braced argument of the first ``\\command`` in ``text``.

    ``None`` means the command is absent. A command present without a braced
    argument is a syntax error.
    """
    match = re.search(rf"\\{command}(?![A-Za-z])\*?(?:\[[^\]]*\])?", text)
    if not match:
        return None
    brace = match.end()
    while brace < len(text) and text[brace] in " \t\n":
        brace += 1
    if brace >= len(text) or text[brace] != "{":
        raise TeXSyntaxError(f"\\{command} without a braced argument", line)
    value, _end = read_balanced_braces(text, brace)
    return value
