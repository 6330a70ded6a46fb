"""paperpage CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from paperpage.convert import convert_paper
from paperpage.metadata import MetadataError, PaperMetadata, load_metadata
from paperpage.parser.tex_parser import TeXSyntaxError

_DEFAULT_METADATA = "metadata.json"


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("input_path", type=click.Path(exists=True, path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), default=Path("index.html"), show_default=True, help="Output HTML path")
@click.option("--metadata", "metadata_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None, help="Publication metadata JSON")
@click.option("--bib", "bib_paths", type=click.Path(path_type=Path), multiple=True, help="Additional .bib file (repeatable)")
@click.option("--title", type=str, default=None, help="Override document title")
@click.option("--embed-images/--no-embed-images", default=True, show_default=True, help="Embed images as base64")
@click.option("--verbose", "-v", is_flag=True, help="Log progress and skipped inputs")
def main(
    input_path: Path,
    output: Path,
    metadata_path: Path | None,
    bib_paths: tuple[Path, ...],
    title: str | None,
    embed_images: bool,
    verbose: bool,
) -> None:
    """Convert a LaTeX paper and its bibliography into a self-contained HTML page."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    try:
        metadata = _load_metadata(input_path, metadata_path)
        result = convert_paper(
            input_path,
            metadata,
            extra_bibliographies=bib_paths,
            title_override=title,
            embed_images=embed_images,
        )
    except (TeXSyntaxError, MetadataError, FileNotFoundError) as exc:
        raise click.ClickException(str(exc)) from exc

    for failure in result.bibliography.failures:
        click.echo(f"Skipped bibliography: {failure.error}", err=True)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(result.html, encoding="utf-8")

    click.echo(f"Rendered: {output}")


def _load_metadata(input_path: Path, metadata_path: Path | None) -> PaperMetadata:
    if metadata_path is None:
        source_dir = input_path if input_path.is_dir() else input_path.parent
        candidate = source_dir / _DEFAULT_METADATA
        if not candidate.is_file():
            return PaperMetadata()
        metadata_path = candidate
    return load_metadata(metadata_path)


if __name__ == "__main__":  # pragma: no cover
    main()
