from __future__ import annotations

import json
from pathlib import Path

import pytest

from paperpage.metadata import Author, MetadataError, load_metadata, metadata_from_dict


def test_load_metadata(tmp_path: Path) -> None:
    path = tmp_path / "metadata.json"
    path.write_text(
        json.dumps(
            {
                "title": "Evaluating Games",
                "authors": ["Max Kreminski", {"name": "Ben Samuel", "link": "https://ben.example"}],
                "venue": "AIIDE 2019",
                "year": 2019,
                "month": "10",
                "root": "main.tex",
                "citation": {"type": "inproceedings", "key": "Retellings", "fields": {"year": 2019}},
            }
        ),
        encoding="utf-8",
    )

    metadata = load_metadata(path)

    assert metadata.title == "Evaluating Games"
    assert metadata.authors == [Author("Max Kreminski"), Author("Ben Samuel", "https://ben.example")]
    assert metadata.year == "2019"
    assert metadata.root == "main.tex"
    assert metadata.pdf is None
    assert metadata.citation is not None
    assert metadata.citation.key == "Retellings"
    assert metadata.citation.fields == {"year": "2019"}


def test_empty_metadata() -> None:
    metadata = metadata_from_dict({})

    assert metadata.authors == []
    assert metadata.citation is None


@pytest.mark.parametrize(
    "raw",
    [
        [],
        {"title": ["not", "a", "string"]},
        {"authors": [{"link": "https://no-name.example"}]},
        {"citation": {"fields": {}}},
        {"citation": {"key": "k", "fields": []}},
    ],
)
def test_invalid_metadata(raw: object) -> None:
    with pytest.raises(MetadataError):
        metadata_from_dict(raw)


def test_unreadable_metadata(tmp_path: Path) -> None:
    path = tmp_path / "metadata.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(MetadataError):
        load_metadata(path)
