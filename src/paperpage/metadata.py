"""Publication metadata loaded from a JSON sidecar file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class MetadataError(ValueError):
    """Raised when a metadata file is unreadable or has the wrong shape."""


@dataclass(slots=True)
class Author:
    name: str
    link: str | None = None


@dataclass(slots=True)
class CitationRecord:
    entry_type: str
    key: str
    fields: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class PaperMetadata:
    title: str | None = None
    authors: list[Author] = field(default_factory=list)
    venue: str | None = None
    venue_link: str | None = None
    year: str | None = None
    month: str | None = None
    pdf: str | None = None
    root: str | None = None
    citation: CitationRecord | None = None


def load_metadata(path: Path) -> PaperMetadata:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise MetadataError(f"Cannot read metadata from {path}: {exc}") from exc
    return metadata_from_dict(raw)


def metadata_from_dict(raw: Any) -> PaperMetadata:
    if not isinstance(raw, dict):
        raise MetadataError("Metadata must be a JSON object")

    return PaperMetadata(
        title=_optional_str(raw, "title"),
        authors=[_parse_author(item) for item in _list(raw, "authors")],
        venue=_optional_str(raw, "venue"),
        venue_link=_optional_str(raw, "venue_link"),
        year=_optional_str(raw, "year"),
        month=_optional_str(raw, "month"),
        pdf=_optional_str(raw, "pdf"),
        root=_optional_str(raw, "root"),
        citation=_parse_citation(raw.get("citation")),
    )


def _optional_str(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return str(value)
    raise MetadataError(f"Metadata field {key!r} must be a string")


def _list(raw: dict[str, Any], key: str) -> list[Any]:
    value = raw.get(key, [])
    if not isinstance(value, list):
        raise MetadataError(f"Metadata field {key!r} must be a list")
    return value


def _parse_author(item: Any) -> Author:
    if isinstance(item, str):
        return Author(name=item)
    if isinstance(item, dict) and isinstance(item.get("name"), str):
        return Author(name=item["name"], link=_optional_str(item, "link"))
    raise MetadataError(f"Invalid author entry: {item!r}")


def _parse_citation(raw: Any) -> CitationRecord | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MetadataError("Metadata field 'citation' must be an object")
    fields = raw.get("fields", {})
    if not isinstance(fields, dict):
        raise MetadataError("Citation 'fields' must be an object")
    key = _optional_str(raw, "key")
    if not key:
        raise MetadataError("Citation record requires a 'key'")
    return CitationRecord(
        entry_type=_optional_str(raw, "type") or "inproceedings",
        key=key,
        fields={str(name): str(value) for name, value in fields.items()},
    )
