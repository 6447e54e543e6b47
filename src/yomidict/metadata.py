"""Decoding of the dictionary ``index.json`` metadata document."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from yomidict.exceptions import MalformedMetadataError, MissingIndexError
from yomidict.models import DictionaryMetadata

INDEX_FILE_NAME = "index.json"


def is_index_name(name: str) -> bool:
    """True if an archive member or file name is the metadata document."""
    return INDEX_FILE_NAME in Path(name).name


def find_index_name(names: Iterable[str]) -> str:
    """Pick the single metadata document out of *names*."""
    candidates = [n for n in names if is_index_name(n)]
    if not candidates:
        raise MissingIndexError(f"No {INDEX_FILE_NAME} found in archive")
    if len(candidates) > 1:
        raise MalformedMetadataError(
            f"Archive contains {len(candidates)} metadata documents: "
            + ", ".join(sorted(candidates))
        )
    return candidates[0]


def split_archive_files(directory: str | Path) -> tuple[Path, list[Path]]:
    """Split an extracted archive into its index file and its shard files.

    Only top-level regular files are considered; shards come back sorted by
    name.
    """
    files = sorted(p for p in Path(directory).iterdir() if p.is_file())
    index_name = find_index_name(p.name for p in files)
    index_path = Path(directory) / index_name
    shards = [p for p in files if p.name != index_name]
    return index_path, shards


def _optional_string(doc: dict, key: str) -> str | None:
    value = doc.get(key)
    if value is not None and not isinstance(value, str):
        raise MalformedMetadataError(f"Field {key!r} must be a string")
    return value


def decode_metadata(data: bytes | str) -> DictionaryMetadata:
    """Decode a metadata document into a new dictionary with no words.

    Only ``title`` (required), ``revision`` and ``description`` are read;
    every other field is ignored.
    """
    try:
        doc = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedMetadataError(f"Invalid metadata JSON: {e}") from e

    if not isinstance(doc, dict):
        raise MalformedMetadataError("Metadata root must be an object")

    title = doc.get("title")
    if title is None:
        raise MalformedMetadataError("Missing required field: 'title'")
    if not isinstance(title, str):
        raise MalformedMetadataError("Field 'title' must be a string")

    return DictionaryMetadata(
        title=title,
        revision=_optional_string(doc, "revision"),
        description=_optional_string(doc, "description"),
        word_count=0,
    )
