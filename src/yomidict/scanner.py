"""Streaming readers for dictionary shard files.

A shard is a JSON array of word arrays::

    [
      ["猫", "ねこ", "n", "", 0, ["cat", "puss"], 100, ""],
      ...
    ]

Only array positions matter: index 0 is the written form, index 1 the
reading, and the strings of a nested array are the definitions. Other
positions are ignored so richer shard layouts still load.

Files are read through :mod:`ijson`, so memory use stays at one record no
matter how large the shard is.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import ijson

from yomidict.exceptions import ShardReadError
from yomidict.models import WordRecord

logger = logging.getLogger(__name__)

# Array nesting levels inside a shard.
RECORD_DEPTH = 1
FIELD_DEPTH = 2
DEFINITION_DEPTH = 3

ORIGINAL_FORM_INDEX = 0
READING_INDEX = 1


class TokenKind(str, Enum):
    """Kinds of tokens produced by :func:`iter_tokens`."""

    ARRAY_OPEN = "array_open"
    ARRAY_CLOSE = "array_close"
    OBJECT_OPEN = "object_open"
    OBJECT_CLOSE = "object_close"
    SCALAR = "scalar"


@dataclass(frozen=True, slots=True)
class Token:
    """One JSON token.

    ``index`` is the position of the value inside its enclosing array, or
    ``None`` when the value sits inside an object (or is a closing token).
    """

    kind: TokenKind
    index: int | None = None
    value: Any = None


def iter_tokens(path: str | Path) -> Iterator[Token]:
    """Lazily tokenize the JSON file at *path*."""
    path = Path(path)
    try:
        with open(path, "rb") as f:
            # Next free position of each open container; None for objects.
            positions: list[int | None] = []
            for _prefix, event, value in ijson.parse(f):
                if event == "end_array":
                    positions.pop()
                    yield Token(TokenKind.ARRAY_CLOSE)
                    continue
                if event == "end_map":
                    positions.pop()
                    yield Token(TokenKind.OBJECT_CLOSE)
                    continue
                if event == "map_key":
                    continue

                index = None
                if positions and positions[-1] is not None:
                    index = positions[-1]
                    positions[-1] = index + 1

                if event == "start_array":
                    positions.append(0)
                    yield Token(TokenKind.ARRAY_OPEN, index)
                elif event == "start_map":
                    positions.append(None)
                    yield Token(TokenKind.OBJECT_OPEN, index)
                else:
                    yield Token(TokenKind.SCALAR, index, value)
    except OSError as e:
        raise ShardReadError(f"Cannot read shard {path.name}: {e}") from e
    except ijson.JSONError as e:
        raise ShardReadError(f"Invalid JSON in shard {path.name}: {e}") from e


def scan_words(
    path: str | Path,
    dictionary_id: str | None = None,
) -> Iterator[WordRecord]:
    """Yield the well-formed word records of one shard, in file order.

    A record needs a written form, a reading and at least one definition;
    anything less is dropped without error.
    """
    depth = 0
    original_form: str | None = None
    reading: str | None = None
    definitions: list[str] = []
    discarded = 0

    for token in iter_tokens(path):
        if token.kind is TokenKind.ARRAY_OPEN:
            depth += 1
        elif token.kind is TokenKind.ARRAY_CLOSE:
            depth -= 1
            if depth == RECORD_DEPTH:
                if original_form and reading and definitions:
                    yield WordRecord(
                        original_form=original_form,
                        reading=reading,
                        definitions=tuple(definitions),
                        dictionary_id=dictionary_id,
                    )
                else:
                    discarded += 1
                original_form, reading, definitions = None, None, []
        elif (
            token.kind is TokenKind.SCALAR
            and token.index is not None
            and isinstance(token.value, str)
        ):
            if depth == DEFINITION_DEPTH:
                definitions.append(token.value)
            elif depth == FIELD_DEPTH:
                if token.index == ORIGINAL_FORM_INDEX:
                    original_form = token.value
                elif token.index == READING_INDEX:
                    reading = token.value

    if discarded:
        logger.debug(f"Discarded {discarded} incomplete record(s) in {Path(path).name}")


def count_words(path: str | Path) -> int:
    """Count the record arrays of one shard without building records."""
    depth = 0
    count = 0
    for token in iter_tokens(path):
        if token.kind is TokenKind.ARRAY_OPEN:
            depth += 1
        elif token.kind is TokenKind.ARRAY_CLOSE:
            depth -= 1
            if depth == RECORD_DEPTH:
                count += 1
    return count
