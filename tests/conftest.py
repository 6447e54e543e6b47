"""Shared test fixtures for yomidict."""

import json
import zipfile

import pytest

from yomidict import DictionaryManager, DictionaryStore


def _word(original, reading, *definitions):
    """A shard record laid out like a real term bank entry."""
    return [original, reading, "n", "", 0, list(definitions), 1, ""]


@pytest.fixture
def store():
    """Create an in-memory store for testing."""
    with DictionaryStore(":memory:") as st:
        yield st


@pytest.fixture
def cache_dir(tmp_path):
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def make_archive(tmp_path):
    """Factory writing a dictionary zip archive.

    ``index`` is dumped to ``index.json`` unless it is None; each shard value
    is dumped as JSON unless it is already a string.
    """
    counter = {"n": 0}

    def _make(index=None, shards=None, name=None):
        counter["n"] += 1
        path = tmp_path / (name or f"dictionary{counter['n']}.zip")
        with zipfile.ZipFile(path, "w") as zf:
            if index is not None:
                zf.writestr("index.json", json.dumps(index, ensure_ascii=False))
            for shard_name, content in (shards or {}).items():
                if not isinstance(content, str):
                    content = json.dumps(content, ensure_ascii=False)
                zf.writestr(shard_name, content)
        return path

    return _make


@pytest.fixture
def jmdict_archive(make_archive):
    """A small two-shard dictionary with three words."""
    return make_archive(
        {"title": "JMdict", "revision": "1.0", "description": "Japanese-English"},
        {
            "term_bank_1.json": [
                _word("猫", "ねこ", "cat"),
                _word("犬", "いぬ", "dog", "hound"),
            ],
            "term_bank_2.json": [_word("鳥", "とり", "bird")],
        },
    )


@pytest.fixture
def manager(tmp_path, cache_dir):
    """A started manager on a temporary database."""
    with DictionaryManager(tmp_path / "yomidict.db", cache_dir) as mgr:
        mgr.start()
        yield mgr


@pytest.fixture
def word():
    """Build a shard record: ``word("猫", "ねこ", "cat")``."""
    return _word
