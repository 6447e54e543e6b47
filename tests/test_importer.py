"""Tests for the import pipeline."""

import pytest

from yomidict import (
    DictionaryImport,
    DuplicateDictionaryError,
    EmptyDictionaryError,
    ExtractionError,
    ImportState,
    MalformedMetadataError,
    MissingIndexError,
    PersistenceError,
    ShardReadError,
    import_dictionary,
    sweep,
)
from yomidict import db
from yomidict.db import DictionaryStore


def _words_of(store, dictionary):
    return store.fetch(db.words_by_dictionary(dictionary.id))


class TestSingleWord:

    def test_one_word_archive(self, store, cache_dir, make_archive):
        archive = make_archive(
            {"title": "JMdict", "revision": "1.0"},
            {"term_bank_1.json": [["猫", "ねこ", "n", "", 0, ["cat"], 1, ""]]},
        )
        dictionary = import_dictionary(store, archive, cache_dir)

        assert dictionary.title == "JMdict"
        assert dictionary.revision == "1.0"
        assert dictionary.word_count == 1
        (word,) = store.fetch(db.all_words())
        assert word.original_form == "猫"
        assert word.reading == "ねこ"
        assert word.definitions == ("cat",)
        assert word.dictionary_id == dictionary.id
        (stored,) = store.fetch(db.all_dictionaries())
        assert stored == dictionary


class TestCounts:

    def test_count_pass_matches_import(self, store, cache_dir, jmdict_archive):
        job = DictionaryImport(store, jmdict_archive, cache_dir)
        dictionary = job.run()
        assert job.total == 3
        assert store.fetch_count(db.all_words()) == job.total
        assert dictionary.word_count == len(_words_of(store, dictionary))

    def test_malformed_slots_skipped(self, store, cache_dir, make_archive, word):
        archive = make_archive(
            {"title": "JMdict"},
            {"term_bank_1.json": [["猫"], word("犬", "いぬ", "dog"), ["鳥", "とり", "n"]]},
        )
        job = DictionaryImport(store, archive, cache_dir)
        dictionary = job.run()
        assert job.state is ImportState.DONE
        assert job.total == 3
        assert dictionary.word_count == 1
        assert [w.original_form for w in _words_of(store, dictionary)] == ["犬"]

    def test_many_shards(self, store, cache_dir, make_archive, word):
        shards = {
            f"term_bank_{n}.json": [
                word(f"語{n}-{i}", f"ご{n}-{i}", f"word {n} {i}") for i in range(n * 37)
            ]
            for n in range(1, 7)
        }
        archive = make_archive({"title": "Big"}, shards)
        dictionary = import_dictionary(store, archive, cache_dir, max_workers=3)
        expected = sum(n * 37 for n in range(1, 7))
        assert dictionary.word_count == expected
        assert store.fetch_count(db.words_by_dictionary(dictionary.id)) == expected


class TestProgress:

    def test_two_shards_batched(self, store, cache_dir, make_archive, word, monkeypatch):
        archive = make_archive(
            {"title": "JMdict"},
            {
                "term_bank_1.json": [word(f"a{i}", f"a{i}", "x") for i in range(120)],
                "term_bank_2.json": [word(f"b{i}", f"b{i}", "y") for i in range(80)],
            },
        )
        word_batches = []
        original_write = DictionaryStore._write

        def recording_write(self, records):
            words = [r for r in records if not hasattr(r, "title")]
            if words:
                word_batches.append(len(words))
            return original_write(self, records)

        monkeypatch.setattr(DictionaryStore, "_write", recording_write)

        reported = []
        job = DictionaryImport(
            store, archive, cache_dir, batch_size=100, on_progress=reported.append
        )
        job.run()

        assert sorted(word_batches) == [20, 80, 100]
        assert job.progress.saved == job.progress.total == 200
        assert reported.count(1.0) == 1
        assert reported[-1] == 1.0

    def test_percentages_non_decreasing_without_repeats(self, store, cache_dir, make_archive, word):
        shards = {
            f"term_bank_{n}.json": [word(f"{n}-{i}", f"{n}-{i}", "x") for i in range(55)]
            for n in range(1, 6)
        }
        archive = make_archive({"title": "JMdict"}, shards)
        reported = []
        import_dictionary(
            store, archive, cache_dir, batch_size=10, on_progress=reported.append
        )
        assert reported == sorted(reported)
        assert all(a != b for a, b in zip(reported, reported[1:]))
        assert all(0.0 <= p <= 1.0 for p in reported)
        assert reported[-1] == 1.0

    def test_completion_called_once(self, store, cache_dir, jmdict_archive):
        calls = []
        import_dictionary(store, jmdict_archive, cache_dir, on_complete=lambda: calls.append(1))
        assert calls == [1]


class TestDuplicate:

    def test_second_import_rejected(self, store, cache_dir, jmdict_archive):
        import_dictionary(store, jmdict_archive, cache_dir)
        dictionaries = store.fetch_count(db.all_dictionaries())
        words = store.fetch_count(db.all_words())
        cache_entries = len(list(cache_dir.iterdir()))

        job = DictionaryImport(store, jmdict_archive, cache_dir)
        with pytest.raises(DuplicateDictionaryError) as info:
            job.run()

        assert info.value.user_message == "This dictionary is already imported."
        assert job.state is ImportState.FAILED
        assert store.fetch_count(db.all_dictionaries()) == dictionaries
        assert store.fetch_count(db.all_words()) == words
        assert len(list(cache_dir.iterdir())) == cache_entries

    def test_missing_revision_matches_missing_revision(self, store, cache_dir, make_archive, word):
        shards = {"term_bank_1.json": [word("猫", "ねこ", "cat")]}
        import_dictionary(store, make_archive({"title": "JMdict"}, shards), cache_dir)
        with pytest.raises(DuplicateDictionaryError):
            import_dictionary(store, make_archive({"title": "JMdict"}, shards), cache_dir)

    def test_failed_import_does_not_block_retry(self, store, cache_dir, make_archive, word):
        broken = make_archive({"title": "JMdict", "revision": "1.0"}, {"term_bank_1.json": "[[["})
        with pytest.raises(ShardReadError):
            import_dictionary(store, broken, cache_dir)

        fixed = make_archive(
            {"title": "JMdict", "revision": "1.0"},
            {"term_bank_1.json": [word("猫", "ねこ", "cat")]},
        )
        dictionary = import_dictionary(store, fixed, cache_dir)
        assert dictionary.word_count == 1
        assert store.fetch(db.complete_dictionaries()) == [dictionary]

    def test_new_revision_is_not_duplicate(self, store, cache_dir, make_archive, word):
        shards = {"term_bank_1.json": [word("猫", "ねこ", "cat")]}
        import_dictionary(store, make_archive({"title": "JMdict", "revision": "1"}, shards), cache_dir)
        import_dictionary(store, make_archive({"title": "JMdict", "revision": "2"}, shards), cache_dir)
        assert store.fetch_count(db.all_dictionaries()) == 2


class TestFailures:

    def test_missing_index(self, store, cache_dir, make_archive, word):
        archive = make_archive(None, {"term_bank_1.json": [word("猫", "ねこ", "cat")]})
        job = DictionaryImport(store, archive, cache_dir)
        with pytest.raises(MissingIndexError):
            job.run()
        assert job.state is ImportState.FAILED
        assert store.fetch_count(db.all_dictionaries()) == 0
        assert list(cache_dir.iterdir()) == []

    def test_malformed_metadata(self, store, cache_dir, make_archive):
        archive = make_archive({"revision": "1.0"}, {"term_bank_1.json": []})
        with pytest.raises(MalformedMetadataError):
            import_dictionary(store, archive, cache_dir)
        assert store.fetch_count(db.all_dictionaries()) == 0

    def test_corrupt_archive(self, store, cache_dir, tmp_path):
        path = tmp_path / "broken.zip"
        path.write_bytes(b"not a zip")
        job = DictionaryImport(store, path, cache_dir)
        with pytest.raises(ExtractionError) as info:
            job.run()
        assert info.value.user_message == "Something went wrong."
        assert job.error is info.value

    def test_invalid_shard_leaves_orphan(self, store, cache_dir, make_archive, word):
        archive = make_archive(
            {"title": "JMdict"},
            {
                "term_bank_1.json": '[["猫", "ねこ", ["cat"]',
                "term_bank_2.json": [word("犬", "いぬ", "dog")],
            },
        )
        job = DictionaryImport(store, archive, cache_dir)
        with pytest.raises(ShardReadError):
            job.run()
        assert job.state is ImportState.FAILED
        (orphan,) = store.fetch(db.all_dictionaries())
        assert orphan.word_count == 0
        assert store.fetch(db.complete_dictionaries()) == []

    def test_commit_failure(self, store, cache_dir, jmdict_archive, monkeypatch):
        original_write = DictionaryStore._write

        def failing_write(self, records):
            if any(not hasattr(r, "title") for r in records):
                raise PersistenceError("disk full")
            return original_write(self, records)

        monkeypatch.setattr(DictionaryStore, "_write", failing_write)
        completed = []
        job = DictionaryImport(store, jmdict_archive, cache_dir, on_complete=lambda: completed.append(1))
        with pytest.raises(PersistenceError):
            job.run()
        assert job.state is ImportState.FAILED
        assert completed == []
        (orphan,) = store.fetch(db.all_dictionaries())
        assert orphan.word_count == 0

    def test_unexpected_task_error_wrapped(self, store, cache_dir, jmdict_archive, monkeypatch):
        def broken_scan(path, dictionary_id=None):
            raise RuntimeError("boom")
            yield  # pragma: no cover

        monkeypatch.setattr("yomidict.importer.scan_words", broken_scan)
        with pytest.raises(PersistenceError, match="boom") as info:
            import_dictionary(store, jmdict_archive, cache_dir)
        assert isinstance(info.value.__cause__, RuntimeError)

    def test_run_only_once(self, store, cache_dir, jmdict_archive):
        job = DictionaryImport(store, jmdict_archive, cache_dir)
        job.run()
        with pytest.raises(RuntimeError):
            job.run()


class TestStates:

    def test_state_sequence(self, store, cache_dir, jmdict_archive, monkeypatch):
        seen = []
        original = DictionaryImport._set_state

        def recording(self, state):
            seen.append(state)
            original(self, state)

        monkeypatch.setattr(DictionaryImport, "_set_state", recording)
        job = DictionaryImport(store, jmdict_archive, cache_dir)
        assert job.state is ImportState.IDLE
        job.run()
        assert seen == [
            ImportState.CHECKING_DUPLICATE,
            ImportState.EXTRACTING,
            ImportState.COUNTING,
            ImportState.IMPORTING,
            ImportState.FINALIZING,
            ImportState.DONE,
        ]

    def test_dictionary_visible_while_importing(self, store, cache_dir, jmdict_archive):
        seen = []

        def on_progress(_):
            seen.append(store.fetch_count(db.incomplete_dictionaries()))

        import_dictionary(store, jmdict_archive, cache_dir, on_progress=on_progress)
        assert seen and all(n == 1 for n in seen)
        assert store.fetch_count(db.incomplete_dictionaries()) == 0

    def test_empty_dictionary_fails(self, store, cache_dir, make_archive):
        archive = make_archive({"title": "Empty"}, {"term_bank_1.json": [["猫"]]})
        completed = []
        job = DictionaryImport(store, archive, cache_dir, on_complete=lambda: completed.append(1))
        with pytest.raises(EmptyDictionaryError) as info:
            job.run()
        assert info.value.user_message == "This dictionary contains no words."
        assert job.state is ImportState.FAILED
        assert completed == []
        assert store.fetch(db.complete_dictionaries()) == []

    def test_extracted_files_removed(self, store, cache_dir, jmdict_archive, make_archive):
        import_dictionary(store, jmdict_archive, cache_dir)
        assert list(cache_dir.iterdir()) == []

        broken = make_archive({"title": "Broken"}, {"term_bank_1.json": "[[["})
        with pytest.raises(ShardReadError):
            import_dictionary(store, broken, cache_dir)
        assert list(cache_dir.iterdir()) == []


class TestConcurrentSweep:

    def test_sweep_during_import_fails_the_import(
        self, store, cache_dir, tmp_path, make_archive, word
    ):
        archive = make_archive(
            {"title": "JMdict"},
            {"term_bank_1.json": [word(f"語{i}", f"ご{i}", "x") for i in range(250)]},
        )
        sweeps = []

        def sweep_once(_):
            if not sweeps:
                sweeps.append(sweep(store, tmp_path / "other-cache"))

        job = DictionaryImport(
            store, archive, cache_dir,
            batch_size=100, max_workers=1, on_progress=sweep_once,
        )
        with pytest.raises(PersistenceError, match="removed"):
            job.run()

        assert job.state is ImportState.FAILED
        assert sweeps[0].dictionaries_removed == 1
        assert sweeps[0].words_removed == 100
        assert store.fetch_count(db.all_dictionaries()) == 0

        leftover = sweep(store, cache_dir)
        assert leftover.words_removed == 150
        assert store.fetch_count(db.all_words()) == 0

    def test_word_count_matches_rows_after_finalize(self, store, cache_dir, jmdict_archive):
        dictionary = import_dictionary(store, jmdict_archive, cache_dir)
        (stored,) = store.fetch(db.all_dictionaries())
        assert stored.word_count == store.fetch_count(db.words_by_dictionary(dictionary.id))
