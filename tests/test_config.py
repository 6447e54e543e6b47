"""Tests for YAML configuration loading."""

from pathlib import Path

import pytest

from yomidict import ConfigError, ImporterConfig, load_config
from yomidict.config import DEFAULT_CACHE_DIR, DEFAULT_DATABASE_PATH


class TestDefaults:

    def test_none(self):
        config = load_config(None)
        assert config == ImporterConfig()
        assert config.database == DEFAULT_DATABASE_PATH
        assert config.cache_dir == DEFAULT_CACHE_DIR
        assert config.batch_size == 100
        assert config.max_workers == 4
        assert config.progress_precision == 4

    def test_empty_yaml(self):
        assert load_config("") == ImporterConfig()


class TestLoadConfig:

    def test_from_dict(self):
        config = load_config({"batch_size": 250, "max_workers": 2})
        assert config.batch_size == 250
        assert config.max_workers == 2
        assert config.search_limit == 50

    def test_from_yaml_string(self):
        config = load_config("batch_size: 10\nsearch_limit: 5\n")
        assert config.batch_size == 10
        assert config.search_limit == 5

    def test_from_file_resolves_relative_paths(self, tmp_path):
        path = tmp_path / "yomidict.yaml"
        path.write_text(
            "database: data/yomidict.db\n"
            "cache_dir: /var/cache/yomidict\n"
            "max_workers: 8\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.database == tmp_path / "data" / "yomidict.db"
        assert config.cache_dir == Path("/var/cache/yomidict")
        assert config.max_workers == 8

    def test_from_file_path_string(self, tmp_path):
        path = tmp_path / "settings.yml"
        path.write_text("batch_size: 3\n", encoding="utf-8")
        assert load_config(str(path)).batch_size == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")


class TestValidation:

    def test_invalid_yaml(self):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config("batch_size: [1, 2\nmax_workers: 3\n")

    def test_root_must_be_mapping(self):
        with pytest.raises(ConfigError, match="mapping"):
            load_config("- batch_size\n- max_workers\n")

    def test_unknown_setting(self):
        with pytest.raises(ConfigError, match="colour"):
            load_config({"colour": "blue"})

    @pytest.mark.parametrize("value", [True, "100", 1.5, None])
    def test_batch_size_must_be_integer(self, value):
        with pytest.raises(ConfigError, match="batch_size"):
            load_config({"batch_size": value})

    def test_minimum(self):
        with pytest.raises(ConfigError, match="at least 1"):
            load_config({"max_workers": 0})

    def test_zero_precision_allowed(self):
        assert load_config({"progress_precision": 0}).progress_precision == 0

    def test_path_must_be_string(self):
        with pytest.raises(ConfigError, match="database"):
            load_config({"database": 42})
