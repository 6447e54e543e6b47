"""
YAML configuration for the dictionary importer.

Example file::

    database: ~/.yomidict/yomidict.db
    cache_dir: ~/.yomidict/cache
    batch_size: 100
    max_workers: 4
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from yomidict.exceptions import ConfigError
from yomidict.importer import DEFAULT_MAX_WORKERS
from yomidict.persister import DEFAULT_BATCH_SIZE

DEFAULT_HOME = Path.home() / ".yomidict"
DEFAULT_DATABASE_PATH = DEFAULT_HOME / "yomidict.db"
DEFAULT_CACHE_DIR = DEFAULT_HOME / "cache"

_PATH_FIELDS = ("database", "cache_dir")
_INT_FIELDS = {
    "batch_size": 1,
    "max_workers": 1,
    "progress_precision": 0,
    "search_limit": 1,
}


@dataclass
class ImporterConfig:
    """Settings shared by the manager and the command line."""
    database: Path = DEFAULT_DATABASE_PATH
    cache_dir: Path = DEFAULT_CACHE_DIR
    batch_size: int = DEFAULT_BATCH_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    progress_precision: int = 4
    search_limit: int = 50


def load_config(
    source: Union[str, Path, Dict[str, Any], None] = None,
) -> ImporterConfig:
    """Load configuration from a YAML file, a YAML string, or a dictionary.

    Args:
        source: Path to a YAML file, YAML text, a parsed mapping, or None
            for the defaults

    Returns:
        ImporterConfig with every unspecified setting at its default

    Raises:
        ConfigError: If the YAML is invalid or a setting is unknown or bad
        FileNotFoundError: If the file does not exist
    """
    if source is None:
        return ImporterConfig()

    base_dir: Optional[Path] = None
    if isinstance(source, dict):
        data = source
    elif isinstance(source, Path) or (isinstance(source, str) and _is_file_path(source)):
        path = Path(source).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = _load_yaml(f)
        base_dir = path.parent
    else:
        data = _load_yaml(source)

    return _parse_config(data, base_dir)


def _is_file_path(s: str) -> bool:
    """Check if a string looks like a file path."""
    if "\n" in s:
        return False
    if "/" in s or "\\" in s:
        return True
    return s.endswith((".yaml", ".yml"))


def _load_yaml(stream: Any) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(stream)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" (line {mark.line + 1})" if mark else ""
        raise ConfigError(f"Invalid YAML{where}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("YAML root must be a mapping (dictionary)")
    return data


def _parse_config(data: Dict[str, Any], base_dir: Optional[Path]) -> ImporterConfig:
    known = {f.name for f in fields(ImporterConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}")

    values: Dict[str, Any] = {}
    for name in _PATH_FIELDS:
        if name not in data:
            continue
        value = data[name]
        if not isinstance(value, (str, Path)) or not str(value):
            raise ConfigError(f"Setting '{name}' must be a path")
        path = Path(value).expanduser()
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        values[name] = path

    for name, minimum in _INT_FIELDS.items():
        if name not in data:
            continue
        value = data[name]
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"Setting '{name}' must be an integer")
        if value < minimum:
            raise ConfigError(f"Setting '{name}' must be at least {minimum}")
        values[name] = value

    return ImporterConfig(**values)
