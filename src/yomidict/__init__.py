"""yomidict — import positional-JSON dictionary archives into SQLite."""

__version__ = "0.1.0"

from yomidict.config import (
    ImporterConfig as ImporterConfig,
    load_config as load_config,
)
from yomidict.db import (
    DictionaryStore as DictionaryStore,
    StoreSession as StoreSession,
)
from yomidict.exceptions import (
    ConfigError as ConfigError,
    DictionaryImportError as DictionaryImportError,
    DictionaryNotFoundError as DictionaryNotFoundError,
    DuplicateDictionaryError as DuplicateDictionaryError,
    EmptyDictionaryError as EmptyDictionaryError,
    ExtractionError as ExtractionError,
    MalformedMetadataError as MalformedMetadataError,
    MissingIndexError as MissingIndexError,
    PersistenceError as PersistenceError,
    ShardReadError as ShardReadError,
    StoreError as StoreError,
    YomiDictError as YomiDictError,
)
from yomidict.importer import (
    DictionaryImport as DictionaryImport,
    import_dictionary as import_dictionary,
)
from yomidict.manager import DictionaryManager as DictionaryManager
from yomidict.models import (
    DictionaryMetadata as DictionaryMetadata,
    ImportProgress as ImportProgress,
    ImportState as ImportState,
    SweepResult as SweepResult,
    WordRecord as WordRecord,
)
from yomidict.sweeper import sweep as sweep

__all__ = [
    # Main entry point
    "DictionaryManager",
    "DictionaryImport",
    "import_dictionary",
    "sweep",
    # Store
    "DictionaryStore",
    "StoreSession",
    # Models
    "DictionaryMetadata",
    "WordRecord",
    "ImportProgress",
    "ImportState",
    "SweepResult",
    # Configuration
    "ImporterConfig",
    "load_config",
    # Exceptions
    "YomiDictError",
    "DictionaryImportError",
    "DuplicateDictionaryError",
    "EmptyDictionaryError",
    "ExtractionError",
    "MissingIndexError",
    "MalformedMetadataError",
    "ShardReadError",
    "PersistenceError",
    "StoreError",
    "ConfigError",
    "DictionaryNotFoundError",
]
