"""Custom exception hierarchy for yomidict."""


class YomiDictError(Exception):
    """Base exception for all yomidict errors."""


class DictionaryImportError(YomiDictError):
    """Base class for failures that abort a dictionary import."""

    user_message = "Something went wrong."


class DuplicateDictionaryError(DictionaryImportError):
    """A dictionary with the same title and revision is already stored."""

    user_message = "This dictionary is already imported."


class ExtractionError(DictionaryImportError):
    """The archive is corrupt, unreadable, or cannot be unpacked."""


class MissingIndexError(DictionaryImportError):
    """The archive has no ``index.json`` metadata document."""


class MalformedMetadataError(DictionaryImportError):
    """The metadata document is present but unusable (no ``title``)."""


class ShardReadError(DictionaryImportError):
    """A shard file cannot be opened or is not valid JSON."""


class EmptyDictionaryError(DictionaryImportError):
    """The archive's shards hold no well-formed word records."""

    user_message = "This dictionary contains no words."


class PersistenceError(DictionaryImportError):
    """Inserting or committing records to the store failed."""


class StoreError(YomiDictError):
    """Query failure, schema version mismatch, or connection failure."""


class ConfigError(YomiDictError):
    """Invalid configuration file or value."""


class DictionaryNotFoundError(YomiDictError):
    """No dictionary with the requested id exists."""
