"""Exception hierarchy for the ingestion and query core."""


class SkinMatchError(Exception):
    """Base class for all SkinMatch errors."""


class ConfigurationError(SkinMatchError):
    """A required setting (e.g. the catalog source URL) is missing."""


class SourceUnavailableError(SkinMatchError):
    """The catalog source could not be reached or returned unusable data."""


class IndexCreationError(SkinMatchError):
    """Index creation failed for a reason other than "already exists"."""


class RecordStorageError(SkinMatchError):
    """Writing a single product to the vector store failed."""

    def __init__(self, product_id: str | None, message: str) -> None:
        super().__init__(message)
        self.product_id = product_id


class InvalidRecordError(RecordStorageError):
    """A catalog record carries no usable identifier."""


class DimensionMismatchError(SkinMatchError, ValueError):
    """Two vectors of unequal length were compared."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vectors must have the same length, got {left} and {right}")
        self.left = left
        self.right = right
