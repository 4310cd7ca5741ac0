"""Exception hierarchy for the CSV import pipeline.

Stage-level errors (file validation, parsing, mapping, session state) are
raised to the caller. Row-level and batch-level errors are collected into
the preview or result and never abort processing.
"""

UNKNOWN_ERROR = "Unknown error"


class CSVImportError(Exception):
    """Base class for all import pipeline errors."""


class FileValidationError(CSVImportError):
    """The file was rejected before parsing."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid file: {', '.join(self.errors)}")


class ParseError(CSVImportError):
    """The file content could not be turned into a table."""


class MappingError(CSVImportError):
    """A set of column mappings failed validation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid mappings: {', '.join(self.errors)}")


class RowValidationError(CSVImportError):
    """A single cell or row failed validation."""

    def __init__(self, message: str, field: str | None = None, value: str = ""):
        self.field = field
        self.value = value
        super().__init__(message)


class TransformError(RowValidationError):
    """A raw cell could not be converted to the target type."""


class BatchImportError(CSVImportError):
    """The record store rejected a batch of records."""


class SessionStateError(CSVImportError):
    """An operation was called in a session state that does not allow it."""


class ConfigurationError(CSVImportError):
    """A configuration update was rejected."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid configuration: {', '.join(self.errors)}")


def describe_error(exc: BaseException) -> str:
    """Return a human-readable message for an exception.

    Exceptions raised without a message are reported as UNKNOWN_ERROR.
    """
    message = str(exc).strip()
    return message or UNKNOWN_ERROR
