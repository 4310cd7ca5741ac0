"""CSV import pipeline for inventory records.

Re-exports the public API from sub-modules so that callers can use
``from stockroom.services.csv_import import ...``.
"""

from stockroom.services.csv_import.constants import (
    REQUIRED_FIELDS,
    SUPPORTED_EXTENSIONS,
    SUPPORTED_MIME_TYPES,
    TARGET_FIELDS,
    TargetField,
)
from stockroom.services.csv_import.converters import (
    TRANSFORMS,
    apply_transform,
    to_boolean,
    to_date,
    to_enum,
    to_integer,
    to_list,
    to_number,
    to_string,
)
from stockroom.services.csv_import.engine import CancellationToken, ImportEngine
from stockroom.services.csv_import.errors import (
    UNKNOWN_ERROR,
    BatchImportError,
    CSVImportError,
    ConfigurationError,
    FileValidationError,
    MappingError,
    ParseError,
    RowValidationError,
    SessionStateError,
    TransformError,
    describe_error,
)
from stockroom.services.csv_import.mapping import (
    auto_map_columns,
    get_mapping_statistics,
    normalize_header,
    score_column,
    suggest_mappings,
    validate_mappings,
)
from stockroom.services.csv_import.parsers import (
    decode_content,
    detect_delimiter,
    parse_file,
    parse_text,
    profile_columns,
    validate_file,
)
from stockroom.services.csv_import.progress import ProgressBroadcaster
from stockroom.services.csv_import.service import ImportService
from stockroom.services.csv_import.validator import check_rule, validate_data

__all__ = [
    # Constants
    "REQUIRED_FIELDS",
    "SUPPORTED_EXTENSIONS",
    "SUPPORTED_MIME_TYPES",
    "TARGET_FIELDS",
    "TargetField",
    # Errors
    "UNKNOWN_ERROR",
    "BatchImportError",
    "CSVImportError",
    "ConfigurationError",
    "FileValidationError",
    "MappingError",
    "ParseError",
    "RowValidationError",
    "SessionStateError",
    "TransformError",
    "describe_error",
    # Parsers
    "decode_content",
    "detect_delimiter",
    "parse_file",
    "parse_text",
    "profile_columns",
    "validate_file",
    # Mapping
    "auto_map_columns",
    "get_mapping_statistics",
    "normalize_header",
    "score_column",
    "suggest_mappings",
    "validate_mappings",
    # Converters
    "TRANSFORMS",
    "apply_transform",
    "to_boolean",
    "to_date",
    "to_enum",
    "to_integer",
    "to_list",
    "to_number",
    "to_string",
    # Validation
    "check_rule",
    "validate_data",
    # Engine and orchestration
    "CancellationToken",
    "ImportEngine",
    "ImportService",
    "ProgressBroadcaster",
]
