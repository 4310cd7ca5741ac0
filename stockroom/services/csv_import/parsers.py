"""File validation and CSV parsing for the import pipeline."""

import csv
import io
import logging
from collections.abc import Sequence

from stockroom.config.schema import ImportConfig
from stockroom.schemas.csv_import import (
    ColumnProfile,
    FileValidationResult,
    ImportFile,
    TableData,
)
from stockroom.services.csv_import.constants import (
    PROFILE_SAMPLE_SIZE,
    SUPPORTED_EXTENSIONS,
    SUPPORTED_MIME_TYPES,
)
from stockroom.services.csv_import.converters import to_boolean, to_date, to_number
from stockroom.services.csv_import.errors import ParseError, TransformError

logger = logging.getLogger(__name__)

# A column is typed when at least this share of its non-empty values fit the type
_PROFILE_TYPE_THRESHOLD = 0.8


def validate_file(file: ImportFile, config: ImportConfig) -> FileValidationResult:
    """Check a file's extension, MIME type and size before reading it.

    Args:
        file: The uploaded file
        config: Import configuration providing the size limit

    Returns:
        FileValidationResult listing every problem found
    """
    errors: list[str] = []

    if file.extension not in SUPPORTED_EXTENSIONS:
        errors.append(
            f"Unsupported file type '{file.extension or file.name}'. "
            f"Allowed: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    content_type = file.content_type.split(";")[0].strip().lower()
    if content_type and content_type not in SUPPORTED_MIME_TYPES:
        errors.append(f"Unsupported content type '{content_type}'")

    if file.size > config.max_file_size:
        errors.append(f"File exceeds maximum size of {config.max_file_size_mb:g} MB")
    elif file.size == 0:
        errors.append("File is empty")

    return FileValidationResult(is_valid=not errors, errors=errors)


def decode_content(content: bytes, encodings: Sequence[str]) -> tuple[str, str]:
    """Decode raw bytes with the first encoding that succeeds.

    Returns:
        Tuple of (text, encoding used)

    Raises:
        ParseError: If the content is binary or no encoding can decode it
    """
    if b"\x00" in content:
        raise ParseError("File appears to be binary, not text")

    for encoding in encodings:
        try:
            text = content.decode(encoding)
        except UnicodeDecodeError:
            continue
        except LookupError:
            logger.warning("Unknown encoding in configuration: %s", encoding)
            continue
        return text.removeprefix("\ufeff"), encoding

    raise ParseError(f"Could not decode file using any of: {', '.join(encodings)}")


def detect_delimiter(text: str, candidates: Sequence[str]) -> str:
    """Pick the candidate delimiter occurring most often in the header line.

    Ties go to the earlier candidate; defaults to a comma.
    """
    header_line = next((line for line in text.splitlines() if line.strip()), "")
    best, best_count = ",", 0
    for candidate in candidates:
        count = header_line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def _build_headers(cells: list[str]) -> list[str]:
    headers: list[str] = []
    seen: set[str] = set()
    for index, cell in enumerate(cells, 1):
        header = cell.strip() or f"Column {index}"
        candidate, suffix = header, 2
        while candidate in seen:
            candidate = f"{header} ({suffix})"
            suffix += 1
        seen.add(candidate)
        headers.append(candidate)
    return headers


def parse_text(
    text: str,
    config: ImportConfig,
    delimiter: str = ",",
    encoding: str = "utf-8",
) -> TableData:
    """Split decoded text into a header row and data rows.

    Rows with fewer cells than the header are padded with empty strings and
    rows with more cells are truncated; both cases are recorded in
    ``TableData.warnings``.

    Raises:
        ParseError: If the text has no header, is malformed, or has too many rows
    """
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    columns: list[str] | None = None
    rows: list[dict[str, str]] = []
    warnings: list[str] = []

    try:
        for record in reader:
            if columns is None:
                if not any(cell.strip() for cell in record):
                    continue
                columns = _build_headers(record)
                continue

            cells = [cell.strip() for cell in record] if config.trim_whitespace else record
            if config.skip_empty_rows and not any(cell.strip() for cell in cells):
                continue

            if len(cells) != len(columns):
                warnings.append(
                    f"Row {len(rows) + 1}: expected {len(columns)} fields, found {len(cells)}"
                )
                cells = (cells + [""] * len(columns))[: len(columns)]

            rows.append(dict(zip(columns, cells)))
            if len(rows) > config.max_rows:
                raise ParseError(f"File exceeds the maximum of {config.max_rows} data rows")
    except csv.Error as e:
        raise ParseError(f"Malformed CSV near line {reader.line_num}: {e}") from e

    if not columns:
        raise ParseError("File has no columns")

    return TableData(
        columns=columns,
        rows=rows,
        total_rows=len(rows),
        preview=rows[: config.preview_rows],
        delimiter=delimiter,
        encoding=encoding,
        profiles=profile_columns(columns, rows),
        warnings=warnings,
    )


def _fits(converter, value: str) -> bool:
    try:
        converter(value)
    except TransformError:
        return False
    return True


def profile_columns(columns: list[str], rows: list[dict[str, str]]) -> list[ColumnProfile]:
    """Infer a data type and collect sample values for each column."""
    profiles = []
    for index, header in enumerate(columns):
        values = [row[header] for row in rows if row.get(header, "").strip()]
        samples = list(dict.fromkeys(values))[:PROFILE_SAMPLE_SIZE]

        if not values:
            profiles.append(ColumnProfile(index=index, header=header))
            continue

        data_type, confidence = "string", 1.0
        for type_name, converter in (
            ("number", to_number),
            ("date", to_date),
            ("boolean", to_boolean),
        ):
            share = sum(1 for value in values if _fits(converter, value)) / len(values)
            if share >= _PROFILE_TYPE_THRESHOLD:
                data_type, confidence = type_name, share
                break

        profiles.append(
            ColumnProfile(
                index=index,
                header=header,
                sample_values=samples,
                data_type=data_type,
                confidence=round(confidence, 4),
            )
        )
    return profiles


async def parse_file(file: ImportFile, config: ImportConfig) -> TableData:
    """Read, decode and parse an import file.

    Args:
        file: The file to parse
        config: Import configuration (encodings, delimiters, limits)

    Returns:
        TableData with columns, rows, preview and column profiles

    Raises:
        ParseError: If the content cannot be decoded or parsed
    """
    content = await file.read()
    text, encoding = decode_content(content, config.allowed_encodings)

    if config.delimiter:
        delimiter = config.delimiter
    elif file.extension == ".tsv":
        delimiter = "\t"
    else:
        delimiter = detect_delimiter(text, config.allowed_delimiters)

    table = parse_text(text, config, delimiter=delimiter, encoding=encoding)
    logger.info(
        "Parsed %s: %d columns, %d rows (delimiter=%r, encoding=%s)",
        file.name,
        len(table.columns),
        table.total_rows,
        delimiter,
        encoding,
    )
    return table
