"""Row validation: project, transform and check every data row."""

import logging
import math
import re
from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any

from stockroom.schemas.csv_import import (
    ColumnMapping,
    ErrorRow,
    ImportPreview,
    ImportStatistics,
    RowIssue,
    RuleKind,
    Severity,
    TableData,
    TransformKind,
    ValidationRule,
    ValidRow,
)
from stockroom.services.csv_import.constants import (
    ESTIMATED_ROWS_PER_SECOND,
    TARGET_FIELDS,
    TargetField,
)
from stockroom.services.csv_import.converters import apply_transform
from stockroom.services.csv_import.errors import RowValidationError

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _matches_type(value: Any, data_type: TransformKind) -> bool:
    if data_type == TransformKind.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if data_type == TransformKind.NUMBER:
        return _is_number(value)
    if data_type == TransformKind.BOOLEAN:
        return isinstance(value, bool)
    if data_type == TransformKind.DATE:
        return isinstance(value, date)
    if data_type == TransformKind.LIST:
        return isinstance(value, list)
    return isinstance(value, str)


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == []


def check_rule(rule: ValidationRule, value: Any) -> bool:
    """Return True if ``value`` satisfies ``rule``.

    Only REQUIRED applies to blank values; every other rule passes them.
    """
    if rule.kind == RuleKind.REQUIRED:
        return not _is_blank(value)
    if _is_blank(value):
        return True

    if rule.kind == RuleKind.TYPE:
        return rule.data_type is None or _matches_type(value, rule.data_type)

    if rule.kind == RuleKind.RANGE:
        if not _is_number(value) or math.isnan(value):
            return True  # left to the TYPE rule
        if rule.min_value is not None and value < rule.min_value:
            return False
        if rule.max_value is not None and value > rule.max_value:
            return False
        return True

    if rule.kind == RuleKind.LENGTH:
        length = len(value) if isinstance(value, (str, list)) else len(str(value))
        if rule.min_value is not None and length < rule.min_value:
            return False
        if rule.max_value is not None and length > rule.max_value:
            return False
        return True

    if rule.kind == RuleKind.PATTERN:
        return rule.pattern is None or re.fullmatch(rule.pattern, str(value)) is not None

    if rule.kind == RuleKind.ENUM:
        return rule.choices is None or str(value) in rule.choices

    return True


def _cross_field_issues(
    row_number: int, mapped: dict[str, Any], raw: dict[str, str]
) -> list[RowIssue]:
    issues = []

    def both(a: str, b: str) -> bool:
        return _is_number(mapped.get(a)) and _is_number(mapped.get(b))

    if both("cost", "price") and mapped["cost"] > mapped["price"]:
        issues.append(
            RowIssue(
                row=row_number,
                field="cost",
                value=raw.get("cost", str(mapped["cost"])),
                message="Cost is greater than price",
                severity=Severity.WARNING,
                suggestion="Check the price and cost values",
            )
        )
    if both("min_stock", "max_stock") and mapped["min_stock"] > mapped["max_stock"]:
        issues.append(
            RowIssue(
                row=row_number,
                field="min_stock",
                value=raw.get("min_stock", str(mapped["min_stock"])),
                message="Minimum stock cannot exceed maximum stock",
                severity=Severity.ERROR,
            )
        )
    if both("quantity", "min_stock") and mapped["quantity"] < mapped["min_stock"]:
        issues.append(
            RowIssue(
                row=row_number,
                field="quantity",
                value=raw.get("quantity", str(mapped["quantity"])),
                message="Quantity is below minimum stock",
                severity=Severity.WARNING,
                suggestion="Consider restocking this item",
            )
        )
    return issues


def validate_data(
    table: TableData,
    mappings: Sequence[ColumnMapping],
    default_values: Mapping[str, Any] | None = None,
    rules: Sequence[ValidationRule] | None = None,
    fields: Mapping[str, TargetField] = TARGET_FIELDS,
) -> ImportPreview:
    """Validate every row of ``table`` against the mapped target schema.

    For each row, mapped cells are transformed (the mapping's transform, or
    the field's default), absent fields are filled from ``default_values``,
    and the rules plus cross-field checks are applied. A row with any
    error-severity issue is rejected; warnings never reject a row.

    Args:
        table: Parsed table data
        mappings: Column mappings; unmapped columns are ignored
        default_values: Values for fields absent from a row
        rules: Validation rules to apply
        fields: Target schema

    Returns:
        ImportPreview partitioning the rows, with statistics
    """
    default_values = default_values or {}
    rules = list(rules or [])
    active = [m for m in mappings if m.target_field is not None]

    valid_rows: list[ValidRow] = []
    error_rows: list[ErrorRow] = []

    for row_index, row in enumerate(table.rows):
        row_number = row_index + 1
        errors: list[RowIssue] = []
        warnings: list[RowIssue] = []
        mapped: dict[str, Any] = {}
        raw: dict[str, str] = {}
        failed_fields: set[str] = set()

        for mapping in active:
            field_name = mapping.target_field
            cell = row.get(mapping.source_column, "")
            if cell.strip() == "":
                continue
            raw[field_name] = cell
            kind = mapping.transform
            if kind is None and field_name in fields:
                kind = fields[field_name].transform
            try:
                mapped[field_name] = apply_transform(kind, cell)
            except RowValidationError as e:
                failed_fields.add(field_name)
                errors.append(
                    RowIssue(
                        row=row_number,
                        field=field_name,
                        value=cell,
                        message=f"Invalid value for {field_name}: {e}",
                        severity=Severity.ERROR,
                    )
                )

        for field_name, default in default_values.items():
            if field_name not in mapped and field_name not in failed_fields:
                mapped[field_name] = default

        for rule in rules:
            if rule.field in failed_fields:
                continue
            value = mapped.get(rule.field)
            if check_rule(rule, value):
                continue
            issue = RowIssue(
                row=row_number,
                field=rule.field,
                value=raw.get(rule.field, "" if value is None else str(value)),
                message=rule.message,
                severity=rule.severity,
                suggestion=rule.suggestion,
            )
            (errors if rule.severity == Severity.ERROR else warnings).append(issue)

        for issue in _cross_field_issues(row_number, mapped, raw):
            (errors if issue.severity == Severity.ERROR else warnings).append(issue)

        if errors:
            error_rows.append(
                ErrorRow(
                    row_index=row_index,
                    original_data=dict(row),
                    reasons=errors,
                    warnings=warnings,
                )
            )
        else:
            valid_rows.append(
                ValidRow(
                    row_index=row_index,
                    original_data=dict(row),
                    mapped_data=mapped,
                    warnings=warnings,
                )
            )

    total = len(table.rows)
    statistics = ImportStatistics(
        total_rows=total,
        valid_rows=len(valid_rows),
        error_rows=len(error_rows),
        warning_rows=sum(1 for r in valid_rows if r.warnings),
        mapped_fields=len(active),
        unmapped_fields=len(mappings) - len(active),
        estimated_import_time=math.ceil(total / ESTIMATED_ROWS_PER_SECOND) if total else 0,
    )
    logger.info(
        "Validated %d rows: %d valid, %d rejected, %d with warnings",
        total,
        statistics.valid_rows,
        statistics.error_rows,
        statistics.warning_rows,
    )
    return ImportPreview(valid_rows=valid_rows, error_rows=error_rows, statistics=statistics)
