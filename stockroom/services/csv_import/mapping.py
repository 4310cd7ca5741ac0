"""Column mapping: match source headers to inventory target fields."""

import logging
import unicodedata
from collections.abc import Mapping, Sequence
from difflib import SequenceMatcher

from stockroom.schemas.csv_import import (
    ColumnMapping,
    ColumnProfile,
    ColumnSuggestions,
    MappingStatistics,
    MappingSuggestion,
    MappingValidation,
    TransformKind,
)
from stockroom.services.csv_import.constants import TARGET_FIELDS, TargetField

logger = logging.getLogger(__name__)

DEFAULT_MAPPING_THRESHOLD = 0.6
DEFAULT_SUGGESTION_THRESHOLD = 0.3

# Profile data types compatible with each transform
_TRANSFORM_DATA_TYPES = {
    TransformKind.NUMBER: {"number"},
    TransformKind.INTEGER: {"number"},
    TransformKind.BOOLEAN: {"boolean", "number"},
    TransformKind.DATE: {"date"},
    TransformKind.STRING: {"string"},
    TransformKind.ENUM: {"string", "boolean"},
    TransformKind.LIST: {"string"},
}


def normalize_header(text: str) -> str:
    """Normalize a header for comparison.

    Strips accents, lower-cases, and collapses anything that is not a letter
    or digit into single spaces. "Código de Barras" becomes "codigo de barras".
    """
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    cleaned = "".join(ch if ch.isalnum() else " " for ch in stripped.lower())
    return " ".join(cleaned.split())


def _alias_similarity(header: str, alias: str) -> float:
    if header == alias or header.replace(" ", "") == alias.replace(" ", ""):
        return 1.0

    header_tokens, alias_tokens = set(header.split()), set(alias.split())
    shared = header_tokens & alias_tokens
    if shared:
        coverage = min(len(header_tokens), len(alias_tokens)) / max(
            len(header_tokens), len(alias_tokens)
        )
        containment = 0.0
        if alias_tokens <= header_tokens:
            # "Unit Price (USD)" contains the alias "unit price"
            containment = 0.6 + 0.3 * coverage
        elif header_tokens <= alias_tokens:
            # "Quantity" is missing the qualifier of "min quantity"
            containment = 0.4 + 0.3 * coverage
        return max(containment, len(shared) / len(header_tokens | alias_tokens))

    # No shared words: fall back to character similarity to catch typos
    fuzzy = SequenceMatcher(None, header.replace(" ", ""), alias.replace(" ", "")).ratio()
    return 0.9 * fuzzy


def score_column(header: str, field: TargetField) -> float:
    """Score how well a source header matches a target field (0.0 to 1.0).

    An exact alias match scores 1.0. Anything else is the best of token
    containment and token overlap (or fuzzy character similarity when no
    words are shared), scaled by the field weight.
    """
    normalized = normalize_header(header)
    if not normalized:
        return 0.0

    best = 0.0
    for alias in field.aliases:
        similarity = _alias_similarity(normalized, normalize_header(alias))
        if similarity == 1.0:
            return 1.0
        best = max(best, similarity)
    return round(best * field.weight, 4)


def auto_map_columns(
    columns: Sequence[str],
    fields: Mapping[str, TargetField] = TARGET_FIELDS,
    threshold: float = DEFAULT_MAPPING_THRESHOLD,
) -> list[ColumnMapping]:
    """Map each source column to at most one target field.

    Candidate (column, field) pairs scoring at least ``threshold`` are taken
    greedily in descending score order, ties broken by column position and
    then field order, so each field goes to its best-scoring column.

    Returns:
        One ColumnMapping per column, in column order
    """
    field_list = list(fields.values())
    candidates: list[tuple[float, int, int]] = []
    for col_idx, column in enumerate(columns):
        for field_idx, field in enumerate(field_list):
            score = score_column(column, field)
            if score >= threshold:
                candidates.append((score, col_idx, field_idx))
    candidates.sort(key=lambda c: (-c[0], c[1], c[2]))

    assigned: dict[int, tuple[TargetField, float]] = {}
    used_fields: set[str] = set()
    for score, col_idx, field_idx in candidates:
        field = field_list[field_idx]
        if col_idx in assigned or field.name in used_fields:
            continue
        assigned[col_idx] = (field, score)
        used_fields.add(field.name)

    mappings = []
    for col_idx, column in enumerate(columns):
        if col_idx in assigned:
            field, score = assigned[col_idx]
            logger.debug("Mapped column %r -> %s (%.2f)", column, field.name, score)
            mappings.append(
                ColumnMapping(
                    source_column=column,
                    target_field=field.name,
                    confidence=score,
                    is_required=field.required,
                    transform=field.transform,
                )
            )
        else:
            logger.debug("No target field for column %r", column)
            mappings.append(ColumnMapping(source_column=column))
    return mappings


def validate_mappings(
    mappings: Sequence[ColumnMapping],
    fields: Mapping[str, TargetField] = TARGET_FIELDS,
) -> MappingValidation:
    """Check that required fields are mapped and no field is mapped twice."""
    errors: list[str] = []
    warnings: list[str] = []

    targets = [m.target_field for m in mappings if m.target_field is not None]

    for target in dict.fromkeys(targets):
        if target not in fields:
            errors.append(f"Unknown target field '{target}'")
        elif targets.count(target) > 1:
            errors.append(f"Field '{target}' is mapped more than once")

    for name, field in fields.items():
        if field.required and name not in targets:
            errors.append(f"Required field '{name}' is not mapped")

    unmapped = len(mappings) - len(targets)
    if unmapped:
        warnings.append(f"{unmapped} column(s) are not mapped and will be ignored")

    return MappingValidation(is_valid=not errors, errors=errors, warnings=warnings)


def _suggestion_reason(
    name_score: float, field: TargetField, profile: ColumnProfile | None
) -> str:
    reasons = []
    if name_score >= 0.8:
        reasons.append("Column name is very similar")
    elif name_score >= 0.5:
        reasons.append("Column name is similar")
    if profile is not None and profile.data_type in _TRANSFORM_DATA_TYPES[field.transform]:
        reasons.append(f"Data type matches ({profile.data_type})")
    return ", ".join(reasons) if reasons else "General match"


def suggest_mappings(
    columns: Sequence[str],
    current_mappings: Sequence[ColumnMapping],
    fields: Mapping[str, TargetField] = TARGET_FIELDS,
    profiles: Sequence[ColumnProfile] | None = None,
    threshold: float = DEFAULT_SUGGESTION_THRESHOLD,
) -> list[ColumnSuggestions]:
    """Rank candidate fields for every column that is not yet mapped.

    Fields already targeted by ``current_mappings`` are never suggested.
    """
    mapped_columns = {m.source_column for m in current_mappings if m.is_mapped}
    used_fields = {m.target_field for m in current_mappings if m.is_mapped}
    profiles_by_header = {p.header: p for p in profiles or []}

    results = []
    for column in columns:
        if column in mapped_columns:
            continue
        profile = profiles_by_header.get(column)
        suggestions = []
        for field in fields.values():
            if field.name in used_fields:
                continue
            score = score_column(column, field)
            if score < threshold:
                continue
            suggestions.append(
                MappingSuggestion(
                    field=field.name,
                    confidence=score,
                    reason=_suggestion_reason(score, field, profile),
                )
            )
        # sort is stable, so equal scores keep field order
        suggestions.sort(key=lambda s: -s.confidence)
        results.append(ColumnSuggestions(column=column, suggestions=suggestions))
    return results


def get_mapping_statistics(
    mappings: Sequence[ColumnMapping],
    fields: Mapping[str, TargetField] = TARGET_FIELDS,
) -> MappingStatistics:
    mapped = [m for m in mappings if m.is_mapped]
    required = [name for name, field in fields.items() if field.required]
    targets = {m.target_field for m in mapped}
    return MappingStatistics(
        total_columns=len(mappings),
        mapped_columns=len(mapped),
        unmapped_columns=len(mappings) - len(mapped),
        required_fields_mapped=sum(1 for name in required if name in targets),
        total_required_fields=len(required),
        average_confidence=(
            round(sum(m.confidence for m in mapped) / len(mapped), 4) if mapped else 0.0
        ),
    )
