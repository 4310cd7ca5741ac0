"""Pydantic models for Stockroom configuration.

These models define the structure of the config.toml file.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from stockroom.schemas.csv_import import RuleKind, Severity, TransformKind, ValidationRule


def default_validation_rules() -> list[ValidationRule]:
    """Return the built-in rule set for inventory records."""
    error, warning = Severity.ERROR, Severity.WARNING
    return [
        # SKU
        ValidationRule(
            field="sku",
            kind=RuleKind.REQUIRED,
            message="SKU is required",
            suggestion="Provide a unique SKU code for each item",
        ),
        ValidationRule(
            field="sku",
            kind=RuleKind.LENGTH,
            max_value=50,
            message="SKU is too long (maximum 50 characters)",
        ),
        ValidationRule(
            field="sku",
            kind=RuleKind.PATTERN,
            pattern=r"^[A-Za-z0-9\-_]+$",
            message="SKU contains invalid characters",
            suggestion="Use only letters, numbers, hyphens and underscores",
        ),
        # Name
        ValidationRule(
            field="name",
            kind=RuleKind.REQUIRED,
            message="Name is required",
            suggestion="Provide a descriptive product name",
        ),
        ValidationRule(
            field="name",
            kind=RuleKind.LENGTH,
            max_value=200,
            message="Name is too long (maximum 200 characters)",
        ),
        ValidationRule(
            field="name",
            kind=RuleKind.LENGTH,
            min_value=2,
            severity=warning,
            message="Name is very short",
            suggestion="Consider a more descriptive name",
        ),
        # Prices
        ValidationRule(
            field="price",
            kind=RuleKind.TYPE,
            data_type=TransformKind.NUMBER,
            message="Price must be a valid number",
        ),
        ValidationRule(
            field="price",
            kind=RuleKind.RANGE,
            min_value=0,
            message="Price cannot be negative",
        ),
        ValidationRule(
            field="price",
            kind=RuleKind.RANGE,
            max_value=1_000_000,
            severity=warning,
            message="Price is unusually high",
            suggestion="Check the value and currency",
        ),
        ValidationRule(
            field="cost",
            kind=RuleKind.TYPE,
            data_type=TransformKind.NUMBER,
            message="Cost must be a valid number",
        ),
        ValidationRule(
            field="cost",
            kind=RuleKind.RANGE,
            min_value=0,
            message="Cost cannot be negative",
        ),
        # Stock levels
        ValidationRule(
            field="quantity",
            kind=RuleKind.TYPE,
            data_type=TransformKind.INTEGER,
            message="Quantity must be a whole number",
        ),
        ValidationRule(
            field="quantity",
            kind=RuleKind.RANGE,
            min_value=0,
            message="Quantity cannot be negative",
        ),
        ValidationRule(
            field="quantity",
            kind=RuleKind.RANGE,
            max_value=100_000,
            severity=warning,
            message="Quantity is unusually high",
        ),
        ValidationRule(
            field="min_stock",
            kind=RuleKind.TYPE,
            data_type=TransformKind.INTEGER,
            message="Minimum stock must be a whole number",
        ),
        ValidationRule(
            field="min_stock",
            kind=RuleKind.RANGE,
            min_value=0,
            message="Minimum stock cannot be negative",
        ),
        ValidationRule(
            field="max_stock",
            kind=RuleKind.TYPE,
            data_type=TransformKind.INTEGER,
            message="Maximum stock must be a whole number",
        ),
        ValidationRule(
            field="max_stock",
            kind=RuleKind.RANGE,
            min_value=0,
            message="Maximum stock cannot be negative",
        ),
        # Classification
        ValidationRule(
            field="status",
            kind=RuleKind.ENUM,
            choices=["active", "inactive", "discontinued"],
            message="Invalid status",
            suggestion="Use one of: active, inactive, discontinued",
        ),
        ValidationRule(
            field="barcode",
            kind=RuleKind.PATTERN,
            pattern=r"^[0-9]+$",
            message="Barcode must contain digits only",
        ),
        ValidationRule(
            field="barcode",
            kind=RuleKind.LENGTH,
            min_value=8,
            max_value=14,
            severity=warning,
            message="Unusual barcode length",
            suggestion="EAN and UPC codes have 8 to 14 digits",
        ),
        ValidationRule(
            field="category",
            kind=RuleKind.LENGTH,
            max_value=100,
            message="Category is too long (maximum 100 characters)",
        ),
        ValidationRule(
            field="location",
            kind=RuleKind.LENGTH,
            max_value=100,
            message="Location is too long (maximum 100 characters)",
        ),
    ]


def default_import_values() -> dict[str, Any]:
    return {
        "status": "active",
        "quantity": 0,
        "price": 0,
        "min_stock": 0,
        "max_stock": 1000,
    }


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    # CORS configuration - empty list means same-origin only
    cors_origins: list[str] = []


class DatabaseConfig(BaseModel):
    """MongoDB database configuration."""

    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "stockroom"
    # Connection pool settings
    min_pool_size: int = 10
    max_pool_size: int = 100


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Path | None = None


class ImportConfig(BaseModel):
    """CSV import pipeline configuration."""

    max_file_size: int = Field(default=10 * 1024 * 1024, gt=0)  # bytes
    batch_size: int = Field(default=100, gt=0)
    batch_delay_ms: int = Field(default=0, ge=0)
    preview_rows: int = Field(default=5, ge=0)
    max_rows: int = Field(default=50_000, gt=0)
    # None means auto-detect from allowed_delimiters
    delimiter: str | None = None
    allowed_delimiters: list[str] = Field(default_factory=lambda: [",", ";", "\t", "|"])
    allowed_encodings: list[str] = Field(default_factory=lambda: ["utf-8-sig", "cp1252"])
    skip_empty_rows: bool = True
    trim_whitespace: bool = True
    mapping_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    suggestion_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    default_values: dict[str, Any] = Field(default_factory=default_import_values)
    validation_rules: list[ValidationRule] = Field(default_factory=default_validation_rules)

    @property
    def max_file_size_mb(self) -> float:
        """Get max file size in megabytes."""
        return self.max_file_size / (1024 * 1024)

    @property
    def batch_delay(self) -> float:
        """Get the pause between batches in seconds."""
        return self.batch_delay_ms / 1000


class StockroomConfig(BaseModel):
    """Main Stockroom configuration loaded from config.toml."""

    app_name: str = "Stockroom"
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    csv_import: ImportConfig = Field(default_factory=ImportConfig)
