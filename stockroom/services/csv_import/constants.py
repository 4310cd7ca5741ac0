"""Constants for the CSV import pipeline: target schema, aliases, formats."""

from pydantic import BaseModel

from stockroom.schemas.csv_import import TransformKind

SUPPORTED_EXTENSIONS = (".csv", ".txt", ".tsv")
SUPPORTED_MIME_TYPES = (
    "text/csv",
    "text/plain",
    "text/tab-separated-values",
    "application/csv",
    # Sent by browsers on Windows for .csv files
    "application/vnd.ms-excel",
)

# Number of sample values kept per column profile
PROFILE_SAMPLE_SIZE = 5

# Rows committed per second, used for the import time estimate
ESTIMATED_ROWS_PER_SECOND = 100


class TargetField(BaseModel):
    """A field of the inventory record that columns can map onto."""

    name: str
    description: str
    aliases: tuple[str, ...]
    required: bool = False
    transform: TransformKind = TransformKind.STRING
    weight: float = 1.0


# Aliases are compared after normalization (accents stripped, lower-cased,
# punctuation collapsed to spaces). No normalized alias may belong to two fields.
_FIELDS = [
    TargetField(
        name="sku",
        description="Unique stock keeping unit code",
        aliases=(
            "sku", "codigo", "code", "cod", "product code", "item code",
            "product id", "item id", "id", "reference", "ref", "referencia",
            "articulo", "codigo producto",
        ),
        required=True,
    ),
    TargetField(
        name="name",
        description="Product name",
        aliases=(
            "name", "nombre", "product", "producto", "item", "title", "titulo",
            "product name", "item name", "nombre producto", "descripcion corta",
        ),
        required=True,
    ),
    TargetField(
        name="description",
        description="Long product description",
        aliases=(
            "description", "descripcion", "details", "detalles",
            "long description", "descripcion larga",
        ),
        weight=0.9,
    ),
    TargetField(
        name="category",
        description="Product category",
        aliases=(
            "category", "categoria", "type", "tipo", "group", "grupo",
            "class", "clase", "classification", "clasificacion", "family", "familia",
        ),
        weight=0.9,
    ),
    TargetField(
        name="location",
        description="Storage location",
        aliases=(
            "location", "ubicacion", "place", "lugar", "warehouse", "almacen",
            "storage", "almacenamiento", "shelf", "estante", "bin", "bodega",
        ),
        weight=0.9,
    ),
    TargetField(
        name="price",
        description="Selling price",
        aliases=(
            "price", "precio", "unit price", "precio unitario", "selling price",
            "precio venta", "sale price", "retail price", "list price",
            "precio lista", "pvp", "value", "valor",
        ),
        transform=TransformKind.NUMBER,
        weight=0.95,
    ),
    TargetField(
        name="cost",
        description="Purchase cost",
        aliases=(
            "cost", "costo", "coste", "unit cost", "costo unitario",
            "purchase price", "precio compra", "wholesale price", "buy price",
        ),
        transform=TransformKind.NUMBER,
        weight=0.9,
    ),
    TargetField(
        name="quantity",
        description="Units currently in stock",
        aliases=(
            "quantity", "cantidad", "qty", "cant", "stock", "inventory",
            "inventario", "on hand", "existencias", "units", "unidades",
            "available", "disponible",
        ),
        transform=TransformKind.INTEGER,
        weight=0.95,
    ),
    TargetField(
        name="min_stock",
        description="Reorder threshold",
        aliases=(
            "min stock", "minstock", "stock minimo", "minimum stock", "min quantity",
            "cantidad minima", "reorder point", "punto reorden", "min level",
            "nivel minimo", "minimo",
        ),
        transform=TransformKind.INTEGER,
        weight=0.9,
    ),
    TargetField(
        name="max_stock",
        description="Maximum units to hold",
        aliases=(
            "max stock", "maxstock", "stock maximo", "maximum stock", "max quantity",
            "cantidad maxima", "max level", "nivel maximo", "maximo", "capacity",
            "capacidad",
        ),
        transform=TransformKind.INTEGER,
        weight=0.9,
    ),
    TargetField(
        name="status",
        description="Lifecycle status: active, inactive or discontinued",
        aliases=(
            "status", "estado", "state", "condition", "condicion", "active", "activo",
        ),
        transform=TransformKind.ENUM,
        weight=0.85,
    ),
    TargetField(
        name="barcode",
        description="EAN/UPC barcode digits",
        aliases=(
            "barcode", "bar code", "codigo barras", "codigo de barras", "ean",
            "ean13", "upc", "gtin", "isbn",
        ),
        weight=0.9,
    ),
    TargetField(
        name="tags",
        description="Free-form labels",
        aliases=("tags", "etiquetas", "labels", "keywords", "palabras clave"),
        transform=TransformKind.LIST,
        weight=0.85,
    ),
    TargetField(
        name="supplier",
        description="Supplier or manufacturer",
        aliases=(
            "supplier", "proveedor", "vendor", "manufacturer", "fabricante",
            "brand", "marca", "provider",
        ),
        weight=0.85,
    ),
    TargetField(
        name="notes",
        description="Additional notes",
        aliases=(
            "notes", "notas", "note", "nota", "comments", "comentarios",
            "remarks", "observaciones",
        ),
        weight=0.8,
    ),
]

TARGET_FIELDS: dict[str, TargetField] = {field.name: field for field in _FIELDS}

REQUIRED_FIELDS = frozenset(name for name, field in TARGET_FIELDS.items() if field.required)

# Spelling variants accepted by the enum transform
STATUS_ALIASES = {
    "active": "active",
    "activo": "active",
    "activa": "active",
    "inactive": "inactive",
    "inactivo": "inactive",
    "inactiva": "inactive",
    "discontinued": "discontinued",
    "descontinuado": "discontinued",
    "descontinuada": "discontinued",
}

TRUE_VALUES = frozenset({"true", "yes", "y", "1", "si", "sí", "verdadero", "activo", "x"})
FALSE_VALUES = frozenset({"false", "no", "n", "0", "falso", "inactivo"})

# Tried in order, so day-first wins over month-first for ambiguous dates
DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y", "%Y/%m/%d", "%d-%m-%Y", "%d.%m.%Y")

LIST_SEPARATORS = r"[,;|]"

CURRENCY_SYMBOLS = "$€£"
