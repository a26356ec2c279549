from typing import Final

APP_NAME: Final[str] = "larder"
CURRENT_SCHEMA: Final[int] = 2

# Storage keys (one JSON document per key)
STORAGE_KEY: Final[str] = "larder_state_v1"
RECOVERY_KEY: Final[str] = f"{STORAGE_KEY}__recovery"
RESTORE_POINT_KEY: Final[str] = f"{STORAGE_KEY}__restore_point"
META_KEY: Final[str] = f"{STORAGE_KEY}__meta"
QUARANTINE_PREFIX: Final[str] = f"{STORAGE_KEY}__quarantine__"

# Canonical units
UNIT_PIECE: Final[str] = "pcs"
UNIT_GRAM: Final[str] = "g"
UNIT_MILLILITER: Final[str] = "ml"

# "Effectively zero" thresholds per unit kind
EPSILON_BY_UNIT_KIND: Final[dict[str, float]] = {
    "piece": 0.01,
    "weight": 0.5,
    "volume": 0.5,
    "custom": 0.5,
}

COOK_HISTORY_LIMIT: Final[int] = 30

# Expiry buckets for grouped pantry display: (upper bound in days, bucket name)
EXPIRY_BUCKETS: Final[tuple[tuple[int, str], ...]] = ((1, "le1"), (3, "le3"), (7, "le7"))
EXPIRY_BUCKET_LATER: Final[str] = "gt7"
EXPIRY_BUCKET_NONE: Final[str] = "none"

BARCODE_MIN_DIGITS: Final[int] = 8
BARCODE_MAX_DIGITS: Final[int] = 14

LOT_SOURCE_MANUAL: Final[str] = "manual"
LOT_SOURCE_CHECKOUT: Final[str] = "checkout"

DELETED_INGREDIENT_NAME: Final[str] = "Deleted ingredient"

DEFAULT_SETTINGS: Final[dict] = {"enableCookTimer": True, "theme": "dark", "pantryConsumeSteps": {}}

# Load/save report statuses
STATUS_OK: Final[str] = "ok"
STATUS_EMPTY: Final[str] = "empty"
STATUS_RECOVERED: Final[str] = "recovered"
STATUS_RESET: Final[str] = "reset"
STATUS_WARNING: Final[str] = "warning"
