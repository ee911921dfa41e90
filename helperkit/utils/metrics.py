from prometheus_client import Counter

# --- Field Encryption Metrics ---

# Counter for single-value codec calls.
# Labels:
# - operation: "encrypt" or "decrypt".
# - result: "ok", "absent" (falsy input short-circuit) or "integrity_error".
FIELD_CRYPTO_OPERATIONS_TOTAL = Counter(
    "field_crypto_operations_total",
    "Total number of field encrypt/decrypt calls by outcome.",
    ["operation", "result"],
)

# --- Keyed Transform Metrics ---

# Counter for entries settled inside transform_all.
# Labels:
# - result: "ok", "failed" or "cancelled".
TRANSFORM_ENTRIES_TOTAL = Counter(
    "transform_entries_total",
    "Total number of keyed transform entries by outcome.",
    ["result"],
)

# --- Error Metrics ---

# Counter for errors passed through ErrorHandler.handle_error.
# Labels:
# - category: ErrorCategory value.
# - severity: ErrorSeverity value.
ERRORS_HANDLED_TOTAL = Counter(
    "errors_handled_total",
    "Total number of errors categorized by the error handler.",
    ["category", "severity"],
)
