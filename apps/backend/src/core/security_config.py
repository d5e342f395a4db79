"""Which log keys get masked, and which error fields each environment may see."""

CREDENTIAL_MARKERS = frozenset(
    {
        "password",
        "secret",
        "token",
        "authorization",
        "bearer",
        "cookie",
        "api_key",
        "apikey",
        "x-api-key",
        "connection_string",
    }
)

# Tool arguments and results carry these for every ticket and escalation.
CUSTOMER_DATA_MARKERS = frozenset(
    {
        "email",
        "phone",
        "address",
        "card_number",
        "cvv",
        "account_number",
    }
)

SENSITIVE_MARKERS = CREDENTIAL_MARKERS | CUSTOMER_DATA_MARKERS

PRODUCTION_ERROR_FIELDS = frozenset({"correlation_id", "type", "code"})

DEBUG_ERROR_FIELDS = PRODUCTION_ERROR_FIELDS | {
    "exception_type",
    "validation_errors",
    "traceback",
}


def get_allowed_error_fields(environment: str) -> frozenset[str]:
    if environment == "production":
        return PRODUCTION_ERROR_FIELDS
    return DEBUG_ERROR_FIELDS


def is_sensitive_key(key: str) -> bool:
    """True when any marker appears in ``key``, case-insensitively."""
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_MARKERS)
