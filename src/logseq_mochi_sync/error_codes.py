"""Structured error codes for machine-readable error handling.

Error codes follow the format: {DOMAIN}-{CATEGORY}-{NUMBER}

Error Domains:
    CFG - Configuration errors
    MOC - Mochi API errors
    LSQ - Logseq API errors
    RES - Deck/template resolution errors
    TRF - Card building errors
    ATT - Attachment errors
    STA - Id map state errors
    SYN - Run-level sync errors

Usage:
    from logseq_mochi_sync.error_codes import ErrorCode

    logger.error(
        "deck_unresolved",
        error_code=ErrorCode.RES_DECK_MISSING.value,
        deck=deck_name,
    )
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Structured error codes for machine-readable handling."""

    # =========================================================================
    # Configuration Errors (CFG-xxx-xxx)
    # =========================================================================
    CFG_MISSING_API_KEY = "CFG-MISSING-001"
    """Mochi API key is not configured."""

    CFG_MISSING_DECK = "CFG-MISSING-002"
    """Default deck name is not configured."""

    CFG_INVALID = "CFG-INVALID-001"
    """Configuration value failed validation."""

    # =========================================================================
    # Mochi Errors (MOC-xxx-xxx)
    # =========================================================================
    MOC_HTTP_STATUS = "MOC-HTTP-001"
    """Mochi returned a non-success HTTP status."""

    MOC_CONNECTION = "MOC-CONN-001"
    """Could not reach the Mochi API."""

    MOC_INVALID_RESPONSE = "MOC-RESP-001"
    """Mochi returned a body that is not the expected JSON."""

    # =========================================================================
    # Logseq Errors (LSQ-xxx-xxx)
    # =========================================================================
    LSQ_CONNECTION = "LSQ-CONN-001"
    """Could not reach the Logseq HTTP API server."""

    LSQ_METHOD_FAILED = "LSQ-CALL-001"
    """A Logseq API method returned an error."""

    # =========================================================================
    # Resolution Errors (RES-xxx-xxx)
    # =========================================================================
    RES_DECK_MISSING = "RES-DECK-001"
    """No deck id could be resolved for a card."""

    RES_TEMPLATE_MISSING = "RES-TMPL-001"
    """A card references a template that does not exist."""

    # =========================================================================
    # Transform Errors (TRF-xxx-xxx)
    # =========================================================================
    TRF_BLOCK_MISSING = "TRF-BLOCK-001"
    """The tagged block could not be fetched."""

    TRF_MALFORMED = "TRF-BLOCK-002"
    """The block snapshot is malformed."""

    # =========================================================================
    # Attachment Errors (ATT-xxx-xxx)
    # =========================================================================
    ATT_TOO_LARGE = "ATT-SIZE-001"
    """Attachment exceeds the size limit."""

    ATT_REMOTE_URL = "ATT-URL-001"
    """Attachment reference is not a local file."""

    ATT_NOT_FOUND = "ATT-FILE-001"
    """Attachment file could not be read."""

    # =========================================================================
    # State Errors (STA-xxx-xxx)
    # =========================================================================
    STA_DB_WRITE_FAILED = "STA-DB-001"
    """Writing the id map failed."""

    # =========================================================================
    # Sync Errors (SYN-xxx-xxx)
    # =========================================================================
    SYN_FETCH_FAILED = "SYN-FETCH-001"
    """Initial fetch of remote or local state failed."""

    SYN_CARD_FAILED = "SYN-CARD-001"
    """A per-card mutation failed."""


def get_error_domain(code: ErrorCode) -> str:
    """Extract the domain prefix (e.g. "MOC") from an error code."""
    return code.value.split("-")[0]


def get_error_severity(code: ErrorCode) -> str:
    """Get the severity level for an error code.

    Returns:
        Severity level: "critical", "error", "warning"
    """
    critical_codes = {
        ErrorCode.CFG_MISSING_API_KEY,
        ErrorCode.CFG_MISSING_DECK,
        ErrorCode.CFG_INVALID,
        ErrorCode.SYN_FETCH_FAILED,
    }
    warning_codes = {
        ErrorCode.RES_TEMPLATE_MISSING,
        ErrorCode.ATT_TOO_LARGE,
        ErrorCode.ATT_REMOTE_URL,
        ErrorCode.ATT_NOT_FOUND,
    }

    if code in critical_codes:
        return "critical"
    if code in warning_codes:
        return "warning"
    return "error"
