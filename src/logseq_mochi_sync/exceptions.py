"""Centralized exception hierarchy for logseq-mochi-sync.

All custom exceptions inherit from LogseqMochiSyncError, making it easy to
catch every sync-related error with a single except clause.

Exception Hierarchy:
    LogseqMochiSyncError (base)
     ConfigurationError - Missing or invalid settings
     SyncError - Fatal, run-level synchronization failure
     RemoteApiError - Mochi API returned a non-success status
     SourceStoreError - Logseq HTTP API failure
     ResolutionError - Deck/template could not be resolved for a card
     TransformError - A card could not be built from its block
        AttachmentError - A media reference could not be resolved
     StateError - Id map database errors

Usage Examples:
    # Fatal errors surface once, at the top level
    try:
        report = await orchestrator.run()
    except SyncError as e:
        logger.error("sync_failed", error=str(e))

    # Per-card errors are downgraded by the orchestrator
    try:
        remote = await client.create_card(card.content, deck_id, tags=tags)
    except RemoteApiError as e:
        report.record_failure(e, source_uuid=card.source_uuid)
"""

from typing import Any


class LogseqMochiSyncError(Exception):
    """Base exception for all sync-related errors.

    Attributes:
        message: Human-readable error message
        suggestion: Optional suggestion for resolving the error
        error_code: Structured error code for machine-readable handling
        context: Additional context for debugging (block uuid, card id, ...)
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.message = message
        self.suggestion = suggestion
        self.error_code = error_code
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with error code and suggestion if available."""
        parts = []
        if self.error_code:
            parts.append(f"[{self.error_code}] {self.message}")
        else:
            parts.append(self.message)
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "suggestion": self.suggestion,
            "context": self.context,
            "type": type(self).__name__,
        }


class ConfigurationError(LogseqMochiSyncError):
    """Configuration loading or validation errors.

    Raised when:
    - Config file is missing or malformed
    - The Mochi API key or default deck name is not set
    - Configuration values fail validation
    """


class SyncError(LogseqMochiSyncError):
    """Fatal synchronization error.

    Raised once per run when remote cards, decks, templates or the list of
    tagged blocks cannot be retrieved. The id map is not written afterwards.
    """


class RemoteApiError(LogseqMochiSyncError):
    """Mochi API errors.

    Raised when:
    - Mochi returns a non-success HTTP status
    - The connection to Mochi fails
    - The response body is not valid JSON

    Attributes:
        status_code: HTTP status code (None for transport failures)
        body: Raw response body, if any
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        suggestion: str | None = None,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        self.body = body
        ctx = dict(context or {})
        if status_code is not None:
            ctx.setdefault("status_code", status_code)
        super().__init__(
            message, suggestion=suggestion, error_code=error_code, context=ctx
        )


class SourceStoreError(LogseqMochiSyncError):
    """Logseq HTTP API errors.

    Raised when:
    - The Logseq API server is not running or rejects the token
    - A method call returns an error payload
    """


class ResolutionError(LogseqMochiSyncError):
    """No deck or template id could be resolved for a card."""


class TransformError(LogseqMochiSyncError):
    """A card could not be built from its source block.

    Raised when:
    - The tagged block no longer exists
    - The block snapshot is malformed
    """


class AttachmentError(TransformError):
    """A media reference could not be turned into an attachment.

    Raised when:
    - The reference points at a remote URL
    - The referenced file does not exist
    - The file exceeds the attachment size limit
    """


class StateError(LogseqMochiSyncError):
    """Id map database errors."""
