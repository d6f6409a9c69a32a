"""Logging configuration using structlog for structured JSON logging."""

import logging
import sys
import time
from collections import deque
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer
from structlog.stdlib import LoggerFactory, add_log_level, add_logger_name

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Events shown on the terminal without --verbose (plus all ERROR/CRITICAL)
USER_FACING_EVENTS: set[str] = {
    "sync_started",
    "sync_completed",
    "sync_failed",
    "sync_plan",
    "deck_created",
    "card_failed",
    "config_warning",
    "template_not_found",
    "attachment_rejected",
}


def _get_level_no(level_name: str) -> int:
    """Get numeric log level from name."""
    return _LOG_LEVELS.get(level_name.upper(), logging.INFO)


def _record_event(record: logging.LogRecord) -> str:
    """Event name of a record; structlog records carry the event dict as ``msg``."""
    if isinstance(record.msg, Mapping):
        return str(record.msg.get("event", ""))
    return record.getMessage()


@dataclass(slots=True)
class HighVolumeEventPolicy:
    """Rate-limiting policy for high-frequency log events.

    Attributes:
        max_occurrences: Maximum number of events allowed within the window.
        window_seconds: Sliding window size in seconds for counting events.
    """

    max_occurrences: int
    window_seconds: float


class ConsoleNoiseFilter(logging.Filter):
    """Console handler filter that rate-limits high-volume events.

    Works on records from structlog (whose ``msg`` is the event dict) and on
    plain stdlib records alike. File logs are not affected.
    """

    def __init__(
        self,
        high_volume_policies: Mapping[str, HighVolumeEventPolicy] | None = None,
        time_func: Callable[[], float] | None = None,
    ) -> None:
        super().__init__()
        self.high_volume_policies = dict(high_volume_policies or {})
        self._event_windows: dict[str, deque[float]] = {
            event: deque() for event in self.high_volume_policies
        }
        self._time_func = time_func or time.monotonic

    def filter(self, record: logging.LogRecord) -> bool:
        event = _record_event(record)
        policy = self.high_volume_policies.get(event)
        if policy is None:
            return True

        now = self._time_func()
        window = self._event_windows.setdefault(event, deque())
        while window and now - window[0] > policy.window_seconds:
            window.popleft()
        if len(window) >= policy.max_occurrences:
            return False
        window.append(now)
        return True


class UserFacingConsoleFilter(logging.Filter):
    """Logging filter that only passes user-facing events to console.

    Allows:
    - Events in USER_FACING_EVENTS
    - All ERROR and CRITICAL level messages
    - All messages when verbose mode is enabled
    """

    def __init__(self, verbose: bool = False) -> None:
        super().__init__()
        self.verbose = verbose

    def filter(self, record: logging.LogRecord) -> bool:
        if self.verbose:
            return True

        if record.levelno >= logging.ERROR:
            return True

        event = _record_event(record)
        if event in USER_FACING_EVENTS:
            return True
        return any(user_event in event for user_event in USER_FACING_EVENTS)


class UserFriendlyConsoleRenderer:
    """Renders user-facing logs in a clean, readable format for terminal output."""

    def __init__(self) -> None:
        self._fallback = ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    def __call__(
        self, logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> str:
        event = event_dict.get("event", "")
        level = str(event_dict.get("level", "info")).upper()

        if event == "sync_started":
            mode = " (dry-run)" if event_dict.get("dry_run") else ""
            return f"Starting sync with Mochi{mode}"

        elif event == "sync_completed":
            created = event_dict.get("created", 0)
            updated = event_dict.get("updated", 0)
            deleted = event_dict.get("deleted", 0)
            failed = event_dict.get("failed", 0)
            duration = event_dict.get("duration_seconds", 0)
            summary = (
                f"Sync complete in {duration:.1f}s: "
                f"{created} created, {updated} updated, {deleted} deleted"
            )
            if failed:
                summary += f" | {failed} failed"
            return summary

        elif event == "sync_failed":
            error = event_dict.get("error", "Unknown error")
            return f"Sync failed: {error}"

        elif event == "sync_plan":
            prefix = "Would apply" if event_dict.get("dry_run") else "Plan"
            return (
                f"{prefix}: {event_dict.get('create', 0)} create, "
                f"{event_dict.get('update', 0)} update, "
                f"{event_dict.get('noop', 0)} unchanged, "
                f"{event_dict.get('skip', 0)} skipped"
            )

        elif event == "deck_created":
            return f"Created deck: {event_dict.get('deck', '')}"

        elif event == "card_failed":
            target = event_dict.get("block_uuid") or event_dict.get("remote_id") or "?"
            return f"Card {target} failed: {event_dict.get('error', 'unknown error')}"

        elif level == "ERROR":
            error = event_dict.get("error", event)
            return f"ERROR: {error}"

        elif level == "WARNING" and event in USER_FACING_EVENTS:
            return f"WARNING: {event}"

        return str(self._fallback(logger, method_name, event_dict))


DEFAULT_HIGH_VOLUME_EVENTS: dict[str, HighVolumeEventPolicy] = {
    # One per card on large graphs.
    "attachment_rejected": HighVolumeEventPolicy(5, 10.0),
    "template_not_found": HighVolumeEventPolicy(5, 10.0),
}

_configured = False
_handlers: list[logging.Handler] = []


def _base_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        add_log_level,
        add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _setup_structlog() -> None:
    """Configure structlog to hand events to standard library logging."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    structlog.configure(
        processors=[
            *_base_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(
    log_level: str = "INFO",
    log_dir: Path | None = None,
    verbose: bool = False,
    enable_file_logging: bool = True,
    enable_console_noise_filter: bool = True,
) -> None:
    """Configure structlog logging with console and rotating JSON file output.

    Args:
        log_level: Minimum console log level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files (default: ./logs)
        verbose: If True, show all log messages on terminal
        enable_file_logging: Write JSON logs to ``log_dir``
        enable_console_noise_filter: Rate-limit repetitive console events
    """
    global _configured

    _setup_structlog()

    root_logger = logging.getLogger()
    for handler in _handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _handlers.clear()

    level = _get_level_no(log_level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    console_handler.addFilter(UserFacingConsoleFilter(verbose=verbose))
    if enable_console_noise_filter:
        console_handler.addFilter(
            ConsoleNoiseFilter(high_volume_policies=DEFAULT_HIGH_VOLUME_EVENTS)
        )
    renderer: Any = (
        ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback)
        if verbose
        else UserFriendlyConsoleRenderer()
    )
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=_base_processors(),
        )
    )
    root_logger.addHandler(console_handler)
    _handlers.append(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = Path("./logs")
        log_dir.mkdir(exist_ok=True, parents=True)

        # 10MB per file, keep 5 backups
        file_handler = RotatingFileHandler(
            filename=str(log_dir / "logseq-mochi-sync.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=JSONRenderer(),
                foreign_pre_chain=_base_processors(),
            )
        )
        root_logger.addHandler(file_handler)
        _handlers.append(file_handler)

    _configured = True

    get_logger("logseq_mochi_sync.utils.logging").debug(
        "logging_configured",
        console_level=log_level,
        log_dir=str(log_dir) if log_dir else None,
        verbose=verbose,
    )


def get_logger(name: str) -> Any:
    """Get a structlog logger bound to ``name`` (typically ``__name__``)."""
    if not _configured:
        configure_logging(enable_file_logging=False)

    return structlog.get_logger(name)
