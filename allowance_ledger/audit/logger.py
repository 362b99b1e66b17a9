"""
Audit Logger

DESIGN DECISION: Every change to the ledger, and every failure to store
or share it, is logged. This provides:
1. Complete traceability of who-got-paid-what
2. Debugging capability for replication problems
3. A record of failures the store deliberately keeps from the caller

The audit logger:
- Is synchronous; the ledger store calls it inline as events happen
- Never raises into the store (a failing log call is reported and dropped)
"""

from typing import Any, Optional

import structlog

from allowance_ledger.models.events import (
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventSeverity,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Writes each LedgerEvent to the structured log at the event's severity.
    """

    def __init__(self, logger: Optional[Any] = None):
        """
        Initialize audit logger.

        Args:
            logger: Logger to write to. Defaults to a structlog logger.
        """
        self._logger = logger or structlog.get_logger("allowance_ledger.audit")

    def log(self, event: LedgerEvent) -> bool:
        """
        Log a ledger event.

        Returns True if the event was written.
        """
        log_dict = event.to_log_dict()

        if event.severity == LedgerEventSeverity.ERROR:
            write = self._logger.error
        elif event.severity == LedgerEventSeverity.WARNING:
            write = self._logger.warning
        elif event.severity == LedgerEventSeverity.DEBUG:
            write = self._logger.debug
        else:
            write = self._logger.info

        try:
            write("ledger_event", **log_dict)
        except Exception as e:
            # Logging must never take the ledger down with it
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=log_dict["event_id"],
            )
            return False
        return True

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error that is not tied to a ledger operation."""
        event = LedgerEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
        )
        self.log(event)
