"""
Alerting collaborator.

Operations report failures they cannot act on (side writes that did not
land, inconsistent rows) to an injected sink instead of a global tracker.
"""

import logging
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


class AlertSink:
    """Interface for failure/alert reporting."""

    def record_failure(self, operation: str, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError

    def record_inconsistency(self, subject: str, issues: list, context: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError


class LoggingAlertSink(AlertSink):
    """Reports alerts through the application log."""

    def record_failure(self, operation, error, context=None):
        logger.error(
            "Operation failure",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error": str(error),
                **(context or {}),
            },
        )

    def record_inconsistency(self, subject, issues, context=None):
        logger.warning(
            "State inconsistency detected",
            extra={"subject": subject, "issues": issues, **(context or {})},
        )
