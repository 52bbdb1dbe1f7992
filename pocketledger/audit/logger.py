"""
Audit Logger

DESIGN DECISION: Every committed change in the ledger is logged.
This provides:
1. Traceability of what changed and when
2. A visible trail of changes that never reached disk

The audit logger is just another change observer. It only reads the
event, so it can never trip the reentrancy guard.
"""

import logging
import sys
from collections import deque
from typing import Any, Optional

import structlog

from pocketledger.events.notifier import ChangeNotifier, Subscription
from pocketledger.models.events import ChangeEvent


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Install the structlog processor chain on top of stdlib logging.

    Args:
        level: Minimum level name, e.g. "INFO"
        json_logs: JSON lines if True, human-readable console output otherwise
    """
    logging.basicConfig(format="%(message)s", stream=sys.stderr)
    logging.getLogger("pocketledger").setLevel(level.upper())

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
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
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Logs one structured line per change event and keeps a short
    in-memory history of recent events.
    """

    def __init__(
        self,
        notifier: ChangeNotifier,
        history_size: int = 100,
        logger: Optional[Any] = None,
    ):
        """
        Args:
            notifier: Notifier to observe
            history_size: How many recent events to remember
            logger: structlog-style logger (default: module logger)
        """
        self._logger = logger or structlog.get_logger(__name__)
        self._history: deque[ChangeEvent] = deque(maxlen=history_size)
        self._subscription: Optional[Subscription] = notifier.subscribe(self.log)

    def log(self, event: ChangeEvent) -> None:
        """Record a change event."""
        self._history.append(event)
        log_dict = event.to_log_dict()

        if not event.persisted:
            self._logger.warning("change_not_persisted", **log_dict)
        else:
            self._logger.info("change_event", **log_dict)

    def recent_events(
        self,
        limit: int = 20,
        family: Optional[str] = None,
    ) -> list[ChangeEvent]:
        """Most recent events first."""
        events = [
            e for e in reversed(self._history)
            if family is None or e.family == family
        ]
        return events[:limit]

    def close(self) -> None:
        """Stop observing."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
