"""Structured logging for sync, targeting and persistence."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class StructuredSyncLogger:
    """Structured logger for cross-surface synchronization."""

    def log_propagation(
        self,
        source: str,
        target: str,
        destination_id: str,
        city: str,
        action: str,
    ) -> None:
        """Log one propagation outcome."""
        log_data: dict[str, Any] = {
            "source": source,
            "target": target,
            "destination_id": destination_id,
            "city": city,
            "action": action,
        }

        log_msg = f"Propagation {source} -> {target}: {city} ({action})"

        if action == "blocked":
            logger.warning(log_msg, extra={"structured": log_data})
        else:
            logger.info(log_msg, extra={"structured": log_data})

    def log_targeting(
        self,
        domain: str,
        status: str,
        attempted_city: str | None,
        matched: int,
        skipped_fields: int = 0,
    ) -> None:
        """Log a chat targeting outcome."""
        log_data: dict[str, Any] = {
            "domain": domain,
            "status": status,
            "attempted_city": attempted_city,
            "matched": matched,
            "skipped_fields": skipped_fields,
        }

        log_msg = f"Chat targeting ({domain}): {status}"

        if status == "applied":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_snapshot(self, store: str, outcome: str, error_reason: str | None = None) -> None:
        """Log a snapshot load or write."""
        log_data: dict[str, Any] = {"store": store, "outcome": outcome}

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Snapshot {store}: {outcome}"

        if error_reason:
            logger.warning(log_msg, extra={"structured": log_data})
        else:
            logger.debug(log_msg, extra={"structured": log_data})


sync_logger = StructuredSyncLogger()
