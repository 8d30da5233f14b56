"""Fetch-then-aggregate wrapper that owns the loading flag and the fallback.

A storage failure during refresh is logged and swallowed: the previous
snapshot (initially the all-zero one) stays in place and is marked stale.
Nothing is retried here, and a fetch still in flight when the other one
fails is cancelled.
"""

import asyncio
import logging
from datetime import UTC, datetime

from src.inventory.repository import InventoryRepository
from src.observability.metrics import REPORTS_TOTAL, SECURITY_SCORE
from src.report.generator import ReportSnapshot, compute_snapshot, empty_snapshot
from src.storage.client import StorageError

logger = logging.getLogger(__name__)


class ReportLoader:
    """Holds the last-known report snapshot for one calling surface."""

    def __init__(self, repository: InventoryRepository) -> None:
        self.repository = repository
        self.snapshot: ReportSnapshot = empty_snapshot()
        self.loading = False
        self.stale = False
        self.last_error: str | None = None
        self.refreshed_at: datetime | None = None

    async def refresh(self) -> ReportSnapshot:
        """Fetch both collections concurrently and recompute the snapshot.

        Returns:
            The new snapshot, or the last-known one if the fetch failed.
        """
        self.loading = True
        fetches = (
            asyncio.create_task(self.repository.list_credentials()),
            asyncio.create_task(self.repository.list_addresses()),
        )
        try:
            credentials, addresses = await asyncio.gather(*fetches)
            snapshot = compute_snapshot(credentials, addresses)
        except StorageError as exc:
            # Cancel whichever fetch is still pending
            for task in fetches:
                _ = task.cancel()
            logger.warning("Report refresh failed, keeping last snapshot: %s", exc)
            REPORTS_TOTAL.labels(status="error").inc()
            self.stale = True
            self.last_error = str(exc)
            return self.snapshot
        finally:
            self.loading = False

        self.snapshot = snapshot
        self.stale = False
        self.last_error = None
        self.refreshed_at = datetime.now(UTC)
        REPORTS_TOTAL.labels(status="success").inc()
        SECURITY_SCORE.set(self.snapshot["security_score"])
        return self.snapshot
