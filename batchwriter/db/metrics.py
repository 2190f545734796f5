from __future__ import annotations

import logging

from ..metrics.registry import (
    BATCH_FLUSH_LATENCY_SECONDS,
    BATCH_FLUSH_ROWS_TOTAL,
    BATCH_FLUSH_TOTAL,
)

logger = logging.getLogger(__name__)


def observe_flush(table: str, status: str, rows: int, latency_s: float) -> None:
    """
    Record one flush. Metric failures are logged, never raised.
    """
    try:
        BATCH_FLUSH_TOTAL.labels(table=table, status=status).inc()
        BATCH_FLUSH_LATENCY_SECONDS.labels(table=table).observe(latency_s)
        if status == "success":
            BATCH_FLUSH_ROWS_TOTAL.labels(table=table).inc(rows)
    except Exception:
        logger.exception("Failed to record flush metrics for %s", table)
