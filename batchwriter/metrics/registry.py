from prometheus_client import Counter, Histogram

BATCH_FLUSH_TOTAL = Counter(
    "batchwriter_flush_total",
    "Multi-row INSERT flushes by table and outcome",
    ["table", "status"],
)

BATCH_FLUSH_ROWS_TOTAL = Counter(
    "batchwriter_flush_rows_total",
    "Rows sent to the database in flushed batches",
    ["table"],
)

BATCH_FLUSH_LATENCY_SECONDS = Histogram(
    "batchwriter_flush_latency_seconds",
    "Time spent building and executing one flush",
    ["table"],
)
