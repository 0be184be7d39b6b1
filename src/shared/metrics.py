"""Domain metrics for batch dispatch and AI jobs.

Exposed through the /metrics endpoint alongside the HTTP golden signals.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# -- Batch dispatch --
BATCH_ITEMS_TOTAL = Counter(
    "batch_dispatch_items_total",
    "Batch dispatch items by channel and outcome",
    ["channel", "status"],
)

BATCH_DURATION = Histogram(
    "batch_dispatch_duration_seconds",
    "Wall-clock duration of a whole batch dispatch",
    ["channel"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# -- AI jobs --
AI_JOBS_TOTAL = Counter(
    "ai_jobs_total",
    "AI jobs by kind and terminal status",
    ["kind", "status"],
)

AI_RESPONSE_SECONDS = Histogram(
    "ai_response_seconds",
    "LLM call latency for AI jobs",
    ["model"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 80.0),
)
