"""Prometheus metrics for the discovery pipeline.

All collectors are registered on the default prometheus_client registry at
import time; callers only ever ``.labels(...).inc()`` or ``.observe()``.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

fetches_total = Counter(
    "kustviz_fetches_total",
    "Remote file fetches by provider and outcome.",
    ["provider", "outcome"],
)

ref_listings_total = Counter(
    "kustviz_ref_listings_total",
    "Branch/tag listings issued against a provider API.",
    ["provider"],
)

crawl_nodes_total = Counter(
    "kustviz_crawl_nodes_total",
    "Configuration units produced by the crawler.",
    ["status"],  # loaded | error
)

crawl_duration_seconds = Histogram(
    "kustviz_crawl_duration_seconds",
    "Wall-clock duration of a full crawl.",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

cycles_detected_total = Counter(
    "kustviz_cycles_detected_total",
    "Elementary cycles reported by the cycle detector.",
)
