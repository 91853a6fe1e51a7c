"""
User API Backend — Metrics Client
===================================

What:  Timing metrics recorded into Prometheus histograms.
Why:   Query latency is the one operational number this service reports;
       it is exposed at GET /metrics for scraping.
How:   `MetricsClient.timing(name, milliseconds)` maps a dotted metric name
       onto a histogram (`database.query.duration` →
       `database_query_duration_seconds`) created on first use.
Who:   QueryInstrumentation (userapi.database) and the /metrics route.
"""

import logging
import threading
from typing import Dict, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Histogram

logger = logging.getLogger(__name__)

# Query latencies are mostly sub-second
TIMING_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def histogram_name(metric_name: str) -> str:
    """Converts a dotted metric name into a Prometheus histogram name."""
    return metric_name.replace(".", "_").replace("-", "_") + "_seconds"


class MetricsClient:
    """
    Records timing observations.

    Each distinct metric name gets one Histogram in `registry`. Tests pass
    a fresh CollectorRegistry so instances never collide.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY
        self._histograms: Dict[str, Histogram] = {}
        self._lock = threading.Lock()

    def timing(self, name: str, milliseconds: float) -> None:
        """Records one duration, given in milliseconds."""
        self._histogram(name).observe(max(milliseconds, 0.0) / 1000.0)

    def _histogram(self, name: str) -> Histogram:
        histogram = self._histograms.get(name)
        if histogram is not None:
            return histogram
        with self._lock:
            histogram = self._histograms.get(name)
            if histogram is None:
                histogram = Histogram(
                    histogram_name(name),
                    f"Timing of {name}",
                    buckets=TIMING_BUCKETS,
                    registry=self.registry,
                )
                self._histograms[name] = histogram
                logger.debug("Registered timing histogram %s", histogram_name(name))
        return histogram


# Process-wide client bound to the default registry
metrics = MetricsClient()
