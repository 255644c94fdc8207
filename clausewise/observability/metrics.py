import json
import logging
import os
import threading
from typing import List, Optional


logger = logging.getLogger(__name__)


class MetricsTracker:
    """
    Request and retrieval counters, optionally persisted to JSON.
    """

    def __init__(self, path: Optional[str] = None):

        self._path = path
        self._lock = threading.Lock()

        self._metrics = {

            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,

            "total_latency": 0.0,
            "avg_latency": 0.0,

            # latency history for percentiles
            "latencies": [],

            "retrievals": 0,
            "degraded_retrievals": 0,
            "fallback_retrievals": 0,
            "embedding_cache_hits": 0,
            "embeddings_requested": 0,
            "embeddings_backfilled": 0,

        }

        self._load()

    def _load(self):

        if not self._path or not os.path.exists(self._path):
            return

        try:

            with open(self._path, "r") as f:
                data = json.load(f)

            self._metrics.update(data)

        except (OSError, ValueError) as e:

            logger.warning(
                "Metrics load failed; starting fresh",
                extra={"error": str(e)},
            )

    def _save(self):

        if not self._path:
            return

        directory = os.path.dirname(self._path)

        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(self._path, "w") as f:
            json.dump(self._metrics, f, indent=2)

    def record_success(self, latency: float):

        with self._lock:

            self._metrics["total_requests"] += 1

            self._metrics["successful_requests"] += 1

            self._metrics["total_latency"] += latency

            self._metrics["avg_latency"] = (
                self._metrics["total_latency"]
                / self._metrics["successful_requests"]
            )

            self._metrics["latencies"].append(latency)

            self._save()

    def record_failure(self):

        with self._lock:

            self._metrics["total_requests"] += 1

            self._metrics["failed_requests"] += 1

            self._save()

    def record_retrieval(self, diagnostics):

        with self._lock:

            self._metrics["retrievals"] += 1

            if diagnostics.degraded:
                self._metrics["degraded_retrievals"] += 1

            if diagnostics.used_fallback_chunks:
                self._metrics["fallback_retrievals"] += 1

            self._metrics["embedding_cache_hits"] += diagnostics.cache_hits
            self._metrics["embeddings_requested"] += diagnostics.embeddings_requested
            self._metrics["embeddings_backfilled"] += diagnostics.backfilled

            self._save()

    def get_metrics(self):

        with self._lock:

            metrics = {
                k: v for k, v in self._metrics.items()
                if k != "latencies"
            }

        metrics["p50_latency"] = self.get_latency_percentile(50)
        metrics["p95_latency"] = self.get_latency_percentile(95)

        return metrics

    def get_latency_percentile(self, percentile: float) -> float:

        with self._lock:
            latencies: List[float] = list(self._metrics.get("latencies", []))

        if not latencies:
            return 0.0

        sorted_latencies = sorted(latencies)

        index = int(len(sorted_latencies) * percentile / 100)

        index = min(index, len(sorted_latencies) - 1)

        return sorted_latencies[index]
