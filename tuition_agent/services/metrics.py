"""CloudWatch custom metrics for every external call the agent makes.

Services tracked: ``anthropic`` (chat completions), ``sheets`` (schedule and
knowledge tabs), ``supabase`` (vector store) and ``gemini`` (embeddings).

Data points are buffered in memory and pushed by a daemon thread every
``FLUSH_INTERVAL_SECONDS`` when ``METRICS_ENABLED=true``.  Otherwise they
are only logged at DEBUG level and dropped on flush.

Usage
-----
>>> from tuition_agent.services.metrics import metrics
>>> with metrics.track("sheets", "values.get"):
...     rows = request.execute()
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "TuitionCentre"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # CloudWatch API limit per PutMetricData call


def _datum(
    name: str,
    dimensions: dict[str, str],
    value: float,
    unit: str,
    timestamp: datetime,
) -> dict[str, Any]:
    return {
        "MetricName": name,
        "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
        "Timestamp": timestamp,
        "Value": value,
        "Unit": unit,
    }


class MetricsClient:
    """Buffered CloudWatch publisher for external-call outcomes."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Public API ────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        """Record one successful call and its latency."""
        now = datetime.now(UTC)
        self._extend(
            _datum("ExternalCall/Count", {"Service": service, "Status": "success"}, 1, "Count", now),
            _datum(
                "ExternalCall/Latency",
                {"Service": service, "Operation": operation},
                latency_ms, "Milliseconds", now,
            ),
        )
        logger.debug("Metric: %s %s ok %.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        """Record one failed call; latency is only kept when measured."""
        now = datetime.now(UTC)
        points = [
            _datum("ExternalCall/Count", {"Service": service, "Status": "failure"}, 1, "Count", now),
            _datum("ExternalCall/Errors", {"Service": service, "ErrorType": error_type}, 1, "Count", now),
        ]
        if latency_ms > 0:
            points.append(
                _datum(
                    "ExternalCall/Latency",
                    {"Service": service, "Operation": operation},
                    latency_ms, "Milliseconds", now,
                )
            )
        self._extend(*points)
        logger.debug(
            "Metric: %s %s failed (%s) %.1fms", service, operation, error_type, latency_ms,
        )

    @contextmanager
    def track(self, service: str, operation: str) -> Iterator[None]:
        """Time the wrapped block and record its outcome.

        Exceptions are recorded by type name and re-raised unchanged.
        """
        t0 = time.perf_counter()
        try:
            yield
        except Exception as exc:
            self.record_failure(
                service, operation,
                error_type=type(exc).__name__,
                latency_ms=(time.perf_counter() - t0) * 1000,
            )
            raise
        self.record_success(service, operation, latency_ms=(time.perf_counter() - t0) * 1000)

    def flush(self) -> int:
        """Send buffered data points to CloudWatch.  Returns count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer[:]
            self._buffer.clear()

        if not self._enabled:
            logger.debug("Metrics flush skipped (not enabled): %d items", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    # ── Internal ──────────────────────────────────────────────────────

    def _extend(self, *points: dict[str, Any]) -> None:
        with self._lock:
            self._buffer.extend(points)

    def _start_flush_thread(self) -> None:
        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        t = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        t.start()
        atexit.register(self.flush)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


metrics = MetricsClient()
