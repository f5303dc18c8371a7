"""Per-endpoint RPC counters: attempts, latency and failures by kind.

Thread-safe counters owned by an RpcClient instance; logged when the
scanner closes and read by tests to observe rotation.
"""

import time
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class EndpointMetrics:
    """Metrics for a single RPC endpoint."""

    attempts: int = 0
    successes: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    failures: dict[str, int] = field(default_factory=dict)

    @property
    def failure_count(self) -> int:
        return sum(self.failures.values())

    @property
    def avg_latency_ms(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.total_latency_ms / self.attempts

    @property
    def success_rate(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.successes / self.attempts


class RpcMetrics:
    """Per-endpoint accumulator for one RPC client."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._endpoints: dict[str, EndpointMetrics] = {}
        self._exhausted: int = 0
        self._start_time: float = time.monotonic()

    def _get_endpoint(self, endpoint: str) -> EndpointMetrics:
        if endpoint not in self._endpoints:
            self._endpoints[endpoint] = EndpointMetrics()
        return self._endpoints[endpoint]

    def _record_latency(self, em: EndpointMetrics, latency_ms: float) -> None:
        em.attempts += 1
        em.total_latency_ms += latency_ms
        if latency_ms > em.max_latency_ms:
            em.max_latency_ms = latency_ms

    def record_success(self, endpoint: str, latency_ms: float) -> None:
        with self._lock:
            em = self._get_endpoint(endpoint)
            self._record_latency(em, latency_ms)
            em.successes += 1

    def record_failure(self, endpoint: str, kind: str, latency_ms: float) -> None:
        """Record a failed attempt; kind is the error class name."""
        with self._lock:
            em = self._get_endpoint(endpoint)
            self._record_latency(em, latency_ms)
            em.failures[kind] = em.failures.get(kind, 0) + 1

    def record_exhausted(self) -> None:
        with self._lock:
            self._exhausted += 1

    def attempts(self, endpoint: str | None = None) -> int:
        """Total attempts, for one endpoint or across all of them."""
        with self._lock:
            if endpoint is not None:
                em = self._endpoints.get(endpoint)
                return em.attempts if em else 0
            return sum(em.attempts for em in self._endpoints.values())

    def get_summary(self) -> dict:
        """Return a snapshot of all metrics."""
        with self._lock:
            summary: dict = {
                "uptime_sec": round(time.monotonic() - self._start_time),
                "exhausted_calls": self._exhausted,
                "endpoints": {},
            }
            for url, em in self._endpoints.items():
                summary["endpoints"][url] = {
                    "attempts": em.attempts,
                    "successes": em.successes,
                    "success_rate": round(em.success_rate, 3),
                    "avg_latency_ms": round(em.avg_latency_ms),
                    "max_latency_ms": round(em.max_latency_ms),
                    "failures": dict(em.failures),
                }
            return summary

    def format_stats_line(self) -> str:
        """One-line summary for log output."""
        with self._lock:
            attempts = sum(em.attempts for em in self._endpoints.values())
            successes = sum(em.successes for em in self._endpoints.values())
            failures = sum(em.failure_count for em in self._endpoints.values())
            return (
                f"endpoints={len(self._endpoints)} attempts={attempts} "
                f"ok={successes} failed={failures} exhausted={self._exhausted}"
            )
