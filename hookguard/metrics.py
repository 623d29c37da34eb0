"""
Prometheus metrics for the HookGuard service.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
import psutil
import os


class Metrics:
    """
    Centralized metrics for HookGuard.

    Each instance owns its registry, so several apps (tests) can coexist in
    one process.
    """

    def __init__(self, service_name: str = "hookguard", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Business Metrics - webhook intake
        self.webhooks_received_total = Counter(
            "hookguard_webhooks_received_total",
            "Webhooks accepted into the store",
            ["source", "verified"],
            registry=self.registry,
        )

        self.webhooks_rate_limited_total = Counter(
            "hookguard_webhooks_rate_limited_total",
            "Webhook submissions rejected by the rate limiter",
            registry=self.registry,
        )

        self.webhooks_evicted_total = Counter(
            "hookguard_webhooks_evicted_total",
            "Stored webhooks evicted to stay within capacity",
            registry=self.registry,
        )

        self.webhooks_stored = Gauge(
            "hookguard_webhooks_stored",
            "Number of webhooks currently held in the store",
            registry=self.registry,
        )

        self.payload_size_bytes = Histogram(
            "hookguard_payload_size_bytes",
            "Canonical webhook payload size in bytes",
            buckets=(128, 512, 1024, 4096, 16384, 65536),
            registry=self.registry,
        )

        # System Metrics
        self._setup_process_metrics()

    def _setup_process_metrics(self):
        """Set up process-level metrics using psutil."""
        self.process_memory_bytes = Gauge(
            "process_resident_memory_bytes",
            "Resident memory size in bytes",
            ["service"],
            registry=self.registry,
        )

        self.process_open_fds = Gauge(
            "process_open_fds",
            "Number of open file descriptors",
            ["service"],
            registry=self.registry,
        )

        self.update_system_metrics()

    def update_system_metrics(self):
        """Update system metrics from psutil."""
        process = psutil.Process(os.getpid())
        self.process_memory_bytes.labels(service=self.service_name).set(process.memory_info().rss)

        # num_fds() is POSIX only
        if hasattr(process, "num_fds"):
            self.process_open_fds.labels(service=self.service_name).set(process.num_fds())

    def record_webhook_received(self, source: str, verified: bool, size_bytes: int):
        """Record an accepted webhook."""
        self.webhooks_received_total.labels(source=source, verified=str(verified).lower()).inc()
        self.payload_size_bytes.observe(size_bytes)

    def record_rate_limited(self):
        self.webhooks_rate_limited_total.inc()

    def record_evicted(self):
        self.webhooks_evicted_total.inc()

    def set_stored_webhooks(self, count: int):
        """Set the number of stored webhooks."""
        self.webhooks_stored.set(count)
