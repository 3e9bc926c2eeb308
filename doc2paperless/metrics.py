# metrics.py
# Upload counters shared by every per-file task.
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, generate_latest


class UploadMetrics:
    """
    Owns the pipeline counters and the registry they are exported from.

    Each instance gets its own CollectorRegistry so that tests (and several
    pipelines in one process) never collide on metric names. Counter.inc() is
    thread-safe, so the record_* hooks can be called from any task.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self.successful_uploads = Counter(
            "successful_uploads", "Number of successful uploads", registry=self.registry
        )
        self.failed_uploads = Counter(
            "failed_uploads", "Number of failed uploads", registry=self.registry
        )
        self.upload_retries = Counter(
            "upload_retries", "Number of upload retries", registry=self.registry
        )
        self.abandoned_files = Counter(
            "abandoned_files",
            "Number of files dropped during the stability check",
            registry=self.registry,
        )

    def record_success(self):
        self.successful_uploads.inc()

    def record_failure(self):
        self.failed_uploads.inc()

    def record_retry(self):
        self.upload_retries.inc()

    def record_abandoned(self):
        self.abandoned_files.inc()

    def snapshot(self) -> Dict[str, float]:
        return {
            name: self.registry.get_sample_value(f"{name}_total") or 0.0
            for name in ("successful_uploads", "failed_uploads", "upload_retries", "abandoned_files")
        }

    def render(self) -> bytes:
        """Prometheus text exposition of all counters."""
        return generate_latest(self.registry)
