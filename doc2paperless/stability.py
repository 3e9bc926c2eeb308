# stability.py
import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from .metrics import UploadMetrics

logger = logging.getLogger(__name__)


class StabilityDetector:
    """
    Decides when a candidate file has stopped growing.

    One check_file() call runs per candidate, each in its own thread. A file is
    stable once its size has read the same `check_count` times in a row, with
    `check_interval` seconds between readings. The first reading only seeds the
    comparison, so a freshly created empty file is not counted early.
    """

    def __init__(self, filesystem, check_interval: float, check_count: int,
                 metrics: UploadMetrics, shutdown_event: threading.Event):
        self.fs = filesystem
        self.check_interval = check_interval
        self.check_count = check_count
        self.metrics = metrics
        self.shutdown_event = shutdown_event

    def check_file(self, filepath: Path, on_stable: Callable[[Path], None]) -> bool:
        """
        Samples filepath until it is stable, then calls on_stable(filepath).
        Returns False if the file was abandoned or shutdown was requested first.
        """
        last_size: Optional[int] = None
        stable_checks = 0

        while True:
            logger.debug(
                f"Checking stability for {filepath} "
                f"Consecutive readings with same size: {stable_checks}/{self.check_count}"
            )
            try:
                current_size = self.fs.get_size(filepath)
            except OSError as e:
                logger.warning(f"Abandoning {filepath}: could not get size ({e}). It will not be uploaded.")
                self.metrics.record_abandoned()
                return False

            if current_size == last_size:
                stable_checks += 1
                if stable_checks >= self.check_count:
                    logger.info(
                        f"{filepath} size stable at {current_size} bytes for "
                        f"{stable_checks}/{self.check_count} readings. Ready for upload."
                    )
                    on_stable(filepath)
                    return True
            else:
                if last_size is not None:
                    logger.debug(f"{filepath} size changed from {last_size} to {current_size}. Resetting checks.")
                stable_checks = 0

            last_size = current_size
            if self.shutdown_event.wait(self.check_interval):
                logger.info(f"Shutdown requested. Stopping stability check for {filepath}.")
                return False
