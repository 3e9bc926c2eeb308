# retry.py
import logging
import threading
from pathlib import Path

from .metrics import UploadMetrics
from .uploader import DocumentUploader, UploadError

logger = logging.getLogger(__name__)


class RetryingUploader:
    """
    Uploads a stable file until it succeeds, then deletes it.

    There is no attempt limit and the delay between attempts never grows; the
    loop only ends on success or when the shutdown event is set.
    """

    def __init__(self, uploader: DocumentUploader, filesystem, retry_delay: float,
                 metrics: UploadMetrics, shutdown_event: threading.Event):
        self.uploader = uploader
        self.fs = filesystem
        self.retry_delay = retry_delay
        self.metrics = metrics
        self.shutdown_event = shutdown_event

    def upload_until_done(self, filepath: Path) -> bool:
        """Returns True once the file is uploaded, False if shutdown interrupted the retries."""
        attempt = 0
        while True:
            attempt += 1
            try:
                self.uploader.upload(filepath)
            except UploadError as e:
                self.metrics.record_failure()
                if e.counts_as_retry:
                    self.metrics.record_retry()
                logger.warning(
                    f"Failed to upload: {filepath} (attempt {attempt}): {e}. "
                    f"Retrying in {self.retry_delay}s..."
                )
                if self.shutdown_event.wait(self.retry_delay):
                    logger.info(f"Shutdown requested. Giving up on {filepath} for now; the file is kept.")
                    return False
                continue

            self.metrics.record_success()
            logger.info(f"Successfully uploaded: {filepath}")
            self._remove(filepath)
            return True

    def _remove(self, filepath: Path):
        try:
            self.fs.remove(filepath)
            logger.debug(f"Removed {filepath} after upload.")
        except OSError as e:
            # The upload already went through; a leftover file is only logged
            logger.error(f"Uploaded {filepath} but could not remove it: {e}")
