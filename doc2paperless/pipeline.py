# pipeline.py
import logging
import queue
import threading
from pathlib import Path
from typing import List, Optional

from .stability import StabilityDetector
from .retry import RetryingUploader

logger = logging.getLogger(__name__)

# How often idle dispatchers look at the shutdown event
DISPATCH_POLL_SECONDS = 0.5


class Pipeline:
    """
    Wires the three stages together.

    Candidates from the watcher go onto `candidates`; one thread per candidate
    runs the stability check and puts stable paths onto `stable`; one thread per
    stable path runs the upload loop. Both queues are unbounded and nothing caps
    the number of files in flight. Per-file threads are daemons and are not
    cancelled, except through the shared shutdown event.
    """

    def __init__(self, detector: StabilityDetector, retrying_uploader: RetryingUploader,
                 shutdown_event: threading.Event):
        self.detector = detector
        self.retrying_uploader = retrying_uploader
        self.shutdown_event = shutdown_event
        self.candidates: "queue.Queue[Path]" = queue.Queue()
        self.stable: "queue.Queue[Path]" = queue.Queue()
        self._dispatchers: List[threading.Thread] = []
        self._workers: List[threading.Thread] = []
        self._workers_lock = threading.Lock()

    def submit(self, filepath: Path):
        """Entry point for the watcher: queue a candidate path."""
        self.candidates.put(Path(filepath))

    def start(self):
        self._dispatchers = [
            threading.Thread(target=self._dispatch, args=(self.candidates, self._check_stability),
                             name="stability-dispatcher", daemon=True),
            threading.Thread(target=self._dispatch, args=(self.stable, self._upload),
                             name="upload-dispatcher", daemon=True),
        ]
        for thread in self._dispatchers:
            thread.start()
        logger.debug("Pipeline dispatchers started.")

    def _dispatch(self, source: "queue.Queue[Path]", target):
        while not self.shutdown_event.is_set():
            try:
                filepath = source.get(timeout=DISPATCH_POLL_SECONDS)
            except queue.Empty:
                continue
            self._spawn(target, filepath)
        logger.debug(f"{threading.current_thread().name} stopped.")

    def _spawn(self, target, filepath: Path):
        worker = threading.Thread(target=target, args=(filepath,), name=f"{target.__name__}:{filepath.name}",
                                  daemon=True)
        with self._workers_lock:
            self._workers = [t for t in self._workers if t.is_alive()]
            self._workers.append(worker)
        worker.start()

    def _check_stability(self, filepath: Path):
        self.detector.check_file(filepath, self.stable.put)

    def _upload(self, filepath: Path):
        self.retrying_uploader.upload_until_done(filepath)

    def join(self, timeout: Optional[float] = None):
        """Waits for dispatchers and per-file threads after the shutdown event is set."""
        for thread in self._dispatchers:
            thread.join(timeout)
        with self._workers_lock:
            workers = list(self._workers)
        for thread in workers:
            thread.join(timeout)
