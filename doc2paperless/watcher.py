# watcher.py
import fnmatch
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class WatcherStartupError(RuntimeError):
    """The consume folder could not be watched or listed."""


def is_allowed(filename: str, allow_list: Sequence[str]) -> bool:
    """
    True if the file's lowercase extension (".pdf") matches any glob in allow_list.
    An empty allow_list lets every file through.
    """
    if not allow_list:
        return True
    extension = os.path.splitext(filename)[1].lower()
    return any(fnmatch.fnmatchcase(extension, pattern.lower()) for pattern in allow_list)


class CandidateHandler(FileSystemEventHandler):
    """
    Forwards allowed files that appear in the folder to the candidate callback.

    A file appears either by being created or by being renamed into the folder
    (writers often finish "scan.tmp" and rename it to "scan.pdf").
    """

    def __init__(self, allow_list: Sequence[str], on_candidate: Callable[[Path], None],
                 watch_dir: Optional[Path] = None):
        self.allow_list = allow_list
        self.on_candidate = on_candidate
        self.watch_dir = Path(watch_dir) if watch_dir is not None else None

    def on_created(self, event):
        self._forward(event, event.src_path)

    def on_moved(self, event):
        self._forward(event, event.dest_path)

    def _forward(self, event, raw_path):
        # An exception escaping here would stop the observer thread
        try:
            if event.is_directory:
                return
            filepath = Path(os.fsdecode(raw_path))
            if self.watch_dir is not None and filepath.parent != self.watch_dir:
                logger.debug(f"Ignoring {filepath}: not directly inside {self.watch_dir}.")
                return
            if not is_allowed(filepath.name, self.allow_list):
                logger.debug(f"Ignoring {filepath}: not in allow-list.")
                return
            logger.info(f"Detected new file. Starting stability check for: {filepath}")
            self.on_candidate(filepath)
        except Exception as e:
            logger.error(f"Error handling filesystem event {event!r}: {e}", exc_info=True)


class DirectoryWatcher:
    """
    Feeds candidate paths from the consume folder.

    start() subscribes to creation events first and then lists what is already
    in the folder, so nothing written in between is missed. Both steps must
    succeed or start() raises WatcherStartupError.
    """

    def __init__(self, watch_dir: Path, allow_list: Sequence[str], filesystem,
                 on_candidate: Callable[[Path], None], observer_factory=Observer):
        self.watch_dir = Path(watch_dir)
        self.allow_list = list(allow_list)
        self.fs = filesystem
        self.on_candidate = on_candidate
        self.handler = CandidateHandler(self.allow_list, on_candidate, self.watch_dir)
        self.observer = observer_factory()

    def start(self):
        try:
            self.observer.schedule(self.handler, str(self.watch_dir), recursive=False)
            self.observer.start()
        except OSError as e:
            raise WatcherStartupError(f"Could not watch {self.watch_dir}: {e}") from e

        try:
            existing = self.scan_existing()
        except OSError as e:
            self.stop()
            raise WatcherStartupError(f"Could not list {self.watch_dir}: {e}") from e

        logger.info(f"Watching {self.watch_dir}. {len(existing)} existing file(s) queued for stability check.")
        for filepath in existing:
            self.on_candidate(filepath)

    def scan_existing(self) -> List[Path]:
        return [
            self.watch_dir / entry.name
            for entry in sorted(self.fs.list_dir(self.watch_dir))
            if not entry.is_dir and is_allowed(entry.name, self.allow_list)
        ]

    def stop(self):
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join()
