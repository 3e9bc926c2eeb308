# conftest.py
import io
import threading
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from doc2paperless.filesystem import DirEntry
from doc2paperless.metrics import UploadMetrics


class FakeFileSystem:
    """
    In-memory stand-in for LocalFileSystem.

    `sizes` maps a path to the sequence of sizes get_size() reports; the last
    value repeats once the sequence is used up. Without an entry the length of
    the file content is reported.
    """

    def __init__(self, files=None, sizes=None, directories=()):
        self.files = {str(k): v for k, v in (files or {}).items()}
        self.sizes = {str(k): list(v) for k, v in (sizes or {}).items()}
        self.directories = set(directories)
        self.removed = []
        self.remove_error = None
        self.list_error = None
        self._lock = threading.Lock()

    def list_dir(self, directory):
        if self.list_error:
            raise self.list_error
        prefix = str(directory).rstrip("/") + "/"
        entries = [DirEntry(Path(p).name, False) for p in self.files if p.startswith(prefix)]
        entries += [DirEntry(name, True) for name in self.directories]
        return entries

    def get_size(self, filepath):
        key = str(filepath)
        with self._lock:
            if key not in self.files:
                raise FileNotFoundError(f"No such file: {key}")
            pending = self.sizes.get(key)
            if pending:
                return pending.pop(0) if len(pending) > 1 else pending[0]
            return len(self.files[key])

    def open(self, filepath):
        key = str(filepath)
        if key not in self.files:
            raise FileNotFoundError(f"No such file: {key}")
        return io.BytesIO(self.files[key])

    def remove(self, filepath):
        if self.remove_error:
            raise self.remove_error
        key = str(filepath)
        with self._lock:
            if key not in self.files:
                raise FileNotFoundError(f"No such file: {key}")
            del self.files[key]
            self.removed.append(key)


class FakeResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


class FakeSession:
    """
    Replays scripted outcomes for send(): an int status, a (status, body) pair,
    or an exception instance to raise. The last outcome repeats.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or [200]
        self.sent = []
        self._lock = threading.Lock()

    def send(self, prepared, timeout=None):
        with self._lock:
            self.sent.append((prepared, timeout))
            outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, tuple):
            return FakeResponse(*outcome)
        return FakeResponse(outcome)


class RecordingEvent(threading.Event):
    """
    Shutdown event whose wait() returns at once and records the requested delay.
    After `stop_after` waits it sets itself, which ends any loop using it.
    """

    def __init__(self, stop_after=None):
        super().__init__()
        self.stop_after = stop_after
        self.waits = []

    def wait(self, timeout=None):
        self.waits.append(timeout)
        if self.stop_after is not None and len(self.waits) >= self.stop_after:
            self.set()
        return self.is_set()


@pytest.fixture
def temp_dir():
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def metrics():
    return UploadMetrics()
