# test_stability.py
import logging
import queue
import threading

from conftest import FakeFileSystem, RecordingEvent

from doc2paperless.stability import StabilityDetector

PDF = "/consumefolder/test.pdf"


def make_detector(fs, metrics, event, count=3, interval=0.5):
    return StabilityDetector(fs, check_interval=interval, check_count=count, metrics=metrics, shutdown_event=event)


def test_constant_size_is_reported_stable_once(metrics):
    fs = FakeFileSystem(files={PDF: b"test content"})
    event = RecordingEvent(stop_after=50)
    stable = []

    detector = make_detector(fs, metrics, event, count=3, interval=0.5)
    assert detector.check_file(PDF, stable.append) is True

    assert stable == [PDF]
    # First reading seeds the size, the next three confirm it
    assert event.waits == [0.5, 0.5, 0.5]


def test_size_changing_on_every_sample_is_never_stable(metrics, caplog):
    fs = FakeFileSystem(files={PDF: b"x"}, sizes={PDF: list(range(1, 100))})
    event = RecordingEvent(stop_after=20)
    stable = []

    with caplog.at_level(logging.DEBUG, logger="doc2paperless.stability"):
        result = make_detector(fs, metrics, event).check_file(PDF, stable.append)

    assert result is False
    assert stable == []
    readings = [r.getMessage() for r in caplog.records if "Consecutive readings" in r.getMessage()]
    assert len(readings) == 20
    assert all(message.endswith("0/3") for message in readings)


def test_size_change_resets_the_count(metrics):
    # Two equal readings, then growth, then the file settles
    fs = FakeFileSystem(files={PDF: b"x"}, sizes={PDF: [10, 10, 10, 20, 20, 20, 20]})
    event = RecordingEvent(stop_after=50)
    stable = []

    assert make_detector(fs, metrics, event).check_file(PDF, stable.append) is True

    assert stable == [PDF]
    assert len(event.waits) == 6


def test_empty_first_reading_does_not_count(metrics):
    fs = FakeFileSystem(files={PDF: b""})
    event = RecordingEvent(stop_after=50)
    stable = []

    make_detector(fs, metrics, event, count=1).check_file(PDF, stable.append)

    # A count of one still needs a second reading to compare against
    assert stable == [PDF]
    assert len(event.waits) == 1


def test_missing_file_is_abandoned(metrics, caplog):
    fs = FakeFileSystem()
    event = RecordingEvent(stop_after=50)
    stable = []

    with caplog.at_level(logging.WARNING, logger="doc2paperless.stability"):
        assert make_detector(fs, metrics, event).check_file(PDF, stable.append) is False

    assert stable == []
    assert event.waits == []
    assert metrics.snapshot()["abandoned_files"] == 1
    assert any(r.getMessage().startswith("Abandoning") for r in caplog.records)


def test_file_removed_mid_check_is_abandoned(metrics):
    fs = FakeFileSystem(files={PDF: b"data"})
    stable = []

    class RemovingEvent(RecordingEvent):
        def wait(self, timeout=None):
            fs.files.pop(PDF, None)
            return super().wait(timeout)

    assert make_detector(fs, metrics, RemovingEvent()).check_file(PDF, stable.append) is False
    assert stable == []
    assert metrics.snapshot()["abandoned_files"] == 1


def test_shutdown_stops_the_check(metrics):
    fs = FakeFileSystem(files={PDF: b"data"}, sizes={PDF: list(range(100))})
    event = RecordingEvent(stop_after=2)

    assert make_detector(fs, metrics, event).check_file(PDF, lambda p: None) is False
    assert metrics.snapshot()["abandoned_files"] == 0


def test_files_are_checked_independently(metrics):
    # 100 bytes for A and 10 bytes for B, each constant for three readings
    file_a = "/consumefolder/a.pdf"
    file_b = "/consumefolder/b.pdf"
    fs = FakeFileSystem(files={file_a: b"a" * 100, file_b: b"b" * 10})
    event = threading.Event()
    stable = queue.Queue()
    detector = make_detector(fs, metrics, event, count=3, interval=0.01)

    threads = [threading.Thread(target=detector.check_file, args=(p, stable.put)) for p in (file_a, file_b)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=2)

    reported = {stable.get(timeout=1), stable.get(timeout=1)}
    assert reported == {file_a, file_b}
    assert stable.empty()
