# test_main.py
import logging
import threading
import time
from pathlib import Path
from unittest import mock

import pytest

from doc2paperless import main as main_module
from doc2paperless.config import Config


@pytest.fixture
def fresh_shutdown_event():
    with mock.patch.object(main_module, "shutdown_event", threading.Event()) as event:
        yield event


def make_config(watch_dir, **overrides):
    values = dict(
        base_url="http://127.0.0.1:9",
        auth_token="token",
        watch_dir=watch_dir,
        allow_list=["*.pdf"],
        stability_check_interval=0.05,
        stability_check_count=2,
        retry_delay=0.05,
        metrics_port=0,
    )
    values.update(overrides)
    return Config(**values)


def test_missing_consume_folder_exits_with_error(temp_dir, fresh_shutdown_event, caplog):
    config = make_config(temp_dir / "does-not-exist")

    assert main_module.run(config) == 1
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)


def test_run_until_shutdown(temp_dir, fresh_shutdown_event):
    config = make_config(temp_dir)
    result = {}
    thread = threading.Thread(target=lambda: result.setdefault("code", main_module.run(config)))

    thread.start()
    time.sleep(0.2)
    fresh_shutdown_event.set()
    thread.join(timeout=10)

    assert not thread.is_alive()
    assert result["code"] == 0


def test_main_exits_when_config_missing(monkeypatch):
    for name in ("PAPERLESS_BASE_URL", "PAPERLESS_AUTH_TOKEN", "CONSUME_FOLDER", "DOC2PAPERLESS_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(Path(__file__).parent)

    with mock.patch.object(main_module.signal, "signal"), \
            mock.patch.object(main_module, "setup_logging"):
        with pytest.raises(SystemExit) as excinfo:
            main_module.main()
    assert excinfo.value.code == 1


def test_setup_logging_falls_back_to_console(temp_dir, caplog):
    blocker = temp_dir / "file"
    blocker.write_text("not a directory")

    with mock.patch.object(main_module.logging, "basicConfig") as basic_config:
        main_module.setup_logging(verbose=True, log_file=blocker / "sub" / "app.log")

    kwargs = basic_config.call_args.kwargs
    assert kwargs["level"] == logging.DEBUG
    assert len(kwargs["handlers"]) == 1
    assert "Logging to console only" in caplog.text


def test_metrics_server_failure_exits_with_error(temp_dir, fresh_shutdown_event, caplog):
    config = make_config(temp_dir)

    with mock.patch.object(main_module.HealthServer, "start", side_effect=RuntimeError("did not start")):
        assert main_module.run(config) == 1

    assert "did not start" in caplog.text
