# main.py
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import requests

from . import __version__
from .config import Config, ConfigError, load_config
from .filesystem import LocalFileSystem
from .health import HealthServer
from .metrics import UploadMetrics
from .pipeline import Pipeline
from .retry import RetryingUploader
from .stability import StabilityDetector
from .uploader import DocumentUploader
from .watcher import DirectoryWatcher, WatcherStartupError

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

logger = logging.getLogger(__name__)

shutdown_event = threading.Event()


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None):
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler(sys.stdout)]
    file_error = None
    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file))
        except OSError as e:
            # Fall back to console-only logging
            file_error = e
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT, handlers=handlers, force=True)
    if file_error:
        logger.warning(f"Could not set up file logging to {log_file}: {file_error}. Logging to console only.")


def signal_handler(signum, frame):
    logger.info(f"Signal {signal.Signals(signum).name} received. Initiating shutdown...")
    shutdown_event.set()


def build_pipeline(config: Config, metrics: UploadMetrics, event: threading.Event,
                   filesystem=None, client=None) -> Pipeline:
    filesystem = filesystem or LocalFileSystem()
    client = client or requests.Session()
    detector = StabilityDetector(
        filesystem,
        check_interval=config.stability_check_interval,
        check_count=config.stability_check_count,
        metrics=metrics,
        shutdown_event=event,
    )
    uploader = DocumentUploader(
        filesystem, client, config.upload_url, config.auth_token, timeout=config.upload_timeout
    )
    retrying = RetryingUploader(uploader, filesystem, config.retry_delay, metrics, event)
    return Pipeline(detector, retrying, event)


def run(config: Config) -> int:
    """Runs the service until the shutdown event is set. Returns the exit status."""
    metrics = UploadMetrics()
    filesystem = LocalFileSystem()

    try:
        health = HealthServer(metrics, config.metrics_port)
    except OSError as e:
        logger.critical(f"Could not start metrics server on port {config.metrics_port}: {e}")
        return 1
    try:
        health.start()
    except RuntimeError as e:
        logger.critical(str(e))
        health.stop()
        return 1

    pipeline = build_pipeline(config, metrics, shutdown_event, filesystem=filesystem)
    pipeline.start()

    watcher = DirectoryWatcher(config.watch_dir, config.allow_list, filesystem, pipeline.submit)
    try:
        watcher.start()
    except WatcherStartupError as e:
        logger.critical(str(e))
        shutdown_event.set()
        health.stop()
        return 1

    try:
        while not shutdown_event.wait(1):
            pass
    finally:
        logger.info("Stopping watcher and metrics server.")
        watcher.stop()
        health.stop()
        pipeline.join(timeout=5)
        logger.info(f"Shutdown complete. Counters: {metrics.snapshot()}")
    return 0


def main():
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    setup_logging()
    logger.info(f"Starting doc2paperless Version: {__version__}")

    try:
        config = load_config()
    except ConfigError as e:
        logger.critical(f"Failed to load configuration: {e}")
        sys.exit(1)

    # Reconfigure now that VERBOSE and LOG_FILE are known
    setup_logging(config.verbose, config.log_file)
    if config.verbose:
        logger.info("Verbose logging is enabled.")

    logger.info("Effective configuration:")
    for name, value in config.describe().items():
        logger.info(f"  {name}: {value}")
    logger.info("---------------------------------------------------------------------")

    sys.exit(run(config))


if __name__ == "__main__":
    main()
