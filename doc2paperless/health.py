# health.py
# Serves /metrics plus liveness and readiness endpoints for the container runtime.
import logging
import socket
import threading
import time

import uvicorn
from fastapi import FastAPI, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST

from .metrics import UploadMetrics

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT_SECONDS = 10


def create_app(metrics: UploadMetrics) -> FastAPI:
    app = FastAPI(title="doc2paperless", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/metrics")
    def prometheus_metrics():
        return Response(content=metrics.render(), media_type=CONTENT_TYPE_LATEST)

    # Health endpoints report process health only, never upload health
    @app.get("/health/liveness", response_class=PlainTextResponse)
    def liveness():
        return "OK"

    @app.get("/health/readiness", response_class=PlainTextResponse)
    def readiness():
        return "OK"

    return app


class HealthServer:
    """
    Runs the FastAPI app under uvicorn on a daemon thread.

    The listening socket is bound in __init__, so a busy port raises OSError
    before anything else starts.
    """

    def __init__(self, metrics: UploadMetrics, port: int, host: str = "0.0.0.0"):
        self.app = create_app(metrics)
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.sock.bind((host, port))
        except OSError:
            self.sock.close()
            raise
        # uvicorn's own logging config would replace ours
        config = uvicorn.Config(self.app, log_config=None, access_log=False, lifespan="off")
        self.server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self.server.run, kwargs={"sockets": [self.sock]}, name="health-server", daemon=True
        )

    @property
    def port(self) -> int:
        return self.sock.getsockname()[1]

    def start(self):
        self._thread.start()
        deadline = time.monotonic() + STARTUP_TIMEOUT_SECONDS
        while not self.server.started and self._thread.is_alive() and time.monotonic() < deadline:
            time.sleep(0.05)
        if not self.server.started:
            raise RuntimeError(f"Metrics server did not start on port {self.port}")
        logger.info(f"Serving /metrics, /health/liveness and /health/readiness on port {self.port}")

    def stop(self):
        self.server.should_exit = True
        if self._thread.is_alive():
            self._thread.join(timeout=5)
        self.sock.close()
