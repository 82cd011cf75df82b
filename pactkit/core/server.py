"""
Background ASGI server.

Runs a FastAPI application with uvicorn on a daemon thread, bound to an
ephemeral local port by default. Used for the consumer-side mock server
and for hosting provider apps in end-to-end tests.
"""

import logging
import socket
import threading
import time
from typing import Any, Optional

import uvicorn

logger = logging.getLogger(__name__)


class BackgroundServer:
    """
    Serve an ASGI app on a background thread.

    Usage:
        with BackgroundServer(app) as server:
            httpx.get(f"{server.url}/health")

    Args:
        app: ASGI application
        host: Interface to bind (default loopback)
        port: Port to bind; 0 picks a free ephemeral port
        startup_timeout: Seconds to wait for uvicorn to start serving
    """

    def __init__(
        self,
        app: Any,
        host: str = "127.0.0.1",
        port: int = 0,
        startup_timeout: float = 10.0,
    ):
        self.app = app
        self.host = host
        self.requested_port = port
        self.startup_timeout = startup_timeout
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None
        self._socket: Optional[socket.socket] = None
        self.port: Optional[int] = None

    @property
    def url(self) -> str:
        if self.port is None:
            raise RuntimeError("Server is not running")
        return f"http://{self.host}:{self.port}"

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "BackgroundServer":
        """
        Bind the socket and start uvicorn.

        Raises:
            RuntimeError: If the server is already running or fails to start in time
        """
        if self.running:
            raise RuntimeError("Server already running")

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((self.host, self.requested_port))
        self._socket = sock
        self.port = sock.getsockname()[1]

        config = uvicorn.Config(
            self.app,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [sock]},
            name=f"pactkit-server-{self.port}",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + self.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.stop()
                raise RuntimeError(f"Server failed to start on {self.host}:{self.port}")
            time.sleep(0.01)

        logger.debug(f"Background server listening on {self.url}")
        return self

    def stop(self) -> None:
        """Ask uvicorn to exit and wait for the thread to finish."""
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=self.startup_timeout)
        if self._socket is not None:
            self._socket.close()
        logger.debug(f"Background server on port {self.port} stopped")
        self._server = None
        self._thread = None
        self._socket = None

    def __enter__(self) -> "BackgroundServer":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
