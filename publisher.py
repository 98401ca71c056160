# publisher.py
import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional

import esp
from measurement import StationData

logger = logging.getLogger(__name__)


class Publisher:
    def start(self):
        pass

    def stop(self):
        pass

    def publish(self, data: StationData):
        raise NotImplementedError


class HttpPublisher(Publisher):
    """Serves the last station data at /json in ESPEasy format."""

    PATH = "/json"

    def __init__(self, port: int, host: str = ""):
        self.host = host
        self.port = port
        self._lock = threading.Lock()
        self._last_data: Optional[StationData] = None
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def last_data(self) -> Optional[StationData]:
        with self._lock:
            return self._last_data

    def publish(self, data: StationData):
        with self._lock:
            self._last_data = data

    def response(self, path: str):
        """Returns (status, body) for a GET request."""
        if path.split("?", 1)[0] != self.PATH:
            return 404, b""
        data = self.last_data
        if data is None:
            return 503, b""
        return 200, json.dumps(esp.encode_station_data(data)).encode("utf-8")

    def _handler(self):
        publisher = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                status, body = publisher.response(self.path)
                self.send_response(status)
                if body:
                    self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, format, *args):
                logger.debug("%s - %s", self.address_string(), format % args)

        return Handler

    def start(self):
        try:
            self._server = ThreadingHTTPServer((self.host, self.port), self._handler())
        except OSError as e:
            logger.error("can't start sensor data HTTP publisher on port %d: %s", self.port, e)
            return
        self.port = self._server.server_address[1]
        logger.info("starting sensor data HTTP publisher at http://%s:%d%s",
                    self.host or "0.0.0.0", self.port, self.PATH)
        self._thread = threading.Thread(target=self._server.serve_forever, name="http-publisher", daemon=True)
        self._thread.start()

    def stop(self):
        if self._server is None:
            return
        logger.info("stopping sensor data HTTP publisher...")
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=5)
        self._server = None
        logger.info("sensor data HTTP publisher stopped")
