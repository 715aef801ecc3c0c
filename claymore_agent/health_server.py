"""
Claymore Agent - Health Endpoint
健康检查端点

GET /healthz always answers 200 "OK": liveness reflects that the process
is up, not that polling succeeds.
"""

import logging
import threading

from flask import Flask, Response
from werkzeug.serving import make_server

from .errors import HealthServerError

logger = logging.getLogger(__name__)


def create_health_app() -> Flask:
    """Create the health check Flask app"""
    app = Flask(__name__)

    @app.route('/healthz')
    def healthz():
        return Response('OK', status=200, mimetype='text/plain')

    return app


class HealthServer:
    """Werkzeug server for the health app, bound at construction"""

    def __init__(self, port: int, host: str = '0.0.0.0'):
        self.host = host
        self.app = create_health_app()
        try:
            self._server = make_server(host, port, self.app, threaded=True)
        except (OSError, SystemExit) as e:
            raise HealthServerError(f"Cannot listen on {host}:{port}: {e}") from e
        self.port = self._server.server_port
        self._started = threading.Event()

    def serve_forever(self):
        logger.info(f"Listening on :{self.port}")
        self._started.set()
        self._server.serve_forever()

    def shutdown(self):
        """Stop serving and release the socket"""
        # socketserver.shutdown() blocks forever if serve_forever never ran
        if self._started.is_set():
            self._server.shutdown()
        self._server.server_close()
