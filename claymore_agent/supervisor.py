"""
Claymore Agent - Supervisor
进程监管

Runs the poll loop and the health server as sibling daemon threads. Either
one can die and be restarted without touching the other; a FatalAgentError
from an activity stops both and ends the process.
"""

import logging
import threading
from typing import Callable, Optional

from .errors import FatalAgentError, HealthServerError
from .health_server import HealthServer
from .poller import PollLoop

logger = logging.getLogger(__name__)


class Activity:
    """One supervised thread"""

    def __init__(self, name: str, target: Callable[[], None],
                 on_fatal: Callable[[FatalAgentError], None]):
        self.name = name
        self.target = target
        self.on_fatal = on_fatal
        self.thread: Optional[threading.Thread] = None
        self.error: Optional[BaseException] = None
        self.restarts = 0

    def start(self):
        self.error = None
        self.thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self.thread.start()

    def is_alive(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def join(self, timeout: Optional[float] = None):
        if self.thread is not None:
            self.thread.join(timeout=timeout)

    def _run(self):
        try:
            self.target()
        except FatalAgentError as e:
            self.error = e
            self.on_fatal(e)
        except Exception as e:
            self.error = e
            logger.error(f"{self.name} crashed: {e}", exc_info=True)


class AgentSupervisor:
    """Top-level lifecycle controller for the poll loop and health server"""

    def __init__(self, poll_loop_factory: Callable[[threading.Event], PollLoop],
                 health_server_factory: Callable[[], HealthServer],
                 health_server: Optional[HealthServer] = None,
                 check_every: float = 5.0):
        self.poll_loop_factory = poll_loop_factory
        self.health_server_factory = health_server_factory
        self.check_every = check_every
        self.stop_event = threading.Event()
        self.fatal_error: Optional[FatalAgentError] = None

        self.health_server = health_server

        self._poll_activity = Activity('poll-loop', self._run_poll_loop, self._on_fatal)
        self._health_activity = Activity('health-server', self._run_health_server, self._on_fatal)

    def _run_poll_loop(self):
        self.poll_loop_factory(self.stop_event).run_forever()

    def _run_health_server(self):
        self.health_server.serve_forever()

    def _on_fatal(self, error: FatalAgentError):
        logger.critical(f"Fatal error, shutting down: {error}")
        self.fatal_error = error
        self.stop_event.set()

    def _restart_health_server(self) -> bool:
        if self.health_server is not None:
            self.health_server.shutdown()
        try:
            self.health_server = self.health_server_factory()
        except HealthServerError as e:
            self.health_server = None
            logger.error(f"Health server restart failed, retrying: {e}")
            return False
        return True

    def _check(self):
        # A fatal error sets the stop event before its thread exits
        if self.stop_event.is_set():
            return

        if not self._poll_activity.is_alive():
            self._poll_activity.restarts += 1
            logger.warning(
                f"Restarting poll loop (restart #{self._poll_activity.restarts}) "
                f"after: {self._poll_activity.error!r}"
            )
            self._poll_activity.start()

        if not self._health_activity.is_alive():
            if self._restart_health_server():
                self._health_activity.restarts += 1
                logger.warning(
                    f"Restarting health server (restart #{self._health_activity.restarts}) "
                    f"after: {self._health_activity.error!r}"
                )
                self._health_activity.start()

    def run(self) -> int:
        """
        Start both activities and watch them until stop() or a fatal error.

        Returns:
            Process exit code: 0 on stop(), 1 on a fatal error
        """
        if self.health_server is None:
            self.health_server = self.health_server_factory()

        self._poll_activity.start()
        self._health_activity.start()

        while not self.stop_event.wait(self.check_every):
            self._check()

        self._shutdown()
        return 1 if self.fatal_error is not None else 0

    def stop(self):
        logger.info("Stopping claymore agent...")
        self.stop_event.set()

    def _shutdown(self):
        if self.health_server is not None:
            self.health_server.shutdown()
        self._health_activity.join(timeout=5)
        # Poll loop may be blocked on a socket; it is a daemon thread
        self._poll_activity.join(timeout=5)
        logger.info("Claymore agent stopped")

    @property
    def poll_restarts(self) -> int:
        return self._poll_activity.restarts

    @property
    def health_restarts(self) -> int:
        return self._health_activity.restarts
