#!/usr/bin/env python3
"""
Claymore Agent - Entry Point
程序入口

Usage:
    claymore-agent --claymore-addr 192.168.1.100:3333 --influxdb-addr http://influx:8086
    python -m claymore_agent --check-interval 30 --log-level DEBUG
"""

import logging
import signal
import socket
import sys
from typing import Optional, Sequence

from . import __version__
from .config import AgentConfig, load_config
from .errors import HealthServerError
from .health_server import HealthServer
from .poller import PollLoop
from .supervisor import AgentSupervisor

logger = logging.getLogger('claymore_agent')


def setup_logging(level: str = 'INFO'):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_supervisor(config: AgentConfig, hostname: str) -> AgentSupervisor:
    """Bind the health port up front so a bind failure is fatal at startup"""
    health_server = HealthServer(config.http_port)
    return AgentSupervisor(
        poll_loop_factory=lambda stop_event: PollLoop(config, hostname, stop_event=stop_event),
        health_server_factory=lambda: HealthServer(config.http_port),
        health_server=health_server,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = load_config(argv)
    setup_logging(config.log_level)

    hostname = socket.gethostname()
    logger.info(f"Starting Claymore Agent v{__version__} on {hostname}")

    try:
        supervisor = build_supervisor(config, hostname)
    except HealthServerError as e:
        logger.critical(str(e))
        return 1

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}")
        supervisor.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    return supervisor.run()


if __name__ == '__main__':
    sys.exit(main())
