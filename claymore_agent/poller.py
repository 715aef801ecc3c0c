"""
Claymore Agent - Poll Loop
轮询循环

fetch -> decode -> build batch -> write -> wait, strictly sequential.
The wait is a fixed delay after the work completes, so cadence drifts by
the duration of each cycle.
"""

import logging
import threading
import time
from typing import Dict, Optional

from .claymore_client import ClaymoreClient
from .config import AgentConfig
from .errors import ClaymoreError, FatalAgentError, SinkError
from .influx_sink import InfluxSink
from .parsers import decode_stats

logger = logging.getLogger(__name__)


def summarize(metrics: Dict[str, float]) -> str:
    gpus = sum(1 for name in metrics if name.startswith('gpu_') and name.endswith('_hashrate'))
    hashrate = metrics.get('hashrate')
    hashrate_str = f"{hashrate:.3f}" if hashrate is not None else "n/a"
    return f"{len(metrics)} fields, {gpus} GPUs, hashrate={hashrate_str}"


class PollLoop:
    """Claymore -> InfluxDB poll loop"""

    def __init__(self, config: AgentConfig, hostname: str,
                 client: Optional[ClaymoreClient] = None,
                 sink: Optional[InfluxSink] = None,
                 stop_event: Optional[threading.Event] = None):
        self.config = config
        self.tags = {'host': hostname}
        self.client = client or ClaymoreClient(config.claymore_addr, timeout=config.claymore_timeout)
        self.sink = sink or InfluxSink(
            config.influxdb_addr,
            config.influxdb_database,
            config.influxdb_user,
            config.influxdb_pass,
        )
        self.stop_event = stop_event or threading.Event()

    def run_cycle(self) -> int:
        """
        Run one fetch/decode/write cycle.

        Returns:
            Number of points written, 0 when the cycle was skipped

        Raises:
            FatalAgentError: sink failure with exit_on_sink_error set
        """
        try:
            stats = self.client.fetch_stats()
        except ClaymoreError as e:
            logger.warning(f"Skipping cycle, fetch from {e.address} failed: {e.message} ({e.error_type})")
            return 0

        metrics = decode_stats(stats)
        timestamp = int(time.time())
        logger.debug(f"Decoded {summarize(metrics)}")

        try:
            written = self.sink.write(metrics, timestamp, self.tags)
        except SinkError as e:
            if self.config.exit_on_sink_error:
                logger.critical(f"InfluxDB write failed, exiting: {e.message}")
                raise FatalAgentError(e.message) from e
            logger.error(f"Skipping cycle, InfluxDB write failed: {e.message}")
            return 0

        logger.info(f"Points submitted to influxdb... ({written} points)")
        return written

    def run_forever(self):
        """Run cycles until the stop event is set"""
        logger.info(
            f"Polling {self.client.address} every {self.config.check_interval}s "
            f"-> {self.sink.addr}/{self.sink.database} (host={self.tags['host']})"
        )
        while not self.stop_event.is_set():
            self.run_cycle()
            self.stop_event.wait(self.config.check_interval)
        logger.info("Poll loop stopped")
