"""
Claymore Agent - InfluxDB Sink
InfluxDB写入器

Wraps one cycle's metrics into a single batch of points sharing one
measurement, one tag set and one timestamp, and sends it in one write.
A client is opened per cycle and closed afterwards.

Usage:
    sink = InfluxSink("http://127.0.0.1:8086", "homelab_custom", "admin", "admin")
    sink.write({"uptime": 120.0}, timestamp=1700000000, tags={"host": "rig01"})
"""

import logging
from typing import List, Mapping

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from .errors import SinkError
from .models import MEASUREMENT_NAME, MetricBatch

logger = logging.getLogger(__name__)


class InfluxSink:
    """
    InfluxDB 1.x sink, addressed through the 1.8+ compatibility API:
    credentials travel as a "user:pass" token and the database as the bucket.
    """

    def __init__(self, addr: str, database: str, username: str = "", password: str = "",
                 measurement: str = MEASUREMENT_NAME):
        self.addr = addr
        self.database = database
        self.username = username
        self.password = password
        self.measurement = measurement

    @property
    def bucket(self) -> str:
        # Empty retention policy selects the database default
        return f"{self.database}/"

    @property
    def token(self) -> str:
        return f"{self.username}:{self.password}"

    def build_batch(self, metrics: Mapping[str, float], timestamp: int,
                    tags: Mapping[str, str]) -> MetricBatch:
        return MetricBatch(
            timestamp=int(timestamp),
            tags=dict(tags),
            fields=dict(metrics),
            measurement=self.measurement,
        )

    def to_points(self, batch: MetricBatch) -> List[Point]:
        """One point per field, all sharing the batch's tags and timestamp"""
        points = []
        for name, value in batch.items():
            point = Point(batch.measurement)
            for key, tag_value in batch.tags.items():
                point = point.tag(key, tag_value)
            point = point.field(name, float(value)).time(batch.timestamp, WritePrecision.S)
            points.append(point)
        return points

    def write(self, metrics: Mapping[str, float], timestamp: int,
              tags: Mapping[str, str]) -> int:
        """
        Write one cycle's metrics as a single batch.

        Returns:
            Number of points written

        Raises:
            SinkError: building the batch or the write failed
        """
        try:
            batch = self.build_batch(metrics, timestamp, tags)
            points = self.to_points(batch)
        except (TypeError, ValueError) as e:
            raise SinkError(f"Failed to build batch: {e}", e) from e

        if not points:
            logger.debug("No points to write this cycle")
            return 0

        try:
            with InfluxDBClient(url=self.addr, token=self.token, org="-") as client:
                with client.write_api(write_options=SYNCHRONOUS) as write_api:
                    write_api.write(
                        bucket=self.bucket,
                        record=points,
                        write_precision=WritePrecision.S,
                    )
        except Exception as e:
            raise SinkError(f"InfluxDB write to {self.addr} failed: {e}", e) from e

        logger.debug(f"Wrote {len(points)} points to {self.database}")
        return len(points)
