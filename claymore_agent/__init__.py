"""
Claymore Agent - Claymore矿机监控代理
Claymore miner stats agent

模块结构:
- claymore_client.py: Claymore TCP客户端
- models.py: 数据模型 (RawStatsResponse, MetricBatch)
- parsers.py: 统计数据解析器
- influx_sink.py: InfluxDB写入器
- poller.py: 轮询循环
- health_server.py: 健康检查端点
- supervisor.py: 线程监管
- main.py: 程序入口
"""

__version__ = "1.0.0"

from .claymore_client import ClaymoreClient
from .errors import ClaymoreError, MalformedPayloadError, SinkError
from .influx_sink import InfluxSink
from .models import MetricBatch, RawStatsResponse
from .parsers import decode_stats

__all__ = [
    'ClaymoreClient',
    'ClaymoreError',
    'MalformedPayloadError',
    'SinkError',
    'InfluxSink',
    'MetricBatch',
    'RawStatsResponse',
    'decode_stats',
]
