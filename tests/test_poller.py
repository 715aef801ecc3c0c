"""
Unit Tests for Poll Loop
轮询循环单元测试
"""

import threading
from unittest.mock import MagicMock, patch

import pytest

from claymore_agent.claymore_client import ClaymoreClient
from claymore_agent.config import AgentConfig
from claymore_agent.errors import ClaymoreError, FatalAgentError, MalformedPayloadError, SinkError
from claymore_agent.influx_sink import InfluxSink
from claymore_agent.poller import PollLoop, summarize


@pytest.fixture
def sink():
    sink = MagicMock(spec=InfluxSink)
    sink.addr = 'http://127.0.0.1:8086'
    sink.database = 'homelab_custom'
    sink.write.side_effect = lambda metrics, timestamp, tags: len(metrics)
    return sink


class TestRunCycle:
    """One fetch/decode/write cycle"""

    @patch('claymore_agent.poller.time.time', return_value=1700000000.7)
    def test_full_cycle_against_mock_server(self, _time, mock_server, sink):
        config = AgentConfig(claymore_addr=mock_server.address, claymore_timeout=2)
        loop = PollLoop(config, 'rig01', sink=sink)

        written = loop.run_cycle()

        assert written == 11
        sink.write.assert_called_once()
        metrics, timestamp, tags = sink.write.call_args.args
        assert len(metrics) == 11
        assert timestamp == 1700000000
        assert tags == {'host': 'rig01'}

    def test_batch_points_share_timestamp_and_host(self, mock_server):
        config = AgentConfig(claymore_addr=mock_server.address, claymore_timeout=2)
        real_sink = InfluxSink(config.influxdb_addr, config.influxdb_database)
        loop = PollLoop(config, 'rig01', sink=real_sink)

        with patch('claymore_agent.influx_sink.InfluxDBClient') as client_cls:
            loop.run_cycle()

        client = client_cls.return_value.__enter__.return_value
        write_api = client.write_api.return_value.__enter__.return_value
        write_api.write.assert_called_once()
        points = write_api.write.call_args.kwargs['record']
        assert len(points) == 11
        timestamps = {p.to_line_protocol().rsplit(' ', 1)[1] for p in points}
        assert len(timestamps) == 1
        assert all(p.to_line_protocol().startswith('claymore_stats,host=rig01 ') for p in points)

    def test_fetch_failure_skips_write(self, sink):
        client = MagicMock(spec=ClaymoreClient)
        client.fetch_stats.side_effect = ClaymoreError("Connection refused", "127.0.0.1:3333", "connection")
        loop = PollLoop(AgentConfig(), 'rig01', client=client, sink=sink)

        assert loop.run_cycle() == 0
        sink.write.assert_not_called()

    def test_malformed_payload_skips_write(self, sink):
        client = MagicMock(spec=ClaymoreClient)
        client.fetch_stats.side_effect = MalformedPayloadError("Expected 9 result fields, got 3")
        loop = PollLoop(AgentConfig(), 'rig01', client=client, sink=sink)

        assert loop.run_cycle() == 0
        sink.write.assert_not_called()

    def test_sink_failure_recovered_by_default(self, canned_response, sink):
        client = MagicMock(spec=ClaymoreClient)
        client.fetch_stats.return_value = canned_response
        sink.write.side_effect = SinkError("write failed")
        loop = PollLoop(AgentConfig(), 'rig01', client=client, sink=sink)

        assert loop.run_cycle() == 0

    def test_sink_failure_fatal_when_configured(self, canned_response, sink):
        client = MagicMock(spec=ClaymoreClient)
        client.fetch_stats.return_value = canned_response
        sink.write.side_effect = SinkError("write failed")
        loop = PollLoop(AgentConfig(exit_on_sink_error=True), 'rig01', client=client, sink=sink)

        with pytest.raises(FatalAgentError):
            loop.run_cycle()


class TestRunForever:
    """Loop cadence and shutdown"""

    def test_stops_on_event(self, canned_response, sink):
        client = MagicMock(spec=ClaymoreClient)
        client.address = '127.0.0.1:3333'
        client.fetch_stats.return_value = canned_response
        stop_event = threading.Event()
        loop = PollLoop(AgentConfig(check_interval=0.01), 'rig01',
                        client=client, sink=sink, stop_event=stop_event)

        def stop_after_three(*args):
            if sink.write.call_count >= 3:
                stop_event.set()
            return 11
        sink.write.side_effect = stop_after_three

        loop.run_forever()

        assert sink.write.call_count == 3

    def test_keeps_polling_after_failures(self, canned_response, sink):
        client = MagicMock(spec=ClaymoreClient)
        client.address = '127.0.0.1:3333'
        stop_event = threading.Event()
        outcomes = [ClaymoreError("refused", "127.0.0.1:3333", "connection"), canned_response]

        def fetch():
            outcome = outcomes.pop(0) if outcomes else canned_response
            if isinstance(outcome, Exception):
                raise outcome
            stop_event.set()
            return outcome
        client.fetch_stats.side_effect = fetch

        loop = PollLoop(AgentConfig(check_interval=0.01), 'rig01',
                        client=client, sink=sink, stop_event=stop_event)
        loop.run_forever()

        assert client.fetch_stats.call_count == 2
        sink.write.assert_called_once()


def test_summarize():
    summary = summarize({'hashrate': 12.345, 'gpu_0_hashrate': 6.0, 'gpu_1_hashrate': 6.345})

    assert summary == "3 fields, 2 GPUs, hashrate=12.345"
