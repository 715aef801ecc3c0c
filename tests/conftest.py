"""
Claymore Agent - Test Configuration
测试配置

Provides a mock Claymore TCP server and canned miner_getstat1 payloads.
"""

import json
import socket
import threading

import pytest

from claymore_agent.models import RawStatsResponse

# Two GPUs, rejected shares = 2
CANNED_RESULT = [
    "10.0 - ETH",
    "120",
    "12345;10;2",
    "6000;6345",
    "0;0;0",
    "off;off",
    "65;40;70;50",
    "eth-eu1.nanopool.org:9999",
    "0;0;0;0",
]


class MockClaymoreServer:
    """Mock TCP server simulating the Claymore API"""

    def __init__(self, host='127.0.0.1', port=0):
        self.host = host
        self.port = port
        self.server_socket = None
        self.running = False
        self.reply = b''
        self.requests = []
        self._thread = None

    def set_payload(self, payload):
        """Reply with a JSON line"""
        self.reply = json.dumps(payload).encode('utf-8') + b'\n'

    def set_raw(self, raw: bytes):
        """Reply with raw bytes, newline not added"""
        self.reply = raw

    def start(self):
        self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.server_socket.bind((self.host, self.port))
        self.port = self.server_socket.getsockname()[1]
        self.server_socket.listen(5)
        self.server_socket.settimeout(0.2)
        self.running = True

        self._thread = threading.Thread(target=self._serve)
        self._thread.daemon = True
        self._thread.start()

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def _serve(self):
        while self.running:
            try:
                client_socket, _ = self.server_socket.accept()
            except socket.timeout:
                continue
            except OSError:
                break

            with client_socket:
                client_socket.settimeout(1.0)
                data = b''
                try:
                    while b'\n' not in data:
                        chunk = client_socket.recv(1024)
                        if not chunk:
                            break
                        data += chunk
                    self.requests.append(data)
                    client_socket.sendall(self.reply)
                except OSError:
                    continue

    def stop(self):
        self.running = False
        if self._thread:
            self._thread.join(timeout=2)
        if self.server_socket:
            self.server_socket.close()


@pytest.fixture
def mock_server():
    """Mock Claymore server answering with the canned payload"""
    server = MockClaymoreServer()
    server.set_payload({"id": 0, "result": CANNED_RESULT, "error": None})
    server.start()
    yield server
    server.stop()


@pytest.fixture
def canned_response():
    return RawStatsResponse.from_result(list(CANNED_RESULT))


@pytest.fixture
def make_response():
    """Factory for canned responses with individual named fields replaced"""
    def _make(**overrides) -> RawStatsResponse:
        fields = dict(zip(
            ['version', 'uptime', 'eth_totals', 'eth_hashrates', 'dcr_totals',
             'dcr_hashrates', 'temps_fans', 'pools', 'invalid_counts'],
            CANNED_RESULT,
        ))
        fields.update(overrides)
        return RawStatsResponse(**fields)
    return _make
