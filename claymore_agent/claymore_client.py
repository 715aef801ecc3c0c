"""
Claymore Agent - Claymore TCP Client
Claymore矿机API TCP客户端

Sends one miner_getstat1 request line per call over a fresh connection and
reads one JSON line back. No retries: a failed fetch is reported to the poll
loop, which skips the cycle.

Usage:
    from claymore_agent.claymore_client import ClaymoreClient

    client = ClaymoreClient("192.168.1.100:3333")
    stats = client.fetch_stats()
"""

import json
import logging
import socket
import time
from typing import Optional, Tuple

from .errors import ClaymoreError
from .models import RawStatsResponse

logger = logging.getLogger(__name__)

STATS_REQUEST = b'{"id":0,"jsonrpc":"2.0","method":"miner_getstat1"}\n'


def parse_address(address: str) -> Tuple[str, int]:
    """Split "host:port" and validate the port"""
    if not address or not isinstance(address, str):
        raise ValueError("Address must be a non-empty 'host:port' string")

    host, sep, port_str = address.strip().rpartition(':')
    if not sep or not host:
        raise ValueError(f"Address must be 'host:port', got: {address}")

    # [::1]:3333
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]

    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in address: {address}")
    if port < 1 or port > 65535:
        raise ValueError(f"Port must be between 1-65535, got: {port}")

    return host, port


class ClaymoreClient:
    """
    Claymore miner API client

    One connection per fetch, closed unconditionally afterwards.
    """

    MAX_RESPONSE_SIZE = 1024 * 1024  # 1MB limit
    RECV_CHUNK = 4096

    def __init__(self, address: str, timeout: Optional[float] = None):
        """
        Args:
            address: Claymore API address, "host:port"
            timeout: Socket timeout in seconds, None blocks indefinitely
        """
        self.host, self.port = parse_address(address)
        self.address = f"{self.host}:{self.port}"
        self.timeout = timeout
        self._last_latency_ms: float = 0.0

    @property
    def last_latency_ms(self) -> float:
        """Latency of the last successful fetch in milliseconds"""
        return self._last_latency_ms

    def fetch_stats(self) -> RawStatsResponse:
        """
        Query miner_getstat1

        Returns:
            RawStatsResponse bound to the 9 named positional fields

        Raises:
            ClaymoreError: dial, read or decode failure
            MalformedPayloadError: reply carries fewer than 9 fields
        """
        start_time = time.time()
        line = self._exchange()
        payload = self._decode(line)
        stats = RawStatsResponse.from_json(payload, address=self.address)

        self._last_latency_ms = (time.time() - start_time) * 1000
        logger.debug(f"Fetched stats from {self.address} in {self._last_latency_ms:.1f}ms")
        return stats

    def _exchange(self) -> bytes:
        """Send the request line and read one response line"""
        sock = None
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
            sock.settimeout(self.timeout)
            sock.sendall(STATS_REQUEST)
            return self._read_line(sock)

        except socket.timeout:
            raise ClaymoreError(
                f"Timed out after {self.timeout}s", self.address, "timeout"
            )
        except ConnectionRefusedError:
            raise ClaymoreError(
                "Connection refused - miner may be offline or API disabled",
                self.address, "connection"
            )
        except socket.gaierror as e:
            raise ClaymoreError(f"DNS resolution failed: {e}", self.address, "dns")
        except OSError as e:
            raise ClaymoreError(f"Network error: {e}", self.address, "connection")
        finally:
            if sock is not None:
                sock.close()

    def _read_line(self, sock: socket.socket) -> bytes:
        buffer = b''
        while b'\n' not in buffer:
            if len(buffer) >= self.MAX_RESPONSE_SIZE:
                raise ClaymoreError(
                    f"Response exceeds {self.MAX_RESPONSE_SIZE} bytes", self.address, "read"
                )
            chunk = sock.recv(self.RECV_CHUNK)
            if not chunk:
                # Peer closed without a terminator, decode what arrived
                break
            buffer += chunk

        line = buffer.split(b'\n', 1)[0]
        if not line.strip():
            raise ClaymoreError("Empty response", self.address, "read")
        return line

    def _decode(self, line: bytes) -> dict:
        try:
            return json.loads(line.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ClaymoreError(f"Invalid JSON response: {e}", self.address, "parse")
