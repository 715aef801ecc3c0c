"""
Claymore Agent - Configuration
配置管理

Every flag defaults from an environment variable, then from the built-in
default. The resulting AgentConfig is immutable for the process lifetime.
"""

import argparse
import os
from dataclasses import dataclass
from typing import Optional, Sequence

from .claymore_client import parse_address

DEFAULT_CLAYMORE_ADDR = "127.0.0.1:3333"
DEFAULT_HTTP_PORT = 8085
DEFAULT_INFLUXDB_ADDR = "http://127.0.0.1:8086"
DEFAULT_INFLUXDB_DATABASE = "homelab_custom"
DEFAULT_INFLUXDB_USER = "admin"
DEFAULT_INFLUXDB_PASS = "admin"
DEFAULT_CHECK_INTERVAL = 20  # seconds

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class AgentConfig:
    claymore_addr: str = DEFAULT_CLAYMORE_ADDR
    http_port: int = DEFAULT_HTTP_PORT
    influxdb_addr: str = DEFAULT_INFLUXDB_ADDR
    influxdb_database: str = DEFAULT_INFLUXDB_DATABASE
    influxdb_user: str = DEFAULT_INFLUXDB_USER
    influxdb_pass: str = DEFAULT_INFLUXDB_PASS
    check_interval: float = DEFAULT_CHECK_INTERVAL
    claymore_timeout: Optional[float] = None
    exit_on_sink_error: bool = False
    log_level: str = "INFO"

    def __post_init__(self):
        if self.check_interval <= 0:
            raise ValueError(f"check_interval must be > 0, got: {self.check_interval}")
        if not 1 <= self.http_port <= 65535:
            raise ValueError(f"http_port must be between 1-65535, got: {self.http_port}")
        if self.claymore_timeout is not None and self.claymore_timeout <= 0:
            raise ValueError(f"claymore_timeout must be > 0, got: {self.claymore_timeout}")
        # Raises ValueError for a malformed host:port
        parse_address(self.claymore_addr)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _timeout_arg(value: str) -> Optional[float]:
    if not value.strip():
        return None
    try:
        timeout = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid timeout: {value}")
    return timeout if timeout > 0 else None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='claymore-agent',
        description='Poll a Claymore miner and forward its stats to InfluxDB',
    )
    parser.add_argument('--claymore-addr',
                        default=os.environ.get('CLAYMORE_ADDR', DEFAULT_CLAYMORE_ADDR),
                        help='address and port of the claymore host')
    parser.add_argument('--http-port', type=int,
                        default=os.environ.get('HTTP_PORT', str(DEFAULT_HTTP_PORT)),
                        help='port for the http server to listen on for health checks')
    parser.add_argument('--influxdb-database',
                        default=os.environ.get('INFLUXDB_DATABASE', DEFAULT_INFLUXDB_DATABASE),
                        help='influxdb database to store datapoints')
    parser.add_argument('--influxdb-addr',
                        default=os.environ.get('INFLUXDB_ADDR', DEFAULT_INFLUXDB_ADDR),
                        help='address of influxdb endpoint, ex: http://127.0.0.1:8086')
    parser.add_argument('--influxdb-user',
                        default=os.environ.get('INFLUXDB_USER', DEFAULT_INFLUXDB_USER),
                        help='username for influxdb access')
    parser.add_argument('--influxdb-pass',
                        default=os.environ.get('INFLUXDB_PASS', DEFAULT_INFLUXDB_PASS),
                        help='password for influxdb access')
    parser.add_argument('--check-interval', type=float,
                        default=os.environ.get('CHECK_INTERVAL', str(DEFAULT_CHECK_INTERVAL)),
                        help='seconds to wait between polls of the claymore endpoint')
    parser.add_argument('--claymore-timeout', type=_timeout_arg,
                        default=os.environ.get('CLAYMORE_TIMEOUT'),
                        help='socket timeout in seconds for claymore requests (0 = none)')
    parser.add_argument('--exit-on-sink-error', action='store_true',
                        default=_env_bool('EXIT_ON_SINK_ERROR'),
                        help='terminate the process when an influxdb write fails '
                             '(default: log the failure and skip the cycle)')
    parser.add_argument('--log-level',
                        default=os.environ.get('LOG_LEVEL', 'INFO').upper(),
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='logging level')
    return parser


def load_config(argv: Optional[Sequence[str]] = None) -> AgentConfig:
    """Parse flags (falling back to environment) into an AgentConfig"""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return AgentConfig(
            claymore_addr=args.claymore_addr,
            http_port=args.http_port,
            influxdb_addr=args.influxdb_addr,
            influxdb_database=args.influxdb_database,
            influxdb_user=args.influxdb_user,
            influxdb_pass=args.influxdb_pass,
            check_interval=args.check_interval,
            claymore_timeout=args.claymore_timeout,
            exit_on_sink_error=args.exit_on_sink_error,
            log_level=args.log_level,
        )
    except ValueError as e:
        parser.error(str(e))
