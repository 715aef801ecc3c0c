"""
Claymore Agent - Stats Parsers
统计数据解析器

Turns a RawStatsResponse into a flat {metric name: value} mapping.
Decoding is best-effort per token: an unparseable token drops its own metric
and nothing else.
"""

import math
from typing import Dict, List, Optional

import numpy as np

from .models import RawStatsResponse

# Vendor reports hashrate in kH/s
HASHRATE_DIVISOR = 1000


def parse_float32(token: str) -> Optional[float]:
    """
    Parse a decimal token at 32-bit float precision.

    Returns None for anything that is not a finite number representable
    as a float32.
    """
    if not token or token != token.strip() or '_' in token:
        return None
    try:
        value = float(token)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None

    with np.errstate(over='ignore'):
        single = np.float32(value)
    if not np.isfinite(single):
        return None
    return float(single)


def split_fields(value: str) -> List[str]:
    return value.split(';')


def _field_at(fields: List[str], index: int) -> Optional[float]:
    if index >= len(fields):
        return None
    return parse_float32(fields[index])


def parse_uptime(response: RawStatsResponse) -> Dict[str, float]:
    uptime = parse_float32(response.uptime)
    return {'uptime': uptime} if uptime is not None else {}


def parse_totals(response: RawStatsResponse) -> Dict[str, float]:
    """hashrate;shares;rejected_shares - rejected shares are not emitted"""
    metrics = {}
    fields = split_fields(response.eth_totals)

    shares = _field_at(fields, 1)
    if shares is not None:
        metrics['shares'] = shares

    hashrate = _field_at(fields, 0)
    if hashrate is not None:
        metrics['hashrate'] = hashrate / HASHRATE_DIVISOR

    return metrics


def parse_gpu_hashrates(response: RawStatsResponse) -> Dict[str, float]:
    metrics = {}
    for i, token in enumerate(split_fields(response.eth_hashrates)):
        value = parse_float32(token)
        if value is not None:
            metrics[f'gpu_{i}_hashrate'] = value / HASHRATE_DIVISOR
    return metrics


def celsius_to_fahrenheit(celsius: float) -> float:
    return (celsius * 9 / 5) + 32


def parse_temps_fans(response: RawStatsResponse) -> Dict[str, float]:
    """
    temp0;fan0;temp1;fan1;...

    Keys use the position inside the list: the temperature at even position
    i is gpu_i, and the fan speed right after it at i+1 is keyed gpu_(i+1-1),
    so both share the temperature's key (gpu_0, gpu_2, gpu_4, ...).
    """
    metrics = {}
    for i, token in enumerate(split_fields(response.temps_fans)):
        value = parse_float32(token)
        if value is None:
            continue
        if i % 2 == 0:
            metrics[f'gpu_{i}_temperature'] = value
            metrics[f'gpu_{i}_temperature_f'] = celsius_to_fahrenheit(value)
        else:
            metrics[f'gpu_{i - 1}_fan_speed'] = value
    return metrics


# Applied in order; later keys never collide with earlier ones
PARSERS = [
    parse_uptime,
    parse_totals,
    parse_gpu_hashrates,
    parse_temps_fans,
]


def decode_stats(response: RawStatsResponse) -> Dict[str, float]:
    """Decode one stats reply into metric name -> value"""
    metrics: Dict[str, float] = {}
    for parser in PARSERS:
        metrics.update(parser(response))
    return metrics
