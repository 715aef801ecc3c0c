"""
Claymore Agent - Data Models
数据模型

RawStatsResponse: named view over the positional miner_getstat1 result
MetricBatch: one cycle's worth of tagged, timestamped fields
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .errors import MalformedPayloadError

STATS_FIELD_COUNT = 9
MEASUREMENT_NAME = "claymore_stats"


@dataclass(frozen=True)
class RawStatsResponse:
    """
    Claymore miner_getstat1 reply.

    The vendor result array is indexed like so:
      0: version
      1: uptime (minutes)
      2: hashrate; shares; rejected_shares
      3: hashrate per GPU
      4: DCR hashrate; shares; rejected_shares
      5: DCR hashrate per GPU
      6: temperature and fan speed per GPU
      7: mining pool
      8: ETH invalid shares; ETH pool switches; DCR invalid shares; DCR pool switches
    """
    version: str
    uptime: str
    eth_totals: str
    eth_hashrates: str
    dcr_totals: str
    dcr_hashrates: str
    temps_fans: str
    pools: str
    invalid_counts: str
    id: int = 0
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: Any, id: int = 0, error: Optional[str] = None,
                    address: str = "") -> "RawStatsResponse":
        """Validate the positional array once and bind it to named fields"""
        if not isinstance(result, (list, tuple)):
            raise MalformedPayloadError(
                f"Expected result array, got {type(result).__name__}", address
            )
        if len(result) < STATS_FIELD_COUNT:
            raise MalformedPayloadError(
                f"Expected {STATS_FIELD_COUNT} result fields, got {len(result)}", address
            )
        fields = [value if isinstance(value, str) else str(value)
                  for value in result[:STATS_FIELD_COUNT]]
        return cls(*fields, id=id, error=error)

    @classmethod
    def from_json(cls, payload: Dict[str, Any], address: str = "") -> "RawStatsResponse":
        """Build from the decoded JSON envelope {"result": [...], "id": n, "error": ...}"""
        if not isinstance(payload, dict):
            raise MalformedPayloadError(
                f"Expected JSON object, got {type(payload).__name__}", address
            )
        raw_id = payload.get("id") or 0
        return cls.from_result(
            payload.get("result"),
            id=raw_id if isinstance(raw_id, int) else 0,
            error=payload.get("error"),
            address=address,
        )

    @property
    def result(self) -> List[str]:
        return [
            self.version, self.uptime, self.eth_totals, self.eth_hashrates,
            self.dcr_totals, self.dcr_hashrates, self.temps_fans, self.pools,
            self.invalid_counts,
        ]


@dataclass
class MetricBatch:
    """All points for one cycle: one measurement, one tag set, one timestamp"""
    timestamp: int
    tags: Dict[str, str]
    fields: Dict[str, float] = field(default_factory=dict)
    measurement: str = MEASUREMENT_NAME

    def __len__(self) -> int:
        return len(self.fields)

    def items(self) -> Sequence:
        return list(self.fields.items())
