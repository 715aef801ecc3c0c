"""
Claymore Agent - Error Types
异常类型

Fetch errors are recovered per cycle by the poll loop. Sink errors are
recovered unless the agent runs with exit_on_sink_error.
"""

from datetime import datetime, timezone
from typing import Optional


class ClaymoreAgentError(Exception):
    """Base class for all agent errors"""


class ClaymoreError(ClaymoreAgentError):
    """Claymore API communication error with structured details"""

    def __init__(self, message: str, address: str = "", error_type: str = "unknown"):
        self.message = message
        self.address = address
        self.error_type = error_type
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(f"[{error_type}] {message} (address={address})")


class MalformedPayloadError(ClaymoreError):
    """Reply decoded but does not carry the 9 positional fields"""

    def __init__(self, message: str, address: str = ""):
        super().__init__(message, address, "malformed")


class SinkError(ClaymoreAgentError):
    """Building or writing a batch to InfluxDB failed"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class HealthServerError(ClaymoreAgentError):
    """Health endpoint could not bind its port"""


class FatalAgentError(ClaymoreAgentError):
    """Raised by an activity to take the whole process down"""
