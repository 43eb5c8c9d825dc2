"""
=============================================================================
TRANSFER LOG
=============================================================================

One structured record per transfer event, rendered as a human-readable line
or as JSON for log collectors.

    text:  Download completed from 192.168.1.42 (13 bytes in 4.1ms), 0 remaining
    json:  {"event": "completed", "client_ip": "192.168.1.42", "bytes": 13, ...}

Records go to the "dropserve.access" logger, so operators can route them
separately from diagnostic logs:

    logging.getLogger("dropserve.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


access_logger = logging.getLogger("dropserve.access")


class TransferState(Enum):
    """
    Per-transfer state machine.

        STARTED ──► STREAMING ──► COMPLETED
                        │
                        ├───────► INTERRUPTED  (client hung up)
                        └───────► FAILED

    Only COMPLETED advances the download count.
    """
    STARTED = "started"
    STREAMING = "streaming"
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


@dataclass
class TransferLog:
    """
    Structured log entry for one transfer event.

    Fields:
        transfer_id:  Connection id, correlates start and end lines
        event:        "started", "completed", "failed" or "interrupted"
        client_ip:    Peer address
        filename:     Name presented to the client
        bytes_sent:   Body bytes written so far
        duration_ms:  Time since the transfer started
        remaining:    Downloads left before shutdown (None = unlimited)
        error:        Failure description, if any
    """

    transfer_id: str
    event: str
    client_ip: str
    filename: str
    bytes_sent: int = 0
    duration_ms: float = 0.0
    remaining: Optional[int] = None
    error: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds")
    )

    def to_dict(self) -> dict:
        data = {
            "transfer_id": self.transfer_id,
            "event": self.event,
            "client_ip": self.client_ip,
            "filename": self.filename,
            "bytes": self.bytes_sent,
            "duration_ms": round(self.duration_ms, 2),
            "remaining": self.remaining,
            "timestamp": self.timestamp,
        }
        if self.error:
            data["error"] = self.error
        return data

    def to_text(self) -> str:
        if self.event == "started":
            return f"Download started from {self.client_ip}: {self.filename}"

        if self.event == "completed":
            line = (
                f"Download completed from {self.client_ip} "
                f"({self.bytes_sent} bytes in {_format_duration(self.duration_ms)})"
            )
            if self.remaining is not None:
                line += f", {self.remaining} download(s) remaining"
            return line

        if self.event == TransferState.INTERRUPTED.value:
            verb = TransferState.INTERRUPTED.value
        else:
            verb = TransferState.FAILED.value
        line = f"Download {verb} from {self.client_ip} after {self.bytes_sent} bytes"
        if self.error:
            line += f": {self.error}"
        return line

    def emit(self, log_format: str = "text") -> None:
        """Write this record to the access logger."""
        level = logging.INFO
        if self.event == TransferState.INTERRUPTED.value:
            level = logging.WARNING
        elif self.event == TransferState.FAILED.value:
            level = logging.ERROR

        if log_format == "json":
            access_logger.log(level, json.dumps(self.to_dict()))
        else:
            access_logger.log(level, self.to_text())


def _format_duration(duration_ms: float) -> str:
    if duration_ms < 1000:
        return f"{duration_ms:.1f}ms"
    return f"{duration_ms / 1000:.1f}s"
