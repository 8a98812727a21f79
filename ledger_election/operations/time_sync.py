# ledger_election/operations/time_sync.py
# Clocks feeding the voting window, and an NTP drift check for the host clock

import logging
import time
from datetime import datetime, timezone
from typing import Dict, List

import ntplib

logger = logging.getLogger(__name__)

# A few reliable NTP servers (you can modify or expand this list)
NTP_SERVERS = [
    "pool.ntp.org",
    "time.google.com",
    "time.windows.com",
    "time.apple.com"
]

# Maximum acceptable time offset in seconds (as per policy)
MAX_ALLOWED_OFFSET = 0.5


def system_clock() -> int:
    """Current UNIX time in whole seconds."""
    return int(time.time())


class ManualClock:
    """Clock that only moves when told to. Useful for tests and replays."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now

    def set(self, now: int) -> None:
        self.now = now


def check_time_sync(servers: List[str] = None) -> Dict:
    """
    Check time offset from multiple NTP servers.
    Returns:
        A dictionary containing offsets, average drift, and overall health.
    """
    results: List[Dict] = []
    total_offset = 0
    valid_servers = 0

    for server in servers or NTP_SERVERS:
        try:
            client = ntplib.NTPClient()
            response = client.request(server, version=3, timeout=2)
            offset = response.offset
            total_offset += offset
            valid_servers += 1
            results.append({
                "server": server,
                "offset_s": round(offset, 6),
                "time": datetime.fromtimestamp(response.tx_time, tz=timezone.utc).isoformat(),
                "status": "ok" if abs(offset) <= MAX_ALLOWED_OFFSET else "drifted"
            })
        except (ntplib.NTPException, OSError) as e:
            logger.warning("NTP query to %s failed: %s", server, e)
            results.append({
                "server": server,
                "error": str(e),
                "status": "failed"
            })

    avg_offset = round(total_offset / valid_servers, 6) if valid_servers else None
    overall_ok = avg_offset is not None and abs(avg_offset) <= MAX_ALLOWED_OFFSET

    return {
        "overall_ok": overall_ok,
        "average_offset_s": avg_offset,
        "max_allowed_offset_s": MAX_ALLOWED_OFFSET,
        "results": results
    }
