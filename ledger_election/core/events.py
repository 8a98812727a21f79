# ledger_election/core/events.py

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping

BALANCE_ISSUED = "BalanceIssued"
BALANCE_RETIRED = "BalanceRetired"
CANDIDATE_REGISTERED = "CandidateRegistered"
VOTING_OPENED = "VotingOpened"
VOTING_CLOSED = "VotingClosed"
VOTE_CAST = "VoteCast"

EVENT_NAMES = (
    BALANCE_ISSUED,
    BALANCE_RETIRED,
    CANDIDATE_REGISTERED,
    VOTING_OPENED,
    VOTING_CLOSED,
    VOTE_CAST,
)


@dataclass(frozen=True)
class Event:
    """Notification produced by every state-changing operation.

    ``seq`` starts at 1 and has no gaps; ``params`` holds the parameters of
    the operation that produced the event and is read-only.
    """
    seq: int
    name: str
    caller: str
    timestamp: int
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "name": self.name,
            "caller": self.caller,
            "timestamp": self.timestamp,
            "params": dict(self.params),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        if data["name"] not in EVENT_NAMES:
            raise ValueError(f"Unknown event name: {data['name']}")
        return cls(
            seq=int(data["seq"]),
            name=data["name"],
            caller=data["caller"],
            timestamp=int(data["timestamp"]),
            params=dict(data.get("params") or {}),
        )
