# ledger_election/core/election.py
"""Single-authority ledger and election state machine.

A :class:`LedgerElection` keeps fungible balances per participant, an
append-only roster of candidates, one voting window and the tallies that
votes accumulate. The administrator fixed at construction is the only
identity allowed to issue or retire balance, register candidates and open or
close the window; anybody holding balance may spend it on votes while the
window is active.

Two behaviours of the ledger are kept on purpose:

-   Registering the same candidate twice appends it twice to the roster.
-   Voting debits the voter's balance but leaves ``total_supply`` untouched,
    so after the first vote ``total_supply`` exceeds the sum of balances by
    exactly the amount voted so far.

Callers pass their identity explicitly; the current time comes from the
clock callable given at construction (integer UNIX seconds).

Usage:
    election = LedgerElection("admin", initial_supply=1000)
    election.issue_balance("admin", "alice", 200)
    election.register_candidate("admin", "x")
    election.open_voting("admin", 3600)
    election.cast_vote("alice", "x", 150)
    election.get_tally("x")  # 150
"""

import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ledger_election.core import events
from ledger_election.core.errors import (
    ElectionClosed,
    InsufficientBalance,
    InvalidAmount,
    LedgerElectionError,
    UnknownCandidate,
    Unauthorized,
    VotingAlreadyOpened,
    VotingNotActive,
)
from ledger_election.core.events import Event
from ledger_election.operations.time_sync import system_clock

logger = logging.getLogger(__name__)

MAX_UINT256 = 2 ** 256 - 1


class Phase(Enum):
    SETUP = "setup"      # window never opened
    ACTIVE = "active"    # start <= now < end, not ended
    LAPSED = "lapsed"    # window set, clock outside it, not ended
    CLOSED = "closed"    # ended; terminal


def check_amount(name: str, value: Any) -> int:
    """Return ``value`` if it is an unsigned 256-bit integer, else raise
    :class:`InvalidAmount`."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(name, value, "must be an integer")
    if value < 0 or value > MAX_UINT256:
        raise InvalidAmount(name, value)
    return value


class LedgerElection:
    def __init__(self, administrator: str, initial_supply: int = 0,
                 clock: Optional[Callable[[], int]] = None):
        if not administrator:
            raise ValueError("An administrator identity is required")
        check_amount("initial_supply", initial_supply)
        self._administrator = administrator
        self._clock = clock or system_clock
        self._lock = threading.RLock()
        self._listeners: List[Callable[[Event], None]] = []

        self._roster: List[str] = []
        self._roster_index = set()
        self._tallies: Dict[str, int] = {}
        self._voting_start: Optional[int] = None
        self._voting_end: Optional[int] = None
        self._voting_ended = False
        self._events: List[Event] = []

        self._total_supply = initial_supply
        self._balances: Dict[str, int] = {administrator: initial_supply}
        self._emit(events.BALANCE_ISSUED, administrator, self._clock(),
                   target=administrator, amount=initial_supply)

    # ------------------------------------------------------------------ #
    # plumbing

    @property
    def lock(self) -> threading.RLock:
        """Lock serialising every operation; hold it to compose several."""
        return self._lock

    def subscribe(self, listener: Callable[[Event], None]) -> None:
        """Call ``listener`` with every event emitted from now on."""
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[Event], None]) -> None:
        with self._lock:
            self._listeners.remove(listener)

    def _emit(self, name: str, caller: str, timestamp: int, **params) -> Event:
        event = Event(
            seq=len(self._events) + 1,
            name=name,
            caller=caller,
            timestamp=timestamp,
            params=params,
        )
        self._events.append(event)
        logger.info("%s #%d by %s: %s", name, event.seq, caller, params)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener %r failed on %s #%d",
                                 listener, name, event.seq)
        return event

    def _reject(self, error: LedgerElectionError) -> LedgerElectionError:
        logger.warning("Rejected: %s", error)
        return error

    def _require_admin(self, caller: str, operation: str) -> None:
        if caller != self._administrator:
            raise self._reject(Unauthorized(caller, operation))

    def _checked_amount(self, name: str, value: Any) -> int:
        try:
            return check_amount(name, value)
        except InvalidAmount as e:
            raise self._reject(e)

    def _phase_at(self, now: int) -> Phase:
        if self._voting_ended:
            return Phase.CLOSED
        if self._voting_start is None:
            return Phase.SETUP
        if self._voting_start <= now < self._voting_end:
            return Phase.ACTIVE
        return Phase.LAPSED

    # ------------------------------------------------------------------ #
    # balance ledger

    def issue_balance(self, caller: str, target: str, amount: int) -> Event:
        with self._lock:
            self._require_admin(caller, "issue balance")
            amount = self._checked_amount("amount", amount)
            balance = self._balances.get(target, 0)
            # no balance exceeds the supply, so this also bounds the target
            if self._total_supply + amount > MAX_UINT256:
                raise self._reject(InvalidAmount(
                    "amount", amount, "total supply would overflow"))
            self._total_supply += amount
            self._balances[target] = balance + amount
            return self._emit(events.BALANCE_ISSUED, caller, self._clock(),
                              target=target, amount=amount)

    def retire_balance(self, caller: str, target: str, amount: int) -> Event:
        with self._lock:
            self._require_admin(caller, "retire balance")
            amount = self._checked_amount("amount", amount)
            balance = self._balances.get(target, 0)
            if balance < amount:
                raise self._reject(InsufficientBalance(target, balance, amount))
            self._total_supply -= amount
            self._balances[target] = balance - amount
            return self._emit(events.BALANCE_RETIRED, caller, self._clock(),
                              target=target, amount=amount)

    # ------------------------------------------------------------------ #
    # roster and window

    def register_candidate(self, caller: str, candidate: str) -> Event:
        with self._lock:
            self._require_admin(caller, "register candidate")
            if self._voting_ended:
                raise self._reject(ElectionClosed("register candidate"))
            # duplicates are appended as-is
            self._roster.append(candidate)
            self._roster_index.add(candidate)
            return self._emit(events.CANDIDATE_REGISTERED, caller,
                              self._clock(), candidate=candidate)

    def open_voting(self, caller: str, duration: int) -> Event:
        with self._lock:
            self._require_admin(caller, "open voting")
            duration = self._checked_amount("duration", duration)
            if self._voting_ended:
                raise self._reject(ElectionClosed("open voting"))
            if self._voting_start is not None:
                raise self._reject(VotingAlreadyOpened(
                    self._voting_start, self._voting_end))
            now = self._clock()
            if now + duration > MAX_UINT256:
                raise self._reject(InvalidAmount(
                    "duration", duration, "window end would overflow"))
            self._voting_start = now
            self._voting_end = now + duration
            return self._emit(events.VOTING_OPENED, caller, now,
                              start=self._voting_start, end=self._voting_end,
                              duration=duration)

    def close_voting(self, caller: str) -> Event:
        """End the election.

        Only possible while the window is still running: a window that has
        already elapsed can no longer be closed.
        """
        with self._lock:
            self._require_admin(caller, "close voting")
            now = self._clock()
            phase = self._phase_at(now)
            if phase is not Phase.ACTIVE:
                raise self._reject(VotingNotActive(phase))
            self._voting_ended = True
            return self._emit(events.VOTING_CLOSED, caller, now)

    # ------------------------------------------------------------------ #
    # voting

    def cast_vote(self, caller: str, candidate: str, amount: int) -> Event:
        """Spend ``amount`` of the caller's balance on ``candidate``.

        The spent amount leaves the voter's balance but stays in the total
        supply.
        """
        with self._lock:
            amount = self._checked_amount("amount", amount)
            now = self._clock()
            phase = self._phase_at(now)
            if phase is not Phase.ACTIVE:
                raise self._reject(VotingNotActive(phase))
            balance = self._balances.get(caller, 0)
            if balance < amount:
                raise self._reject(InsufficientBalance(caller, balance, amount))
            if candidate not in self._roster_index:
                raise self._reject(UnknownCandidate(candidate))
            self._balances[caller] = balance - amount
            self._tallies[candidate] = self._tallies.get(candidate, 0) + amount
            return self._emit(events.VOTE_CAST, caller, now,
                              candidate=candidate, amount=amount)

    # ------------------------------------------------------------------ #
    # queries

    @property
    def administrator(self) -> str:
        return self._administrator

    @property
    def total_supply(self) -> int:
        with self._lock:
            return self._total_supply

    @property
    def voting_window(self) -> Tuple[Optional[int], Optional[int], bool]:
        with self._lock:
            return self._voting_start, self._voting_end, self._voting_ended

    @property
    def events(self) -> Tuple[Event, ...]:
        with self._lock:
            return tuple(self._events)

    def phase(self, now: Optional[int] = None) -> Phase:
        with self._lock:
            return self._phase_at(self._clock() if now is None else now)

    def balance_of(self, address: str) -> int:
        with self._lock:
            return self._balances.get(address, 0)

    def balances(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._balances)

    def get_roster(self) -> List[str]:
        with self._lock:
            return list(self._roster)

    def is_candidate(self, candidate: str) -> bool:
        with self._lock:
            return candidate in self._roster_index

    def get_tally(self, candidate: str) -> int:
        with self._lock:
            return self._tallies.get(candidate, 0)

    def tallies(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._tallies)

    # ------------------------------------------------------------------ #
    # persistence

    def snapshot(self) -> Dict[str, Any]:
        """Full persisted state as plain Python data."""
        with self._lock:
            return {
                "administrator": self._administrator,
                "total_supply": self._total_supply,
                "voting_start": self._voting_start,
                "voting_end": self._voting_end,
                "voting_ended": self._voting_ended,
                "balances": dict(self._balances),
                "roster": list(self._roster),
                "tallies": dict(self._tallies),
                "events": [e.to_dict() for e in self._events],
            }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any],
                      clock: Optional[Callable[[], int]] = None) -> "LedgerElection":
        """Rebuild an election from :meth:`snapshot` output without emitting
        any event."""
        election = cls.__new__(cls)
        election._clock = clock or system_clock
        election._lock = threading.RLock()
        election._listeners = []
        election._load(data)
        return election

    def restore(self, data: Dict[str, Any]) -> None:
        """Roll the state back to an earlier :meth:`snapshot` of this
        election. Listeners are kept and nothing is emitted."""
        with self._lock:
            if data["administrator"] != self._administrator:
                raise ValueError("Snapshot belongs to another administrator")
            self._load(data)

    def _load(self, data: Dict[str, Any]) -> None:
        administrator = data["administrator"]
        if not administrator:
            raise ValueError("Snapshot has no administrator")
        total_supply = check_amount("total_supply", int(data["total_supply"]))
        balances = {
            k: check_amount("balance", int(v))
            for k, v in data.get("balances", {}).items()
        }
        roster = list(data.get("roster", []))
        tallies = {
            k: check_amount("tally", int(v))
            for k, v in data.get("tallies", {}).items()
        }
        start, end = data.get("voting_start"), data.get("voting_end")
        if (start is None) != (end is None):
            raise ValueError("Snapshot has a half-set voting window")
        loaded_events = [Event.from_dict(e) for e in data.get("events", [])]

        self._administrator = administrator
        self._total_supply = total_supply
        self._balances = balances
        self._roster = roster
        self._roster_index = set(roster)
        self._tallies = tallies
        self._voting_start = None if start is None else int(start)
        self._voting_end = None if end is None else int(end)
        self._voting_ended = bool(data.get("voting_ended", False))
        self._events = loaded_events
