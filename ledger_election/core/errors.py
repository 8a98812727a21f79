# ledger_election/core/errors.py
"""Errors raised by the election state machine.

Every error is a precondition failure: when one is raised the election has
not been mutated and no event has been emitted, so the caller may retry with
different arguments or after a phase change.
"""


class LedgerElectionError(Exception):
    """Base class for all rejected election operations."""


class Unauthorized(LedgerElectionError):
    """A non-administrator invoked an administrator-only operation."""

    def __init__(self, caller, operation):
        self.caller = caller
        self.operation = operation
        super().__init__(f"{caller!r} is not allowed to {operation}")


class InsufficientBalance(LedgerElectionError):
    """A retirement or vote exceeds the available balance."""

    def __init__(self, address, available, requested):
        self.address = address
        self.available = available
        self.requested = requested
        super().__init__(
            f"balance of {address!r} is {available}, cannot spend {requested}"
        )


class UnknownCandidate(LedgerElectionError):
    """The vote target is not on the roster."""

    def __init__(self, candidate):
        self.candidate = candidate
        super().__init__(f"{candidate!r} is not a registered candidate")


class VotingNotActive(LedgerElectionError):
    """A vote or a close was attempted outside the active window."""

    def __init__(self, phase):
        self.phase = phase
        super().__init__(f"voting is not active (phase: {phase.value})")


class ElectionClosed(LedgerElectionError):
    """Registration or window opening was attempted after closing."""

    def __init__(self, operation):
        self.operation = operation
        super().__init__(f"cannot {operation}: the election is closed")


class VotingAlreadyOpened(LedgerElectionError):
    """The voting window has already been set for this election."""

    def __init__(self, start, end):
        self.start = start
        self.end = end
        super().__init__(f"voting window already set to [{start}, {end})")


class InvalidAmount(LedgerElectionError, ValueError):
    """An amount or duration is not an unsigned 256-bit integer, or an
    addition would leave that range."""

    def __init__(self, name, value, reason="must be an integer in [0, 2**256)"):
        self.name = name
        self.value = value
        super().__init__(f"invalid {name} {value!r}: {reason}")
