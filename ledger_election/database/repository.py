# ledger_election/database/repository.py
"""Store and load the election snapshot through Flask-SQLAlchemy.

``save_election`` rewrites balances, roster and tallies from the snapshot and
appends the events the database has not seen yet. It must run inside an
application context.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

from ledger_election import db
from ledger_election.core.election import LedgerElection
from ledger_election.database.models import (
    Balance, ElectionState, EventRecord, RosterEntry, Tally,
)

logger = logging.getLogger(__name__)


def _int_or_none(value: Optional[str]) -> Optional[int]:
    return None if value is None else int(value)


def _str_or_none(value: Optional[int]) -> Optional[str]:
    return None if value is None else str(value)


def save_election(election: LedgerElection) -> None:
    with election.lock:
        snap = election.snapshot()
    try:
        state = db.session.get(ElectionState, 1)
        if state is None:
            state = ElectionState(id=1, administrator=snap['administrator'])
            db.session.add(state)
        elif state.administrator != snap['administrator']:
            raise ValueError(
                f"Stored election belongs to {state.administrator!r}, "
                f"not {snap['administrator']!r}")
        state.total_supply = str(snap['total_supply'])
        state.voting_start = _str_or_none(snap['voting_start'])
        state.voting_end = _str_or_none(snap['voting_end'])
        state.voting_ended = snap['voting_ended']

        db.session.query(Balance).delete()
        db.session.query(RosterEntry).delete()
        db.session.query(Tally).delete()
        db.session.add_all(
            Balance(address=address, amount=str(amount))
            for address, amount in snap['balances'].items())
        db.session.add_all(
            RosterEntry(position=position, candidate=candidate)
            for position, candidate in enumerate(snap['roster']))
        db.session.add_all(
            Tally(candidate=candidate, weight=str(weight))
            for candidate, weight in snap['tallies'].items())

        stored = db.session.query(db.func.max(EventRecord.seq)).scalar() or 0
        db.session.add_all(
            EventRecord(seq=e['seq'], name=e['name'], caller=e['caller'],
                        timestamp=str(e['timestamp']), params=json.dumps(e['params']))
            for e in snap['events'] if e['seq'] > stored)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.debug("Saved election snapshot (%d events)", len(snap['events']))


def load_snapshot() -> Optional[Dict[str, Any]]:
    state = db.session.get(ElectionState, 1)
    if state is None:
        return None
    return {
        'administrator': state.administrator,
        'total_supply': int(state.total_supply),
        'voting_start': _int_or_none(state.voting_start),
        'voting_end': _int_or_none(state.voting_end),
        'voting_ended': state.voting_ended,
        'balances': {b.address: int(b.amount) for b in db.session.query(Balance)},
        'roster': [r.candidate for r in
                   db.session.query(RosterEntry).order_by(RosterEntry.position)],
        'tallies': {t.candidate: int(t.weight) for t in db.session.query(Tally)},
        'events': [
            {'seq': e.seq, 'name': e.name, 'caller': e.caller,
             'timestamp': int(e.timestamp), 'params': json.loads(e.params)}
            for e in db.session.query(EventRecord).order_by(EventRecord.seq)
        ],
    }


def load_election(clock: Optional[Callable[[], int]] = None) -> Optional[LedgerElection]:
    snap = load_snapshot()
    if snap is None:
        return None
    return LedgerElection.from_snapshot(snap, clock=clock)
