# ledger_election/database/models.py

from ledger_election import db
from datetime import datetime, timezone

# Persisted layout of the election. Quantities are decimal strings because
# they range over unsigned 256-bit integers.

UINT256_DIGITS = 78


def _utcnow():
    return datetime.now(timezone.utc)


class ElectionState(db.Model):
    __tablename__ = 'election_state'
    id = db.Column(db.Integer, primary_key=True)
    administrator = db.Column(db.String(64), nullable=False)
    total_supply = db.Column(db.String(UINT256_DIGITS), nullable=False, default='0')
    voting_start = db.Column(db.String(UINT256_DIGITS), nullable=True)
    voting_end = db.Column(db.String(UINT256_DIGITS), nullable=True)
    voting_ended = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)


class Balance(db.Model):
    __tablename__ = 'balances'
    address = db.Column(db.String(64), primary_key=True)
    amount = db.Column(db.String(UINT256_DIGITS), nullable=False)


class RosterEntry(db.Model):
    __tablename__ = 'roster'
    position = db.Column(db.Integer, primary_key=True, autoincrement=False)
    candidate = db.Column(db.String(64), nullable=False, index=True)


class Tally(db.Model):
    __tablename__ = 'tallies'
    candidate = db.Column(db.String(64), primary_key=True)
    weight = db.Column(db.String(UINT256_DIGITS), nullable=False)


class EventRecord(db.Model):
    __tablename__ = 'events'
    seq = db.Column(db.Integer, primary_key=True, autoincrement=False)
    name = db.Column(db.String(32), nullable=False)
    caller = db.Column(db.String(64), nullable=False)
    timestamp = db.Column(db.String(UINT256_DIGITS), nullable=False)
    params = db.Column(db.Text, nullable=False)  # JSON

    def __repr__(self):
        return f'<Event {self.seq} {self.name} by {self.caller}>'
