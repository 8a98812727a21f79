# ledger_election/service.py
"""The one election instance served by the app.

The election is loaded from the database (or created from configuration) on
first use and kept in ``app.extensions``. Mutations go through
:func:`execute`, which holds the election lock across "apply, then persist"
so stored snapshots follow operation order. An operation whose save fails is
rolled back in memory, and only committed events reach the audit log.
"""

import logging
import threading

from flask import current_app

from ledger_election import db
from ledger_election.audit.audit_logger import AuditLogger
from ledger_election.core.election import LedgerElection
from ledger_election.database.repository import load_election, save_election
from ledger_election.operations.time_sync import system_clock

logger = logging.getLogger(__name__)

ELECTION_KEY = 'ledger_election'
AUDIT_KEY = 'ledger_election.audit'

_init_lock = threading.Lock()


def get_audit_logger() -> AuditLogger:
    audit = current_app.extensions.get(AUDIT_KEY)
    if audit is None:
        log_dir = current_app.config['AUDIT_LOG_DIR']
        key_file = current_app.config.get('AUDIT_SIGNING_KEY_FILE')
        if key_file:
            audit = AuditLogger.from_key_file(log_dir, key_file)
        else:
            audit = AuditLogger(log_dir=log_dir)
        current_app.extensions[AUDIT_KEY] = audit
    return audit


def get_election() -> LedgerElection:
    election = current_app.extensions.get(ELECTION_KEY)
    if election is None:
        with _init_lock:
            election = current_app.extensions.get(ELECTION_KEY)
            if election is None:
                election = _bootstrap()
                current_app.extensions[ELECTION_KEY] = election
    return election


def _bootstrap() -> LedgerElection:
    config = current_app.config
    clock = config.get('ELECTION_CLOCK') or system_clock
    audit = get_audit_logger()

    db.create_all()
    election = load_election(clock=clock)
    if election is None:
        election = LedgerElection(
            config['ELECTION_ADMINISTRATOR'],
            initial_supply=config['ELECTION_INITIAL_SUPPLY'],
            clock=clock,
        )
        save_election(election)
        for event in election.events:
            audit.log_event(event)
        logger.info("Created election administered by %s", election.administrator)
    else:
        if election.administrator != config['ELECTION_ADMINISTRATOR']:
            logger.warning("Stored administrator %s overrides configured %s",
                           election.administrator, config['ELECTION_ADMINISTRATOR'])
        logger.info("Loaded election with %d events", len(election.events))
    return election


def execute(operation):
    """Run ``operation(election)`` and persist the result atomically.

    If persisting fails the election is restored to its state before the
    operation and the error is re-raised.
    """
    election = get_election()
    with election.lock:
        before = election.snapshot()
        result = operation(election)
        try:
            save_election(election)
        except Exception:
            logger.exception("Persisting election failed, rolling back to event #%d",
                             len(before["events"]))
            election.restore(before)
            raise
        audit = get_audit_logger()
        for event in election.events[len(before["events"]):]:
            audit.log_event(event)
    return result


def reset():
    """Forget the cached election and audit logger (tests, re-initialisation)."""
    current_app.extensions.pop(ELECTION_KEY, None)
    current_app.extensions.pop(AUDIT_KEY, None)
