import os

# Must be set before ledger_election creates its app
os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('RATELIMIT_ENABLED', 'false')
os.environ.setdefault('ELECTION_ADMINISTRATOR', 'admin')
os.environ.setdefault('ELECTION_INITIAL_SUPPLY', '1000')

import pytest
from flask_jwt_extended import create_access_token

from ledger_election import app as flask_app, db
from ledger_election import service
from ledger_election.core.election import LedgerElection
from ledger_election.operations.time_sync import ManualClock

START = 1_700_000_000


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def election(clock):
    """Election with supply 1000, Alice holding 200 and candidates X and Y."""
    e = LedgerElection("admin", initial_supply=1000, clock=clock)
    e.issue_balance("admin", "alice", 200)
    e.register_candidate("admin", "x")
    e.register_candidate("admin", "y")
    return e


@pytest.fixture
def app(tmp_path, clock):
    flask_app.config.update(
        TESTING=True,
        AUDIT_LOG_DIR=str(tmp_path / "audit"),
        BACKUP_OUTDIR=str(tmp_path / "backups"),
        ELECTION_CLOCK=clock,
    )
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        service.reset()
        yield flask_app
        service.reset()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def auth_headers(app):
    def make(identity):
        token = create_access_token(identity=identity)
        return {"Authorization": f"Bearer {token}"}
    return make
