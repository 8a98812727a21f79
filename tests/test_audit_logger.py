import os
import json
import base64
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from ledger_election.audit.audit_logger import AuditLogger
from ledger_election.core.election import LedgerElection
from ledger_election.core.errors import Unauthorized

@pytest.fixture
def temp_log_dir(tmp_path):
    """Create a temporary directory for test logs."""
    log_dir = tmp_path / "test_logs"
    log_dir.mkdir()
    return str(log_dir)

@pytest.fixture
def audit_logger(temp_log_dir):
    """Create an AuditLogger instance with a temporary log directory."""
    return AuditLogger(log_dir=temp_log_dir)

@pytest.fixture
def subscribed_election(audit_logger, clock):
    election = LedgerElection("admin", initial_supply=100, clock=clock)
    election.subscribe(audit_logger.log_event)
    return election

def test_init_creates_log_directory(temp_log_dir):
    """Test that initializing AuditLogger creates the log directory."""
    os.rmdir(temp_log_dir)
    AuditLogger(log_dir=temp_log_dir)
    assert os.path.exists(temp_log_dir)

def test_log_event_basic(subscribed_election, audit_logger):
    """Election events are written with their parameters and caller."""
    subscribed_election.issue_balance("admin", "alice", 40)

    with open(audit_logger.log_file, 'r') as f:
        log_entry = json.loads(f.readline())

    assert log_entry['event_type'] == 'BalanceIssued'
    assert log_entry['data']['params'] == {'target': 'alice', 'amount': 40}
    assert log_entry['data']['seq'] == 2
    assert log_entry['user_id'] == 'admin'
    assert 'timestamp' in log_entry
    assert 'hash' in log_entry
    assert 'signature' in log_entry
    assert log_entry['previous_hash'] is None  # First entry

def test_hash_chaining(subscribed_election, audit_logger):
    """Test that hash chaining works correctly between consecutive log entries."""
    subscribed_election.register_candidate("admin", "x")
    first_hash = audit_logger.previous_hash

    subscribed_election.register_candidate("admin", "y")

    with open(audit_logger.log_file, 'r') as f:
        lines = f.readlines()
        second_entry = json.loads(lines[1])

    assert second_entry['previous_hash'] == first_hash

def test_signature_verification(audit_logger):
    """Test that log entries have valid signatures."""
    audit_logger.log_rejection('cast_vote', Unauthorized('bob', 'open voting'), user_id='bob')

    with open(audit_logger.log_file, 'r') as f:
        log_entry = json.loads(f.readline())

    entry_copy = dict(log_entry)
    signature = entry_copy.pop('signature')
    entry_copy.pop('hash')
    entry_json = json.dumps(entry_copy, sort_keys=True).encode()

    # This should not raise an exception if signature is valid
    public_key = audit_logger.signing_key.public_key()
    public_key.verify(base64.b64decode(signature), entry_json)
    assert log_entry['data']['error'] == 'Unauthorized'

def test_verify_log_integrity_valid(subscribed_election, audit_logger):
    """Test log integrity verification with valid logs."""
    subscribed_election.register_candidate("admin", "x")
    subscribed_election.open_voting("admin", 60)
    subscribed_election.cast_vote("admin", "x", 10)

    assert len(audit_logger.read_entries()) == 3
    assert audit_logger.verify_log_integrity() is True

def test_verify_log_integrity_appended_garbage(subscribed_election, audit_logger):
    subscribed_election.register_candidate("admin", "x")

    with open(audit_logger.log_file, 'a') as f:
        f.write('{"tampered": true}\n')

    assert audit_logger.verify_log_integrity() is False

def test_verify_log_integrity_edited_entry(subscribed_election, audit_logger):
    subscribed_election.issue_balance("admin", "alice", 5)
    subscribed_election.issue_balance("admin", "bob", 5)

    with open(audit_logger.log_file, 'r') as f:
        lines = f.readlines()
    entry = json.loads(lines[0])
    entry['data']['params']['amount'] = 5000
    lines[0] = json.dumps(entry, sort_keys=True) + "\n"
    with open(audit_logger.log_file, 'w') as f:
        f.writelines(lines)

    assert audit_logger.verify_log_integrity() is False

def test_verify_with_foreign_key_fails(subscribed_election, audit_logger):
    subscribed_election.register_candidate("admin", "x")
    other = Ed25519PrivateKey.generate().public_key()
    assert audit_logger.verify_log_integrity(public_key=other) is False

def test_load_previous_hash(temp_log_dir):
    """Test that previous hash is correctly loaded from existing log file."""
    logger1 = AuditLogger(log_dir=temp_log_dir)
    logger1.log_rejection('open_voting', ValueError("bad"), user_id='bob')
    first_hash = logger1.previous_hash

    logger2 = AuditLogger(log_dir=temp_log_dir)
    assert logger2.previous_hash == first_hash

def test_key_file_keeps_log_verifiable_across_instances(tmp_path, temp_log_dir):
    key = Ed25519PrivateKey.generate()
    key_file = tmp_path / "audit.pem"
    key_file.write_bytes(key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()))

    first = AuditLogger.from_key_file(temp_log_dir, str(key_file))
    first.log_rejection('close_voting', ValueError("early"))
    second = AuditLogger.from_key_file(temp_log_dir, str(key_file))
    second.log_rejection('close_voting', ValueError("late"))

    assert second.verify_log_integrity() is True
    assert len(second.read_entries()) == 2

def test_error_handling(audit_logger, monkeypatch):
    """Write failures are reported, not raised into the election."""
    def mock_open(*args, **kwargs):
        raise PermissionError("Access denied")

    monkeypatch.setattr("builtins.open", mock_open)

    assert audit_logger.log_rejection("cast_vote", ValueError("x")) is None
    assert audit_logger.previous_hash is None
