# ledger_election/audit/audit_logger.py

import os
import json
import hashlib
import base64
import logging
from datetime import datetime, timezone
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives import serialization

logger = logging.getLogger(__name__)

# Append-only audit log: every entry is hash chained to the previous one and
# signed with Ed25519. Election events arrive through LedgerElection.subscribe.


class AuditLogger:
    def __init__(self, log_dir='logs', signing_key=None):
        self.log_dir = log_dir
        self.log_file = os.path.join(log_dir, 'audit.log')
        self.previous_hash = None

        os.makedirs(log_dir, exist_ok=True)

        self.signing_key = signing_key or Ed25519PrivateKey.generate()
        self._load_previous_hash()

    @classmethod
    def from_key_file(cls, log_dir, key_file):
        """Use a PEM encoded Ed25519 private key so signatures survive restarts."""
        with open(key_file, 'rb') as f:
            key = serialization.load_pem_private_key(f.read(), password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError(f"{key_file} does not hold an Ed25519 private key")
        return cls(log_dir=log_dir, signing_key=key)

    def public_key_pem(self) -> str:
        pem = self.signing_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo)
        return pem.decode()

    def _load_previous_hash(self):
        if os.path.exists(self.log_file):
            with open(self.log_file, 'r') as f:
                lines = [line for line in f if line.strip()]
                if lines:
                    try:
                        last_entry = json.loads(lines[-1])
                        self.previous_hash = last_entry.get('hash')
                    except json.JSONDecodeError:
                        logger.error("Last audit entry in %s is not JSON; chain restarts", self.log_file)
                        self.previous_hash = None

    def _append(self, event_type, data, user_id=None):
        try:
            log_entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "event_type": event_type,
                "data": data,
                "user_id": user_id,
                "previous_hash": self.previous_hash,
            }
            entry_json = json.dumps(log_entry, sort_keys=True)
            entry_hash = hashlib.sha256(entry_json.encode()).hexdigest()

            signature = self.signing_key.sign(entry_json.encode())
            log_entry['hash'] = entry_hash
            log_entry['signature'] = base64.b64encode(signature).decode()

            with open(self.log_file, 'a') as f:
                f.write(json.dumps(log_entry, sort_keys=True) + "\n")

            self.previous_hash = entry_hash
            return log_entry
        except (OSError, TypeError, ValueError):
            logger.exception("Audit log write failed for %s", event_type)
            return None

    def log_event(self, event):
        """Record an election event. Signature matches LedgerElection listeners."""
        return self._append(event.name, event.to_dict(), user_id=event.caller)

    def log_rejection(self, operation, error, user_id=None):
        return self._append('operation_rejected', {
            'operation': operation,
            'error': type(error).__name__,
            'message': str(error),
        }, user_id=user_id)

    def read_entries(self):
        if not os.path.exists(self.log_file):
            return []
        entries = []
        with open(self.log_file, 'r') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    entries.append({'raw': line})
        return entries

    def verify_log_integrity(self, public_key=None):
        public_key = public_key or self.signing_key.public_key()
        if not os.path.exists(self.log_file):
            return True
        previous_hash = None
        try:
            with open(self.log_file, 'r') as f:
                for line in f:
                    if not line.strip():
                        continue
                    log_entry = json.loads(line)
                    if log_entry.get('previous_hash') != previous_hash:
                        return False
                    entry_copy = dict(log_entry)
                    signature = base64.b64decode(entry_copy.pop('signature'))
                    entry_hash = entry_copy.pop('hash')
                    entry_json = json.dumps(entry_copy, sort_keys=True).encode()
                    if hashlib.sha256(entry_json).hexdigest() != entry_hash:
                        return False
                    public_key.verify(signature, entry_json)
                    previous_hash = entry_hash
        except (InvalidSignature, KeyError, ValueError) as e:
            logger.warning("Audit log verification failed: %s", e)
            return False
        return True
