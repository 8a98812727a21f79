# ledger_election/security/input_validator.py

import re

from ledger_election.core.election import check_amount

# Validation of request payloads before they reach the election. Identities
# are opaque strings; only their shape is checked here.

class InputValidator:
    def __init__(self, max_duration=None):
        self.max_duration = max_duration
        self.patterns = {
            'address': re.compile(r'^[A-Za-z0-9_.:@-]{1,64}$'),
        }

    def validate_address(self, address):
        return isinstance(address, str) and bool(self.patterns['address'].match(address))

    def require_address(self, payload, field):
        value = payload.get(field)
        if not self.validate_address(value):
            raise ValueError(f"Invalid or missing {field}")
        return value

    def require_amount(self, payload, field='amount'):
        if field not in payload:
            raise ValueError(f"Missing required field: {field}")
        return check_amount(field, payload[field])

    def require_payload(self, payload):
        if not isinstance(payload, dict):
            raise ValueError("Request body must be a JSON object")
        return payload

    def validate_transfer_data(self, payload):
        """Payload of issue/retire: target address and amount."""
        self.require_payload(payload)
        return {
            'target': self.require_address(payload, 'target'),
            'amount': self.require_amount(payload),
        }

    def validate_candidate_data(self, payload):
        self.require_payload(payload)
        return {'candidate': self.require_address(payload, 'candidate')}

    def validate_vote_data(self, payload):
        self.require_payload(payload)
        return {
            'candidate': self.require_address(payload, 'candidate'),
            'amount': self.require_amount(payload),
        }

    def validate_window_data(self, payload):
        self.require_payload(payload)
        duration = self.require_amount(payload, 'duration')
        if self.max_duration is not None and duration > self.max_duration:
            raise ValueError(f"duration must not exceed {self.max_duration} seconds")
        return {'duration': duration}
