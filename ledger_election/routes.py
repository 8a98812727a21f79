# ledger_election/routes.py

# JSON API over the election. Caller identity is the JWT subject; every
# privileged check happens inside LedgerElection itself.

from flask import request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
from werkzeug.exceptions import BadRequest, HTTPException
import logging

from ledger_election import app, limiter
from ledger_election.authentication.rbac import RBACService, Permission, require_permission
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
from ledger_election.operations.health_monitor import health_bp
from ledger_election.security.input_validator import InputValidator
from ledger_election.security.token_manager import TokenManager
from ledger_election.service import execute, get_audit_logger, get_election

logger = logging.getLogger(__name__)

rbac_service = RBACService()
validator = InputValidator(max_duration=app.config['ELECTION_MAX_DURATION'])
token_manager = TokenManager(app)

app.register_blueprint(health_bp)

ERROR_STATUS = {
    Unauthorized: 403,
    UnknownCandidate: 404,
    InsufficientBalance: 409,
    VotingNotActive: 409,
    ElectionClosed: 409,
    VotingAlreadyOpened: 409,
    InvalidAmount: 400,
}


def _administrator():
    return get_election().administrator


def _validated(validate):
    try:
        return validate(request.get_json(silent=True))
    except ValueError as e:
        raise BadRequest(str(e))


def _event_response(event, status=200):
    return jsonify({'event': event.to_dict()}), status


@app.errorhandler(LedgerElectionError)
def handle_election_error(error):
    get_audit_logger().log_rejection(request.endpoint, error, user_id=token_manager.get_identity())
    status = ERROR_STATUS.get(type(error), 400)
    return jsonify({'error': type(error).__name__, 'message': str(error)}), status


@app.errorhandler(HTTPException)
def handle_http_error(error):
    return jsonify({'error': error.name, 'message': error.description}), error.code


# --- Balance ledger ---

@app.route('/balances/issue', methods=['POST'])
@jwt_required()
def issue_balance():
    caller = get_jwt_identity()
    data = _validated(validator.validate_transfer_data)
    event = execute(lambda e: e.issue_balance(caller, data['target'], data['amount']))
    return _event_response(event, 201)


@app.route('/balances/retire', methods=['POST'])
@jwt_required()
def retire_balance():
    caller = get_jwt_identity()
    data = _validated(validator.validate_transfer_data)
    event = execute(lambda e: e.retire_balance(caller, data['target'], data['amount']))
    return _event_response(event)


@app.route('/balances/<address>')
def balance_of(address):
    if not validator.validate_address(address):
        raise BadRequest("Invalid address")
    return jsonify({'address': address, 'balance': get_election().balance_of(address)})


# --- Candidates and voting window ---

@app.route('/candidates', methods=['POST'])
@jwt_required()
def register_candidate():
    caller = get_jwt_identity()
    data = _validated(validator.validate_candidate_data)
    event = execute(lambda e: e.register_candidate(caller, data['candidate']))
    return _event_response(event, 201)


@app.route('/candidates')
def get_roster():
    return jsonify({'candidates': get_election().get_roster()})


@app.route('/voting/open', methods=['POST'])
@jwt_required()
def open_voting():
    caller = get_jwt_identity()
    data = _validated(validator.validate_window_data)
    event = execute(lambda e: e.open_voting(caller, data['duration']))
    return _event_response(event)


@app.route('/voting/close', methods=['POST'])
@jwt_required()
def close_voting():
    caller = get_jwt_identity()
    event = execute(lambda e: e.close_voting(caller))
    return _event_response(event)


# --- Votes and results ---

@app.route('/votes', methods=['POST'])
@jwt_required()
@limiter.limit(lambda: app.config['VOTE_RATE_LIMIT'])
def cast_vote():
    caller = get_jwt_identity()
    data = _validated(validator.validate_vote_data)
    event = execute(lambda e: e.cast_vote(caller, data['candidate'], data['amount']))
    return _event_response(event, 201)


@app.route('/tallies/<candidate>')
def get_tally(candidate):
    if not validator.validate_address(candidate):
        raise BadRequest("Invalid candidate")
    return jsonify({'candidate': candidate, 'tally': get_election().get_tally(candidate)})


@app.route('/tallies')
def get_tallies():
    return jsonify({'tallies': get_election().tallies()})


@app.route('/election')
def election_summary():
    election = get_election()
    with election.lock:
        start, end, ended = election.voting_window
        tallies = election.tallies()
        return jsonify({
            'administrator': election.administrator,
            'phase': election.phase().value,
            'total_supply': election.total_supply,
            'circulating': sum(election.balances().values()),
            'voted': sum(tallies.values()),
            'voting_start': start,
            'voting_end': end,
            'voting_ended': ended,
            'candidates': len(election.get_roster()),
        })


@app.route('/events')
def list_events():
    since = request.args.get('since', 0, type=int)
    return jsonify({'events': [e.to_dict() for e in get_election().events if e.seq > since]})


@app.route('/me')
@jwt_required()
def whoami():
    identity = get_jwt_identity()
    election = get_election()
    role = rbac_service.role_for(identity, election.administrator)
    return jsonify({
        'identity': identity,
        'role': role.value,
        'permissions': [p.value for p in rbac_service.get_permissions(role)],
        'balance': election.balance_of(identity),
    })


# --- Audit log ---

@app.route('/audit-log')
@require_permission(Permission.VIEW_AUDIT_LOGS, administrator=_administrator)
def view_audit_log():
    # show newest first
    entries = list(reversed(get_audit_logger().read_entries()))
    return jsonify({'entries': entries})


@app.route('/audit-log/verify')
@require_permission(Permission.VIEW_AUDIT_LOGS, administrator=_administrator)
def verify_audit_log():
    audit = get_audit_logger()
    return jsonify({'valid': audit.verify_log_integrity(), 'public_key': audit.public_key_pem()})
