# tests/test_token_manager.py
import pytest
import time
from flask import Flask
from flask_jwt_extended import JWTManager, jwt_required
from ledger_election.security.token_manager import TokenManager

@pytest.fixture
def app():
    app = Flask(__name__)
    app.config['TESTING'] = True
    app.config['JWT_SECRET_KEY'] = "test-secret-key-long-enough-for-hs256"
    JWTManager(app)
    return app

@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client

@pytest.fixture
def token_manager(app):
    tm = TokenManager(app)
    with app.app_context():
        yield tm

def test_generate_and_validate_token(token_manager):
    token = token_manager.generate_token("alice", expires_in=5)
    assert isinstance(token, str)
    assert token_manager.validate_token(token) == "alice"

def test_token_expiry(token_manager):
    token = token_manager.generate_token("bob", expires_in=1)  # 1 sec expiry
    # Immediately valid
    assert token_manager.validate_token(token) == "bob"
    # Wait for expiry
    time.sleep(2)
    assert token_manager.validate_token(token) is None

def test_garbage_token_is_rejected(token_manager):
    assert token_manager.validate_token("not-a-token") is None

def test_get_identity(token_manager, app, client):
    token = token_manager.generate_token("carol", expires_in=60)

    @app.route("/whoami")
    @jwt_required()  # Requires JWT in request
    def whoami():
        identity = token_manager.get_identity()
        return identity or "No identity", 200

    rv = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})
    assert rv.data.decode() == "carol"

def test_get_identity_without_token(app):
    tm = TokenManager(app)
    with app.test_request_context("/"):
        assert tm.get_identity() is None
