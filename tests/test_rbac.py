import pytest
from flask import Flask
from flask_jwt_extended import JWTManager, create_access_token
from ledger_election.authentication import rbac
from ledger_election.core.errors import Unauthorized

@pytest.mark.parametrize("role,permission,allowed", [
    ("participant", "cast_vote", True),
    ("participant", "issue_balance", False),
    ("participant", "view_audit_logs", False),
    ("administrator", "issue_balance", True),
    ("administrator", "close_voting", True),
    ("administrator", "cast_vote", True),
])
def test_has_permission(role, permission, allowed):
    assert rbac.RBACService().has_permission(role, permission) is allowed

def test_role_for_compares_identity_with_administrator():
    service = rbac.RBACService()
    assert service.role_for("admin", "admin") is rbac.UserRole.ADMINISTRATOR
    assert service.role_for("alice", "admin") is rbac.UserRole.PARTICIPANT
    assert service.role_for(None, "admin") is rbac.UserRole.PARTICIPANT

def _make_app(permission):
    app = Flask(__name__)
    app.config["JWT_SECRET_KEY"] = "test-secret-key-long-enough-for-hs256"
    JWTManager(app)

    @app.errorhandler(Unauthorized)
    def forbidden(error):
        return str(error), 403

    @app.route("/test")
    @rbac.require_permission(permission, administrator=lambda: "admin")
    def test_view():
        return "ok"
    return app

def _get(app, identity):
    with app.app_context():
        token = create_access_token(identity=identity)
    with app.test_client() as client:
        return client.get("/test", headers={"Authorization": f"Bearer {token}"})

def test_require_permission_allows_administrator():
    resp = _get(_make_app(rbac.Permission.VIEW_AUDIT_LOGS), "admin")
    assert resp.status_code == 200
    assert resp.data == b"ok"

def test_require_permission_denies_participant():
    resp = _get(_make_app(rbac.Permission.VIEW_AUDIT_LOGS), "alice")
    assert resp.status_code == 403

def test_require_permission_allows_participant_permission():
    resp = _get(_make_app(rbac.Permission.CAST_VOTE), "alice")
    assert resp.status_code == 200

def test_require_permission_needs_token():
    app = _make_app(rbac.Permission.CAST_VOTE)
    with app.test_client() as client:
        assert client.get("/test").status_code == 401
