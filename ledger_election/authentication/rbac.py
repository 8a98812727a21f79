# ledger_election/authentication/rbac.py

from enum import Enum
from functools import wraps
import logging

from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ledger_election.core.errors import Unauthorized

# Role-based access control. There are only two roles: the administrator
# fixed in the election, and every other participant.

logger = logging.getLogger(__name__)


class UserRole(Enum):
    PARTICIPANT = "participant"
    ADMINISTRATOR = "administrator"


class Permission(Enum):
    ISSUE_BALANCE = "issue_balance"
    RETIRE_BALANCE = "retire_balance"
    REGISTER_CANDIDATE = "register_candidate"
    OPEN_VOTING = "open_voting"
    CLOSE_VOTING = "close_voting"
    CAST_VOTE = "cast_vote"
    VIEW_RESULTS = "view_results"
    VIEW_AUDIT_LOGS = "view_audit_logs"


# Role -> Permissions mapping
ROLE_PERMISSIONS = {
    UserRole.PARTICIPANT: [
        Permission.CAST_VOTE,
        Permission.VIEW_RESULTS,
    ],
    UserRole.ADMINISTRATOR: [
        Permission.ISSUE_BALANCE,
        Permission.RETIRE_BALANCE,
        Permission.REGISTER_CANDIDATE,
        Permission.OPEN_VOTING,
        Permission.CLOSE_VOTING,
        Permission.CAST_VOTE,
        Permission.VIEW_RESULTS,
        Permission.VIEW_AUDIT_LOGS,
    ],
}


class RBACService:
    def role_for(self, identity, administrator):
        if identity is not None and identity == administrator:
            return UserRole.ADMINISTRATOR
        return UserRole.PARTICIPANT

    def has_permission(self, user_role, permission):
        if isinstance(user_role, str):
            user_role = UserRole(user_role)
        if isinstance(permission, str):
            permission = Permission(permission)
        return permission in ROLE_PERMISSIONS.get(user_role, [])

    def get_permissions(self, user_role):
        if isinstance(user_role, str):
            user_role = UserRole(user_role)
        return ROLE_PERMISSIONS.get(user_role, [])


# Decorator for required permission. `administrator` is a callable so the
# identity is looked up per request rather than at import time.
def require_permission(permission, administrator):
    rbac = RBACService()

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            identity = get_jwt_identity()
            role = rbac.role_for(identity, administrator())
            if not rbac.has_permission(role, permission):
                logger.warning("%s (%s) denied %s", identity, role.value, permission.value)
                raise Unauthorized(identity, permission.value.replace('_', ' '))
            return func(*args, **kwargs)
        return wrapper
    return decorator
