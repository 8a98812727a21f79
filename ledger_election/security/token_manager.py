# ledger_election/security/token_manager.py
from datetime import timedelta
from flask_jwt_extended import create_access_token, decode_token, get_jwt_identity
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from flask import current_app, Flask

# A token's `sub` claim is the caller identity that LedgerElection compares
# against its administrator; nothing else in the token is trusted.
class TokenManager:
    def __init__(self, app: Flask = None):
        if app:
            self.init_app(app)

    def init_app(self, app: Flask):
        app.config.setdefault("JWT_SECRET_KEY", "change_this_secret_key")
        app.config.setdefault("JWT_ACCESS_TOKEN_EXPIRES", timedelta(hours=1))

    def generate_token(self, identity: str, expires_in: int = 3600) -> str:
        if not identity:
            raise ValueError("A token needs a caller identity")
        return create_access_token(identity=identity,
                                   expires_delta=timedelta(seconds=expires_in))

    def validate_token(self, token: str):
        """Caller identity carried by ``token``, or None if it is expired,
        forged or malformed."""
        try:
            claims = decode_token(token, allow_expired=False)
        except (JWTExtendedException, PyJWTError) as e:
            current_app.logger.warning(f"Rejected caller token: {e}")
            return None
        return claims.get("sub") or None

    def get_identity(self):
        # Caller of the current request; None outside a verified request.
        try:
            return get_jwt_identity()
        except RuntimeError:
            return None
