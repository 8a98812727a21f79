# ledger_election/__init__.py

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix
import logging
import os
from flask_jwt_extended import JWTManager
from datetime import timedelta

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = Flask(__name__)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'change-me-in-production')
app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET_KEY', 'change-me-in-production-ledger-jwt-key')
app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(minutes=int(os.environ.get('JWT_EXPIRES_MINUTES', '30')))
app.config['JWT_TOKEN_LOCATION'] = ['headers']          # Send via headers (Bearer)

# Election authority and initial issuance, fixed when the election is first created
app.config['ELECTION_ADMINISTRATOR'] = os.environ.get('ELECTION_ADMINISTRATOR', 'admin')
app.config['ELECTION_INITIAL_SUPPLY'] = int(os.environ.get('ELECTION_INITIAL_SUPPLY', '0'))
app.config['ELECTION_MAX_DURATION'] = int(os.environ.get('ELECTION_MAX_DURATION', str(90 * 24 * 3600)))
app.config['ELECTION_CLOCK'] = None  # None -> system clock

app.config['AUDIT_LOG_DIR'] = os.environ.get('AUDIT_LOG_DIR', 'logs')
app.config['AUDIT_SIGNING_KEY_FILE'] = os.environ.get('AUDIT_SIGNING_KEY_FILE')
app.config['BACKUP_OUTDIR'] = os.environ.get('BACKUP_OUTDIR', './backups')
app.config['BACKUP_AES256_KEY'] = os.environ.get('BACKUP_AES256_KEY')

app.config['VOTE_RATE_LIMIT'] = os.environ.get('VOTE_RATE_LIMIT', '60/minute')
app.config['RATELIMIT_ENABLED'] = os.environ.get('RATELIMIT_ENABLED', 'true').lower() == 'true'

jwt = JWTManager(app)

@jwt.expired_token_loader
def expired_token_callback(jwt_header, jwt_payload):
    return jsonify({"error": "token_expired", "message": "Token has expired"}), 401

@jwt.unauthorized_loader
def missing_token_callback(reason):
    return jsonify({"error": "unauthenticated", "message": reason}), 401

@jwt.invalid_token_loader
def invalid_token_callback(reason):
    return jsonify({"error": "invalid_token", "message": reason}), 401

app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get(
    'DATABASE_URL', 'sqlite:///ledger_election.db'
)
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

# Fix proxy headers for HTTPS
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

# Initialize extensions
db = SQLAlchemy(app)  # Database ORM
migrate = Migrate(app, db)  # DB migrations

limiter = Limiter(key_func=get_remote_address, default_limits=["10000/hour"])
limiter.init_app(app)


# Ensure model modules are imported so SQLAlchemy metadata is populated
# This makes models discoverable by Flask-Migrate / Alembic when running
# `flask db migrate`.
from ledger_election.database import models  # noqa: F401

from ledger_election import routes  # noqa: F401,E402
from ledger_election import cli  # noqa: F401,E402
