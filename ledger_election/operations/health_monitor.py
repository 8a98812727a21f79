# ledger_election/operations/health_monitor.py
# Liveness/Readiness health checks (DB, disk, time)

import os, shutil
from typing import Dict
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ledger_election import db
from ledger_election.operations import time_sync

MIN_FREE_DISK_GB = float(os.getenv("MIN_FREE_DISK_GB", "1"))
MAX_TIME_OFFSET_S = float(os.getenv("MAX_TIME_OFFSET_S", "0.5"))

health_bp = Blueprint("health", __name__)


def _check_db() -> Dict:
    try:
        db.session.execute(text("SELECT 1"))
        return {"ok": True, "detail": "database ok"}
    except SQLAlchemyError as e:
        db.session.rollback()
        return {"ok": False, "error": str(e)}


def _check_disk() -> Dict:
    total, used, free = shutil.disk_usage(".")
    free_gb = free / (1024**3)
    return {"ok": free_gb >= MIN_FREE_DISK_GB, "free_gb": round(free_gb, 2), "min_required_gb": MIN_FREE_DISK_GB}


def _check_time() -> Dict:
    res = time_sync.check_time_sync()
    # consider ok if all OK and offsets within bound
    res["policy_max_offset_s"] = MAX_TIME_OFFSET_S
    res["overall_ok"] = res["overall_ok"] and all(
        abs(r.get("offset_s", 0)) <= MAX_TIME_OFFSET_S for r in res["results"] if "offset_s" in r
    )
    return res


def check_health() -> Dict:
    """Aggregate overall system health."""
    db_res = _check_db()
    disk = _check_disk()
    tm = _check_time()
    overall = db_res["ok"] and disk["ok"] and tm["overall_ok"]
    return {"db": db_res, "disk": disk, "time": tm, "overall_ok": overall}


@health_bp.get("/health")
def liveness():
    res = check_health()
    code = 200 if res["overall_ok"] else 503
    return jsonify(res), code


@health_bp.get("/ready")
def readiness():
    # readiness: DB + disk only (skip external NTP for faster readiness)
    db_res = _check_db()
    disk = _check_disk()
    ok = db_res["ok"] and disk["ok"]
    res = {"db": db_res, "disk": disk, "overall_ok": ok}
    code = 200 if ok else 503
    return jsonify(res), code
