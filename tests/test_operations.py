from types import SimpleNamespace
from unittest.mock import patch

import ntplib

from ledger_election.operations import time_sync
from ledger_election.operations.time_sync import ManualClock, check_time_sync, system_clock


def test_system_clock_returns_whole_seconds():
    now = system_clock()
    assert isinstance(now, int)
    assert now > 1_600_000_000


def test_manual_clock_moves_only_when_told():
    clock = ManualClock(100)
    assert clock() == 100
    assert clock.advance(5) == 105
    clock.set(7)
    assert clock() == 7


def test_check_time_sync_averages_offsets():
    responses = iter([SimpleNamespace(offset=0.1, tx_time=1_700_000_000.0),
                      SimpleNamespace(offset=0.3, tx_time=1_700_000_000.0)])
    with patch.object(time_sync.ntplib.NTPClient, "request", side_effect=lambda *a, **k: next(responses)):
        summary = check_time_sync(["a.example", "b.example"])
    assert summary["overall_ok"] is True
    assert summary["average_offset_s"] == 0.2
    assert [r["status"] for r in summary["results"]] == ["ok", "ok"]


def test_check_time_sync_reports_failures():
    with patch.object(time_sync.ntplib.NTPClient, "request", side_effect=ntplib.NTPException("no response")):
        summary = check_time_sync(["a.example"])
    assert summary["overall_ok"] is False
    assert summary["average_offset_s"] is None
    assert summary["results"][0]["status"] == "failed"


def test_check_time_sync_flags_drift():
    drifted = SimpleNamespace(offset=2.0, tx_time=1_700_000_000.0)
    with patch.object(time_sync.ntplib.NTPClient, "request", return_value=drifted):
        summary = check_time_sync(["a.example"])
    assert summary["overall_ok"] is False
    assert summary["results"][0]["status"] == "drifted"


def test_readiness_endpoint(client):
    resp = client.get("/ready")
    assert resp.status_code in (200, 503)
    assert resp.get_json()["db"]["ok"] is True


def test_health_endpoint_includes_time_sync(client):
    fake = {"overall_ok": True, "average_offset_s": 0.0, "max_allowed_offset_s": 0.5,
            "results": [{"server": "a.example", "offset_s": 0.0, "status": "ok"}]}
    with patch.object(time_sync, "check_time_sync", return_value=fake):
        resp = client.get("/health")
    data = resp.get_json()
    assert data["time"]["overall_ok"] is True
    assert data["db"]["ok"] is True
    assert resp.status_code == (200 if data["disk"]["ok"] else 503)
