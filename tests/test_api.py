"""
HTTP API tests
==============
Routes under /api via FastAPI's TestClient.
Run with: python3 -m pytest tests/test_api.py -v
"""

import os
import sys

from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from launch_sim.main import app
from launch_sim.utils.json_safety import sanitize_floats


client = TestClient(app)

SMALL = {"bid_count": 30, "trading_days": 1}


def test_health():
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_reference_config():
    r = client.get("/api/reference")
    assert r.status_code == 200
    body = r.json()
    assert body["total_supply"] == 1_000_000
    assert body["bid_shape"] == "power_law"
    assert body["traders"] == {"random": 5, "momentum": 3, "arbitrage": 2}


def test_simulate_returns_full_result():
    r = client.post("/api/simulate", json=SMALL)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["config"]["trading_days"] == 1
    assert set(body) == {"config", "auction", "vault", "pools", "trades", "traders",
                         "settlement", "sensitivity", "comparison"}
    assert 0 < body["auction"]["clearing_tier_ratio"] <= 1
    assert isinstance(body["pools"]["pt"][0]["sqrt_price_x96"], str)
    assert len(body["comparison"]["models"]) == 4


def test_simulate_rejects_invalid_config():
    r = client.post("/api/simulate", json={"total_supply": -5})
    assert r.status_code == 422
    r = client.post("/api/simulate", json={"bid_shape": "gaussian"})
    assert r.status_code == 422


def test_simulate_rejects_non_finite_numbers():
    for raw in ('{"floor_price": NaN}', '{"total_supply": Infinity}', '{"payout_reserve": -Infinity}'):
        r = client.post("/api/simulate", content=raw, headers={"content-type": "application/json"})
        assert r.status_code == 422, raw


def test_sweep_rejects_non_finite_values():
    r = client.post(
        "/api/sweep",
        content='{"base": {"bid_count": 30, "trading_days": 1}, "parameter": "floor_price", "values": [0.1, NaN]}',
        headers={"content-type": "application/json"},
    )
    assert r.status_code == 422


def test_sweep_single_value():
    r = client.post("/api/sweep", json={"base": SMALL, "parameter": "seed", "values": [3]})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["parameter"] == "seed"
    assert len(body["runs"]) == 1
    assert body["runs"][0]["value"] == 3
    assert body["runs"][0]["summary"]["trader_count"] == 10


def test_sweep_unknown_parameter_is_422():
    r = client.post("/api/sweep", json={"base": SMALL, "parameter": "moon_phase", "values": [1]})
    assert r.status_code == 422


def test_sweep_needs_values():
    r = client.post("/api/sweep", json={"base": SMALL, "parameter": "seed", "values": []})
    assert r.status_code == 422


def test_sanitize_floats():
    big = 2 ** 96
    out = sanitize_floats({"a": float("nan"), "b": [float("inf"), 1.5], "c": big, "d": 7, "e": True})
    assert out == {"a": None, "b": [None, 1.5], "c": str(big), "d": 7, "e": True}
