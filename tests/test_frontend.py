from __future__ import annotations

import json
import time
from typing import Any, Mapping, Optional

import pytest
from fastapi.testclient import TestClient

from conftest import FakeGateway
from crowdscope_frontend import create_app
from estimator.config import EstimatorConfig
from map_apis.map_api import MapAPI

PAYLOAD = {"address": "Shibuya Station", "crowd": "crowded", "feature": "commuters", "radius_m": 500}


class _FakeGeocoder(MapAPI):
    def __init__(self, place: Optional[Mapping[str, Any]] = None, error: Optional[Exception] = None) -> None:
        super().__init__("fake")
        self.place = place
        self.error = error

    def getPlaceInfo(self, address: str) -> Mapping[str, Any]:
        if self.error is not None:
            raise self.error
        return self.place


@pytest.fixture()
def client(offline_config: EstimatorConfig) -> TestClient:
    return TestClient(create_app(offline_config))


def test_estimate_returns_result_shape(client: TestClient) -> None:
    t0 = time.time()
    resp = client.post("/api/estimate", json=PAYLOAD)
    assert time.time() - t0 < 2.0
    assert resp.status_code == 200
    data = resp.json()
    assert set(data) == {"count", "confidence", "range", "assumptions", "notes"}
    assert data["range"]["min"] <= data["count"] <= data["range"]["max"]
    assert data["confidence"] == pytest.approx(0.55)
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.headers["x-request-id"]


def test_malformed_radius_is_absorbed(client: TestClient) -> None:
    resp = client.post("/api/estimate", json={**PAYLOAD, "radius_m": "abc"})
    assert resp.status_code == 200
    expected = client.post("/api/estimate", json={**PAYLOAD, "radius_m": 500}).json()
    assert resp.json()["count"] == expected["count"]


@pytest.mark.parametrize(
    "content",
    ["not json at all", "", json.dumps(json.dumps(PAYLOAD)), "[1, 2, 3]", "[" * 100_000 + "]" * 100_000],
)
def test_any_body_returns_200(client: TestClient, content: str) -> None:
    resp = client.post("/api/estimate", content=content, headers={"Content-Type": "application/json"})
    assert resp.status_code == 200
    assert resp.json()["count"] >= 0


def test_json_string_body_is_reparsed(client: TestClient) -> None:
    direct = client.post("/api/estimate", json=PAYLOAD).json()
    wrapped = client.post(
        "/api/estimate", content=json.dumps(json.dumps(PAYLOAD)), headers={"Content-Type": "application/json"}
    ).json()
    assert wrapped["count"] == direct["count"]


def test_preflight_and_method_not_allowed(client: TestClient) -> None:
    resp = client.options("/api/estimate")
    assert resp.status_code == 204
    assert resp.headers["access-control-allow-methods"] == "POST, OPTIONS"

    resp = client.get("/api/estimate")
    assert resp.status_code == 405
    assert resp.json()["ok"] is False


def test_accept_language_selects_japanese(client: TestClient) -> None:
    resp = client.post("/api/estimate", json=PAYLOAD, headers={"Accept-Language": "ja-JP,ja;q=0.9"})
    assert "ヒューリスティック" in resp.json()["notes"][0]


def test_model_path_through_http(offline_config: EstimatorConfig) -> None:
    gateway = FakeGateway('{"count": 50000000}')
    app = create_app(offline_config, gateway=gateway)
    resp = TestClient(app).post("/api/estimate", json=PAYLOAD)
    assert resp.status_code == 200
    assert "outside the allowed band" in resp.json()["notes"][-1]
    assert len(gateway.calls) == 1


def test_geocode_statuses(offline_config: EstimatorConfig) -> None:
    ok = TestClient(create_app(offline_config, geocoder=_FakeGeocoder({"lat": 35.658, "lng": 139.7016})))
    resp = ok.post("/api/geocode", json={"address": "Shibuya Station"})
    assert resp.status_code == 200
    assert resp.json() == {"lat": 35.658, "lng": 139.7016}
    assert ok.post("/api/geocode", json={}).status_code == 400
    assert ok.post("/api/geocode", json={"address": "   "}).status_code == 400

    missing = TestClient(create_app(offline_config, geocoder=_FakeGeocoder(error=ValueError("none"))))
    assert missing.post("/api/geocode", json={"address": "nowhere"}).status_code == 404

    broken = TestClient(create_app(offline_config, geocoder=_FakeGeocoder(error=RuntimeError("denied"))))
    resp = broken.post("/api/geocode", json={"address": "Shibuya"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "server error"}


def test_healthz(client: TestClient) -> None:
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.text == "ok"
