from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from engine.in_memory import InMemoryEngine
from main import app, get_engine


ROOMS = [
    {
        "_id": f"room-{i}",
        "lng": 14.4378 + i * 0.00004,
        "lat": 50.0755 + i * 0.00003,
        "price": 10 + i,
        "title": f"Room {i}",
        "category": {"mainCategory": "Fruits"},
    }
    for i in range(5)
] + [{"_id": "far", "lng": -60.0, "lat": 50.0, "price": 99, "title": "Far"}]

WORLD = {"minLon": -180, "minLat": -90, "maxLon": 180, "maxLat": 90}


@pytest.fixture
def client():
    engine = InMemoryEngine()
    app.dependency_overrides[get_engine] = lambda: engine
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _load(client: TestClient, rooms=ROOMS) -> int:
    resp = client.put("/listings", json=rooms)
    assert resp.status_code == 200
    return resp.json()["version"]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_clusters_endpoint_returns_geojson_features(client):
    version = _load(client)
    resp = client.post("/clusters", json={"bbox": WORLD, "zoom": 0})
    assert resp.status_code == 200
    data = resp.json()
    assert data["version"] == version
    assert data["zoom"] == 0

    feats = data["features"]
    clusters = [f for f in feats if f["properties"]["cluster"]]
    points = [f for f in feats if not f["properties"]["cluster"]]
    assert len(clusters) == 1
    assert clusters[0]["properties"]["point_count"] == 5
    assert clusters[0]["properties"]["point_count_abbreviated"] == 5
    assert [p["id"] for p in points] == ["far"]
    assert points[0]["properties"]["title"] == "Far"
    assert points[0]["properties"]["mainCategory"] == "Unknown"
    assert points[0]["geometry"]["coordinates"] == [-60.0, 50.0]


def test_expansion_zoom_and_members(client):
    version = _load(client)
    feats = client.post("/clusters", json={"bbox": WORLD, "zoom": 0}).json()["features"]
    [cluster] = [f for f in feats if f["properties"]["cluster"]]
    cid = cluster["properties"]["cluster_id"]

    resp = client.get(f"/clusters/{cid}/expansion-zoom", params={"version": version})
    assert resp.status_code == 200
    zoom = resp.json()["zoom"]
    assert 0 < zoom <= 20

    expanded = client.post("/clusters", json={"bbox": WORLD, "zoom": zoom}).json()["features"]
    assert len(expanded) > 2

    children = client.get(f"/clusters/{cid}/children").json()["features"]
    assert sum(c["properties"].get("point_count", 1) for c in children) == 5

    leaves = client.get(f"/clusters/{cid}/leaves", params={"limit": 2, "offset": 1}).json()
    assert len(leaves["features"]) == 2
    assert all(f["id"].startswith("room-") for f in leaves["features"])


def test_unknown_or_stale_cluster_is_404(client):
    version = _load(client)
    feats = client.post("/clusters", json={"bbox": WORLD, "zoom": 0}).json()["features"]
    [cluster] = [f for f in feats if f["properties"]["cluster"]]
    cid = cluster["properties"]["cluster_id"]

    assert client.get("/clusters/999999999/expansion-zoom").status_code == 404

    _load(client, ROOMS[:2])
    resp = client.get(f"/clusters/{cid}/expansion-zoom", params={"version": version})
    assert resp.status_code == 404
    assert resp.json()["clusterId"] == cid


def test_invalid_listing_coordinates_are_422(client):
    resp = client.put("/listings", json=[{"_id": "bad", "lng": 200, "lat": 0}])
    assert resp.status_code == 422
    assert resp.json()["pointId"] == "bad"


def test_tile_endpoint(client):
    _load(client)
    resp = client.get("/tiles/0/0/0")
    assert resp.status_code == 200
    data = resp.json()
    assert data["extent"] == 512
    assert sum(f["feature"]["properties"].get("point_count", 1) for f in data["features"]) == 6

    assert client.get("/tiles/1/5/0").status_code == 422


def test_malformed_listing_items_are_422(client):
    resp = client.put("/listings", json=["oops"])
    assert resp.status_code == 422
    assert resp.json()["pointId"] == "listing-0"

    resp = client.put("/listings", json={"type": "FeatureCollection", "features": [5]})
    assert resp.status_code == 422
    assert resp.json()["pointId"] == "point-0"


def test_tile_zoom_beyond_range_is_422(client):
    _load(client)
    assert client.get("/tiles/100000/0/0").status_code == 422
    assert client.get("/tiles/31/0/0").status_code == 422
    assert client.get("/tiles/30/0/0").status_code == 200
