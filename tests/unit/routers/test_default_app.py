from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from recommendation_service.main import create_app, get_recommender_service


@pytest.fixture()
def catalog_file(tmp_path):
    path = tmp_path / "products.json"
    path.write_text(json.dumps([
        {"id": f"p{i}", "title": f"Product {i}", "shop": {"id": "shop-1"}} for i in range(1, 13)
    ]))
    return path


@pytest.fixture()
def default_client(monkeypatch, catalog_file):
    monkeypatch.setenv("CATALOG_PATH", str(catalog_file))
    monkeypatch.setenv("TRAIN_SEED", "5")
    get_recommender_service.cache_clear()
    with TestClient(create_app()) as c:
        yield c
    get_recommender_service.cache_clear()


def test_startup_loads_catalog_for_fallback(default_client):
    body = default_client.get("/api/recommendations/newcomer").json()
    assert [p["id"] for p in body["recommendations"]] == [f"p{i}" for i in range(3, 13)]


def test_active_user_gets_trained_products(default_client):
    for i in range(60):
        res = default_client.post(
            "/api/analytics/events",
            json={"user_id": "u1", "product_id": f"p{i % 12 + 1}", "action": "product_view"},
        )
        assert res.status_code == 202

    res = default_client.get("/api/recommendations/u1")

    assert res.status_code == 200
    ids = [p["id"] for p in res.json()["recommendations"]]
    assert len(ids) == 10
    assert set(ids) <= {f"p{i}" for i in range(1, 13)}
    record = asyncio.run(get_recommender_service().analytics.find("u1"))
    assert record.recommendations == ids
    assert record.last_trained is not None


def test_product_route_feeds_catalog(default_client):
    res = default_client.post("/api/products", json={"id": "p13", "title": "Print"})
    assert res.status_code == 201
    assert res.json() == {"success": True, "created": True}

    again = default_client.post("/api/products", json={"id": "p13", "title": "Print v2"})
    assert again.json()["created"] is False

    latest = default_client.get("/api/recommendations/newcomer").json()["recommendations"][-1]
    assert latest == {"id": "p13", "title": "Print v2"}


def test_product_route_rejects_missing_id(default_client):
    assert default_client.post("/api/products", json={"title": "no id"}).status_code == 422


def test_without_catalog_path_catalog_starts_empty(monkeypatch):
    monkeypatch.delenv("CATALOG_PATH", raising=False)
    get_recommender_service.cache_clear()
    try:
        with TestClient(create_app()) as c:
            assert c.get("/api/recommendations/u1").json() == {"success": True, "recommendations": []}
            c.post("/api/products", json={"id": "p1"})
            ids = [p["id"] for p in c.get("/api/recommendations/u1").json()["recommendations"]]
            assert ids == ["p1"]
    finally:
        get_recommender_service.cache_clear()
