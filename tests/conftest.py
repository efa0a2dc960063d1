# tests/conftest.py
from __future__ import annotations

from typing import List

import pytest

from recommendation_service.config import Settings
from recommendation_service.models.recommender import Product
from recommendation_service.services.analytics import UserAnalyticsStore
from recommendation_service.services.catalog import ProductCatalog
from recommendation_service.services.recommender import RecommenderService


@pytest.fixture()
def settings() -> Settings:
    """Production defaults with a fixed seed so fits are repeatable."""
    return Settings(train_seed=7)


@pytest.fixture()
def products() -> List[Product]:
    """Fifteen catalog products p1..p15, oldest first."""
    return [
        Product(id=f"p{i}", title=f"Product {i}", shop={"id": "shop-1", "name": "Art Shop"})
        for i in range(1, 16)
    ]


@pytest.fixture()
def catalog(products) -> ProductCatalog:
    return ProductCatalog(products)


@pytest.fixture()
def analytics(settings) -> UserAnalyticsStore:
    return UserAnalyticsStore(max_actions=settings.max_actions_per_user)


@pytest.fixture()
def service(analytics, catalog, settings) -> RecommenderService:
    return RecommenderService(analytics=analytics, catalog=catalog, settings=settings)


@pytest.fixture()
def raw_actions() -> List[dict]:
    """Mixed-shape activity records as legacy producers wrote them."""
    return [
        {"productId": "p1", "action": "PRODUCT_VIEW"},
        {"productId": "p2", "action": "PURCHASE"},
        {"productId": "p3", "type": "ADD_TO_CART"},
        {"productId": "p4", "action": "WISHLIST_ADD"},
        {"productId": "p1", "action": "PRODUCT_VIEW"},
    ]
