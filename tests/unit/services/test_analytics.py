from __future__ import annotations

import asyncio

from recommendation_service.models.recommender import ActivityEvent, UserAnalytics
from recommendation_service.services.analytics import UserAnalyticsStore


def _record(store, **kw):
    asyncio.run(store.record_event(ActivityEvent(**kw)))


def _actions(store, user_id="u1"):
    return asyncio.run(store.get_user_activity(user_id))


def test_unknown_user_has_no_activity():
    assert _actions(UserAnalyticsStore()) == []


def test_non_list_actions_read_as_empty():
    store = UserAnalyticsStore()
    asyncio.run(store.upsert(UserAnalytics(user_id="u1", actions="invalid-string")))
    assert _actions(store) == []


def test_lookup_errors_are_swallowed(monkeypatch):
    store = UserAnalyticsStore()

    async def boom(user_id):
        raise RuntimeError("store down")

    monkeypatch.setattr(store, "find", boom)
    assert _actions(store) == []


def test_product_views_always_append():
    store = UserAnalyticsStore()
    for _ in range(3):
        _record(store, user_id="u1", product_id="p1", shop_id="s1", action="product_view")

    actions = _actions(store)
    assert len(actions) == 3
    assert actions[0]["productId"] == "p1"
    assert actions[0]["shopId"] == "s1"
    assert actions[0]["action"] == "product_view"
    assert "timestamp" in actions[0]


def test_cart_and_wishlist_are_deduplicated():
    store = UserAnalyticsStore()
    for _ in range(2):
        _record(store, user_id="u1", product_id="p1", action="add_to_cart")
        _record(store, user_id="u1", product_id="p1", action="add_to_wishlist")
    _record(store, user_id="u1", product_id="p2", action="add_to_cart")

    assert [(a["productId"], a["action"]) for a in _actions(store)] == [
        ("p1", "add_to_cart"),
        ("p1", "add_to_wishlist"),
        ("p2", "add_to_cart"),
    ]


def test_removals_drop_matching_entries_only():
    store = UserAnalyticsStore()
    _record(store, user_id="u1", product_id="p1", action="product_view")
    _record(store, user_id="u1", product_id="p1", action="add_to_cart")
    _record(store, user_id="u1", product_id="p2", action="add_to_cart")
    _record(store, user_id="u1", product_id="p1", action="add_to_wishlist")

    _record(store, user_id="u1", product_id="p1", action="remove_from_cart")
    _record(store, user_id="u1", product_id="p1", action="remove_from_wishlist")

    assert [(a["productId"], a["action"]) for a in _actions(store)] == [
        ("p1", "product_view"),
        ("p2", "add_to_cart"),
    ]


def test_purchases_only_touch_product_counters():
    store = UserAnalyticsStore()
    _record(store, user_id="u1", product_id="p1", action="purchase")

    assert _actions(store) == []
    stats = asyncio.run(store.product_analytics("p1"))
    assert stats.purchases == 1


def test_history_is_capped_to_most_recent():
    store = UserAnalyticsStore(max_actions=100)
    for i in range(105):
        _record(store, user_id="u1", product_id=f"p{i}", action="product_view")

    actions = _actions(store)
    assert len(actions) == 100
    assert actions[0]["productId"] == "p5"
    assert actions[-1]["productId"] == "p104"


def test_visit_metadata_is_stored():
    store = UserAnalyticsStore()
    _record(store, user_id="u1", product_id="p1", action="product_view", country="NL", device="mobile")

    record = asyncio.run(store.find("u1"))
    assert record.country == "NL"
    assert record.device == "mobile"
    assert record.city is None
    assert record.last_visited is not None


def test_product_counters_never_go_negative():
    store = UserAnalyticsStore()
    _record(store, user_id="u1", product_id="p1", action="product_view")
    _record(store, user_id="u1", product_id="p1", action="add_to_cart")
    _record(store, user_id="u1", product_id="p1", action="remove_from_cart")
    _record(store, user_id="u1", product_id="p1", action="remove_from_cart")
    _record(store, user_id="u1", action="product_view")

    stats = asyncio.run(store.product_analytics("p1"))
    assert stats.views == 1
    assert stats.cart_adds == 0
    assert stats.last_viewed_at is not None


def test_save_recommendations_sets_training_time():
    store = UserAnalyticsStore()
    asyncio.run(store.save_recommendations("u1", ["p3", "p1"]))

    record = asyncio.run(store.find("u1"))
    assert record.recommendations == ["p3", "p1"]
    assert record.last_trained is not None
