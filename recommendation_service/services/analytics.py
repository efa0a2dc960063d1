from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from recommendation_service.config import MAX_ACTIONS_PER_USER
from recommendation_service.models.recommender import (
    ADD_TO_CART,
    ADD_TO_WISHLIST,
    PRODUCT_VIEW,
    PURCHASE,
    REMOVE_FROM_CART,
    REMOVE_FROM_WISHLIST,
    ActivityEvent,
    ProductAnalytics,
    UserAnalytics,
)

LOGGER = logging.getLogger(__name__)

# action that appends -> counter it bumps
_COUNTER_INCREMENTS = {
    PRODUCT_VIEW: "views",
    ADD_TO_CART: "cart_adds",
    ADD_TO_WISHLIST: "wishlist_adds",
    PURCHASE: "purchases",
}
# remove action -> (stored action it cancels, counter it decrements)
_REMOVALS = {
    REMOVE_FROM_CART: (ADD_TO_CART, "cart_adds"),
    REMOVE_FROM_WISHLIST: (ADD_TO_WISHLIST, "wishlist_adds"),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def apply_event(actions: List[Dict[str, Any]], event: ActivityEvent, *, max_actions: int, now: datetime) -> List[Dict[str, Any]]:
    """Return the user's action list after `event`, newest entries last."""
    updated = list(actions)
    entry = {
        "productId": event.product_id,
        "shopId": event.shop_id,
        "action": event.action,
        "timestamp": now.isoformat(),
    }

    if event.action == PRODUCT_VIEW:
        updated.append(entry)
    elif event.action in (ADD_TO_CART, ADD_TO_WISHLIST):
        exists = any(
            a.get("productId") == event.product_id and a.get("action") == event.action
            for a in updated
        )
        if not exists:
            updated.append(entry)
    elif event.action in _REMOVALS:
        cancelled, _ = _REMOVALS[event.action]
        updated = [
            a for a in updated
            if not (a.get("productId") == event.product_id and a.get("action") == cancelled)
        ]

    if len(updated) > max_actions:
        updated = updated[-max_actions:]
    return updated


class UserAnalyticsStore:
    """
    In-memory activity log: per-user action history, cached recommendations
    and per-product engagement counters.

    All mutations are serialized by one asyncio lock; reads return copies so
    callers can't corrupt stored state.
    """
    def __init__(self, max_actions: int = MAX_ACTIONS_PER_USER) -> None:
        self.max_actions = max_actions
        self._users: Dict[str, UserAnalytics] = {}
        self._products: Dict[str, ProductAnalytics] = {}
        self._lock = asyncio.Lock()

    async def find(self, user_id: str) -> Optional[UserAnalytics]:
        record = self._users.get(user_id)
        return record.model_copy(deep=True) if record is not None else None

    async def upsert(self, record: UserAnalytics) -> None:
        async with self._lock:
            self._users[record.user_id] = record.model_copy(deep=True)

    async def get_user_activity(self, user_id: str) -> List[Any]:
        """Stored actions for `user_id`; never None, lookup errors yield []."""
        try:
            record = await self.find(user_id)
        except Exception as exc:
            LOGGER.error("Error fetching user activity for %s: %s", user_id, exc)
            return []
        if record is None or not isinstance(record.actions, list):
            return []
        return record.actions

    async def record_event(self, event: ActivityEvent) -> None:
        now = _now()
        async with self._lock:
            record = self._users.get(event.user_id) or UserAnalytics(user_id=event.user_id)
            actions = record.actions if isinstance(record.actions, list) else []
            updates: Dict[str, Any] = {
                "actions": apply_event(actions, event, max_actions=self.max_actions, now=now),
                "last_visited": now,
            }
            for key in ("country", "city", "device"):
                value = getattr(event, key)
                if value:
                    updates[key] = value
            self._users[event.user_id] = record.model_copy(update=updates)

        try:
            await self._update_product_analytics(event, now)
        except Exception as exc:
            LOGGER.error("Error updating product analytics for %s: %s", event.product_id, exc)

    async def _update_product_analytics(self, event: ActivityEvent, now: datetime) -> None:
        if not event.product_id:
            return
        async with self._lock:
            stats = self._products.get(event.product_id) or ProductAnalytics(
                product_id=event.product_id, shop_id=event.shop_id
            )
            updates: Dict[str, Any] = {"last_viewed_at": now}
            if event.action in _COUNTER_INCREMENTS:
                counter = _COUNTER_INCREMENTS[event.action]
                updates[counter] = getattr(stats, counter) + 1
            elif event.action in _REMOVALS:
                _, counter = _REMOVALS[event.action]
                updates[counter] = max(0, getattr(stats, counter) - 1)
            self._products[event.product_id] = stats.model_copy(update=updates)

    async def product_analytics(self, product_id: str) -> Optional[ProductAnalytics]:
        stats = self._products.get(product_id)
        return stats.model_copy() if stats is not None else None

    async def save_recommendations(self, user_id: str, product_ids: Sequence[str], trained_at: Optional[datetime] = None) -> None:
        async with self._lock:
            record = self._users.get(user_id) or UserAnalytics(user_id=user_id)
            self._users[user_id] = record.model_copy(
                update={"recommendations": list(product_ids), "last_trained": trained_at or _now()}
            )
