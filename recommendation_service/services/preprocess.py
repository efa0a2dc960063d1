"""
Normalization of raw activity-log records into canonical interactions.

The activity log is written by several producers over time, so records are
not uniform: the label can sit under ``action``, ``type`` or (for records that
are already canonical) ``actionType``, and legacy producers emit upper-case
labels such as ``PRODUCT_VIEW``. This module resolves all of that into
``Interaction(user_id, product_id, action_type)`` tuples.

Rules:
  - records without a usable ``productId`` are dropped;
  - the label is taken from ``action``, then ``type``, then ``actionType``;
  - known upper-case labels map to their canonical form, any other label is
    kept verbatim (it later trains with weight 0.0);
  - every interaction carries the caller's user id, whatever the record says;
  - duplicates are kept, repetition is the frequency signal.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from recommendation_service.models.recommender import (
    ADD_TO_CART,
    ADD_TO_WISHLIST,
    PRODUCT_VIEW,
    PURCHASE,
    UNKNOWN_ACTION,
    Interaction,
    ProcessedData,
    RawAction,
)

LOGGER = logging.getLogger(__name__)

LABEL_MAP = {
    "PRODUCT_VIEW": PRODUCT_VIEW,
    "PURCHASE": PURCHASE,
    "ADD_TO_CART": ADD_TO_CART,
    "WISHLIST_ADD": ADD_TO_WISHLIST,
}

LABEL_KEYS = ("action", "type", "actionType")


def parse_raw_action(record: Any) -> Optional[RawAction]:
    """Validate one untrusted record; ``None`` when it cannot be read."""
    if isinstance(record, RawAction):
        return record
    if not isinstance(record, Mapping):
        return None
    try:
        return RawAction.model_validate(dict(record))
    except ValidationError as exc:
        LOGGER.debug("Dropping unreadable activity record: %s", exc)
        return None


def resolve_label(raw: RawAction) -> Optional[str]:
    for key in LABEL_KEYS:
        value = getattr(raw, key)
        if value:
            return value
    return None


def normalize_label(label: Optional[str]) -> str:
    if not label:
        return UNKNOWN_ACTION
    return LABEL_MAP.get(label, label)


def preprocess_data(raw_actions: Optional[Iterable[Any]], all_products: Any, user_id: str) -> ProcessedData:
    """Turn raw activity records into interactions for ``user_id``.

    ``all_products`` is returned untouched under ``products``.
    """
    interactions = []
    for record in raw_actions or ():
        raw = parse_raw_action(record)
        if raw is None or not raw.productId:
            continue
        interactions.append(
            Interaction(
                user_id=user_id,
                product_id=raw.productId,
                action_type=normalize_label(resolve_label(raw)),
            )
        )
    return ProcessedData(interactions=interactions, products=all_products)
