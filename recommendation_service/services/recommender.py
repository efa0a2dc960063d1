from __future__ import annotations
"""
Recommender service: per-request neural collaborative filtering over a user's
own activity log.

Why train per request instead of serving a global model?
---------------------------------------------------------
Each user's log is capped at a hundred recent actions and the candidate set is
the products they already touched, so a fit is a few dozen mini-batches on
CPU. Training on demand keeps the service stateless: nothing to checkpoint,
nothing to invalidate when the log changes. The controller layer below adds a
time-boxed cache of the resulting ids so a busy user doesn't retrain on every
page view.

Workflow overview:

1. Fetch the user's raw activity from the activity log. Empty -> [].

2. Preprocess it into canonical interactions (see `services.preprocess`).
   Empty -> []. The guard looks at the interactions only; the catalog
   passthrough never short-circuits scoring.

3. Index users and products in first-occurrence order and encode one
   (user, product, weight) example per interaction, weights from the action
   type (view 0.1, wishlist 0.5, cart 0.7, purchase 1.0, other 0.0).

4. Build a fresh `AffinityModel` (user/product embeddings, dot product,
   dense sigmoid), fit it with BCE + Adam for a fixed number of epochs.
   The fit runs in a worker thread so the event loop keeps serving.

5. Score the user against every indexed product, stable-sort descending,
   return the first `top_n` product ids.

The controller (`get_recommended_products`) wraps that with the marketplace
rules: users with too little history get the newest catalog products, users
trained recently get their cached ids, everyone else is retrained and the
result stored.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

import torch

from recommendation_service.config import Settings
from recommendation_service.models.recommender import Interaction, Product
from recommendation_service.services.analytics import UserAnalyticsStore
from recommendation_service.services.catalog import ProductCatalog
from recommendation_service.services.preprocess import preprocess_data
from recommendation_service.services.scoring import (
    ScoredCandidate,
    TrainingConfig,
    build_index,
    encode_interactions,
    predict_scores,
    rank_candidates,
    train_model,
)
from recommendation_service.towers import ModelConfig, build_model

LOGGER = logging.getLogger(__name__)


class RecommenderService:
    """Per-request scorer plus the caching controller around it."""
    def __init__(
        self,
        analytics: Optional[UserAnalyticsStore] = None,
        catalog: Optional[ProductCatalog] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.analytics = analytics or UserAnalyticsStore(max_actions=self.settings.max_actions_per_user)
        self.catalog = catalog if catalog is not None else self._load_catalog()

    def _load_catalog(self) -> ProductCatalog:
        """Seed the catalog from CATALOG_PATH; empty when unset."""
        path = self.settings.catalog_path
        if not path:
            LOGGER.warning("CATALOG_PATH not set; starting with an empty product catalog.")
            return ProductCatalog()
        catalog = ProductCatalog.from_json(path)
        LOGGER.info("Loaded %d products from %s", len(catalog), path)
        return catalog

    @property
    def training_config(self) -> TrainingConfig:
        return TrainingConfig(
            epochs=self.settings.train_epochs,
            batch_size=self.settings.train_batch_size,
            seed=self.settings.train_seed,
        )

    def score_interactions(self, user_id: str, interactions: Sequence[Interaction]) -> List[ScoredCandidate]:
        """Blocking part of the pipeline: index, encode, fit, score, rank."""
        index = build_index(interactions)
        LOGGER.info("User map size: %d, Product map size: %d", len(index.users), len(index.products))

        tensors = encode_interactions(interactions, index)
        generator = None
        if self.settings.train_seed is not None:
            generator = torch.Generator().manual_seed(self.settings.train_seed)
        model = build_model(
            ModelConfig(
                user_count=len(index.users),
                product_count=len(index.products),
                embedding_dim=self.settings.embedding_dim,
            ),
            generator=generator,
        )
        train_model(model, tensors, self.training_config)
        LOGGER.info("Model training complete.")

        scores = predict_scores(model, index.users.index_of(user_id), len(index.products))
        LOGGER.info("Generated %d scores.", len(scores))
        ranked = rank_candidates(index.products.ids, scores, self.settings.top_n)
        LOGGER.debug("Top recommendations: %s", ranked)
        return ranked

    async def recommend_products(self, user_id: str, all_products: Any) -> List[str]:
        """Return up to `top_n` product ids for `user_id`, best first."""
        LOGGER.info("Starting recommendation for user: %s", user_id)
        actions = await self.analytics.get_user_activity(user_id)
        LOGGER.info("Fetched %d user actions.", len(actions))
        if not actions:
            LOGGER.info("No user actions found.")
            return []

        processed = preprocess_data(actions, all_products, user_id)
        if len(processed.interactions) == 0:
            LOGGER.info("Preprocess returned empty interactions.")
            return []
        LOGGER.info("Preprocessed interactions count: %d", len(processed.interactions))

        ranked = await asyncio.to_thread(self.score_interactions, user_id, processed.interactions)
        return [c.product_id for c in ranked]

    async def get_recommended_products(self, user_id: str) -> List[Product]:
        """Fallback, cached or freshly trained recommendations as products."""
        products = await self.catalog.list_products()
        record = await self.analytics.find(user_id)

        actions = record.actions if record is not None and isinstance(record.actions, list) else []
        if record is None or len(actions) < self.settings.min_actions_for_training:
            return products[-self.settings.fallback_count:]

        now = datetime.now(timezone.utc)
        if record.last_trained is not None and now - _as_utc(record.last_trained) < self.settings.retrain_interval:
            cached = set(record.recommendations)
            return [p for p in products if p.id in cached]

        product_ids = await self.recommend_products(user_id, products)
        await self.analytics.save_recommendations(user_id, product_ids, trained_at=now)

        by_id = {p.id: p for p in products}
        return [by_id[pid] for pid in product_ids if pid in by_id]


def _as_utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)
