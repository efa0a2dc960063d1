from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import torch, torch.nn as nn
from torch.utils.data import DataLoader, TensorDataset

from recommendation_service.models.recommender import (
    ADD_TO_CART,
    ADD_TO_WISHLIST,
    PRODUCT_VIEW,
    PURCHASE,
    Interaction,
)
from recommendation_service.towers import AffinityModel

LOGGER = logging.getLogger(__name__)

ACTION_WEIGHTS: Dict[str, float] = {
    PRODUCT_VIEW: 0.1,
    ADD_TO_CART: 0.7,
    ADD_TO_WISHLIST: 0.5,
    PURCHASE: 1.0,
}


def action_weight(action_type: str) -> float:
    return ACTION_WEIGHTS.get(action_type, 0.0)


@dataclass
class IdentifierMap:
    """Raw id -> dense index, assigned in first-occurrence order."""
    _index: Dict[str, int] = field(default_factory=dict)

    def add(self, raw_id: str) -> int:
        pos = self._index.get(raw_id)
        if pos is None:
            pos = len(self._index)
            self._index[raw_id] = pos
        return pos

    def index_of(self, raw_id: str) -> int:
        return self._index[raw_id]

    def __contains__(self, raw_id: object) -> bool:
        return raw_id in self._index

    def __len__(self) -> int:
        return len(self._index)

    @property
    def ids(self) -> List[str]:
        # dicts keep insertion order, which is index order here
        return list(self._index)


@dataclass(frozen=True)
class InteractionIndex:
    users: IdentifierMap
    products: IdentifierMap


def build_index(interactions: Sequence[Interaction]) -> InteractionIndex:
    """One pass over the interactions, filling separate user and product maps."""
    users, products = IdentifierMap(), IdentifierMap()
    for inter in interactions:
        users.add(inter.user_id)
        products.add(inter.product_id)
    return InteractionIndex(users=users, products=products)


@dataclass(frozen=True)
class TrainingTensors:
    user_idx: torch.Tensor      # [N] long
    product_idx: torch.Tensor   # [N] long
    weights: torch.Tensor       # [N] float32

    def __len__(self) -> int:
        return int(self.weights.shape[0])


def encode_interactions(interactions: Sequence[Interaction], index: InteractionIndex) -> TrainingTensors:
    """
    Materialize one (user_index, product_index, weight) example per interaction.

    Parameters
    ----------
    interactions : Sequence[Interaction]
        Canonical interactions, duplicates included.
    index : InteractionIndex
        Maps built from the same interactions by `build_index`.

    Returns
    -------
    TrainingTensors
        Three aligned tensors of length ``len(interactions)``. Weights come
        from `ACTION_WEIGHTS`; unknown action types train with 0.0.
    """
    users = [index.users.index_of(i.user_id) for i in interactions]
    products = [index.products.index_of(i.product_id) for i in interactions]
    weights = [action_weight(i.action_type) for i in interactions]
    return TrainingTensors(
        user_idx=torch.tensor(users, dtype=torch.long),
        product_idx=torch.tensor(products, dtype=torch.long),
        weights=torch.tensor(weights, dtype=torch.float32),
    )


@dataclass(frozen=True)
class TrainingConfig:
    epochs: int = 5
    batch_size: int = 32
    learning_rate: Optional[float] = None   # None -> optimizer default
    shuffle: bool = True
    seed: Optional[int] = None


def train_model(model: AffinityModel, tensors: TrainingTensors, config: TrainingConfig = TrainingConfig()) -> List[float]:
    """
    Fit `model` in place with binary cross-entropy against the action weights.

    Adam, fixed epoch count, mini-batches over the full example set, no
    validation split and no early stopping.

    Returns
    -------
    list[float]
        Mean training loss per epoch.
    """
    generator = None
    if config.seed is not None:
        generator = torch.Generator().manual_seed(config.seed)

    loader = DataLoader(
        TensorDataset(tensors.user_idx, tensors.product_idx, tensors.weights),
        batch_size=config.batch_size,
        shuffle=config.shuffle,
        generator=generator,
    )
    opt_kwargs = {} if config.learning_rate is None else {"lr": config.learning_rate}
    optim = torch.optim.Adam(model.parameters(), **opt_kwargs)
    loss_fn = nn.BCELoss()

    history: List[float] = []
    for epoch in range(config.epochs):
        model.train()
        running, seen = 0.0, 0
        for u, p, w in loader:
            optim.zero_grad()
            loss = loss_fn(model(u, p), w)
            loss.backward()
            optim.step()
            running += loss.item() * len(w)
            seen += len(w)
        history.append(running / max(seen, 1))
        LOGGER.debug("epoch %d/%d loss=%.4f", epoch + 1, config.epochs, history[-1])
    return history


def predict_scores(model: AffinityModel, user_index: int, product_count: int) -> np.ndarray:
    """Score one user against every product index in a single forward pass."""
    all_products = torch.arange(product_count, dtype=torch.long)
    u = torch.full((product_count,), user_index, dtype=torch.long)
    model.eval()
    with torch.no_grad():
        scores = model(u, all_products)
    return scores.cpu().numpy().astype("float32")


@dataclass(frozen=True)
class ScoredCandidate:
    product_id: str
    score: float


def rank_candidates(product_ids: Sequence[str], scores: np.ndarray, top_n: int) -> List[ScoredCandidate]:
    """Descending by score, ties kept in product-index order, cut to `top_n`."""
    if len(product_ids) != len(scores):
        raise ValueError(f"got {len(scores)} scores for {len(product_ids)} products")
    order = np.argsort(-np.asarray(scores, dtype=np.float64), kind="stable")[:top_n]
    return [ScoredCandidate(product_id=product_ids[i], score=float(scores[i])) for i in order]
