from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

import torch, torch.nn as nn

EMBEDDING_INIT_BOUND = 0.05


@dataclass(frozen=True)
class ModelConfig:
    user_count: int
    product_count: int
    embedding_dim: int = 50

    def __post_init__(self):
        for name in ("user_count", "product_count", "embedding_dim"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")


def _uniform(shape: Tuple[int, ...], bound: float, generator: Optional[torch.Generator]) -> torch.Tensor:
    return torch.empty(shape).uniform_(-bound, bound, generator=generator)


class AffinityModel(nn.Module):
    """
    Dual-embedding dot-product scorer.

    Inputs per example:
      - user_idx:    [B] or [B, 1]  (long)
      - product_idx: [B] or [B, 1]  (long)
    Output:
      - affinity:    [B]            (sigmoid probability)

    All parameters are drawn from `generator` when one is given, so a seeded
    build never reads or advances torch's global RNG.
    """
    def __init__(self, config: ModelConfig, generator: Optional[torch.Generator] = None):
        super().__init__()
        self.config = config
        d = config.embedding_dim
        self.user_emb = nn.Embedding.from_pretrained(
            _uniform((config.user_count, d), EMBEDDING_INIT_BOUND, generator), freeze=False
        )
        self.product_emb = nn.Embedding.from_pretrained(
            _uniform((config.product_count, d), EMBEDDING_INIT_BOUND, generator), freeze=False
        )
        # skip_init leaves the weights unset; fan_in is 1 so the default bound is 1.0
        self.out = nn.utils.skip_init(nn.Linear, 1, 1)
        with torch.no_grad():
            self.out.weight.copy_(_uniform((1, 1), 1.0, generator))
            self.out.bias.copy_(_uniform((1,), 1.0, generator))

    def forward(self, user_idx, product_idx):
        u = self.user_emb(user_idx).flatten(start_dim=1)        # [B, D]
        p = self.product_emb(product_idx).flatten(start_dim=1)  # [B, D]
        dot = (u * p).sum(dim=1, keepdim=True)                  # [B, 1]
        return torch.sigmoid(self.out(dot)).squeeze(-1)


def build_model(config: ModelConfig, generator: Optional[torch.Generator] = None) -> AffinityModel:
    return AffinityModel(config, generator=generator)
