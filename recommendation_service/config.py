from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

EMBEDDING_DIM = 50
TRAIN_EPOCHS = 5
TRAIN_BATCH_SIZE = 32
TOP_N = 10
MIN_ACTIONS_FOR_TRAINING = 50
RETRAIN_INTERVAL_HOURS = 3.0
FALLBACK_COUNT = 10
MAX_ACTIONS_PER_USER = 100


def _positive_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    value = int(raw)
    if value <= 0:
        raise ValueError(f"{key} must be a positive integer, got {raw!r}")
    return value


def _positive_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    value = float(raw)
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Runtime knobs for the scorer and the recommendation controller."""

    embedding_dim: int = EMBEDDING_DIM
    train_epochs: int = TRAIN_EPOCHS
    train_batch_size: int = TRAIN_BATCH_SIZE
    train_seed: Optional[int] = None
    top_n: int = TOP_N
    min_actions_for_training: int = MIN_ACTIONS_FOR_TRAINING
    retrain_interval_hours: float = RETRAIN_INTERVAL_HOURS
    fallback_count: int = FALLBACK_COUNT
    max_actions_per_user: int = MAX_ACTIONS_PER_USER
    catalog_path: Optional[str] = None

    @property
    def retrain_interval(self) -> timedelta:
        return timedelta(hours=self.retrain_interval_hours)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Read overrides from the process environment (or any mapping)."""
        env = os.environ if env is None else env
        seed = env.get("TRAIN_SEED")
        return cls(
            embedding_dim=_positive_int(env, "EMBEDDING_DIM", EMBEDDING_DIM),
            train_epochs=_positive_int(env, "TRAIN_EPOCHS", TRAIN_EPOCHS),
            train_batch_size=_positive_int(env, "TRAIN_BATCH_SIZE", TRAIN_BATCH_SIZE),
            train_seed=int(seed) if seed else None,
            top_n=_positive_int(env, "TOP_N", TOP_N),
            min_actions_for_training=_positive_int(env, "MIN_ACTIONS_FOR_TRAINING", MIN_ACTIONS_FOR_TRAINING),
            retrain_interval_hours=_positive_float(env, "RETRAIN_INTERVAL_HOURS", RETRAIN_INTERVAL_HOURS),
            fallback_count=_positive_int(env, "FALLBACK_COUNT", FALLBACK_COUNT),
            max_actions_per_user=_positive_int(env, "MAX_ACTIONS_PER_USER", MAX_ACTIONS_PER_USER),
            catalog_path=env.get("CATALOG_PATH") or None,
        )
