from __future__ import annotations

import random
import secrets

from pydantic_settings import BaseSettings, SettingsConfigDict

from .evaluator import DEFAULT_MAX_ROLLS, EvalConfig, RandomSource


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DICE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Roll budget per request; guards against endless reroll/explode chains.
    max_rolls: int = DEFAULT_MAX_ROLLS
    # Fixed seed for reproducible sessions. Leave unset for secrets.SystemRandom.
    seed: int | None = None
    log_level: str = "WARNING"

    def eval_config(self) -> EvalConfig:
        return EvalConfig(max_rolls=self.max_rolls)

    def make_rng(self) -> RandomSource:
        if self.seed is None:
            return secrets.SystemRandom()
        return random.Random(self.seed)


settings = Settings()
