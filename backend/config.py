"""Application configuration."""
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings


def _default_milestones() -> List[int]:
    return [10, 25, 50] + list(range(100, 501, 50)) + list(range(600, 1001, 100))


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "BattleRank"
    debug: bool = True

    # Redis (session snapshots)
    redis_url: str = "redis://localhost:6379"
    persistence_enabled: bool = True
    session_id: str = "default"
    session_ttl_seconds: int = 3600 * 24 * 30
    persistence_retries: int = 3
    persistence_backoff_seconds: float = 0.5

    # Catalog
    catalog_path: Path = Path(__file__).parent / "data" / "catalog.json"

    # TrueSkill parameters
    initial_mu: float = 25.0
    initial_sigma: float = 25.0 / 3
    min_sigma: float = 1.0
    target_sigma: float = 2.0
    conservative_k: float = 3.0

    # Scheduling
    default_arity: int = 2
    # 0 = every generation, otherwise items up to and including this generation
    default_generation: int = 0
    recent_memory_size: int = 10

    # Input handling
    duplicate_window_ms: int = 300

    # Milestones
    milestones: List[int] = _default_milestones()
    milestone_grace_ms: int = 300

    # Manual reorder / refinement
    reorder_score_boost: float = 100.0
    reorder_refinement_battles: int = 5
    flag_refinement_battles: int = 3
    implied_history_size: int = 10

    @field_validator("milestones")
    @classmethod
    def _milestones_ascending(cls, value: List[int]) -> List[int]:
        if any(b <= a for a, b in zip(value, value[1:])):
            raise ValueError("milestones must be strictly ascending")
        if value and value[0] <= 0:
            raise ValueError("milestones must be positive")
        return value

    @field_validator("default_generation")
    @classmethod
    def _generation_known(cls, value: int) -> int:
        if not 0 <= value <= 9:
            raise ValueError("default_generation must be between 0 and 9")
        return value

    @field_validator("default_arity")
    @classmethod
    def _arity_supported(cls, value: int) -> int:
        if value not in (2, 3):
            raise ValueError("default_arity must be 2 (pairs) or 3 (triplets)")
        return value

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
