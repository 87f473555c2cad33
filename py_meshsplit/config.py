"""Configuration management."""

from typing import Literal, Optional

from pydantic import Field, PositiveFloat, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Split settings pulled from MESHSPLIT_* environment variables or a .env file."""

    # Tessellation
    domain_half_extent: float = Field(default=2.0, gt=0, description="Half side length of the cubic domain")
    seed_count: int = Field(default=60, ge=1, description="Number of Voronoi seeds")
    random_seed: int = Field(default=0, description="Random seed for reproducible seed placement")
    tolerance: Optional[PositiveFloat] = Field(
        default=None, description="Absolute tolerance (default 1e-6 of the domain extent)"
    )

    # Input and output
    shape: Literal["cube", "cylinder", "sphere"] = Field(default="cube", description="Stock mesh to split")
    output_dir: str = Field(default="out", description="Directory for exported fragments")
    keep_empty: bool = Field(default=False, description="Report empty fragments in the result mapping")

    # Performance
    max_workers: Optional[PositiveInt] = Field(default=None, description="Thread pool size for clipping")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "plain"] = Field(default="plain", description="Logging format")

    model_config = SettingsConfigDict(
        env_prefix="MESHSPLIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def get_settings(**overrides) -> Settings:
    """Settings from the environment with explicit overrides applied on top."""
    return Settings(**{key: value for key, value in overrides.items() if value is not None})

