"""
Engine Configuration

Scoring weights and thresholds for every strategy, loaded from an optional
YAML file and overridden by environment variables.
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "RENTAL_RECOMMENDER_"


@dataclass
class RatingPolicy:
    """Weights and caps of the implicit rating formula"""
    frequency_weight: float = 0.3
    completion_weight: float = 0.3
    on_time_weight: float = 0.2
    quantity_weight: float = 0.2
    frequency_cap: float = 3.0  # rentals per active month that count as full frequency
    quantity_cap: float = 5.0  # average units per rental that count as full quantity
    max_rating: float = 5.0


@dataclass
class NeighborPolicy:
    """Neighbor selection for user-based filtering"""
    min_common_items: int = 3
    min_similarity: float = 0.3
    max_neighbors: int = 10


@dataclass
class PredictionPolicy:
    min_predicted_rating: float = 3.5


@dataclass
class ContentPolicy:
    """Feature weights for content similarity"""
    category_weight: float = 0.4
    color_weight: float = 0.3
    size_weight: float = 0.3


@dataclass
class PopularityPolicy:
    completion_weight: float = 2.5
    popularity_weight: float = 2.5


@dataclass
class EngineConfig:
    """Configuration for the recommendation engine"""
    rating: RatingPolicy = field(default_factory=RatingPolicy)
    neighbors: NeighborPolicy = field(default_factory=NeighborPolicy)
    prediction: PredictionPolicy = field(default_factory=PredictionPolicy)
    content: ContentPolicy = field(default_factory=ContentPolicy)
    popularity: PopularityPolicy = field(default_factory=PopularityPolicy)
    default_limit: int = 10
    cache_enabled: bool = True
    cache_ttl_seconds: int = 300
    cache_max_entries: int = 10000
    redis_url: Optional[str] = None
    max_concurrent_fetches: int = 16
    database_url: Optional[str] = None
    log_level: str = "INFO"

    def validate(self) -> "EngineConfig":
        """Raise ConfigurationError if any setting is out of range"""
        for section in (self.rating, self.content, self.popularity):
            for f in fields(section):
                if getattr(section, f.name) < 0:
                    raise ConfigurationError(f"{type(section).__name__}.{f.name} must be non-negative")
        if self.rating.frequency_cap <= 0 or self.rating.quantity_cap <= 0:
            raise ConfigurationError("rating caps must be positive")
        if self.neighbors.min_common_items < 1:
            raise ConfigurationError("neighbors.min_common_items must be >= 1")
        if not -1.0 <= self.neighbors.min_similarity <= 1.0:
            raise ConfigurationError("neighbors.min_similarity must lie in [-1, 1]")
        if self.neighbors.max_neighbors < 1:
            raise ConfigurationError("neighbors.max_neighbors must be >= 1")
        if self.default_limit < 1:
            raise ConfigurationError("default_limit must be >= 1")
        if self.cache_ttl_seconds <= 0:
            raise ConfigurationError("cache_ttl_seconds must be positive")
        if self.max_concurrent_fetches < 1:
            raise ConfigurationError("max_concurrent_fetches must be >= 1")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        sections = {
            "rating": RatingPolicy,
            "neighbors": NeighborPolicy,
            "prediction": PredictionPolicy,
            "content": ContentPolicy,
            "popularity": PopularityPolicy,
        }
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs = {}
        for key, value in data.items():
            if key in sections:
                try:
                    kwargs[key] = sections[key](**(value or {}))
                except TypeError as e:
                    raise ConfigurationError(f"Invalid '{key}' section: {e}") from e
            else:
                kwargs[key] = value
        return cls(**kwargs)


def _apply_env_overrides(config: EngineConfig) -> EngineConfig:
    env = os.environ
    if env.get(f"{ENV_PREFIX}DATABASE_URL"):
        config.database_url = env[f"{ENV_PREFIX}DATABASE_URL"]
    if env.get(f"{ENV_PREFIX}REDIS_URL"):
        config.redis_url = env[f"{ENV_PREFIX}REDIS_URL"]
    if env.get(f"{ENV_PREFIX}LOG_LEVEL"):
        config.log_level = env[f"{ENV_PREFIX}LOG_LEVEL"].upper()
    if env.get(f"{ENV_PREFIX}CACHE_TTL"):
        try:
            config.cache_ttl_seconds = int(env[f"{ENV_PREFIX}CACHE_TTL"])
        except ValueError as e:
            raise ConfigurationError(f"{ENV_PREFIX}CACHE_TTL must be an integer") from e
    return config


def load_config(path: Optional[Union[str, Path]] = None, use_env: bool = True) -> EngineConfig:
    """
    Load engine configuration

    Args:
        path: Optional YAML file; missing sections keep their defaults
        use_env: Whether to read .env and RENTAL_RECOMMENDER_* overrides

    Returns:
        Validated engine configuration
    """
    data: Dict[str, Any] = {}
    if path is not None:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise ConfigurationError(f"Config file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        logger.info(f"Loaded configuration from {path}")

    config = EngineConfig.from_dict(data)

    if use_env:
        load_dotenv()
        config = _apply_env_overrides(config)

    return config.validate()
