"""
CountyStats - Configuration Management

This module loads and validates configuration from environment variables,
with .env file support.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@dataclass
class PostgresConfig:
    """Configuration for the PostGIS connection."""
    dsn: str
    search_path: str = "knex,public"
    sslmode: str = "require"
    min_connections: int = 1
    max_connections: int = 10
    checkout_timeout: float = 30.0


@dataclass
class RedisConfig:
    """Configuration for the Redis cache."""
    url: str = "redis://localhost:6379"
    key_prefix: str = "county"


@dataclass
class WarmConfig:
    """Configuration for bulk cache warming."""
    max_concurrent: int = 8


def redis_url_from_env() -> str:
    """
    Resolve the Redis URL.

    Priority:
        1. REDIS_URL environment variable
        2. Built from REDIS_HOST and REDIS_PORT (container-friendly)
        3. Default: redis://localhost:6379
    """
    if os.environ.get("REDIS_URL"):
        return os.environ["REDIS_URL"]
    redis_host = os.environ.get("REDIS_HOST", "localhost")
    redis_port = os.environ.get("REDIS_PORT", "6379")
    return f"redis://{redis_host}:{redis_port}"


@dataclass
class Config:
    """
    Main configuration class that aggregates all configuration sections.

    Loads configuration from environment variables with .env file support.
    """
    postgres: PostgresConfig = field(default_factory=lambda: None)
    redis: RedisConfig = field(default_factory=RedisConfig)
    warm: WarmConfig = field(default_factory=WarmConfig)

    # Paths
    log_dir: Path = field(default_factory=lambda: Path("data/logs"))

    def __post_init__(self):
        """Load configuration from environment after initialization."""
        env_file = Path(".env")
        if env_file.exists():
            load_dotenv(env_file)

        self.postgres = PostgresConfig(
            dsn=self._get_required_env("DB_SERVER"),
            search_path=os.getenv("DB_SEARCH_PATH", "knex,public"),
            sslmode=os.getenv("DB_SSLMODE", "require"),
            min_connections=int(os.getenv("DB_POOL_MIN", "1")),
            max_connections=self._get_positive_int("DB_POOL_MAX", 10),
            checkout_timeout=float(os.getenv("DB_POOL_TIMEOUT", "30"))
        )

        self.redis = RedisConfig(
            url=redis_url_from_env(),
            key_prefix=os.getenv("CACHE_KEY_PREFIX", "county")
        )

        self.warm = WarmConfig(
            max_concurrent=self._get_positive_int("WARM_MAX_CONCURRENCY", 8)
        )

        self.log_dir = Path(os.getenv("LOG_DIR", str(self.log_dir)))
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def _get_required_env(self, key: str) -> str:
        """
        Get a required environment variable.

        Args:
            key: Environment variable name

        Returns:
            Environment variable value

        Raises:
            ValueError: If the environment variable is not set
        """
        value = os.getenv(key)
        if value is None:
            raise ValueError(f"Required environment variable {key} is not set")
        return value

    def _get_positive_int(self, key: str, default: int) -> int:
        """Read an integer setting that must be at least 1."""
        raw: Optional[str] = os.getenv(key)
        value = int(raw) if raw else default
        if value < 1:
            raise ValueError(f"{key} must be at least 1, got {value}")
        return value
