from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_CIRCUIT_RESET_TIMEOUT_MS,
    DEFAULT_CIRCUIT_THRESHOLD,
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_EXECUTION_CACHE_TTL_S,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_WORKFLOW_CACHE_TTL_S,
)


class RedisConfig(BaseModel):
    """Configuration for the Redis cache backend."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class CacheConfig(BaseModel):
    """Fast cache and lock service settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()


class RetryConfig(BaseModel):
    """Default retry policy applied to every step."""

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_delay_ms: int = Field(default=DEFAULT_RETRY_DELAY_MS, ge=0)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)


class CircuitBreakerConfig(BaseModel):
    threshold: int = Field(default=DEFAULT_CIRCUIT_THRESHOLD, gt=0)
    reset_timeout_ms: int = Field(default=DEFAULT_CIRCUIT_RESET_TIMEOUT_MS, ge=0)


class EngineConfig(BaseModel):
    """Scheduler and state store tuning."""

    concurrency_limit: int = Field(default=DEFAULT_CONCURRENCY_LIMIT, gt=0)
    execution_cache_ttl_s: int = Field(default=DEFAULT_EXECUTION_CACHE_TTL_S, gt=0)
    workflow_cache_ttl_s: int = Field(default=DEFAULT_WORKFLOW_CACHE_TTL_S, gt=0)
    # None derives the lock expiry from the retry policy and the workflow shape
    lock_timeout_ms: Optional[int] = Field(default=None, gt=0)


class ToolflowConfig(BaseModel):
    """Top-level configuration model."""

    cache: CacheConfig = CacheConfig()
    database_url: Optional[str] = None
    retry: RetryConfig = RetryConfig()
    circuit_breaker: CircuitBreakerConfig = CircuitBreakerConfig()
    engine: EngineConfig = EngineConfig()


def load_config(path: Optional[str] = None) -> ToolflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to TOOLFLOW_CONFIG env
            variable or 'toolflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("TOOLFLOW_CONFIG", "toolflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ToolflowConfig(**data)
    else:
        config = ToolflowConfig()

    env_db_url = os.getenv("TOOLFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_cache = os.getenv("TOOLFLOW_CACHE")
    if env_cache:
        config.cache.backend = env_cache.lower()
    return config
