"""Tests for configuration loading."""

from toolflow.cache import InMemoryCache, get_cache
from toolflow.cache.redis import RedisCache
from toolflow.config import load_config
from toolflow.persistence import SQLiteWorkflowRepository, get_repository


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("TOOLFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("TOOLFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("TOOLFLOW_CACHE", raising=False)

    config = load_config()
    assert config.cache.backend == "inmemory"
    assert config.database_url is None
    assert config.retry.max_retries == 3
    assert config.retry.retry_delay_ms == 1000
    assert config.retry.timeout_ms == 30000
    assert config.circuit_breaker.threshold == 5
    assert config.circuit_breaker.reset_timeout_ms == 60000
    assert config.engine.concurrency_limit == 5
    assert isinstance(get_cache(config=config), InMemoryCache)


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
cache:
  backend: redis
  redis:
    host: testhost
    port: 1234
retry:
  max_retries: 1
  retry_delay_ms: 10
engine:
  concurrency_limit: 2
"""
    )
    monkeypatch.setenv("TOOLFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("TOOLFLOW_CACHE", raising=False)

    config = load_config()
    assert config.cache.backend == "redis"
    assert config.cache.redis.host == "testhost"
    assert config.cache.redis.port == 1234
    assert config.retry.max_retries == 1
    assert config.retry.timeout_ms == 30000
    assert config.engine.concurrency_limit == 2


def test_get_cache_uses_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
cache:
  backend: redis
  redis:
    host: confighost
    port: 6380
"""
    )
    monkeypatch.setenv("TOOLFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("TOOLFLOW_CACHE", raising=False)

    cache = get_cache()
    assert isinstance(cache, RedisCache)
    assert cache.host == "confighost"
    assert cache.port == 6380


def test_env_overrides_database_url(tmp_path, monkeypatch):
    monkeypatch.setenv("TOOLFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    db_path = tmp_path / "toolflow.db"
    monkeypatch.setenv("TOOLFLOW_DATABASE_URL", f"sqlite://{db_path}")

    config = load_config()
    assert config.database_url == f"sqlite://{db_path}"
    repo = get_repository(config=config)
    assert isinstance(repo, SQLiteWorkflowRepository)
    repo.close()
