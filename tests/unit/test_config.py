"""
Unit tests for configuration loading.
"""

import pytest

from schemastash.config import StashConfig, load_config
from schemastash.core.errors import ConfigurationError
from schemastash.warehouse.connection import (
    PostgresConnectionPool,
    SqliteConnection,
    create_sql_connection,
)


class TestStashConfig:
    """Tests for StashConfig defaults and validation"""

    def test_defaults(self):
        config = StashConfig()
        assert config.backend == "relational"
        assert config.sql_engine == "sqlite"
        assert config.sqlite_path == ":memory:"
        assert not config.uses_postgres

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError):
            StashConfig(backend="cassandra")

    def test_pool_bounds(self):
        with pytest.raises(ValueError):
            StashConfig(pool_min_size=5, pool_max_size=2)

    def test_postgres_requires_password(self):
        config = StashConfig(sql_engine="postgres")
        with pytest.raises(ConfigurationError):
            config.postgres_conninfo

    def test_postgres_conninfo(self):
        config = StashConfig(sql_engine="postgres", db_host="db", db_password="secret")
        assert "host=db" in config.postgres_conninfo
        assert "password=secret" in config.postgres_conninfo


class TestLoadConfig:
    """Tests for load_config precedence"""

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "stash.yaml"
        path.write_text("backend: graph\nlog_level: DEBUG\n")
        config = load_config(config_path=path)
        assert config.backend == "graph"
        assert config.log_level == "DEBUG"

    def test_config_file_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "stash.yaml"
        path.write_text("backend: document\n")
        monkeypatch.setenv("STASH_CONFIG_FILE", str(path))
        assert load_config().backend == "document"

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "stash.yaml"
        path.write_text("backend: graph\n")
        monkeypatch.setenv("STASH_BACKEND", "document")
        assert load_config(config_path=path).backend == "document"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("STASH_DB_PORT=6543\nSTASH_STRICT_SCHEMA_TYPES=true\nOTHER=ignored\n")
        config = load_config(env_file=env_file)
        assert config.db_port == 6543
        assert config.strict_schema_types is True

    def test_process_env_wins_over_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("STASH_LOG_LEVEL=DEBUG\n")
        monkeypatch.setenv("STASH_LOG_LEVEL", "ERROR")
        assert load_config(env_file=env_file).log_level == "ERROR"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("STASH_BACKEND", "document")
        assert load_config(backend="graph", sqlite_path=None).backend == "graph"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(config_path=tmp_path / "missing.yaml")

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "stash.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_config(config_path=path)

    def test_invalid_value(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(db_port="not-a-port")
        assert exc_info.value.details["errors"][0]["field"] == "db_port"

    def test_unknown_yaml_key(self, tmp_path):
        path = tmp_path / "stash.yaml"
        path.write_text("no_such_setting: 1\n")
        with pytest.raises(ConfigurationError):
            load_config(config_path=path)


class TestConnectionFactory:
    """Tests for create_sql_connection"""

    def test_sqlite(self):
        connection = create_sql_connection(StashConfig(sqlite_path="/tmp/x.db"))
        assert isinstance(connection, SqliteConnection)
        assert connection.path == "/tmp/x.db"

    def test_postgres(self):
        config = StashConfig(sql_engine="postgres", db_password="secret", pool_max_size=4)
        connection = create_sql_connection(config)
        assert isinstance(connection, PostgresConnectionPool)
        assert connection.max_size == 4

    def test_postgres_without_password(self):
        with pytest.raises(ConfigurationError):
            create_sql_connection(StashConfig(sql_engine="postgres"))

    async def test_sqlite_requires_open(self):
        with pytest.raises(RuntimeError):
            await SqliteConnection().execute_query("SELECT 1")
