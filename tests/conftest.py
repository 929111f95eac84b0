"""
Pytest configuration and fixtures for schemastash tests

This module provides shared fixtures for unit and integration tests.
"""
import json
import os
from typing import AsyncGenerator, Generator

import pytest

from schemastash.jsonstore import (
    DocumentJsonDatabase,
    GraphJsonDatabase,
    JsonDatabase,
    RelationalJsonDatabase,
)
from schemastash.observability.logger import configure_logging
from schemastash.warehouse.cache import CacheDatabase
from schemastash.warehouse.connection import PostgresConnectionPool, SqliteConnection


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )


# =======================
# FILE FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_data_dir() -> str:
    """
    Get path to test data fixtures directory

    Returns:
        Path to tests/fixtures directory
    """
    return os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture(scope="session")
def input_schema(test_data_dir) -> dict:
    with open(os.path.join(test_data_dir, "schemas", "my-test-input-schema.json")) as f:
        return json.load(f)


@pytest.fixture(scope="session")
def output_schema(test_data_dir) -> dict:
    with open(os.path.join(test_data_dir, "schemas", "my-test-output-schema.json")) as f:
        return json.load(f)


@pytest.fixture(scope="session")
def transformer_sources(test_data_dir) -> dict:
    """
    Source text of the example transformer in every supported language

    Returns:
        Mapping of language tag to source code
    """
    base = os.path.join(test_data_dir, "transformers")
    sources = {}
    for language, file_name in [
        ("jmespath", "example.jmespath"),
        ("jinja2", "example.j2"),
        ("mapping", "example.json"),
    ]:
        with open(os.path.join(base, file_name)) as f:
            sources[language] = f.read()
    return sources


@pytest.fixture(autouse=True)
def clean_stash_env(monkeypatch):
    """Keep STASH_* variables from the developer's shell out of tests"""
    for key in list(os.environ):
        if key.startswith("STASH_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Rebind the log handler once capsys has restored stderr"""
    yield
    configure_logging()


# =======================
# DATABASE FIXTURES (SQLite)
# =======================

@pytest.fixture
async def sqlite_conn() -> AsyncGenerator[SqliteConnection, None]:
    """
    Open an in-memory SQLite connection for a single test

    Yields:
        Open SqliteConnection
    """
    conn = SqliteConnection()
    await conn.open()
    yield conn
    await conn.close()


@pytest.fixture
async def cache(sqlite_conn) -> CacheDatabase:
    """
    Provide a cache with its tables provisioned

    Args:
        sqlite_conn: SQLite connection fixture

    Returns:
        CacheDatabase over in-memory SQLite
    """
    cache = CacheDatabase(sqlite_conn)
    await cache.provision_tables()
    return cache


@pytest.fixture(params=["document-memory", "document-dir", "relational-sqlite", "graph"])
async def json_database(request, tmp_path) -> AsyncGenerator[JsonDatabase, None]:
    """
    Every JSON database backend, opened

    Yields:
        Open JsonDatabase
    """
    if request.param == "document-memory":
        database = DocumentJsonDatabase()
    elif request.param == "document-dir":
        database = DocumentJsonDatabase(str(tmp_path / "store"))
    elif request.param == "relational-sqlite":
        database = RelationalJsonDatabase(SqliteConnection())
    else:
        database = GraphJsonDatabase()

    async with database:
        yield database


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator:
    """
    Start PostgreSQL container for integration tests

    Skips when Docker is not available.

    Yields:
        PostgresContainer instance
    """
    from testcontainers.postgres import PostgresContainer

    try:
        container = PostgresContainer(
            image="postgres:16.2-alpine",
            username="test_stash",
            password="test_password",
            dbname="test_schemastash",
        )
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")

    try:
        yield container
    finally:
        container.stop()


@pytest.fixture
def postgres_conninfo(postgres_container) -> str:
    """libpq connection string for the test container"""
    return (
        f"host={postgres_container.get_container_host_ip()} "
        f"port={postgres_container.get_exposed_port(5432)} "
        f"dbname=test_schemastash user=test_stash password=test_password"
    )


@pytest.fixture
async def postgres_pool(postgres_conninfo) -> AsyncGenerator[PostgresConnectionPool, None]:
    """
    Open a pool on an emptied public schema

    Yields:
        Open PostgresConnectionPool
    """
    pool = PostgresConnectionPool(postgres_conninfo, min_size=1, max_size=4)
    await pool.open()
    await pool.execute_command("DROP SCHEMA public CASCADE")
    await pool.execute_command("CREATE SCHEMA public")
    yield pool
    await pool.close()
