"""
Shared pytest fixtures for CouchDB client tests.

Provides an in-memory CouchDB served through httpx.MockTransport and
clients wired to it.
"""

import pytest

from couchdb_client import CouchDBClient, CouchDBConfig
from tests.infrastructure.fake_couchdb import FakeCouchDB


@pytest.fixture(autouse=True)
def clean_password_env(monkeypatch):
    """Keep COUCHDB_PASS from the developer's shell out of the tests."""
    monkeypatch.delenv("COUCHDB_PASS", raising=False)


@pytest.fixture
def couchdb_config() -> CouchDBConfig:
    """Configuration matching the in-memory server's credentials."""
    return CouchDBConfig(user_name="admin", user_password="secret")


@pytest.fixture
def fake_couchdb() -> FakeCouchDB:
    """Fresh in-memory CouchDB with a 'fortests' database."""
    server = FakeCouchDB()
    server.databases["fortests"] = {}
    return server


@pytest.fixture
def couchdb_client(couchdb_config, fake_couchdb) -> CouchDBClient:
    """Client talking to the in-memory server over a caller-owned transport."""
    return CouchDBClient(couchdb_config, http_client=fake_couchdb.client())
