"""
Pytest configuration and shared fixtures
"""
from unittest.mock import Mock

import pytest
import requests
from cryptography.fernet import Fernet

from agent.config_store import ConfigStore
from shared_lib.schema import DnsTarget, StoredConfig
from shared_lib.security import CryptoManager, hash_password
from tests.helpers import make_response
from webapp import create_app


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.json"


@pytest.fixture
def store(config_path):
    return ConfigStore(config_path)


@pytest.fixture
def crypto():
    return CryptoManager(Fernet.generate_key().decode("utf-8"))


@pytest.fixture
def stored_config(crypto):
    """A config with login credentials and one DNS target."""
    return StoredConfig(
        username="admin",
        password_hash=hash_password("s3cret"),
        targets=[
            DnsTarget(
                id="www.example.com",
                hostname="www",
                update_url="https://dyn.example.net/update?host={hostname}&password={token}&ip={ip}",
                encrypted_token=crypto.encrypt_str("provider-token"),
            )
        ],
    )


@pytest.fixture
def saved_store(store, stored_config):
    store.save(stored_config)
    return store


@pytest.fixture
def http_session():
    session = Mock(spec=requests.Session)
    session.get.return_value = make_response()
    session.post.return_value = make_response()
    return session


@pytest.fixture
def app(store, crypto, http_session, tmp_path):
    app = create_app(store, crypto, http_session, tmp_path / "history.db", "1.2.3")
    app.testing = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def logged_in_client(app, saved_store):
    client = app.test_client()
    response = client.post("/loginFunc", json={"username": "admin", "password": "s3cret"})
    assert response.status_code == 200
    return client
