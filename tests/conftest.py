# tests/conftest.py
import logging
from pathlib import Path

import pytest

from provision.config_models import AppSettings, DeploySettings
from provision.phase_runner import ProvisionContext
from provision.secrets import SecretStore
from common.core_utils import SecretRedactingFilter


def make_settings(**overrides) -> AppSettings:
    values = {
        "domain": "news.example.com",
        "db_password": "s3cret-db-pass",
        "admin_user": "alice",
    }
    values.update(overrides)
    return AppSettings(**values)


@pytest.fixture
def app_settings() -> AppSettings:
    return make_settings()


@pytest.fixture
def ip_settings() -> AppSettings:
    return make_settings(domain="54.123.45.67")


@pytest.fixture
def app_dir_settings(tmp_path: Path) -> AppSettings:
    """Settings whose checkout lives under tmp_path."""
    return make_settings(deploy=DeploySettings(app_dir=tmp_path / "app"))


@pytest.fixture
def secret_store() -> SecretStore:
    return SecretStore(SecretRedactingFilter())


@pytest.fixture
def make_context(secret_store):
    def _make(settings: AppSettings) -> ProvisionContext:
        return ProvisionContext(
            settings=settings,
            secrets=secret_store,
            logger=logging.getLogger("tests"),
        )

    return _make


@pytest.fixture
def context(make_context, app_settings) -> ProvisionContext:
    return make_context(app_settings)


@pytest.fixture
def settings_factory():
    return make_settings
