import pytest
from fastapi.testclient import TestClient

from core.settings import get_settings
from main import app
from providers.factory import Providers
from providers.impl.storage_memory import InMemoryStorageProvider


@pytest.fixture(autouse=True)
def fresh_settings():
    """
    get_settings() is lru_cached; every test starts from the current env.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def memory_storage():
    return InMemoryStorageProvider(bucket="test-bucket")


@pytest.fixture
def attach_storage():
    """
    Attach any storage provider on app.state the way the lifespan does.
    """

    def _attach(storage):
        app.state.providers = Providers(settings=get_settings(), storage=storage)
        return storage

    yield _attach
    app.state.providers = None


@pytest.fixture
def client(memory_storage, attach_storage):
    attach_storage(memory_storage)
    return TestClient(app)
