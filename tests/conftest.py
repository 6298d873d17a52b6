import json

import pytest
from httpx import AsyncClient, ASGITransport

# Import the app and DB helpers from the project.
from main import app as fastapi_app
import db as project_db
from config.test import TestSettings
from core import deps
from api.assets import db_manager
from api.assets.models import AssetElement
from core.asset_types import DeviceSubtype
from core.collaborators import AssetActivator, AssetNotifier, LoggingCredentialMapper
from db import ConnectionFactory, init_db

# Fresh in-memory database per connection factory
TEST_DATABASE_URL = "sqlite+aiosqlite://"


class RecordingNotifier(AssetNotifier):
    """Keeps every notification instead of sending it."""

    def __init__(self):
        self.sent: list[tuple[str, dict]] = []

    async def notify(self, asset, operation):
        self.sent.append((operation, dict(asset)))

    @property
    def operations(self) -> list[str]:
        return [operation for operation, _ in self.sent]


class FakeActivator(AssetActivator):
    def __init__(self, activable: bool = True):
        self.activable = activable
        self.deactivated: list[str] = []

    async def is_activable(self, snapshot: str) -> bool:
        return self.activable

    async def deactivate(self, snapshot: str) -> None:
        self.deactivated.append(json.loads(snapshot)["id"])


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def connections():
    factory = ConnectionFactory(TEST_DATABASE_URL)
    await init_db(factory.engine)
    yield factory
    await factory.dispose()


@pytest.fixture
async def store(connections):
    async with connections.connect() as row_store:
        yield row_store


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def activator():
    return FakeActivator()


@pytest.fixture
def test_settings():
    return TestSettings()


@pytest.fixture
async def async_client(connections, notifier, activator, test_settings):
    # Each request gets its own Row Store on the test database
    async def override_get_store():
        async with connections.connect() as row_store:
            yield row_store

    fastapi_app.dependency_overrides[project_db.get_store] = override_get_store
    fastapi_app.dependency_overrides[deps.get_settings] = lambda: test_settings
    fastapi_app.dependency_overrides[deps.get_notifier] = lambda: notifier
    fastapi_app.dependency_overrides[deps.get_activator] = lambda: activator
    fastapi_app.dependency_overrides[deps.get_credential_mapper] = LoggingCredentialMapper

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://testserver") as ac:
        yield ac

    # Clean up
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def add_asset(store):
    """Insert an element with its external name; returns the new id."""

    async def _add(
        ext_name: str,
        type_id: int,
        parent_id: int | None = None,
        subtype_id: int = DeviceSubtype.N_A,
        status: str = "active",
        name: str | None = None,
    ) -> int:
        element = AssetElement(
            name=name or ext_name.lower().replace(" ", "-"),
            type_id=int(type_id),
            subtype_id=int(subtype_id),
            parent_id=parent_id,
            status=status,
        )
        element_id = await db_manager.insert_into_asset_element(store, element, update=name is not None)
        await db_manager.insert_into_asset_ext_attributes(store, element_id, {"name": ext_name}, True)
        return element_id

    return _add
