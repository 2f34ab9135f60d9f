"""
Shared fixtures for the model unit tests.

The datastore, SCM and executor are mocks; tests route datastore responses
per table with the ``route`` helper.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sd_models import FACTORIES, FactoryRegistry

PASSWORD = "this_is_a_password_that_needs_to_be_atleast_32_characters"


def _route(responses):
    """
    Build a datastore side_effect that answers by table name.

    A tuple value is a sequence of responses returned one per call; any
    other value is returned on every call.
    """
    queues = {
        table: list(value) for table, value in responses.items() if isinstance(value, tuple)
    }

    async def respond(config):
        table = config["table"]
        if table in queues:
            return queues[table].pop(0)
        return responses.get(table)

    return respond


@pytest.fixture
def route():
    return _route


@pytest.fixture
def password():
    return PASSWORD


@pytest.fixture
def datastore():
    """Create a mock datastore."""
    store = MagicMock()
    store.prefix = ""
    store.get = AsyncMock(return_value=None)
    store.save = AsyncMock(
        side_effect=lambda config: {
            **config["params"]["data"],
            "id": config["params"].get("id", 1),
        }
    )
    store.update = AsyncMock(return_value=None)
    store.remove = AsyncMock(return_value=None)
    store.scan = AsyncMock(return_value=[])
    store.query = AsyncMock(return_value=[])
    return store


@pytest.fixture
def scm():
    """Create a mock SCM provider."""
    provider = MagicMock()
    provider.get_permissions = AsyncMock(
        return_value={"admin": True, "push": True, "pull": True}
    )
    provider.decorate_url = AsyncMock(
        return_value={"name": "screwdriver/models", "branch": "main", "url": "https://scm/x"}
    )
    return provider


@pytest.fixture
def executor():
    """Create a mock executor."""
    mock = MagicMock()
    mock.start = AsyncMock(return_value=None)
    mock.stop = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def registry(datastore, scm, executor, password):
    """Create a registry with every factory constructed."""
    registry = FactoryRegistry()
    config = {
        "datastore": datastore,
        "scm": scm,
        "executor": executor,
        "password": password,
        "api_uri": "https://api.example.com",
    }
    for factory_class in FACTORIES:
        registry.get_instance(factory_class, config)
    return registry
