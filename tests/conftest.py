"""Test fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio

from groupmembership.config import Config
from groupmembership.factory import Factory

from .support.config import configure
from .support.ldap import MockLDAP, patch_ldap


@pytest.fixture(autouse=True)
def environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set default values of environment variables for testing."""
    monkeypatch.setenv("GROUPMEMBERSHIP_LDAP_PASSWORD", "some-password")
    monkeypatch.delenv("GROUPMEMBERSHIP_LOG_LEVEL", raising=False)
    monkeypatch.delenv("GROUPMEMBERSHIP_LOG_PROFILE", raising=False)


@pytest.fixture
def config() -> Config:
    """Set up and return the default test configuration."""
    return configure("ldap")


@pytest_asyncio.fixture
async def factory(
    config: Config, mock_ldap: MockLDAP
) -> AsyncIterator[Factory]:
    """Return a component factory using the mock LDAP server."""
    async with Factory.standalone(config) as factory:
        yield factory


@pytest.fixture
def mock_ldap() -> Iterator[MockLDAP]:
    """Replace the bonsai LDAP API with a mock class."""
    yield from patch_ldap()
