"""Create groupmembership components."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from typing import Self

import structlog
from bonsai import LDAPClient
from bonsai.asyncio import AIOConnectionPool
from structlog.stdlib import BoundLogger

from .config import Config
from .constants import LOGGER_NAME
from .services.groups import GroupMembershipResolver
from .storage.ldap import LDAPStorage

__all__ = ["Factory", "ProcessContext"]


@dataclass(frozen=True, slots=True)
class ProcessContext:
    """Per-process global application state.

    This object holds all of the per-process singletons that are shared
    across every component built by the `Factory`.
    """

    config: Config
    """Configuration."""

    ldap_pool: AIOConnectionPool
    """Connection pool to talk to LDAP."""

    @classmethod
    def from_config(cls, config: Config) -> Self:
        """Create a new process context from the configuration.

        No connections are opened. The pool opens connections the first time
        one is needed.

        Parameters
        ----------
        config
            The groupmembership configuration.

        Returns
        -------
        ProcessContext
            Shared context for a groupmembership process.
        """
        client = LDAPClient(str(config.ldap.url))
        if config.ldap.user_dn and config.ldap.password:
            client.set_credentials(
                "SIMPLE",
                user=config.ldap.user_dn,
                password=config.ldap.password.get_secret_value(),
            )
        return cls(config=config, ldap_pool=AIOConnectionPool(client))

    async def aclose(self) -> None:
        """Clean up a process context."""
        await self.ldap_pool.close()


class Factory:
    """Build groupmembership components.

    Parameters
    ----------
    context
        Shared process context.
    logger
        Logger to use for errors.
    """

    @classmethod
    def create(cls, config: Config) -> Self:
        """Create a component factory.

        If an async context manager can be used, call `standalone` rather than
        this method.

        Parameters
        ----------
        config
            The groupmembership configuration.

        Returns
        -------
        Factory
            Newly-created factory. The caller must call `aclose` on the
            returned object during shutdown.
        """
        logger = structlog.get_logger(LOGGER_NAME)
        return cls(ProcessContext.from_config(config), logger)

    @classmethod
    @asynccontextmanager
    async def standalone(cls, config: Config) -> AsyncIterator[Self]:
        """Async context manager for groupmembership components.

        Parameters
        ----------
        config
            The groupmembership configuration.

        Yields
        ------
        Factory
            The factory. Must be used as an async context manager.

        Examples
        --------
        .. code-block:: python

           async with Factory.standalone(config) as factory:
               resolver = factory.create_group_membership_resolver()
               groups = await resolver.resolve(entry)
        """
        factory = cls.create(config)
        async with aclosing(factory):
            yield factory

    def __init__(self, context: ProcessContext, logger: BoundLogger) -> None:
        self._context = context
        self._logger = logger

    async def aclose(self) -> None:
        """Shut down the factory.

        After this method is called, the factory object is no longer valid and
        must not be used.
        """
        await self._context.aclose()

    def create_group_membership_resolver(self) -> GroupMembershipResolver:
        """Create a resolver for user group membership.

        Returns
        -------
        GroupMembershipResolver
            Newly-created group membership resolver.
        """
        config = self._context.config
        return GroupMembershipResolver.from_config(
            config.ldap,
            config.group_membership,
            self.create_ldap_storage(),
            self._logger,
        )

    def create_ldap_storage(self) -> LDAPStorage:
        """Create the LDAP storage layer.

        Returns
        -------
        LDAPStorage
            Newly-created LDAP storage.
        """
        return LDAPStorage(
            self._context.config.ldap, self._context.ldap_pool, self._logger
        )
