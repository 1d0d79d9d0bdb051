"""LDAP storage layer for groupmembership."""

from __future__ import annotations

import asyncio
from typing import Protocol

import bonsai
from bonsai.asyncio import AIOConnectionPool
from bonsai.pool import PoolError
from structlog.stdlib import BoundLogger

from ..config import LDAPConfig
from ..exceptions import LDAPError, NotConfiguredError
from ..models.ldap import LDAPEntry, ResultCode, SearchFilter, SearchResult

_TRANSPORT_ERRORS = (
    bonsai.AuthenticationError,
    bonsai.AuthMethodNotSupported,
    bonsai.ClosedConnection,
    bonsai.ConnectionError,
    bonsai.ProtocolError,
    bonsai.TimeoutError,
)
"""Errors that mean the search could not be executed at all.

Any other bonsai error with a negative code is also treated this way, since
negative codes are reported by the client library rather than the server.
"""

__all__ = ["DirectorySearcher", "LDAPStorage"]


class DirectorySearcher(Protocol):
    """Interface for executing a filtered search under a base DN."""

    async def search(
        self,
        base: str,
        search_filter: SearchFilter,
        attrlist: list[str] | None = None,
        *,
        username: str | None = None,
    ) -> SearchResult:
        """Search the directory.

        Parameters
        ----------
        base
            Base DN of the search.
        search_filter
            Search filter with its bound parameters.
        attrlist
            Attributes to retrieve, or `None` for all attributes.
        username
            User for which the search is being performed, for error
            reporting.

        Returns
        -------
        SearchResult
            Result of the search, which may not have been successful.

        Raises
        ------
        LDAPError
            Raised if the search could not be executed.
        """


def _result_code(exc: bonsai.LDAPError) -> ResultCode | None:
    """Determine the LDAP result code of a bonsai exception.

    Parameters
    ----------
    exc
        Exception raised by bonsai.

    Returns
    -------
    ResultCode or None
        The result code reported by the server, or `None` if the exception
        represents a connection, client, or protocol fault rather than a
        result from the server.
    """
    if isinstance(exc, _TRANSPORT_ERRORS):
        return None
    code = exc.code
    if code < 0:
        return None
    try:
        result_code = ResultCode(code)
    except ValueError:
        return ResultCode.OTHER
    if result_code == ResultCode.SUCCESS:
        return ResultCode.OTHER
    return result_code


class LDAPStorage:
    """LDAP storage layer.

    Parameters
    ----------
    config
        Configuration for LDAP searches.
    pool
        Connection pool for LDAP searches.
    logger
        Logger for debug messages and errors.
    """

    def __init__(
        self, config: LDAPConfig, pool: AIOConnectionPool, logger: BoundLogger
    ) -> None:
        self._config = config
        self._pool = pool
        self._logger = logger.bind(ldap_url=str(self._config.url))

    async def get_user_entry(self, username: str) -> LDAPEntry | None:
        """Get the LDAP entry for a user.

        Parameters
        ----------
        username
            Username of the user, matched against the username attribute.

        Returns
        -------
        LDAPEntry or None
            The first matching entry, or `None` if the user was not found or
            the search was not successful.

        Raises
        ------
        LDAPError
            Raised if the search could not be executed.
        NotConfiguredError
            Raised if no base DN for user searches was configured.
        """
        if not self._config.user_base_dn:
            raise NotConfiguredError("LDAP user base DN not configured")
        search_filter = SearchFilter(
            f"({self._config.username_attr}={{user}})", {"user": username}
        )
        result = await self.search(
            self._config.user_base_dn, search_filter, username=username
        )
        if not result.success:
            self._logger.warning(
                "LDAP user lookup failed",
                error=result.message,
                result_code=result.result_code.name,
                user=username,
            )
            return None
        if not result.entries:
            return None
        return result.entries[0]

    async def search(
        self,
        base: str,
        search_filter: SearchFilter,
        attrlist: list[str] | None = None,
        *,
        username: str | None = None,
    ) -> SearchResult:
        """Perform an LDAP search using the connection pool.

        Parameters
        ----------
        base
            Base DN of the search.
        search_filter
            Search filter with its bound parameters.
        attrlist
            Attributes to retrieve, or `None` for all attributes.
        username
            User for which the search is being performed, for error
            reporting.

        Returns
        -------
        SearchResult
            Result of the search. Errors reported by the server, such as a
            missing base DN or an exceeded size limit, are returned as an
            unsuccessful result rather than raised.

        Raises
        ------
        LDAPError
            Raised if the search could not be executed because the server
            could not be reached, the bind failed, the search timed out, the
            client library or the server violated the protocol, or the
            connection pool was closed or exhausted.

        Notes
        -----
        The bonsai connection pool does not keep track of failed connections
        and will keep returning the same connection even if the LDAP server
        has stopped responding. Connections that time out or fail are
        therefore closed explicitly before the error is raised. The search is
        not retried.
        """
        filter_exp = search_filter.render()
        logger = self._logger.bind(
            ldap_attrs=attrlist,
            ldap_base=base,
            ldap_search=filter_exp,
            user=username,
        )

        try:
            async with self._pool.spawn() as conn:
                try:
                    logger.debug("Querying LDAP")
                    entries = await conn.search(
                        base=base,
                        scope=bonsai.LDAPSearchScope.SUB,
                        filter_exp=filter_exp,
                        attrlist=attrlist,
                        timeout=self._config.timeout,
                    )
                except bonsai.LDAPError as e:
                    code = _result_code(e)
                    if code is None:
                        logger.debug("Closing LDAP connection after failure")
                        conn.close()
                        raise
                    logger.debug(
                        "LDAP search unsuccessful",
                        error=str(e),
                        result_code=code.name,
                    )
                    return SearchResult(result_code=code, message=str(e))
                except asyncio.TimeoutError:
                    logger.debug("Closing LDAP connection after timeout")
                    conn.close()
                    raise
        except (bonsai.LDAPError, PoolError, asyncio.TimeoutError) as e:
            msg = f"Cannot query LDAP: {type(e).__name__}: {e!s}"
            logger.error("Cannot query LDAP", error=str(e))
            raise LDAPError(msg, username) from e

        logger.debug("LDAP search results", ldap_results=entries)
        return SearchResult(
            result_code=ResultCode.SUCCESS, entries=list(entries)
        )
