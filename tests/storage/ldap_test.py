"""Tests for the LDAP storage layer."""

from __future__ import annotations

import bonsai
import pytest
from bonsai.errors import _get_error
from bonsai.pool import ClosedPool

from groupmembership.exceptions import LDAPError, NotConfiguredError
from groupmembership.factory import Factory
from groupmembership.models.ldap import ResultCode, SearchFilter

from ..support.config import configure
from ..support.ldap import MockLDAP


@pytest.mark.asyncio
async def test_search(factory: Factory, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_entries_for_test(
        "ou=groups,dc=example,dc=org",
        "memberUid",
        "alice",
        [
            {"cn": ["staff"], "gidNumber": ["1000"]},
            {"cn": ["research"], "gidNumber": ["1001"]},
        ],
    )
    ldap = factory.create_ldap_storage()
    search_filter = SearchFilter("(memberUid={user})", {"user": "alice"})

    result = await ldap.search("ou=groups,dc=example,dc=org", search_filter)
    assert result.success
    assert result.result_code == ResultCode.SUCCESS
    assert result.entries == [
        {"cn": ["staff"], "gidNumber": ["1000"]},
        {"cn": ["research"], "gidNumber": ["1001"]},
    ]

    result = await ldap.search(
        "ou=groups,dc=example,dc=org", search_filter, ["cn"]
    )
    assert result.entries == [{"cn": ["staff"]}, {"cn": ["research"]}]

    result = await ldap.search("ou=other,dc=example,dc=org", search_filter)
    assert result.success
    assert result.entries == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "code"),
    [
        (bonsai.InsufficientAccess, ResultCode.INSUFFICIENT_ACCESS_RIGHTS),
        (bonsai.InvalidDN, ResultCode.INVALID_DN_SYNTAX),
        (bonsai.NoSuchAttribute, ResultCode.NO_SUCH_ATTRIBUTE),
        (bonsai.NoSuchObjectError, ResultCode.NO_SUCH_OBJECT),
        (bonsai.SizeLimitError, ResultCode.SIZE_LIMIT_EXCEEDED),
        (bonsai.UnwillingToPerform, ResultCode.UNWILLING_TO_PERFORM),
    ],
)
async def test_search_result_codes(
    error: type[bonsai.LDAPError],
    code: ResultCode,
    factory: Factory,
    mock_ldap: MockLDAP,
) -> None:
    ldap = factory.create_ldap_storage()
    search_filter = SearchFilter("(memberUid={user})", {"user": "alice"})
    exc = error("Search failed")
    mock_ldap.fail_next_search(exc)

    result = await ldap.search("ou=groups,dc=example,dc=org", search_filter)
    assert not result.success
    assert result.result_code == code
    assert result.message == str(exc)
    assert result.entries == []
    assert mock_ldap.close_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error_code", "code"),
    [
        (1, ResultCode.OPERATIONS_ERROR),
        (3, ResultCode.TIME_LIMIT_EXCEEDED),
        (11, ResultCode.ADMIN_LIMIT_EXCEEDED),
        (51, ResultCode.BUSY),
        (52, ResultCode.UNAVAILABLE),
        (54, ResultCode.OTHER),
    ],
)
async def test_search_generic_result_codes(
    error_code: int, code: ResultCode, factory: Factory, mock_ldap: MockLDAP
) -> None:
    ldap = factory.create_ldap_storage()
    search_filter = SearchFilter("(memberUid={user})", {"user": "alice"})

    # bonsai sets the code on the generic LDAPError class when raising it, so
    # the exception has to be created immediately before the search.
    exc = _get_error(error_code)("Search failed")
    mock_ldap.fail_next_search(exc)

    result = await ldap.search("ou=groups,dc=example,dc=org", search_filter)
    assert not result.success
    assert result.result_code == code
    assert result.message == str(exc)
    assert mock_ldap.close_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        bonsai.AuthenticationError("Invalid credentials"),
        bonsai.ClosedConnection("Connection closed"),
        bonsai.ConnectionError("Can't contact LDAP server"),
        bonsai.InvalidMessageID("Unknown message ID"),
        bonsai.ProtocolError("Unexpected response"),
        bonsai.TimeoutError("Request timed out"),
        TimeoutError(),
    ],
)
async def test_search_transport_error(
    error: Exception, factory: Factory, mock_ldap: MockLDAP
) -> None:
    ldap = factory.create_ldap_storage()
    search_filter = SearchFilter("(memberUid={user})", {"user": "alice"})
    mock_ldap.fail_next_search(error)

    with pytest.raises(LDAPError) as excinfo:
        await ldap.search(
            "ou=groups,dc=example,dc=org", search_filter, username="alice"
        )
    assert excinfo.value.__cause__ is error
    assert excinfo.value.user == "alice"
    assert mock_ldap.close_count == 1

    # No retry is attempted.
    assert len(mock_ldap.searches) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("error_code", [-2, -4, -7, -17])
async def test_search_client_error(
    error_code: int, factory: Factory, mock_ldap: MockLDAP
) -> None:
    ldap = factory.create_ldap_storage()
    search_filter = SearchFilter("(memberUid={user})", {"user": "alice"})
    exc = _get_error(error_code)("Client failure")
    mock_ldap.fail_next_search(exc)

    with pytest.raises(LDAPError) as excinfo:
        await ldap.search(
            "ou=groups,dc=example,dc=org", search_filter, username="alice"
        )
    assert excinfo.value.__cause__ is exc
    assert mock_ldap.close_count == 1


@pytest.mark.asyncio
async def test_search_closed_pool(mock_ldap: MockLDAP) -> None:
    config = configure("ldap")
    factory = Factory.create(config)
    ldap = factory.create_ldap_storage()
    await factory.aclose()

    search_filter = SearchFilter("(memberUid={user})", {"user": "alice"})
    with pytest.raises(LDAPError) as excinfo:
        await ldap.search(
            "ou=groups,dc=example,dc=org", search_filter, username="alice"
        )
    assert isinstance(excinfo.value.__cause__, ClosedPool)
    assert excinfo.value.user == "alice"
    assert mock_ldap.searches == []


@pytest.mark.asyncio
async def test_get_user_entry(factory: Factory, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_entries_for_test(
        "ou=people,dc=example,dc=org",
        "uid",
        "alice",
        [{"uid": ["alice"], "cn": ["Alice Example"]}],
    )
    ldap = factory.create_ldap_storage()

    entry = await ldap.get_user_entry("alice")
    assert entry == {"uid": ["alice"], "cn": ["Alice Example"]}
    assert mock_ldap.searches == ["(uid=alice)"]

    assert await ldap.get_user_entry("bob") is None

    mock_ldap.fail_next_search(bonsai.NoSuchObjectError("No such object"))
    assert await ldap.get_user_entry("alice") is None

    mock_ldap.fail_next_search(bonsai.ConnectionError("Server down"))
    with pytest.raises(LDAPError):
        await ldap.get_user_entry("alice")


@pytest.mark.asyncio
async def test_get_user_entry_not_configured(mock_ldap: MockLDAP) -> None:
    config = configure("no-user-base")
    async with Factory.standalone(config) as factory:
        ldap = factory.create_ldap_storage()
        with pytest.raises(NotConfiguredError):
            await ldap.get_user_entry("alice")
    assert mock_ldap.searches == []
