"""Exceptions for groupmembership."""

from __future__ import annotations

from safir.slack.blockkit import SlackException

__all__ = [
    "DirectoryError",
    "LDAPError",
    "NotConfiguredError",
]


class DirectoryError(SlackException):
    """Error in the directory used for group membership.

    This is the base exception for any hard failure talking to the directory,
    as opposed to a search that completed with a non-success result. Callers
    that want to distinguish "the user has no groups" from "the groups could
    not be determined" should catch this exception.
    """


class LDAPError(DirectoryError):
    """An LDAP search could not be executed.

    Raised for connection failures, timeouts, bind failures, and protocol
    errors. The underlying bonsai exception, if any, is chained.
    """


class NotConfiguredError(Exception):
    """The requested operation was not configured."""
