"""Data models for LDAP searches."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TypeAlias

from bonsai.utils import escape_filter_exp

__all__ = [
    "LDAPEntry",
    "ResultCode",
    "SearchFilter",
    "SearchResult",
    "get_attribute",
]

LDAPEntry: TypeAlias = Mapping[str, Sequence[str | bytes] | str | bytes]
"""A directory entry, mapping attribute names to their values.

bonsai's ``LDAPEntry`` satisfies this type, as do plain dictionaries of lists
of strings.
"""


class ResultCode(IntEnum):
    """LDAP result codes, as specified in :rfc:`4511`.

    Only the codes that can plausibly be returned by a search are listed.
    """

    SUCCESS = 0
    OPERATIONS_ERROR = 1
    PROTOCOL_ERROR = 2
    TIME_LIMIT_EXCEEDED = 3
    SIZE_LIMIT_EXCEEDED = 4
    AUTH_METHOD_NOT_SUPPORTED = 7
    STRONGER_AUTH_REQUIRED = 8
    ADMIN_LIMIT_EXCEEDED = 11
    UNAVAILABLE_CRITICAL_EXTENSION = 12
    NO_SUCH_ATTRIBUTE = 16
    INAPPROPRIATE_MATCHING = 18
    NO_SUCH_OBJECT = 32
    INVALID_DN_SYNTAX = 34
    INVALID_CREDENTIALS = 49
    INSUFFICIENT_ACCESS_RIGHTS = 50
    BUSY = 51
    UNAVAILABLE = 52
    UNWILLING_TO_PERFORM = 53
    OTHER = 80


@dataclass(frozen=True)
class SearchFilter:
    """An LDAP search filter with bound parameters.

    The template uses `str.format` named placeholders, such as
    ``(memberUid={user})``. Parameter values are escaped with the rules of
    :rfc:`4515` before substitution, so a parameter can never change the
    structure of the filter.
    """

    template: str
    """Filter template with named placeholders."""

    parameters: Mapping[str, str] = field(default_factory=dict)
    """Values for the placeholders, unescaped."""

    def render(self) -> str:
        """Build the filter expression sent to the server.

        Returns
        -------
        str
            Filter with every placeholder replaced by its escaped value.

        Raises
        ------
        KeyError
            Raised if the template references a parameter that was not
            provided.
        """
        escaped = {k: escape_filter_exp(v) for k, v in self.parameters.items()}
        return self.template.format(**escaped)

    def __str__(self) -> str:
        return self.render()


@dataclass
class SearchResult:
    """Result of an LDAP search that completed.

    A search that fails because the directory could not be reached raises an
    exception instead. This only represents searches for which the server
    returned a result code.
    """

    result_code: ResultCode
    """Result code of the search."""

    message: str = ""
    """Diagnostic message from the server, if any."""

    entries: list[LDAPEntry] = field(default_factory=list)
    """Entries returned by the search, in server order."""

    @property
    def success(self) -> bool:
        """Whether the search was successful."""
        return self.result_code == ResultCode.SUCCESS


def get_attribute(entry: LDAPEntry, attr: str) -> str | None:
    """Get the value of an attribute from an LDAP entry.

    Only the first value of a multivalued attribute is returned.

    Parameters
    ----------
    entry
        Entry from which to extract the attribute.
    attr
        Name of the attribute.

    Returns
    -------
    str or None
        First value of the attribute, or `None` if the attribute is missing,
        has no values, or its first value is empty or not valid UTF-8.
    """
    values = entry.get(attr)
    if not values:
        return None
    value = values if isinstance(values, (str, bytes)) else values[0]

    # bonsai returns bytes for values that are not valid UTF-8.
    if isinstance(value, bytes):
        try:
            value = value.decode()
        except UnicodeDecodeError:
            return None
    return str(value) or None
