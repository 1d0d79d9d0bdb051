"""Constants for groupmembership."""

__all__ = [
    "ATTRIBUTE_REGEX",
    "CONFIG_PATH",
    "DEFAULT_GROUP_NAME_ATTR",
    "DEFAULT_MEMBER_ATTR",
    "DEFAULT_USERNAME_ATTR",
    "LDAP_TIMEOUT",
    "LOGGER_NAME",
]

CONFIG_PATH = "/etc/groupmembership/groupmembership.yaml"
"""Default configuration path."""

LDAP_TIMEOUT = 5.0
"""Default timeout (in seconds) for LDAP queries."""

LOGGER_NAME = "groupmembership"
"""Name of the logger used for all messages."""

DEFAULT_USERNAME_ATTR = "uid"
"""Attribute in the user entry holding the username (:rfc:`2307`)."""

DEFAULT_GROUP_NAME_ATTR = "cn"
"""Attribute in a group entry holding the group name."""

DEFAULT_MEMBER_ATTR = "memberUid"
"""Attribute in a group entry listing member usernames (:rfc:`2307`)."""

# The following constants are used for configuration validation.

ATTRIBUTE_REGEX = r"^(?:[A-Za-z][A-Za-z0-9-]*|[0-9]+(?:\.[0-9]+)+)$"
"""Regex matching a valid LDAP attribute description.

This is either a short name (a letter followed by letters, digits, and
hyphens) or a numeric OID, as specified in :rfc:`4512`. Options such as
``;binary`` are not supported.
"""
