"""Resolution of group membership for LDAP users."""

from __future__ import annotations

from typing import Self

from structlog.stdlib import BoundLogger

from ..config import GroupMembershipConfig, LDAPConfig
from ..models.ldap import LDAPEntry, SearchFilter, get_attribute
from ..storage.ldap import DirectorySearcher

__all__ = ["GroupMembershipResolver"]


class GroupMembershipResolver:
    """Look up the names of the groups a user belongs to.

    This works for LDAP directories using the :rfc:`2307` schema, where group
    entries list their members by username rather than by DN. The username is
    taken from the user's LDAP entry and used to search for groups whose
    member attribute contains that username. The group name attribute is then
    extracted from each matching group.

    For example, with the username attribute set to ``uid`` and the member
    attribute set to ``memberUid``, the ``uid`` of the user's entry is used to
    search for groups with a ``memberUid`` attribute containing the same
    value. With the group name attribute set to ``cn``, the ``cn`` of each
    group is returned.

    Parameters
    ----------
    ldap
        Directory search layer, normally
        `~groupmembership.storage.ldap.LDAPStorage`.
    base_dn
        Base DN for the group search.
    username_attr
        Attribute of the user's entry holding the username.
    group_name_attr
        Attribute of the group entries holding the group name.
    member_attr
        Attribute of the group entries listing the usernames of members.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        ldap: DirectorySearcher,
        base_dn: str,
        username_attr: str,
        group_name_attr: str,
        member_attr: str,
        logger: BoundLogger,
    ) -> None:
        self._ldap = ldap
        self._base_dn = base_dn
        self._username_attr = username_attr
        self._group_name_attr = group_name_attr
        self._member_attr = member_attr
        self._logger = logger

    @classmethod
    def from_config(
        cls,
        ldap_config: LDAPConfig,
        config: GroupMembershipConfig,
        ldap: DirectorySearcher,
        logger: BoundLogger,
    ) -> Self:
        """Create a resolver from configuration.

        Parameters
        ----------
        ldap_config
            General LDAP configuration, used for the username attribute.
        config
            Group membership configuration, used for the group base DN, the
            group name attribute, and the member attribute.
        ldap
            Directory search layer.
        logger
            Logger to use.

        Returns
        -------
        GroupMembershipResolver
            The newly-created resolver.
        """
        return cls(
            ldap=ldap,
            base_dn=config.group_base_dn,
            username_attr=ldap_config.username_attr,
            group_name_attr=config.group_name_attr,
            member_attr=config.member_attr,
            logger=logger,
        )

    async def resolve(self, entry: LDAPEntry) -> list[str]:
        """Resolve the group membership of a user.

        Parameters
        ----------
        entry
            The user's LDAP entry.

        Returns
        -------
        list of str
            Names of the user's groups, in the order returned by the LDAP
            server. This is empty if the entry has no username or the search
            was not successful. Groups without a name are skipped.

        Raises
        ------
        LDAPError
            Raised if the LDAP search could not be executed.
        """
        username = get_attribute(entry, self._username_attr)
        if not username:
            msg = "No username in LDAP entry, skipping group resolution"
            self._logger.warning(msg, username_attr=self._username_attr)
            return []

        search_filter = self._build_search_filter(username)
        logger = self._logger.bind(ldap_search=search_filter.template)
        result = await self._ldap.search(
            self._base_dn,
            search_filter,
            [self._group_name_attr],
            username=username,
        )
        if not result.success:
            logger.warning(
                "Group membership lookup failed",
                error=result.message,
                result_code=result.result_code.name,
                user=username,
            )
            return []

        groups = []
        for group_entry in result.entries:
            name = get_attribute(group_entry, self._group_name_attr)
            if name:
                groups.append(name)

        logger.debug("Resolved groups", groups=groups, user=username)
        return groups

    def _build_search_filter(self, username: str) -> SearchFilter:
        """Create the search filter for groups that the user belongs to."""
        template = f"({self._member_attr}={{user}})"
        self._logger.debug(
            "Built group search filter", ldap_search=template, user=username
        )
        return SearchFilter(template, {"user": username})
