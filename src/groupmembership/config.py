"""Configuration for groupmembership.

The configuration is read from a YAML file, normally injected into the
environment by the deployment. Secrets, such as the LDAP bind password, are
injected via environment variables.

Every part of the configuration that accepts environment variables uses the
same ``GROUPMEMBERSHIP_`` prefix. Only the settings with explicit
``validation_alias`` settings support configuration via environment variable.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Self, override

import yaml
from pydantic import (
    AliasChoices,
    Field,
    SecretStr,
    UrlConstraints,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import Url
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, Profile, configure_logging

from .constants import (
    ATTRIBUTE_REGEX,
    DEFAULT_GROUP_NAME_ATTR,
    DEFAULT_MEMBER_ATTR,
    DEFAULT_USERNAME_ATTR,
    LDAP_TIMEOUT,
    LOGGER_NAME,
)

LdapDsn = Annotated[
    Url, UrlConstraints(allowed_schemes=["ldap", "ldaps"], host_required=True)
]
"""DSN for connecting to an LDAP server."""

AttributeName = Annotated[str, Field(pattern=ATTRIBUTE_REGEX)]
"""Name of an LDAP attribute."""

__all__ = [
    "AttributeName",
    "CamelCaseSettings",
    "Config",
    "EnvFirstSettings",
    "GroupMembershipConfig",
    "LDAPConfig",
    "LdapDsn",
]


class CamelCaseSettings(BaseSettings):
    """Base class for Pydantic settings supporting camel-case.

    This base class also forbids all extra attributes. It should be used as
    the base class (possibly indirectly) for all configuration models that
    support environment variable overrides.
    """

    model_config = SettingsConfigDict(
        alias_generator=to_camel, extra="forbid", populate_by_name=True
    )


class EnvFirstSettings(CamelCaseSettings):
    """Base class for Pydantic settings with environment overrides.

    Classes that inherit from this base class will prioritize environment
    variables over arguments to the class constructor.
    """

    @override
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Override the sources of settings.

        Deactivate :file:`.env` and secret file support. Allow environment
        variables to override init parameters, since init parameters come
        from the YAML configuration file and we want environment variables to
        take precedent.
        """
        return (env_settings, init_settings)


class LDAPConfig(EnvFirstSettings):
    """General settings for talking to the LDAP server.

    These settings are shared with whatever authenticates the user and
    fetches their entry, so they include the name of the attribute holding
    the username.
    """

    url: LdapDsn = Field(
        ...,
        title="LDAP server URL",
        description="URL of LDAP server to query for group membership",
    )

    user_dn: str | None = Field(
        None,
        title="Simple bind DN for LDAP queries",
        description=(
            "DN of user to bind as with simple bind when querying the LDAP"
            " server. If this is not set, an anonymous bind is done."
        ),
    )

    password: SecretStr | None = Field(
        None,
        title="Simple bind password",
        description=(
            "Password for simple bind authentication to the LDAP server."
            " Only used if ``user_dn`` is set."
        ),
        validation_alias="GROUPMEMBERSHIP_LDAP_PASSWORD",
    )

    timeout: float = Field(
        LDAP_TIMEOUT,
        title="LDAP search timeout",
        description="Timeout in seconds for a single LDAP search",
        gt=0,
    )

    user_base_dn: str | None = Field(
        None,
        title="Base DN for user lookups",
        description=(
            "Base DN used to search for the user entry by username. Only"
            " needed when looking up users by name, such as from the"
            " command-line interface."
        ),
        min_length=1,
    )

    username_attr: AttributeName = Field(
        DEFAULT_USERNAME_ATTR,
        title="Username attribute",
        description=(
            "Attribute of the user entry holding the username. The default"
            " is ``uid``, which is the LDAP convention for the attribute"
            " holding the username."
        ),
    )

    @model_validator(mode="after")
    def _validate_password(self) -> Self:
        """Ensure a password is set if a bind DN is set."""
        if self.user_dn and not self.password:
            raise ValueError("password required if userDn is set")
        return self


class GroupMembershipConfig(CamelCaseSettings):
    """Settings specific to group membership lookups."""

    group_base_dn: str = Field(
        ...,
        title="Base DN for group lookups",
        description=(
            "Base DN to use when executing an LDAP search for user groups,"
            " such as ``ou=groups,dc=example,dc=org``"
        ),
        min_length=1,
    )

    group_name_attr: AttributeName = Field(
        DEFAULT_GROUP_NAME_ATTR,
        title="Group name attribute",
        description="Attribute of the group entry holding the group name",
    )

    member_attr: AttributeName = Field(
        DEFAULT_MEMBER_ATTR,
        title="Group member attribute",
        description=(
            "Attribute of the group entry that lists the usernames of its"
            " members. Usually ``memberUid`` as specified in :rfc:`2307`."
        ),
    )


class Config(EnvFirstSettings):
    """Configuration for groupmembership."""

    log_level: LogLevel = Field(
        LogLevel.INFO,
        title="Logging level",
        description="Python logging level",
        validation_alias=AliasChoices("GROUPMEMBERSHIP_LOG_LEVEL", "logLevel"),
    )

    log_profile: Profile = Field(
        Profile.production,
        title="Logging profile",
        description=(
            "Logging profile: ``production`` for JSON logs, ``development``"
            " for human-readable logs"
        ),
        validation_alias=AliasChoices(
            "GROUPMEMBERSHIP_LOG_PROFILE", "logProfile"
        ),
    )

    ldap: LDAPConfig = Field(
        ...,
        title="LDAP configuration",
        description="Settings for connecting to the LDAP server",
    )

    group_membership: GroupMembershipConfig = Field(
        ...,
        title="Group membership configuration",
        description="Settings for the group membership search",
    )

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Construct a Config object from a configuration file.

        Parameters
        ----------
        path
            Path to the configuration file in YAML.

        Returns
        -------
        Config
            The corresponding `Config` object.
        """
        with path.open("r") as f:
            return cls.model_validate(yaml.safe_load(f))

    def configure_logging(self) -> None:
        """Configure logging based on the configuration."""
        configure_logging(
            name=LOGGER_NAME,
            profile=self.log_profile,
            log_level=self.log_level,
        )
