"""Configuration for idportal.

idportal is configured by a YAML file whose keys use camel case. Secrets and
the settings that vary by deployment can also be set with environment
variables, which take precedence over the configuration file. Only the
settings with explicit ``validation_alias`` settings support configuration via
environment variable.
"""

from __future__ import annotations

from datetime import timedelta
from ipaddress import IPv4Network, IPv6Network
from pathlib import Path
from typing import Annotated, Any, NotRequired, Self, TypedDict, override

import yaml
from cryptography.fernet import Fernet
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    UrlConstraints,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import Url
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, configure_logging
from safir.pydantic import HumanTimedelta

from .constants import (
    LDAP_CONNECT_TIMEOUT,
    LDAP_EXISTENCE_TIMEOUT,
    LDAP_TIMEOUT,
    MAX_ORIGINAL_PHOTO_SIZE,
    MAX_PHOTO_PIXELS,
    MAX_THUMBNAIL_SIZE,
    MAX_UPLOAD_SIZE,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    SESSION_LIFETIME,
    THUMBNAIL_DIMENSION,
)
from .models.directory import DirectoryEndpoint

LdapDsn = Annotated[
    Url, UrlConstraints(allowed_schemes=["ldap", "ldaps"], host_required=True)
]
"""DSN for connecting to an LDAP server."""

__all__ = [
    "CamelCaseSettings",
    "Config",
    "CookieParameters",
    "EnvFirstSettings",
    "LDAPConfig",
    "LdapDsn",
    "PhotoConfig",
]


class CamelCaseSettings(BaseSettings):
    """Base class for Pydantic settings supporting camel-case.

    This base class also forbids all extra attributes. It should be used as
    the base class (possibly indirectly) for all idportal configuration models
    that support environment variable overrides.
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
        variables to override init parameters, since init parameters come from
        the YAML configuration file and we want environment variables to take
        precedent.
        """
        return (env_settings, init_settings)


class LDAPConfig(EnvFirstSettings):
    """Configuration for the Active Directory (LDAP) server.

    The defaults match Active Directory. Other LDAP servers can be used for
    authentication and existence checks by changing the attribute names, but
    password changes rely on the Active Directory ``unicodePwd`` semantics.
    """

    url: LdapDsn = Field(
        ...,
        title="LDAP server URL",
        description="URL of the LDAP server, using ``ldap`` or ``ldaps``",
        validation_alias=AliasChoices("IDPORTAL_LDAP_URL", "url"),
    )

    verify_certificate: bool = Field(
        True,
        title="Verify TLS certificate",
        description=(
            "Whether to verify the TLS certificate of the LDAP server. Only"
            " disable this for testing against servers with self-signed"
            " certificates."
        ),
    )

    connect_timeout: float = Field(
        LDAP_CONNECT_TIMEOUT,
        title="Connect timeout",
        description="Timeout in seconds for connecting and binding",
        gt=0,
    )

    timeout: float = Field(
        LDAP_TIMEOUT,
        title="Operation timeout",
        description="Timeout in seconds for each search or modify",
        gt=0,
    )

    existence_timeout: float = Field(
        LDAP_EXISTENCE_TIMEOUT,
        title="Existence check timeout",
        description="Timeout in seconds for user existence searches",
        gt=0,
    )

    bind_dn: str | None = Field(
        None,
        title="Service account DN",
        description=(
            "DN of the service account used for user lookups, password"
            " changes, and photo updates. If not set, only logins work."
        ),
        validation_alias=AliasChoices("IDPORTAL_LDAP_BIND_DN", "bindDn"),
    )

    password: SecretStr | None = Field(
        None,
        title="Service account password",
        description="Password of the service account",
        validation_alias=AliasChoices("IDPORTAL_LDAP_PASSWORD", "password"),
    )

    user_base_dn: str = Field(
        ...,
        title="Base DN for user searches",
        description="Base of the subtree searched for user entries",
        examples=["CN=Users,DC=example,DC=com"],
    )

    user_object_class: str = Field(
        "user",
        title="User object class",
        description="Object class that all searched user entries must have",
    )

    username_attr: str = Field(
        "sAMAccountName",
        title="Username attribute",
        description="Attribute holding the username of a user",
    )

    alternate_username_attr: str | None = Field(
        "userPrincipalName",
        title="Alternate login attribute",
        description=(
            "Additional attribute matched against the name typed at login,"
            " so that users may log in with their principal name"
        ),
    )

    bind_format: str | None = Field(
        None,
        title="Bind identity format",
        description=(
            "Python format string turning a bare username into the identity"
            " used to bind at login, such as ``{username}@example.com`` or"
            " ``EXAMPLE\\{username}``. Names that already contain ``@``,"
            " ``\\``, or ``=`` are used unchanged. If not set, the bare"
            " username is used."
        ),
        examples=["{username}@example.com"],
    )

    name_attr: str = Field(
        "displayName", title="Display name attribute"
    )

    email_attr: str = Field("mail", title="Email attribute")

    group_attr: str = Field(
        "memberOf",
        title="Group membership attribute",
        description="Multi-valued attribute holding the DNs of user groups",
    )

    account_control_attr: str = Field(
        "userAccountControl",
        title="Account control attribute",
        description="Bitmask attribute whose 0x0002 bit marks disabled users",
    )

    lockout_attr: str = Field(
        "lockoutTime",
        title="Lockout attribute",
        description="Attribute that is non-zero while the user is locked out",
    )

    password_attr: str = Field(
        "unicodePwd", title="Password attribute"
    )

    thumbnail_attr: str = Field(
        "thumbnailPhoto",
        title="Thumbnail photo attribute",
        description="Attribute holding the small profile photo",
    )

    photo_attr: str | None = Field(
        "jpegPhoto",
        title="Full-size photo attribute",
        description=(
            "Attribute holding the full-size profile photo, or `None` to"
            " only store the thumbnail"
        ),
    )

    @field_validator("bind_format")
    @classmethod
    def _validate_bind_format(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            v.format(username="test")
        except (IndexError, KeyError, ValueError) as e:
            raise ValueError(f"invalid bindFormat: {e!s}") from e
        if "{username}" not in v:
            raise ValueError("bindFormat must contain {username}")
        return v

    @model_validator(mode="after")
    def _validate_password(self) -> Self:
        """Ensure the password is set if the bind DN is set."""
        if self.bind_dn and not self.password:
            raise ValueError("password required if bindDn is set")
        return self

    @property
    def endpoint(self) -> DirectoryEndpoint:
        """Connection target for directory sessions."""
        return DirectoryEndpoint(
            url=str(self.url),
            verify_certificate=self.verify_certificate,
            connect_timeout=self.connect_timeout,
            timeout=self.timeout,
        )

    @property
    def identity_attributes(self) -> list[str]:
        """Attributes to request when building a user identity."""
        return [
            self.username_attr,
            self.name_attr,
            self.email_attr,
            self.group_attr,
            self.account_control_attr,
            self.lockout_attr,
            self.thumbnail_attr,
        ]


class PhotoConfig(BaseModel):
    """Configuration for profile photo uploads."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="forbid", populate_by_name=True
    )

    max_upload_size: int = Field(
        MAX_UPLOAD_SIZE,
        title="Maximum upload size",
        description="Maximum size in bytes of an uploaded photo",
        gt=0,
    )

    max_pixels: int = Field(
        MAX_PHOTO_PIXELS,
        title="Maximum photo pixels",
        description=(
            "Maximum width times height of an uploaded photo. Larger images"
            " are rejected before they are decoded."
        ),
        gt=0,
    )

    thumbnail_size: int = Field(
        THUMBNAIL_DIMENSION,
        title="Thumbnail dimension",
        description="Width and height in pixels of the thumbnail",
        gt=0,
    )

    max_thumbnail_bytes: int = Field(
        MAX_THUMBNAIL_SIZE,
        title="Maximum thumbnail size",
        description="Maximum size in bytes of the encoded thumbnail",
        gt=0,
    )

    thumbnail_quality: int = Field(85, title="Thumbnail quality", ge=1, le=95)

    fallback_quality: int = Field(
        60,
        title="Fallback thumbnail quality",
        description="JPEG quality tried if the thumbnail is too large",
        ge=1,
        le=95,
    )

    max_original_bytes: int = Field(
        MAX_ORIGINAL_PHOTO_SIZE,
        title="Maximum full-size photo size",
        description="Full-size photos larger than this are recompressed",
        gt=0,
    )

    original_quality: int = Field(
        80, title="Full-size photo quality", ge=1, le=95
    )


class CookieParameters(TypedDict):
    """Parameters for setting the session cookie."""

    domain: NotRequired[str]
    httponly: bool
    secure: bool
    samesite: NotRequired[str]


class Config(EnvFirstSettings):
    """Configuration for idportal."""

    admin_groups: list[str] = Field(
        [],
        title="Administrator groups",
        description=(
            "Short names of groups whose members are shown as"
            " administrators"
        ),
    )

    cookie_domain: str | None = Field(
        None,
        title="Cookie domain",
        description="Domain for the session cookie, if not the host only",
    )

    cookie_secure: bool = Field(
        True,
        title="Secure cookie",
        description="Whether to restrict the session cookie to HTTPS",
    )

    database_url: str = Field(
        ...,
        title="Database URL",
        description=(
            "SQLAlchemy URL for the profile database, using an async driver"
            " such as ``postgresql+asyncpg``"
        ),
        validation_alias=AliasChoices(
            "IDPORTAL_DATABASE_URL", "databaseUrl"
        ),
    )

    log_level: LogLevel = Field(
        LogLevel.INFO,
        title="Logging level",
        description="Python logging level",
        validation_alias=AliasChoices("IDPORTAL_LOG_LEVEL", "logLevel"),
    )

    password_min_length: int = Field(
        PASSWORD_MIN_LENGTH,
        title="Minimum password length",
        description=(
            "New passwords shorter than this are rejected before reaching"
            " the directory, which may enforce its own stricter policy"
        ),
        ge=1,
    )

    password_max_length: int = Field(
        PASSWORD_MAX_LENGTH, title="Maximum password length", ge=1
    )

    proxies: list[IPv4Network | IPv6Network] | None = Field(
        None,
        title="Trusted incoming proxy netblocks",
        description=(
            "If this is set to a non-empty list, it will be used as the"
            " trusted list of proxies when parsing the ``X-Forwarded-For``"
            " HTTP header in incoming requests, which allows logging of"
            " accurate client IP addresses."
        ),
    )

    session_lifetime: HumanTimedelta = Field(
        SESSION_LIFETIME,
        title="Session lifetime",
        description="How long a login session remains valid",
    )

    session_secret: SecretStr = Field(
        ...,
        title="Session encryption key",
        description="Fernet encryption key used for the session cookie",
        validation_alias=AliasChoices(
            "IDPORTAL_SESSION_SECRET", "sessionSecret"
        ),
    )

    ldap: LDAPConfig = Field(
        ..., title="LDAP configuration", description="Directory server"
    )

    photo: PhotoConfig = Field(
        default_factory=PhotoConfig,
        title="Photo configuration",
        description="Limits for profile photo uploads",
    )

    @field_validator("session_secret")
    @classmethod
    def _validate_session_secret(cls, v: SecretStr) -> SecretStr:
        try:
            Fernet(v.get_secret_value().encode())
        except ValueError as e:
            raise ValueError(f"invalid session secret: {e!s}") from e
        return v

    @field_validator("session_lifetime")
    @classmethod
    def _validate_session_lifetime(cls, v: timedelta) -> timedelta:
        if v < timedelta(minutes=5):
            raise ValueError("must be at least five minutes")
        return v

    @model_validator(mode="after")
    def _validate_password_lengths(self) -> Self:
        if self.password_min_length > self.password_max_length:
            msg = "passwordMinLength must not exceed passwordMaxLength"
            raise ValueError(msg)
        return self

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
            data: dict[str, Any] = yaml.safe_load(f) or {}
        return cls.model_validate(data)

    @property
    def cookie_parameters(self) -> CookieParameters:
        """Parameters to pass to `fastapi.Response.set_cookie`."""
        parameters = CookieParameters(
            secure=self.cookie_secure, httponly=True, samesite="lax"
        )
        if self.cookie_domain:
            parameters["domain"] = self.cookie_domain
        return parameters

    def configure_logging(self) -> None:
        """Configure logging based on the idportal configuration."""
        configure_logging(name="idportal", log_level=self.log_level)

    def is_admin(self, group_names: list[str]) -> bool:
        """Whether membership in the given groups makes a user an admin.

        Parameters
        ----------
        group_names
            Short names of the groups of the user.

        Returns
        -------
        bool
            `True` if any of the groups is one of ``admin_groups``, compared
            case-insensitively.
        """
        admin = {g.lower() for g in self.admin_groups}
        return any(g.lower() in admin for g in group_names)
