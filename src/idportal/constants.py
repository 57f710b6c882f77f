"""Constants for idportal."""

from datetime import timedelta

__all__ = [
    "ACCOUNT_DISABLED_FLAG",
    "CONFIG_PATH",
    "COOKIE_NAME",
    "DN_ONLY_ATTRIBUTES",
    "EMAIL_REGEX",
    "LDAP_CONNECT_TIMEOUT",
    "LDAP_EXISTENCE_TIMEOUT",
    "LDAP_TIMEOUT",
    "MAX_ORIGINAL_PHOTO_SIZE",
    "MAX_PHOTO_PIXELS",
    "MAX_THUMBNAIL_SIZE",
    "MAX_UPLOAD_SIZE",
    "PASSWORD_MAX_LENGTH",
    "PASSWORD_MIN_LENGTH",
    "PHOTO_CONTENT_TYPES",
    "SESSION_LIFETIME",
    "THUMBNAIL_DIMENSION",
]

CONFIG_PATH = "/etc/idportal/idportal.yaml"
"""Default configuration path."""

COOKIE_NAME = "idportal"
"""Name of the encrypted session cookie."""

SESSION_LIFETIME = timedelta(hours=8)
"""Default lifetime of a login session."""

ACCOUNT_DISABLED_FLAG = 0x0002
"""Bit in ``userAccountControl`` set when an Active Directory account is
disabled (``ACCOUNTDISABLE``)."""

DN_ONLY_ATTRIBUTES = ["1.1"]
"""Attribute list requesting no attributes, so that searches return only the
DN of each entry (:rfc:`4511` section 4.5.1.8)."""

LDAP_CONNECT_TIMEOUT = 5.0
"""Timeout (in seconds) for establishing a connection to the LDAP server."""

LDAP_TIMEOUT = 10.0
"""Timeout (in seconds) for individual LDAP operations."""

LDAP_EXISTENCE_TIMEOUT = 5.0
"""Timeout (in seconds) for the search done by user existence checks."""

# The following constants are defaults for profile photo handling. The limits
# on the thumbnail come from the Active Directory schema for thumbnailPhoto.

MAX_UPLOAD_SIZE = 5 * 1024 * 1024
"""Maximum size of an uploaded profile photo."""

MAX_THUMBNAIL_SIZE = 100 * 1024
"""Maximum size of the encoded ``thumbnailPhoto`` value."""

MAX_ORIGINAL_PHOTO_SIZE = 1024 * 1024
"""Size above which the full-size photo is recompressed before storing."""

MAX_PHOTO_PIXELS = 50_000_000
"""Maximum width times height of an uploaded photo, checked before decoding."""

THUMBNAIL_DIMENSION = 96
"""Width and height of the thumbnail in pixels."""

PHOTO_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png"})
"""Content types accepted for photo uploads."""

# The following constants are used for field validation.

PASSWORD_MIN_LENGTH = 8
"""Default minimum length of a new password."""

PASSWORD_MAX_LENGTH = 256
"""Default maximum length of a new password."""

EMAIL_REGEX = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
"""Regex matching a plausible email address."""
