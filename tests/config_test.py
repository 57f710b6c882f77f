"""Tests for the idportal configuration."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest
import yaml
from pydantic import ValidationError

from idportal.config import Config

from .support.config import config_path


def load(filename: str) -> dict[str, Any]:
    with config_path(filename).open("r") as f:
        return yaml.safe_load(f)


def test_minimal(environment: None) -> None:
    config = Config.from_file(config_path("minimal"))

    assert config.admin_groups == []
    assert config.cookie_secure
    assert config.session_lifetime == timedelta(hours=8)
    assert config.ldap.bind_dn is None
    assert config.ldap.password is None
    assert config.ldap.username_attr == "sAMAccountName"
    assert config.ldap.alternate_username_attr == "userPrincipalName"
    assert config.ldap.password_attr == "unicodePwd"
    assert config.ldap.verify_certificate
    assert config.photo.max_upload_size > 0
    assert config.ldap.endpoint.url.startswith("ldap://ldap.example.com")


def test_base(config: Config) -> None:
    assert config.ldap.bind_format == "{username}@example.com"
    assert config.ldap.password
    assert config.ldap.password.get_secret_value() == "service-password"
    assert config.password_min_length == 8
    assert config.photo.max_upload_size == 1048576


def test_invalid_ldap(environment: None) -> None:
    data = load("base")
    data["ldap"]["bindFormat"] = "{user}@example.com"
    with pytest.raises(ValidationError):
        Config.model_validate(data)

    data = load("base")
    data["ldap"]["bindFormat"] = "example.com"
    with pytest.raises(ValidationError):
        Config.model_validate(data)

    data = load("base")
    del data["ldap"]["password"]
    with pytest.raises(ValidationError):
        Config.model_validate(data)

    data = load("base")
    data["ldap"]["url"] = "https://ldap.example.com"
    with pytest.raises(ValidationError):
        Config.model_validate(data)


def test_invalid_session_secret(
    environment: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("IDPORTAL_SESSION_SECRET", "not-a-fernet-key")
    with pytest.raises(ValidationError):
        Config.from_file(config_path("base"))


def test_invalid_limits(environment: None) -> None:
    data = load("base")
    data["passwordMinLength"] = 300
    data["passwordMaxLength"] = 256
    with pytest.raises(ValidationError):
        Config.model_validate(data)

    data = load("base")
    data["sessionLifetime"] = "1m"
    with pytest.raises(ValidationError):
        Config.model_validate(data)

    data = load("base")
    data["unknownSetting"] = True
    with pytest.raises(ValidationError):
        Config.model_validate(data)


def test_cookie_parameters(config: Config) -> None:
    assert config.cookie_parameters == {
        "secure": True,
        "httponly": True,
        "samesite": "lax",
    }

    config = config.model_copy(
        update={"cookie_domain": "example.com", "cookie_secure": False}
    )
    assert config.cookie_parameters == {
        "secure": False,
        "httponly": True,
        "samesite": "lax",
        "domain": "example.com",
    }


def test_is_admin(config: Config) -> None:
    assert config.is_admin(["Staff", "portal admins"])
    assert not config.is_admin(["Staff"])
    assert not config.is_admin([])
