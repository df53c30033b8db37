"""
Unit tests for host, token and load-profile resolution.
"""

import pytest

from loadtest.config import (
    HOSTS,
    LOAD_PROFILES,
    ApiPaths,
    ConfigurationError,
    UnknownRoleError,
    get_profile,
    get_settings,
    load_settings,
    resolve_host,
    resolve_profile,
)

pytestmark = pytest.mark.unit


def test_resolve_host_known_names():
    assert resolve_host("PROD") == "https://api.example.com"
    assert resolve_host("LOCAL") == "http://localhost:3000"


def test_resolve_host_defaults_to_dev():
    assert resolve_host(None) == HOSTS["DEV"]
    assert resolve_host("") == HOSTS["DEV"]


def test_resolve_host_unknown_name_is_literal_url():
    assert resolve_host("http://10.0.0.5:8080/") == "http://10.0.0.5:8080"


def test_hosts_table_is_read_only():
    with pytest.raises(TypeError):
        HOSTS["PROD"] = "http://evil.example.com"  # type: ignore[index]


def test_resolve_profile_is_case_insensitive():
    assert resolve_profile("medium") is LOAD_PROFILES["MEDIUM"]


def test_resolve_profile_unknown_falls_back_to_light_with_warning(caplog):
    # Act
    profile = resolve_profile("EXTREME")

    # Assert
    assert profile is LOAD_PROFILES["LIGHT"]
    assert "Unknown load profile 'EXTREME'" in caplog.text


@pytest.mark.parametrize(
    ("name", "users", "seconds"),
    [("SMOKE", 1, 30), ("LIGHT", 10, 60), ("MEDIUM", 30, 300), ("HEAVY", 100, 600)],
)
def test_profile_table(name, users, seconds):
    profile = LOAD_PROFILES[name]

    assert profile.virtual_users == users
    assert profile.duration_seconds == seconds


def test_scaled_profile_rounds_up_and_keeps_at_least_one_user():
    assert LOAD_PROFILES["LIGHT"].scaled(0.3).virtual_users == 3
    assert LOAD_PROFILES["MEDIUM"].scaled(0.5).virtual_users == 15
    assert LOAD_PROFILES["SMOKE"].scaled(0.3).virtual_users == 1
    assert LOAD_PROFILES["HEAVY"].scaled(0.5).duration == "10m"


def test_settings_read_environment():
    # Act
    settings = get_settings()

    # Assert
    assert settings.host == "http://localhost:3000"
    assert settings.profile_name == "LIGHT"
    assert settings.token_for("USER") == "user-token"
    assert settings.token_for("ADMIN") == "admin-token"
    assert settings.token_for("SUPER_USER") == "your-super-user-token-here"


def test_settings_are_cached_until_cleared(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("PROFILE", "HEAVY")

    assert get_settings() is first

    get_settings.cache_clear()
    assert get_settings().profile is LOAD_PROFILES["HEAVY"]


def test_load_settings_from_explicit_mapping():
    settings = load_settings({"HOST": "STAGING", "PROFILE": "smoke"})

    assert settings.host == "https://api-staging.example.com"
    assert settings.profile is LOAD_PROFILES["SMOKE"]
    assert settings.token_for("USER") == "your-user-token-here"


def test_unknown_role_raises_configuration_error():
    settings = get_settings()

    with pytest.raises(UnknownRoleError) as excinfo:
        settings.token_for("GUEST")

    assert excinfo.value.role == "GUEST"
    assert isinstance(excinfo.value, ConfigurationError)
    assert isinstance(excinfo.value, KeyError)
    assert "GUEST" in str(excinfo.value)


def test_get_profile_uses_settings_when_name_is_none():
    assert get_profile() is LOAD_PROFILES["LIGHT"]
    assert get_profile("SMOKE") is LOAD_PROFILES["SMOKE"]


def test_api_paths():
    assert ApiPaths.product(42) == "/products/42"
    assert ApiPaths.user("abc") == "/users/abc"
