"""
Environment configuration module.

Resolves the target host, the bearer tokens for each user role and the
load profile for a run.  Values are loaded from environment variables
(``HOST``, ``PROFILE``, ``TOKEN_USER``, ``TOKEN_ADMIN``,
``TOKEN_SUPER_USER``) with sensible defaults, once per process, and are
exposed as read-only structures.

Load profiles:

=======  ===  ========  ==========================================
Profile  VUs  Duration  Use case
=======  ===  ========  ==========================================
SMOKE    1    30s       Quick sanity check
LIGHT    10   60s       Daily CI/CD, quick validation
MEDIUM   30   5m        Weekly regression, pre-release
HEAVY    100  10m       Monthly stress testing, capacity planning
=======  ===  ========  ==========================================
"""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType

from locust.util.timespan import parse_timespan

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Hosts
# -----------------------------------------------------------------------------

HOSTS: Mapping[str, str] = MappingProxyType(
    {
        "PROD": "https://api.example.com",
        "DEV": "https://api-dev.example.com",
        "STAGING": "https://api-staging.example.com",
        "LOCAL": "http://localhost:3000",
    }
)

DEFAULT_HOST_NAME = "DEV"


def resolve_host(name: str | None = None) -> str:
    """
    Return the base URL for a named environment.

    Unknown names are treated as a literal URL override so that ad hoc
    targets (``HOST=http://10.0.0.5:8080``) work without editing
    :data:`HOSTS`.

    Args:
        name: Environment name (``DEV``, ``STAGING``, ``PROD``,
            ``LOCAL``) or a full base URL.  ``None`` or an empty string
            selects :data:`DEFAULT_HOST_NAME`.

    Returns:
        The base URL without a trailing slash.
    """
    if not name:
        return HOSTS[DEFAULT_HOST_NAME]
    return HOSTS.get(name, name).rstrip("/")


# -----------------------------------------------------------------------------
# Authentication tokens
# -----------------------------------------------------------------------------

ROLE_TOKEN_ENV_VARS: Mapping[str, str] = MappingProxyType(
    {
        "USER": "TOKEN_USER",
        "ADMIN": "TOKEN_ADMIN",
        "SUPER_USER": "TOKEN_SUPER_USER",
    }
)

# Placeholders only; real tokens come from the environment.
DEFAULT_TOKENS: Mapping[str, str] = MappingProxyType(
    {
        "USER": "your-user-token-here",
        "ADMIN": "your-admin-token-here",
        "SUPER_USER": "your-super-user-token-here",
    }
)


class ConfigurationError(Exception):
    """Raised when the run configuration cannot be resolved."""


class UnknownRoleError(ConfigurationError, KeyError):
    """Raised when a token is requested for a role that is not configured."""

    def __init__(self, role: str) -> None:
        super().__init__(role)
        self.role = role

    def __str__(self) -> str:
        known = ", ".join(sorted(ROLE_TOKEN_ENV_VARS))
        return f"Unknown role {self.role!r}; configured roles: {known}"


def resolve_tokens(environ: Mapping[str, str] | None = None) -> Mapping[str, str]:
    """Build the read-only role → token mapping from *environ*."""
    environ = os.environ if environ is None else environ
    return MappingProxyType(
        {
            role: environ.get(env_var) or DEFAULT_TOKENS[role]
            for role, env_var in ROLE_TOKEN_ENV_VARS.items()
        }
    )


# -----------------------------------------------------------------------------
# Load profiles
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class LoadProfile:
    """A fixed virtual-user count held for a fixed duration."""

    virtual_users: int
    duration: str
    description: str = ""

    @property
    def duration_seconds(self) -> int:
        """The duration string (``30s``, ``5m``) converted to seconds."""
        return parse_timespan(self.duration)

    def scaled(self, fraction: float) -> LoadProfile:
        """
        Return a copy running ``ceil(virtual_users * fraction)`` users.

        Write-heavy tests run a fraction of the base profile; the result
        never drops below one user.
        """
        # round() first so 10 * 0.3 is 3, not 4.
        users = max(1, math.ceil(round(self.virtual_users * fraction, 6)))
        return LoadProfile(users, self.duration, self.description)


LOAD_PROFILES: Mapping[str, LoadProfile] = MappingProxyType(
    {
        "SMOKE": LoadProfile(1, "30s", "Quick sanity check"),
        "LIGHT": LoadProfile(10, "60s", "Daily CI/CD, quick validation"),
        "MEDIUM": LoadProfile(30, "5m", "Weekly regression, pre-release"),
        "HEAVY": LoadProfile(100, "10m", "Monthly stress testing, capacity planning"),
    }
)

DEFAULT_PROFILE_NAME = "LIGHT"


def resolve_profile(name: str | None = None) -> LoadProfile:
    """
    Return the load profile registered under *name*.

    Args:
        name: Profile name.  ``None`` or an empty string selects
            :data:`DEFAULT_PROFILE_NAME`; unknown names fall back to it
            with a warning.

    Returns:
        The matching :class:`LoadProfile`.
    """
    if not name:
        return LOAD_PROFILES[DEFAULT_PROFILE_NAME]

    profile = LOAD_PROFILES.get(name.upper())
    if profile is None:
        logger.warning(
            "Unknown load profile %r, falling back to %s", name, DEFAULT_PROFILE_NAME
        )
        return LOAD_PROFILES[DEFAULT_PROFILE_NAME]
    return profile


# -----------------------------------------------------------------------------
# API paths
# -----------------------------------------------------------------------------

class ApiPaths:
    """Centralised endpoint paths for the target API."""

    AUTH_LOGIN = "/auth/login"
    AUTH_LOGOUT = "/auth/logout"
    AUTH_REFRESH = "/auth/refresh"

    USERS = "/users"
    PRODUCTS = "/products"
    PRODUCTS_SEARCH = "/products/search"
    PRODUCTS_BULK = "/products/bulk"

    @staticmethod
    def user(user_id: object) -> str:
        return f"/users/{user_id}"

    @staticmethod
    def product(product_id: object) -> str:
        return f"/products/{product_id}"


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Settings:
    """
    Process-wide run configuration.

    Attributes:
        host_name: The requested environment name (or literal URL).
        host: The resolved base URL.
        profile_name: The requested profile name.
        profile: The resolved :class:`LoadProfile`.
        tokens: Read-only role → bearer token mapping.
    """

    host_name: str
    host: str
    profile_name: str
    profile: LoadProfile
    tokens: Mapping[str, str] = field(repr=False)

    def token_for(self, role: str) -> str:
        """
        Return the bearer token configured for *role*.

        Raises:
            UnknownRoleError: If *role* is not one of the configured roles.
        """
        try:
            return self.tokens[role]
        except KeyError:
            raise UnknownRoleError(role) from None


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """
    Build :class:`Settings` from environment variables.

    Args:
        environ: Mapping to read from.  Defaults to ``os.environ``.

    Returns:
        A frozen settings object.
    """
    environ = os.environ if environ is None else environ
    host_name = environ.get("HOST") or DEFAULT_HOST_NAME
    profile_name = (environ.get("PROFILE") or DEFAULT_PROFILE_NAME).upper()
    return Settings(
        host_name=host_name,
        host=resolve_host(host_name),
        profile_name=profile_name,
        profile=resolve_profile(profile_name),
        tokens=resolve_tokens(environ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the settings for this process, loading them on first use."""
    return load_settings()


def get_profile(name: str | None = None) -> LoadProfile:
    """
    Get the load profile for the run.

    Args:
        name: Profile name.  If None, uses the PROFILE environment
            variable via :func:`get_settings`.

    Returns:
        The selected load profile.
    """
    if name is None:
        return get_settings().profile
    return resolve_profile(name)
