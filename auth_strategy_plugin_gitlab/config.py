"""
Configuration management for the GitLab strategy.

Client options are assembled from three layers: hardcoded defaults,
environment variables and explicit overrides. Later layers win key by key.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Mapping, Optional
from urllib.parse import urlsplit

from .errors import ConfigurationError

# Defaults for gitlab.com; relative endpoint paths are resolved against `site`
DEFAULT_CLIENT_OPTIONS = {
    "site": "https://gitlab.com",
    "authorize_url": "/oauth/authorize",
    "token_url": "/oauth/token",
}

# Client option -> environment variable
CLIENT_OPTION_ENV = {
    "client_id": "GITLAB_CLIENT_ID",
    "client_secret": "GITLAB_CLIENT_SECRET",
    "site": "GITLAB_SITE",
    "authorize_url": "GITLAB_AUTHORIZE_URL",
    "token_url": "GITLAB_TOKEN_URL",
    "redirect_uri": "GITLAB_REDIRECT_URI",
    "timeout": "GITLAB_HTTP_TIMEOUT",
    "send_client_secret": "GITLAB_SEND_CLIENT_SECRET",
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def merge_options(*sources: Optional[Mapping]) -> dict:
    """
    Merge option mappings left to right.

    Keys from later sources replace keys from earlier ones. ``None`` sources
    are skipped.
    """
    merged = {}
    for source in sources:
        if source:
            merged.update(source)
    return merged


def env_client_options(environ: Optional[Mapping[str, str]] = None) -> dict:
    """Return the client options that are set in the environment."""
    environ = os.environ if environ is None else environ

    options = {}
    for option, variable in CLIENT_OPTION_ENV.items():
        value = environ.get(variable)
        if value is None or value == "":
            continue
        options[option] = value
    return options


@dataclass(frozen=True)
class ClientOptions:
    """Resolved OAuth2 client options for one GitLab instance."""

    client_id: str = ""
    client_secret: str = ""
    site: str = DEFAULT_CLIENT_OPTIONS["site"]
    authorize_url: str = DEFAULT_CLIENT_OPTIONS["authorize_url"]
    token_url: str = DEFAULT_CLIENT_OPTIONS["token_url"]
    redirect_uri: Optional[str] = None

    # Seconds; applies to both the token exchange and the profile fetch
    timeout: float = 10.0

    # GitLab historically expected the secret on authenticated API calls too.
    # This is not standard bearer-token usage.
    send_client_secret: bool = True

    @classmethod
    def from_mapping(cls, options: Mapping) -> "ClientOptions":
        """
        Build options from a merged mapping.

        Unknown keys raise ``ConfigurationError`` so that typos in overrides
        are not silently ignored.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"Unknown client option(s): {', '.join(unknown)}")

        values = dict(options)
        try:
            if "timeout" in values:
                values["timeout"] = float(values["timeout"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid timeout: {values['timeout']!r}") from e

        if isinstance(values.get("send_client_secret"), str):
            values["send_client_secret"] = _parse_bool(values["send_client_secret"])

        return cls(**values)

    def resolve(self, url: str) -> str:
        """
        Resolve an endpoint or API path against the configured site.

        Absolute URLs are returned unchanged. Relative paths keep any path
        prefix of the site (GitLab installed under a sub-path).
        """
        if urlsplit(url).scheme:
            return url
        return f"{self.site.rstrip('/')}/{url.lstrip('/')}"

    @property
    def authorize_endpoint(self) -> str:
        return self.resolve(self.authorize_url)

    @property
    def token_endpoint(self) -> str:
        return self.resolve(self.token_url)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class StrategyOptions:
    """Options of the authentication strategy itself."""

    default_scope: str = "read_user"

    # Profile attribute used as the stable user identifier
    uid_field: str = "username"

    user_endpoint: str = "/api/v3/user"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StrategyOptions":
        """Create strategy options from environment variables."""
        environ = os.environ if environ is None else environ
        return cls(
            default_scope=environ.get("GITLAB_DEFAULT_SCOPE") or "read_user",
            uid_field=environ.get("GITLAB_UID_FIELD") or "username",
            user_endpoint=environ.get("GITLAB_USER_ENDPOINT") or "/api/v3/user",
        )


@dataclass
class PluginConfig:
    """Overall plugin configuration."""

    provider_name: str = "gitlab"
    strategy: StrategyOptions = field(default_factory=StrategyOptions)

    # Client options taken from the environment; merged over the defaults
    client: dict = field(default_factory=dict)

    # Frontend redirect settings
    login_success_redirect: str = "/"
    login_error_redirect: str = "/login"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PluginConfig":
        """Create configuration from environment variables."""
        environ = os.environ if environ is None else environ
        return cls(
            provider_name=environ.get("GITLAB_PROVIDER_NAME") or "gitlab",
            strategy=StrategyOptions.from_env(environ),
            client=env_client_options(environ),
            login_success_redirect=environ.get("GITLAB_LOGIN_SUCCESS_REDIRECT") or "/",
            login_error_redirect=environ.get("GITLAB_LOGIN_ERROR_REDIRECT") or "/login",
        )

    def client_options(self, overrides: Optional[Mapping] = None) -> ClientOptions:
        """Resolve client options: defaults, then environment, then overrides."""
        return ClientOptions.from_mapping(
            merge_options(DEFAULT_CLIENT_OPTIONS, self.client, overrides)
        )
