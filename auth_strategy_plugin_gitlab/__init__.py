"""
auth-strategy-plugin-gitlab

A GitLab OAuth2 authentication strategy for Flask applications, working
with gitlab.com and self-hosted GitLab instances.

This plugin provides:
- OAuth 2.0 Authorization Code flow against GitLab
- GitLab user profile lookup
- Mapping of the profile into uid, credentials, info and extra
- Structured (key, message) errors for failed logins
"""

__version__ = "0.1.0"

from .blueprint import gitlab_bp
from .models import Auth, AuthFailure, Credentials, Extra, Info
from .oauth import GitLabOAuth
from .plugin import GitLabAuthPlugin
from .strategy import AuthContext, GitLabStrategy

__all__ = [
    "Auth",
    "AuthContext",
    "AuthFailure",
    "Credentials",
    "Extra",
    "GitLabAuthPlugin",
    "GitLabOAuth",
    "GitLabStrategy",
    "Info",
    "gitlab_bp",
    "__version__",
]
