"""
Typed structures for tokens, GitLab profiles and authentication results.
"""

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from .errors import AuthError

# Token document keys that get their own OAuthToken attribute
_TOKEN_FIELDS = ("access_token", "refresh_token", "expires_at", "expires_in", "token_type")


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


@dataclass(frozen=True)
class OAuthToken:
    """Access token returned by the GitLab token endpoint."""

    access_token: Optional[str]
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None
    other_params: dict = field(default_factory=dict)
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Mapping) -> "OAuthToken":
        """Build a token from a parsed token document."""
        token_type = _str_or_none(data.get("token_type")) or "Bearer"
        # GitLab answers "bearer"; the Authorization header wants "Bearer"
        if token_type.lower() == "bearer":
            token_type = "Bearer"

        return cls(
            access_token=_str_or_none(data.get("access_token")) or None,
            refresh_token=_str_or_none(data.get("refresh_token")),
            expires_at=_int_or_none(data.get("expires_at")),
            token_type=token_type,
            scope=_str_or_none(data.get("scope")),
            other_params={k: v for k, v in data.items() if k not in _TOKEN_FIELDS},
            raw=dict(data),
        )

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"


@dataclass(frozen=True)
class GitLabEmail:
    email: Optional[str]
    primary: bool = False


@dataclass(frozen=True)
class GitLabUser:
    """
    Profile returned by the GitLab "current user" endpoint.

    Every attribute is optional; ``raw`` keeps the document as received.
    """

    id: Optional[int] = None
    username: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    emails: List[GitLabEmail] = field(default_factory=list)
    login: Optional[str] = None
    location: Optional[str] = None
    avatar_url: Optional[str] = None
    web_url: Optional[str] = None
    website_url: Optional[str] = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Mapping) -> "GitLabUser":
        emails = []
        raw_emails = data.get("emails")
        for entry in raw_emails if isinstance(raw_emails, list) else []:
            if isinstance(entry, Mapping):
                emails.append(GitLabEmail(_str_or_none(entry.get("email")), bool(entry.get("primary"))))

        user_id = data.get("id")
        return cls(
            id=user_id if isinstance(user_id, int) else None,
            username=_str_or_none(data.get("username")),
            name=_str_or_none(data.get("name")),
            email=_str_or_none(data.get("email")),
            emails=emails,
            login=_str_or_none(data.get("login")),
            location=_str_or_none(data.get("location")),
            avatar_url=_str_or_none(data.get("avatar_url")),
            web_url=_str_or_none(data.get("web_url")),
            website_url=_str_or_none(data.get("website_url")),
            raw=dict(data),
        )

    @property
    def primary_email(self) -> Optional[str]:
        """Email of the first entry marked primary, if any."""
        for entry in self.emails:
            if entry.primary:
                return entry.email
        return None

    @property
    def resolved_email(self) -> Optional[str]:
        return self.email or self.primary_email


@dataclass
class Credentials:
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    token_type: Optional[str] = None
    expires: bool = False
    scopes: List[str] = field(default_factory=list)


@dataclass
class Info:
    name: Optional[str] = None
    email: Optional[str] = None
    nickname: Optional[str] = None
    location: Optional[str] = None
    urls: dict = field(default_factory=dict)


@dataclass
class Extra:
    raw_info: dict = field(default_factory=dict)


@dataclass
class Auth:
    """Successful authentication result handed to the host."""

    provider: str
    uid: Any
    credentials: Credentials
    info: Info
    extra: Extra


@dataclass
class AuthFailure:
    """Failed authentication handed to the host."""

    provider: str
    errors: List[AuthError] = field(default_factory=list)
