"""
Errors raised while authenticating against GitLab.

Callback failures carry a ``key``/``message`` pair, which is what the host
application receives in ``AuthFailure.errors``.
"""

from typing import NamedTuple, Optional


class AuthError(NamedTuple):
    """A single failure entry reported to the host."""

    key: str
    message: Optional[str]


class ConfigurationError(Exception):
    """Plugin configuration is invalid. Aborts the request."""


class AuthNotCompleteError(RuntimeError):
    """Field extraction was attempted before a successful callback."""


# Signals raised by the OAuth2 client layer


class TokenExchangeError(Exception):
    """The token endpoint rejected the authorization code."""

    def __init__(self, error: str, description: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(f"{error}: {description}" if description else error)
        self.error = error
        self.description = description
        self.status_code = status_code


class APIRequestError(Exception):
    """A request to GitLab failed before any response was received."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# Callback failures


class CallbackError(Exception):
    """Base class for failures recorded during the callback phase."""

    key = "OAuth2"

    def __init__(self, message: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        if key is not None:
            self.key = key
        self.message = message

    def to_error(self) -> AuthError:
        return AuthError(self.key, self.message)


class MissingCodeError(CallbackError):
    key = "missing_code"

    def __init__(self):
        super().__init__("No code received")


class ProviderError(CallbackError):
    """GitLab answered the token request without an access token."""

    def __init__(self, error: Optional[str], description: Optional[str]):
        super().__init__(description, key=error)
        self.error = error
        self.description = description


class UnauthorizedError(CallbackError):
    key = "token"

    def __init__(self, body: str):
        super().__init__(f"unauthorized: {body}")
        self.body = body


class TransportError(CallbackError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ProviderCommunicationError(CallbackError):
    def __init__(self, message: str = "An error occurred"):
        super().__init__(message)
