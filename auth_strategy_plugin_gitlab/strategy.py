"""
GitLab authentication strategy.

The strategy runs in three phases:

- request: redirect the user to GitLab's authorization page
- callback: exchange the returned code and fetch the GitLab profile
- cleanup: drop the token and profile from the context

Each phase takes an ``AuthContext`` and returns a new one. After a
successful callback, ``uid``, ``credentials``, ``info`` and ``extra`` read
the identity out of the context.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional

from .config import StrategyOptions
from .errors import (
    APIRequestError,
    AuthNotCompleteError,
    CallbackError,
    MissingCodeError,
    ProviderCommunicationError,
    ProviderError,
    TokenExchangeError,
    TransportError,
    UnauthorizedError,
)
from .models import Auth, AuthFailure, Credentials, Extra, GitLabUser, Info, OAuthToken
from .oauth import GitLabOAuth, OAuth2Backend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """State of one authentication attempt."""

    params: dict = field(default_factory=dict)
    callback_url: str = ""

    # Set by the request phase
    redirect_to: Optional[str] = None

    # Set by the callback phase
    token: Optional[OAuthToken] = None
    user: Optional[GitLabUser] = None
    failures: List[CallbackError] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    @property
    def succeeded(self) -> bool:
        return not self.failures and self.token is not None and self.user is not None


class GitLabStrategy:
    """Authenticate users against GitLab with the authorization code flow."""

    def __init__(
        self,
        oauth: Optional[OAuth2Backend] = None,
        options: Optional[StrategyOptions] = None,
        provider_name: str = "gitlab",
    ):
        self.oauth = oauth if oauth is not None else GitLabOAuth()
        self.options = options if options is not None else StrategyOptions()
        self.provider_name = provider_name

    # Phases

    def begin_auth(self, ctx: AuthContext) -> AuthContext:
        """
        Request phase: compute the GitLab authorization URL.

        The requested scope comes from the ``scope`` request parameter and
        falls back to the default scope. A ``state`` parameter is forwarded
        unchanged so that GitLab returns it on the callback.
        """
        scope = ctx.params.get("scope") or self.options.default_scope
        params = {"redirect_uri": ctx.callback_url, "scope": scope}
        if ctx.params.get("state"):
            params["state"] = ctx.params["state"]

        url = self.oauth.authorize_url(**params)
        logger.info(f"Redirecting to {self.provider_name} for authorization (scope={scope})")
        logger.debug(f"Authorization URL: {url}")
        return replace(ctx, redirect_to=url)

    def complete_auth(self, ctx: AuthContext) -> AuthContext:
        """
        Callback phase: exchange the code and fetch the user profile.

        Provider failures are recorded in ``ctx.failures``, never raised.
        """
        try:
            code = ctx.params.get("code")
            if not code:
                raise MissingCodeError()

            token = self._exchange_code(code, ctx.callback_url)
            # Token stays in the context if the profile fetch fails
            ctx = replace(ctx, token=token)
            ctx = replace(ctx, user=self._fetch_user(token))
        except CallbackError as e:
            logger.warning(f"{self.provider_name} authentication failed: [{e.key}] {e.message}")
            return replace(ctx, failures=[*ctx.failures, e])

        return ctx

    def cleanup(self, ctx: AuthContext) -> AuthContext:
        """Drop the token and profile held for this attempt."""
        return replace(ctx, token=None, user=None)

    def _exchange_code(self, code: str, redirect_uri: str) -> OAuthToken:
        try:
            token = self.oauth.exchange_code_for_token(code, redirect_uri)
        except TokenExchangeError as e:
            raise ProviderError(e.error, e.description) from e
        except APIRequestError as e:
            raise TransportError(e.reason) from e

        if not token.access_token:
            raise ProviderError(
                token.other_params.get("error"),
                token.other_params.get("error_description"),
            )
        return token

    def _fetch_user(self, token: OAuthToken) -> GitLabUser:
        try:
            response = self.oauth.authenticated_get(token, self.options.user_endpoint)
        except APIRequestError as e:
            raise TransportError(e.reason) from e

        if 200 <= response.status_code < 400:
            try:
                data = response.json()
            except ValueError as e:
                raise ProviderCommunicationError() from e
            if not isinstance(data, dict):
                raise ProviderCommunicationError()

            user = GitLabUser.from_response(data)
            logger.info(f"Fetched {self.provider_name} profile for user id={user.id}")
            return user

        if response.status_code == 401:
            raise UnauthorizedError(response.text)

        logger.debug(f"Unexpected user endpoint response {response.status_code}: {response.text}")
        raise ProviderCommunicationError()

    # Field extraction

    def _completed(self, ctx: AuthContext):
        if not ctx.succeeded:
            raise AuthNotCompleteError("Authentication callback has not completed successfully")
        return ctx.token, ctx.user

    def uid(self, ctx: AuthContext) -> Any:
        """Value of the configured uid field (``username`` by default)."""
        _, user = self._completed(ctx)
        return user.raw.get(str(self.options.uid_field))

    def credentials(self, ctx: AuthContext) -> Credentials:
        token, _ = self._completed(ctx)
        # Empty scope gives [""]
        scopes = (token.scope or "").split(",")

        return Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=token.expires_at,
            token_type=token.token_type,
            expires=token.expires_at is not None,
            scopes=scopes,
        )

    def info(self, ctx: AuthContext) -> Info:
        _, user = self._completed(ctx)
        return Info(
            name=user.name,
            email=user.resolved_email,
            nickname=user.login or user.username,
            location=user.location,
            urls={
                "avatar_url": user.avatar_url,
                "web_url": user.web_url,
                "website_url": user.website_url,
            },
        )

    def extra(self, ctx: AuthContext) -> Extra:
        token, user = self._completed(ctx)
        return Extra(raw_info={"token": token, "user": user.raw})

    def auth(self, ctx: AuthContext) -> Auth:
        """Assemble the full result of a successful callback."""
        return Auth(
            provider=self.provider_name,
            uid=self.uid(ctx),
            credentials=self.credentials(ctx),
            info=self.info(ctx),
            extra=self.extra(ctx),
        )

    def failure(self, ctx: AuthContext) -> AuthFailure:
        return AuthFailure(
            provider=self.provider_name,
            errors=[e.to_error() for e in ctx.failures],
        )
