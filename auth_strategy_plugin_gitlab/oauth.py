"""
OAuth2 client for GitLab.

Wraps Authlib's httpx ``OAuth2Client`` with the GitLab endpoints and the
three operations the strategy needs: building the authorization URL,
exchanging a code for a token and calling the API with that token.
"""

import logging
from abc import ABC, abstractmethod
from typing import Mapping, Optional

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import OAuth2Client
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri

from .config import ClientOptions, PluginConfig, merge_options
from .errors import APIRequestError, TokenExchangeError
from .models import OAuthToken

logger = logging.getLogger(__name__)


class OAuth2Backend(ABC):
    """Operations the strategy performs against an OAuth2 provider."""

    @abstractmethod
    def authorize_url(self, **params) -> str:
        """Return the provider authorization URL for ``params``."""

    @abstractmethod
    def exchange_code_for_token(self, code: str, redirect_uri: str) -> OAuthToken:
        """Exchange an authorization code for an access token."""

    @abstractmethod
    def authenticated_get(self, token: OAuthToken, path: str, params: Optional[dict] = None) -> httpx.Response:
        """GET an API path on behalf of the token owner."""


class GitLabOAuth(OAuth2Backend):
    """
    OAuth2 client configuration for a GitLab instance.

    Options are merged from the defaults, the process configuration,
    ``options`` and finally per-call overrides.
    """

    def __init__(
        self,
        config: Optional[PluginConfig] = None,
        options: Optional[Mapping] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            config: Plugin configuration (loaded from the environment if omitted)
            options: Client options that take precedence over ``config``
            transport: httpx transport, used to route requests in tests
        """
        self.config = config if config is not None else PluginConfig.from_env()
        self.options = dict(options or {})
        self.transport = transport

    def client_options(self, **overrides) -> ClientOptions:
        return self.config.client_options(merge_options(self.options, overrides))

    def build_client(self, **overrides) -> OAuth2Client:
        """Create an OAuth2 client. Makes no network call."""
        options = self.client_options(**overrides)

        client_kwargs = {"timeout": options.timeout}
        if self.transport is not None:
            client_kwargs["transport"] = self.transport

        return OAuth2Client(
            client_id=options.client_id,
            client_secret=options.client_secret,
            token_endpoint_auth_method="client_secret_post",
            redirect_uri=options.redirect_uri,
            **client_kwargs,
        )

    def authorize_url(self, **params) -> str:
        """
        Build the authorization URL.

        The result depends only on the configuration and ``params``; no
        state value is generated here.
        """
        options = self.client_options()
        params = dict(params)
        redirect_uri = params.pop("redirect_uri", None) or options.redirect_uri
        scope = params.pop("scope", None)
        state = params.pop("state", None)

        return prepare_grant_uri(
            options.authorize_endpoint,
            client_id=options.client_id,
            response_type="code",
            redirect_uri=redirect_uri,
            scope=scope,
            state=state,
            **params,
        )

    def exchange_code_for_token(self, code: str, redirect_uri: str) -> OAuthToken:
        """
        Exchange an authorization code for a token.

        Raises:
            TokenExchangeError: GitLab rejected the code. The provider's
                ``error`` and ``error_description`` are kept.
            APIRequestError: the token endpoint could not be reached
        """
        options = self.client_options()
        logger.debug(f"Exchanging authorization code at {options.token_endpoint}")

        with self.build_client(redirect_uri=redirect_uri) as client:
            client.register_compliance_hook("access_token_response", _check_token_response)
            try:
                token = client.fetch_token(
                    options.token_endpoint,
                    grant_type="authorization_code",
                    code=code,
                    redirect_uri=redirect_uri,
                )
            except OAuthError as e:
                raise TokenExchangeError(e.error, e.description) from e
            except httpx.TransportError as e:
                raise APIRequestError(str(e) or type(e).__name__) from e
            except ValueError as e:
                # Body was not JSON
                raise TokenExchangeError("invalid_response", str(e)) from e

        return OAuthToken.from_response(token)

    def authenticated_get(self, token: OAuthToken, path: str, params: Optional[dict] = None) -> httpx.Response:
        """
        GET ``path`` relative to the site with the token attached.

        Responses are returned whatever their status code. When
        ``send_client_secret`` is enabled the client secret is added as a
        query parameter, which GitLab used to require.

        Raises:
            APIRequestError: the request could not be sent or answered
        """
        options = self.client_options()
        query = dict(params or {})
        if options.send_client_secret:
            query["client_secret"] = options.client_secret

        url = options.resolve(path)
        logger.debug(f"GET {url}")

        with self.build_client() as client:
            try:
                return client.request(
                    "GET",
                    url,
                    params=query,
                    headers={"Authorization": token.authorization_header},
                    withhold_token=True,
                )
            except httpx.TransportError as e:
                raise APIRequestError(str(e) or type(e).__name__) from e


def _check_token_response(response: httpx.Response) -> httpx.Response:
    """Turn non-2xx token responses into ``TokenExchangeError``."""
    if response.is_success:
        return response

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and body.get("error"):
        raise TokenExchangeError(body["error"], body.get("error_description"), response.status_code)

    raise TokenExchangeError(
        f"http_{response.status_code}",
        response.text or response.reason_phrase,
        response.status_code,
    )
