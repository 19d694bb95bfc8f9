"""Tests for the GitLab OAuth2 client layer."""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from auth_strategy_plugin_gitlab.config import PluginConfig
from auth_strategy_plugin_gitlab.errors import APIRequestError, TokenExchangeError
from auth_strategy_plugin_gitlab.models import OAuthToken
from auth_strategy_plugin_gitlab.oauth import GitLabOAuth

CALLBACK = "https://app.test/auth/gitlab/callback"


def query_of(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


class TestBuildClient:
    def test_client_uses_merged_options(self, config):
        oauth = GitLabOAuth(config, options={"client_id": "constructor-id"})

        client = oauth.build_client(client_secret="override-secret")

        assert client.client_id == "constructor-id"
        assert client.client_secret == "override-secret"
        assert client.token_endpoint_auth_method == "client_secret_post"
        client.close()

    def test_constructor_options_win_over_process_configuration(self, config):
        oauth = GitLabOAuth(config, options={"site": "https://git.example.org"})

        options = oauth.client_options()

        assert options.site == "https://git.example.org"
        assert options.client_id == "app-id"

    def test_call_overrides_win_over_constructor_options(self, config):
        oauth = GitLabOAuth(config, options={"site": "https://git.example.org"})
        assert oauth.client_options(site="https://other.example.org").site == "https://other.example.org"


class TestAuthorizeUrl:
    def test_contains_authorization_code_parameters(self, oauth):
        url = oauth.authorize_url(redirect_uri=CALLBACK, scope="read_user,api")

        assert url.startswith("https://gitlab.com/oauth/authorize?")
        assert query_of(url) == {
            "response_type": "code",
            "client_id": "app-id",
            "redirect_uri": CALLBACK,
            "scope": "read_user,api",
        }

    def test_is_deterministic(self, oauth):
        first = oauth.authorize_url(redirect_uri=CALLBACK, scope="read_user")
        second = oauth.authorize_url(redirect_uri=CALLBACK, scope="read_user")
        assert first == second
        assert "state" not in query_of(first)

    def test_passes_state_and_extra_params(self, oauth):
        url = oauth.authorize_url(redirect_uri=CALLBACK, scope="read_user", state="xyz", prompt="consent")

        query = query_of(url)
        assert query["state"] == "xyz"
        assert query["prompt"] == "consent"

    def test_uses_self_hosted_site(self):
        config = PluginConfig(client={"client_id": "id", "site": "https://git.example.org"})
        url = GitLabOAuth(config).authorize_url(redirect_uri=CALLBACK)
        assert url.startswith("https://git.example.org/oauth/authorize?")


class TestExchangeCodeForToken:
    def test_posts_code_and_credentials(self, oauth, gitlab):
        token = oauth.exchange_code_for_token("auth-code", CALLBACK)

        request = gitlab.last_request("/oauth/token")
        body = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        assert request.method == "POST"
        assert str(request.url) == "https://gitlab.com/oauth/token"
        assert request.headers["Accept"] == "application/json"
        assert body["grant_type"] == "authorization_code"
        assert body["code"] == "auth-code"
        assert body["redirect_uri"] == CALLBACK
        assert body["client_id"] == "app-id"
        assert body["client_secret"] == "app-secret"

        assert token.access_token == "gl-access-token"
        assert token.refresh_token == "gl-refresh-token"
        assert token.token_type == "Bearer"
        assert token.scope == "read_user,api"
        assert isinstance(token.expires_at, int)
        assert token.other_params["created_at"] == 1700000000

    def test_error_status_keeps_provider_error(self, oauth, gitlab):
        gitlab.token = (400, {"json": {
            "error": "invalid_grant",
            "error_description": "The provided authorization grant is invalid",
        }})

        with pytest.raises(TokenExchangeError) as excinfo:
            oauth.exchange_code_for_token("bad-code", CALLBACK)

        assert excinfo.value.error == "invalid_grant"
        assert excinfo.value.description == "The provided authorization grant is invalid"
        assert excinfo.value.status_code == 400

    def test_error_body_with_success_status(self, oauth, gitlab):
        gitlab.token = (200, {"json": {"error": "access_denied", "error_description": "Denied"}})

        with pytest.raises(TokenExchangeError) as excinfo:
            oauth.exchange_code_for_token("code", CALLBACK)

        assert excinfo.value.error == "access_denied"
        assert excinfo.value.description == "Denied"

    def test_server_error_without_json_body(self, oauth, gitlab):
        gitlab.token = (502, {"text": "Bad Gateway"})

        with pytest.raises(TokenExchangeError) as excinfo:
            oauth.exchange_code_for_token("code", CALLBACK)

        assert excinfo.value.error == "http_502"
        assert excinfo.value.description == "Bad Gateway"

    def test_transport_failure(self, oauth, gitlab):
        gitlab.token = httpx.ConnectError("connection refused")

        with pytest.raises(APIRequestError, match="connection refused"):
            oauth.exchange_code_for_token("code", CALLBACK)

    def test_token_without_access_token_is_returned(self, oauth, gitlab):
        gitlab.token = (200, {"json": {"token_type": "bearer"}})

        token = oauth.exchange_code_for_token("code", CALLBACK)

        assert token.access_token is None


class TestAuthenticatedGet:
    token = OAuthToken(access_token="gl-access-token", token_type="Bearer")

    def test_sends_token_and_client_secret(self, oauth, gitlab):
        response = oauth.authenticated_get(self.token, "/api/v3/user")

        request = gitlab.last_request("/api/v3/user")
        assert response.status_code == 200
        assert request.headers["Authorization"] == "Bearer gl-access-token"
        assert request.url.host == "gitlab.com"
        assert request.url.params["client_secret"] == "app-secret"

    def test_client_secret_can_be_switched_off(self, gitlab):
        config = PluginConfig(client={
            "client_id": "app-id",
            "client_secret": "app-secret",
            "send_client_secret": False,
        })
        oauth = GitLabOAuth(config, transport=httpx.MockTransport(gitlab))

        oauth.authenticated_get(self.token, "/api/v3/user", params={"per_page": "1"})

        request = gitlab.last_request("/api/v3/user")
        assert "client_secret" not in request.url.params
        assert request.url.params["per_page"] == "1"

    def test_error_responses_are_returned(self, oauth, gitlab):
        gitlab.user = (401, {"json": {"message": "401 Unauthorized"}})

        response = oauth.authenticated_get(self.token, "/api/v3/user")

        assert response.status_code == 401
        assert "401 Unauthorized" in response.text

    def test_transport_failure(self, oauth, gitlab):
        gitlab.user = httpx.ReadTimeout("timed out")

        with pytest.raises(APIRequestError) as excinfo:
            oauth.authenticated_get(self.token, "/api/v3/user")

        assert excinfo.value.reason == "timed out"
