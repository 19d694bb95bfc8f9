"""Pytest configuration and fixtures."""

import os

import httpx
import pytest
from flask import Flask

from auth_strategy_plugin_gitlab.config import PluginConfig
from auth_strategy_plugin_gitlab.oauth import GitLabOAuth
from auth_strategy_plugin_gitlab.plugin import GitLabAuthPlugin
from auth_strategy_plugin_gitlab.strategy import GitLabStrategy

TOKEN_RESPONSE = {
    "access_token": "gl-access-token",
    "token_type": "bearer",
    "refresh_token": "gl-refresh-token",
    "expires_in": 7200,
    "scope": "read_user,api",
    "created_at": 1700000000,
}

USER_RESPONSE = {
    "id": 42,
    "username": "jdoe",
    "name": "Jane Doe",
    "email": "jane@example.com",
    "location": "Berlin",
    "avatar_url": "https://gitlab.com/uploads/avatar.png",
    "web_url": "https://gitlab.com/jdoe",
    "website_url": "https://jdoe.example.com",
}


class FakeGitLab:
    """
    Stand-in for a GitLab instance, used as an ``httpx.MockTransport`` handler.

    ``token`` and ``user`` are either ``(status, kwargs)`` pairs used to build
    a fresh ``httpx.Response`` per request, or an exception to raise.
    """

    def __init__(self):
        self.token = (200, {"json": TOKEN_RESPONSE})
        self.user = (200, {"json": USER_RESPONSE})
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path == "/oauth/token":
            answer = self.token
        elif request.url.path == "/api/v3/user":
            answer = self.user
        else:
            answer = (404, {"json": {"message": "404 Not Found"}})

        if isinstance(answer, Exception):
            raise answer
        status, kwargs = answer
        return httpx.Response(status, **kwargs)

    def last_request(self, path: str) -> httpx.Request:
        return [r for r in self.requests if r.url.path == path][-1]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep GITLAB_* variables of the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("GITLAB_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config():
    return PluginConfig(client={"client_id": "app-id", "client_secret": "app-secret"})


@pytest.fixture
def gitlab():
    return FakeGitLab()


@pytest.fixture
def oauth(config, gitlab):
    return GitLabOAuth(config, transport=httpx.MockTransport(gitlab))


@pytest.fixture
def strategy(oauth, config):
    return GitLabStrategy(oauth=oauth, options=config.strategy)


@pytest.fixture
def app(config, strategy):
    """Flask app with the plugin registered against the fake GitLab."""
    app = Flask(__name__)
    app.config.update(SECRET_KEY="test-secret", TESTING=True, SERVER_NAME="app.test")

    plugin = GitLabAuthPlugin(strategy=strategy)
    plugin.init_app(app, config=config)
    return app


@pytest.fixture
def client(app):
    return app.test_client()
