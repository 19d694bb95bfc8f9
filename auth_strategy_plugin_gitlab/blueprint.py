"""
Flask blueprint for GitLab authentication.

This blueprint provides the following endpoints:
- GET /auth/gitlab - Redirect to GitLab's authorization page
- GET /auth/gitlab/callback - GitLab callback (receives authorization code)
- GET /auth/gitlab/info - Provider information for the frontend
"""

import logging

from flask import current_app, g, jsonify, redirect, request, session, url_for
from flask_smorest import Blueprint

from .config import PluginConfig
from .models import Auth, AuthFailure
from .strategy import AuthContext, GitLabStrategy

logger = logging.getLogger(__name__)

EXTENSION_NAME = "gitlab-auth"

gitlab_bp = Blueprint(
    "gitlab_auth",
    __name__,
    url_prefix="/auth",
    description="GitLab authentication endpoints"
)


def get_plugin():
    """Return the plugin registered on the current app."""
    return current_app.extensions[EXTENSION_NAME]


def get_config() -> PluginConfig:
    return get_plugin().config


def get_strategy() -> GitLabStrategy:
    return get_plugin().strategy


def get_callback_url() -> str:
    """
    URL GitLab redirects back to.

    Both phases must send the same value, so a configured redirect URI
    always wins over the URL of this blueprint.
    """
    redirect_uri = get_config().client_options().redirect_uri
    if redirect_uri:
        return redirect_uri
    return url_for("gitlab_auth.callback", _external=True)


def build_context() -> AuthContext:
    return AuthContext(params=request.args.to_dict(), callback_url=get_callback_url())


def default_success_handler(auth: Auth):
    """Remember the user in the session and go to the frontend."""
    config = get_config()
    session["uid"] = auth.uid
    session["provider"] = auth.provider
    session.modified = True

    logger.info(f"User {auth.uid} authenticated successfully via {auth.provider}")
    return redirect(config.login_success_redirect)


def default_failure_handler(failure: AuthFailure):
    """Redirect to the login error page with the first error key."""
    config = get_config()
    return_url = config.login_error_redirect
    key = failure.errors[0].key if failure.errors else "unknown"

    separator = "&" if "?" in return_url else "?"
    return redirect(f"{return_url}{separator}error={key}")


@gitlab_bp.route("/gitlab")
def request_phase():
    """
    Initiate the GitLab authorization flow.

    Query Parameters:
        scope: Comma separated scopes (optional, defaults to the configured scope)
        state: Opaque value GitLab returns on the callback (optional)
    """
    ctx = get_strategy().begin_auth(build_context())
    return redirect(ctx.redirect_to)


@gitlab_bp.route("/gitlab/callback")
def callback():
    """
    GitLab callback endpoint.

    Exchanges the authorization code, fetches the profile and hands the
    result to the plugin's success or failure handler.
    """
    plugin = get_plugin()
    strategy = plugin.strategy

    ctx = strategy.complete_auth(build_context())
    g.gitlab_auth_context = ctx
    try:
        if ctx.failed:
            failure = strategy.failure(ctx)
            g.gitlab_auth_failure = failure
            return plugin.failure_handler_func(failure)

        auth = strategy.auth(ctx)
        g.gitlab_auth = auth
        return plugin.success_handler_func(auth)
    finally:
        g.gitlab_auth_context = strategy.cleanup(ctx)
        # Auth.extra still references the token and raw profile
        g.pop("gitlab_auth", None)


@gitlab_bp.route("/gitlab/info")
def auth_info():
    """
    Return information about the configured GitLab provider.

    This endpoint can be used by the frontend to display login options.
    """
    config = get_config()
    options = config.client_options()

    return jsonify({
        "provider": config.provider_name,
        "site": options.site,
        "login_url": url_for("gitlab_auth.request_phase", _external=True),
        "configured": options.is_configured,
    })
