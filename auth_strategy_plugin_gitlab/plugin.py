"""
Flask extension registering the GitLab strategy with a host application.
"""

import logging
from typing import Callable, Optional

from flask import Flask

from .blueprint import EXTENSION_NAME, default_failure_handler, default_success_handler, gitlab_bp
from .cli import gitlab_cli
from .config import PluginConfig
from .oauth import GitLabOAuth
from .strategy import GitLabStrategy

logger = logging.getLogger(__name__)


class GitLabAuthPlugin:
    """
    GitLab authentication plugin.

    Adds ``/auth/gitlab`` and ``/auth/gitlab/callback`` to the application.
    A successful callback calls the success handler with an ``Auth`` result;
    any failure calls the failure handler with an ``AuthFailure``.

    Example::

        gitlab = GitLabAuthPlugin(app)

        @gitlab.success_handler
        def logged_in(auth):
            ...
    """

    def __init__(self, app: Flask = None, strategy: Optional[GitLabStrategy] = None):
        """
        Initialize the plugin.

        Args:
            app: Flask application instance (optional, can call init_app later)
            strategy: Strategy to use instead of one built from the environment
        """
        self.app = app
        self.config: PluginConfig = None
        self.strategy = strategy
        self.success_handler_func: Callable = default_success_handler
        self.failure_handler_func: Callable = default_failure_handler

        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask, config: Optional[PluginConfig] = None):
        """
        Initialize the plugin with a Flask application.

        Args:
            app: Flask application instance
            config: Configuration to use instead of the environment
        """
        self.app = app
        self.config = config if config is not None else PluginConfig.from_env()

        if self.strategy is None:
            self.strategy = GitLabStrategy(
                oauth=GitLabOAuth(self.config),
                options=self.config.strategy,
                provider_name=self.config.provider_name,
            )

        app.extensions[EXTENSION_NAME] = self
        app.register_blueprint(gitlab_bp)
        app.cli.add_command(gitlab_cli)

        if not app.config.get("SECRET_KEY"):
            logger.warning(
                "Flask SECRET_KEY not set. Sessions will not persist across restarts."
            )

        options = self.config.client_options()
        logger.info("GitLab authentication plugin initialized")
        logger.info(f"GitLab site: {options.site}")
        if not options.is_configured:
            logger.warning("GitLab not fully configured - GITLAB_CLIENT_ID or GITLAB_CLIENT_SECRET not set")
        if options.send_client_secret:
            logger.debug("Client secret is sent as a query parameter on profile requests")

    def success_handler(self, func: Callable) -> Callable:
        """Register the view called with the ``Auth`` of a successful login."""
        self.success_handler_func = func
        return func

    def failure_handler(self, func: Callable) -> Callable:
        """Register the view called with the ``AuthFailure`` of a failed login."""
        self.failure_handler_func = func
        return func

    def get_blueprint(self):
        return gitlab_bp

    def get_config_secrets_to_obfuscate(self):
        """Return config keys that should not be exposed."""
        return ["GITLAB_CLIENT_SECRET"]

    @staticmethod
    def get_name() -> str:
        """Return the plugin name."""
        return "gitlab-auth-strategy"

    @staticmethod
    def get_version() -> str:
        """Return the plugin version."""
        from . import __version__
        return __version__

    @staticmethod
    def get_description() -> str:
        """Return the plugin description."""
        return "GitLab OAuth2 authentication strategy for Flask"
