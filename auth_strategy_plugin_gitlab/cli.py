"""
Flask CLI commands for the GitLab strategy.

These commands help with setup and debugging of the GitLab integration.
"""

import click
import httpx
from flask import current_app
from flask.cli import with_appcontext

from .blueprint import EXTENSION_NAME
from .config import PluginConfig
from .errors import ConfigurationError


def load_config() -> PluginConfig:
    """Configuration of the registered plugin, else from the environment."""
    plugin = current_app.extensions.get(EXTENSION_NAME)
    if plugin is not None and plugin.config is not None:
        return plugin.config
    return PluginConfig.from_env()


@click.group("gitlab")
def gitlab_cli():
    """GitLab authentication management commands."""
    pass


@gitlab_cli.command("show-config")
@with_appcontext
def show_config():
    """Display current GitLab configuration."""
    config = load_config()
    options = config.client_options()

    click.echo("=== GitLab Provider Configuration ===")
    click.echo(f"Provider Name: {config.provider_name}")
    click.echo(f"Site: {options.site}")
    click.echo(f"Authorization URL: {options.authorize_endpoint}")
    click.echo(f"Token URL: {options.token_endpoint}")
    click.echo(f"Redirect URI: {options.redirect_uri or 'Derived from request'}")
    click.echo(f"Client ID: {options.client_id[:8] + '...' if options.client_id else 'Not configured'}")
    click.echo(f"Client Secret: {'Configured' if options.client_secret else 'Not configured'}")
    click.echo(f"HTTP Timeout: {options.timeout}s")
    click.echo(f"Send Client Secret On API Calls: {options.send_client_secret}")

    click.echo("\n=== Strategy ===")
    click.echo(f"Default Scope: {config.strategy.default_scope}")
    click.echo(f"UID Field: {config.strategy.uid_field}")
    click.echo(f"User Endpoint: {options.resolve(config.strategy.user_endpoint)}")


@gitlab_cli.command("validate-config")
@with_appcontext
def validate_config():
    """Validate the current configuration."""
    config = load_config()
    errors = []
    warnings = []

    try:
        options = config.client_options()
    except ConfigurationError as e:
        click.echo(f"  x {e}")
        click.echo("\nConfiguration validation failed with 1 error(s)")
        return

    if not options.client_id:
        errors.append("GITLAB_CLIENT_ID not configured")
    if not options.client_secret:
        errors.append("GITLAB_CLIENT_SECRET not configured")

    if options.send_client_secret:
        warnings.append(
            "Client secret is sent as a query parameter on API calls "
            "(set GITLAB_SEND_CLIENT_SECRET=false if your GitLab does not need it)"
        )
    if not options.site.startswith("https://"):
        warnings.append(f"Site is not served over HTTPS: {options.site}")

    # Output results
    if warnings:
        click.echo("=== Warnings ===")
        for warning in warnings:
            click.echo(f"  ! {warning}")

    if errors:
        click.echo("\n=== Errors ===")
        for error in errors:
            click.echo(f"  x {error}")
        click.echo(f"\nConfiguration validation failed with {len(errors)} error(s)")
        return

    click.echo("\n[OK] Configuration is valid!")


@gitlab_cli.command("test-connection")
@with_appcontext
def test_connection():
    """Test connectivity to the GitLab instance."""
    config = load_config()
    options = config.client_options()

    click.echo("=== Testing GitLab Connectivity ===\n")

    endpoints = [
        ("Authorization URL", "HEAD", options.authorize_endpoint),
        # Expected to answer with an error without credentials
        ("Token URL", "POST", options.token_endpoint),
        ("User endpoint", "GET", options.resolve(config.strategy.user_endpoint)),
    ]

    with httpx.Client(timeout=options.timeout, follow_redirects=True) as client:
        for label, method, url in endpoints:
            try:
                resp = client.request(method, url)
                click.echo(f"[OK] {label} reachable: {url} ({resp.status_code})")
            except httpx.HTTPError as e:
                click.echo(f"[FAIL] {label}: {e}")
