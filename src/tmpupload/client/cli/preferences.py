"""Preference commands for the tmpupload CLI.

Commands:
- config set: Save token, default validity and destination folder
- config show: Print saved preferences and check the token
"""

from __future__ import annotations

import sys

import click

from tmpupload.client.cli.config import get_config_file, load_config, save_config
from tmpupload.client.cli.upload import MODEL_CHOICES

MODEL_LABELS = {0: "24 hours", 1: "3 days", 2: "7 days", 99: "permanent"}


def _check_token(token: str) -> str:
    """Validate a token against the API and return the user id."""
    from tmpupload.client.api import HTTPClient
    from tmpupload.core.config import ServerConfig

    with HTTPClient(ServerConfig(token=token)) as client:
        return client.validate_token()


@click.group()
def config() -> None:
    """Manage saved preferences."""


@config.command("set")
@click.option("--token", default=None, help="API token (validated before saving).")
@click.option("--model", type=click.Choice(MODEL_CHOICES), default=None,
              help="Default validity: 0=24h, 1=3 days, 2=7 days, 99=permanent.")
@click.option("--mr-id", default=None, help="Default destination folder id.")
def set_preferences(token: str | None, model: str | None, mr_id: str | None) -> None:
    """Save default upload preferences."""
    from tmpupload.client.api import APIError

    if token is None and model is None and mr_id is None:
        click.echo("Nothing to save. Use --token, --model or --mr-id.", err=True)
        sys.exit(1)

    preferences = load_config()

    if token is not None:
        click.echo("Checking token...")
        try:
            uid = _check_token(token)
        except APIError as e:
            click.echo(f"Error: Token validation failed: {e}", err=True)
            sys.exit(1)
        preferences["token"] = token
        click.echo(f"Token saved (uid {uid})")

    if model is not None:
        preferences["model"] = int(model)
        click.echo(f"Default validity set to {MODEL_LABELS[int(model)]}")

    if mr_id is not None:
        preferences["mr_id"] = mr_id
        click.echo(f"Default folder id set to {mr_id}")

    save_config(preferences)


@config.command("show")
@click.option("--check/--no-check", default=True, show_default=True,
              help="Validate the saved token against the API.")
def show_preferences(check: bool) -> None:
    """Print saved preferences."""
    from tmpupload.client.api import APIError

    preferences = load_config()
    click.echo(f"Config file: {get_config_file()}")

    token = preferences.get("token")
    if not token:
        click.echo("Token: not set")
    elif not check:
        click.echo("Token: set")
    else:
        try:
            uid = _check_token(token)
            click.echo(f"Token: valid (uid {uid})")
        except APIError as e:
            click.echo(f"Token: invalid ({e})")

    model = int(preferences.get("model", 0))
    click.echo(f"Default validity: {MODEL_LABELS.get(model, f'unknown ({model})')}")
    click.echo(f"Default folder id: {preferences.get('mr_id', '0')}")
