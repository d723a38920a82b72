"""
Gupshup CLI

Command-line interface for Gupshup channel administration.

Commands:
- accounts: List resolved accounts
- send-test: Send a test message
- health: Show account health, optionally probing the API
- sign: Compute the webhook signature for a request body
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from basecore.logging import setup_logging
from messaging_gupshup.contracts.wire import TextMessage
from messaging_gupshup.errors import GupshupError
from messaging_gupshup.providers.base import DeliveryClient
from messaging_gupshup.providers.gupshup.client import GupshupClient
from messaging_gupshup.providers.gupshup.webhook import compute_signature
from messaging_gupshup.providers.stub import StubGupshupClient
from messaging_gupshup.routing.account_resolver import ResolvedAccount, resolve_accounts, resolve_default_account
from messaging_gupshup.service.health import HealthMonitor
from messaging_gupshup.settings import load_config

app = typer.Typer(
    name="gupshup-cli",
    help="Gupshup WhatsApp channel CLI",
)

console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="JSON config file (defaults to GUPSHUP_CONFIG_FILE or env vars)")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Log level (defaults to LOG_LEVEL or INFO)"),
):
    setup_logging(log_level)


def get_accounts(config_file: Optional[str]) -> list[ResolvedAccount]:
    """Load config and resolve accounts, exiting on configuration errors."""
    try:
        return resolve_accounts(load_config(config_file))
    except GupshupError as e:
        rprint(f"[red]Configuration error: {e.message}[/red]")
        raise typer.Exit(1)


@app.command()
def accounts(config_file: Optional[str] = ConfigOption):
    """
    List resolved accounts.

    API keys and webhook secrets are never printed.
    """
    resolved = get_accounts(config_file)

    table = Table(title="Gupshup Accounts")
    table.add_column("Name")
    table.add_column("Phone")
    table.add_column("App ID", style="dim")
    table.add_column("Business Name")
    table.add_column("Templates")
    table.add_column("Signed Webhooks")

    for account in resolved:
        table.add_row(
            account.name,
            account.phone_number,
            account.app_id,
            account.business_name,
            ", ".join(account.templates) or "-",
            "Yes" if account.webhook_secret else "No",
        )

    console.print(table)


@app.command()
def send_test(
    to: str = typer.Argument(..., help="Recipient phone number (E.164 format)"),
    text: str = typer.Option("Hello from Gupshup!", help="Message text"),
    account: Optional[str] = typer.Option(None, help="Account name (uses the default account if not specified)"),
    stub: bool = typer.Option(False, help="Use the stub client instead of the Gupshup API"),
    config_file: Optional[str] = ConfigOption,
):
    """
    Send a test message.

    Sends directly via the delivery client; the 24h session window is not checked.
    """
    resolved = get_accounts(config_file)

    if account:
        selected = next((a for a in resolved if a.name == account), None)
        if selected is None:
            rprint(f"[red]Account '{account}' not found[/red]")
            raise typer.Exit(1)
    else:
        selected = resolve_default_account(load_config(config_file))

    async def send():
        client: DeliveryClient
        if stub:
            client = StubGupshupClient(source_phone=selected.phone_number)
        else:
            client = GupshupClient(
                api_key=selected.api_key,
                source_phone=selected.phone_number,
                business_name=selected.business_name,
            )
        try:
            return await client.send_message(to, TextMessage(text=text))
        finally:
            await client.close()

    try:
        response = asyncio.run(send())
    except GupshupError as e:
        rprint("[red]Failed to send message[/red]")
        rprint(f"  Error: {e.message}")
        rprint(f"  Code: {e.code}")
        raise typer.Exit(1)

    if response.submitted:
        rprint("[green]Message sent successfully![/green]")
        rprint(f"  Account: {selected.name}")
        rprint(f"  Message ID: {response.message_id}")
    else:
        rprint("[red]Failed to send message[/red]")
        rprint(f"  Error: {response.error_message}")
        rprint(f"  Code: {response.error_code}")
        raise typer.Exit(1)


@app.command()
def health(
    check_api: bool = typer.Option(False, help="Probe the Gupshup API with each account's key"),
    config_file: Optional[str] = ConfigOption,
):
    """
    Show account health.

    Without --check-api accounts report as not connected, since no
    traffic has been seen by this process.
    """
    resolved = get_accounts(config_file)
    monitor = HealthMonitor(resolved)

    result = asyncio.run(monitor.check(check_api=check_api))

    table = Table(title="Gupshup Health")
    table.add_column("Account")
    table.add_column("Phone")
    table.add_column("Connected")
    table.add_column("Error")

    for status in result.status.accounts:
        table.add_row(
            status.name,
            status.phone_number,
            "[green]Yes[/green]" if status.connected else "[red]No[/red]",
            status.error or "-",
        )

    console.print(table)
    rprint(result.details)

    if not result.status.healthy:
        raise typer.Exit(1)


@app.command()
def sign(
    body_file: Path = typer.Argument(..., help="File containing the raw webhook body"),
    config_file: Optional[str] = ConfigOption,
):
    """
    Compute the webhook signature for a request body.

    Uses the default account's webhook secret.
    """
    try:
        account = resolve_default_account(load_config(config_file))
    except GupshupError as e:
        rprint(f"[red]Configuration error: {e.message}[/red]")
        raise typer.Exit(1)

    if not account.webhook_secret:
        rprint(f"[yellow]No webhook secret configured for account '{account.name}'[/yellow]")
        raise typer.Exit(1)

    try:
        body = body_file.read_bytes()
    except OSError as e:
        rprint(f"[red]Cannot read {body_file}: {e}[/red]")
        raise typer.Exit(1)

    typer.echo(compute_signature(body, account.webhook_secret))


if __name__ == "__main__":
    app()
