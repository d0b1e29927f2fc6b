"""CLI: coursepay config set|show"""

from decimal import Decimal, InvalidOperation
from typing import Optional

import click
from rich.console import Console

from coursepay.config import CheckoutConfig

console = Console()


def _load_config() -> CheckoutConfig:
    from coursepay.cli.main import _load_config
    return _load_config()


@click.group()
def config():
    """Client configuration."""


@config.command("set")
@click.option("--base-url", default=None, help="Marketplace base URL")
@click.option("--token", default=None, help="Bearer token for the API")
@click.option("--user-id", default=None)
@click.option("--return-url", default=None, help="Where redirect providers send the buyer back")
@click.option("--cancel-url", default=None)
@click.option("--rate", "rates", multiple=True, metavar="CUR=RATE", help="Exchange rate per USD, e.g. ZAR=18.5")
def config_set(base_url: Optional[str], token: Optional[str], user_id: Optional[str],
               return_url: Optional[str], cancel_url: Optional[str], rates: tuple[str, ...]):
    """Update saved settings."""
    cfg = _load_config()
    updates = {
        "base_url": base_url,
        "access_token": token,
        "user_id": user_id,
        "return_url": return_url,
        "cancel_url": cancel_url,
    }
    data = cfg.model_dump()
    data.update({k: v for k, v in updates.items() if v is not None})

    exchange_rates = dict(cfg.exchange_rates)
    for item in rates:
        code, _, value = item.partition("=")
        try:
            rate = Decimal(value)
        except InvalidOperation:
            raise click.BadParameter(f"invalid rate {item!r}", param_hint="--rate")
        if not code or rate <= 0:
            raise click.BadParameter(f"invalid rate {item!r}", param_hint="--rate")
        exchange_rates[code.upper()] = rate
    data["exchange_rates"] = exchange_rates

    CheckoutConfig.model_validate(data).save()
    console.print("[green]Configuration saved.[/green]")


@config.command("show")
def config_show():
    """Print saved settings (token masked)."""
    cfg = _load_config()
    token = cfg.access_token
    console.print(f"base_url:   {cfg.base_url}")
    console.print(f"user_id:    {cfg.user_id or '-'}")
    console.print(f"token:      {'…' + token[-4:] if token else '[yellow]not set[/yellow]'}")
    console.print(f"return_url: {cfg.return_url}")
    console.print(f"cancel_url: {cfg.cancel_url}")
    for code, rate in sorted(cfg.exchange_rates.items()):
        console.print(f"rate:       1 USD = {rate} {code}")
