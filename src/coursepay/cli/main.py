"""
coursepay CLI — `coursepay` command.

Commands:
  coursepay config set|show      Backend URL, token, exchange rates
  coursepay gateways             Enabled gateways
  coursepay quote <order-id>     Price with an optional coupon
  coursepay pay <order-id>       Run one checkout attempt
  coursepay resume <return-url>  Finish a redirect payment
"""

import asyncio

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install coursepay[cli]")

from coursepay.client import AsyncCoursePay
from coursepay.config import CheckoutConfig

console = Console()


def _load_config() -> CheckoutConfig:
    return CheckoutConfig.load()


def _get_client(**kwargs) -> AsyncCoursePay:
    cfg = _load_config()
    if not cfg.access_token:
        console.print("[red]No access token. Run `coursepay config set --token ...` first.[/red]")
        raise SystemExit(1)
    return AsyncCoursePay(cfg, **kwargs)


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
def main():
    """coursepay — course checkout from the command line."""


from coursepay.cli.config import config
from coursepay.cli.checkout import gateways_cmd, quote_cmd, pay_cmd, resume_cmd

main.add_command(config)
main.add_command(gateways_cmd)
main.add_command(quote_cmd)
main.add_command(pay_cmd)
main.add_command(resume_cmd)


if __name__ == "__main__":
    main()
