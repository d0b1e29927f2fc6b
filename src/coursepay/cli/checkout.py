"""CLI: coursepay gateways|quote|pay|resume"""

import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from coursepay.errors import CheckoutError
from coursepay.models.order import ProviderIntent
from coursepay.models.session import PaymentSession, SessionStatus
from coursepay.pricing import format_amount, format_display

console = Console()


def _get_client(**kwargs):
    from coursepay.cli.main import _get_client
    return _get_client(**kwargs)


def _run(coro):
    from coursepay.cli.main import _run
    return _run(coro)


def render_session(session: PaymentSession) -> None:
    table = Table(title=f"Order {session.order_id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Price", format_amount(session.base_amount_usd))
    if session.coupon:
        table.add_row(f"Discount ({session.coupon.code})", f"-{format_amount(session.discount_amount_usd)}")
    table.add_row("Total", format_amount(session.final_amount_usd))
    if session.currency != "USD":
        table.add_row(f"Total ({session.currency})",
                      format_display(session.final_amount_usd, session.currency, session.exchange_rate))
    if session.selected_gateway_id:
        method = session.selected_method.value if session.selected_method else "-"
        table.add_row("Pay with", f"{session.selected_gateway_id} ({method})")
    console.print(table)


def render_receipt(session: PaymentSession) -> None:
    receipt = session.receipt
    if receipt is None:
        return
    ok = receipt.succeeded
    table = Table(title="[green]Payment successful[/green]" if ok else "[red]Payment failed[/red]",
                  show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Receipt", receipt.receipt_number)
    table.add_row("Transaction", receipt.short_transaction_id())
    table.add_row("Date", receipt.date_display())
    table.add_row("Method", receipt.method_label)
    table.add_row("Amount", f"{format_amount(receipt.amount_usd)} ({receipt.currency_display})")
    if receipt.error_message:
        table.add_row("Error", f"[red]{receipt.error_message}[/red]")
    console.print(table)


@click.command("gateways")
@click.option("--json-output", "--json", is_flag=True)
def gateways_cmd(json_output):
    """List enabled payment gateways."""

    async def _list():
        async with _get_client() as client:
            registry = await client.registry()
        if json_output:
            click.echo(json.dumps([g.model_dump(mode="json") for g in registry], indent=2))
            return
        table = Table(title=f"Gateways ({len(registry)} enabled)")
        table.add_column("ID", style="bold")
        table.add_column("Name")
        table.add_column("Primary")
        table.add_column("Capabilities")
        table.add_column("Settles in")
        for g in registry:
            caps = ", ".join(k for k, v in g.capabilities.model_dump().items() if v)
            table.add_row(g.gateway_id, g.display_name, "yes" if g.is_primary else "", caps, g.settlement_currency)
        console.print(table)

    _run(_list())


@click.command("quote")
@click.argument("order_id")
@click.option("--coupon", default=None, help="Promo code to apply")
def quote_cmd(order_id: str, coupon: Optional[str]):
    """Show what an order would cost."""

    async def _quote():
        async with _get_client() as client:
            try:
                session = await client.open_checkout(order_id)
                if coupon:
                    session = await client.checkout.apply_coupon(session, coupon)
            except CheckoutError as e:
                console.print(f"[red]{e.message}[/red]")
                raise SystemExit(1)
        render_session(session)

    _run(_quote())


@click.command("pay")
@click.argument("order_id")
@click.option("--gateway", "gateway_id", default=None, help="Gateway id (defaults to the primary)")
@click.option("--coupon", default=None)
@click.option("--saved-method", "saved_method_id", default=None, help="Saved card id")
@click.option("--card-token", default=None, help="Provider token for a card entered elsewhere")
def pay_cmd(order_id: str, gateway_id: Optional[str], coupon: Optional[str],
            saved_method_id: Optional[str], card_token: Optional[str]):
    """Run one checkout attempt for an order."""

    async def _card(intent: ProviderIntent) -> str:
        return card_token or click.prompt(f"Card token for intent {intent.reference}")

    async def _pay():
        async with _get_client(instrument_source=_card) as client:
            try:
                with console.status("Processing payment..."):
                    session = await client.pay(order_id, gateway_id=gateway_id, coupon=coupon,
                                               saved_method_id=saved_method_id)
            except CheckoutError as e:
                console.print(f"[red]{e.message}[/red]")
                raise SystemExit(1)
        if session.status == SessionStatus.AWAITING_REDIRECT:
            console.print(f"[yellow]Approve the payment at:[/yellow] {session.approval_url}")
            console.print(f"[dim]Then run: coursepay resume '<return url>' (reference {session.provider_reference})[/dim]")
            return
        render_receipt(session)
        if session.status == SessionStatus.FAILED:
            raise SystemExit(1)

    _run(_pay())


@click.command("resume")
@click.argument("return_url")
def resume_cmd(return_url: str):
    """Finish a redirect payment from the URL the provider sent the buyer back to."""

    async def _resume():
        async with _get_client() as client:
            with console.status("Confirming payment..."):
                session = await client.resume(return_url)
        render_receipt(session)
        if session.status == SessionStatus.FAILED:
            raise SystemExit(1)

    _run(_resume())
