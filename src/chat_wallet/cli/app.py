"""CLI for Chat Wallet - run the bot and operate custodial wallets from the terminal."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="chat-wallet",
    help="Custodial chat-bot wallet: one generated account per chat.",
    no_args_is_help=True,
)
console = Console()

_base_path: Path | None = None
_verbose: bool = False


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"chat-wallet {version('chat-wallet')}")
        raise typer.Exit()


@app.callback()
def main(
    directory: Path = typer.Option(
        None,
        "--dir",
        "-d",
        help="Directory holding .chat-wallet/ (default: current directory)",
        envvar="CHAT_WALLET_DIR",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Custodial chat-bot wallet: one generated account per chat."""
    global _base_path, _verbose
    _base_path = directory
    _verbose = verbose


def _run(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=logging.DEBUG if _verbose else level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )
    # httpx logs every request at INFO, including the bot token in the URL.
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def _load():
    from chat_wallet.core.service import WalletService

    try:
        return await WalletService.load(_base_path)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _print_reply(reply) -> None:
    if reply is None:
        console.print("[dim](no reply)[/dim]")
        return
    style = "green" if reply.is_ok else "red"
    console.print(Panel(reply.message, border_style=style))
    actions = reply.data.get("actions")
    if actions:
        for action in actions:
            console.print(f"  [cyan]{action['text']}[/cyan] -> {action['callback_data']}")


# ------------------------------------------------------------------
# init / run
# ------------------------------------------------------------------


@app.command()
def init(
    name: str = typer.Option("Chat Wallet", "--name", "-n", help="Bot name"),
    network: str = typer.Option("ethereum", "--network", help="Network (ethereum, sepolia, base)"),
    rpc_url: str = typer.Option(None, "--rpc-url", help="JSON-RPC endpoint, e.g. ${INFURA_URL}"),
    token: str = typer.Option("${TELEGRAM_TOKEN}", "--token", help="Telegram bot token or ${VAR}"),
    key_password: str = typer.Option(
        "", "--key-password", help="Encrypt stored keys with this password or ${VAR}"
    ),
):
    """Initialize a new bot deployment in the current directory."""
    from chat_wallet.config import BotConfig, ChainConfig, StorageConfig, TelegramConfig
    from chat_wallet.core.service import WalletService
    from chat_wallet.wallet.chains import list_chain_names

    if network not in list_chain_names():
        console.print(f"[red]Unknown network '{network}'.[/red] Available: {list_chain_names()}")
        raise typer.Exit(1)

    config = BotConfig(
        name=name,
        chain=ChainConfig(network=network, rpc_url=rpc_url),
        telegram=TelegramConfig(token=token),
        storage=StorageConfig(key_password=key_password),
    )

    async def _init():
        service = await WalletService.init(_base_path, config)
        root = service.root_dir
        await service.shutdown()
        return root

    try:
        root = _run(_init())
    except FileExistsError as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(1)

    key_line = (
        "Keys: [green]encrypted keystore[/green]"
        if key_password
        else "Keys: [yellow]plaintext[/yellow] (pass --key-password to encrypt)"
    )
    console.print(Panel(
        f"[bold green]'{name}' initialized![/bold green]\n\n"
        f"Directory: {root}\n"
        f"Config: {root / 'config.yaml'}\n"
        f"Network: [cyan]{network}[/cyan]\n"
        f"{key_line}\n\n"
        f"Next steps:\n"
        f"  export TELEGRAM_TOKEN=...\n"
        f"  chat-wallet run",
        title="Chat Wallet",
    ))


@app.command()
def run():
    """Start the Telegram bot (long polling)."""
    from chat_wallet.config import get_root_dir, is_unresolved, load_config
    from chat_wallet.transport.telegram import build_application

    config_path = get_root_dir(_base_path) / "config.yaml"
    if not config_path.exists():
        console.print("[red]No bot found.[/red] Run 'chat-wallet init' first.")
        raise typer.Exit(1)
    config = load_config(config_path)
    _configure_logging(config.logging.level)

    token = config.telegram.token
    if not token or is_unresolved(token):
        console.print("[red]Telegram token is not set.[/red] Export TELEGRAM_TOKEN or edit config.yaml.")
        raise typer.Exit(1)

    application = build_application(
        token,
        base_path=_base_path,
        concurrent_updates=config.telegram.concurrent_updates,
    )
    console.print(f"[bold]{config.name}[/bold] polling on [cyan]{config.chain.network}[/cyan]...")
    application.run_polling(drop_pending_updates=True)


@app.command()
def chat(
    identity: str = typer.Argument(help="Chat identity to act as"),
    text: str = typer.Argument(help="Message text, e.g. '/balance' or an address"),
):
    """Send one chat message through the router, as the bot would receive it."""

    async def _chat():
        service = await _load()
        try:
            return await service.router.handle_text(identity, text)
        finally:
            await service.shutdown()

    _print_reply(_run(_chat()))


@app.command()
def token(query: str = typer.Argument(help="Token name, symbol or address")):
    """Look up a token on DexScreener."""
    from chat_wallet.errors import LookupUnavailable
    from chat_wallet.metadata import TokenLookup

    try:
        info = _run(TokenLookup().search(query))
    except LookupUnavailable as e:
        console.print(f"[red]Lookup failed: {e}[/red]")
        raise typer.Exit(1)
    if info is None:
        console.print("[yellow]Contract not found.[/yellow]")
        raise typer.Exit(1)

    table = Table(title=f"Token: {query}")
    table.add_column("Symbol", style="cyan")
    table.add_column("Price (USD)", justify="right")
    table.add_column("Contract")
    table.add_row(info.symbol, info.price_usd or "n/a", info.contract_address)
    console.print(table)


# ------------------------------------------------------------------
# wallet sub-commands
# ------------------------------------------------------------------

wallet_app = typer.Typer(
    name="wallet",
    help="Operate custodial wallets by chat identity.",
    no_args_is_help=True,
)
app.add_typer(wallet_app, name="wallet")


@wallet_app.command("create")
def wallet_create(identity: str = typer.Argument(help="Chat identity")):
    """Create (or show) the wallet for an identity."""

    async def _create():
        service = await _load()
        try:
            return await service.accounts.get_or_create(identity)
        finally:
            await service.shutdown()

    account, created = _run(_create())
    if created:
        console.print(Panel(
            f"[bold green]Wallet created![/bold green]\n\n"
            f"Identity: {identity}\n"
            f"Address: [cyan]{account.address}[/cyan]",
            title="Custodial Wallet",
        ))
    else:
        console.print(f"Wallet address: [cyan]{account.address}[/cyan]")


@wallet_app.command("address")
def wallet_address(identity: str = typer.Argument(help="Chat identity")):
    """Show the wallet address for an identity."""

    async def _address():
        service = await _load()
        try:
            return await service.accounts.get(identity)
        finally:
            await service.shutdown()

    account = _run(_address())
    if account is None:
        console.print(f"[yellow]No wallet found for {identity}.[/yellow] Run 'chat-wallet wallet create {identity}'.")
        raise typer.Exit(1)
    console.print(Panel(f"[cyan]{account.address}[/cyan]", title=f"Wallet of {identity}"))


@wallet_app.command("balance")
def wallet_balance(identity: str = typer.Argument(help="Chat identity")):
    """Show the native balance of an identity's wallet."""
    from chat_wallet.errors import WalletBotError

    async def _balance():
        service = await _load()
        try:
            account = await service.accounts.get(identity)
            if account is None:
                return None, None, service.chain.native_symbol
            amount = await service.gateway.get_balance(account.address)
            return account, amount, service.chain.native_symbol
        finally:
            await service.shutdown()

    try:
        account, amount, symbol = _run(_balance())
    except WalletBotError as e:
        console.print(f"[red]{e.title}: {e}[/red]")
        raise typer.Exit(1)
    if account is None:
        console.print(f"[yellow]No wallet found for {identity}.[/yellow]")
        raise typer.Exit(1)
    console.print(f"[bold]{account.address}:[/bold] {amount} {symbol}")


@wallet_app.command("send")
def wallet_send(
    identity: str = typer.Argument(help="Chat identity whose wallet pays"),
    amount: str = typer.Argument(help="Amount to send (e.g. 0.01)"),
    to: str = typer.Option(..., "--to", "-t", help="Recipient address (0x...)"),
):
    """Send native tokens from an identity's wallet. Irreversible."""
    from chat_wallet.errors import NotFound, WalletBotError
    from chat_wallet.storage.models import TransactionRequest

    try:
        value = Decimal(amount)
    except InvalidOperation:
        console.print(f"[red]Invalid amount '{amount}'.[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold]Send {value} from {identity}[/bold]")
    console.print(f"  To: {to}\n")
    typer.confirm("Confirm this transaction? It cannot be undone.", abort=True)

    async def _send():
        service = await _load()
        try:
            account = await service.accounts.get(identity)
            if account is None:
                raise NotFound(f"No account for {identity}")
            tx_hash = await service.dispatcher.dispatch(
                TransactionRequest(account=account, to_address=to, amount=value)
            )
            return tx_hash, service.chain.explorer_url
        finally:
            await service.shutdown()

    try:
        tx_hash, explorer = _run(_send())
    except WalletBotError as e:
        console.print(f"[red]Transaction failed: {e.title} ({e})[/red]")
        raise typer.Exit(1)

    console.print(Panel(
        f"[bold green]Transaction sent![/bold green]\n\n"
        f"Tx: [cyan]{tx_hash}[/cyan]\n"
        f"Explorer: {explorer}/tx/{tx_hash}",
        title="Transaction Sent",
    ))
