"""
MediaMetaStream Companion CLI - find a stream on the LAN and follow it.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from .config import Config
from .companion import Companion
from .discovery.models import Peer
from .events import CompanionListener
from .stream.connection import CloseReason
from .stream.messages import LocationUpdate

console = Console()


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler()]
    )


def run_async(coro):
    """Run an async function."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        return loop.run_until_complete(coro)


def peer_table(peers: List[Peer]) -> Table:
    """Render peers the way the selection list shows them."""
    table = Table(show_header=True, box=None)
    table.add_column("#", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Endpoint")

    for i, peer in enumerate(peers, start=1):
        table.add_row(str(i), peer.name, peer.endpoint)
    return table


class ConsoleListener(CompanionListener):
    """Prints companion events and lets the CLI wait on them."""

    def __init__(self, out: Console):
        self.out = out
        self.peers_found = asyncio.Event()
        self.closed = asyncio.Event()
        self.last_reason: Optional[CloseReason] = None

    def peers_changed(self, peers: List[Peer]) -> None:
        peer = peers[-1]
        self.out.print(f"[green]Found[/green] {peer.name} at {peer.endpoint}")
        self.peers_found.set()

    def discovery_error(self, message: str) -> None:
        self.out.print(f"[dim yellow]Discovery: {message}[/dim yellow]")

    def connection_opened(self, peer: Peer) -> None:
        self.out.print(f"[bold green]✓ Connected to {peer.name}[/bold green]")

    def connection_closed(self, reason: CloseReason) -> None:
        self.last_reason = reason
        self.closed.set()

    def location_update(self, update: LocationUpdate) -> None:
        self.out.print(f"📍 {update.latitude:.6f}, {update.longitude:.6f}")


def _load_config(ctx) -> Config:
    data_dir = ctx.obj.get('data_dir')
    return Config.load(Path(data_dir) if data_dir else None)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--data-dir', type=click.Path(), help='Data directory')
@click.pass_context
def main(ctx, verbose, data_dir):
    """📡 MediaMetaStream Companion"""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['data_dir'] = data_dir
    setup_logging(verbose)


@main.command()
@click.option('--timeout', '-t', default=5.0, type=float, help='Seconds to browse')
@click.pass_context
def browse(ctx, timeout: float):
    """Browse the local network for a stream service."""
    config = _load_config(ctx)

    console.print(f"\n[bold blue]📡 Browsing for {config.browse_type}[/bold blue]\n")

    async def do_browse():
        companion = Companion(config)
        companion.add_listener(ConsoleListener(console))
        await companion.start()
        try:
            await asyncio.sleep(timeout)
        finally:
            await companion.stop()
        return companion.peers

    peers = run_async(do_browse())

    if not peers:
        console.print("[yellow]No services found.[/yellow]")
        sys.exit(1)

    console.print()
    console.print(peer_table(peers))
    console.print()


async def _choose_peer(
    companion: Companion,
    ui: ConsoleListener,
    name: Optional[str],
    timeout: float,
) -> Optional[Peer]:
    """Selection step: wait for peers, then pick one."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    # With a name, keep browsing until that instance shows up.
    # Each session resolves one instance, so a mismatch restarts discovery.
    while not companion.peers or (name and companion.find_peer(name) is None):
        if companion.peers:
            await companion.start()
        ui.peers_found.clear()
        try:
            await asyncio.wait_for(ui.peers_found.wait(), timeout=max(deadline - loop.time(), 0))
        except asyncio.TimeoutError:
            break

    peers = companion.peers
    if not peers:
        return None
    if name:
        peer = companion.find_peer(name)
        if peer is None:
            found = ", ".join(p.name for p in peers)
            console.print(f"[yellow]No service named {name}; found: {found}[/yellow]")
        return peer
    if len(peers) == 1:
        return peers[0]

    console.print(peer_table(peers))
    row = await asyncio.to_thread(
        click.prompt, "Select a peer", type=click.IntRange(1, len(peers))
    )
    return peers[row - 1]


async def _watch(
    config: Config,
    name: Optional[str],
    manual: Optional[Peer],
    timeout: float,
) -> int:
    companion = Companion(config)
    ui = ConsoleListener(console)
    companion.add_listener(ui)

    try:
        while True:
            if manual is not None:
                peer = manual
            else:
                await companion.start()
                peer = await _choose_peer(companion, ui, name, timeout)

            if peer is None:
                console.print("[yellow]No matching service found.[/yellow]")
                return 1

            ui.closed.clear()
            companion.select_peer(peer)
            await ui.closed.wait()

            reason = ui.last_reason
            style = "red" if reason and reason.is_error else "yellow"
            console.print(f"[{style}]Connection closed: {reason}[/{style}]")

            again = await asyncio.to_thread(click.confirm, "Choose a peer again?", default=True)
            if not again:
                return 0
    finally:
        await companion.stop()


@main.command()
@click.option('--name', '-n', help='Service instance name to connect to')
@click.option('--host', help='Connect to this address instead of browsing')
@click.option('--port', '-p', type=int, help='Port for --host')
@click.option('--timeout', '-t', default=10.0, type=float, help='Seconds to wait for a service')
@click.pass_context
def watch(ctx, name: Optional[str], host: Optional[str], port: Optional[int], timeout: float):
    """Connect to a stream and print its location updates."""
    config = _load_config(ctx)

    manual = None
    if host:
        if port is None:
            console.print("[red]--port is required with --host[/red]")
            sys.exit(1)
        manual = Peer(name=host, address=host, port=port)

    console.print(f"\n[bold blue]📡 MediaMetaStream Companion[/bold blue]")
    console.print(f"   Press Ctrl+C to stop\n")

    try:
        code = run_async(_watch(config, name, manual, timeout))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
        code = 0

    sys.exit(code)


@main.command('config')
@click.option('--set', 'settings', nargs=2, multiple=True, metavar='KEY VALUE',
              help='Update a setting and save')
@click.pass_context
def config_cmd(ctx, settings):
    """Show or update the configuration."""
    config = _load_config(ctx)

    if settings:
        for key, value in settings:
            try:
                config.set_value(key, value)
            except KeyError:
                console.print(f"[red]Unknown setting: {key}[/red]")
                sys.exit(1)
            except ValueError as e:
                console.print(f"[red]Invalid value for {key}: {e}[/red]")
                sys.exit(1)
        config.save()
        console.print(f"[green]✓ Saved {config.config_path}[/green]")

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")

    for key, value in config.to_dict().items():
        table.add_row(key, str(value))
    table.add_row("browse_type", config.browse_type)
    table.add_row("config_path", str(config.config_path))

    console.print(table)


if __name__ == '__main__':
    main()
