"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from collections.abc import Callable

import typer

from webosctl.api import Client
from webosctl.core.commands import TVCommands
from webosctl.core.errors import CommandArgumentError, WebosctlError
from webosctl.core.store import YAMLCredentialStore
from webosctl.transports.probe import is_reachable
from webosctl.transports.wol import BROADCAST_ADDRESS, canonical_mac, send_magic_packet

app = typer.Typer(help="Remote control for webOS TVs over the local network")

MENU = """
  Playback                     Audio
   1  play                      6  volume up
   2  pause                     7  volume down
   3  stop                      8  set volume
   4  rewind                    m  mute
   5  fast forward              u  unmute

  Apps                         Channels
  11  Netflix                   9  channel up
  12  YouTube                  10  channel down
  13  open URL
  16  play MP4 URL             System
  14  toast message            15  power off
                                0  quit
"""


def _ask(label: str) -> str:
    return typer.prompt(label, default="", show_default=False).strip()


def _set_volume(commands: TVCommands) -> None:
    raw = _ask("Enter volume (0-100)")
    try:
        volume = int(raw)
    except ValueError:
        typer.echo("Invalid volume value", err=True)
        return
    commands.set_volume(volume)


MENU_ACTIONS: dict[str, Callable[[TVCommands], object]] = {
    "1": lambda c: c.play(),
    "2": lambda c: c.pause(),
    "3": lambda c: c.stop(),
    "4": lambda c: c.rewind(),
    "5": lambda c: c.fast_forward(),
    "6": lambda c: c.volume_up(),
    "7": lambda c: c.volume_down(),
    "8": _set_volume,
    "m": lambda c: c.mute(),
    "u": lambda c: c.unmute(),
    "9": lambda c: c.channel_up(),
    "10": lambda c: c.channel_down(),
    "11": lambda c: c.launch_netflix(),
    "12": lambda c: c.launch_youtube(_ask("YouTube video ID (press Enter for app only)")),
    "13": lambda c: c.open_url(_ask("Enter URL")),
    "14": lambda c: c.toast(_ask("Enter message")),
    "15": lambda c: c.power_off(),
    "16": lambda c: c.play_video_url(_ask("Enter MP4 URL")),
}

SEND_ACTIONS: dict[str, Callable[[TVCommands, str | None], object]] = {
    "play": lambda c, _: c.play(),
    "pause": lambda c, _: c.pause(),
    "stop": lambda c, _: c.stop(),
    "rewind": lambda c, _: c.rewind(),
    "fast-forward": lambda c, _: c.fast_forward(),
    "volume-up": lambda c, _: c.volume_up(),
    "volume-down": lambda c, _: c.volume_down(),
    "volume": lambda c, arg: c.set_volume(_parse_volume(arg)),
    "mute": lambda c, _: c.mute(),
    "unmute": lambda c, _: c.unmute(),
    "channel-up": lambda c, _: c.channel_up(),
    "channel-down": lambda c, _: c.channel_down(),
    "netflix": lambda c, _: c.launch_netflix(),
    "youtube": lambda c, arg: c.launch_youtube(arg),
    "open": lambda c, arg: c.open_url(arg or ""),
    "video": lambda c, arg: c.play_video_url(arg or ""),
    "toast": lambda c, arg: c.toast(arg or ""),
    "power-off": lambda c, _: c.power_off(),
}


def _parse_volume(arg: str | None) -> int:
    try:
        return int(arg or "")
    except ValueError:
        raise CommandArgumentError(f"Volume must be an integer, got {arg!r}") from None


def _build_client(host: str, mac: str | None, *, wait: bool) -> Client:
    return Client(
        host,
        mac=mac,
        reporter=typer.echo,
        wait_for_response=wait,
    )


def _run_menu(client: Client) -> None:
    while not client.closed:
        typer.echo(MENU)
        try:
            choice = _ask("Enter command").lower()
        except (typer.Abort, EOFError, KeyboardInterrupt):
            if client.closed:
                break
            typer.echo("\nGoodbye!")
            return

        # The listener reports a dropped connection itself; stop before sending.
        if client.closed:
            break
        if choice == "0":
            typer.echo("Goodbye!")
            return
        action = MENU_ACTIONS.get(choice)
        if action is None:
            typer.echo("Invalid command", err=True)
            continue

        try:
            action(client.commands)
        except WebosctlError as exc:
            typer.echo(f"Command failed: {exc}", err=True)
        else:
            if choice == "15":
                typer.echo("TV shutting down. Goodbye!")
                client.sleep(2.0)
                return
        client.sleep(client.timings.command_pacing_s)

    typer.echo("Session closed", err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("connect")
def connect(
    host: str,
    mac: str | None = typer.Argument(None, help="MAC address, remembered for future wakes"),
    wait: bool = typer.Option(False, "--wait", help="Wait for the TV to answer each command"),
) -> None:
    """Connect to a TV and run the interactive remote."""
    client: Client | None = None
    try:
        client = _build_client(host, mac, wait=wait)
        client.connect()
        _run_menu(client)
    except WebosctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if client is not None:
            client.close()


@app.command("send")
def send(
    host: str,
    command: str = typer.Argument(..., help=f"One of: {', '.join(SEND_ACTIONS)}"),
    argument: str | None = typer.Argument(None, help="Volume, URL, message or video ID"),
    wait: bool = typer.Option(False, "--wait", help="Wait for the TV to answer"),
) -> None:
    """Connect, send a single command, and disconnect."""
    action = SEND_ACTIONS.get(command)
    if action is None:
        typer.echo(f"Error: Unknown command '{command}'. Choose from: {', '.join(SEND_ACTIONS)}", err=True)
        raise typer.Exit(code=1)

    client: Client | None = None
    try:
        client = _build_client(host, None, wait=wait)
        client.connect()
        action(client.commands, argument)
    except WebosctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if client is not None:
            client.close()


@app.command("wake")
def wake(
    mac: str,
    broadcast: str = typer.Option(BROADCAST_ADDRESS, "--broadcast", help="Broadcast address"),
) -> None:
    """Send a Wake-on-LAN packet."""
    try:
        send_magic_packet(mac, broadcast=broadcast)
    except WebosctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo(f"Wake-on-LAN packet sent to {mac}")


@app.command("probe")
def probe(
    host: str,
    port: int = typer.Option(3000, "--port", help="Control port"),
    timeout: float = typer.Option(2.0, "--timeout", help="Seconds to wait"),
) -> None:
    """Check whether the TV control port accepts connections."""
    if is_reachable(host, port, timeout_s=timeout):
        typer.echo(f"{host}:{port} is reachable")
        return
    typer.echo(f"{host}:{port} is not reachable")
    raise typer.Exit(code=1)


@app.command("remember")
def remember(host: str, mac: str) -> None:
    """Store the MAC address used to wake a TV."""
    try:
        mac = canonical_mac(mac)
        YAMLCredentialStore().save_mac(host, mac)
    except WebosctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo(f"Remembered {mac} for {host}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
