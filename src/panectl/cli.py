"""Command line interface for panectl.

Commands:
    - panes: List panes with their foreground command and size
    - send / key: Type text or press a key in a pane
    - capture: Print a pane's visible or scrollback text
    - wait / run: Wait for completion, or run a command and wait for it
    - buffer: Read and write named buffers shared between controllers
    - dev-session: Create (or switch to) a numbered dev window
    - serve: Start the HTTP API
"""

import asyncio
import os
import sys
from collections.abc import Coroutine
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from panectl import config
from panectl.adapters import create_backend, inside_tmux
from panectl.controller import PaneController
from panectl.core.address import PaneAddress, parse
from panectl.devsession import open_dev_session
from panectl.errors import PanectlError, ParseError
from panectl.observe import parse_line_bound
from panectl.telemetry import setup_logging
from panectl.wait import (
    CompletionCriterion,
    FixedDelay,
    OutputContainsMarker,
    ProcessNameReturnedToShell,
    WaitState,
)

console = Console()
err_console = Console(stderr=True)

EXIT_TIMED_OUT = 2
EXIT_CANCELLED = 130


class AddressParamType(click.ParamType):
    """Click parameter parsed as a strict ``session:window.pane`` address."""

    name = "address"

    def convert(self, value, param, ctx):
        if isinstance(value, PaneAddress):
            return value
        try:
            return parse(value)
        except ParseError as e:
            self.fail(str(e), param, ctx)


ADDRESS = AddressParamType()


def _line_bound(value: str, named: str) -> int | str:
    try:
        return parse_line_bound(value, named)
    except ValueError as e:
        raise click.BadParameter(str(e))


def _controller(ctx: click.Context) -> PaneController:
    backend = create_backend(socket_path=ctx.obj.get("socket"))
    return PaneController(backend=backend, env=os.environ)


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine, turning panectl errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except PanectlError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)
    except ValueError as e:
        raise click.UsageError(str(e))
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Operation cancelled[/yellow]")
        sys.exit(EXIT_CANCELLED)


@click.group()
@click.option("--socket", "socket_path", default=None, help="tmux socket path (default: $PANECTL_TMUX_SOCKET)")
@click.option("--log-level", default=None, help="Log level (default: $PANECTL_LOG_LEVEL or INFO)")
@click.pass_context
def main(ctx: click.Context, socket_path: str | None, log_level: str | None) -> None:
    """Orchestrate tmux panes: provision, type, capture, wait.

    \b
    Examples:
        panectl panes
        panectl send work:dev-1.1 "make test"
        panectl wait work:dev-1.1 --marker DONE_123 --timeout 60
        panectl dev-session 2
    """
    setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["socket"] = socket_path or config.TMUX_SOCKET


@main.command(name="panes")
@click.option("--session", default=None, help="Only panes of this session")
@click.option("--window", default=None, help="Only panes of this window (requires --session)")
@click.pass_context
def panes_command(ctx: click.Context, session: str | None, window: str | None) -> None:
    """List panes with their foreground command."""
    if window is not None and session is None:
        raise click.UsageError("--window requires --session")
    window_key: str | int | None = int(window) if window is not None and window.isdigit() else window

    async def _list():
        return await _controller(ctx).observer.list_panes(session, window_key)

    panes = _run(_list())
    if not panes:
        console.print("[yellow]No panes found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Address", style="cyan")
    table.add_column("Window")
    table.add_column("Command")
    table.add_column("Size", justify="right")
    table.add_column("Active", justify="center")
    for pane in panes:
        table.add_row(
            str(pane.address),
            escape(pane.window_name),
            escape(pane.current_command),
            f"{pane.width}x{pane.height}",
            "*" if pane.active else "",
        )
    console.print(table)


@main.command(name="send")
@click.argument("address", type=ADDRESS)
@click.argument("text")
@click.option("--enter/--no-enter", default=True, help="Press Enter after the text")
@click.option("--keys", is_flag=True, help="Interpret TEXT as space separated key names instead of literal text")
@click.pass_context
def send_command(ctx: click.Context, address: PaneAddress, text: str, enter: bool, keys: bool) -> None:
    """Type TEXT into the pane at ADDRESS."""
    _run(_controller(ctx).dispatcher.send_text(address, text, press_enter=enter, literal=not keys))


@main.command(name="key")
@click.argument("address", type=ADDRESS)
@click.argument("symbol")
@click.pass_context
def key_command(ctx: click.Context, address: PaneAddress, symbol: str) -> None:
    """Press one named key (e.g. C-c, Escape) in the pane at ADDRESS."""
    _run(_controller(ctx).dispatcher.send_control(address, symbol))


@main.command(name="capture")
@click.argument("address", type=ADDRESS)
@click.option("--start", default="0", help="First line: 0 = top of screen, negative = scrollback, 'start'")
@click.option("--end", default="end", help="Last line: integer or 'end'")
@click.pass_context
def capture_command(ctx: click.Context, address: PaneAddress, start: str, end: str) -> None:
    """Print the text of the pane at ADDRESS."""
    snapshot = _run(_controller(ctx).observer.capture(address, _line_bound(start, "start"), _line_bound(end, "end")))
    click.echo(snapshot.text)


def _criterion(marker: str | None, shell: tuple[str, ...], delay: float | None) -> CompletionCriterion:
    chosen = [c for c in (marker, shell or None, delay) if c is not None]
    if len(chosen) != 1:
        raise click.UsageError("choose exactly one of --marker, --shell, --delay")
    if marker is not None:
        return OutputContainsMarker(marker)
    if shell:
        return ProcessNameReturnedToShell(shell)
    if delay < 0:
        raise click.BadParameter("must be non-negative", param_hint="--delay")
    return FixedDelay(delay)


def _report_outcome(outcome) -> None:
    style = {WaitState.SATISFIED: "green", WaitState.TIMED_OUT: "yellow"}.get(outcome.state, "red")
    err_console.print(
        f"[{style}]{outcome.state.value}[/{style}] after {outcome.elapsed:.2f}s ({outcome.polls} polls)"
    )
    if outcome.state is WaitState.TIMED_OUT:
        sys.exit(EXIT_TIMED_OUT)
    if outcome.state is WaitState.CANCELLED:
        sys.exit(EXIT_CANCELLED)


@main.command(name="wait")
@click.argument("address", type=ADDRESS)
@click.option("--marker", default=None, help="Done when the pane text contains MARKER")
@click.option("--shell", multiple=True, help="Done when the foreground process is this shell (repeatable)")
@click.option("--delay", type=float, default=None, help="Done after DELAY seconds")
@click.option("--interval", type=float, default=None, help="Poll interval in seconds")
@click.option("--timeout", type=float, default=None, help="Give up after TIMEOUT seconds")
@click.option("--print/--no-print", "print_output", default=False, help="Print the last capture")
@click.pass_context
def wait_command(
    ctx: click.Context,
    address: PaneAddress,
    marker: str | None,
    shell: tuple[str, ...],
    delay: float | None,
    interval: float | None,
    timeout: float | None,
    print_output: bool,
) -> None:
    """Wait until the command running in ADDRESS has finished.

    Exits 0 when satisfied and 2 on timeout.
    """
    criterion = _criterion(marker, shell, delay)
    outcome = _run(
        _controller(ctx).waiter.wait(address, criterion, poll_interval=interval, timeout=timeout)
    )
    if print_output and outcome.snapshot is not None:
        click.echo(outcome.snapshot.text)
    _report_outcome(outcome)


@main.command(name="run")
@click.argument("address", type=ADDRESS)
@click.argument("command")
@click.option("--interval", type=float, default=None, help="Poll interval in seconds")
@click.option("--timeout", type=float, default=None, help="Give up after TIMEOUT seconds")
@click.pass_context
def run_command(
    ctx: click.Context, address: PaneAddress, command: str, interval: float | None, timeout: float | None
) -> None:
    """Run COMMAND in the shell at ADDRESS and print its output."""
    result = _run(_controller(ctx).run_command(address, command, timeout=timeout, poll_interval=interval))
    for line in result.output_lines():
        click.echo(line)
    _report_outcome(result.outcome)


@main.group(name="buffer")
def buffer_group() -> None:
    """Named buffers shared by every controller on the tmux server."""


@buffer_group.command(name="write")
@click.argument("name")
@click.argument("data", required=False)
@click.pass_context
def buffer_write_command(ctx: click.Context, name: str, data: str | None) -> None:
    """Write DATA (or stdin) to buffer NAME."""
    payload = data.encode() if data is not None else click.get_binary_stream("stdin").read()
    _run(_controller(ctx).buffers.write(name, payload))


@buffer_group.command(name="read")
@click.argument("name")
@click.pass_context
def buffer_read_command(ctx: click.Context, name: str) -> None:
    """Print the content of buffer NAME."""
    payload = _run(_controller(ctx).buffers.read(name))
    click.get_binary_stream("stdout").write(payload)


@buffer_group.command(name="list")
@click.pass_context
def buffer_list_command(ctx: click.Context) -> None:
    """List buffers."""
    entries = _run(_controller(ctx).buffers.entries())
    if not entries:
        console.print("[yellow]No buffers.[/yellow]")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Preview")
    for entry in entries:
        preview = entry.payload[:40].decode(errors="replace").replace("\n", "\\n")
        table.add_row(escape(entry.name), str(len(entry.payload)), escape(preview))
    console.print(table)


@buffer_group.command(name="delete")
@click.argument("name")
@click.pass_context
def buffer_delete_command(ctx: click.Context, name: str) -> None:
    """Delete buffer NAME."""
    _run(_controller(ctx).buffers.delete(name))


@main.command(name="dev-session")
@click.argument("number", type=int, default=1)
@click.option("--session", default=None, help="Target session (default: current, else $PANECTL_DEFAULT_SESSION)")
@click.option("--agent-command", default=None, help="Command started in the left pane")
@click.option("--attach/--no-attach", default=True, help="Attach when running outside tmux")
@click.pass_context
def dev_session_command(
    ctx: click.Context, number: int, session: str | None, agent_command: str | None, attach: bool
) -> None:
    """Create window dev-NUMBER: agent on the left, shell on the right."""
    controller = _controller(ctx)
    result = _run(open_dev_session(controller, number, session=session, env=os.environ, agent_command=agent_command))
    verb = "Created" if result.created else "Switched to"
    console.print(f"[green]✓[/green] {verb} [cyan]{result.session}:{result.window}[/cyan]")
    console.print(f"[dim]  shell pane: {result.shell_pane}[/dim]")

    if attach and not inside_tmux():
        target = f"{result.session}:{result.window}"
        args = ["tmux"]
        if ctx.obj.get("socket"):
            args += ["-S", ctx.obj["socket"]]
        os.execvp("tmux", [*args, "attach-session", "-t", target])


@main.command(name="serve")
@click.option("--host", default=None, help="Bind address (default: $PANECTL_HTTP_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: $PANECTL_HTTP_PORT)")
@click.pass_context
def serve_command(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Serve the HTTP API."""
    from panectl.web.app import serve

    serve(_controller(ctx), host=host or config.HTTP_HOST, port=port or config.HTTP_PORT)


if __name__ == "__main__":
    main()
