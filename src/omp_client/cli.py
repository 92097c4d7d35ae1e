"""OMP client CLI.

Connection options default to the OMP_* environment variables.

Usage:
    omp-client login                          # Check credentials, show role
    omp-client targets                        # List all targets
    omp-client target <id>                    # Show one target
    omp-client create-target -n web -H 10.0.0.0/24
    omp-client create-port-list -n web -r T:80,T:443
    omp-client add-port-range <list-id> 8000 8080
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import click

from .errors import OMPError
from .sdk.client import OMPClient
from .sdk.transport import ClientTransportConfig

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

format_option = click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)


def truncate(text: str | None, max_len: int = 50) -> str:
    """Truncate text for display."""
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


@click.group()
@click.option("--host", envvar="OMP_HOST", default="127.0.0.1", help="Manager host")
@click.option("--port", envvar="OMP_PORT", default=9390, type=int, help="Manager port")
@click.option("--username", "-u", envvar="OMP_USERNAME", help="Login name")
@click.option("--password", "-p", envvar="OMP_PASSWORD", help="Login password")
@click.option("--verify/--no-verify", envvar="OMP_VERIFY", default=False, help="Verify server certificate")
@click.option("--cafile", envvar="OMP_CAFILE", type=click.Path(exists=True), help="CA bundle for --verify")
@click.option("--timeout", default=120.0, type=float, help="Per-command timeout in seconds (0 disables)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(
    ctx: click.Context,
    host: str,
    port: int,
    username: str | None,
    password: str | None,
    verify: bool,
    cafile: str | None,
    timeout: float,
    verbose: bool,
) -> None:
    """Talk to an OMP manager daemon."""
    # Protocol output goes to stdout, logs to stderr
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.obj = {
        "config": ClientTransportConfig(
            host=host,
            port=port,
            verify=verify,
            cafile=cafile,
            command_timeout=timeout or None,
        ),
        "username": username,
        "password": password,
    }


def _run(ctx: click.Context, action: Callable[[OMPClient], Awaitable[Any]]) -> Any:
    """Connect, log in, run one action and disconnect."""

    async def runner() -> Any:
        client = OMPClient(
            ctx.obj["config"],
            username=ctx.obj["username"],
            password=ctx.obj["password"],
        )
        async with client:
            await client.login()
            return await action(client)

    try:
        return asyncio.run(runner())
    except OMPError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except ConnectionError as e:
        click.echo(f"Connection failed: {e}", err=True)
        sys.exit(1)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


@main.command()
@format_option
@click.pass_context
def login(ctx: click.Context, output_format: str) -> None:
    """Authenticate and show the session's role."""

    async def action(client: OMPClient) -> Any:
        return client.user

    user = _run(ctx, action)
    if output_format == FORMAT_JSON:
        _echo_json(user.model_dump())
        return
    click.echo(f"Role:     {user.role or 'unknown'}")
    click.echo(f"Timezone: {user.timezone or 'N/A'}")
    click.echo(f"Severity: {user.severity or 'N/A'}")


def _print_targets(result: Any, output_format: str) -> None:
    if output_format == FORMAT_JSON:
        _echo_json(result.model_dump(exclude={"targets": {"__all__": {"raw"}}}))
        return

    if not result.targets:
        click.echo("No targets found.")
        return

    click.echo(f"{'ID':<36} {'Name':<20} {'Hosts':<30}")
    click.echo("-" * 88)
    for target in result.targets:
        click.echo(f"{target.id:<36} {truncate(target.name, 20):<20} {truncate(target.hosts, 30):<30}")
    click.echo(f"\nTotal: {result.target_count} target(s)")


@main.command()
@format_option
@click.pass_context
def targets(ctx: click.Context, output_format: str) -> None:
    """List all targets."""
    result = _run(ctx, lambda client: client.get_all_targets())
    _print_targets(result, output_format)


@main.command()
@click.argument("target_id")
@format_option
@click.pass_context
def target(ctx: click.Context, target_id: str, output_format: str) -> None:
    """Show one target."""
    result = _run(ctx, lambda client: client.get_target(target_id))
    _print_targets(result, output_format)


def _print_created(result: Any, output_format: str) -> None:
    if output_format == FORMAT_JSON:
        _echo_json(result.model_dump())
        return
    click.echo(f"Created {result.command.removeprefix('create_')} {result.id}")


@main.command("create-target")
@click.option("--name", "-n", required=True, help="Target name")
@click.option("--hosts", "-H", default="", help="Hosts, comma separated or CIDR")
@click.option("--comment", help="Comment")
@click.option("--exclude-hosts", help="Hosts to exclude")
@click.option("--alive-tests", help='Alive test, e.g. "ICMP Ping"')
@click.option("--port-range", help="Port range, e.g. 1-1024")
@click.option("--port-list", help="Port list ID")
@format_option
@click.pass_context
def create_target(
    ctx: click.Context,
    name: str,
    hosts: str,
    comment: str | None,
    exclude_hosts: str | None,
    alive_tests: str | None,
    port_range: str | None,
    port_list: str | None,
    output_format: str,
) -> None:
    """Create a scan target."""
    result = _run(
        ctx,
        lambda client: client.create_target(
            name=name,
            hosts=hosts,
            comment=comment,
            exclude_hosts=exclude_hosts,
            alive_tests=alive_tests,
            port_range=port_range,
            port_list=port_list,
        ),
    )
    _print_created(result, output_format)


@main.command("create-port-list")
@click.option("--name", "-n", required=True, help="Port list name")
@click.option("--port-range", "-r", required=True, help="Ranges, e.g. T:1-1024,U:53")
@click.option("--comment", help="Comment")
@format_option
@click.pass_context
def create_port_list(
    ctx: click.Context, name: str, port_range: str, comment: str | None, output_format: str
) -> None:
    """Create a port list."""
    result = _run(ctx, lambda client: client.create_port_list(name, port_range, comment=comment))
    _print_created(result, output_format)


@main.command("add-port-range")
@click.argument("port_list_id")
@click.argument("start", type=int)
@click.argument("end", type=int)
@click.option("--type", "port_type", type=click.Choice(["tcp", "udp"]), default="tcp")
@format_option
@click.pass_context
def add_port_range(
    ctx: click.Context, port_list_id: str, start: int, end: int, port_type: str, output_format: str
) -> None:
    """Add a port range to an existing port list."""
    result = _run(ctx, lambda client: client.add_port_range(port_list_id, start, end, port_type))
    _print_created(result, output_format)


if __name__ == "__main__":
    main()
