"""Padchat client CLI.

Usage:
    padchat-client send getMyInfo                     # Print the result data
    padchat-client send getContact --data '{"userId": "wxid_1"}'
    padchat-client send init --raw                    # Print the full reply
    padchat-client listen                             # Print every event as a JSON line
    padchat-client listen -e push -e login --count 10

The gateway address comes from --url, then PADCHAT_URL, then the default.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
from pydantic import BaseModel

from .bus import ClientEvent
from .client import PadchatClient
from .config import ClientConfig
from .errors import PadchatError


def to_jsonable(value: Any) -> Any:
    """Convert bus payloads (models, exceptions, tuples) to JSON-friendly values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude={"kind"})
    if isinstance(value, BaseException):
        return {"error": type(value).__name__, "message": str(value)}
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [to_jsonable(v) for v in value]
    if value is None or isinstance(value, str | int | float | bool):
        return value
    return str(value)


def _dump(value: Any) -> str:
    return json.dumps(to_jsonable(value), ensure_ascii=False)


@click.group()
@click.option("--url", envvar="PADCHAT_URL", default=None, help="Gateway URL (ws://host:port)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, url: str | None, verbose: bool) -> None:
    """Padchat gateway client."""
    # Logging to stderr (results go to stdout)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        config = ClientConfig.from_env().with_overrides(url=url)
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    ctx.obj = config


@main.command()
@click.argument("command")
@click.option("--data", "data_json", default=None, help="Command fields as a JSON object")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for the reply")
@click.option("--raw", is_flag=True, help="Print the full reply instead of its data")
@click.pass_obj
def send(
    config: ClientConfig,
    command: str,
    data_json: str | None,
    timeout: float | None,
    raw: bool,
) -> None:
    """Send COMMAND and print the gateway's reply."""
    payload: dict[str, Any] = {}
    if data_json:
        try:
            payload = json.loads(data_json)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"invalid JSON: {e}", param_hint="--data") from e
        if not isinstance(payload, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--data")

    async def run() -> Any:
        async with PadchatClient(config=config) as client:
            if raw:
                return await client.request(command, payload, timeout)
            return await client.send(command, payload, timeout)

    try:
        result = asyncio.run(run())
    except PadchatError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(_dump(result))


@main.command()
@click.option(
    "-e",
    "--events",
    "event_names",
    multiple=True,
    help="Only print these events (repeatable). Default: all",
)
@click.option("--count", type=int, default=None, help="Exit after this many events")
@click.pass_obj
def listen(config: ClientConfig, event_names: tuple[str, ...], count: int | None) -> None:
    """Print bus events as JSON lines until interrupted."""

    async def run() -> None:
        async with PadchatClient(config=config) as client:
            seen = 0
            async for name, payload in client.bus.stream():
                if name == ClientEvent.CLOSE.value:
                    click.echo("Connection closed", err=True)
                    return
                if event_names and name not in event_names:
                    continue
                click.echo(_dump({"event": name, "payload": payload}))
                seen += 1
                if count is not None and seen >= count:
                    return

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    except PadchatError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
