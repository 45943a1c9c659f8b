from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Callable
from typing import Any

import click
import httpx
from loguru import logger

from eigenlayer_nodes.adapters.eigenlayer_adapter.adapter import EigenLayerAdapter
from eigenlayer_nodes.adapters.eigenlayer_adapter.operations import list_operations
from eigenlayer_nodes.core.clients.EigenLayerApiClient import EigenLayerApiClient
from eigenlayer_nodes.core.config import (
    get_api_credential,
    get_connection_credential,
    get_poller_state_path,
    get_signing_credential,
    load_config,
)
from eigenlayer_nodes.core.constants.contracts import NETWORK_PROFILES
from eigenlayer_nodes.core.errors import EigenLayerError
from eigenlayer_nodes.core.utils.web3 import validate_connection, web3_from_credential
from eigenlayer_nodes.triggers.event_poller import (
    EVENT_SOURCES,
    EventPoller,
    JsonCursorStore,
)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _parse_params(
    pairs: tuple[str, ...], params_json: str | None, hint: str = "--param"
) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if params_json:
        try:
            loaded = json.loads(params_json)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(
                f"not valid JSON: {exc}", param_hint="--params-json"
            ) from exc
        if not isinstance(loaded, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--params-json")
        params.update(loaded)
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint=hint)
        params[key.strip()] = value
    return params


@click.group(name="eigenlayer-nodes", help="EigenLayer restaking operations and event polling.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to config.json.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
def cli(config_path: str | None, log_level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=str(log_level).upper())
    if config_path is not None:
        load_config(config_path, require_exists=True)


@cli.command(name="networks", help="Show supported networks and contract addresses.")
def networks_cmd() -> None:
    _echo_json(
        {
            network: {
                "chainId": profile.chain_id,
                "contracts": dict(profile.contract_addresses),
            }
            for network, profile in NETWORK_PROFILES.items()
        }
    )


@cli.command(name="operations", help="List resources and their operations.")
@click.argument("resource", required=False)
def operations_cmd(resource: str | None) -> None:
    grouped: dict[str, list[dict[str, Any]]] = {}
    for d in list_operations(resource):
        grouped.setdefault(d.resource, []).append(
            {
                "operation": d.operation,
                "kind": d.kind,
                "params": [p.name for p in d.params],
            }
        )
    _echo_json(grouped)


@cli.command(name="check-connection", help="Check the configured RPC endpoint.")
def check_connection_cmd() -> None:
    async def _run() -> dict[str, Any]:
        async with web3_from_credential(get_connection_credential()) as web3:
            return await validate_connection(web3)

    try:
        result = asyncio.run(_run())
    except EigenLayerError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_json(result)
    if not result.get("valid"):
        sys.exit(1)


@cli.command(name="run", help="Run one EigenLayer operation.")
@click.argument("resource")
@click.argument("operation")
@click.option("--param", "pairs", multiple=True, help="key=value (repeatable).")
@click.option("--params-json", default=None, help="JSON object of parameters.")
@click.option("--continue-on-fail", is_flag=True, default=False)
def run_cmd(
    resource: str,
    operation: str,
    pairs: tuple[str, ...],
    params_json: str | None,
    continue_on_fail: bool,
) -> None:
    params = _parse_params(pairs, params_json)

    async def _run() -> list[dict[str, Any]]:
        adapter = EigenLayerAdapter(get_connection_credential(), get_signing_credential())
        try:
            return await adapter.execute_items(
                [{"resource": resource, "operation": operation, "params": params}],
                continue_on_fail=continue_on_fail,
            )
        finally:
            await adapter.close()

    try:
        results = asyncio.run(_run())
    except EigenLayerError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_json(results)


@cli.command(name="poll", help="Run one event-poller tick.")
@click.argument("event", type=click.Choice(sorted(EVENT_SOURCES)))
@click.option("--filter-address", default=None, help="Only events mentioning this address.")
@click.option("--state-path", default=None, help="Cursor file (defaults to config).")
def poll_cmd(event: str, filter_address: str | None, state_path: str | None) -> None:
    store = JsonCursorStore(state_path or get_poller_state_path())

    async def _run() -> list[dict[str, Any]] | None:
        poller = EventPoller(
            get_connection_credential(),
            event,
            filter_address=filter_address,
            cursor_store=store,
        )
        try:
            return await poller.poll()
        finally:
            await poller.close()

    try:
        records = asyncio.run(_run())
    except EigenLayerError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_json(records or [])


@cli.group(name="sign", help="Produce EIP-712 signatures with the configured wallet.")
def sign_group() -> None:
    pass


def _sign(build: Callable[[EigenLayerAdapter], dict[str, Any]]) -> None:
    async def _run() -> dict[str, Any]:
        adapter = EigenLayerAdapter(get_connection_credential(), get_signing_credential())
        try:
            return build(adapter)
        finally:
            await adapter.close()

    try:
        record = asyncio.run(_run())
    except EigenLayerError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_json(record)


@sign_group.command(name="delegation-approval", help="Approver signature for delegateTo.")
@click.argument("staker")
@click.argument("operator")
@click.option("--salt", default=None, help="32-byte hex salt (random when omitted).")
@click.option("--expiry", type=int, default=None, help="Unix expiry (24h from now when omitted).")
def sign_delegation_cmd(
    staker: str, operator: str, salt: str | None, expiry: int | None
) -> None:
    _sign(
        lambda adapter: adapter.sign_delegation_approval(
            staker, operator, salt=salt, expiry=expiry
        )
    )


@sign_group.command(name="avs-registration", help="Operator signature for registerOperatorToAvs.")
@click.argument("avs")
@click.option("--salt", default=None, help="32-byte hex salt (random when omitted).")
@click.option("--expiry", type=int, default=None, help="Unix expiry (24h from now when omitted).")
def sign_avs_cmd(avs: str, salt: str | None, expiry: int | None) -> None:
    _sign(lambda adapter: adapter.sign_avs_registration(avs, salt=salt, expiry=expiry))


@cli.group(name="api", help="Query the EigenLayer REST API.")
def api_group() -> None:
    pass


@api_group.command(name="get", help="GET a path and print the JSON response.")
@click.argument("path")
@click.option("--query", "pairs", multiple=True, help="key=value query parameter (repeatable).")
def api_get_cmd(path: str, pairs: tuple[str, ...]) -> None:
    params = _parse_params(pairs, None, "--query")

    async def _run() -> Any:
        client = EigenLayerApiClient(get_api_credential())
        try:
            return await client.get(path, **params)
        finally:
            await client.close()

    try:
        data = asyncio.run(_run())
    except EigenLayerError as exc:
        raise click.ClickException(str(exc)) from exc
    except httpx.HTTPError as exc:
        raise click.ClickException(f"API request failed: {exc}") from exc
    _echo_json(data)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
