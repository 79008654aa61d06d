"""
mcpkit CLI.

Usage:
    mcpkit catalog                        # Browse the catalog, grouped by category
    mcpkit catalog --refresh --json       # Refresh first, print JSON
    mcpkit refresh                        # Re-fetch the registry now
    mcpkit watch                          # Refresh every N minutes (foreground)
    mcpkit agents list                    # Detected + user-added agents
    mcpkit agents add NAME PATH [--kind]  # Add an agent by config file path
    mcpkit agents remove ID               # Forget a user-added agent
    mcpkit install AGENT MCP --env K=V    # Add an MCP server to an agent config
    mcpkit uninstall AGENT MCP            # Remove it again
    mcpkit status AGENT MCP               # Is it configured?
    mcpkit config show                    # Show current config
    mcpkit config set KEY VALUE           # Set a config value
    mcpkit config get KEY                 # Get a config value
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Optional

from pydantic import BaseModel

from mcpkit.config import (
    CONFIG_KEYS,
    get_config_path,
    get_settings,
    load_yaml_config,
    save_yaml_config,
)
from mcpkit.core.service import McpKitService
from mcpkit.lib.logger import setup_logging
from mcpkit.lib.typed_errors import TypedError

INT_KEYS = {"page_size", "max_records", "refresh_interval_minutes"}
FLOAT_KEYS = {"request_timeout"}


# --- Helpers ---


def _parse_env_pairs(pairs: Optional[list[str]]) -> dict[str, str]:
    """Parse repeated KEY=VALUE arguments."""
    env: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            print(f"Error: --env expects KEY=VALUE, got '{pair}'")
            sys.exit(2)
        env[key.strip()] = value
    return env


def _print_json(data: Any) -> None:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    elif isinstance(data, list):
        data = [
            d.model_dump(mode="json", by_alias=True) if isinstance(d, BaseModel) else d
            for d in data
        ]
    print(json.dumps(data, indent=2))


def _fail(error: TypedError) -> None:
    """Print a typed error and exit non-zero."""
    print(f"{error.title}: {error.message}")
    if error.config_path:
        print(f"  Config: {error.config_path}")
    for var in error.missing:
        hint = f" - {var.description}" if var.description else ""
        print(f"  missing {var.key}{hint}")
    for line in error.details or []:
        print(f"  {line}")
    sys.exit(1)


async def _run(command: str, *args: Any) -> Any:
    """Run one service operation with a short-lived service."""
    async with McpKitService.create() as service:
        return await getattr(service, command)(*args)


# --- Catalog commands ---


def cmd_catalog(args: argparse.Namespace) -> None:
    """Show the catalog grouped by category."""

    async def load():
        async with McpKitService.create() as service:
            if args.refresh:
                refreshed = await service.refresh_catalog()
                if isinstance(refreshed, TypedError):
                    return refreshed
            return await service.get_catalog()

    catalog = asyncio.run(load())
    if isinstance(catalog, TypedError):
        _fail(catalog)

    if args.json:
        _print_json(catalog)
        return

    if not catalog.mcps:
        print("No MCP servers available.")
        return

    for category, records in catalog.grouped_by_category().items():
        print(f"\n{category} ({len(records)})")
        print("-" * 40)
        for record in records:
            mark = "*" if record.installed else " "
            version = f" {record.version}" if record.version else ""
            print(f" {mark} {record.id}{version}")
            if record.description:
                print(f"     {record.description[:100]}")
    print(f"\n{len(catalog.mcps)} MCP servers. * = installed")


def cmd_refresh(args: argparse.Namespace) -> None:
    """Re-fetch the registry through the source chain."""
    result = asyncio.run(_run("refresh_catalog"))
    if isinstance(result, TypedError):
        _fail(result)
    print(f"Registry refreshed from {result.source}: {result.count} MCP servers")


def cmd_watch(args: argparse.Namespace) -> None:
    """Refresh the registry now and then every interval, until interrupted."""
    from mcpkit.core.scheduler import init_scheduler, stop_scheduler

    interval = args.interval or get_settings().refresh_interval_minutes

    async def watch():
        async with McpKitService.create() as service:
            await init_scheduler(service, interval_minutes=interval, run_now=True)
            try:
                await asyncio.Event().wait()
            finally:
                await stop_scheduler()

    print(f"Refreshing registry every {interval} minutes. Ctrl+C to stop.")
    try:
        asyncio.run(watch())
    except KeyboardInterrupt:
        print("\nStopped.")


# --- Agent commands ---


def cmd_agents_list(args: argparse.Namespace) -> None:
    agents = asyncio.run(_run("list_agents"))
    if isinstance(agents, TypedError):
        _fail(agents)

    if args.json:
        _print_json(agents)
        return

    if not agents:
        print("No agents found. Add one with: mcpkit agents add NAME PATH")
        return

    for agent in agents:
        path = agent.mcp_config_path or "(no config file)"
        print(f"  {agent.id:<24} {agent.name:<20} [{agent.type}] {path}")


def cmd_agents_add(args: argparse.Namespace) -> None:
    result = asyncio.run(_run("add_persisted_agent", args.name, args.path, args.kind))
    if isinstance(result, TypedError):
        _fail(result)
    print(f"Added agent {result.agent.id} ({result.agent.mcp_config_path})")


def cmd_agents_remove(args: argparse.Namespace) -> None:
    result = asyncio.run(_run("remove_persisted_agent", args.agent_id))
    if isinstance(result, TypedError):
        _fail(result)
    print(f"Removed agent {args.agent_id}")


# --- Install commands ---


def cmd_install(args: argparse.Namespace) -> None:
    env_vars = _parse_env_pairs(args.env)
    result = asyncio.run(_run("install", args.agent_id, args.mcp_id, env_vars))
    if isinstance(result, TypedError):
        _fail(result)

    if not result.changed:
        print(f"{args.mcp_id} is already configured for {args.agent_id}")
    else:
        print(f"Installed {args.mcp_id} into {result.mcp_config_path}")
    if result.npm_package:
        print(f"  Package: {result.npm_package}@{result.version}")


def cmd_uninstall(args: argparse.Namespace) -> None:
    result = asyncio.run(_run("uninstall", args.agent_id, args.mcp_id))
    if isinstance(result, TypedError):
        _fail(result)
    print(f"Removed {args.mcp_id} from {result.mcp_config_path}")


def cmd_status(args: argparse.Namespace) -> None:
    status = asyncio.run(_run("get_install_status", args.agent_id, args.mcp_id))
    if isinstance(status, TypedError):
        _fail(status)

    if args.json:
        _print_json(status)
    elif status.installed:
        print(f"{args.mcp_id} is installed for {args.agent_id}")
        print(json.dumps(status.config, indent=2))
    else:
        print(f"{args.mcp_id} is not installed for {args.agent_id}")


# --- Config commands ---


def cmd_config(args: argparse.Namespace) -> None:
    """Config management: show, set, get."""
    action = getattr(args, "action", None)

    if action == "show":
        _config_show()
    elif action == "set":
        _config_set(args.key, args.value)
    elif action == "get":
        _config_get(args.key)
    else:
        print("Usage: mcpkit config {show|set|get}")


def _config_show() -> None:
    """Show effective settings and where overrides come from."""
    settings = get_settings()
    config = load_yaml_config(settings.home)

    print(f"\nConfig: {get_config_path(settings.home)}")
    print("-" * 40)
    print(f"  home: {settings.home}")
    print(f"  registry cache: {settings.cache_path}")
    print(f"  agents file: {settings.agents_path}")
    for key in sorted(CONFIG_KEYS):
        value = getattr(settings, key)
        if os.environ.get(f"MCPKIT_{key.upper()}"):
            source = " (env)"
        elif key in config:
            source = " (config.yaml)"
        else:
            source = ""
        print(f"  {key}: {value}{source}")


def _config_set(key: str, value: str) -> None:
    """Set a config value in config.yaml."""
    if key not in CONFIG_KEYS:
        print(f"Unknown key: {key}")
        print(f"Valid keys: {', '.join(sorted(CONFIG_KEYS))}")
        sys.exit(1)

    parsed: Any = value
    try:
        if key in INT_KEYS:
            parsed = int(value)
        elif key in FLOAT_KEYS:
            parsed = float(value)
    except ValueError:
        print(f"Error: {key} must be a number, got '{value}'")
        sys.exit(1)

    home = get_settings().home
    config = load_yaml_config(home)
    config[key] = parsed
    save_yaml_config(home, config)
    print(f"Set {key} = {parsed}")


def _config_get(key: str) -> None:
    """Get a single effective config value."""
    if key not in CONFIG_KEYS:
        print(f"Unknown key: {key}")
        sys.exit(1)
    print(getattr(get_settings(), key))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="mcpkit",
        description="mcpkit - install MCP servers into your coding agents",
    )
    parser.add_argument("--log-level", help="Override log level (DEBUG, INFO, ...)")
    subparsers = parser.add_subparsers(dest="command")

    # catalog
    catalog_parser = subparsers.add_parser("catalog", help="Browse available MCP servers")
    catalog_parser.add_argument("--refresh", action="store_true", help="Refresh the registry first")
    catalog_parser.add_argument("--json", action="store_true", help="Print JSON")

    # refresh / watch
    subparsers.add_parser("refresh", help="Refresh the registry now")
    watch_parser = subparsers.add_parser("watch", help="Refresh the registry periodically")
    watch_parser.add_argument(
        "--interval", type=int, default=None,
        help="Minutes between refreshes (default: refresh_interval_minutes)",
    )

    # agents subcommand
    agents_parser = subparsers.add_parser("agents", help="Agent management")
    agents_sub = agents_parser.add_subparsers(dest="action")
    agents_list_parser = agents_sub.add_parser("list", help="List agents")
    agents_list_parser.add_argument("--json", action="store_true", help="Print JSON")
    agents_add_parser = agents_sub.add_parser("add", help="Add an agent by config file")
    agents_add_parser.add_argument("name", help="Display name")
    agents_add_parser.add_argument("path", help="Path to the agent's MCP config file")
    agents_add_parser.add_argument(
        "--kind", default=None,
        help="Config layout (e.g. cursor, vscode); default: generic mcpServers",
    )
    agents_remove_parser = agents_sub.add_parser("remove", help="Remove a user-added agent")
    agents_remove_parser.add_argument("agent_id", help="Agent id (custom-...)")

    # install / uninstall / status
    install_parser = subparsers.add_parser("install", help="Install an MCP server into an agent")
    install_parser.add_argument("agent_id", help="Agent id")
    install_parser.add_argument("mcp_id", help="MCP server id")
    install_parser.add_argument(
        "--env", "-e", action="append", metavar="KEY=VALUE",
        help="Environment variable for the server (repeatable)",
    )
    uninstall_parser = subparsers.add_parser("uninstall", help="Remove an MCP server from an agent")
    uninstall_parser.add_argument("agent_id", help="Agent id")
    uninstall_parser.add_argument("mcp_id", help="MCP server id")
    status_parser = subparsers.add_parser("status", help="Show whether an MCP server is installed")
    status_parser.add_argument("agent_id", help="Agent id")
    status_parser.add_argument("mcp_id", help="MCP server id")
    status_parser.add_argument("--json", action="store_true", help="Print JSON")

    # config subcommand
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_sub = config_parser.add_subparsers(dest="action")
    config_sub.add_parser("show", help="Show current config")
    config_set_parser = config_sub.add_parser("set", help="Set a config value")
    config_set_parser.add_argument("key", help="Config key")
    config_set_parser.add_argument("value", help="Config value")
    config_get_parser = config_sub.add_parser("get", help="Get a config value")
    config_get_parser.add_argument("key", help="Config key")

    args = parser.parse_args(argv)
    setup_logging(level=args.log_level)

    if args.command == "catalog":
        cmd_catalog(args)
    elif args.command == "refresh":
        cmd_refresh(args)
    elif args.command == "watch":
        cmd_watch(args)
    elif args.command == "agents":
        if args.action == "list":
            cmd_agents_list(args)
        elif args.action == "add":
            cmd_agents_add(args)
        elif args.action == "remove":
            cmd_agents_remove(args)
        else:
            agents_parser.print_help()
    elif args.command == "install":
        cmd_install(args)
    elif args.command == "uninstall":
        cmd_uninstall(args)
    elif args.command == "status":
        cmd_status(args)
    elif args.command == "config":
        cmd_config(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
