"""CLI entry point for aether-chat developer tooling."""

from __future__ import annotations

import argparse
import asyncio
import sys

from aether_chat.app import AetherChatApp
from aether_chat.config import AppConfig, load_config
from aether_chat.core.session import ChatSession
from aether_chat.errors import AetherError
from aether_chat.log import setup_logging


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="aether-chat",
        description="Conversation engine for embeddable AI chat widgets",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    _add_config_args(check_parser)

    snapshot_parser = subparsers.add_parser("snapshot", help="Print the widget bootstrap config")
    _add_config_args(snapshot_parser)
    target = snapshot_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--integration", help="Integration id (compact form)")
    target.add_argument("--bot", help="Bot id (legacy inline form)")
    snapshot_parser.add_argument("--legacy", action="store_true", help="Inline integration fields")

    playground_parser = subparsers.add_parser("playground", help="Chat with a bot in the terminal")
    _add_config_args(playground_parser)
    playground_target = playground_parser.add_mutually_exclusive_group(required=True)
    playground_target.add_argument("--bot", help="Bot id")
    playground_target.add_argument("--integration", help="Integration id")
    playground_parser.add_argument("--department", help="Department name (with --integration)")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config = _load(args.config, args.env)
    setup_logging(config.log_level, json_output=config.log_json)

    if args.command == "config-check":
        _check_config(config, args.config)
    elif args.command == "snapshot":
        asyncio.run(_snapshot(config, args.integration, args.bot, args.legacy))
    elif args.command == "playground":
        asyncio.run(_playground(config, args.bot, args.integration, args.department))


def _load(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Copy config.example.yaml to config.yaml and edit it")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config: AppConfig, config_path: str) -> None:
    """Print a configuration summary."""
    print(f"Configuration valid: {config_path}")
    print(f"  Plan: {config.plan.name} (departments={config.plan.allow_departmental_bots})")
    print(f"  Bots configured: {len(config.bots)}")
    for bot in config.bots:
        print(f"    - {bot.id} [{bot.provider}: {bot.model}] actions={len(bot.actions)}")
    print(f"  Integrations configured: {len(config.integrations)}")
    for integration in config.integrations:
        departments = ", ".join(d.department_name for d in integration.department_bots) or "(none)"
        print(f"    - {integration.id} -> {integration.bot_id} departments: {departments}")
    print(f"  Widget base URL: {config.widget.base_url or '(not set)'}")
    print(f"  Public key: {'set' if config.widget.public_key else 'NOT SET'}")


async def _snapshot(config: AppConfig, integration_id: str | None, bot_id: str | None, legacy: bool) -> None:
    app = AetherChatApp(config)
    try:
        snapshot = await app.build_snapshot(integration_id=integration_id, bot_id=bot_id, legacy=legacy)
    except AetherError as e:
        print(f"{e.category}: {e.detail}", file=sys.stderr)
        sys.exit(1)
    for warning in snapshot.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    print(f"CSS: {snapshot.css_url}")
    print(f"JS:  {snapshot.js_url}")
    print(snapshot.to_json())


async def _playground(
    config: AppConfig,
    bot_id: str | None,
    integration_id: str | None,
    department: str | None,
) -> None:
    app = AetherChatApp(config)
    try:
        if integration_id:
            session = await app.open_session(integration_id, "cli", department)
        else:
            session = await app.open_playground(bot_id)
    except AetherError as e:
        print(f"{e.category}: {e.detail}", file=sys.stderr)
        sys.exit(1)

    print(f"[{session.bot.name}] {session.messages[-1].text}")
    print("Type /clear to start over, /quit to exit.")
    try:
        while True:
            text = await asyncio.to_thread(input, "> ")
            if text.strip() == "/quit":
                break
            if text.strip() == "/clear":
                await session.clear()
                print(f"[{session.bot.name}] {session.messages[-1].text}")
                continue
            reply = await session.send(text)
            if reply is not None:
                _print_reply(session, reply.text, reply.action_invoked)
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        await app.stop()


def _print_reply(session: ChatSession, text: str, action_id: str | None) -> None:
    print(f"[{session.bot.name}] {text}")
    if action_id:
        action = session.bot.get_action(action_id)
        if action is not None:
            print(f"  -> {action.type.value}: {action.label} ({action.payload})")
        else:
            print(f"  -> unknown action {action_id}")


if __name__ == "__main__":
    main()
