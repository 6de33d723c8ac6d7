"""
Mnemo Command Line Interface

Replays transcripts through a session and maintains the identity store.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from mnemo.conversation.context import (
    build_farewell,
    build_greeting,
    build_introduction,
    format_person_context,
)
from mnemo.conversation.types import ProcessAction
from mnemo.core.config import LogLevel, MnemoConfig, set_config
from mnemo.core.logging import setup_logging
from mnemo.identity.factory import IdentityStoreFactory
from mnemo.identity.store import IdentityStore, ReadOnlyStoreError
from mnemo.runtime import MnemoRuntime, TranscriptLineError


def build_parser() -> tuple[argparse.ArgumentParser, argparse.ArgumentParser]:
    parser = argparse.ArgumentParser(
        prog="mnemo",
        description="Mnemo - speaker memory for wearable conversation assistants",
    )
    parser.add_argument("--config", type=Path, help="JSON config file")
    parser.add_argument("--store", help="Identity store URL (memory://, file://DIR, sqlite:///PATH)")
    parser.add_argument("--provider", choices=["openai", "anthropic", "local", "mock"])
    parser.add_argument("--model", help="Model name")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, ...)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    replay_parser = subparsers.add_parser("replay", help="Replay a transcript file")
    replay_parser.add_argument("file", type=Path, help="File with one 'SPEAKER: text' per line")

    match_parser = subparsers.add_parser("match", help="Match a snippet to a known person")
    match_parser.add_argument("text", help="Conversation snippet")

    people_parser = subparsers.add_parser("people", help="Identity store operations")
    people_sub = people_parser.add_subparsers(dest="people_command")

    people_sub.add_parser("list", help="List known people")

    people_show = people_sub.add_parser("show", help="Show a person")
    people_show.add_argument("name", help="Person name")

    people_delete = people_sub.add_parser("delete", help="Delete a person")
    people_delete.add_argument("name", help="Person name")

    people_sub.add_parser("stats", help="Store statistics")

    people_export = people_sub.add_parser("export", help="Export all people as JSON")
    people_export.add_argument("-o", "--output", type=Path, help="Output file")

    people_import = people_sub.add_parser("import", help="Import people from JSON")
    people_import.add_argument("file", type=Path, help="Export document")

    return parser, people_parser


def load_config(args: argparse.Namespace) -> MnemoConfig:
    config = MnemoConfig.from_file(args.config) if args.config else MnemoConfig()
    if args.store:
        config.storage.url = args.store
    if args.provider:
        config.llm.provider = args.provider
    if args.model:
        config.llm.model = args.model
    if args.log_level:
        config.monitoring.log_level = LogLevel(args.log_level.upper())
    return config


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser, people_parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    config = load_config(args)
    set_config(config)
    setup_logging(config.monitoring.log_level.value, config.monitoring.log_format)

    try:
        if args.command == "replay":
            return asyncio.run(cmd_replay(config, args.file))

        elif args.command == "match":
            return asyncio.run(cmd_match(config, args.text))

        elif args.command == "people":
            store = IdentityStoreFactory.from_url(
                config.storage.url, read_only=config.storage.read_only
            )
            if args.people_command == "list":
                return asyncio.run(cmd_people_list(store))
            elif args.people_command == "show":
                return asyncio.run(cmd_people_show(store, args.name))
            elif args.people_command == "delete":
                return asyncio.run(cmd_people_delete(store, args.name))
            elif args.people_command == "stats":
                return asyncio.run(cmd_people_stats(store))
            elif args.people_command == "export":
                return asyncio.run(cmd_people_export(store, args.output))
            elif args.people_command == "import":
                return asyncio.run(cmd_people_import(store, args.file))
            else:
                people_parser.print_help()
                return 0

    except (ValueError, OSError, ReadOnlyStoreError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


async def cmd_replay(config: MnemoConfig, path: Path) -> int:
    """Replay a transcript file through one session."""
    lines = path.read_text(encoding="utf-8").splitlines()

    async with MnemoRuntime(config) as runtime:
        try:
            result = await runtime.replay(lines)
        except TranscriptLineError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    for event in result.events:
        print(f"[{event.speaker}] {event.text}")
        for person in event.new_people:
            print(build_introduction(person))
        if event.result.action == ProcessAction.SPEAKER_RECOGNIZED:
            print(build_greeting(event.result.person))

    farewell = build_farewell(result.end)
    print(farewell or "No conversation saved.")
    return 0


async def cmd_match(config: MnemoConfig, text: str) -> int:
    """Match a snippet against known people."""
    async with MnemoRuntime(config) as runtime:
        person = await runtime.match_speaker(text)

    if person is None:
        print("No match")
        return 1
    print(format_person_context(person))
    return 0


async def cmd_people_list(store: IdentityStore) -> int:
    """List known people."""
    async with store:
        people = await store.get_all_people()

    if not people:
        print("No people stored")
    for person in people:
        last_met = person.last_met.strftime("%Y-%m-%d %H:%M") if person.last_met else "never"
        print(
            f"- {person.name} (speaker {person.speaker_id or '?'}, "
            f"{len(person.conversation_history)} conversations, last met {last_met})"
        )
    return 0


async def cmd_people_show(store: IdentityStore, name: str) -> int:
    """Show one person as JSON."""
    async with store:
        person = await store.find_person_by_name(name)

    if person is None:
        print(f"Not found: {name}", file=sys.stderr)
        return 1
    print(json.dumps(person.to_dict(), indent=2))
    return 0


async def cmd_people_delete(store: IdentityStore, name: str) -> int:
    """Delete a person."""
    async with store:
        deleted = await store.delete_person(name)

    if not deleted:
        print(f"Not found: {name}", file=sys.stderr)
        return 1
    print(f"Deleted {name}")
    return 0


async def cmd_people_stats(store: IdentityStore) -> int:
    """Print store statistics."""
    async with store:
        stats = await store.get_stats()
    print(json.dumps(stats.to_dict(), indent=2))
    return 0


async def cmd_people_export(store: IdentityStore, output: Optional[Path]) -> int:
    """Export all people."""
    async with store:
        document = await store.export_data()

    if output:
        output.write_text(document, encoding="utf-8")
        print(f"Exported to {output}")
    else:
        print(document)
    return 0


async def cmd_people_import(store: IdentityStore, path: Path) -> int:
    """Import people from an export document."""
    document = path.read_text(encoding="utf-8")
    async with store:
        count = await store.import_data(document)
    print(f"Imported {count} people")
    return 0


if __name__ == "__main__":
    sys.exit(main())
