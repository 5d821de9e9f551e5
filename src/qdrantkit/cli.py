"""CLI for schema migrations and filter compilation against Qdrant."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from .config.runtime import RuntimeSettings, get_settings
from .domain.filter_compiler import compile_filter
from .errors import QdrantKitError
from .models.migration import SchemaMigration
from .observability import configure_logging
from .wiring import build_migration_manager, build_vector_store


def load_migration_from_file(path: Path) -> SchemaMigration:
    """Load a serialized migration. Exits on missing file or invalid JSON/schema."""
    if not path.exists():
        print(f"Error: migration file not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        return SchemaMigration.model_validate_json(path.read_text(encoding="utf-8"))
    except ValueError as e:
        print(f"Error: invalid migration in {path}: {e}", file=sys.stderr)
        sys.exit(1)


def _compile_filter_command(raw: str, skip_invalid: bool) -> None:
    try:
        filters = json.loads(raw)
    except json.JSONDecodeError as e:
        print(f"Error: filter is not valid JSON: {e}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(filters, dict):
        print("Error: filter must be a JSON object.", file=sys.stderr)
        sys.exit(1)
    compiled = compile_filter(filters, skip_invalid=skip_invalid)
    body = compiled.model_dump(mode="json", exclude_none=True) if compiled is not None else None
    print(json.dumps(body, indent=2))


async def _run(args: argparse.Namespace, settings: RuntimeSettings) -> None:
    store = build_vector_store(settings)
    manager = build_migration_manager(settings, store=store)
    try:
        if args.command == "init":
            await manager.initialize()
            print(f"History collection ready: {manager.history_collection}")
        elif args.command == "apply":
            migration = load_migration_from_file(args.file)
            result = await manager.apply_migration(migration)
            print(f"Applied migration {result.version} ({len(result.applied_changes)} change(s)).")
            for change in result.applied_changes:
                print(f"  {change.action.value}: {change.collection}")
        elif args.command == "rollback":
            await manager.rollback_migration(args.version)
            print(f"Rolled back migration {args.version}.")
        elif args.command == "history":
            history = await manager.get_migration_history()
            if not history:
                print("No migrations recorded.")
            for m in history:
                print(f"{m.version}\t{m.name}\t{m.metadata.author}\t{m.metadata.created_at.isoformat()}")
        elif args.command == "collections":
            for name in await store.list_collections():
                print(name)
    finally:
        await store.close()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Manage Qdrant collection schema migrations")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init", help="Create the migration history collection")

    apply_parser = subparsers.add_parser("apply", help="Apply a migration from a JSON file")
    apply_parser.add_argument("file", type=Path, help="Path to a serialized migration")

    rollback_parser = subparsers.add_parser("rollback", help="Roll back an applied migration")
    rollback_parser.add_argument("version", help="Migration version, e.g. 1.2.0")

    subparsers.add_parser("history", help="List applied migrations in version order")

    compile_parser = subparsers.add_parser("compile-filter", help="Print the Qdrant filter for a JSON filter map")
    compile_parser.add_argument("filter", help='JSON object, e.g. \'{"price": {"$gte": 10}}\'')
    compile_parser.add_argument(
        "--skip-invalid",
        action="store_true",
        help="Drop malformed operator objects instead of failing",
    )

    subparsers.add_parser("collections", help="List collections")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return

    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        if args.command == "compile-filter":
            _compile_filter_command(args.filter, args.skip_invalid)
        else:
            asyncio.run(_run(args, settings))
    except (QdrantKitError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
