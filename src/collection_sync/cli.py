"""Command-line entry point.

Usage:
    collection-sync serve --config config.yaml
    collection-sync sync --config config.yaml [--source SOURCE_ID]
    collection-sync validate path/to/galaxy.yml
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from collection_sync.config import AppConfig, load_config
from collection_sync.exceptions import ConfigurationError, ManifestValidationError
from collection_sync.nodes.discovery.manifest import load_manifest
from collection_sync.sync.manager import SyncManager

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="collection-sync",
        description="Discover Ansible collections in GitHub and GitLab organizations",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the sync API and scheduled syncs")
    serve.add_argument("--config", type=Path, required=True, help="Path to the YAML config file")

    sync = commands.add_parser("sync", help="Run one blocking sync and print a JSON summary")
    sync.add_argument("--config", type=Path, required=True, help="Path to the YAML config file")
    sync.add_argument("--source", default=None, help="Only sync this source id (env:provider:host:org)")

    validate = commands.add_parser("validate", help="Validate a local galaxy.yml")
    validate.add_argument("path", type=Path, help="Path to galaxy.yml")

    return parser


async def _serve(config: AppConfig) -> None:
    manager = SyncManager(config)
    await manager.run_forever()


async def _sync_once(config: AppConfig, source_id: str | None) -> bool:
    manager = SyncManager(config, schedule=False)
    try:
        results = await manager.sync_now(source_id)
    finally:
        await manager.stop()

    summary = {
        sid: {
            "success": r.success,
            "skipped": r.skipped,
            "collectionCount": r.collection_count,
            "error": r.error,
        }
        for sid, r in results.items()
    }
    print(json.dumps(summary, indent=2))
    return all(r.success for r in results.values())


def _validate(path: Path) -> bool:
    try:
        metadata = load_manifest(path.read_text(encoding="utf-8"))
    except OSError as e:
        print(f"ERROR: cannot read {path}: {e}", file=sys.stderr)
        return False
    except ManifestValidationError as e:
        print(f"INVALID: {path}", file=sys.stderr)
        for error in e.errors:
            print(f"  - {error}", file=sys.stderr)
        return False

    print(f"OK: {metadata.full_name} {metadata.version}")
    return True


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "validate":
        sys.exit(0 if _validate(args.path) else 1)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "serve":
        try:
            asyncio.run(_serve(config))
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        return

    try:
        ok = asyncio.run(_sync_once(config, args.source))
    except KeyError as e:
        print(f"ERROR: {e.args[0]}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
