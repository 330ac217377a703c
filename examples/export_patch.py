#!/usr/bin/env python3
"""Example: Export one season/patch slice to the bronze layer.

This example demonstrates:
1. Loading exporter configuration from YAML (secrets from the environment)
2. Wiring MongoDB, S3 and the Riot API with create_orchestrator
3. Running a filtered export and reading the result counters

Run with:
    MONGO_URI=mongodb://localhost:27017 RIOT_API_KEY=RGAPI-... \\
        python examples/export_patch.py --season 2025 --patch 15.18
"""

import argparse
import json
import logging
from pathlib import Path

from lol_data_platform.ingestion import load_exporter_config
from lol_data_platform.models import ExportFilters
from lol_data_platform.pipeline import create_orchestrator

CONFIG_PATH = Path(__file__).parent / "exporter.yaml"


def main():
    """Run a filtered export."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--season", type=int, default=2025)
    parser.add_argument("--patch", default="15.18")
    parser.add_argument("--queue", type=int, action="append", dest="queues")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("=" * 80)
    print(f"Exporting season={args.season} patch={args.patch} queues={args.queues or 'allow-list'}")
    print("=" * 80)

    config = load_exporter_config(CONFIG_PATH)
    print(f"📦 Source: {config.source.database}.{config.source.matches_collection}")
    print(f"🪣 Bucket: s3://{config.object_store.bucket} ({config.object_store.region})")
    print(f"🌐 Upstream fallback: {'on' if config.upstream.enabled else 'off'}")
    print()

    filters = ExportFilters(season=args.season, patch_bucket=args.patch, queues=args.queues or [])

    orchestrator, close = create_orchestrator(config)
    try:
        result = orchestrator.run(filters)
    finally:
        close()

    print()
    print("✅ Export finished")
    print(json.dumps(result.to_dict(), indent=2))


if __name__ == "__main__":
    main()
