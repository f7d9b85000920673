#!/usr/bin/env python3
"""
Import training resources into Snowflake.

Reads a JSON file of resource documents (camelCase fields, the same
shape the training platform exports) and upserts them into the
resources table. Malformed documents are reported and skipped.

Usage:
    python scripts/import_resources.py --file data/sample_seed.json
    python scripts/import_resources.py --file resources.json --dry-run

The file may be a JSON list of resources, or an object with a
"resources" key (the mock-mode seed format).

Requires:
    - .env file with Snowflake credentials
"""

import json
import os
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from src.config.settings import get_settings  # noqa: E402
from src.core.recommendations.models import InvalidInputError, Resource  # noqa: E402


def load_resource_documents(filepath: str) -> list[dict]:
    """Read resource documents from a JSON list or a seed file."""
    with open(filepath, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get('resources', [])
    return list(data)


def parse_resources(documents: list[dict]) -> tuple[list[Resource], list[str]]:
    """
    Convert documents into Resources.

    Returns the valid resources plus one error message per rejected
    document.
    """
    resources = []
    errors = []

    for index, doc in enumerate(documents):
        try:
            resources.append(Resource.from_document(doc))
        except (InvalidInputError, TypeError, ValueError) as e:
            errors.append(f"#{index} ({doc.get('id', '?')}): {e}")

    return resources, errors


def import_resources_to_snowflake(resources: list[Resource], dry_run: bool = False) -> bool:
    """Upsert resources into Snowflake. Returns True when every row succeeded."""
    if dry_run:
        print("\n=== DRY RUN - Not inserting ===")
        for resource in resources:
            print(f"  {resource.id}: {resource.title} [{resource.type.value}, {resource.priority.value}]")
        return True

    from src.api.dependencies import snowflake_config_from_settings
    from src.infrastructure.snowflake.client import (
        SnowflakeConnectionError,
        create_snowflake_connection,
    )
    from src.infrastructure.snowflake.repositories import SnowflakeRecommendationRepository

    settings = get_settings()
    if not settings.snowflake_account or not settings.snowflake_user:
        print("ERROR: Missing SNOWFLAKE_ACCOUNT or SNOWFLAKE_USER")
        return False

    config = snowflake_config_from_settings(settings)

    inserted = 0
    errors = 0

    try:
        with create_snowflake_connection(config=config) as conn:
            repository = SnowflakeRecommendationRepository(conn)
            for resource in resources:
                try:
                    repository.save_resource(resource)
                    inserted += 1
                    print(f"[OK] Upserted: {resource.id}")
                except Exception as e:
                    errors += 1
                    print(f"[ERR] Error upserting {resource.id}: {e}")
    except SnowflakeConnectionError as e:
        print(f"ERROR connecting to Snowflake: {e}")
        return False

    print("\n=== Import Complete ===")
    print(f"Upserted: {inserted}")
    print(f"Errors: {errors}")

    return errors == 0


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Import training resources to Snowflake')
    parser.add_argument('--dry-run', action='store_true', help='Parse only, don\'t insert')
    parser.add_argument('--file', default='data/sample_seed.json', help='Resource JSON file path')
    args = parser.parse_args()

    filepath = args.file
    if not os.path.exists(filepath):
        # Try relative to the project root
        filepath = Path(__file__).parent.parent / args.file

    if not os.path.exists(filepath):
        print(f"ERROR: Cannot find {args.file}")
        sys.exit(1)

    print(f"Reading resources from: {filepath}")
    resources, parse_errors = parse_resources(load_resource_documents(str(filepath)))
    print(f"Parsed {len(resources)} resources")

    for error in parse_errors:
        print(f"[SKIP] {error}")

    if not resources:
        print("ERROR: No valid resources found in file")
        sys.exit(1)

    # Show summary by type
    types = {}
    for resource in resources:
        types[resource.type.value] = types.get(resource.type.value, 0) + 1

    print("\nResources by type:")
    for resource_type, count in sorted(types.items()):
        print(f"  {resource_type}: {count}")

    success = import_resources_to_snowflake(resources, dry_run=args.dry_run)

    sys.exit(0 if success and not parse_errors else 1)


if __name__ == '__main__':
    main()
