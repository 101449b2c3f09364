#!/usr/bin/env python3
"""
Load policies from a JSON file into the local store with a legacy index
projection, so the backfill has something to repair.

The input is a list of objects: {"id": "...", "info": {dataHubPolicyInfo}}.

Usage:
    python scripts/seed_policies.py --json data/policies.json --db data/fieldsweep.db
    python scripts/seed_policies.py --json data/policies.json --legacy-fields displayName,description
"""

import argparse
import json
import time
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fieldsweep.constants import DATAHUB_POLICY_INFO_ASPECT_NAME, POLICY_ENTITY_NAME, SYSTEM_ACTOR
from fieldsweep.database import init_database
from fieldsweep.models import AuditStamp, ChangeType, MetadataChangeProposal, serialize_aspect
from fieldsweep.schema import project_policy_info, validate_policy_info
from fieldsweep.search import SqlSearchService
from fieldsweep.storage import SqlEntityService
from fieldsweep.urn import make_urn

DEFAULT_LEGACY_FIELDS = ["displayName", "description"]


def seed(json_path: Path, db_path: Path, legacy_fields, dry_run: bool = False) -> bool:
    """
    Write each policy's info aspect, then overwrite its search document with
    a projection restricted to ``legacy_fields``.

    Args:
        json_path: Path to JSON policy list
        db_path: Path to SQLite database file
        legacy_fields: Document fields the legacy projection keeps
        dry_run: If True, don't write to database
    """
    print(f"Loading policies from {json_path}...")
    with open(json_path) as f:
        policies = json.load(f)
    print(f"Found {len(policies)} policies")

    if dry_run:
        print("\n[DRY RUN] Would seed the following policies:")
        for i, policy in enumerate(policies[:5], 1):
            print(f"  {i}. {policy.get('id')}: {policy.get('info', {}).get('displayName')}")
        if len(policies) > 5:
            print(f"  ... and {len(policies) - 5} more")
        return True

    print(f"\nInitializing database at {db_path}...")
    init_database(db_path)
    entity_service = SqlEntityService(db_path)
    search_service = SqlSearchService(db_path)
    stamp = AuditStamp(actor=SYSTEM_ACTOR, time=int(time.time() * 1000))

    seeded = 0
    skipped = 0
    for policy in policies:
        policy_id = policy.get("id")
        info = policy.get("info") or {}
        if not policy_id:
            print("⚠️  Skipping policy without id")
            skipped += 1
            continue

        problems = validate_policy_info(info)
        if problems:
            print(f"⚠️  {policy_id}: {'; '.join(problems)} (seeding anyway)")

        urn = make_urn(POLICY_ENTITY_NAME, policy_id)
        entity_service.ingest_proposal(
            MetadataChangeProposal(
                entity_urn=str(urn),
                entity_type=POLICY_ENTITY_NAME,
                aspect_name=DATAHUB_POLICY_INFO_ASPECT_NAME,
                change_type=ChangeType.UPSERT,
                aspect=serialize_aspect(info),
            ),
            stamp,
        )
        legacy_doc = {"urn": str(urn), **project_policy_info(info, fields=legacy_fields)}
        search_service.index_document(str(urn), POLICY_ENTITY_NAME, legacy_doc)
        seeded += 1

    print(f"\n✅ Seeding complete!")
    print(f"   Seeded:  {seeded}")
    print(f"   Skipped: {skipped}")
    return True


def main():
    parser = argparse.ArgumentParser(description="Seed policies with a legacy search projection")
    parser.add_argument("--json", type=Path, default=Path("data/policies.json"),
                       help="Path to JSON policy list")
    parser.add_argument("--db", type=Path, default=Path("data/fieldsweep.db"),
                       help="Path to SQLite database file")
    parser.add_argument("--legacy-fields", default=",".join(DEFAULT_LEGACY_FIELDS),
                       help="Comma-separated document fields the legacy projection keeps")
    parser.add_argument("--dry-run", action="store_true",
                       help="Show what would be seeded without writing")

    args = parser.parse_args()

    if not args.json.exists():
        print(f"❌ JSON file not found: {args.json}")
        sys.exit(1)

    legacy_fields = [f.strip() for f in args.legacy_fields.split(",") if f.strip()]
    seed(args.json, args.db, legacy_fields, dry_run=args.dry_run)


if __name__ == "__main__":
    main()
