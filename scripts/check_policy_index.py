#!/usr/bin/env python3
"""
Validate that every policy in the store has a complete search document.

Usage:
    python scripts/check_policy_index.py --db data/fieldsweep.db
"""

import argparse
import json
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fieldsweep.constants import DATAHUB_POLICY_INFO_ASPECT_NAME, POLICY_SEARCH_FIELDS
from fieldsweep.database import LATEST_VERSION, AspectRow, SearchDocument, get_session
from fieldsweep.schema import project_policy_info


def validate(db_path: Path) -> bool:
    """
    Compare each policy's info aspect with its search document.

    Returns True if every document carries all target fields with the
    values the projection would produce, False otherwise.
    """
    print(f"Querying database at {db_path}...")
    session = get_session(db_path)
    try:
        aspects = {
            row.urn: json.loads(row.metadata_json)
            for row in session.query(AspectRow).filter_by(
                aspect=DATAHUB_POLICY_INFO_ASPECT_NAME, version=LATEST_VERSION
            )
        }
        docs = {row.urn: json.loads(row.document_json) for row in session.query(SearchDocument).all()}
    finally:
        session.close()
    print(f"  Policies:  {len(aspects)}")
    print(f"  Documents: {len(docs)}")

    missing = []
    incomplete = []
    mismatches = []
    for urn, info in aspects.items():
        doc = docs.get(urn)
        if doc is None:
            missing.append(urn)
            continue
        absent = [f for f in POLICY_SEARCH_FIELDS if doc.get(f) in (None, [])]
        if absent:
            incomplete.append((urn, absent))
            continue
        expected = project_policy_info(info, fields=POLICY_SEARCH_FIELDS)
        diffs = [f for f in POLICY_SEARCH_FIELDS if f in expected and doc.get(f) != expected[f]]
        if diffs:
            mismatches.append((urn, diffs))

    if missing:
        print(f"\n❌ {len(missing)} policies have no search document:")
        for urn in missing[:5]:
            print(f"  - {urn}")
    if incomplete:
        print(f"\n❌ {len(incomplete)} documents are missing fields:")
        for urn, absent in incomplete[:5]:
            print(f"  - {urn}: {', '.join(absent)}")
    if mismatches:
        print(f"\n❌ {len(mismatches)} documents disagree with their policy:")
        for urn, diffs in mismatches[:5]:
            print(f"  - {urn}: {', '.join(diffs)}")

    if missing or incomplete or mismatches:
        return False

    print(f"\n✅ All {len(aspects)} policy documents are complete")
    return True


def main():
    parser = argparse.ArgumentParser(description="Validate policy search documents")
    parser.add_argument("--db", type=Path, default=Path("data/fieldsweep.db"),
                       help="Path to SQLite database file")
    args = parser.parse_args()

    if not args.db.exists():
        print(f"❌ Database not found: {args.db}")
        sys.exit(1)

    sys.exit(0 if validate(args.db) else 1)


if __name__ == "__main__":
    main()
