"""
Import legacy order documents (JSON Lines export) into the order tables.

Each line is one order document as exported from the old document store,
with `orderItems` and/or `products`, either status vocabulary, and either
half of the shippingAddress/deliveryAddress and total/totalAmount pairs.
Already-imported documents (same `_id`) are skipped, so the script can be
re-run on a growing export.

Run from the backend/ directory:
    python scripts/import_legacy_orders.py orders.jsonl
"""
import argparse
import asyncio
import json
import os
import sys

# Add backend/ to path so we can import the app modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import close_db, init_db, session_scope
from services import legacy_import


async def run(path: str) -> dict:
    counts = {"imported": 0, "exists": 0, "skipped": 0, "invalid": 0}
    await init_db()

    async with session_scope() as db:
        with open(path, encoding="utf-8") as fh:
            for line_no, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    document = json.loads(line)
                except ValueError:
                    print(f"⚠️  Line {line_no}: not valid JSON, skipped")
                    counts["invalid"] += 1
                    continue

                outcome = await legacy_import.import_document(db, document)
                counts[outcome] += 1
                if counts["imported"] and counts["imported"] % 100 == 0 and outcome == "imported":
                    await db.commit()
                    print(f"   ... {counts['imported']} orders imported")

    await close_db()
    return counts


def main():
    parser = argparse.ArgumentParser(description="Import legacy order documents")
    parser.add_argument("path", help="JSON Lines file, one order document per line")
    args = parser.parse_args()

    if not os.path.exists(args.path):
        print(f"❌ File not found: {args.path}")
        sys.exit(1)

    print(f"📂 Importing {args.path}")
    counts = asyncio.run(run(args.path))
    print("✅ Import complete!")
    print(f"   - {counts['imported']} imported")
    print(f"   - {counts['exists']} already present")
    print(f"   - {counts['skipped']} skipped (owner not resolvable)")
    print(f"   - {counts['invalid']} invalid lines")


if __name__ == "__main__":
    main()
