"""Load a curated catalog file into the RoomSize database.

Developments, streets, builders, house schemas and their rooms are curated
out of band; this script is the only writer for those tables. It runs as a
dry run by default: the file is validated and loaded inside a transaction
that is rolled back, and the counts are printed.

Usage:
    python scripts/seed_catalog.py catalog.json             # Validate + dry run
    python scripts/seed_catalog.py catalog.json --import    # Write to the database
    python scripts/seed_catalog.py --stats                  # Show table counts
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from roomsize.database import engine, init_db
from roomsize.models import Builder, Development, HouseSchema, Room, Street, house_schema_streets
from roomsize.seed import CatalogIn, load_catalog


def read_catalog(path: Path) -> CatalogIn:
    with open(path) as f:
        return CatalogIn.model_validate(json.load(f))


def print_stats(session: Session):
    """Print row counts for the catalog tables."""
    print("\n=== Catalog ===")
    for label, column in [
        ("Developments", Development.id),
        ("Streets", Street.id),
        ("Builders", Builder.id),
        ("House schemas", HouseSchema.id),
        ("Rooms", Room.id),
    ]:
        count = session.scalar(select(func.count(column)))
        print(f"{label + ':':<16}{count:>6,}")

    links = session.scalar(select(func.count()).select_from(house_schema_streets))
    verified = session.scalar(select(func.count(HouseSchema.id)).where(HouseSchema.verified == True))  # noqa: E712
    print(f"{'Street links:':<16}{links:>6,}")
    print(f"{'Verified:':<16}{verified:>6,}")


def main():
    parser = argparse.ArgumentParser(description="Load a curated RoomSize catalog")
    parser.add_argument("file", nargs="?", type=Path, help="Catalog JSON file")
    parser.add_argument("--import", dest="do_import", action="store_true",
                        help="Write to the database (default is a dry run)")
    parser.add_argument("--stats", action="store_true", help="Show table counts")
    args = parser.parse_args()

    if not (args.file or args.stats):
        parser.print_help()
        return

    print("Creating tables if needed...")
    init_db(engine)

    with Session(engine) as session:
        if args.file:
            try:
                catalog = read_catalog(args.file)
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                print(f"Could not read {args.file}: {e}")
                sys.exit(1)

            mode = "Importing" if args.do_import else "Dry run for"
            print(f"\n=== {mode} {args.file} ===")
            stats = load_catalog(session, catalog)

            print(f"Developments: {stats.developments}")
            print(f"Streets: {stats.streets}")
            print(f"Builders: {stats.builders}")
            print(f"Schemas: {stats.schemas} (skipped existing: {stats.schemas_skipped})")
            print(f"Rooms: {stats.rooms}")
            print(f"Street links: {stats.street_links}")
            if stats.missing_streets:
                print(f"Unknown streets ({len(stats.missing_streets)}):")
                for missing in stats.missing_streets[:10]:
                    print(f"  - {missing}")

            if args.do_import:
                session.commit()
                print("Committed.")
            else:
                session.rollback()
                print("Dry run: nothing written. Re-run with --import to commit.")

        if args.stats:
            print_stats(session)


if __name__ == "__main__":
    main()
