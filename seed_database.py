"""Script to manually seed the database with sample assets"""
import argparse
import asyncio
from pathlib import Path

from api.assets.importer import AssetImporter
from api.assets.rows import CsvMap
from config import settings
from core.errors import AssetError
from db import ConnectionFactory, init_db

DEFAULT_CSV = Path(__file__).resolve().parent / "data" / "sample_assets.csv"


async def seed(csv_path: Path) -> int:
    """Create tables if needed and import ``csv_path``; returns the failed line count."""
    connections = ConnectionFactory(settings.DATABASE_URL)
    try:
        print("Creating database tables...")
        await init_db(connections.engine)
        print("[OK] Tables and dictionaries ready")

        print(f"Reading assets from {csv_path}...")
        cm = CsvMap.from_csv(csv_path.read_text(encoding="utf-8"), create_mode="seed")
        async with connections.connect() as store:
            items = await AssetImporter(store, cm).process()
    finally:
        await connections.dispose()

    failed = 0
    for row, outcome in sorted(items.items()):
        if isinstance(outcome, AssetError):
            failed += 1
            print(f"  [FAIL] line {row}: {outcome.message}")
        else:
            print(f"  Added: {outcome.name}")
    print(f"\n[OK] Imported {len(items) - failed} of {len(items)} lines")
    return failed


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the asset inventory from a CSV file")
    parser.add_argument("csv", nargs="?", type=Path, default=DEFAULT_CSV)
    args = parser.parse_args()

    print("=" * 60)
    print("DATABASE SEEDING SCRIPT")
    print("=" * 60)
    raise SystemExit(1 if asyncio.run(seed(args.csv)) else 0)
