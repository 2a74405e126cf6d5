#!/usr/bin/env python3
"""
Database Seeding Script - chart of accounts for a new ledger.

Reads seed_data/chart_of_accounts.csv when present, otherwise the built-in
default chart. Accounts whose number already exists are skipped.
"""

import csv
import os
from pathlib import Path


def read_csv(filepath: str) -> list[dict]:
    """Read a CSV file into a list of rows."""
    if not os.path.exists(filepath):
        return []
    with open(filepath, "r", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def main():
    """Main function."""
    print("=" * 60)
    print("Database Seeding - Ledgerbook")
    print("=" * 60)

    from ledgerbook.core.logging_config import configure_logging
    from ledgerbook.infrastructure.database import init_db, seed_default_accounts

    configure_logging()
    init_db()

    accounts_file = Path(__file__).parent / "seed_data" / "chart_of_accounts.csv"
    rows = read_csv(str(accounts_file))
    accounts = [
        (row["number"].strip(), row["name"].strip(), row["category"].strip(), row["normal_side"].strip())
        for row in rows
    ]
    print(f"\n📦 Seeding {len(accounts) or 'default'} accounts...")

    created = seed_default_accounts(accounts=accounts or None)
    print(f"✓ Created {created} accounts")
    print("\n✅ Database seeding completed!")


if __name__ == "__main__":
    main()
