"""
Database Seeding Script
Prepares a fresh database for use.

This script:
    1. Creates the tables if they don't exist
    2. Creates the built-in roles (SUPER_ADMIN, ADMIN, RECCE, INSTALLATION)
    3. Creates the bootstrap super admin from SUPERADMIN_* settings
    4. Loads the branding element catalogue (default list or a CSV file)

Usage:
    # From backend directory
    python -m app.db.seed
    python -m app.db.seed --elements /path/to/elements.csv --update

CSV Format:
    - Column 1: Element name
    - Column 2: Standard rate (optional, defaults to 0)
"""

import argparse
import csv
import sys
from pathlib import Path
from typing import Iterable, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import SessionLocal, engine
from app.models import Base
from app.models.client import Element
from app.services import user_service


DEFAULT_ELEMENTS = [
    ("Flex", 0.0),
    ("Vinyl", 0.0),
    ("ACP Board", 0.0),
    ("Glow Sign Board", 0.0),
    ("One Way Vision", 0.0),
    ("Standee", 0.0),
]


def parse_rate(value: str) -> Optional[float]:
    """
    Parse a rate cell, handling empty/invalid values.

    Examples:
        parse_rate("55") -> 55.0
        parse_rate("") -> 0.0
        parse_rate("N/A") -> None
    """
    if value is None or value.strip() == "":
        return 0.0
    try:
        return float(value.strip())
    except ValueError:
        return None


def read_elements_csv(csv_path: Path) -> Iterable[Tuple[int, str, Optional[float]]]:
    """Yield (row_number, name, rate) for every data row; the first row is the header."""
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, "r", encoding="utf-8") as csvfile:
        reader = csv.reader(csvfile)
        next(reader, None)
        for row_num, row in enumerate(reader, start=2):
            if not row:
                continue
            name = row[0].strip()
            rate = parse_rate(row[1]) if len(row) > 1 else 0.0
            yield row_num, name, rate


def seed_elements(db: Session, rows: Iterable[Tuple[int, str, Optional[float]]], update: bool = False) -> dict:
    """
    Insert catalogue elements, matching existing ones case-insensitively.

    Returns:
        dict with statistics: total, inserted, updated, skipped, errors, error_details
    """
    stats = {"total": 0, "inserted": 0, "updated": 0, "skipped": 0, "errors": 0, "error_details": []}

    for row_num, name, rate in rows:
        stats["total"] += 1

        if not name:
            stats["errors"] += 1
            stats["error_details"].append(f"Row {row_num}: empty element name")
            continue
        if rate is None:
            stats["errors"] += 1
            stats["error_details"].append(f"Row {row_num}: invalid rate for '{name}'")
            continue

        existing = db.query(Element).filter(func.lower(Element.name) == name.lower()).first()
        try:
            if existing is None:
                db.add(Element(name=name, standard_rate=rate))
                db.commit()
                stats["inserted"] += 1
            elif update:
                existing.standard_rate = rate
                db.commit()
                stats["updated"] += 1
            else:
                stats["skipped"] += 1
        except SQLAlchemyError as e:
            db.rollback()
            stats["errors"] += 1
            stats["error_details"].append(f"Row {row_num} ('{name}'): database error - {e}")

    return stats


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed roles, super admin and the element catalogue")
    parser.add_argument("--elements", type=Path, default=None, help="CSV of element name,rate")
    parser.add_argument("--update", action="store_true", help="Update rates of existing elements")
    args = parser.parse_args(argv)

    print("=" * 60)
    print("Recce Workflow Seeding Script")
    print("=" * 60)

    Base.metadata.create_all(bind=engine)
    print("Tables created/verified")

    db = SessionLocal()
    try:
        added = user_service.ensure_default_roles(db)
        print(f"Roles added: {added}")

        admin = user_service.ensure_super_admin(
            db, settings.SUPERADMIN_EMAIL, settings.SUPERADMIN_PASSWORD, settings.SUPERADMIN_NAME
        )
        if admin is None:
            print("Super admin skipped (SUPERADMIN_EMAIL / SUPERADMIN_PASSWORD not set)")
        else:
            print(f"Super admin: {admin.email}")

        if args.elements:
            rows = read_elements_csv(args.elements)
        else:
            rows = ((index, name, rate) for index, (name, rate) in enumerate(DEFAULT_ELEMENTS, start=1))
        stats = seed_elements(db, rows, update=args.update)

        print("-" * 60)
        print(f"  Elements in source: {stats['total']}")
        print(f"  Inserted:           {stats['inserted']}")
        print(f"  Updated:            {stats['updated']}")
        print(f"  Skipped:            {stats['skipped']}")
        print(f"  Errors:             {stats['errors']}")
        for detail in stats["error_details"]:
            print(f"    {detail}")
        print("=" * 60)
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        return 1
    finally:
        db.close()

    return 1 if stats["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
