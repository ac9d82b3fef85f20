# scripts/setup/generate_tags.py
"""
Generate blank tags offline and write the printable QR sheet to disk.
Talks to the database directly: no running backend needed.

Usage:
  python scripts/setup/generate_tags.py --count 200 --out tags_batch.pdf
  python scripts/setup/generate_tags.py --show-blank      # print one unclaimed code
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from app.database import SessionLocal, create_tables
from app.exceptions import BatchTooLarge
from app.services.batch_service import first_blank_code, issue_batch


def show_blank():
    db = SessionLocal()
    try:
        code = first_blank_code(db)
    finally:
        db.close()
    if code:
        print(f"CODE:{code}")
    else:
        print("No blank tags found")


def generate(count: int, out_path: str, codes_path: str = None):
    create_tables()
    db = SessionLocal()
    try:
        result = issue_batch(db, count)
    except BatchTooLarge as e:
        print(f"❌ {e.detail}")
        sys.exit(1)
    finally:
        db.close()

    with open(out_path, "wb") as f:
        f.write(result.sheet)
    print(f"✅ Generated {result.created} tags → {out_path} ({len(result.sheet)} bytes)")

    if codes_path:
        with open(codes_path, "w", encoding="utf-8") as f:
            f.write("\n".join(result.codes) + "\n")
        print(f"📝 Codes written to {codes_path}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate blank CarCard tags + printable QR sheet")
    parser.add_argument("--count", type=int, default=100, help="Number of tags (max 10000)")
    parser.add_argument("--out", default="generated_tags.pdf", help="PDF output path")
    parser.add_argument("--codes", default=None, help="Optional text file listing the generated codes")
    parser.add_argument("--show-blank", action="store_true", help="Print one unclaimed code and exit")
    args = parser.parse_args()

    if args.show_blank:
        show_blank()
    else:
        generate(args.count, args.out, args.codes)
