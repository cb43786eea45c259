#!/usr/bin/env python3
"""create_brand_presence_table.py
(Re)create the `brand_presence` table that holds one row per AI-assistant
prompt execution imported from the brand-presence CDN sheets.

The table is dropped first (CASCADE, so `brand_presence_sources` and the
views go with it). Rows are unique on (site_id, date, model, category,
prompt, region).

Usage:
  python scripts/create_brand_presence_table.py
  python scripts/create_brand_presence_table.py --keep   # CREATE IF NOT EXISTS, no drop
"""
import os
import sys
import argparse
import psycopg2
from dotenv import load_dotenv

CREATE_TABLE_SQL = """
CREATE TABLE {if_not_exists} brand_presence (
    id SERIAL PRIMARY KEY,

    site_id UUID NOT NULL,
    date DATE NOT NULL,
    model VARCHAR(100) NOT NULL,

    category VARCHAR(255),
    topics TEXT,
    prompt TEXT,
    origin VARCHAR(50),
    volume INTEGER,
    region VARCHAR(10),
    url TEXT,
    answer TEXT,
    sources TEXT,
    citations BOOLEAN,
    mentions BOOLEAN,
    sentiment VARCHAR(50),
    business_competitors TEXT,
    organic_competitors TEXT,
    content_ai_result TEXT,
    is_answered BOOLEAN,
    source_to_answer TEXT,
    position VARCHAR(50),
    visibility_score INTEGER,
    detected_brand_mentions TEXT,
    execution_date DATE,
    error_code TEXT,

    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,

    UNIQUE (site_id, date, model, category, prompt, region)
)
"""

INDEXES = (
    ("idx_brand_presence_site_id", "site_id"),
    ("idx_brand_presence_date", "date"),
    ("idx_brand_presence_category", "category"),
    ("idx_brand_presence_region", "region"),
    ("idx_brand_presence_model", "model"),
)


def load_env():
    if os.path.exists('.env.production'):
        load_dotenv('.env.production', override=True)
    else:
        load_dotenv('.env', override=False)


def get_conn():
    url = os.getenv('DATABASE_URL')
    if not url:
        raise SystemExit('DATABASE_URL not set')
    return psycopg2.connect(url)


def create_table(cur, keep: bool = False):
    if not keep:
        cur.execute("DROP TABLE IF EXISTS brand_presence CASCADE")
    cur.execute(CREATE_TABLE_SQL.format(if_not_exists="IF NOT EXISTS" if keep else ""))
    for name, column in INDEXES:
        cur.execute(f"CREATE INDEX IF NOT EXISTS {name} ON brand_presence({column})")
        print(f"  ✓ index {name}")


def describe_table(cur, table: str):
    cur.execute(
        """
        SELECT column_name, data_type, is_nullable, column_default
        FROM information_schema.columns
        WHERE table_name = %s
        ORDER BY ordinal_position
        """,
        (table,),
    )
    rows = cur.fetchall()
    print(f"\nTable \"{table}\" has {len(rows)} columns:")
    for name, data_type, nullable, default in rows:
        flag = '(nullable)' if nullable == 'YES' else '(required)'
        suffix = f" [default: {default}]" if default else ''
        print(f"  - {name}: {data_type} {flag}{suffix}")


def main():
    parser = argparse.ArgumentParser(description='Create the brand_presence table')
    parser.add_argument('--keep', action='store_true', help='Do not drop an existing table')
    args = parser.parse_args()

    load_env()
    conn = get_conn()
    try:
        with conn:
            with conn.cursor() as cur:
                print('Creating brand_presence table...')
                create_table(cur, keep=args.keep)
                describe_table(cur, 'brand_presence')
        print('\nBrand presence table ready.')
    except Exception as e:
        print(f"✗ Error creating table: {e}", file=sys.stderr)
        raise
    finally:
        conn.close()


if __name__ == '__main__':
    try:
        main()
    except SystemExit:
        raise
    except Exception:
        import traceback
        traceback.print_exc()
        sys.exit(1)
