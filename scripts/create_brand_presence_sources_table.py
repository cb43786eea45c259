#!/usr/bin/env python3
"""create_brand_presence_sources_table.py
(Re)create `brand_presence_sources`: one row per source URL cited in a
brand-presence answer, pre-classified as owned / competitor / social / earned.

site_id, date and model are copied from the parent row so the views can
filter without a join. `is_owned` is a generated column.

Usage:
  python scripts/create_brand_presence_sources_table.py
"""
import os
import sys
import argparse
import psycopg2
from dotenv import load_dotenv

# Ensure project root is on sys.path for the sibling script import
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scripts.create_brand_presence_table import describe_table

CREATE_TABLE_SQL = """
CREATE TABLE brand_presence_sources (
    id SERIAL PRIMARY KEY,
    brand_presence_id INTEGER NOT NULL REFERENCES brand_presence(id) ON DELETE CASCADE,

    site_id UUID NOT NULL,
    date DATE NOT NULL,
    model VARCHAR(100) NOT NULL,

    url TEXT NOT NULL,
    hostname VARCHAR(255),

    content_type VARCHAR(20) NOT NULL CHECK (content_type IN ('owned', 'competitor', 'social', 'earned')),
    is_owned BOOLEAN GENERATED ALWAYS AS (content_type = 'owned') STORED,

    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""

INDEXES = (
    "CREATE INDEX idx_bps_brand_presence_id ON brand_presence_sources(brand_presence_id)",
    "CREATE INDEX idx_bps_site_date ON brand_presence_sources(site_id, date)",
    "CREATE INDEX idx_bps_content_type ON brand_presence_sources(content_type)",
    "CREATE INDEX idx_bps_is_owned ON brand_presence_sources(is_owned) WHERE is_owned = true",
    "CREATE INDEX idx_bps_hostname ON brand_presence_sources(hostname)",
    "CREATE INDEX idx_bps_composite ON brand_presence_sources(site_id, model, date, content_type)",
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


def create_table(cur):
    cur.execute("DROP TABLE IF EXISTS brand_presence_sources CASCADE")
    cur.execute(CREATE_TABLE_SQL)
    for stmt in INDEXES:
        cur.execute(stmt)


def main():
    argparse.ArgumentParser(description='Create the brand_presence_sources table').parse_args()

    load_env()
    conn = get_conn()
    try:
        with conn:
            with conn.cursor() as cur:
                create_table(cur)
                describe_table(cur, 'brand_presence_sources')
        print('\nbrand_presence_sources ready. Run refresh_brand_presence_sources.py to populate it.')
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
