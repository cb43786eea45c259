#!/usr/bin/env python3
"""refresh_brand_presence_sources.py
Full rebuild of `brand_presence_sources` from the `sources` column of
`brand_presence`, classifying each cited URL against the site's hostname.

Records are read 500 at a time and sources inserted 100 per statement.

Usage:
  python scripts/refresh_brand_presence_sources.py --site-url=https://www.example.com
"""
import os
import sys
import time
import argparse
from collections import Counter
import psycopg2
from psycopg2.extras import RealDictCursor, execute_values
from dotenv import load_dotenv

# Ensure project root is on sys.path for brand_presence import
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from brand_presence import CONTENT_TYPES, classify_sources, extract_hostname

BATCH_SIZE = 500
INSERT_BATCH_SIZE = 100

SOURCE_COLUMNS = ('brand_presence_id', 'site_id', 'date', 'model', 'url', 'hostname', 'content_type')


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


def fetch_batch(cur, offset: int):
    cur.execute(
        """
        SELECT id, site_id, date, model, sources, business_competitors
        FROM brand_presence
        WHERE sources IS NOT NULL AND sources != ''
        ORDER BY id
        LIMIT %s OFFSET %s
        """,
        (BATCH_SIZE, offset),
    )
    return cur.fetchall()


def insert_sources(cur, rows) -> int:
    for i in range(0, len(rows), INSERT_BATCH_SIZE):
        batch = rows[i:i + INSERT_BATCH_SIZE]
        execute_values(
            cur,
            f"INSERT INTO brand_presence_sources ({', '.join(SOURCE_COLUMNS)}) VALUES %s",
            [tuple(r[c] for c in SOURCE_COLUMNS) for r in batch],
        )
    return len(rows)


def refresh_sources(conn, site_hostname: str) -> Counter:
    counts = Counter({t: 0 for t in CONTENT_TYPES})
    started = time.time()
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute("TRUNCATE TABLE brand_presence_sources")
        cur.execute("SELECT COUNT(*) AS count FROM brand_presence WHERE sources IS NOT NULL AND sources != ''")
        total = cur.fetchone()['count']
        print(f"Found {total:,} records with sources to process")
        if not total:
            return counts

        processed = inserted = offset = 0
        while offset < total:
            records = fetch_batch(cur, offset)
            if not records:
                break
            rows = []
            for record in records:
                rows.extend(classify_sources(record, site_hostname))
            inserted += insert_sources(cur, rows)
            counts.update(r['content_type'] for r in rows)

            processed += len(records)
            offset += BATCH_SIZE
            print(f"  Processed {processed:,}/{total:,} records ({round(processed * 100 / total)}%) - "
                  f"{inserted:,} sources - {time.time() - started:.1f}s", end='\r')
    print()
    return counts


def print_summary(counts: Counter):
    total = sum(counts.values())
    print('Content type distribution:')
    for content_type in CONTENT_TYPES:
        share = (counts[content_type] / total * 100) if total else 0.0
        print(f"  {content_type.capitalize()}: {counts[content_type]:,} ({share:.1f}%)")


def main():
    parser = argparse.ArgumentParser(description='Rebuild brand_presence_sources')
    parser.add_argument('--site-url', required=True, help='Base URL of the site, used to detect owned sources')
    args = parser.parse_args()

    site_hostname = extract_hostname(args.site_url)
    if not site_hostname:
        raise SystemExit('Invalid site URL provided')

    print(f"Refreshing brand_presence_sources for {args.site_url} (hostname {site_hostname})")
    load_env()
    conn = get_conn()
    try:
        with conn:
            counts = refresh_sources(conn, site_hostname)
        print_summary(counts)
        with conn.cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM brand_presence_sources")
            print(f"✓ Verified: {cur.fetchone()[0]} sources in table")
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
