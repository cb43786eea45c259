#!/usr/bin/env python3
"""create_brand_presence_views.py
Build the reporting layer over `brand_presence` / `brand_presence_sources`:

  1. indexes on the raw table for the view GROUP BYs
  2. brand_presence_topics_by_date   MATERIALIZED, grouped by
     site_id, model, date, category, topics, region, origin
  3. brand_presence_prompts_by_date  plain VIEW, same grouping plus prompt
  4. refresh_brand_presence_views()  REFRESH MATERIALIZED VIEW CONCURRENTLY

Citations count executions with at least one owned source; visibility
treats NULL as 0; position ignores "Not Mentioned" and non-numeric values.

Usage:
  python scripts/create_brand_presence_views.py
  python scripts/create_brand_presence_views.py --refresh   # only refresh after an import
"""
import os
import sys
import argparse
import psycopg2
from dotenv import load_dotenv

RAW_INDEXES = (
    ("idx_bp_site_model_date", "site_id, model, date"),
    ("idx_bp_category", "category"),
    ("idx_bp_topics", "topics"),
    ("idx_bp_region", "region"),
    ("idx_bp_origin", "origin"),
    ("idx_bp_composite", "site_id, model, date, category, topics, region, origin"),
)

TOPIC_INDEXES = (
    ("idx_topics_site_model_date", "CREATE INDEX idx_topics_site_model_date ON brand_presence_topics_by_date(site_id, model, date)"),
    ("idx_topics_category", "CREATE INDEX idx_topics_category ON brand_presence_topics_by_date(category)"),
    ("idx_topics_topics", "CREATE INDEX idx_topics_topics ON brand_presence_topics_by_date(topics)"),
    ("idx_topics_region", "CREATE INDEX idx_topics_region ON brand_presence_topics_by_date(region)"),
    ("idx_topics_origin", "CREATE INDEX idx_topics_origin ON brand_presence_topics_by_date(origin)"),
    # CONCURRENTLY refresh needs a unique index
    ("idx_topics_unique", "CREATE UNIQUE INDEX idx_topics_unique ON brand_presence_topics_by_date"
                          "(site_id, model, date, category, topics, region, origin)"),
)

_NUMERIC_POSITION = r"""
    ROUND(AVG(
        CASE
            WHEN bp.position IS NOT NULL
             AND bp.position != ''
             AND bp.position != 'Not Mentioned'
             AND bp.position ~ '^[0-9]+\.?[0-9]*$'
            THEN bp.position::NUMERIC
            ELSE NULL
        END
    ), 2) AS avg_position"""

_SENTIMENT_SCORE = """
    ROUND(AVG(
        CASE
            WHEN LOWER(bp.sentiment) = 'positive' THEN 1.0
            WHEN LOWER(bp.sentiment) = 'neutral' THEN 0.0
            WHEN LOWER(bp.sentiment) = 'negative' THEN -1.0
            ELSE NULL
        END
    ), 2) AS avg_sentiment_score"""

_SOURCES_COUNT = """
    SUM(
        CASE
            WHEN bp.sources IS NULL OR bp.sources = '' THEN 0
            ELSE array_length(string_to_array(bp.sources, ';'), 1)
        END
    ) AS total_sources_count"""

_OWNED_JOIN = """
FROM brand_presence bp
LEFT JOIN (
    SELECT DISTINCT brand_presence_id
    FROM brand_presence_sources
    WHERE content_type = 'owned'
) owned_sources ON bp.id = owned_sources.brand_presence_id"""

TOPICS_VIEW_SQL = f"""
CREATE MATERIALIZED VIEW brand_presence_topics_by_date AS
SELECT
    bp.site_id, bp.model, bp.date, bp.category, bp.topics, bp.region, bp.origin,
    COUNT(*) AS executions_count,
    COUNT(DISTINCT bp.prompt) AS unique_prompts_in_group,
    COUNT(*) FILTER (WHERE bp.mentions = TRUE) AS mentions_count,
    COUNT(DISTINCT CASE WHEN owned_sources.brand_presence_id IS NOT NULL THEN bp.id END) AS citations_count,
    ROUND(AVG(COALESCE(bp.visibility_score, 0)), 2) AS avg_visibility_score,
    {_NUMERIC_POSITION},
    COUNT(*) FILTER (WHERE LOWER(bp.sentiment) = 'positive') AS sentiment_positive,
    COUNT(*) FILTER (WHERE LOWER(bp.sentiment) = 'neutral') AS sentiment_neutral,
    COUNT(*) FILTER (WHERE LOWER(bp.sentiment) = 'negative') AS sentiment_negative,
    COUNT(*) FILTER (WHERE bp.sentiment IS NOT NULL AND bp.sentiment != '') AS sentiment_total,
    {_SENTIMENT_SCORE},
    {_SOURCES_COUNT},
    ROUND(AVG(bp.volume), 2) AS avg_volume
{_OWNED_JOIN}
GROUP BY bp.site_id, bp.model, bp.date, bp.category, bp.topics, bp.region, bp.origin
"""

PROMPTS_VIEW_SQL = f"""
CREATE VIEW brand_presence_prompts_by_date AS
SELECT
    bp.site_id, bp.model, bp.date, bp.category, bp.topics, bp.prompt, bp.region, bp.origin,
    COUNT(*) AS executions_count,
    COUNT(*) FILTER (WHERE bp.mentions = TRUE) AS mentions_count,
    COUNT(DISTINCT CASE WHEN owned_sources.brand_presence_id IS NOT NULL THEN bp.id END) AS citations_count,
    ROUND(AVG(COALESCE(bp.visibility_score, 0)), 2) AS avg_visibility_score,
    {_NUMERIC_POSITION},
    MODE() WITHIN GROUP (ORDER BY bp.sentiment) AS dominant_sentiment,
    {_SENTIMENT_SCORE},
    {_SOURCES_COUNT},
    (ARRAY_AGG(bp.answer ORDER BY bp.date DESC))[1] AS latest_answer,
    (ARRAY_AGG(bp.sources ORDER BY bp.date DESC))[1] AS latest_sources
{_OWNED_JOIN}
GROUP BY bp.site_id, bp.model, bp.date, bp.category, bp.topics, bp.prompt, bp.region, bp.origin
"""

REFRESH_FUNCTION_SQL = """
CREATE OR REPLACE FUNCTION refresh_brand_presence_views()
RETURNS void AS $$
BEGIN
    REFRESH MATERIALIZED VIEW CONCURRENTLY brand_presence_topics_by_date;
END;
$$ LANGUAGE plpgsql
"""

SAMPLE_TOPICS_SQL = """
SELECT topics,
       SUM(executions_count) AS executions,
       SUM(mentions_count) AS mentions,
       SUM(citations_count) AS citations,
       ROUND(AVG(avg_visibility_score), 2) AS visibility,
       AVG(avg_volume) AS volume
FROM brand_presence_topics_by_date
GROUP BY topics
ORDER BY mentions DESC
LIMIT 3
"""


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


def create_views(cur):
    print('Creating indexes on brand_presence...')
    for name, columns in RAW_INDEXES:
        cur.execute(f"DROP INDEX IF EXISTS {name}")
        cur.execute(f"CREATE INDEX {name} ON brand_presence({columns})")
        print(f"  ✓ {name}")

    print('Creating brand_presence_topics_by_date (materialized)...')
    cur.execute("DROP MATERIALIZED VIEW IF EXISTS brand_presence_topics_by_date CASCADE")
    cur.execute(TOPICS_VIEW_SQL)
    for name, ddl in TOPIC_INDEXES:
        cur.execute(f"DROP INDEX IF EXISTS {name}")
        cur.execute(ddl)
        print(f"  ✓ {name}")

    print('Creating brand_presence_prompts_by_date (view)...')
    cur.execute("DROP VIEW IF EXISTS brand_presence_prompts_by_date CASCADE")
    cur.execute(PROMPTS_VIEW_SQL)

    print('Creating refresh_brand_presence_views()...')
    cur.execute(REFRESH_FUNCTION_SQL)


def verify(cur):
    cur.execute("SELECT COUNT(*) FROM brand_presence_topics_by_date")
    topics = cur.fetchone()[0]
    cur.execute("SELECT COUNT(*) FROM brand_presence_prompts_by_date")
    prompts = cur.fetchone()[0]
    print(f"\n  brand_presence_topics_by_date: {topics} rows")
    print(f"  brand_presence_prompts_by_date: {prompts} rows")

    if topics:
        cur.execute(SAMPLE_TOPICS_SQL)
        print('\nTop topics by mentions:')
        for topic, executions, mentions, citations, visibility, volume in cur.fetchall():
            print(f"  \"{topic}\"  executions={executions} mentions={mentions} "
                  f"citations={citations} visibility={visibility}% volume={volume}")


def refresh(cur):
    cur.execute("SELECT refresh_brand_presence_views()")
    print('✓ brand_presence_topics_by_date refreshed')


def main():
    parser = argparse.ArgumentParser(description='Create or refresh brand presence reporting views')
    parser.add_argument('--refresh', action='store_true', help='Only refresh the materialized view')
    args = parser.parse_args()

    load_env()
    conn = get_conn()
    try:
        with conn:
            with conn.cursor() as cur:
                if args.refresh:
                    refresh(cur)
                else:
                    create_views(cur)
                    verify(cur)
                    print('\nRefresh after each import with: SELECT refresh_brand_presence_views();')
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
