# traffic_analysis.py — predominant traffic type per URL from RUM compact metrics
"""
Pageviews per (trf_type, path) come from Athena over the last four weeks.
Each requested URL is classified as `paid`, `earned` or `owned` when that
type reaches the threshold share of its pageviews, `mixed` otherwise, and
`no traffic` when the path has no data at all.

Query results are cached in S3 keyed by the md5 of the SQL text.
"""
from __future__ import annotations

import hashlib
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from config import CONFIG
from logging_config import get_logger
from services.athena_client import AthenaClient
from services.s3_cache import add_result_json_to_cache, get_cached_json_data
from utils.date_utils import get_temporal_condition

logger = get_logger("traffic_analysis")

TRAFFIC_TYPES = ("paid", "earned", "owned")
PAGE_VIEW_THRESHOLD = 1000
DEFAULT_PREDOMINANT_PCT = 80


def extract_path(url: str) -> str:
    """Path component of a URL; plain strings are treated as a path."""
    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        return parsed.path or "/"
    return url if url.startswith("/") else f"/{url}"


def build_traffic_query(site_id: str, temporal_condition: str,
                        page_view_threshold: int = PAGE_VIEW_THRESHOLD) -> str:
    table = f"{CONFIG.aws.rum_metrics_database}.{CONFIG.aws.rum_metrics_compact_table}"
    site_filter = site_id.replace("'", "''")
    return f"""
WITH filtered AS (
    SELECT trf_type, path, pageviews
    FROM {table}
    WHERE siteid = '{site_filter}'
      AND ({temporal_condition})
),
path_totals AS (
    SELECT path
    FROM filtered
    GROUP BY path
    HAVING SUM(pageviews) >= {page_view_threshold}
)
SELECT f.trf_type, f.path, SUM(f.pageviews) AS pageviews
FROM filtered f
JOIN path_totals p ON f.path = p.path
GROUP BY f.trf_type, f.path
ORDER BY pageviews DESC
""".strip()


def query_hash(query: str) -> str:
    return hashlib.md5(query.encode("utf-8")).hexdigest()


def aggregate_by_path(rows: List[Dict[str, Any]]) -> Dict[str, Dict[str, float]]:
    """{path: {paid, earned, owned, total}} in pageviews."""
    totals: Dict[str, Dict[str, float]] = {}
    for row in rows:
        path = row.get("path")
        if not path:
            continue
        bucket = totals.setdefault(path, {"paid": 0.0, "earned": 0.0, "owned": 0.0, "total": 0.0})
        views = float(row.get("pageviews") or 0)
        trf_type = (row.get("trf_type") or "").lower()
        if trf_type in TRAFFIC_TYPES:
            bucket[trf_type] += views
            bucket["total"] += views
    return totals


def classify_path(stats: Optional[Dict[str, float]], threshold: float) -> Dict[str, Any]:
    if not stats or not stats.get("total"):
        return {
            "predominantTraffic": "no traffic",
            "details": {"paid": 0, "earned": 0, "owned": 0},
        }
    total = stats["total"]
    details = {t: stats[t] / total * 100 for t in TRAFFIC_TYPES}
    predominant = next((t for t in TRAFFIC_TYPES if details[t] >= threshold), "mixed")
    return {"predominantTraffic": predominant, "details": details}


def classify_urls(urls: List[str], rows: List[Dict[str, Any]], threshold: float) -> List[Dict[str, Any]]:
    by_path = aggregate_by_path(rows)
    results = []
    for url in urls:
        entry = {"url": url}
        entry.update(classify_path(by_path.get(extract_path(url)), threshold))
        results.append(entry)
    return results


def fetch_traffic_rows(site_id: str, site_base_url: str,
                       athena: Optional[AthenaClient] = None) -> List[Dict[str, Any]]:
    """Athena rows for the last four weeks, read through the S3 cache."""
    temporal_condition = get_temporal_condition(4)
    query = build_traffic_query(site_id, temporal_condition)
    digest = query_hash(query)
    cache_uri = f"{CONFIG.aws.paid_traffic_cache_uri.rstrip('/')}/{site_id}/{digest}.json"

    cached = get_cached_json_data(cache_uri)
    if cached is not None:
        logger.info("traffic_cache_hit", site_id=site_id, cache_uri=cache_uri)
        return cached

    athena = athena or AthenaClient(
        output_location=f"s3://{CONFIG.aws.s3_bucket_name}/rum-metrics-compact/temp/out/{digest}"
    )
    rows = athena.query(query, CONFIG.aws.rum_metrics_database,
                        description=(f"predominant traffic | siteId: {site_id} | site: {site_base_url} "
                                     f"| temporalCondition: {temporal_condition}"))
    add_result_json_to_cache(cache_uri, rows)
    return rows


def get_predominant_traffic(site_id: str, site_base_url: str, urls: List[str],
                            threshold: float = DEFAULT_PREDOMINANT_PCT,
                            athena: Optional[AthenaClient] = None) -> List[Dict[str, Any]]:
    rows = fetch_traffic_rows(site_id, site_base_url, athena=athena)
    return classify_urls(urls, rows, threshold)
