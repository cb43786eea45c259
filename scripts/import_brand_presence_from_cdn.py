#!/usr/bin/env python3
"""import_brand_presence_from_cdn.py
Sync brand-presence export files from the LLMO CDN to a local folder, then
load them into the `brand_presence` table.

Sync:
  * reads the query index and keeps entries under adobe/brand-presence/<week>/
  * skips files whose `lastModified` is not newer than the one recorded in
    <data dir>/brand-presence-sync.json (updated after every download so an
    interrupted sync can resume)
  * downloads each file page by page (offset/limit) and merges `all.data`

Import:
  * every brandpresence-*.json under <data dir>/<week>/ is mapped to rows
    and inserted 100 at a time; rows already present are left untouched

Settings come from BRAND_PRESENCE_* environment variables (see config.py);
the CDN token is BRAND_PRESENCE_CDN_TOKEN.

Usage:
  python scripts/import_brand_presence_from_cdn.py --site-id <uuid>
  python scripts/import_brand_presence_from_cdn.py --site-id <uuid> --sync-only
  python scripts/import_brand_presence_from_cdn.py --site-id <uuid> --import-only --weeks w49 w48
"""
import os
import sys
import json
import argparse
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import psycopg2
import requests
from psycopg2.extras import execute_values
from dotenv import load_dotenv

# Ensure project root is on sys.path for brand_presence / config imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from brand_presence import (
    BRAND_PRESENCE_COLUMNS, get_local_file_path, process_file_data, week_path_filters,
)

INSERT_BATCH_SIZE = 100
SYNC_CONTROL_FILENAME = 'brand-presence-sync.json'


def log(message: str):
    print(f"[{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}] {message}")


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


# ---------------------------------------------------------------------
# CDN sync
# ---------------------------------------------------------------------

class CdnClient:
    """GETs JSON from the CDN with the `token` authorization scheme."""

    def __init__(self, base_url: str, token: str = '', timeout: float = 120,
                 page_size: int = 1000, max_pages: int = 100, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.page_size = page_size
        self.max_pages = max_pages
        self.session = session or requests.Session()

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f"token {self.token}"
        try:
            resp = self.session.get(url, headers=headers, params=params, timeout=self.timeout)
        except requests.Timeout:
            raise RuntimeError(f"Request timeout after {self.timeout}s for {url}")
        if not resp.ok:
            raise RuntimeError(f"HTTP {resp.status_code}: {resp.reason} for {url}")
        return resp.json()

    def fetch_file(self, path: str) -> Optional[Dict[str, Any]]:
        """All pages of an export file merged into the first page's structure."""
        url = f"{self.base_url}{path}"
        offset = 0
        total = None
        combined = None

        for _ in range(self.max_pages):
            response = self.get_json(url, params={'offset': offset, 'limit': self.page_size})
            section = response.get('all') or {}
            data = section.get('data') if isinstance(section.get('data'), list) else []

            if combined is None:
                combined = response
                if isinstance(section.get('total'), int):
                    total = section['total']
            elif data and isinstance((combined.get('all') or {}).get('data'), list):
                combined['all']['data'].extend(data)

            offset += len(data)
            if not data or len(data) < self.page_size or (total is not None and offset >= total):
                break
        else:
            log(f"  ! Reached max pagination iterations ({self.max_pages}), stopping")

        if combined and isinstance(combined.get('all'), dict) and isinstance(combined['all'].get('data'), list):
            combined['all']['offset'] = 0
            combined['all']['limit'] = len(combined['all']['data'])
        return combined


def filter_index_entries(entries: List[Dict[str, Any]], weeks) -> List[Dict[str, Any]]:
    filters = week_path_filters(weeks)
    return [e for e in entries if any(f in (e.get('path') or '') for f in filters)]


def load_sync_control(path: str) -> Dict[str, Any]:
    if os.path.exists(path):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except ValueError:
            log('! Could not parse sync control file, starting fresh')
    return {'files': {}}


def save_sync_control(path: str, control: Dict[str, Any]):
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(control, f, indent=2)


def needs_download(control: Dict[str, Any], cdn_path: str, last_modified) -> bool:
    saved = (control.get('files', {}).get(cdn_path) or {}).get('lastModified')
    return not (saved is not None and last_modified is not None and saved >= last_modified)


def sync_files(client: CdnClient, index_path: str, data_dir: str, weeks) -> Dict[str, Any]:
    control_path = os.path.join(data_dir, SYNC_CONTROL_FILENAME)
    control = load_sync_control(control_path)

    log('Fetching query index...')
    index = client.get_json(f"{client.base_url}{index_path}")
    if not isinstance(index.get('data'), list):
        raise ValueError('Invalid query index format: missing data array')
    entries = filter_index_entries(index['data'], weeks)
    log(f"Found {len(entries)} files in query index")

    downloaded, skipped, errors = 0, 0, []
    for entry in entries:
        cdn_path, last_modified = entry['path'], entry.get('lastModified')
        if not needs_download(control, cdn_path, last_modified):
            skipped += 1
            continue
        try:
            local_path = get_local_file_path(cdn_path, data_dir)
            data = client.fetch_file(cdn_path)
            os.makedirs(os.path.dirname(local_path), exist_ok=True)
            with open(local_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            control.setdefault('files', {})[cdn_path] = {
                'lastModified': last_modified,
                'localPath': local_path,
                'downloadedAt': datetime.now(timezone.utc).isoformat(),
            }
            save_sync_control(control_path, control)
            log(f"  ✓ {os.path.basename(cdn_path)} -> {local_path}")
            downloaded += 1
        except (RuntimeError, ValueError, OSError, requests.RequestException) as e:
            log(f"  ✗ {cdn_path}: {e}")
            errors.append({'file': cdn_path, 'error': str(e)})

    save_sync_control(control_path, control)
    log(f"Sync summary: downloaded={downloaded} skipped={skipped} errors={len(errors)}")
    for err in errors:
        log(f"  - {err['file']}: {err['error']}")
    return {'downloaded': downloaded, 'skipped': skipped, 'errors': errors}


# ---------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------

def find_local_files(data_dir: str, weeks) -> List[str]:
    files = []
    for week in weeks:
        folder = os.path.join(data_dir, week)
        if not os.path.isdir(folder):
            log(f"  ! Week folder not found: {folder}")
            continue
        for name in sorted(os.listdir(folder)):
            if name.startswith('brandpresence-') and name.endswith('.json'):
                files.append(os.path.join(folder, name))
    return files


def insert_rows(cur, rows: List[Dict[str, Any]]) -> int:
    """Insert in batches; returns the rows actually stored, conflicts excluded."""
    stored = 0
    for i in range(0, len(rows), INSERT_BATCH_SIZE):
        batch = rows[i:i + INSERT_BATCH_SIZE]
        execute_values(
            cur,
            f"INSERT INTO brand_presence ({', '.join(BRAND_PRESENCE_COLUMNS)}) VALUES %s "
            f"ON CONFLICT (site_id, date, model, category, prompt, region) DO NOTHING",
            [tuple(r[c] for c in BRAND_PRESENCE_COLUMNS) for r in batch],
            page_size=INSERT_BATCH_SIZE,
        )
        stored += max(cur.rowcount, 0)
    return stored


def import_files(conn, site_id: str, data_dir: str, weeks) -> Dict[str, Any]:
    files = find_local_files(data_dir, weeks)
    log(f"Found {len(files)} local files")
    if not files:
        log('No local files to import. Run sync first.')
        return {'files': 0, 'rows': 0, 'errors': []}

    total_rows, processed, errors = 0, 0, []
    for path in files:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                rows = process_file_data(json.load(f), path, site_id)
            if not rows:
                log(f"  - {os.path.basename(path)}: no data, skipped")
                continue
            with conn:
                with conn.cursor() as cur:
                    total_rows += insert_rows(cur, rows)
            processed += 1
            log(f"  ✓ {os.path.basename(path)}: {len(rows)} rows")
        except (ValueError, OSError, psycopg2.Error) as e:
            log(f"  ✗ {os.path.basename(path)}: {e}")
            errors.append({'file': os.path.basename(path), 'error': str(e)})

    log(f"Files processed: {processed}/{len(files)}, rows: {total_rows:,}")
    with conn.cursor() as cur:
        cur.execute(
            "SELECT model, date, COUNT(*) FROM brand_presence WHERE site_id = %s "
            "GROUP BY model, date ORDER BY date DESC, model",
            (site_id,),
        )
        for model, day, count in cur.fetchall():
            log(f"  {day} | {model}: {count} rows")
    return {'files': processed, 'rows': total_rows, 'errors': errors}


def main(argv=None):
    parser = argparse.ArgumentParser(description='Sync and import brand presence data from the CDN')
    parser.add_argument('--site-id', required=True, help='Site the imported rows belong to')
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--sync-only', action='store_true', help='Download files, do not import')
    mode.add_argument('--import-only', action='store_true', help='Import local files, do not download')
    parser.add_argument('--weeks', nargs='*', help='Week folders to process, e.g. w49 w48')
    parser.add_argument('--data-dir', help='Local folder for downloaded files')
    args = parser.parse_args(argv)

    load_env()
    from config import CONFIG

    weeks = args.weeks or list(CONFIG.cdn.week_filters)
    data_dir = args.data_dir or CONFIG.cdn.data_dir

    if not args.import_only:
        client = CdnClient(
            CONFIG.cdn.base_url,
            token=CONFIG.cdn.token,
            timeout=CONFIG.cdn.timeout,
            page_size=CONFIG.cdn.page_size,
            max_pages=CONFIG.cdn.max_pages,
        )
        sync_files(client, CONFIG.cdn.query_index_path, data_dir, weeks)

    if not args.sync_only:
        conn = get_conn()
        try:
            import_files(conn, args.site_id, data_dir, weeks)
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
