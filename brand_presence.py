# brand_presence.py — URL classification and CDN row parsing for brand presence data
"""
Helpers shared by the brand presence scripts.

Source URLs cited in AI answers are normalised and classified by priority:
owned (site host or a subdomain) > competitor (business competitor hosts)
> social (known social platforms) > earned (everything else).
"""
from __future__ import annotations

import os
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

import idna

SOCIAL_MEDIA_DOMAINS = (
    "twitter.com",
    "x.com",
    "facebook.com",
    "linkedin.com",
    "instagram.com",
    "youtube.com",
    "tiktok.com",
    "reddit.com",
    "pinterest.com",
    "tumblr.com",
    "snapchat.com",
    "whatsapp.com",
    "telegram.org",
    "discord.com",
    "twitch.tv",
    "medium.com",
    "quora.com",
)

CONTENT_TYPES = ("owned", "competitor", "social", "earned")

_QUERY_RE = re.compile(r"\?[^#]*")
_VALID_HOST_RE = re.compile(r"^[A-Za-z0-9.-]+$")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def _split_with_scheme(url: str):
    candidate = url if url.lower().startswith("http") else f"https://{url}"
    parts = urlsplit(candidate)
    host = parts.hostname or ""
    if host and not host.isascii():
        try:
            host = idna.encode(host, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValueError(f"Unparseable URL: {url}") from e
    if not host or not _VALID_HOST_RE.match(host):
        raise ValueError(f"Unparseable URL: {url}")
    return parts, host.lower()


def normalize_url(url: Any) -> Any:
    """Canonical form used for de-duplicating cited sources."""
    if not url or not isinstance(url, str):
        return url
    normalized = url.strip()
    try:
        parts, host = _split_with_scheme(normalized)
        if len(host.split(".")) == 2 and not host.startswith("www."):
            host = f"www.{host}"
        scheme = parts.scheme.lower()
        port = parts.port
        netloc = host if port is None or port == _DEFAULT_PORTS.get(scheme) else f"{host}:{port}"
        normalized = urlunsplit((scheme, netloc, parts.path or "/", "", parts.fragment))
    except ValueError:
        normalized = _QUERY_RE.sub("", normalized, count=1)

    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized[:-1]
    if normalized.startswith("HTTP://"):
        normalized = "http://" + normalized[7:]
    elif normalized.startswith("HTTPS://"):
        normalized = "https://" + normalized[8:]
    return normalized


def extract_hostname(url: Any) -> Optional[str]:
    if not url or not isinstance(url, str):
        return None
    candidate = url if url.startswith(("http://", "https://")) else f"https://{url}"
    try:
        _, host = _split_with_scheme(candidate)
    except ValueError:
        return None
    return re.sub(r"^www\.", "", host)


def _matches_domain(hostname: str, domain: str) -> bool:
    return hostname == domain or hostname.endswith(f".{domain}")


def is_owned_url(hostname: Optional[str], site_hostname: Optional[str]) -> bool:
    if not hostname or not site_hostname:
        return False
    return _matches_domain(hostname, site_hostname)


def is_competitor_url(hostname: Optional[str], competitor_domains: List[str]) -> bool:
    if not hostname or not competitor_domains:
        return False
    for domain in competitor_domains:
        competitor_host = extract_hostname(domain)
        if competitor_host and _matches_domain(hostname, competitor_host):
            return True
    return False


def is_social_media_url(hostname: Optional[str]) -> bool:
    if not hostname:
        return False
    return any(_matches_domain(hostname, d) for d in SOCIAL_MEDIA_DOMAINS)


def determine_content_type(url: str, site_hostname: Optional[str],
                           competitor_domains: List[str]) -> str:
    hostname = extract_hostname(url)
    if not hostname:
        return "earned"
    if is_owned_url(hostname, site_hostname):
        return "owned"
    if is_competitor_url(hostname, competitor_domains):
        return "competitor"
    if is_social_media_url(hostname):
        return "social"
    return "earned"


def _split_semicolons(value: Any) -> List[str]:
    if not value or not isinstance(value, str):
        return []
    return [v.strip() for v in value.split(";") if v.strip()]


def parse_sources(sources: Any) -> List[str]:
    return _split_semicolons(sources)


def parse_competitors(competitors: Any) -> List[str]:
    return _split_semicolons(competitors)


def classify_sources(record: Dict[str, Any], site_hostname: str) -> List[Dict[str, Any]]:
    """One brand_presence_sources row per cited URL of a brand_presence record."""
    competitors = parse_competitors(record.get("business_competitors"))
    rows = []
    for url in parse_sources(record.get("sources")):
        normalized = normalize_url(url)
        rows.append({
            "brand_presence_id": record["id"],
            "site_id": record["site_id"],
            "date": record["date"],
            "model": record["model"],
            "url": normalized,
            "hostname": extract_hostname(normalized),
            "content_type": determine_content_type(normalized, site_hostname, competitors),
        })
    return rows


# ---------------------------------------------------------------------
# CDN export files
# ---------------------------------------------------------------------

_FILE_DATE_RE = re.compile(r"(\d{6})\.json$")
_FILE_MODEL_RE = re.compile(r"brandpresence-(.+?)-w\d+")
_CDN_PATH_RE = re.compile(r"/adobe/brand-presence/(w\d+)/(.+\.json)$")

_LETTER_DATE_FORMATS = (
    "%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%d %B %Y", "%b %d %Y", "%B %d %Y",
    "%a, %d %b %Y %H:%M:%S %Z", "%a %b %d %Y",
)


def parse_filename(filename: str) -> Tuple[str, str]:
    """`brandpresence-{model}-w{week}-...{DDMMYY}.json` -> (model, 'YYYY-MM-DD')."""
    base = os.path.basename(filename)
    date_match = _FILE_DATE_RE.search(base)
    if not date_match:
        raise ValueError(f"Could not parse date from filename: {filename}")
    ddmmyy = date_match.group(1)
    file_date = f"20{ddmmyy[4:6]}-{ddmmyy[2:4]}-{ddmmyy[0:2]}"

    # brandpresence-all-* files carry the OpenAI results
    if "brandpresence-all-" in base:
        return "openai", file_date

    model_match = _FILE_MODEL_RE.search(base)
    if not model_match:
        raise ValueError(f"Could not parse model from filename: {filename}")
    return model_match.group(1), file_date


def parse_execution_date(value: Any, fallback_date: Optional[str]) -> Optional[str]:
    """ISO date for recognisable date strings; the file date for serials and junk."""
    if value is None or value == "":
        return None
    text = str(value).strip()
    if isinstance(value, (int, float)) or text.isdigit():
        return fallback_date

    if re.match(r"^\d{4}-\d{2}-\d{2}", text):
        try:
            return datetime.strptime(text[:10], "%Y-%m-%d").date().isoformat()
        except ValueError:
            return fallback_date
    if re.match(r"^\d{2}/\d{2}/\d{4}", text):
        try:
            return datetime.strptime(text[:10], "%m/%d/%Y").date().isoformat()
        except ValueError:
            return fallback_date
    if re.search(r"[a-zA-Z]", text):
        for fmt in _LETTER_DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date().isoformat()
            except ValueError:
                continue
    return fallback_date


def _present(value: Any) -> Any:
    return value if value is not None and value != "" else None


def map_cdn_row(row: Dict[str, Any], site_id: str, model: str, file_date: str) -> Dict[str, Any]:
    """Map one `all.data` entry of an export file to brand_presence columns."""
    return {
        "site_id": site_id,
        "date": file_date,
        "model": model,
        "category": row.get("Category") or None,
        "topics": row.get("Topics") or None,
        "prompt": row.get("Prompt") or None,
        "origin": row.get("Origin") or None,
        "volume": row.get("Volume") or None,
        "region": row.get("Region") or None,
        "url": row.get("URL") or None,
        "answer": row.get("Answer") or None,
        "sources": row.get("Sources") or None,
        "citations": _present(row.get("Citations")),
        "mentions": _present(row.get("Mentions")),
        "sentiment": row.get("Sentiment") or None,
        "business_competitors": row.get("Business Competitors") or None,
        "organic_competitors": row.get("Organic Competitors") or None,
        "content_ai_result": row.get("Content AI Result") or None,
        "is_answered": _present(row.get("Is Answered")),
        "source_to_answer": row.get("Source To Answer") or None,
        "position": row.get("Position") or None,
        "visibility_score": row.get("Visibility Score") or None,
        "detected_brand_mentions": row.get("Detected Brand Mentions") or None,
        "execution_date": parse_execution_date(row.get("Execution Date"), file_date),
        "error_code": row.get("Error Code") or None,
    }


BRAND_PRESENCE_COLUMNS = tuple(map_cdn_row({}, "", "", "").keys())


def process_file_data(data: Dict[str, Any], file_path: str, site_id: str) -> List[Dict[str, Any]]:
    model, file_date = parse_filename(file_path)
    records = (data or {}).get("all") or {}
    if not isinstance(records.get("data"), list):
        return []
    return [map_cdn_row(r, site_id, model, file_date) for r in records["data"]]


def get_local_file_path(cdn_path: str, data_dir: str) -> str:
    """/adobe/brand-presence/w49/file.json -> {data_dir}/w49/file.json"""
    match = _CDN_PATH_RE.search(cdn_path)
    if not match:
        raise ValueError(f"Could not parse CDN path: {cdn_path}")
    return os.path.join(data_dir, match.group(1), match.group(2))


def week_path_filters(weeks) -> List[str]:
    return [f"adobe/brand-presence/{w}/" for w in weeks]
