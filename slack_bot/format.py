# slack_bot/format.py — text and CSV formatting for site and audit listings
import csv
import io
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from models import Audit, Site

SITES_CSV_COLUMNS = (
    "Base URL", "Delivery Type", "Live Status", "Go Live Date", "GitHub URL",
    "Performance Score", "SEO Score", "Accessibility Score", "Best Practices Score", "Error",
)


def format_score(score: Optional[float]) -> str:
    if score is None:
        return "---"
    return str(round(float(score) * 100))


def format_date(value: Any) -> str:
    if not value:
        return "N/A"
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _date_only(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    return str(value).split("T")[0]


def format_lighthouse_error(runtime_error: Optional[Dict[str, Any]]) -> str:
    """`Lighthouse Error: <message> [<code>]` for a failed PSI run."""
    if not runtime_error:
        return "Lighthouse Error: unknown"
    code = runtime_error.get("code") or "unknown"
    message = runtime_error.get("message") or ""
    return f"Lighthouse Error: {message} [{code}]"


def print_site_details(site: Site, is_audit_enabled: bool = True, psi_strategy: str = "mobile",
                       latest_audit: Optional[Audit] = None) -> str:
    lines = []
    if not is_audit_enabled:
        lines.append(f":warning: Audits of type *lhs-{psi_strategy}* are disabled for this site.")
    lines.append(f":mars-team: Base URL: {site.base_url}")
    lines.append(f":github-4173: GitHub: {site.github_url or '_not set_'}")
    lines.append(f"{':rocket:' if site.is_live else ':submarine:'} Is Live: {'Yes' if site.is_live else 'No'}")
    lines.append(f":lighthouse: <https://psi.experiencecloud.live?url={site.base_url}"
                 f"&strategy={psi_strategy}|Run PSI check>")
    if latest_audit is not None:
        lines.append(f":clock1: Last audited at: {format_date(latest_audit.audited_at)}")
    return "\n".join(lines)


def site_csv_row(site: Site, audit: Optional[Audit]) -> Dict[str, str]:
    row = {
        "Base URL": site.base_url,
        "Delivery Type": site.delivery_type,
        "Live Status": "Live" if site.is_live else "Non-Live",
        "Go Live Date": _date_only(site.is_live_toggled_at or site.created_at),
        "GitHub URL": site.github_url or "",
        "Performance Score": "---",
        "SEO Score": "---",
        "Accessibility Score": "---",
        "Best Practices Score": "---",
        "Error": "",
    }
    if audit is not None:
        if audit.is_error:
            row["Error"] = format_lighthouse_error(audit.runtime_error)
        else:
            scores = audit.scores
            row["Performance Score"] = format_score(scores.get("performance", 0))
            row["SEO Score"] = format_score(scores.get("seo", 0))
            row["Accessibility Score"] = format_score(scores.get("accessibility", 0))
            row["Best Practices Score"] = format_score(scores.get("best-practices", 0))
    return row


def format_sites_to_csv(sites: Sequence[Tuple[Site, Optional[Audit]]]) -> bytes:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=SITES_CSV_COLUMNS)
    writer.writeheader()
    for site, audit in sites:
        writer.writerow(site_csv_row(site, audit))
    return buf.getvalue().encode("utf-8")


def format_rows(row: List[str]) -> str:
    return "  ".join((cell or "").ljust(2 if i == 0 else 4) for i, cell in enumerate(row))
