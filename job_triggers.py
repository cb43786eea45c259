# job_triggers.py — SQS message contracts for audit, scrape and import workers
from __future__ import annotations

from typing import Any, Dict, List, Optional

from aws_clients import SqsClient
from config import CONFIG
from models import Site


def _slack_context(slack_context) -> Dict[str, Any]:
    return {"channelId": slack_context.channel_id, "threadTs": slack_context.thread_ts}


def send_audit_message(sqs: SqsClient, queue_url: str, audit_type: str,
                       audit_context: Dict[str, Any], site_id: str,
                       audit_data: Optional[Any] = None) -> str:
    """Queue `{type, siteId, auditContext[, data]}` for the audit worker."""
    message: Dict[str, Any] = {"type": audit_type, "siteId": site_id, "auditContext": audit_context}
    if audit_data is not None:
        message["data"] = audit_data
    return sqs.send_message(queue_url, message)


def trigger_audit_for_site(sqs: SqsClient, site: Site, audit_type: str, slack_context,
                           audit_data: Optional[Any] = None) -> str:
    return send_audit_message(
        sqs,
        CONFIG.aws.audit_jobs_queue_url,
        audit_type,
        {"slackContext": _slack_context(slack_context)},
        site.id,
        audit_data,
    )


def trigger_scraper_run(sqs: SqsClient, job_id: str, urls: List[Dict[str, str]], slack_context,
                        allow_cache: bool = False) -> str:
    return sqs.send_message(CONFIG.aws.scraping_jobs_queue_url, {
        "processingType": "default",
        "allowCache": allow_cache,
        "jobId": job_id,
        "urls": urls,
        "slackContext": _slack_context(slack_context),
    })
