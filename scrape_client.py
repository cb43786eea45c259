# scrape_client.py — create scrape jobs and read their per-URL results
from __future__ import annotations

from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from aws_clients import SqsClient, get_sqs
from config import CONFIG
from data_access import DataAccess, get_data_access
from logging_config import get_logger
from utils.validation import is_valid_url

logger = get_logger("scrape_client")


class ScrapeClientError(Exception):
    pass


class ScrapeClient:
    def __init__(self, data_access: Optional[DataAccess] = None, sqs: Optional[SqsClient] = None):
        self.data_access = data_access or get_data_access()
        self.sqs = sqs or get_sqs()

    def create_scrape_job(self, urls: List[str], processing_type: str = "default",
                          options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not isinstance(urls, list) or not urls:
            raise ScrapeClientError("Invalid request: urls must be a non-empty array")
        for url in urls:
            if not is_valid_url(url):
                raise ScrapeClientError(f"Invalid request: invalid URL {url}")

        options = options or {}
        job = self.data_access.scrape_jobs.create_with_urls(urls, processing_type, options)

        try:
            self.sqs.send_message(CONFIG.aws.scraping_jobs_queue_url, {
                "jobId": job.id,
                "processingType": processing_type,
                "urls": [{"url": u} for u in urls],
                "options": options,
                "allowCache": False,
            })
        except (ClientError, BotoCoreError, ValueError) as e:
            logger.error("scrape_job_queue_failed", job_id=job.id, error=str(e))
            self.data_access.scrape_jobs.mark_failed(job.id, "Failed to queue scrape job")
            raise ScrapeClientError("Service Unavailable") from e

        logger.info("scrape_job_created", job_id=job.id, processing_type=processing_type, urls=len(urls))
        return job.to_dict()

    def get_scrape_job_url_results(self, job_id: str) -> List[Dict[str, Any]]:
        rows = self.data_access.scrape_jobs.all_urls_by_job_id(job_id)
        return [
            {"url": r["url"], "status": r["status"], "reason": r.get("reason"), "path": r.get("path")}
            for r in rows
        ]
