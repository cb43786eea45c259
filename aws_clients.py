# aws_clients.py — boto3 session, client factories and the SQS sender
from __future__ import annotations

import json
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from config import CONFIG
from logging_config import get_logger, get_metrics_logger

logger = get_logger("aws_clients")
metrics = get_metrics_logger("aws_clients")

_session: Optional[boto3.session.Session] = None
_clients: Dict[str, Any] = {}


def get_session() -> boto3.session.Session:
    global _session
    if _session is None:
        _session = boto3.Session(region_name=CONFIG.aws.region)
    return _session


def get_client(service: str):
    """Cached boto3 client per service name."""
    if service not in _clients:
        _clients[service] = get_session().client(service)
    return _clients[service]


def s3_client():
    return get_client("s3")


def athena_client():
    return get_client("athena")


def generate_presigned_url(bucket: str, key: str, expires_in: int, client=None) -> str:
    client = client or s3_client()
    return client.generate_presigned_url(
        "get_object",
        Params={"Bucket": bucket, "Key": key},
        ExpiresIn=expires_in,
    )


class SqsClient:
    """JSON message sender for the worker queues."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_client("sqs")
        return self._client

    def send_message(self, queue_url: str, message: Dict[str, Any]) -> str:
        if not queue_url:
            raise ValueError("Queue URL is required")
        try:
            response = self.client.send_message(QueueUrl=queue_url, MessageBody=json.dumps(message))
        except (ClientError, BotoCoreError) as e:
            logger.error("sqs_send_failed", queue_url=queue_url, message_type=message.get("type"), error=str(e))
            raise
        message_id = response.get("MessageId")
        metrics.queue_message_sent(queue_url, message.get("type") or message.get("processingType"),
                                   message_id=message_id)
        return message_id


_sqs: Optional[SqsClient] = None


def get_sqs() -> SqsClient:
    global _sqs
    if _sqs is None:
        _sqs = SqsClient()
    return _sqs
