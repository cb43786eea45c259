# s3_cache.py - S3 read/write-through cache for query results
"""
JSON results are stored gzip-compressed under an `s3://bucket/prefix` URI.

Callers first check with `file_exists` (HEAD with a short retry loop for
503s), then either read the cached payload back with `get_cached_json_data`
or hand out a presigned URL with `get_s3_cached_result`.
"""
import gzip
import json
import re
import time
from typing import Any, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from aws_clients import generate_presigned_url, s3_client
from config import CONFIG
from logging_config import get_logger

logger = get_logger("s3_cache")

S3_URI_RE = re.compile(r"^s3://([^/]+)/?(.*)$")

HEAD_MAX_ATTEMPTS = 3
HEAD_RETRY_DELAY_SEC = 0.2


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """Split `s3://bucket/key` into (bucket, key)."""
    match = S3_URI_RE.match(uri or "")
    if not match:
        raise ValueError(f"Invalid S3 URI: {uri}")
    return match.group(1), match.group(2)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _status_code(error: ClientError) -> Optional[int]:
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


def file_exists(uri: str, client=None, attempts: int = HEAD_MAX_ATTEMPTS,
                delay: float = HEAD_RETRY_DELAY_SEC) -> bool:
    client = client or s3_client()
    bucket, key = parse_s3_uri(uri)
    for attempt in range(1, attempts + 1):
        try:
            client.head_object(Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            code = _error_code(e)
            if code in ("NotFound", "404", "NoSuchKey"):
                return False
            retryable = _status_code(e) == 503 or code in ("ServiceUnavailable", "503", "SlowDown")
            if retryable and attempt < attempts:
                logger.warning("s3_head_retry", uri=uri, attempt=attempt)
                time.sleep(delay)
                continue
            logger.error("s3_head_failed", uri=uri, code=code, attempt=attempt)
            return False
        except BotoCoreError as e:
            logger.error("s3_head_failed", uri=uri, error=str(e))
            return False
    return False


def get_signed_url_with_retries(uri: str, expires_in: int, client=None) -> Optional[str]:
    """Presigned GET for an object that exists; None otherwise."""
    client = client or s3_client()
    if not file_exists(uri, client=client):
        return None
    bucket, key = parse_s3_uri(uri)
    return generate_presigned_url(bucket, key, expires_in, client=client)


def get_s3_cached_result(uri: str, client=None) -> Optional[str]:
    return get_signed_url_with_retries(uri, CONFIG.aws.cache_result_url_ttl_sec, client=client)


def add_result_json_to_cache(uri: str, result: Any, client=None) -> bool:
    client = client or s3_client()
    bucket, key = parse_s3_uri(uri)
    try:
        body = gzip.compress(json.dumps(result, default=str).encode("utf-8"))
        client.put_object(
            Bucket=bucket,
            Key=key,
            Body=body,
            ContentType="application/json",
            ContentEncoding="gzip",
        )
        logger.info("s3_cache_written", uri=uri, bytes=len(body))
        return True
    except (ClientError, BotoCoreError, TypeError, ValueError) as e:
        logger.error("s3_cache_write_failed", uri=uri, error=str(e))
        return False


def get_cached_json_data(uri: str, client=None) -> Optional[Any]:
    client = client or s3_client()
    bucket, key = parse_s3_uri(uri)
    try:
        response = client.get_object(Bucket=bucket, Key=key)
        raw = response["Body"].read()
        if response.get("ContentEncoding") == "gzip" or raw[:2] == b"\x1f\x8b":
            raw = gzip.decompress(raw)
        return json.loads(raw.decode("utf-8"))
    except ClientError as e:
        if _error_code(e) in ("NoSuchKey", "NotFound", "404"):
            logger.info("s3_cache_miss", uri=uri)
        else:
            logger.error("s3_cache_read_failed", uri=uri, error=str(e))
        return None
    except (BotoCoreError, OSError, ValueError) as e:
        logger.error("s3_cache_read_failed", uri=uri, error=str(e))
        return None
