# slack_bot/base.py — Slack message helpers and the per-message SlackContext
"""
Shared plumbing for Slack commands and actions.

A ``SlackContext`` is built for every incoming mention. Its ``say`` posts
into the thread of the mention, so commands never deal with channel or
thread ids directly.
"""
import csv
import io
import re
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import requests
from slack_sdk import WebClient

from config import CONFIG
from logging_config import get_logger

logger = get_logger("slack_bot")

BACKTICKS = "```"
BOT_MENTION_REGEX = re.compile(r"^<@[^>]+>\s+")
CHARACTER_LIMIT = 2500
FALLBACK_SLACK_CHANNEL = CONFIG.slack.fallback_channel
CSV_DOWNLOAD_TIMEOUT = 30

_SLACK_URL_FORMAT_REGEX = re.compile(
    r"(?:https?://)?(?:www\.)?([a-zA-Z0-9.-]+)\.([a-zA-Z]{2,})([/\w.-]*/?)"
)


def extract_url_from_slack_input(value: Any, domain_only: bool = False,
                                 include_scheme: bool = True) -> Optional[str]:
    """Normalise `<https://www.x.com|x.com>`, `<x.com>` or `x.com/path` to `https://x.com/path`."""
    if not isinstance(value, str):
        return None
    match = _SLACK_URL_FORMAT_REGEX.search(value)
    if not match:
        return None

    token = match.group(0)
    if "://" not in token:
        token = f"http://{token}"
    parsed = urlparse(token)
    hostname = re.sub(r"^www\.", "", (parsed.hostname or "").lower())
    if domain_only:
        return hostname

    path = parsed.path
    base_url = f"{hostname}{path}" if path and path != "/" else hostname
    return f"https://{base_url}" if include_scheme else base_url


def get_message_from_event(event: Dict[str, Any]) -> str:
    return BOT_MENTION_REGEX.sub("", event.get("text") or "").strip()


def get_thread_timestamp(event: Dict[str, Any]) -> Optional[str]:
    return event.get("thread_ts") or event.get("ts")


def get_slack_channel_id(target: str, target_channels: str = "") -> str:
    """Channel for `target` from a `name=C123,other=C456` list, else the fallback channel."""
    for pair in (target_channels or "").split(","):
        pair = pair.strip()
        if pair.startswith(f"{target}=") and len(pair) > len(target) + 1:
            return pair.split("=", 1)[1].strip()
    return FALLBACK_SLACK_CHANNEL


class SlackContext:
    """Where a command replies: channel, thread and the Web API client."""

    def __init__(self, client: WebClient, channel_id: str, thread_ts: Optional[str],
                 user: Optional[str] = None, files: Optional[List[Dict[str, Any]]] = None,
                 bot_token: Optional[str] = None):
        self.client = client
        self.channel_id = channel_id
        self.thread_ts = thread_ts
        self.user = user
        self.files = files or []
        self.bot_token = bot_token or CONFIG.slack.bot_token

    def say(self, message: Union[str, Dict[str, Any]]):
        options = {"text": message} if isinstance(message, str) else dict(message)
        return self.client.chat_postMessage(channel=self.channel_id, thread_ts=self.thread_ts, **options)


def post_error_message(say, error: Union[Exception, str]) -> None:
    say(f":nuclear-warning: Oops! Something went wrong: {error}")


def post_site_not_found_message(say, base_url: str) -> None:
    say(f":x: No site found with base URL '{base_url}'.")


def send_message_blocks(say, text_sections: List[Dict[str, Any]],
                        additional_blocks: Optional[List[Dict[str, Any]]] = None,
                        options: Optional[Dict[str, Any]] = None) -> None:
    blocks = []
    for section in text_sections:
        block = {"type": "section", "text": {"type": "mrkdwn", "text": section["text"]}}
        if section.get("accessory"):
            block["accessory"] = section["accessory"]
        blocks.append(block)
    blocks.extend(additional_blocks or [])

    message = {"blocks": blocks}
    message.update(options or {})
    say(message)


def send_file(slack_context: SlackContext, content: bytes, filename: str) -> None:
    slack_context.client.files_upload_v2(
        channel=slack_context.channel_id,
        thread_ts=slack_context.thread_ts,
        content=content,
        filename=filename,
        title=filename,
    )


def parse_csv(file: Dict[str, Any], bot_token: str) -> List[List[str]]:
    """Download a Slack file shared with the bot and return its non-empty CSV rows."""
    url = file.get("url_private") or file.get("url_private_download")
    if not url:
        raise ValueError("CSV file has no download URL")
    resp = requests.get(url, headers={"Authorization": f"Bearer {bot_token}"}, timeout=CSV_DOWNLOAD_TIMEOUT)
    if resp.status_code != 200:
        raise ValueError(f"CSV processing failed: download returned {resp.status_code}")
    rows = csv.reader(io.StringIO(resp.content.decode("utf-8-sig")))
    return [[cell.strip() for cell in row] for row in rows if row and any(c.strip() for c in row)]
