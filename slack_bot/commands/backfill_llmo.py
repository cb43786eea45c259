import logging
from datetime import datetime, timedelta, timezone

from slack_bot.base import extract_url_from_slack_input, post_error_message
from slack_bot.commands.base import BaseCommand
from utils.validation import is_valid_url

logger = logging.getLogger(__name__)

CDN_ANALYSIS = 'cdn-analysis'
CDN_LOGS_REPORT = 'cdn-logs-report'
MAX_REPORT_WEEKS = 4


def parse_args(args):
    """`key=value` words into a dict; other words are ignored."""
    parsed = {}
    for arg in args:
        if '=' in arg:
            key, _, value = arg.partition('=')
            parsed[key] = value
    return parsed


def _to_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def build_backfill_messages(site_id, audit_type, time_value, now=None):
    """Audit messages for `days` (cdn-analysis) or `weeks` (cdn-logs-report) of history."""
    if audit_type == CDN_ANALYSIS:
        now = now or datetime.now(timezone.utc)
        messages = []
        for day_offset in range(1, time_value + 1):
            target = now - timedelta(days=day_offset)
            messages.append({
                'type': audit_type,
                'siteId': site_id,
                'auditContext': {
                    'year': target.year,
                    'month': target.month,
                    'day': target.day,
                    'hour': 23,
                    'processFullDay': True,
                },
            })
        return messages

    if audit_type == CDN_LOGS_REPORT:
        offsets = [0] if time_value == 0 else [-(i + 1) for i in range(time_value)]
        return [
            {'type': audit_type, 'siteId': site_id, 'auditContext': {'weekOffset': offset}}
            for offset in offsets
        ]

    raise ValueError(f"Unsupported audit type: {audit_type}")


class BackfillLlmoCommand(BaseCommand):
    id = 'backfill-llmo'
    name = 'Backfill LLMO'
    description = 'Backfills LLMO audits.'
    phrases = ('backfill-llmo',)
    usage_text = 'backfill-llmo baseurl={baseURL} audit={auditType} [days={days}|weeks={weeks}]'

    def _say_examples(self, say):
        say(':warning: Required: baseurl={baseURL} audit={auditType}')
        say('Examples:')
        say(f"• `backfill-llmo baseurl=https://example.com audit={CDN_ANALYSIS} days=3`")
        say(f"• `backfill-llmo baseurl=https://example.com audit={CDN_LOGS_REPORT} weeks=2`")
        say(f"• `backfill-llmo baseurl=https://example.com audit={CDN_LOGS_REPORT} weeks=0` (current week)")

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        try:
            parsed = parse_args(args)
            if not parsed.get('baseurl') or not parsed.get('audit'):
                self._say_examples(say)
                return

            base_url = extract_url_from_slack_input(parsed['baseurl'])
            audit_type = parsed['audit']
            if not is_valid_url(base_url):
                say(':warning: Invalid URL provided')
                return

            if audit_type == CDN_ANALYSIS:
                time_value = _to_int(parsed.get('days')) or 1
                time_desc = f"{time_value} days"
            elif audit_type == CDN_LOGS_REPORT:
                time_value = _to_int(parsed.get('weeks'))
                if time_value is None:
                    time_value = MAX_REPORT_WEEKS
                if time_value > MAX_REPORT_WEEKS:
                    say(f":warning: Max {MAX_REPORT_WEEKS} weeks for {CDN_LOGS_REPORT}")
                    return
                if time_value < 0:
                    say(f":warning: weeks must be between 0 and {MAX_REPORT_WEEKS}")
                    return
                time_desc = 'current week only' if time_value == 0 else f"{time_value} previous weeks"
            else:
                say(f":warning: Supported audits: {CDN_ANALYSIS}, {CDN_LOGS_REPORT}")
                return

            if time_value < 1 and audit_type == CDN_ANALYSIS:
                say(':warning: days must be a positive number')
                return

            say(f":gear: Starting {audit_type} backfill for {base_url} ({time_desc})...")

            site = self.data_access.sites.find_by_base_url(base_url)
            if not site:
                say(f":x: Site '{base_url}' not found")
                return

            configuration = self.data_access.configurations.find_latest()
            queue_url = configuration.get_queues().get('audits')
            messages = build_backfill_messages(site.id, audit_type, time_value)
            for message in messages:
                self.sqs.send_message(queue_url, message)

            say(f":white_check_mark: {audit_type} backfill triggered! {len(messages)} messages queued.")
        except Exception as e:
            logger.error(f"Error in LLMO backfill: {e}", exc_info=True)
            post_error_message(say, e)
