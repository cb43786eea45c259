#!/usr/bin/env python3
"""SQS message contracts for the audit, scrape and import workers."""
from unittest.mock import MagicMock

from config import CONFIG
from job_triggers import send_audit_message, trigger_audit_for_site, trigger_scraper_run
from models import Site

SITE_ID = '9c4c7c4a-0f6b-4e5c-8b1d-3a0f0b7c1e21'


def _slack_context():
    ctx = MagicMock()
    ctx.channel_id = 'C1'
    ctx.thread_ts = '1.0'
    return ctx


def test_send_audit_message_includes_data_only_when_given():
    sqs = MagicMock()
    send_audit_message(sqs, 'q', 'cwv', {}, SITE_ID)
    send_audit_message(sqs, 'q', 'cwv', {}, SITE_ID, audit_data={'keywords': ['a']})
    first, second = [c.args[1] for c in sqs.send_message.call_args_list]
    assert first == {'type': 'cwv', 'siteId': SITE_ID, 'auditContext': {}}
    assert second['data'] == {'keywords': ['a']}


def test_trigger_audit_for_site():
    sqs = MagicMock()
    trigger_audit_for_site(sqs, Site(id=SITE_ID, base_url='https://a.com'), 'lhs-mobile', _slack_context())
    queue_url, message = sqs.send_message.call_args.args
    assert queue_url == CONFIG.aws.audit_jobs_queue_url
    assert message == {
        'type': 'lhs-mobile',
        'siteId': SITE_ID,
        'auditContext': {'slackContext': {'channelId': 'C1', 'threadTs': '1.0'}},
    }


def test_trigger_scraper_run():
    sqs = MagicMock()
    urls = [{'url': 'https://a.com/1'}]
    trigger_scraper_run(sqs, 'job-1', urls, _slack_context())
    queue_url, message = sqs.send_message.call_args.args
    assert queue_url == CONFIG.aws.scraping_jobs_queue_url
    assert message == {
        'processingType': 'default',
        'allowCache': False,
        'jobId': 'job-1',
        'urls': urls,
        'slackContext': {'channelId': 'C1', 'threadTs': '1.0'},
    }
