#!/usr/bin/env python3
"""Tests for consent-banner scrape jobs and their screenshot results."""
from unittest.mock import patch, MagicMock

import pytest

from scrape_client import ScrapeClientError

JOB_ID = '3f1c2d4e-5a6b-4c7d-8e9f-0a1b2c3d4e5f'
RESULT_PATH = f'scrapes/{JOB_ID}/www.example.com/scrape.json'


def test_take_screenshots_requires_valid_url(client, user_headers):
    resp = client.post('/api/v1/consent-banner', json={'url': 'example'}, headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'No valid URL provided: example'


def test_take_screenshots_error_header_is_single_line(client, user_headers):
    resp = client.post('/api/v1/consent-banner', json={'url': 'bad\nurl'}, headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'No valid URL provided: bad\nurl'
    assert resp.headers['x-error'] == 'No valid URL provided: bad'


def test_take_screenshots_creates_job(client, user_headers):
    scrape_client = MagicMock()
    scrape_client.create_scrape_job.return_value = {'id': JOB_ID, 'status': 'RUNNING'}
    with patch('app.routes.consent_banner_routes.ScrapeClient', return_value=scrape_client):
        resp = client.post('/api/v1/consent-banner', json={'url': 'https://www.example.com'}, headers=user_headers)
    assert resp.status_code == 202
    assert resp.get_json()['id'] == JOB_ID
    args, kwargs = scrape_client.create_scrape_job.call_args
    assert args[0] == ['https://www.example.com']
    assert kwargs['processing_type'] == 'consent-banner'
    assert kwargs['options']['screenshotTypes'] == ['viewport']


def test_take_screenshots_service_unavailable(client, user_headers):
    scrape_client = MagicMock()
    scrape_client.create_scrape_job.side_effect = ScrapeClientError('Service Unavailable')
    with patch('app.routes.consent_banner_routes.ScrapeClient', return_value=scrape_client):
        resp = client.post('/api/v1/consent-banner', json={'url': 'https://www.example.com'}, headers=user_headers)
    assert resp.status_code == 503


def test_get_screenshots_unknown_job(client, user_headers):
    scrape_client = MagicMock()
    scrape_client.get_scrape_job_url_results.return_value = []
    with patch('app.routes.consent_banner_routes.ScrapeClient', return_value=scrape_client):
        resp = client.get(f'/api/v1/consent-banner/{JOB_ID}', headers=user_headers)
    assert resp.status_code == 404


def test_get_screenshots_still_running(client, user_headers):
    scrape_client = MagicMock()
    scrape_client.get_scrape_job_url_results.return_value = [{'status': 'PENDING', 'path': None}]
    with patch('app.routes.consent_banner_routes.ScrapeClient', return_value=scrape_client):
        resp = client.get(f'/api/v1/consent-banner/{JOB_ID}', headers=user_headers)
    assert resp.status_code == 404
    assert resp.get_json()['message'] == 'Scrape job is still running. Try again in a few secs.'


def test_get_screenshots_failed_job(client, user_headers):
    scrape_client = MagicMock()
    scrape_client.get_scrape_job_url_results.return_value = [{'status': 'FAILED', 'reason': 'timeout'}]
    with patch('app.routes.consent_banner_routes.ScrapeClient', return_value=scrape_client):
        resp = client.get(f'/api/v1/consent-banner/{JOB_ID}', headers=user_headers)
    assert resp.status_code == 500
    assert resp.get_json()['message'] == 'Scrape job failed: timeout'


def test_get_screenshots_complete(client, user_headers):
    scrape_client = MagicMock()
    scrape_client.get_scrape_job_url_results.return_value = [{'status': 'COMPLETE', 'path': RESULT_PATH}]
    scrape_json = MagicMock()
    scrape_json.json.return_value = {
        'screenshots': [{'type': 'viewport'}],
        'device': {'width': 1920},
        'scrapeTime': 1234,
        'scrapeResult': {'results': {'banner': True}},
    }
    with patch('app.routes.consent_banner_routes.ScrapeClient', return_value=scrape_client), \
            patch('app.routes.consent_banner_routes.generate_presigned_url',
                  side_effect=lambda bucket, key, ttl: f'https://signed/{key}'), \
            patch('app.routes.consent_banner_routes.requests.get', return_value=scrape_json) as get:
        resp = client.get(f'/api/v1/consent-banner/{JOB_ID}', headers=user_headers)

    assert resp.status_code == 200
    get.assert_called_once_with(f'https://signed/{RESULT_PATH}', timeout=30)
    results = resp.get_json()['results']
    assert results['desktop_cookie_banner_on'] == (
        f'https://signed/scrapes/{JOB_ID}/www.example.com/screenshot-desktop-viewport-withBanner.png')
    assert results['mobile_cookie_banner_off'].endswith('screenshot-iphone-6-viewport-withoutBanner.png')
    assert results['dimensions'] == {'banner': True}
    assert results['scrapeTime'] == 1234


# ==================== Scrape client ====================

def _transaction(cursor):
    ctx = MagicMock()
    ctx.__enter__.return_value = cursor
    ctx.__exit__.return_value = False
    return ctx


def test_scrape_job_and_urls_share_one_transaction():
    from data_access import ScrapeJobRepository

    cursor = MagicMock()
    cursor.fetchone.return_value = {'id': JOB_ID, 'base_url': 'https://a.com', 'processing_type': 'default'}
    with patch('db_utils.transaction', return_value=_transaction(cursor)) as transaction:
        job = ScrapeJobRepository().create_with_urls(['https://a.com', 'https://a.com/b'], 'default', {})

    assert job.id == JOB_ID
    transaction.assert_called_once()
    statements = [c.args[0] for c in cursor.execute.call_args_list]
    assert len(statements) == 3
    assert 'INSERT INTO scrape_jobs' in statements[0]
    assert all('INSERT INTO scrape_urls' in s for s in statements[1:])
    assert cursor.execute.call_args_list[2].args[1][1:] == (JOB_ID, 'https://a.com/b')


def test_scrape_job_marked_failed_when_queue_send_fails():
    from botocore.exceptions import ClientError
    from models import ScrapeJob
    from scrape_client import ScrapeClient

    data_access = MagicMock()
    data_access.scrape_jobs.create_with_urls.return_value = ScrapeJob(
        id=JOB_ID, base_url='https://a.com', processing_type='consent-banner')
    sqs = MagicMock()
    sqs.send_message.side_effect = ClientError({'Error': {'Code': 'AccessDenied', 'Message': 'no'}}, 'SendMessage')

    with pytest.raises(ScrapeClientError, match='Service Unavailable'):
        ScrapeClient(data_access=data_access, sqs=sqs).create_scrape_job(
            ['https://a.com'], processing_type='consent-banner')
    data_access.scrape_jobs.mark_failed.assert_called_once_with(JOB_ID, 'Failed to queue scrape job')


def test_scrape_job_rejects_invalid_urls():
    from scrape_client import ScrapeClient

    data_access = MagicMock()
    client = ScrapeClient(data_access=data_access, sqs=MagicMock())
    for urls in ([], ['not a url']):
        with pytest.raises(ScrapeClientError, match='^Invalid request'):
            client.create_scrape_job(urls)
    data_access.scrape_jobs.create_with_urls.assert_not_called()
