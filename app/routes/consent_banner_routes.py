from flask import Blueprint, request
import logging

import requests

import auth_utils
from aws_clients import generate_presigned_url
from config import CONFIG
from http_utils import (
    accepted, bad_request, create_response, internal_server_error, not_found, ok,
    service_unavailable,
)
from scrape_client import ScrapeClient, ScrapeClientError
from utils.validation import has_text, is_valid_url

consent_banner_bp = Blueprint('consent_banner', __name__)
logger = logging.getLogger(__name__)

SCRAPE_JSON_TIMEOUT = 30

SCREENSHOT_VARIANTS = (
    ('desktop_cookie_banner_on', 'screenshot-desktop-viewport-withBanner'),
    ('desktop_cookie_banner_off', 'screenshot-desktop-viewport-withoutBanner'),
    ('mobile_cookie_banner_on', 'screenshot-iphone-6-viewport-withBanner'),
    ('mobile_cookie_banner_off', 'screenshot-iphone-6-viewport-withoutBanner'),
)

CONSENT_BANNER_OPTIONS = {
    'enableJavaScript': True,
    'screenshotTypes': ['viewport'],
    'rejectRedirects': False,
}


def get_image_key(result_path, variant):
    """Screenshots sit next to scrape.json in the job's result folder."""
    return result_path.replace('/scrape.json', f'/{variant}.png')


def _presign(key):
    return generate_presigned_url(CONFIG.aws.s3_scraper_bucket, key, CONFIG.aws.scrape_result_url_ttl_sec)


@consent_banner_bp.route('/consent-banner', methods=['POST'])
@auth_utils.login_required
def take_screenshots():
    """POST /api/v1/consent-banner
    Body: {"url": "https://www.example.com"}
    """
    url = (request.get_json(silent=True) or {}).get('url')
    if not has_text(url) or not is_valid_url(url):
        return bad_request(f"No valid URL provided: {url}")

    try:
        job = ScrapeClient().create_scrape_job(
            [url], processing_type='consent-banner', options=dict(CONSENT_BANNER_OPTIONS),
        )
        return accepted(job)
    except ScrapeClientError as e:
        logger.error(f"Consent banner scrape failed for {url}: {e}")
        message = str(e)
        if 'Invalid request' in message:
            return bad_request(message)
        if 'Service Unavailable' in message:
            return service_unavailable(message)
        return internal_server_error(message)


@consent_banner_bp.route('/consent-banner/<job_id>', methods=['GET'])
@auth_utils.login_required
def get_screenshots(job_id):
    try:
        results = ScrapeClient().get_scrape_job_url_results(job_id)
        if not results:
            return not_found('Scrape job not found')
        result = results[0]

        if result['status'] == 'PENDING':
            return not_found('Scrape job is still running. Try again in a few secs.')
        if result['status'] == 'FAILED':
            return internal_server_error(f"Scrape job failed: {result.get('reason')}")

        resp = requests.get(_presign(result['path']), timeout=SCRAPE_JSON_TIMEOUT)
        resp.raise_for_status()
        scrape_json = resp.json()

        urls = {key: _presign(get_image_key(result['path'], variant)) for key, variant in SCREENSHOT_VARIANTS}
        return ok({
            'jobId': job_id,
            'results': {
                **urls,
                'screenshots': scrape_json.get('screenshots'),
                'dimensionsDevice': scrape_json.get('device'),
                'scrapeTime': scrape_json.get('scrapeTime'),
                'dimensions': (scrape_json.get('scrapeResult') or {}).get('results'),
            },
        })
    except Exception as e:
        logger.error(f"Consent banner results failed for job {job_id}: {e}", exc_info=True)
        return create_response({}, 500, {'x-error': str(e)})
