from flask import Blueprint, request
from botocore.exceptions import BotoCoreError, ClientError
import logging

import auth_utils
from aws_clients import get_sqs
from config import CONFIG
from data_access import DataAccessError, get_data_access
from http_utils import accepted, bad_request, internal_server_error, not_found, ok
from models import iso_timestamp
from utils.validation import has_text, is_non_empty_object, is_valid_url, is_valid_uuid

preflight_bp = Blueprint('preflight', __name__)
logger = logging.getLogger(__name__)


def _validation_error(data):
    if not is_non_empty_object(data):
        return 'Invalid request: missing application/json in request data'
    if not has_text(data.get('pageUrl')):
        return 'Invalid request: missing pageUrl in request data'
    if not is_valid_url(data['pageUrl']):
        return 'Invalid request: invalid pageUrl format'
    return None


def _poll_url(job_id):
    base = CONFIG.app.public_base_url.rstrip('/')
    return f"{base}/api/{CONFIG.app.api_version}/preflight/jobs/{job_id}"


@preflight_bp.route('/preflight/jobs', methods=['POST'])
@auth_utils.login_required
def create_preflight_job():
    """POST /api/v1/preflight/jobs
    Body: {"pageUrl": "https://main--site--owner.aem.page/path"}
    """
    data = request.get_json(silent=True)
    error = _validation_error(data)
    if error:
        logger.error(f"Failed to create preflight job: {error}")
        return bad_request(error)

    page_url = data['pageUrl']
    logger.info(f"Creating preflight job for pageUrl: {page_url}")

    try:
        job = get_data_access().async_jobs.create({
            'type': 'preflight',
            'status': 'IN_PROGRESS',
            'data': {'urls': [{'url': page_url}]},
        })
    except DataAccessError as e:
        logger.error(f"Failed to create preflight job: {e}")
        return internal_server_error(str(e))

    try:
        get_sqs().send_message(CONFIG.aws.audit_worker_queue_url, {
            'jobId': job.id,
            'urls': [{'url': page_url}],
            'type': 'preflight',
        })
    except (ClientError, BotoCoreError, ValueError) as e:
        logger.error(f"Failed to create preflight job: {e}")
        return internal_server_error(str(e))

    return accepted({
        'jobId': job.id,
        'status': job.status,
        'createdAt': iso_timestamp(job.created_at),
        'pollUrl': _poll_url(job.id),
    })


@preflight_bp.route('/preflight/jobs/<job_id>', methods=['GET'])
@auth_utils.login_required
def get_preflight_job_status_and_result(job_id):
    if not is_valid_uuid(job_id):
        return bad_request('Invalid jobId')

    logger.info(f"Getting preflight job status for jobId: {job_id}")
    try:
        job = get_data_access().async_jobs.find_by_id(job_id)
    except DataAccessError as e:
        logger.error(f"Failed to get preflight job {job_id}: {e}")
        return internal_server_error(str(e))

    if not job:
        return not_found(f"Job with ID {job_id} not found")
    return ok(job.to_status_dict())
