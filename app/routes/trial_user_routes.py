from flask import Blueprint, request
import logging

import auth_utils
from data_access import get_data_access
from http_utils import (
    bad_request, conflict, created, forbidden, internal_server_error, not_found, ok,
)
from services.email_service import send_trial_user_emails
from utils.validation import has_text, is_valid_email, is_valid_uuid

trial_users_bp = Blueprint('trial_users', __name__)
logger = logging.getLogger(__name__)


def _load_organization(organization_id):
    organization = get_data_access().organizations.find_by_id(organization_id)
    if not organization:
        return None, not_found('Organization not found')
    if not auth_utils.has_access(organization):
        return None, forbidden('Access denied to this organization')
    return organization, None


@trial_users_bp.route('/organizations/<organization_id>/trial-users', methods=['GET'])
@auth_utils.login_required
def get_trial_users(organization_id):
    if not is_valid_uuid(organization_id):
        return bad_request('Organization ID required')
    try:
        _, error = _load_organization(organization_id)
        if error:
            return error
        users = get_data_access().trial_users.all_by_organization_id(organization_id)
        return ok([u.to_dict() for u in users])
    except Exception as e:
        logger.error(f"Error getting trial users for organization {organization_id}: {e}", exc_info=True)
        return internal_server_error(str(e))


@trial_users_bp.route('/organizations/<organization_id>/trial-user-invite', methods=['POST'])
@auth_utils.login_required
def create_trial_user_invite(organization_id):
    """POST /api/v1/organizations/<orgId>/trial-user-invite
    Body: {"emailId": "someone@example.com"}
    """
    if not is_valid_uuid(organization_id):
        return bad_request('Organization ID required')
    email_id = (request.get_json(silent=True) or {}).get('emailId')
    if not has_text(email_id):
        return bad_request('Email ID is required')
    if not is_valid_email(email_id):
        return bad_request('Valid email address is required')

    try:
        _, error = _load_organization(organization_id)
        if error:
            return error

        trial_users = get_data_access().trial_users
        if trial_users.find_by_email_id(email_id):
            return conflict('Trial user with this email already exists')

        trial_user = trial_users.create({
            'emailId': email_id,
            'organizationId': organization_id,
            'status': 'INVITED',
            'metadata': {'origin': 'INVITED'},
        })
        logger.info(f"Trial user invited: {email_id} to organization {organization_id}")
        return created(trial_user.to_dict())
    except Exception as e:
        logger.error(f"Error creating trial user invite for organization {organization_id}: {e}", exc_info=True)
        return internal_server_error(str(e))


@trial_users_bp.route('/organizations/<organization_id>/trial-users/emails', methods=['POST'])
@auth_utils.login_required
def send_emails_to_trial_users(organization_id):
    """POST /api/v1/organizations/<orgId>/trial-users/emails
    Body: {"emailAddresses": ["a@example.com"], "templateData": {"firstName": "A"}}
    """
    if not is_valid_uuid(organization_id):
        return bad_request('Organization ID required')

    body = request.get_json(silent=True) or {}
    email_addresses = body.get('emailAddresses')
    template_data = body.get('templateData') or {}

    if not isinstance(email_addresses, list) or not email_addresses:
        return bad_request('Email addresses array is required and cannot be empty')
    for email in email_addresses:
        if not is_valid_email(email):
            return bad_request(f"Invalid email address: {email}")

    try:
        _, error = _load_organization(organization_id)
        if error:
            return error

        results = send_trial_user_emails(email_addresses, template_data)
        success_count = sum(1 for r in results if r['status'] == 'success')
        failure_count = len(results) - success_count

        if success_count == 0:
            logger.error(f"Failed to send any emails for organization {organization_id}")
            return internal_server_error(f"Failed to send any emails. All {failure_count} attempts failed.")

        total = len(email_addresses)
        if success_count == total:
            message = f"Successfully sent emails to all {success_count} trial users"
        else:
            message = f"Sent emails to {success_count} out of {total} trial users ({failure_count} failed)"

        logger.info(f"Email sending completed for organization {organization_id}: {message}")
        return ok({
            'message': message,
            'successCount': success_count,
            'failureCount': failure_count,
            'totalCount': total,
            'results': results,
        })
    except Exception as e:
        logger.error(f"Error sending emails to trial users for organization {organization_id}: {e}", exc_info=True)
        return internal_server_error(str(e))
