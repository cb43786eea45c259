from flask import Blueprint, Response, g, request
from marshmallow import ValidationError
import base64
import binascii
import logging

import auth_utils
from config import CONFIG
from core.schemas import KeyEventSchema, SiteSchema, first_error
from data_access import get_data_access
from http_utils import (
    bad_request, conflict, created, forbidden, internal_server_error, no_content, not_found, ok,
)
from models import DELIVERY_TYPES, SiteConfig
from services.s3_cache import get_cached_json_data
from slack_bot.format import format_sites_to_csv
from utils.validation import has_text, is_object, is_valid_github_url, is_valid_uuid, parse_iso_timestamp

sites_bp = Blueprint('sites', __name__)
logger = logging.getLogger(__name__)

site_schema = SiteSchema()
key_event_schema = KeyEventSchema()


def _is_admin():
    return getattr(g, 'is_admin', False)


def _site_with_audit(site, audit):
    out = site.to_dict()
    out['audits'] = [audit.to_abbreviated_dict()] if audit else []
    return out


@sites_bp.route('/sites', methods=['GET'])
@auth_utils.login_required
def get_all():
    if not _is_admin():
        return forbidden('Only admins can view all sites')
    return ok([s.to_dict() for s in get_data_access().sites.all()])


@sites_bp.route('/sites', methods=['POST'])
@auth_utils.login_required
def create_site():
    """POST /api/v1/sites
    Body: {"baseURL": "https://example.com", "deliveryType": "aem_edge", ...}
    """
    if not _is_admin():
        return forbidden('Only admins can create new sites')
    try:
        data = site_schema.load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return bad_request(first_error(err))

    if data.get('organizationId') is not None:
        data['organizationId'] = str(data['organizationId'])

    try:
        sites = get_data_access().sites
        if sites.find_by_base_url(data['baseURL']):
            return conflict('Site with this base URL already exists')
        site = sites.create(data)
        logger.info(f"Site created: {site.base_url} by {auth_utils.get_logged_in_email()}")
        return created(site.to_dict())
    except Exception as e:
        logger.error(f"create_site error: {e}", exc_info=True)
        return internal_server_error('Error creating site')


@sites_bp.route('/sites.csv', methods=['GET'])
@auth_utils.login_required
def get_all_as_csv():
    """Same columns as the `get sites` Slack export, for the lhs-mobile audit."""
    if not _is_admin():
        return forbidden('Only admins can view all sites')
    rows = get_data_access().sites.all_with_latest_audit('lhs-mobile', True)
    return Response(
        format_sites_to_csv(rows),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=sites.csv'},
    )


@sites_bp.route('/sites/by-delivery-type/<delivery_type>', methods=['GET'])
@auth_utils.login_required
def get_all_by_delivery_type(delivery_type):
    if not has_text(delivery_type):
        return bad_request('Delivery type required')
    if not _is_admin():
        return forbidden('Only admins can view all sites')
    return ok([s.to_dict() for s in get_data_access().sites.all_by_delivery_type(delivery_type)])


@sites_bp.route('/sites/with-latest-audit/<audit_type>', methods=['GET'])
@auth_utils.login_required
def get_all_with_latest_audit(audit_type):
    """GET /api/v1/sites/with-latest-audit/lhs-mobile?ascending=false"""
    if not has_text(audit_type):
        return bad_request('Audit type required')
    if not _is_admin():
        return forbidden('Only admins can view all sites')
    ascending = request.args.get('ascending', 'true').lower() != 'false'
    rows = get_data_access().sites.all_with_latest_audit(audit_type, ascending)
    return ok([_site_with_audit(site, audit) for site, audit in rows])


@sites_bp.route('/sites/by-base-url/<encoded_base_url>', methods=['GET'])
@auth_utils.login_required
def get_by_base_url(encoded_base_url):
    """Base URL is passed base64-encoded (standard or URL-safe alphabet)."""
    try:
        padded = encoded_base_url + '=' * (-len(encoded_base_url) % 4)
        base_url = base64.b64decode(padded, altchars=b'-_').decode('utf-8').strip()
    except (binascii.Error, UnicodeDecodeError, ValueError):
        base_url = ''
    if not has_text(base_url):
        return bad_request('Base URL required')

    site = get_data_access().sites.find_by_base_url(base_url)
    if not site:
        return not_found('Site not found')
    if not auth_utils.has_access(site):
        return forbidden('Only users belonging to the organization of the site can view it')
    return ok(site.to_dict())


@sites_bp.route('/sites/<site_id>', methods=['GET'])
@auth_utils.login_required
def get_by_id(site_id):
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    site = get_data_access().sites.find_by_id(site_id)
    if not site:
        return not_found('Site not found')
    if not auth_utils.has_access(site):
        return forbidden('Only users belonging to the organization of the site can view it')
    return ok(site.to_dict())


@sites_bp.route('/sites/<site_id>', methods=['DELETE'])
@auth_utils.login_required
def remove_site(site_id):
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    if not _is_admin():
        return forbidden('Only admins can remove sites')
    get_data_access().sites.remove(site_id)
    logger.info(f"Site removed: {site_id} by {auth_utils.get_logged_in_email()}")
    return no_content()


@sites_bp.route('/sites/<site_id>', methods=['PATCH'])
@auth_utils.login_required
def update_site(site_id):
    """PATCH /api/v1/sites/<siteId>
    Body: any of {"isLive", "organizationId", "gitHubURL", "deliveryType", "config"}
    """
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')

    data_access = get_data_access()
    site = data_access.sites.find_by_id(site_id)
    if not site:
        return not_found('Site not found')
    if not auth_utils.has_access(site):
        return forbidden('Only users belonging to the organization of the site can update it')

    body = request.get_json(silent=True)
    if not is_object(body):
        return bad_request('Request body required')

    updates = False
    is_live = body.get('isLive')
    if isinstance(is_live, bool) and is_live != site.is_live:
        site.toggle_live()
        updates = True

    organization_id = body.get('organizationId')
    if has_text(organization_id) and organization_id != site.organization_id:
        site.organization_id = organization_id
        updates = True

    github_url = body.get('gitHubURL')
    if github_url != site.github_url and is_valid_github_url(github_url):
        site.github_url = github_url
        updates = True

    delivery_type = body.get('deliveryType')
    if delivery_type != site.delivery_type and delivery_type in DELIVERY_TYPES:
        site.delivery_type = delivery_type
        updates = True

    if is_object(body.get('config')):
        site.config = SiteConfig(body['config'])
        updates = True

    if not updates:
        return bad_request('No updates provided')

    try:
        updated = data_access.sites.save(site)
        return ok(updated.to_dict())
    except Exception as e:
        logger.error(f"update_site error: {e}", exc_info=True)
        return internal_server_error('Error updating site')


@sites_bp.route('/sites/<site_id>/audits/<audit_type>/<audited_at>', methods=['GET'])
@auth_utils.login_required
def get_audit_for_site(site_id, audit_type, audited_at):
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    if not has_text(audit_type):
        return bad_request('Audit type required')
    if not parse_iso_timestamp(audited_at):
        return bad_request('Audited at required')

    data_access = get_data_access()
    site = data_access.sites.find_by_id(site_id)
    if site and not auth_utils.has_access(site):
        return forbidden('Only users belonging to the organization of the site can view its audits')
    audit = data_access.audits.find_by_site_id_audit_type_and_audited_at(site_id, audit_type, audited_at)
    if not audit:
        return not_found('Audit not found')
    return ok(audit.to_dict())


@sites_bp.route('/sites/<site_id>/key-events', methods=['GET'])
@auth_utils.login_required
def get_key_events(site_id):
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    data_access = get_data_access()
    site = data_access.sites.find_by_id(site_id)
    if not site:
        return not_found('Site not found')
    if not auth_utils.has_access(site):
        return forbidden('Only users belonging to the organization of the site can view its key events')
    return ok([e.to_dict() for e in data_access.key_events.all_by_site_id(site.id)])


@sites_bp.route('/sites/<site_id>/key-events', methods=['POST'])
@auth_utils.login_required
def create_key_event(site_id):
    """POST /api/v1/sites/<siteId>/key-events
    Body: {"name": "Go live", "type": "STATUS CHANGE", "time": "2024-01-01T00:00:00Z"}
    """
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    try:
        data = key_event_schema.load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return bad_request(first_error(err))

    data_access = get_data_access()
    site = data_access.sites.find_by_id(site_id)
    if not site:
        return not_found('Site not found')
    if not auth_utils.has_access(site):
        return forbidden('Only users belonging to the organization of the site can create key events')

    time = data.get('time')
    key_event = data_access.key_events.create(
        site.id, data['name'], data['type'], time.isoformat() if time else None,
    )
    return created(key_event.to_dict())


@sites_bp.route('/sites/<site_id>/key-events/<key_event_id>', methods=['DELETE'])
@auth_utils.login_required
def remove_key_event(site_id, key_event_id):
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    if not is_valid_uuid(key_event_id):
        return bad_request('Key Event ID required')
    site = get_data_access().sites.find_by_id(site_id)
    if site and not auth_utils.has_access(site):
        return forbidden('Only users belonging to the organization of the site can remove key events')
    get_data_access().key_events.remove(key_event_id)
    return no_content()


@sites_bp.route('/sites/<site_id>/metrics/<metric>/<source>', methods=['GET'])
@auth_utils.login_required
def get_site_metrics_by_source(site_id, metric, source):
    """Stored metric series from s3://<S3_BUCKET_NAME>/metrics/<siteId>/<source>/<metric>.json"""
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    if not has_text(metric):
        return bad_request('metric required')
    if not has_text(source):
        return bad_request('source required')

    site = get_data_access().sites.find_by_id(site_id)
    if not site:
        return not_found('Site not found')
    if not auth_utils.has_access(site):
        return forbidden('Only users belonging to the organization of the site can view its metrics')

    uri = f"s3://{CONFIG.aws.s3_bucket_name}/metrics/{site_id}/{source}/{metric}.json"
    metrics = get_cached_json_data(uri)
    if metrics is None:
        logger.info(f"No stored metrics at {uri}")
        metrics = []
    return ok(metrics)
