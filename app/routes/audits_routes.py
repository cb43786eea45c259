from flask import Blueprint, g, request
import logging

import auth_utils
from data_access import get_data_access
from http_utils import bad_request, forbidden, internal_server_error, not_found, ok
from utils.validation import has_text, is_non_empty_object, is_object, is_valid_url, is_valid_uuid

audits_bp = Blueprint('audits', __name__)
logger = logging.getLogger(__name__)


def _ascending(default: str) -> bool:
    return request.args.get('ascending', default).lower() == 'true'


def _load_site(site_id):
    """(site, None) when visible to the caller, otherwise (None, error response)."""
    site = get_data_access().sites.find_by_id(site_id)
    if not site:
        return None, not_found('Site not found')
    if not auth_utils.has_access(site):
        return None, forbidden('Only users belonging to the organization of the site can view its audits')
    return site, None


@audits_bp.route('/sites/<site_id>/audits', methods=['GET'])
@audits_bp.route('/sites/<site_id>/audits/<audit_type>', methods=['GET'])
@auth_utils.login_required
def get_all_for_site(site_id, audit_type=None):
    """GET /api/v1/sites/<siteId>/audits[/<auditType>]?ascending=true"""
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    site, error = _load_site(site_id)
    if error:
        return error
    audits = get_data_access().audits.all_by_site_id(site.id, audit_type, _ascending('false'))
    return ok([a.to_abbreviated_dict() for a in audits])


@audits_bp.route('/audits/latest/<audit_type>', methods=['GET'])
@auth_utils.login_required
def get_all_latest(audit_type):
    """GET /api/v1/audits/latest/<auditType>?ascending=true"""
    if not has_text(audit_type):
        return bad_request('Audit type required')
    if not getattr(g, 'is_admin', False):
        return forbidden('Only admins can view all audits')
    audits = get_data_access().audits.all_latest(audit_type, _ascending('false'))
    return ok([a.to_abbreviated_dict() for a in audits])


@audits_bp.route('/sites/<site_id>/audits/latest', methods=['GET'])
@auth_utils.login_required
def get_all_latest_for_site(site_id):
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    site, error = _load_site(site_id)
    if error:
        return error
    audits = get_data_access().audits.all_latest_for_site(site.id)
    return ok([a.to_abbreviated_dict() for a in audits])


@audits_bp.route('/sites/<site_id>/latest-audit/<audit_type>', methods=['GET'])
@auth_utils.login_required
def get_latest_for_site(site_id, audit_type):
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    if not has_text(audit_type):
        return bad_request('Audit type required')
    site, error = _load_site(site_id)
    if error:
        return error
    audit = get_data_access().audits.find_latest_for_site(site.id, audit_type)
    if not audit:
        return not_found('Audit not found')
    return ok(audit.to_dict())


def _validate_overwrites(entries, label, invalid_url_message):
    """Returns an error message for the first invalid {brokenTargetURL, targetURL} entry."""
    for entry in entries:
        if not is_object(entry):
            return f'{label} must be an object'
        if not is_non_empty_object(entry):
            return f'{label} object cannot be empty'
        if not entry.get('brokenTargetURL') or not entry.get('targetURL'):
            return f'{label} must have both brokenTargetURL and targetURL'
        if not is_valid_url(entry['brokenTargetURL']) or not is_valid_url(entry['targetURL']):
            return invalid_url_message
    return None


def _merge_by_broken_target(existing, updates):
    merged = {e.get('brokenTargetURL'): e for e in existing}
    for entry in updates:
        merged[entry['brokenTargetURL']] = entry
    return list(merged.values())


@audits_bp.route('/sites/<site_id>/<audit_type>', methods=['PATCH'])
@auth_utils.login_required
def patch_audit_for_site(site_id, audit_type):
    """PATCH /api/v1/sites/<siteId>/<auditType>
    Body: {"excludedURLs": [...], "manualOverwrites": [{"brokenTargetURL": ..., "targetURL": ...}]}
    """
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    if not has_text(audit_type):
        return bad_request('Audit type required')

    body = request.get_json(silent=True) or {}
    excluded_urls = body.get('excludedURLs')
    manual_overwrites = body.get('manualOverwrites')

    try:
        data_access = get_data_access()
        site = data_access.sites.find_by_id(site_id)
        if not site:
            return not_found('Site not found')
        if not auth_utils.has_access(site):
            return forbidden('Only users belonging to the organization of the site can update its audits')

        config = site.config
        if config.get_handler_config(audit_type) is None:
            return not_found('Audit type not found')

        has_updates = False

        if isinstance(excluded_urls, list):
            for url in excluded_urls:
                if not is_valid_url(url):
                    return bad_request('Invalid URL format')
            if excluded_urls:
                merged = list(dict.fromkeys(config.get_excluded_urls(audit_type) + excluded_urls))
            else:
                merged = []
            config.update_excluded_urls(audit_type, merged)
            has_updates = True

        if isinstance(manual_overwrites, list):
            error = _validate_overwrites(manual_overwrites, 'Manual overwrite', 'Invalid URL format')
            if error:
                return bad_request(error)
            if manual_overwrites:
                merged = _merge_by_broken_target(config.get_manual_overwrites(audit_type), manual_overwrites)
            else:
                merged = []
            config.update_manual_overwrites(audit_type, merged)
            has_updates = True

        if not has_updates:
            return bad_request('No updates provided')

        data_access.sites.save(site)
        logger.info("Updated %s handler config for site %s", audit_type, site_id)
        return ok(config.get_handler_config(audit_type))
    except Exception as e:
        logger.error(f"patch_audit_for_site error: {e}", exc_info=True)
        return internal_server_error('Error updating audit configuration')


@audits_bp.route('/sites/<site_id>/<audit_type>/fixes', methods=['PATCH'])
@auth_utils.login_required
def patch_audit_fixes_for_site(site_id, audit_type):
    """PATCH /api/v1/sites/<siteId>/<auditType>/fixes
    Body: {"fixedURLs": [{"brokenTargetURL": ..., "targetURL": ...}]}
    """
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    if not has_text(audit_type):
        return bad_request('Audit type required')

    body = request.get_json(silent=True) or {}
    fixed_urls = body.get('fixedURLs')
    if not isinstance(fixed_urls, list):
        return bad_request('Fixed URL array required')
    if not fixed_urls:
        return bad_request('Fixed URL array cannot be empty')
    error = _validate_overwrites(fixed_urls, 'Fixed URL', 'Fixed URL have invalid URL format')
    if error:
        return bad_request(error)

    try:
        data_access = get_data_access()
        site = data_access.sites.find_by_id(site_id)
        if not site:
            return not_found('Site not found')
        if not auth_utils.has_access(site):
            return forbidden('Only users belonging to the organization of the site can update its audits')

        config = site.config
        if config.get_handler_config(audit_type) is None:
            return not_found('Audit type not found')

        merged = _merge_by_broken_target(config.get_fixed_urls(audit_type), fixed_urls)
        config.update_fixed_urls(audit_type, merged)
        data_access.sites.save(site)
        logger.info("Recorded %d fixed URLs for %s on site %s", len(fixed_urls), audit_type, site_id)
        return ok(merged)
    except Exception as e:
        logger.error(f"patch_audit_fixes_for_site error: {e}", exc_info=True)
        return internal_server_error('Error updating fixed URLs')
