from flask import Blueprint, request
import logging
import math

import auth_utils
from data_access import get_data_access
from http_utils import bad_request, forbidden, internal_server_error, not_found, ok
from traffic_analysis import DEFAULT_PREDOMINANT_PCT, get_predominant_traffic
from utils.validation import is_valid_uuid

traffic_tools_bp = Blueprint('traffic_tools', __name__)
logger = logging.getLogger(__name__)

PCT_ERROR = 'predominantTrafficPct must be a number between 0 and 100'


def _parse_pct(value):
    """Numeric or numeric-string percentage in [0, 100]; None when invalid."""
    if value is None:
        return 0.0
    try:
        pct = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(pct) or pct < 0 or pct > 100:
        return None
    return pct


def validate_request_data(data):
    """(error message, threshold) for a predominant-traffic request body."""
    if not isinstance(data, dict):
        return 'Request body is required', None
    urls = data.get('urls')
    if not isinstance(urls, list):
        return 'urls must be an array', None
    if not urls:
        return 'urls array cannot be empty', None
    for i, url in enumerate(urls):
        if not isinstance(url, str) or not url.strip():
            return f"Invalid URL at index {i}", None

    threshold = float(DEFAULT_PREDOMINANT_PCT)
    if 'predominantTrafficPct' in data:
        threshold = _parse_pct(data['predominantTrafficPct'])
        if threshold is None:
            return PCT_ERROR, None
    return None, threshold


@traffic_tools_bp.route('/sites/<site_id>/traffic/predominant-type', methods=['POST'])
@auth_utils.login_required
def predominant_traffic(site_id):
    """POST /api/v1/sites/<siteId>/traffic/predominant-type
    Body: {"urls": ["https://example.com/a", "/b"], "predominantTrafficPct": 80}
    """
    if not is_valid_uuid(site_id):
        return bad_request('Site ID required')
    error, threshold = validate_request_data(request.get_json(silent=True))
    if error:
        return bad_request(error)
    urls = request.get_json()['urls']

    site = get_data_access().sites.find_by_id(site_id)
    if not site:
        return not_found('Site not found')
    if not auth_utils.has_access(site):
        return forbidden('Only users belonging to the organization can view paid traffic metrics')

    try:
        result = get_predominant_traffic(site.id, site.base_url, urls, threshold)
        logger.info(f"Predominant traffic analysis complete for {len(urls)} URLs of site {site_id}")
        return ok(result)
    except Exception as e:
        logger.error(f"Error processing predominant traffic request for site {site_id}: {e}", exc_info=True)
        return internal_server_error('Error processing predominant traffic request')
