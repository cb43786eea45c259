# actions.py — Slack interactivity: preflight configuration button and modal
"""
Block-action and view-submission handlers.

Handlers return the body Slack expects as the HTTP acknowledgement, or
None for an empty 200. Modal validation errors are returned as
``{"response_action": "errors", "errors": {block_id: message}}``.
"""
import json
import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from slack_sdk.errors import SlackApiError

from utils.validation import is_valid_url

logger = logging.getLogger(__name__)

PREFLIGHT_MODAL_CALLBACK_ID = 'preflight_config_modal'
OPEN_PREFLIGHT_CONFIG_ACTION_ID = 'open_preflight_config'

AUTHORING_TYPE_LABELS = {
    'documentauthoring': 'Document Authoring',
    'cs': 'Cloud Service',
    'cs/crosswalk': 'Cloud Service/Crosswalk',
    'ams': 'Adobe Managed Services (AMS)',
}

_AEM_CS_HOST_RE = re.compile(
    r'(?:(?:author|publish|preview)-)?p(\d+)-e(\d+)\.(?:live\.)?adobeaemcloud\.com$', re.IGNORECASE
)
_HELIX_HOST_RE = re.compile(r'^([\w-]+)--([\w-]+)--([\w-]+)\.(hlx\.live|aem\.live)$')

AEM_CS_URL_ERROR = ('Could not extract program/environment ID from this URL. Please provide a valid '
                    'AEM CS preview URL (e.g., https://author-p12345-e67890.adobeaemcloud.com).')
HELIX_URL_ERROR = ('Could not extract RSO information from this URL. Please provide a valid Helix '
                   'preview URL (e.g., https://main--site--owner.hlx.live).')


def _hostname(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def extract_delivery_config_from_preview_url(preview_url: str) -> Optional[Dict[str, str]]:
    """`author-p123-e456.adobeaemcloud.com` -> {programId, environmentId, authorURL}."""
    match = _AEM_CS_HOST_RE.search(_hostname(preview_url) or '')
    if not match:
        return None
    return {'programId': match.group(1), 'environmentId': match.group(2), 'authorURL': preview_url}


def extract_helix_config_from_preview_url(preview_url: str) -> Optional[Dict[str, Any]]:
    """`ref--site--owner.aem.live` -> hlxConfig with an RSO."""
    match = _HELIX_HOST_RE.match(_hostname(preview_url) or '')
    if not match:
        return None
    return {
        'hlxVersion': 5,
        'rso': {
            'ref': match.group(1),
            'site': match.group(2),
            'owner': match.group(3),
            'tld': match.group(4),
        },
    }


def _field_error(block_id: str, message: str) -> Dict[str, Any]:
    return {'response_action': 'errors', 'errors': {block_id: message}}


def build_preflight_modal(site, metadata: Dict[str, Any]) -> Dict[str, Any]:
    authoring_type = site.authoring_type or ''
    select = {
        'type': 'static_select',
        'action_id': 'authoring_type',
        'placeholder': {'type': 'plain_text', 'text': 'Select authoring type'},
        'options': [
            {'text': {'type': 'plain_text', 'text': label}, 'value': value}
            for value, label in AUTHORING_TYPE_LABELS.items()
        ],
    }
    if authoring_type in AUTHORING_TYPE_LABELS:
        select['initial_option'] = {
            'text': {'type': 'plain_text', 'text': AUTHORING_TYPE_LABELS[authoring_type]},
            'value': authoring_type,
        }

    return {
        'type': 'modal',
        'callback_id': PREFLIGHT_MODAL_CALLBACK_ID,
        'title': {'type': 'plain_text', 'text': 'Preflight Configuration'},
        'submit': {'type': 'plain_text', 'text': 'Enable Audit'},
        'close': {'type': 'plain_text', 'text': 'Cancel'},
        'private_metadata': json.dumps(metadata),
        'blocks': [
            {
                'type': 'section',
                'text': {
                    'type': 'mrkdwn',
                    'text': f"*Preflight audit requires additional configuration for:*\n`{site.base_url}`",
                },
            },
            {'type': 'divider'},
            {
                'type': 'input',
                'block_id': 'authoring_type_input',
                'element': select,
                'label': {'type': 'plain_text', 'text': 'Authoring Type *'},
            },
            {
                'type': 'input',
                'block_id': 'preview_url_input',
                'element': {
                    'type': 'plain_text_input',
                    'action_id': 'preview_url',
                    'placeholder': {'type': 'plain_text', 'text': 'AEM CS or AMS or EDS URL'},
                    'initial_value': (site.delivery_config or {}).get('authorURL') or '',
                },
                'label': {'type': 'plain_text', 'text': 'Preview URL *'},
                'hint': {
                    'type': 'plain_text',
                    'text': ('Document Authoring: main--site--owner.aem.live. CS/CS-Crosswalk/AMS: '
                             'AEM CS URL (author-p12345-e67890.adobeaemcloud.com).'),
                },
            },
        ],
    }


def open_preflight_config(payload: Dict[str, Any], client, data_access) -> None:
    """Button click: mark the prompt as in progress and open the configuration modal."""
    try:
        value = json.loads(payload['actions'][0]['value'])
        site_id, audit_type = value.get('siteId'), value.get('auditType')

        site = data_access.sites.find_by_id(site_id)
        if not site:
            logger.error(f"Site with ID {site_id} not found")
            return None

        message = payload.get('message') or {}
        message_ts = message.get('ts')
        thread_ts = message.get('thread_ts') or message_ts
        channel_id = (payload.get('channel') or {}).get('id')
        user_name = (payload.get('user') or {}).get('name') or 'User'

        if message_ts and channel_id:
            try:
                client.chat_update(
                    channel=channel_id,
                    ts=message_ts,
                    text=f":gear: Preflight configuration started by {user_name}",
                    blocks=[{
                        'type': 'section',
                        'text': {
                            'type': 'mrkdwn',
                            'text': (f":gear: *Preflight configuration started by {user_name}*\n"
                                     f"`{site.base_url}`\n\nConfiguring preflight audit..."),
                        },
                    }],
                )
            except SlackApiError as e:
                logger.error(f"Failed to update original message: {e}")

        metadata = {
            'siteId': site_id,
            'auditType': audit_type,
            'channelId': channel_id,
            'threadTs': thread_ts,
            'messageTs': message_ts,
        }
        client.views_open(trigger_id=payload.get('trigger_id'), view=build_preflight_modal(site, metadata))
    except Exception as e:
        logger.error(f"Error opening preflight config modal: {e}", exc_info=True)
    return None


def _selected_values(view: Dict[str, Any]):
    values = (view.get('state') or {}).get('values') or {}
    authoring = ((values.get('authoring_type_input') or {}).get('authoring_type') or {})
    authoring_type = (authoring.get('selected_option') or {}).get('value')
    preview_url = ((values.get('preview_url_input') or {}).get('preview_url') or {}).get('value')
    return authoring_type, (preview_url or '').strip()


def preflight_config_modal(payload: Dict[str, Any], client, data_access) -> Optional[Dict[str, Any]]:
    """Modal submission: validate, store the authoring config and enable the audit."""
    try:
        view = payload.get('view') or {}
        try:
            metadata = json.loads(view.get('private_metadata') or '{}')
        except ValueError as e:
            logger.warning(f"Failed to parse private metadata: {e}")
            metadata = {}

        site_id = metadata.get('siteId')
        audit_type = metadata.get('auditType')
        channel_id = metadata.get('channelId')
        thread_ts = metadata.get('threadTs')

        authoring_type, preview_url = _selected_values(view)
        if not authoring_type:
            return _field_error('authoring_type_input', 'Authoring type is required.')
        if not preview_url:
            return _field_error('preview_url_input', 'Preview URL is required.')

        delivery_config = None
        helix_config = None
        if authoring_type in ('cs', 'cs/crosswalk'):
            delivery_config = extract_delivery_config_from_preview_url(preview_url)
            if not delivery_config:
                return _field_error('preview_url_input', AEM_CS_URL_ERROR)
        elif authoring_type == 'documentauthoring':
            helix_config = extract_helix_config_from_preview_url(preview_url)
            if not helix_config:
                return _field_error('preview_url_input', HELIX_URL_ERROR)
        elif authoring_type == 'ams':
            if not is_valid_url(preview_url):
                return _field_error('preview_url_input', 'Please provide a valid AMS author URL.')
            delivery_config = {'authorURL': preview_url}
        else:
            return _field_error('authoring_type_input', 'Unsupported authoring type for preflight audit.')

        site = data_access.sites.find_by_id(site_id)
        if not site:
            client.chat_postMessage(channel=channel_id, thread_ts=thread_ts,
                                    text=':x: Error: Site not found. Please try again.')
            return None

        site.authoring_type = authoring_type
        if helix_config:
            site.hlx_config = helix_config
            rso = helix_config['rso']
            config_details = (f":gear: *Helix Config:* {rso['ref']}--{rso['site']}--{rso['owner']}.{rso['tld']}\n"
                              f":link: *Preview URL:* {preview_url}")
        elif 'programId' in delivery_config:
            site.delivery_config = delivery_config
            config_details = (f":gear: *Delivery Config:* Program {delivery_config['programId']}, "
                              f"Environment {delivery_config['environmentId']}\n"
                              f":link: *Preview URL:* {preview_url}")
        else:
            site.delivery_config = delivery_config
            config_details = f":gear: *Authoring URL:* {preview_url}"
        data_access.sites.save(site)

        configuration = data_access.configurations.find_latest()
        configuration.enable_handler_for_site(audit_type, site)
        data_access.configurations.save(configuration)

        client.chat_postMessage(
            channel=channel_id,
            thread_ts=thread_ts,
            text=(f":white_check_mark: Successfully configured and enabled {audit_type} audit for "
                  f"`{site.base_url}`\n:writing_hand: *Authoring Type:* {authoring_type}\n{config_details}"),
        )
        return None
    except Exception as e:
        logger.error(f"Error handling preflight config modal: {e}", exc_info=True)
        return _field_error('authoring_type_input',
                            'There was an error processing the configuration. Please try again.')
