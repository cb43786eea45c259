from flask import Blueprint, request
from slack_sdk.signature import SignatureVerifier
from urllib.parse import parse_qs
import json
import logging

from config import CONFIG
from http_utils import bad_request, create_response, internal_server_error, ok, unauthorized
from slack_bot.handler import SlackHandler

slack_bp = Blueprint('slack', __name__)
logger = logging.getLogger(__name__)


def _verify(raw_body):
    verifier = SignatureVerifier(CONFIG.slack.signing_secret)
    headers = {k.lower(): v for k, v in request.headers.items()}
    return verifier.is_valid_request(raw_body, headers)


def _interaction_payload(raw_body):
    values = parse_qs(raw_body).get('payload')
    if not values:
        return None
    return json.loads(values[0])


@slack_bp.route('/slack/events', methods=['POST'])
def slack_events():
    """POST /api/v1/slack/events
    Slack Events API callbacks (JSON) and interactivity payloads (form-encoded `payload`).
    """
    raw_body = request.get_data(as_text=True)
    if not _verify(raw_body):
        logger.warning("Rejected Slack request with invalid signature")
        return unauthorized('Invalid Slack signature')

    # retries arrive when the first delivery took longer than 3 seconds
    if request.headers.get('X-Slack-Retry-Num'):
        return ok({})

    try:
        if request.mimetype == 'application/x-www-form-urlencoded':
            payload = _interaction_payload(raw_body)
            if payload is None:
                return bad_request('Missing interaction payload')
            ack = SlackHandler().handle_interaction(payload)
            return create_response(ack or None, 200)

        body = request.get_json(silent=True) or {}
        if body.get('type') == 'url_verification':
            return ok({'challenge': body.get('challenge')})
        if body.get('type') == 'event_callback':
            SlackHandler().handle_event(body.get('event') or {})
            return ok({})
        return bad_request('Unsupported Slack request')
    except ValueError as e:
        logger.error(f"Malformed Slack payload: {e}")
        return bad_request('Malformed Slack payload')
    except Exception as e:
        logger.error(f"Error handling Slack request: {e}", exc_info=True)
        return internal_server_error('Error handling Slack request')
