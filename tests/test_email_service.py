#!/usr/bin/env python3
"""IMS service token and Post Office delivery for trial user invitations."""
from types import SimpleNamespace
from unittest.mock import patch, MagicMock

import pytest
import requests

from services.email_service import (
    ImsError, build_email_payload, get_ims_service_token, send_trial_user_emails,
)

TEMPLATE = '<req>{{emailAddresses}}<templateData>{{templateData}}</templateData></req>'


def _config(host='ims-na1.adobelogin.com', client_id='spacecat'):
    return SimpleNamespace(
        ims=SimpleNamespace(host=host, client_id=client_id, client_secret='secret', client_code='code',
                            scope='openid', timeout=5),
        email=SimpleNamespace(postoffice_endpoint='https://postoffice.example.com', template_name='trial',
                              locale='en-us', template_path='unused', timeout=5),
    )


def _response(status_code=200, payload=None):
    resp = MagicMock(status_code=status_code)
    resp.json.return_value = payload
    return resp


# ==================== IMS ====================

def test_ims_token():
    session = MagicMock()
    session.post.return_value = _response(payload={'access_token': 'ims-token'})
    with patch('services.email_service.CONFIG', _config()):
        assert get_ims_service_token(session) == 'ims-token'
    url = session.post.call_args.args[0]
    assert url == 'https://ims-na1.adobelogin.com/ims/token/v3'
    assert session.post.call_args.kwargs['data']['grant_type'] == 'authorization_code'


def test_ims_token_keeps_explicit_scheme():
    session = MagicMock()
    session.post.return_value = _response(payload={'access_token': 'ims-token'})
    with patch('services.email_service.CONFIG', _config(host='http://localhost:9000')):
        get_ims_service_token(session)
    assert session.post.call_args.args[0] == 'http://localhost:9000/ims/token/v3'


@pytest.mark.parametrize('response,message', [
    (_response(status_code=401), 'status 401'),
    (_response(payload={}), 'did not contain an access token'),
])
def test_ims_token_errors(response, message):
    session = MagicMock()
    session.post.return_value = response
    with patch('services.email_service.CONFIG', _config()):
        with pytest.raises(ImsError, match=message):
            get_ims_service_token(session)


def test_ims_not_configured():
    with patch('services.email_service.CONFIG', _config(host='')):
        with pytest.raises(ImsError, match='not configured'):
            get_ims_service_token(MagicMock())


def test_ims_network_error():
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError('refused')
    with patch('services.email_service.CONFIG', _config()):
        with pytest.raises(ImsError, match='refused'):
            get_ims_service_token(session)


# ==================== Post Office ====================

def test_build_email_payload_escapes_values():
    payload = build_email_payload(TEMPLATE, 'a&b@example.com', {'org_name': 'R&D <Labs>'})
    assert '<toList>a&amp;b@example.com</toList>' in payload
    assert '<data><key>org_name</key><value>R&amp;D &lt;Labs&gt;</value></data>' in payload


def test_send_trial_user_emails_reports_each_address():
    session = MagicMock()
    session.post.side_effect = [
        _response(payload={'access_token': 'ims-token'}),
        _response(status_code=200),
        _response(status_code=500),
        requests.Timeout('slow'),
    ]
    with patch('services.email_service.CONFIG', _config()), \
            patch('services.email_service.load_template', return_value=TEMPLATE):
        results = send_trial_user_emails(['a@example.com', 'b@example.com', 'c@example.com'],
                                         {'org_name': 'Example'}, session=session)

    assert results == [
        {'email': 'a@example.com', 'status': 'success', 'error': None},
        {'email': 'b@example.com', 'status': 'failed', 'error': 'Post Office returned 500'},
        {'email': 'c@example.com', 'status': 'failed', 'error': 'slow'},
    ]
    send_call = session.post.call_args_list[1]
    assert send_call.args[0] == 'https://postoffice.example.com/po-server/message?templateName=trial&locale=en-us'
    assert send_call.kwargs['headers']['Authorization'] == 'IMS ims-token'


def test_send_trial_user_emails_requires_ims_token():
    session = MagicMock()
    session.post.return_value = _response(status_code=403)
    with patch('services.email_service.CONFIG', _config()):
        with pytest.raises(ImsError):
            send_trial_user_emails(['a@example.com'], {}, session=session)


def test_bundled_template_has_placeholders():
    from services.email_service import load_template
    template = load_template()
    assert '{{emailAddresses}}' in template
    assert '{{templateData}}' in template
