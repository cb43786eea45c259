#!/usr/bin/env python3
"""Bearer-token and admin-key authentication on the REST routes."""
import datetime
from unittest.mock import patch, MagicMock

import jwt
from flask import g

from config import CONFIG
from models import Organization, Site

ORG_ID = '5f3b3626-029c-476e-924b-0c1bba2e871f'


def _token(payload):
    return 'Bearer ' + jwt.encode(payload, CONFIG.security.jwt_secret, algorithm='HS256')


def test_missing_authorization_header_is_rejected(client):
    resp = client.get('/api/v1/sites')
    assert resp.status_code == 401
    assert resp.get_json() == {'message': 'Unauthorized'}
    assert resp.headers.get('x-error') == 'Unauthorized'


def test_expired_token_is_rejected(client):
    token = _token({
        'user_email': 'user@example.com',
        'type': 'access',
        'exp': datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=1),
    })
    resp = client.get('/api/v1/sites', headers={'Authorization': token})
    assert resp.status_code == 401
    assert resp.get_json() == {'message': 'Unauthorized'}
    assert resp.headers.get('x-error') == 'Unauthorized'


def test_refresh_token_cannot_be_used_as_access_token(client):
    token = _token({
        'user_email': 'user@example.com',
        'type': 'refresh',
        'exp': datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(minutes=5),
    })
    resp = client.get('/api/v1/sites', headers={'Authorization': token})
    assert resp.status_code == 401


def test_wrong_admin_key_is_rejected(client):
    resp = client.get('/api/v1/sites', headers={'x-api-key': 'not-the-key'})
    assert resp.status_code == 401


def test_admin_key_grants_admin_access(client, admin_headers):
    data_access = MagicMock()
    data_access.sites.all.return_value = []
    with patch('app.routes.sites_routes.get_data_access', return_value=data_access):
        resp = client.get('/api/v1/sites', headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json() == []


def test_has_access_checks_organization_membership():
    import main
    import auth_utils
    site = Site(id='s1', base_url='https://example.com', organization_id=ORG_ID)
    orphan = Site(id='s2', base_url='https://orphan.com')
    with main.app.test_request_context('/'):
        g.is_admin = False
        g.user_organizations = [ORG_ID]
        assert auth_utils.has_access(site) is True
        assert auth_utils.has_access(orphan) is False
        assert auth_utils.has_access(Organization(id=ORG_ID, name='Org')) is True
        assert auth_utils.has_access(Organization(id='other', name='Other')) is False
        assert auth_utils.has_access({'id': ORG_ID}) is False


def test_admin_has_access_to_everything():
    import main
    import auth_utils
    with main.app.test_request_context('/'):
        g.is_admin = True
        assert auth_utils.has_access(Site(id='s2', base_url='https://orphan.com')) is True
