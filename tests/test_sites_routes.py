#!/usr/bin/env python3
"""Tests for the /sites endpoints: listing, CRUD, key events and stored metrics."""
import base64
from datetime import datetime
from unittest.mock import patch, MagicMock

from models import Audit, KeyEvent, Site, SiteConfig

ORG_ID = '5f3b3626-029c-476e-924b-0c1bba2e871f'
SITE_ID = '9c4c7c4a-0f6b-4e5c-8b1d-3a0f0b7c1e21'
KEY_EVENT_ID = '0d6f7b7e-2c1a-4b8e-9f3d-5a6c7e8f9a0b'


def _site(**kwargs):
    defaults = {'id': SITE_ID, 'base_url': 'https://www.example.com', 'organization_id': ORG_ID}
    defaults.update(kwargs)
    return Site(**defaults)


def _data_access(site=None):
    data_access = MagicMock()
    data_access.sites.find_by_id.return_value = site
    data_access.sites.find_by_base_url.return_value = site
    data_access.sites.save.side_effect = lambda s: s
    return data_access


def _patched(data_access):
    return patch('app.routes.sites_routes.get_data_access', return_value=data_access)


# ==================== Listing ====================

def test_get_all_requires_admin(client, user_headers):
    with _patched(_data_access()):
        resp = client.get('/api/v1/sites', headers=user_headers)
    assert resp.status_code == 403
    assert resp.get_json()['message'] == 'Only admins can view all sites'


def test_get_all_returns_sites_for_admin(client, admin_headers):
    data_access = _data_access()
    data_access.sites.all.return_value = [_site(), _site(id='other', base_url='https://other.com')]
    with _patched(data_access):
        resp = client.get('/api/v1/sites', headers=admin_headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert [s['baseURL'] for s in body] == ['https://www.example.com', 'https://other.com']
    assert body[0]['deliveryType'] == 'aem_edge'


def test_get_all_as_csv(client, admin_headers):
    data_access = _data_access()
    audit = Audit(site_id=SITE_ID, audit_type='lhs-mobile', audited_at=datetime(2024, 1, 2),
                  audit_result={'scores': {'performance': 0.91, 'seo': 1, 'accessibility': 0.8,
                                           'best-practices': 0.75}})
    data_access.sites.all_with_latest_audit.return_value = [(_site(is_live=True), audit)]
    with _patched(data_access):
        resp = client.get('/api/v1/sites.csv', headers=admin_headers)
    assert resp.status_code == 200
    assert resp.mimetype == 'text/csv'
    lines = resp.get_data(as_text=True).splitlines()
    assert lines[0].startswith('Base URL,Delivery Type,Live Status')
    assert lines[1].startswith('https://www.example.com,aem_edge,Live')
    assert '91,100,80,75' in lines[1]


def test_get_with_latest_audit_passes_ascending_flag(client, admin_headers):
    data_access = _data_access()
    data_access.sites.all_with_latest_audit.return_value = [(_site(), None)]
    with _patched(data_access):
        resp = client.get('/api/v1/sites/with-latest-audit/lhs-mobile?ascending=false', headers=admin_headers)
    assert resp.status_code == 200
    data_access.sites.all_with_latest_audit.assert_called_once_with('lhs-mobile', False)
    assert resp.get_json()[0]['audits'] == []


# ==================== Lookup ====================

def test_get_by_base_url_decodes_base64(client, user_headers):
    data_access = _data_access(_site())
    encoded = base64.urlsafe_b64encode(b'https://www.example.com').decode().rstrip('=')
    with _patched(data_access):
        resp = client.get(f'/api/v1/sites/by-base-url/{encoded}', headers=user_headers)
    assert resp.status_code == 200
    data_access.sites.find_by_base_url.assert_called_once_with('https://www.example.com')


def test_get_by_id_not_found(client, user_headers):
    with _patched(_data_access(None)):
        resp = client.get(f'/api/v1/sites/{SITE_ID}', headers=user_headers)
    assert resp.status_code == 404
    assert resp.get_json()['message'] == 'Site not found'


def test_get_by_id_forbidden_for_other_org(client, other_org_headers):
    with _patched(_data_access(_site())):
        resp = client.get(f'/api/v1/sites/{SITE_ID}', headers=other_org_headers)
    assert resp.status_code == 403


def test_get_by_id_ok(client, user_headers):
    with _patched(_data_access(_site())):
        resp = client.get(f'/api/v1/sites/{SITE_ID}', headers=user_headers)
    assert resp.status_code == 200
    assert resp.get_json()['id'] == SITE_ID


# ==================== Create / delete ====================

def test_create_site_rejects_invalid_base_url(client, admin_headers):
    with _patched(_data_access()):
        resp = client.post('/api/v1/sites', json={'baseURL': 'not a url'}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()['message'].startswith('baseURL:')


def test_create_site_conflict_on_duplicate(client, admin_headers):
    with _patched(_data_access(_site())):
        resp = client.post('/api/v1/sites', json={'baseURL': 'https://www.example.com'}, headers=admin_headers)
    assert resp.status_code == 409


def test_create_site(client, admin_headers):
    data_access = _data_access(None)
    data_access.sites.create.return_value = _site(base_url='https://new.example.com')
    with _patched(data_access):
        resp = client.post('/api/v1/sites', json={'baseURL': 'https://new.example.com'}, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.get_json()['baseURL'] == 'https://new.example.com'
    assert data_access.sites.create.call_args.args[0]['deliveryType'] == 'aem_edge'


def test_create_site_requires_admin(client, user_headers):
    resp = client.post('/api/v1/sites', json={'baseURL': 'https://new.example.com'}, headers=user_headers)
    assert resp.status_code == 403


def test_remove_site(client, admin_headers):
    data_access = _data_access(_site())
    with _patched(data_access):
        resp = client.delete(f'/api/v1/sites/{SITE_ID}', headers=admin_headers)
    assert resp.status_code == 204
    data_access.sites.remove.assert_called_once_with(SITE_ID)


# ==================== Update ====================

def test_update_site_toggles_live_and_delivery_type(client, user_headers):
    site = _site()
    data_access = _data_access(site)
    with _patched(data_access):
        resp = client.patch(f'/api/v1/sites/{SITE_ID}', json={'isLive': True, 'deliveryType': 'aem_cs'},
                            headers=user_headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['isLive'] is True
    assert body['isLiveToggledAt'] is not None
    assert body['deliveryType'] == 'aem_cs'


def test_update_site_without_changes(client, user_headers):
    with _patched(_data_access(_site())):
        resp = client.patch(f'/api/v1/sites/{SITE_ID}', json={'isLive': False, 'deliveryType': 'bogus'},
                            headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'No updates provided'


def test_update_site_replaces_config(client, user_headers):
    site = _site(config=SiteConfig({'handlers': {'404': {'excludedURLs': ['https://a.com']}}}))
    with _patched(_data_access(site)):
        resp = client.patch(f'/api/v1/sites/{SITE_ID}',
                            json={'config': {'handlers': {'cwv': {}}, 'slack': {'channel': 'C1'}}},
                            headers=user_headers)
    assert resp.status_code == 200
    assert resp.get_json()['config'] == {'handlers': {'cwv': {}}, 'slack': {'channel': 'C1'}}


# ==================== Audits / key events / metrics ====================

def test_get_audit_for_site_not_found(client, user_headers):
    data_access = _data_access(_site())
    data_access.audits.find_by_site_id_audit_type_and_audited_at.return_value = None
    with _patched(data_access):
        resp = client.get(f'/api/v1/sites/{SITE_ID}/audits/lhs-mobile/2024-01-01T00:00:00Z', headers=user_headers)
    assert resp.status_code == 404


def test_create_key_event_validates_type(client, user_headers):
    with _patched(_data_access(_site())):
        resp = client.post(f'/api/v1/sites/{SITE_ID}/key-events', json={'name': 'x', 'type': 'NOPE'},
                           headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json()['message'].startswith('type:')


def test_create_and_list_key_events(client, user_headers):
    data_access = _data_access(_site())
    event = KeyEvent(id='k1', site_id=SITE_ID, name='Go live', type='STATUS CHANGE')
    data_access.key_events.create.return_value = event
    data_access.key_events.all_by_site_id.return_value = [event]
    with _patched(data_access):
        created = client.post(f'/api/v1/sites/{SITE_ID}/key-events',
                              json={'name': 'Go live', 'type': 'STATUS CHANGE'}, headers=user_headers)
        listed = client.get(f'/api/v1/sites/{SITE_ID}/key-events', headers=user_headers)
    assert created.status_code == 201
    data_access.key_events.create.assert_called_once_with(SITE_ID, 'Go live', 'STATUS CHANGE', None)
    assert listed.get_json() == [event.to_dict()]


def test_remove_key_event(client, user_headers):
    data_access = _data_access(_site())
    with _patched(data_access):
        resp = client.delete(f'/api/v1/sites/{SITE_ID}/key-events/{KEY_EVENT_ID}', headers=user_headers)
    assert resp.status_code == 204
    data_access.key_events.remove.assert_called_once_with(KEY_EVENT_ID)


def test_site_metrics_missing_returns_empty_list(client, user_headers):
    with _patched(_data_access(_site())), \
            patch('app.routes.sites_routes.get_cached_json_data', return_value=None) as cached:
        resp = client.get(f'/api/v1/sites/{SITE_ID}/metrics/organic-traffic/ahrefs', headers=user_headers)
    assert resp.status_code == 200
    assert resp.get_json() == []
    assert cached.call_args.args[0].endswith(f'/metrics/{SITE_ID}/ahrefs/organic-traffic.json')


# ==================== Identifier validation ====================

def test_malformed_site_id_is_rejected(client, user_headers):
    data_access = _data_access(_site())
    with _patched(data_access):
        responses = [
            client.get('/api/v1/sites/not-a-uuid', headers=user_headers),
            client.patch('/api/v1/sites/not-a-uuid', json={'isLive': True}, headers=user_headers),
            client.get('/api/v1/sites/not-a-uuid/key-events', headers=user_headers),
            client.post('/api/v1/sites/not-a-uuid/key-events',
                        json={'name': 'Go live', 'type': 'STATUS CHANGE'}, headers=user_headers),
            client.get('/api/v1/sites/not-a-uuid/metrics/organic-traffic/ahrefs', headers=user_headers),
        ]
    for resp in responses:
        assert resp.status_code == 400
        assert resp.get_json() == {'message': 'Site ID required'}
    data_access.sites.find_by_id.assert_not_called()


def test_malformed_key_event_id_is_rejected(client, user_headers):
    with _patched(_data_access(_site())):
        resp = client.delete(f'/api/v1/sites/{SITE_ID}/key-events/k1', headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Key Event ID required'


def test_malformed_audited_at_is_rejected(client, user_headers):
    data_access = _data_access(_site())
    with _patched(data_access):
        resp = client.get(f'/api/v1/sites/{SITE_ID}/audits/lhs-mobile/yesterday', headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Audited at required'
    data_access.audits.find_by_site_id_audit_type_and_audited_at.assert_not_called()


def test_rejected_database_input_is_bad_request(client, user_headers):
    import psycopg2.errors
    from data_access import DataAccess

    error = psycopg2.errors.InvalidTextRepresentation('invalid input syntax for type uuid: "x"\nLINE 1: ...')
    with _patched(DataAccess()), patch('db_utils.fetch_one', side_effect=error):
        resp = client.get(f'/api/v1/sites/{SITE_ID}', headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json() == {'message': 'Invalid input for sites'}
    assert resp.headers['x-error'] == 'Invalid input for sites'
