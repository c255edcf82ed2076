from flask import Flask
from tests.test_lifecycle_helpers import STAFF_PERMS, jwt_headers, create_ticket_and_assert


def test_repairs_head_validators(app_context: Flask):
    client = app_context.test_client()
    headers = jwt_headers(1, STAFF_PERMS)
    # create one ticket so Last-Modified appears
    create_ticket_and_assert(client, headers, customer_name='Head')
    resp = client.head('/repairs/tickets', headers=headers)
    assert resp.status_code in (200, 304)
    assert resp.data in (b'', None)
    assert 'ETag' in resp.headers
    if resp.status_code == 200:
        # With at least one record, expect Last-Modified headers
        assert 'Last-Modified' in resp.headers
        assert 'X-Last-Modified-ISO' in resp.headers


def test_head_ticket_resource(app_instance):
    client = app_instance.test_client()
    with app_instance.app_context():
        headers = jwt_headers(1, STAFF_PERMS)
    tid = client.post('/repairs/tickets', json={
        'customer_name': 'Head Single', 'device_type': 'Tablet', 'device_brand': 'Apple',
        'device_model': 'iPad Air', 'issue_description': 'Charging port loose',
    }, headers=headers).get_json()['id']
    h1 = client.head(f'/repairs/tickets/{tid}', headers=headers)
    assert h1.status_code == 200
    assert h1.data == b''
    assert 'ETag' in h1.headers
    # Conditional 304
    h2 = client.head(f'/repairs/tickets/{tid}', headers={'If-None-Match': h1.headers['ETag'], **headers})
    assert h2.status_code == 304
    assert client.head('/repairs/tickets/999999', headers=headers).status_code == 404
