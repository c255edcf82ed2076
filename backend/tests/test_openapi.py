def test_openapi_spec_available(client):
    resp = client.get('/openapi.json')
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['openapi'].startswith('3.')
    assert '/track' in body['paths']
    assert '/repairs/tickets/{ticket_id}/cancel' in body['paths']


def test_docs_page(client):
    resp = client.get('/docs')
    assert resp.status_code == 200
    assert b'Redoc' in resp.data or b'redoc' in resp.data


def test_pagination_parameter_components_and_usage(client):
    spec = client.get('/openapi.json').get_json()
    comps = spec['components']['parameters']
    for name in ['PageParam', 'PageSizeParam']:
        assert name in comps, f"Missing parameter component: {name}"
    for p in ['/track', '/repairs/tickets']:
        params = spec['paths'][p]['get'].get('parameters', [])
        assert any(pr.get('$ref', '').endswith('PageParam') for pr in params), f"{p} missing ref to PageParam"


def test_list_caching_headers_documented(client):
    spec = client.get('/openapi.json').get_json()
    for p in ['/repairs/tickets', '/repairs/tickets/{ticket_id}']:
        hdrs = spec['paths'][p]['get']['responses']['200'].get('headers', {})
        for h in ['ETag', 'Last-Modified', 'X-Last-Modified-ISO']:
            assert h in hdrs, f"{p} missing header doc {h}"


def test_ticket_schema_documents_transitions(client):
    schema = client.get('/openapi.json').get_json()['components']['schemas']['RepairTicket']
    transitions = schema['x-transitions']
    assert transitions['received'] == ['cancelled', 'diagnosing']
    assert transitions['completed'] == []
    assert 'unknown_value' not in schema['properties']['status']['enum']


def test_operation_ids_unique(client):
    spec = client.get('/openapi.json').get_json()
    ids = [op['operationId'] for ops in spec['paths'].values() for op in ops.values()]
    assert len(ids) == len(set(ids))
    assert spec['paths']['/track']['get']['security'] == []
