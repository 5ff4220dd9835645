from tests.test_utils_seed import create_ticket
from tests.test_lifecycle_helpers import seed_fleet, ticket_payload, create_resource_and_assert


def test_etag_conditional_single_ticket(app_context):
    client = app_context.test_client()
    fleet = seed_fleet('etag-single')
    headers = fleet.requester_headers()
    tid = create_resource_and_assert(client, '/service-tickets', ticket_payload(fleet), headers)['id']
    first = client.get(f'/service-tickets/{tid}', headers=headers)
    assert first.status_code == 200
    assert first.headers['ETag'] == 'v1'
    assert first.headers.get('Last-Modified')

    cached = client.get(f'/service-tickets/{tid}', headers={**headers, 'If-None-Match': '"v1"'})
    assert cached.status_code == 304
    assert cached.headers.get('ETag') == 'v1'

    head = client.head(f'/service-tickets/{tid}', headers=headers)
    assert head.status_code == 200
    assert head.data == b''
    assert head.headers['ETag'] == 'v1'

    client.patch(f'/service-tickets/{tid}', json={'title': 'Changed'}, headers=headers)
    after = client.get(f'/service-tickets/{tid}', headers={**headers, 'If-None-Match': '"v1"'})
    assert after.status_code == 200
    assert after.headers['ETag'] == 'v2'


def test_etag_conditional_ticket_list(app_context):
    client = app_context.test_client()
    fleet = seed_fleet('etag-list')
    headers = fleet.requester_headers()
    create_ticket(fleet.subsidiary, fleet.vehicle, fleet.requester)
    url = f'/service-tickets?subsidiary_id={fleet.subsidiary.id}&limit=5'
    first = client.get(url, headers=headers)
    assert first.status_code == 200
    etag = first.headers.get('ETag')
    assert etag
    second = client.get(url, headers={**headers, 'If-None-Match': etag})
    assert second.status_code == 304
    assert second.headers.get('ETag') == etag
    # If-Modified-Since should also 304 when using Last-Modified from first response
    lm = first.headers.get('Last-Modified')
    if lm:
        third = client.get(url, headers={**headers, 'If-Modified-Since': lm})
        assert third.status_code == 304
        assert third.headers.get('ETag') == etag
    head = client.head(url, headers=headers)
    assert head.status_code == 200
    assert head.data == b''
    assert head.headers.get('ETag') == etag


def test_list_etag_changes_when_a_ticket_changes(app_context):
    client = app_context.test_client()
    fleet = seed_fleet('etag-list-change')
    headers = fleet.requester_headers()
    t = create_ticket(fleet.subsidiary, fleet.vehicle, fleet.requester)
    url = f'/service-tickets?subsidiary_id={fleet.subsidiary.id}'
    etag = client.get(url, headers=headers).headers['ETag']
    client.post(f'/approvals/tickets/{t.id}/decision', json={'action': 'reject', 'comments': 'Too vague'},
                headers=fleet.approver_headers())
    resp = client.get(url, headers={**headers, 'If-None-Match': etag})
    assert resp.status_code == 200
    assert resp.headers['ETag'] != etag
    assert resp.get_json()['data'][0]['status'] == 'rejected'
