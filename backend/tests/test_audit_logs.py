from tests.test_utils_seed import create_ticket
from tests.test_lifecycle_helpers import seed_fleet, jwt_headers, ticket_payload, create_resource_and_assert


def _logs(client, headers, **params):
    query = '&'.join(f'{k}={v}' for k, v in params.items())
    resp = client.get(f'/audit/logs?{query}', headers=headers)
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()['data']


def test_decision_is_audited(app_context):
    client = app_context.test_client()
    fleet = seed_fleet('audit-decision')
    t = create_ticket(fleet.subsidiary, fleet.vehicle, fleet.requester)
    resp = client.post(f'/approvals/tickets/{t.id}/decision', json={'action': 'approve'}, headers=fleet.approver_headers())
    assert resp.status_code == 200
    approval_id = resp.get_json()['approval']['id']

    rows = _logs(client, fleet.requester_headers(), action='TKT.DECISION', entity_id=t.id)
    assert len(rows) == 1
    row = rows[0]
    assert row['entity'] == 'ServiceTicket'
    assert row['actor_user_id'] == fleet.approver.id
    assert row['subsidiary_id'] == fleet.subsidiary.id
    assert row['meta']['action'] == 'approve'
    assert row['meta']['approval_id'] == approval_id
    assert row['meta']['changes'] == {'ticket.status': {'before': 'submitted', 'after': 'approved'}}


def test_failed_decision_leaves_no_audit_row(app_context):
    client = app_context.test_client()
    fleet = seed_fleet('audit-failed')
    t = create_ticket(fleet.subsidiary, fleet.vehicle, fleet.requester, status='draft')
    resp = client.post(f'/approvals/tickets/{t.id}/decision', json={'action': 'approve'}, headers=fleet.approver_headers())
    assert resp.status_code == 409
    assert _logs(client, fleet.requester_headers(), action='TKT.DECISION', entity_id=t.id) == []


def test_ticket_lifecycle_actions_are_audited(app_context):
    client = app_context.test_client()
    fleet = seed_fleet('audit-lifecycle')
    headers = fleet.requester_headers()
    body = create_resource_and_assert(client, '/service-tickets', ticket_payload(fleet), headers)
    tid = body['id']
    client.post(f'/service-tickets/{tid}/submit', headers=headers)
    created = _logs(client, headers, action='TKT.CREATE', entity_id=tid)
    assert created[0]['meta'] == {'ticket_number': body['ticket_number'], 'status': 'draft'}
    submitted = _logs(client, headers, action='TKT.SUBMIT', entity_id=tid)
    assert submitted[0]['meta']['changes'] == {'status': {'before': 'draft', 'after': 'submitted'}}
    entity_rows = _logs(client, headers, entity='ServiceTicket', entity_id=tid)
    assert [r['action'] for r in entity_rows] == ['TKT.SUBMIT', 'TKT.CREATE']


def test_audit_logs_are_scoped_and_permissioned(app_context):
    client = app_context.test_client()
    fleet = seed_fleet('audit-scope')
    other = seed_fleet('audit-scope-other')
    t = create_ticket(other.subsidiary, other.vehicle, other.requester)
    client.post(f'/approvals/tickets/{t.id}/decision', json={'action': 'reject'}, headers=other.approver_headers())
    assert _logs(client, fleet.requester_headers(), entity_id=t.id) == []
    assert len(_logs(client, other.requester_headers(), entity_id=t.id)) == 1
    # approvers cannot read the activity log
    assert client.get('/audit/logs', headers=fleet.approver_headers()).status_code == 403
    no_scope = jwt_headers(fleet.requester.id, ['AUDIT.READ'])
    resp = client.get('/audit/logs?actor_user_id=abc', headers=no_scope)
    assert resp.status_code == 400
