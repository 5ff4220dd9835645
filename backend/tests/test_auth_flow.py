from fleet.constants.permissions import ROLE_PRESETS
from tests.test_utils_seed import ensure_user, seed_user_with_role_and_group, create_subsidiary


def test_login_and_me(client):
    ensure_user('t@example.com', 'Terry Tester', password='pw')

    resp = client.post('/auth/login', json={'email': 't@example.com', 'password': 'pw'})
    assert resp.status_code == 200, resp.get_json()
    token = resp.get_json()['access_token']

    me = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    body = me.get_json()
    assert body['email'] == 't@example.com'
    assert body['full_name'] == 'Terry Tester'
    assert body['perms'] == []
    assert body['subsidiary_ids'] == []


def test_login_carries_permissions_and_subsidiary_scope(client):
    sub = create_subsidiary('Scoped')
    seed_user_with_role_and_group('approver.scope@example.com', 'Scoped Approver', ROLE_PRESETS['Approver'],
                                  'Scoped Approvers', [sub.id])
    resp = client.post('/auth/login', json={'email': 'approver.scope@example.com', 'password': 'pw'})
    token = resp.get_json()['access_token']
    me = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'}).get_json()
    assert me['perms'] == ['TKT.APPROVE', 'TKT.READ']
    assert me['subsidiary_ids'] == [sub.id]
    queue = client.get(f'/approvals/queue?subsidiary_id={sub.id}', headers={'Authorization': f'Bearer {token}'})
    assert queue.status_code == 200


def test_login_rejects_bad_credentials(client):
    ensure_user('wrong.pw@example.com', password='right')
    resp = client.post('/auth/login', json={'email': 'wrong.pw@example.com', 'password': 'nope'})
    assert resp.status_code == 401
    assert resp.get_json()['error']['detail'] == 'invalid credentials'
    resp = client.post('/auth/login', json={'email': 'nobody@example.com', 'password': 'pw'})
    assert resp.status_code == 401
    resp = client.post('/auth/login', json={'email': 'wrong.pw@example.com'})
    assert resp.status_code == 400


def test_me_requires_token(client):
    assert client.get('/auth/me').status_code == 401
