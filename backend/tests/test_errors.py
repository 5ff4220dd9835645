import fleet.routes.service_tickets as tickets_mod
from fleet.errors import PersistenceError
from tests.test_lifecycle_helpers import seed_fleet


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert body['error']['status'] == 404
    assert body['error']['title'] == 'Not Found'
    assert 'detail' in body['error']


def test_method_not_allowed_shape(client):
    resp = client.put('/healthz')
    assert resp.status_code == 405
    assert resp.get_json()['error']['status'] == 405


def test_internal_error_shape(app_context, monkeypatch):
    client = app_context.test_client()
    fleet = seed_fleet('errors-500')

    def explode(session, subsidiary_ids):
        raise RuntimeError('explode')

    monkeypatch.setattr(tickets_mod, 'ticket_stats', explode)
    resp = client.get('/service-tickets/stats', headers=fleet.requester_headers())
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error'] == {'status': 500, 'title': 'Internal Server Error', 'detail': 'Unexpected error'}


def test_persistence_error_keeps_its_detail(app_context, monkeypatch):
    client = app_context.test_client()
    fleet = seed_fleet('errors-persist')

    def fail(session, subsidiary_ids):
        raise PersistenceError('Failed to load ticket stats')

    monkeypatch.setattr(tickets_mod, 'ticket_stats', fail)
    resp = client.get('/service-tickets/stats', headers=fleet.requester_headers())
    assert resp.status_code == 500
    assert resp.get_json()['error']['detail'] == 'Failed to load ticket stats'


def test_not_found_ticket(app_context):
    client = app_context.test_client()
    fleet = seed_fleet('errors-404')
    resp = client.get('/service-tickets/987654', headers=fleet.requester_headers())
    assert resp.status_code == 404
    assert resp.get_json()['error']['detail'] == 'Ticket not found'
