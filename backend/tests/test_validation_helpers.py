from datetime import date, datetime, timezone
from decimal import Decimal
import pytest
from werkzeug.exceptions import BadRequest
from fleet import get_db
from fleet.config.pagination import normalize_pagination, MAX_LIMIT
from fleet.errors import DecisionValidationError
from fleet.models.service_ticket import ServiceTicketPart
from fleet.services.approvals import DecisionForm
from fleet.services.tickets import estimate_costs, next_ticket_number, parse_vendor_id
from fleet.utils.listing import if_match_version
from fleet.utils.validation import (parse_optional_decimal, parse_optional_date, parse_optional_int, optional_text,
                                    validate_status)
from tests.test_utils_seed import create_ticket
from tests.test_lifecycle_helpers import seed_fleet, ticket_payload, create_resource_and_assert


@pytest.mark.parametrize('raw,expected', [
    (None, None), ('', None), ('   ', None), ('0', Decimal('0')), (12.5, Decimal('12.5')), (' 7 ', Decimal('7')),
])
def test_parse_optional_decimal(raw, expected):
    assert parse_optional_decimal(raw, 'cost') == expected


@pytest.mark.parametrize('raw,detail', [
    ('-1', 'cost must be a non-negative number'),
    ('abc', 'cost must be a number'),
    (True, 'cost must be a number'),
    ('NaN', 'cost must be a non-negative number'),
])
def test_parse_optional_decimal_rejects(raw, detail):
    with pytest.raises(BadRequest) as exc:
        parse_optional_decimal(raw, 'cost')
    assert exc.value.description == detail


def test_parse_other_helpers():
    assert parse_optional_date('2026-03-01', 'd') == date(2026, 3, 1)
    assert parse_optional_date('', 'd') is None
    assert parse_optional_int('42', 'n') == 42
    assert parse_optional_int(None, 'n') is None
    assert optional_text('  hi ') == 'hi'
    assert optional_text('   ') is None
    assert validate_status('high', ('high', 'low'), 'priority') == 'high'
    with pytest.raises(BadRequest):
        parse_optional_int('4.5', 'n')
    with pytest.raises(BadRequest):
        validate_status('urgent', ('high', 'low'), 'priority')


def test_decision_form_keeps_modifications_only_for_modified_approval():
    plain = DecisionForm.from_payload({'action': 'approve', 'modified_total_cost_limit': '10', 'comments': ' ok '})
    assert plain.comments == 'ok'
    assert plain.modified_total_cost_limit is None
    form = DecisionForm.from_payload({
        'action': 'approve_with_modifications',
        'modifications': 'Use OEM parts',
        'modified_labor_cost_limit': '',
        'modified_parts_cost_limit': '0',
        'modified_total_cost_limit': '12000',
        'modified_completion_date': '2026-11-02',
        'modified_vendor_id': 'none',
    })
    assert form.modified_labor_cost_limit is None
    assert form.modified_parts_cost_limit == Decimal('0')
    assert form.modified_total_cost_limit == Decimal('12000')
    assert form.modified_completion_date == date(2026, 11, 2)
    assert form.modified_vendor_id is None


@pytest.mark.parametrize('payload,detail', [
    ({}, 'action is required'),
    ({'action': '  '}, 'action is required'),
    ({'action': 'escalate'}, 'action must be one of approve, approve_with_modifications, request_info, reject'),
    ({'action': 'approve_with_modifications', 'modified_total_cost_limit': '-5'},
     'modified_total_cost_limit must be a non-negative number'),
    ({'action': 'approve_with_modifications', 'modified_vendor_id': 'garage'}, 'modified_vendor_id invalid'),
])
def test_decision_form_rejects(payload, detail):
    with pytest.raises(DecisionValidationError) as exc:
        DecisionForm.from_payload(payload)
    assert exc.value.description == detail
    assert exc.value.code == 400


def test_estimate_costs():
    parts = [ServiceTicketPart(description='Filter', quantity=3, estimated_unit_cost=Decimal('12.40'))]
    costs = estimate_costs(Decimal('1.5'), Decimal('60'), parts)
    assert costs == {
        'estimated_labor_cost': Decimal('90.00'),
        'estimated_parts_cost': Decimal('37.20'),
        'estimated_total_cost': Decimal('127.20'),
    }
    # hours without a rate price no labor
    assert estimate_costs(Decimal('2'), None, [])['estimated_total_cost'] is None


def test_next_ticket_number(app_context):
    session = get_db()
    jan = datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert next_ticket_number(session, 'QX', jan) == 'QX-202401-0001'
    fleet = seed_fleet('numbering')
    t = create_ticket(fleet.subsidiary, fleet.vehicle, fleet.requester)
    t.ticket_number = 'QX-202401-0041'
    session.commit()
    assert next_ticket_number(session, 'QX', jan) == 'QX-202401-0042'
    assert next_ticket_number(session, 'QX', datetime(2024, 2, 1, tzinfo=timezone.utc)) == 'QX-202402-0001'


def test_next_ticket_number_past_four_digits(app_context):
    session = get_db()
    march = datetime(2024, 3, 1, tzinfo=timezone.utc)
    fleet = seed_fleet('numbering-wide')
    t = create_ticket(fleet.subsidiary, fleet.vehicle, fleet.requester)
    t.ticket_number = 'QX-202403-9999'
    session.commit()
    assert next_ticket_number(session, 'QX', march) == 'QX-202403-10000'
    wider = create_ticket(fleet.subsidiary, fleet.vehicle, fleet.requester)
    wider.ticket_number = 'QX-202403-10000'
    session.commit()
    assert next_ticket_number(session, 'QX', march) == 'QX-202403-10001'


@pytest.mark.parametrize('raw,expected', [('none', None), ('', None), (None, None), ('7', 7), (12, 12)])
def test_parse_vendor_id(raw, expected):
    assert parse_vendor_id(raw, 'assigned_vendor_id') == expected


def test_vendor_none_sentinel_on_ticket_and_decision(app_context):
    client = app_context.test_client()
    fleet = seed_fleet('vendor-none')
    headers = fleet.requester_headers()
    body = create_resource_and_assert(client, '/service-tickets', ticket_payload(fleet, assigned_vendor_id='none'), headers)
    assert body['assigned_vendor_id'] is None
    assert client.post(f"/service-tickets/{body['id']}/submit", headers=headers).status_code == 200
    resp = client.post(f"/approvals/tickets/{body['id']}/decision",
                       json={'action': 'approve_with_modifications', 'modified_vendor_id': 'none'},
                       headers=fleet.approver_headers())
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['approval']['modified_vendor_id'] is None
    with pytest.raises(BadRequest) as exc:
        parse_vendor_id('garage', 'assigned_vendor_id')
    assert exc.value.description == 'assigned_vendor_id invalid'


def test_if_match_version(app_context):
    with app_context.test_request_context(headers={'If-Match': '"v3"'}):
        assert if_match_version() == 3
    with app_context.test_request_context(headers={'If-Match': 'W/"7"'}):
        assert if_match_version() == 7
    with app_context.test_request_context():
        assert if_match_version() is None
    with app_context.test_request_context(headers={'If-Match': '"abc"'}):
        with pytest.raises(BadRequest):
            if_match_version()


def test_normalize_pagination():
    assert normalize_pagination(None, None) == (50, 0)
    assert normalize_pagination('1000', '-4') == (MAX_LIMIT, 0)
    with pytest.raises(ValueError):
        normalize_pagination('ten', None)
