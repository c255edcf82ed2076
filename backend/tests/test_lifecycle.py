import logging
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from repairdesk import get_db
from repairdesk.errors import TransitionError, ValidationError
from repairdesk.services import lifecycle
from tests.test_utils_seed import seed_ticket

CREATE = {
    'customer_name': '  Lena Lifecycle ',
    'device_type': 'Smartphone',
    'device_brand': 'Samsung',
    'device_model': 'Galaxy S21',
    'issue_description': 'Battery drains quickly',
}


def test_generate_ticket_number_sequences_per_year(app_context):
    session = get_db()
    seed_ticket('Gen One', ticket_number='GEN-2024-0007')
    seed_ticket('Gen Two', ticket_number='GEN-2025-0002', deleted=True)
    assert lifecycle.generate_ticket_number(session, 'GEN', datetime(2024, 6, 1, tzinfo=timezone.utc)) == 'GEN-2024-0008'
    # soft-deleted numbers are never reused
    assert lifecycle.generate_ticket_number(session, 'GEN', datetime(2025, 1, 1, tzinfo=timezone.utc)) == 'GEN-2025-0003'
    assert lifecycle.generate_ticket_number(session, 'GEN', datetime(2026, 1, 1, tzinfo=timezone.utc)) == 'GEN-2026-0001'


def test_create_ticket_defaults(app_context):
    t = lifecycle.create_ticket(get_db(), {**CREATE, 'estimated_cost': '89.5', 'customer_email': ' '}, actor_id=7, prefix='LCY')
    assert t.ticket_number.startswith('LCY-')
    assert t.status == 'received'
    assert t.priority == 'normal'
    assert t.customer_name == 'Lena Lifecycle'
    assert t.customer_email is None
    assert t.estimated_cost == Decimal('89.50')
    assert t.created_by == 7


def test_create_ticket_ignores_requested_status(app_context):
    t = lifecycle.create_ticket(get_db(), {**CREATE, 'status': 'completed', 'priority': 'urgent'}, prefix='LCY')
    assert t.status == 'received'
    assert t.priority == 'urgent'


@pytest.mark.parametrize('patch', [
    {'customer_name': ''},
    {'device_model': None},
    {'priority': 'critical'},
    {'estimated_cost': '-1'},
    {'estimated_cost': 'abc'},
    {'estimated_completion': '10/03/2025'},
])
def test_create_ticket_validation(app_context, patch):
    with pytest.raises(ValidationError):
        lifecycle.create_ticket(get_db(), {**CREATE, **patch}, prefix='LCY')


def test_change_status_follows_table():
    t = type('T', (), {'status': 'received', 'ticket_number': 'X-1'})()
    assert lifecycle.change_status(t, 'diagnosing') is True
    assert lifecycle.change_status(t, 'diagnosing') is False
    with pytest.raises(TransitionError):
        lifecycle.change_status(t, 'ready')
    with pytest.raises(ValidationError):
        lifecycle.change_status(t, 'lost')


def test_change_status_override_logs(caplog):
    t = type('T', (), {'status': 'completed', 'ticket_number': 'X-2'})()
    with caplog.at_level(logging.INFO, logger='repairdesk.services.lifecycle'):
        assert lifecycle.change_status(t, 'repairing', override=True) is True
    assert t.status == 'repairing'
    assert any('override' in r.getMessage().lower() for r in caplog.records)


def test_terminal_states_have_no_exits():
    assert lifecycle.TICKET_FSM.is_terminal('completed')
    assert lifecycle.TICKET_FSM.is_terminal('cancelled')
    for status in ['received', 'diagnosing', 'awaiting_parts', 'repairing', 'quality_check', 'ready']:
        assert lifecycle.TICKET_FSM.can_transition(status, 'cancelled')


def test_update_ticket_rolls_back_on_error(app_context):
    t = seed_ticket('Rollback Rita', status='diagnosing', priority='low')
    with pytest.raises(TransitionError):
        lifecycle.update_ticket(get_db(), t, {'priority': 'high', 'status': 'completed'})
    get_db().refresh(t)
    assert t.status == 'diagnosing'
    assert t.priority == 'low'


def test_update_ticket_rejects_immutable_fields(app_context):
    t = seed_ticket('Immutable Ivan')
    with pytest.raises(ValidationError):
        lifecycle.update_ticket(get_db(), t, {'ticket_number': 'HACK-2025-0001'})


def test_update_ticket_costs_and_notes(app_context):
    t = seed_ticket('Costly Carl', status='repairing')
    lifecycle.update_ticket(get_db(), t, {'final_cost': 150, 'estimated_completion': '2025-04-01', 'notes': 'Screen ordered'})
    assert t.final_cost == Decimal('150.00')
    assert t.estimated_completion.isoformat() == '2025-04-01'
    assert t.notes == 'Screen ordered'


def test_cancel_and_soft_delete(app_context):
    t = seed_ticket('Cancel Cathy', status='awaiting_parts')
    lifecycle.cancel_ticket(get_db(), t)
    assert t.status == 'cancelled'
    with pytest.raises(TransitionError):
        lifecycle.cancel_ticket(get_db(), seed_ticket('Done Dan', status='completed'))
    lifecycle.soft_delete_ticket(get_db(), t)
    assert t.deleted_at is not None
