import logging
from datetime import datetime, timedelta, timezone
import pytest
from repairdesk.errors import DataIntegrityError, TicketLookupError, ValidationError
from repairdesk.services.resolver import (
    TicketResolver, project_timeline, project_timelines, classify_priority, summarize_tickets,
    progress_index, age_in_days, is_overdue, KEY_TICKET_NUMBER, KEY_CUSTOMER_NAME,
)
from repairdesk.services.ticket_store import TicketRecord

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _ticket(number='RPR-2025-0001', name='Jane Doe', status='received', priority='normal', created_at=None, ticket_id=1):
    created_at = created_at or NOW - timedelta(days=1)
    return TicketRecord(
        id=ticket_id, ticket_number=number, customer_name=name,
        device_type='Smartphone', device_brand='Apple', device_model='iPhone 13',
        issue_description='Cracked screen', status=status, priority=priority,
        created_at=created_at, updated_at=created_at,
    )


class FakeStore:
    """In-memory TicketStore counting calls so tests can assert storage was untouched."""

    def __init__(self, tickets=(), fail=False):
        self.tickets = list(tickets)
        self.fail = fail
        self.calls = 0

    def find_by_ticket_number(self, number):
        self.calls += 1
        if self.fail:
            raise TicketLookupError('backend down')
        for t in self.tickets:
            if t.ticket_number.lower() == number.lower():
                return t
        return None

    def find_by_customer_name_substring(self, fragment, page, page_size):
        self.calls += 1
        if self.fail:
            raise TicketLookupError('backend down')
        hits = [t for t in self.tickets if fragment.lower() in t.customer_name.lower()]
        start = (page - 1) * page_size
        return hits[start:start + page_size], len(hits)


def test_exact_match_is_case_insensitive():
    store = FakeStore([_ticket('RPR-2025-0001'), _ticket('RPR-2025-0002', ticket_id=2)])
    result = TicketResolver(store).search('rpr-2025-0001', KEY_TICKET_NUMBER)
    assert [t.ticket_number for t in result.tickets] == ['RPR-2025-0001']
    assert result.total_matched == 1
    assert result.single is not None


def test_exact_match_absent_returns_empty():
    result = TicketResolver(FakeStore([_ticket()])).search('RPR-2025-9999', KEY_TICKET_NUMBER)
    assert result.tickets == []
    assert result.total_matched == 0
    assert result.single is None


def test_key_is_trimmed_before_lookup():
    result = TicketResolver(FakeStore([_ticket()])).search('  RPR-2025-0001  ', KEY_TICKET_NUMBER)
    assert result.total_matched == 1


def test_substring_match_returns_all_and_only_matches():
    store = FakeStore([
        _ticket('RPR-2025-0001', 'John Smith', ticket_id=1),
        _ticket('RPR-2025-0002', 'Mary JOnes', ticket_id=2),
        _ticket('RPR-2025-0003', 'Alice Walker', ticket_id=3),
    ])
    result = TicketResolver(store).search('jo', KEY_CUSTOMER_NAME)
    assert {t.customer_name for t in result.tickets} == {'John Smith', 'Mary JOnes'}
    assert result.total_matched == 2


@pytest.mark.parametrize('key', ['a', ' a ', '', '   '])
def test_short_key_rejected_without_storage_call(key):
    store = FakeStore([_ticket()])
    with pytest.raises(ValidationError):
        TicketResolver(store).search(key, KEY_CUSTOMER_NAME)
    assert store.calls == 0


def test_unknown_key_type_rejected():
    store = FakeStore([_ticket()])
    with pytest.raises(ValidationError):
        TicketResolver(store).search('Jane', 'email')
    assert store.calls == 0


def test_storage_failure_propagates():
    with pytest.raises(TicketLookupError):
        TicketResolver(FakeStore(fail=True)).search('Jane', KEY_CUSTOMER_NAME)


def test_scenario_b_newest_first():
    older = _ticket('RPR-2025-0001', 'John Smith', created_at=NOW - timedelta(days=5), ticket_id=1)
    newer = _ticket('RPR-2025-0002', 'Johnny Appleseed', created_at=NOW - timedelta(days=1), ticket_id=2)
    result = TicketResolver(FakeStore([older, newer])).search('John', KEY_CUSTOMER_NAME)
    assert [t.customer_name for t in result.tickets] == ['Johnny Appleseed', 'John Smith']
    assert result.single is None


def test_substring_pagination_reports_total():
    store = FakeStore([_ticket(f'RPR-2025-{i:04d}', f'Pat {i}', ticket_id=i) for i in range(1, 6)])
    result = TicketResolver(store).search('pat', KEY_CUSTOMER_NAME, page=2, page_size=2)
    assert len(result.tickets) == 2
    assert result.total_matched == 5
    assert (result.page, result.page_size) == (2, 2)


def test_repairing_timeline_progress():
    view = project_timeline(_ticket(status='repairing'), NOW)
    by_status = {s.status: s for s in view.steps}
    for done in ['received', 'diagnosing', 'awaiting_parts']:
        assert by_status[done].is_completed and not by_status[done].is_current
    assert by_status['repairing'].is_current
    assert not by_status['repairing'].is_completed
    for future in ['quality_check', 'ready', 'completed']:
        assert by_status[future].is_future
    assert view.progress_index == 3
    assert [s.status for s in view.steps][0] == 'received'
    assert len(view.steps) == 7


def test_scenario_a_ready_ticket():
    store = FakeStore([_ticket('RPR-2025-0001', 'Jane Doe', status='ready')])
    result = TicketResolver(store).search('RPR-2025-0001', KEY_TICKET_NUMBER)
    assert len(result.tickets) == 1
    view = project_timeline(result.tickets[0], NOW)
    assert [s.is_completed for s in view.steps] == [True] * 5 + [False, False]
    assert view.steps[5].status == 'ready' and view.steps[5].is_current
    assert view.steps[6].status == 'completed' and view.steps[6].is_future
    assert view.steps[0].label == 'Ticket Received'


def test_completed_ticket_marks_last_step_current():
    view = project_timeline(_ticket(status='completed'), NOW)
    assert all(s.is_completed for s in view.steps[:6])
    assert view.steps[6].is_current
    assert not any(s.is_future for s in view.steps)


def test_cancelled_ticket_has_no_progress():
    view = project_timeline(_ticket(status='cancelled'), NOW)
    assert view.is_cancelled
    assert view.progress_index == -1
    for step in view.steps:
        assert not step.is_completed
        assert not step.is_current
    assert view.cancelled_marker.status == 'cancelled'
    assert view.cancelled_marker.is_current


def test_overdue_boundary():
    exactly_seven = _ticket(status='repairing', created_at=NOW - timedelta(days=7))
    just_over = _ticket(status='repairing', created_at=NOW - timedelta(days=7, seconds=1))
    old_completed = _ticket(status='completed', created_at=NOW - timedelta(days=30))
    old_cancelled = _ticket(status='cancelled', created_at=NOW - timedelta(days=30))
    assert project_timeline(exactly_seven, NOW).is_overdue is False
    assert project_timeline(just_over, NOW).is_overdue is True
    assert project_timeline(old_completed, NOW).is_overdue is False
    assert project_timeline(old_cancelled, NOW).is_overdue is False


def test_overdue_threshold_is_configurable():
    t = _ticket(status='diagnosing', created_at=NOW - timedelta(days=3))
    assert project_timeline(t, NOW, overdue_after=timedelta(days=2)).is_overdue is True
    assert is_overdue('diagnosing', t.created_at, NOW) is False


def test_age_in_days_floors_and_clamps():
    assert age_in_days(NOW - timedelta(days=2, hours=23), NOW) == 2
    assert age_in_days(NOW - timedelta(hours=5), NOW) == 0
    # clock skew: creation in the future
    assert age_in_days(NOW + timedelta(hours=5), NOW) == 0
    # naive timestamps are read as UTC
    assert age_in_days(datetime(2025, 3, 1, 12, 0), NOW) == 9


def test_progress_index_unknown():
    assert progress_index('received') == 0
    assert progress_index('completed') == 6
    assert progress_index('bogus') == -1


def test_corrupt_status_raises_data_integrity_error():
    with pytest.raises(DataIntegrityError) as exc:
        project_timeline(_ticket('RPR-2025-0042', status='unknown_value'), NOW)
    assert exc.value.ticket_number == 'RPR-2025-0042'
    assert exc.value.value == 'unknown_value'


def test_scenario_d_batch_omits_corrupt_record(caplog):
    tickets = [_ticket(f'RPR-2025-{i:04d}', ticket_id=i) for i in range(1, 5)]
    tickets.insert(2, _ticket('RPR-2025-0099', status='unknown_value', ticket_id=99))
    with caplog.at_level(logging.WARNING, logger='repairdesk.services.resolver'):
        batch = project_timelines(tickets, NOW)
    assert len(batch.rendered) == 4
    assert batch.omitted == ['RPR-2025-0099']
    assert any('RPR-2025-0099' in r.getMessage() for r in caplog.records)


def test_timeline_as_dict_shape():
    body = project_timeline(_ticket(status='diagnosing'), NOW).as_dict()
    assert body['progress_index'] == 1
    assert body['cancelled_marker'] is None
    assert set(body['steps'][0]) == {'status', 'label', 'description', 'is_completed', 'is_current', 'is_future'}


@pytest.mark.parametrize('priority, tier', [('urgent', 'severe'), ('high', 'severe'), ('normal', 'medium'), ('low', 'mild')])
def test_classify_priority(priority, tier):
    assert classify_priority(priority) == tier


def test_classify_priority_unknown():
    with pytest.raises(DataIntegrityError):
        classify_priority('critical')


def test_summarize_tickets_counts():
    tickets = [
        _ticket(status='received', created_at=NOW - timedelta(days=1)),
        _ticket(status='repairing', created_at=NOW - timedelta(days=10)),
        _ticket(status='completed', created_at=NOW - timedelta(days=30)),
        _ticket(status='cancelled', created_at=NOW - timedelta(days=30)),
        _ticket(status='unknown_value'),
    ]
    assert summarize_tickets(tickets, NOW) == {
        'total': 5, 'active': 2, 'completed': 1, 'cancelled': 1, 'overdue': 1, 'invalid': 1,
    }
