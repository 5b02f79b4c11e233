from civic_reporter.queueing import order_reports, priority_rank


def test_priority_rank_defaults_to_low():
    assert priority_rank('High') == 3
    assert priority_rank('Medium') == 2
    assert priority_rank('Low') == 1
    assert priority_rank(None) == 1


def test_order_reports_by_priority_then_arrival():
    reports = [
        {'id': 'a', 'priority': 'Low', 'queue_order': 1, 'status': 'queued'},
        {'id': 'b', 'priority': 'High', 'queue_order': 4, 'status': 'queued'},
        {'id': 'c', 'priority': 'Medium', 'queue_order': 2, 'status': 'processing'},
        {'id': 'd', 'priority': 'High', 'queue_order': 3, 'status': 'queued'},
        {'id': 'e', 'priority': None, 'queue_order': None, 'status': 'spam'},
    ]
    assert [r['id'] for r in order_reports(reports)] == ['d', 'b', 'c', 'e', 'a']


def test_order_reports_filters_by_status():
    reports = [
        {'id': 'a', 'priority': 'Low', 'queue_order': 1, 'status': 'queued'},
        {'id': 'b', 'priority': 'High', 'queue_order': 2, 'status': 'resolved'},
    ]
    assert [r['id'] for r in order_reports(reports, 'queued')] == ['a']
    assert order_reports(reports, 'rejected') == []
