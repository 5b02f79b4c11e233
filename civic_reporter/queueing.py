"""Ordering of the triage queue: highest priority first, then arrival order."""
from typing import Any, Dict, Iterable, List, Optional, Tuple

from civic_reporter import config


def priority_rank(priority: Optional[str]) -> int:
    return config.PRIORITY_RANK.get(priority or config.PRIORITY_LOW, 1)


def queue_sort_key(report: Dict[str, Any]) -> Tuple[int, int]:
    return -priority_rank(report.get('priority')), report.get('queue_order') or 0


def order_reports(reports: Iterable[Dict[str, Any]], status: Optional[str] = None) -> List[Dict[str, Any]]:
    """Filter by exact status (when given) and sort into queue order."""
    items = [r for r in reports if not status or r.get('status') == status]
    return sorted(items, key=queue_sort_key)
