"""
In-memory store for users and reports, flushed wholesale to one JSON file.
"""
import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, List, Optional

from civic_reporter import config
from civic_reporter.imaging import hamming_distance
from civic_reporter.utils import haversine_meters, normalize_email

logger = logging.getLogger(__name__)


class DataStore:
    """
    Process-memory map of users and reports.

    Every mutation is followed by a call to save() from the operation that
    made it. An empty db_file keeps the store in memory only.
    """

    def __init__(self, db_file: Optional[str] = None):
        self.db_file = db_file
        self.users: Dict[str, Dict[str, Any]] = {}
        self.reports: Dict[str, Dict[str, Any]] = {}
        self.queue_counter = 0
        self.lock = threading.RLock()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Load the persisted dataset, if any. A corrupt file is logged and skipped."""
        if not self.db_file or not os.path.exists(self.db_file):
            return

        try:
            with open(self.db_file, 'r', encoding='utf-8') as f:
                parsed = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load DB from {self.db_file}: {e}")
            return

        if not isinstance(parsed, dict):
            logger.error(f"Ignoring DB file {self.db_file}: top level is not an object")
            return

        with self.lock:
            for user in parsed.get('users') or []:
                if isinstance(user, dict) and user.get('id'):
                    self.users[user['id']] = user
            for report in parsed.get('reports') or []:
                if isinstance(report, dict) and report.get('id'):
                    self.reports[report['id']] = report
            counter = parsed.get('queueCounter')
            if isinstance(counter, int) and not isinstance(counter, bool):
                self.queue_counter = counter

        logger.info(f"Loaded {len(self.users)} users and {len(self.reports)} reports from {self.db_file}")

    def save(self) -> bool:
        """Write the whole dataset. Returns False (after logging) on failure."""
        if not self.db_file:
            return True

        with self.lock:
            payload = {
                'users': list(self.users.values()),
                'reports': list(self.reports.values()),
                'queueCounter': self.queue_counter,
            }
            tmp_path = None
            try:
                directory = os.path.dirname(os.path.abspath(self.db_file))
                os.makedirs(directory, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(prefix='.db-', suffix='.json', dir=directory)
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_path, self.db_file)
                return True
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Failed to save DB to {self.db_file}: {e}")
                if tmp_path and os.path.exists(tmp_path):
                    os.remove(tmp_path)
                return False

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.users.get(user_id)

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        wanted = normalize_email(email)
        with self.lock:
            for user in self.users.values():
                if normalize_email(user.get('email', '')) == wanted:
                    return user
        return None

    def put_user(self, user: Dict[str, Any]) -> None:
        with self.lock:
            self.users[user['id']] = user

    def all_users(self) -> List[Dict[str, Any]]:
        with self.lock:
            return list(self.users.values())

    def user_points(self, user_id: str) -> int:
        user = self.users.get(user_id)
        return user.get('points', 0) if user else 0

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def get_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        return self.reports.get(report_id)

    def put_report(self, report: Dict[str, Any]) -> None:
        with self.lock:
            self.reports[report['id']] = report

    def all_reports(self) -> List[Dict[str, Any]]:
        with self.lock:
            return list(self.reports.values())

    def next_queue_order(self) -> int:
        with self.lock:
            self.queue_counter += 1
            return self.queue_counter

    def find_duplicate(self, image_hash: Optional[str], ahash: Optional[str] = None,
                       location: Optional[Dict[str, float]] = None) -> Optional[Dict[str, Any]]:
        """
        Return the earliest non-spam report showing the same image.

        An identical content hash always matches. A near-identical average
        hash matches only when both reports carry locations within
        DUPLICATE_RADIUS_METERS of each other.
        """
        candidates = sorted(self.all_reports(), key=lambda r: r.get('createdAt') or 0)
        for report in candidates:
            if report.get('is_spam'):
                continue
            if image_hash and report.get('image_hash') == image_hash:
                return report
            other_ahash = report.get('image_ahash')
            other_location = report.get('location')
            if not (ahash and other_ahash and location and other_location):
                continue
            if hamming_distance(ahash, other_ahash) > config.DUPLICATE_HASH_DISTANCE:
                continue
            if haversine_meters(location, other_location) <= config.DUPLICATE_RADIUS_METERS:
                return report
        return None
