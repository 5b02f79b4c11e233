"""
User and report operations behind the HTTP API.

Each operation takes the DataStore plus the decoded request payload, raises
ApiError for anything the client got wrong, saves the store after every
mutation and returns plain dicts ready for jsonify.
"""
import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from civic_reporter import config
from civic_reporter.classifier import triage
from civic_reporter.errors import ApiError
from civic_reporter.geocode import GeocodeRateLimited, GeocodeUnavailable, reverse_geocode
from civic_reporter.imaging import analyze_image
from civic_reporter.queueing import order_reports
from civic_reporter.store import DataStore
from civic_reporter.utils import (
    haversine_meters,
    new_id,
    normalize_email,
    now_ms,
    parse_location,
    validate_email,
)

logger = logging.getLogger(__name__)

HOURS_MS = 36e5


# ============================================================================
# USERS
# ============================================================================

def determine_role(email: str) -> str:
    email = normalize_email(email)
    if email.endswith(config.AUTHORITY_DOMAIN) or email in config.AUTHORITY_WHITELIST:
        return config.ROLE_AUTHORITY
    return config.ROLE_CITIZEN


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """User as returned by the API (never exposes the password hash)."""
    return {k: v for k, v in user.items() if k != 'passwordHash'}


def _new_user(email: str, name: str, photo_url=None, phone=None) -> Dict[str, Any]:
    return {
        'id': new_id(),
        'email': email,
        'name': name,
        'photoURL': photo_url,
        'phone': phone,
        'role': determine_role(email),
        'points': 0,
        'createdAt': now_ms(),
        'passwordHash': None,
    }


def upsert_user(store: DataStore, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Create the user for this email, or refresh the profile of the existing one."""
    email = str(payload.get('email') or '').strip()
    name = str(payload.get('name') or '').strip()
    if not email or not name:
        raise ApiError('Missing email or name', 400)
    if not validate_email(email):
        raise ApiError('Invalid email', 400)

    photo_url = payload.get('photoURL')
    phone = payload.get('phone')

    with store.lock:
        user = store.find_user_by_email(email)
        if user is None:
            user = _new_user(email, name, photo_url, phone)
            logger.info(f"New user registered: {email} ({user['role']})")
        else:
            user['name'] = name
            if photo_url is not None:
                user['photoURL'] = photo_url
            if phone is not None:
                user['phone'] = phone
            user['role'] = determine_role(user['email'])
        store.put_user(user)
        store.save()
    return public_user(user)


def login(store: DataStore, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Email/password sign-in.

    The first sign-in for an email creates the account and fixes its
    password. Accounts created through upsert without a password adopt the
    first password they are signed in with.
    """
    email = str(payload.get('email') or '').strip()
    password = str(payload.get('password') or '')
    if not email or not password:
        raise ApiError('Email and password required', 400)
    if not validate_email(email):
        raise ApiError('Invalid email', 400)
    try:
        password.encode('utf-8')
    except UnicodeEncodeError:
        raise ApiError('Invalid password', 400)

    name = str(payload.get('name') or '').strip()
    phone = payload.get('phone')

    with store.lock:
        user = store.find_user_by_email(email)
        if user is None:
            user = _new_user(email, name or email.split('@')[0], phone=phone)
            user['passwordHash'] = generate_password_hash(password)
            logger.info(f"New user registered on login: {email} ({user['role']})")
        elif user.get('passwordHash'):
            if not check_password_hash(user['passwordHash'], password):
                logger.warning(f"Failed login attempt for '{email}'")
                raise ApiError('Invalid email or password', 401)
        else:
            user['passwordHash'] = generate_password_hash(password)

        if name:
            user['name'] = name
        if phone is not None:
            user['phone'] = phone
        user['role'] = determine_role(user['email'])
        store.put_user(user)
        store.save()

    logger.info(f"User '{email}' logged in successfully")
    return public_user(user)


def get_user(store: DataStore, user_id: str) -> Dict[str, Any]:
    user = store.get_user(user_id)
    if not user:
        raise ApiError('User not found', 404)
    return public_user(user)


def get_leaderboard(store: DataStore) -> List[Dict[str, Any]]:
    users = sorted(store.all_users(), key=lambda u: u.get('points', 0), reverse=True)
    return [
        {'id': u['id'], 'name': u.get('name', ''), 'points': u.get('points', 0), 'role': u.get('role')}
        for u in users[:config.LEADERBOARD_SIZE]
    ]


# ============================================================================
# REPORTS
# ============================================================================

def with_reporter_points(store: DataStore, report: Dict[str, Any]) -> Dict[str, Any]:
    return {**report, 'reporter_points': store.user_points(report.get('userId'))}


def _required_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def create_report(store: DataStore, payload: Dict[str, Any], geocode: bool = False) -> Dict[str, Any]:
    """Validate, classify and queue a new citizen report."""
    user_id = _required_str(payload, 'userId')
    user_email = _required_str(payload, 'userEmail')
    image_data_url = _required_str(payload, 'imageDataUrl')
    description = _required_str(payload, 'description')
    if not user_id or not user_email or not image_data_url or not description:
        raise ApiError('Missing fields', 400)

    try:
        location = parse_location(payload.get('location'))
    except ValueError as e:
        logger.warning(f"Rejected report from {user_email}: {e}")
        raise ApiError('Invalid location', 400)

    analysis = analyze_image(image_data_url)
    is_likely_screen = bool(payload.get('isLikelyScreen')) or analysis.is_screen

    if analysis.features:
        image_hint = analysis.features['category']
    else:
        image_hint = _required_str(payload, 'categoryHint')
    capture_source = _required_str(payload, 'captureSource')

    with store.lock:
        duplicate = store.find_duplicate(analysis.content_hash, analysis.average_hash, location)
        decision = triage(description, is_likely_screen=is_likely_screen,
                          is_duplicate=duplicate is not None, image_hint=image_hint)

        created_at = now_ms()
        report = {
            'id': new_id(),
            'userId': user_id,
            'userName': payload.get('userName') or '',
            'userEmail': user_email,
            'imageDataUrl': image_data_url,
            'location': location,
            'address': None,
            'description': description,
            'createdAt': created_at,
            'status': decision.status,
            'ai_category': decision.category,
            'spam_score': decision.spam_score,
            'is_spam': decision.is_spam,
            'priority': decision.priority,
            'queue_order': None if decision.is_spam else store.next_queue_order(),
            'validated_at': created_at,
            'image_hash': analysis.content_hash,
            'image_ahash': analysis.average_hash,
            'image_features': analysis.features,
            'is_likely_screen': is_likely_screen,
            'duplicate_of': duplicate['id'] if duplicate else None,
            'capture_source': capture_source if capture_source in config.CAPTURE_SOURCES else None,
            'resolved_at': None,
            'resolution_description': None,
            'resolution_photos': [],
            'resolved_location': None,
            'resolution_verified': False,
        }
        store.put_report(report)
        store.save()

    if duplicate:
        logger.info(f"Report {report['id']} duplicates report {duplicate['id']}")
    logger.info(
        f"Report {report['id']} submitted by {user_email}: status={report['status']} "
        f"category={report['ai_category']} priority={report['priority']} spam={report['spam_score']:.2f}"
    )

    if geocode and location:
        _attach_address(store, report)

    return report


def _attach_address(store: DataStore, report: Dict[str, Any]) -> None:
    location = report['location']
    try:
        place = reverse_geocode(location['lat'], location['lng'])
    except (GeocodeRateLimited, GeocodeUnavailable) as e:
        logger.warning(f"Skipping address for report {report['id']}: {e.__class__.__name__}")
        return
    if place:
        with store.lock:
            report['address'] = place
            store.save()


def list_reports(store: DataStore, status: Optional[str] = None) -> List[Dict[str, Any]]:
    return [with_reporter_points(store, r) for r in order_reports(store.all_reports(), status)]


def list_resolved(store: DataStore) -> List[Dict[str, Any]]:
    return [
        with_reporter_points(store, r)
        for r in store.all_reports()
        if r.get('status') == config.STATUS_RESOLVED
    ]


def update_report_status(store: DataStore, report_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Move a report through the triage workflow.

    Resolving requires at least one proof photo. The resolution is verified
    when the authority's location is within RESOLUTION_RADIUS_METERS of the
    original report, and only a verified transition into 'resolved' rewards
    the reporter.
    """
    with store.lock:
        report = store.get_report(report_id)
        if not report:
            raise ApiError('Report not found', 404)

        prev_status = report.get('status')
        status = payload.get('status') or prev_status
        if not isinstance(status, str) or status not in config.VALID_STATUSES:
            raise ApiError('Invalid status', 400)

        if status != config.STATUS_RESOLVED:
            report['status'] = status
            store.save()
            logger.info(f"Report {report_id} moved from {prev_status} to {status}")
            return report

        photos = payload.get('resolution_photos')
        if not isinstance(photos, list) or not photos:
            raise ApiError('resolution_photos required when marking resolved', 400)

        report['status'] = status
        report['resolved_at'] = now_ms()
        if payload.get('resolution_description') is not None:
            report['resolution_description'] = payload['resolution_description']
        report['resolution_photos'] = photos

        try:
            resolved_location = parse_location(payload.get('resolved_location'))
        except ValueError:
            logger.warning(f"Ignoring malformed resolved_location for report {report_id}")
            resolved_location = None
        if resolved_location:
            report['resolved_location'] = resolved_location

        verified = False
        if report.get('location') and report.get('resolved_location'):
            distance = haversine_meters(report['location'], report['resolved_location'])
            verified = distance <= config.RESOLUTION_RADIUS_METERS
            logger.info(f"Report {report_id} resolved {distance:.0f} m from the reported location")
        report['resolution_verified'] = verified

        if prev_status != config.STATUS_RESOLVED and verified:
            reporter = store.get_user(report.get('userId'))
            if reporter:
                reporter['points'] = reporter.get('points', 0) + config.RESOLUTION_REWARD_POINTS
                logger.info(f"Awarded {config.RESOLUTION_REWARD_POINTS} points to {reporter['email']}")

        store.save()
        logger.info(f"Report {report_id} resolved (verified={verified})")
        return report


def get_stats(store: DataStore) -> Dict[str, Any]:
    reports = store.all_reports()
    resolved = [r for r in reports if r.get('status') == config.STATUS_RESOLVED]
    total = len(reports)

    hours = [
        (r['resolved_at'] - r['createdAt']) / HOURS_MS
        for r in resolved
        if r.get('resolved_at') and r.get('createdAt')
    ]

    return {
        'totalReports': total,
        'resolvedCount': len(resolved),
        'resolutionRate': 0 if total == 0 else len(resolved) / total,
        'averageResolutionHours': sum(hours) / len(hours) if hours else None,
        'verifiedCount': sum(1 for r in resolved if r.get('resolution_verified')),
        'byStatus': dict(Counter(r.get('status') for r in reports)),
        'byCategory': dict(Counter(r.get('ai_category') or config.CATEGORY_OTHER for r in reports)),
    }


def map_pins(store: DataStore) -> List[Dict[str, Any]]:
    """Lightweight markers for the public map (work in progress and resolved)."""
    pins = []
    for r in store.all_reports():
        if r.get('status') not in (config.STATUS_PROCESSING, config.STATUS_RESOLVED):
            continue
        location = r.get('resolved_location') or r.get('location')
        if not location:
            continue
        photos = r.get('resolution_photos') or []
        pins.append({
            'id': r['id'],
            'lat': location['lat'],
            'lng': location['lng'],
            'status': r['status'],
            'description': r.get('description', ''),
            'category': r.get('ai_category'),
            'priority': r.get('priority'),
            'address': r.get('address'),
            'resolution_description': r.get('resolution_description'),
            'resolution_verified': bool(r.get('resolution_verified')),
            'photo': photos[0] if photos else r.get('imageDataUrl'),
            'resolved_at': r.get('resolved_at'),
        })
    return pins
