import logging
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, current_app, jsonify, request, session
from flask_cors import CORS

from civic_reporter import config
from civic_reporter import reports as ops
from civic_reporter.errors import ApiError, register_error_handlers
from civic_reporter.geocode import GeocodeRateLimited, GeocodeUnavailable, reverse_geocode
from civic_reporter.store import DataStore
from civic_reporter.utils import parse_coordinate, validate_coordinates

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


def get_store() -> DataStore:
    return current_app.extensions['civic_store']


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ApiError('Request body must be a JSON object', 400)
    return data


def _remember_user(user: Dict[str, Any]) -> None:
    session['user_id'] = user['id']
    session['role'] = user['role']


# ============================================================================
# HEALTH
# ============================================================================

@api.route('/ping')
def ping():
    return jsonify({'message': current_app.config['PING_MESSAGE']})


@api.route('/demo')
def demo():
    return jsonify({'message': 'Hello from Flask server'})


# ============================================================================
# USERS
# ============================================================================

@api.route('/users/upsert', methods=['POST'])
def upsert_user():
    user = ops.upsert_user(get_store(), _json_body())
    _remember_user(user)
    return jsonify(user)


@api.route('/auth/login', methods=['POST'])
def auth_login():
    user = ops.login(get_store(), _json_body())
    _remember_user(user)
    return jsonify(user)


@api.route('/auth/logout', methods=['POST'])
def auth_logout():
    session.clear()
    return jsonify({'success': True})


@api.route('/users/<user_id>')
def get_user(user_id):
    return jsonify(ops.get_user(get_store(), user_id))


@api.route('/leaderboard')
def leaderboard():
    return jsonify(ops.get_leaderboard(get_store()))


# ============================================================================
# REPORTS
# ============================================================================

@api.route('/reports', methods=['GET'])
def list_reports():
    status = request.args.get('status') or None
    return jsonify(ops.list_reports(get_store(), status))


@api.route('/reports', methods=['POST'])
def create_report():
    report = ops.create_report(get_store(), _json_body(),
                               geocode=current_app.config['GEOCODE_REPORTS'])
    return jsonify(report), 201


@api.route('/reports/<report_id>/status', methods=['PATCH'])
def update_report_status(report_id):
    if current_app.config['REQUIRE_AUTHORITY_SESSION']:
        user_id = session.get('user_id')
        if not user_id:
            return jsonify({'error': 'Not logged in'}), 401
        user = get_store().get_user(user_id)
        if not user or user.get('role') != config.ROLE_AUTHORITY:
            logger.warning(f"Status update on {report_id} refused for user {user_id}")
            return jsonify({'error': 'Unauthorized'}), 403

    return jsonify(ops.update_report_status(get_store(), report_id, _json_body()))


@api.route('/reports-resolved')
def list_resolved():
    return jsonify(ops.list_resolved(get_store()))


@api.route('/stats')
def stats():
    return jsonify(ops.get_stats(get_store()))


@api.route('/map/pins')
def map_pins():
    return jsonify(ops.map_pins(get_store()))


@api.route('/geocode/reverse', methods=['POST'])
def geocode_reverse():
    """
    Resolve a place name for a coordinate.
    Accepts: { "lat": number, "lng": number }
    Returns: { "place": string }
    """
    data = _json_body()
    lat = parse_coordinate(data.get('lat'))
    lng = parse_coordinate(data.get('lng'))
    if lat is None or lng is None:
        return jsonify({'error': 'Missing lat/lng'}), 400
    if not validate_coordinates(lat, lng):
        return jsonify({'error': 'Invalid lat/lng'}), 400

    try:
        place = reverse_geocode(lat, lng)
    except GeocodeRateLimited:
        return jsonify({'error': 'Rate limited'}), 429
    except GeocodeUnavailable:
        return jsonify({'error': 'Connection error'}), 503
    return jsonify({'place': place})


# ============================================================================
# APP FACTORY
# ============================================================================

def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config)
    if overrides:
        app.config.update(overrides)
    app.secret_key = app.config['SECRET_KEY']

    if app.config['SECRET_KEY'] == 'dev-insecure-change-in-production':
        logger.warning("Using default SECRET_KEY. Set FLASK_SECRET_KEY environment variable in production!")

    CORS(app)

    store = DataStore(app.config['DB_FILE'] or None)
    store.load()
    app.extensions['civic_store'] = store

    app.register_blueprint(api)
    register_error_handlers(app)

    @app.before_request
    def log_request():
        if request.endpoint != 'api.ping':
            logger.info(f"{request.method} {request.path} - {request.remote_addr}")

    # Add security headers
    @app.after_request
    def set_security_headers(response):
        """Add security headers to all responses."""
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        response.headers['X-XSS-Protection'] = '1; mode=block'
        return response

    return app


def main():
    app = create_app()
    app.run(host='0.0.0.0', port=app.config['PORT'], debug=app.config['DEBUG'])


if __name__ == '__main__':
    main()
