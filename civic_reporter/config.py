"""
Configuration and constants for the Civic Issue Reporter service.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DB_FILE = os.environ.get('CIVIC_DB_FILE', os.path.join(BASE_DIR, 'data', 'db.json'))

# Security
# CRITICAL: Set FLASK_SECRET_KEY environment variable in production
SECRET_KEY = os.environ.get('FLASK_SECRET_KEY', 'dev-insecure-change-in-production')

# Status updates need an authority session
REQUIRE_AUTHORITY_SESSION = os.environ.get('REQUIRE_AUTHORITY_SESSION', '1') != '0'

# Access control
AUTHORITY_DOMAIN = '@gov.in'
AUTHORITY_WHITELIST = {
    'test.authority@gov.in',
    'admin@test.com',
    'authority@test.com',
    'officer@test.com',
}

ROLE_CITIZEN = 'citizen'
ROLE_AUTHORITY = 'authority'

# Status constants
STATUS_SUBMITTED = 'submitted'
STATUS_QUEUED = 'queued'
STATUS_PROCESSING = 'processing'
STATUS_RESOLVED = 'resolved'
STATUS_SPAM = 'spam'
STATUS_REJECTED = 'rejected'

VALID_STATUSES = {
    STATUS_SUBMITTED,
    STATUS_QUEUED,
    STATUS_PROCESSING,
    STATUS_RESOLVED,
    STATUS_SPAM,
    STATUS_REJECTED,
}

# How the report photo was taken
CAPTURE_SOURCES = {'camera', 'upload'}

# Priority constants
PRIORITY_LOW = 'Low'
PRIORITY_MEDIUM = 'Medium'
PRIORITY_HIGH = 'High'

PRIORITY_RANK = {
    PRIORITY_HIGH: 3,
    PRIORITY_MEDIUM: 2,
    PRIORITY_LOW: 1,
}

# Classifier rules
SPAM_INDICATORS = ['win money', 'free bitcoin', 'click here', 'subscribe', 'promo']
SPAM_INDICATOR_WEIGHT = 0.25
SPAM_THRESHOLD = 0.6
SCREEN_SPAM_SCORE = 0.9
DUPLICATE_SPAM_SCORE = 0.8

# Checked in order, first match wins
CATEGORY_PATTERNS = [
    ('road_damage', r'(pothole|road|asphalt|street)'),
    ('garbage', r'(garbage|trash|waste|dump)'),
    ('streetlight', r'(streetlight|light|lamp)'),
    ('water', r'(water|leak|sewage|drain)'),
]
CATEGORY_OTHER = 'other'

HIGH_PRIORITY_PATTERN = r'(fire|accident|injur|collapse|flood)'
MEDIUM_PRIORITY_PATTERN = r'(pothole|leak|garbage)'

# Image hint categories that differ from the text categories
IMAGE_HINT_ALIASES = {
    'potholes': 'road_damage',
    'dirty_places': 'garbage',
}

# Image heuristics
SCREEN_SAMPLE_MAX_SIDE = 400
SCREEN_SAMPLE_HALF_WINDOW = 40
SCREEN_SAMPLE_STRIDE = 4
SCREEN_MEAN_MIN = 50
SCREEN_MEAN_MAX = 220
SCREEN_VARIANCE_MAX = 4000

FEATURE_SAMPLE_MAX_SIDE = 300
FEATURE_SAMPLE_STRIDE = 2

AVERAGE_HASH_SIZE = 8
DUPLICATE_HASH_DISTANCE = 5
DUPLICATE_RADIUS_METERS = 50

# Resolution verification
RESOLUTION_RADIUS_METERS = 500
RESOLUTION_REWARD_POINTS = 10

# Public dashboard
LEADERBOARD_SIZE = 20

# Reverse geocoding (Nominatim)
GEOCODER_URL = os.environ.get('GEOCODER_URL', 'https://nominatim.openstreetmap.org/reverse')
GEOCODER_USER_AGENT = 'CivicIssueReporter/1.0'
GEOCODER_TIMEOUT = 10
GEOCODER_MIN_INTERVAL = 1.0
GEOCODE_REPORTS = os.environ.get('GEOCODE_REPORTS') == '1'

# Request limits (camera images arrive base64-encoded)
MAX_CONTENT_LENGTH = 50 * 1024 * 1024

# Server config
PING_MESSAGE = os.environ.get('PING_MESSAGE', 'ping')
DEBUG = os.environ.get('FLASK_ENV') == 'development'
PORT = int(os.environ.get('PORT', 8080))
