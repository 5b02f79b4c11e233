import base64
from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from civic_reporter import config
from civic_reporter.app import create_app


def to_data_url(img: Image.Image) -> str:
    buf = BytesIO()
    img.save(buf, format='PNG')
    return 'data:image/png;base64,' + base64.b64encode(buf.getvalue()).decode('ascii')


def noise_pixels(seed: int, size: int = 64) -> np.ndarray:
    """Grayscale noise: textured enough to never look like a screen."""
    rng = np.random.default_rng(seed)
    gray = rng.integers(0, 256, (size, size), dtype=np.uint8)
    return np.stack([gray, gray, gray], axis=2)


def noise_image(seed: int) -> Image.Image:
    return Image.fromarray(noise_pixels(seed), 'RGB')


def solid_image(color, size: int = 64) -> Image.Image:
    return Image.new('RGB', (size, size), color)


@pytest.fixture
def db_file(tmp_path):
    return str(tmp_path / 'data' / 'db.json')


@pytest.fixture
def app(db_file):
    app = create_app({
        'TESTING': True,
        'DB_FILE': db_file,
        'SECRET_KEY': 'test-secret',
        'REQUIRE_AUTHORITY_SESSION': True,
        'GEOCODE_REPORTS': False,
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions['civic_store']


@pytest.fixture
def no_geocoder_delay(monkeypatch):
    monkeypatch.setattr(config, 'GEOCODER_MIN_INTERVAL', 0)


@pytest.fixture
def citizen(client):
    res = client.post('/api/users/upsert', json={'email': 'jane@example.com', 'name': 'Jane'})
    assert res.status_code == 200
    return res.get_json()


@pytest.fixture
def make_report(client):
    counter = {'seed': 0}

    def _make(user, description='Big pothole on the main road', location=None, image=None, **extra):
        counter['seed'] += 1
        body = {
            'userId': user['id'],
            'userName': user['name'],
            'userEmail': user['email'],
            'imageDataUrl': to_data_url(image if image is not None else noise_image(counter['seed'])),
            'description': description,
            'location': location,
        }
        body.update(extra)
        return client.post('/api/reports', json=body)

    return _make


def login_as(client, email, name='Officer', password='secret-pass'):
    res = client.post('/api/auth/login', json={'email': email, 'password': password, 'name': name})
    assert res.status_code == 200
    return res.get_json()
