from conftest import login_as


def test_ping_and_demo(client):
    assert client.get('/api/ping').get_json() == {'message': 'ping'}
    assert client.get('/api/demo').status_code == 200


def test_security_headers(client):
    res = client.get('/api/ping')
    assert res.headers['X-Content-Type-Options'] == 'nosniff'
    assert res.headers['X-Frame-Options'] == 'SAMEORIGIN'


def test_upsert_requires_email_and_name(client):
    res = client.post('/api/users/upsert', json={'email': 'a@example.com'})
    assert res.status_code == 400
    assert res.get_json() == {'error': 'Missing email or name'}


def test_upsert_rejects_malformed_email(client):
    res = client.post('/api/users/upsert', json={'email': 'nope', 'name': 'X'})
    assert res.status_code == 400


def test_upsert_creates_citizen(client):
    user = client.post('/api/users/upsert', json={'email': 'jane@example.com', 'name': 'Jane'}).get_json()
    assert user['role'] == 'citizen'
    assert user['points'] == 0
    assert user['photoURL'] is None
    assert 'passwordHash' not in user


def test_upsert_assigns_authority_by_domain_and_whitelist(client):
    gov = client.post('/api/users/upsert', json={'email': 'Clerk@GOV.IN', 'name': 'Clerk'}).get_json()
    admin = client.post('/api/users/upsert', json={'email': 'admin@test.com', 'name': 'Admin'}).get_json()
    assert gov['role'] == 'authority'
    assert admin['role'] == 'authority'


def test_upsert_updates_existing_user_by_email(client):
    first = client.post('/api/users/upsert', json={'email': 'jane@example.com', 'name': 'Jane',
                                                   'phone': '555-0100'}).get_json()
    second = client.post('/api/users/upsert', json={'email': 'JANE@example.com', 'name': 'Jane Doe'}).get_json()
    assert second['id'] == first['id']
    assert second['name'] == 'Jane Doe'
    assert second['phone'] == '555-0100'
    assert second['createdAt'] == first['createdAt']


def test_get_user(client, citizen):
    assert client.get(f"/api/users/{citizen['id']}").get_json()['email'] == 'jane@example.com'
    res = client.get('/api/users/missing')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'User not found'}


def test_login_creates_account_with_default_name(client, store):
    user = login_as(client, 'newbie@example.com', name='')
    assert user['name'] == 'newbie'
    assert 'passwordHash' not in user
    assert store.get_user(user['id'])['passwordHash']


def test_login_checks_password_on_later_sign_ins(client):
    first = login_as(client, 'officer@test.com', password='right-pass')
    again = login_as(client, 'officer@test.com', password='right-pass')
    assert again['id'] == first['id']

    res = client.post('/api/auth/login', json={'email': 'officer@test.com', 'password': 'wrong'})
    assert res.status_code == 401
    assert res.get_json() == {'error': 'Invalid email or password'}


def test_login_requires_email_and_password(client):
    res = client.post('/api/auth/login', json={'email': 'x@example.com'})
    assert res.status_code == 400
    assert res.get_json() == {'error': 'Email and password required'}


def test_upserted_user_adopts_first_password(client, citizen):
    user = login_as(client, 'jane@example.com', name='', password='pw-one')
    assert user['id'] == citizen['id']
    assert user['name'] == 'Jane'
    res = client.post('/api/auth/login', json={'email': 'jane@example.com', 'password': 'pw-two'})
    assert res.status_code == 401


def test_logout_clears_session(client, citizen):
    assert client.post('/api/auth/logout').get_json() == {'success': True}
    res = client.patch('/api/reports/any/status', json={'status': 'processing'})
    assert res.status_code == 401


def test_non_object_json_body_is_rejected(client):
    res = client.post('/api/users/upsert', json=['a', 'b'])
    assert res.status_code == 400


def test_unknown_route_is_json_404(client):
    res = client.get('/api/nothing-here')
    assert res.status_code == 404
    assert 'error' in res.get_json()


def test_leaderboard_orders_by_points(client, store):
    for i, points in enumerate([5, 30, 10]):
        user = client.post('/api/users/upsert', json={'email': f'u{i}@example.com', 'name': f'U{i}'}).get_json()
        store.get_user(user['id'])['points'] = points

    board = client.get('/api/leaderboard').get_json()
    assert [u['points'] for u in board] == [30, 10, 5]
    assert set(board[0]) == {'id', 'name', 'points', 'role'}


def test_leaderboard_is_capped(client):
    for i in range(25):
        client.post('/api/users/upsert', json={'email': f'u{i}@example.com', 'name': f'U{i}'})
    assert len(client.get('/api/leaderboard').get_json()) == 20


def test_login_rejects_unencodable_password(client):
    res = client.post('/api/auth/login', json={'email': 'x@example.com', 'password': 'pw\ud800'})
    assert res.status_code == 400
    assert res.get_json() == {'error': 'Invalid password'}
