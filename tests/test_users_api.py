import io

import pytest
from PIL import Image

from routes import users as routes_users
from tests.app_helpers import (
    FakeImageStore,
    fetch_row,
    image_upload,
    load_app,
    make_image_bytes,
)

TEN_MB = 10 * 1024 * 1024


def _register(client, **fields):
    payload = {'email': 'a@b.com', 'username': 'alice', 'password': 'p1'}
    payload.update(fields)
    return client.post('/register/user', data=payload, content_type='multipart/form-data')


def _user_count(app):
    return app.db.execute('SELECT COUNT(*) AS n FROM User').fetchone()['n']


def test_register_without_avatar(tmp_path):
    app = load_app(tmp_path)

    resp = _register(app.client)

    assert resp.status_code == 201
    data = resp.get_json()
    assert data['message'] == 'User registered successfully'
    assert data['imagepro'] is None
    row = fetch_row(app, 'SELECT * FROM User WHERE uid = ?', (data['uid'],))
    assert row['email'] == 'a@b.com'
    assert row['username'] == 'alice'
    assert row['password'] == 'p1'
    assert row['imagepro'] is None
    assert row['role'] == 'user'
    assert app.image_store.uploads == []


def test_register_with_avatar_uploads_normalized_webp(tmp_path):
    app = load_app(tmp_path)

    resp = _register(
        app.client,
        avatar=image_upload(make_image_bytes('JPEG', size=(1200, 800)), 'me.jpg', 'image/jpeg'),
    )

    assert resp.status_code == 201
    data = resp.get_json()
    assert len(app.image_store.uploads) == 1
    folder, uploaded = app.image_store.uploads[0]
    assert folder == 'avatars'
    img = Image.open(io.BytesIO(uploaded))
    assert (img.format, img.size) == ('WEBP', (512, 512))
    assert data['imagepro'] == 'https://res.example.com/image/upload/avatars/1.webp'
    row = fetch_row(app, 'SELECT imagepro FROM User WHERE uid = ?', (data['uid'],))
    assert row['imagepro'] == data['imagepro']


def test_register_duplicate_email(tmp_path):
    app = load_app(tmp_path)
    assert _register(app.client).status_code == 201

    resp = _register(app.client, username='alice-two')

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Email already exists'
    assert _user_count(app) == 1


@pytest.mark.parametrize('missing', ['email', 'username', 'password'])
def test_register_requires_fields(tmp_path, missing):
    app = load_app(tmp_path)

    resp = _register(app.client, **{missing: ''})

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'email, username, and password are required'


def test_register_oversize_avatar_rejected_before_processing(tmp_path):
    app = load_app(tmp_path)
    normalize_calls = []
    routes_users._context['normalize_image'] = lambda raw: normalize_calls.append(raw)

    resp = _register(
        app.client,
        avatar=image_upload(b'\0' * (TEN_MB + 1), 'big.png', 'image/png'),
    )

    assert resp.status_code == 413
    assert resp.get_json()['error'] == 'ไฟล์รูปใหญ่เกิน 10MB'
    assert normalize_calls == []
    assert app.image_store.uploads == []
    assert _user_count(app) == 0


def test_register_body_over_request_limit_is_413(tmp_path):
    app = load_app(tmp_path, max_upload_bytes=1024)

    resp = _register(
        app.client,
        avatar=image_upload(b'\0' * (3 * 1024 * 1024), 'huge.png', 'image/png'),
    )

    assert resp.status_code == 413
    assert app.image_store.uploads == []
    assert _user_count(app) == 0


def test_register_rejects_unsupported_mime_type(tmp_path):
    app = load_app(tmp_path)

    resp = _register(
        app.client,
        avatar=image_upload(make_image_bytes('GIF', mode='P', color=1), 'a.gif', 'image/gif'),
    )

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Only JPEG/JPG/PNG/WEBP allowed'
    assert _user_count(app) == 0


def test_register_undecodable_avatar_is_500_without_insert(tmp_path):
    app = load_app(tmp_path)

    resp = _register(app.client, avatar=image_upload(b'garbage', 'a.png', 'image/png'))

    assert resp.status_code == 500
    assert resp.get_json()['error'] == 'Invalid image data'
    assert app.image_store.uploads == []
    assert _user_count(app) == 0


def test_register_remote_store_failure_is_500_without_insert(tmp_path):
    app = load_app(tmp_path, image_store=FakeImageStore(fail=True))

    resp = _register(app.client, avatar=image_upload(make_image_bytes()))

    assert resp.status_code == 500
    assert resp.get_json()['error'] == 'upstream unavailable'
    assert _user_count(app) == 0


def test_login_success_omits_password(tmp_path):
    app = load_app(tmp_path)
    uid = _register(app.client).get_json()['uid']

    resp = app.client.post('/login', json={'username': 'alice', 'password': 'p1'})

    assert resp.status_code == 200
    data = resp.get_json()
    assert data['message'] == 'Login successful'
    assert data['user'] == {
        'uid': uid,
        'username': 'alice',
        'email': 'a@b.com',
        'imagepro': None,
        'role': 'user',
    }


@pytest.mark.parametrize(
    'username,password',
    [('alice', 'wrong'), ('nobody', 'p1')],
)
def test_login_invalid_credentials(tmp_path, username, password):
    app = load_app(tmp_path)
    _register(app.client)

    resp = app.client.post('/login', json={'username': username, 'password': password})

    assert resp.status_code == 401
    assert resp.get_json()['error'] == 'Invalid username or password'


def test_login_requires_fields(tmp_path):
    app = load_app(tmp_path)

    resp = app.client.post('/login', json={'username': 'alice'})

    assert resp.status_code == 400


def test_list_and_get_users_exclude_password(tmp_path):
    app = load_app(tmp_path)
    uid = _register(app.client).get_json()['uid']

    listing = app.client.get('/users').get_json()
    single = app.client.get(f'/users/{uid}')

    assert [user['username'] for user in listing] == ['alice']
    assert 'password' not in listing[0]
    assert single.status_code == 200
    assert 'password' not in single.get_json()
    assert app.client.get('/users/999').status_code == 404


def test_update_user_requires_uid(tmp_path):
    app = load_app(tmp_path)

    resp = app.client.post('/users/update', data={'username': 'x'})

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'uid is required'


def test_update_user_not_found(tmp_path):
    app = load_app(tmp_path)

    resp = app.client.post('/users/update', data={'uid': '42', 'username': 'x'})

    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'User not found'


def test_update_user_merges_username_and_keeps_avatar(tmp_path):
    app = load_app(tmp_path)
    created = _register(app.client, avatar=image_upload(make_image_bytes())).get_json()

    resp = app.client.post(
        '/users/update', data={'uid': str(created['uid']), 'username': 'alice2'}
    )

    assert resp.status_code == 200
    data = resp.get_json()
    assert data['message'] == 'User updated successfully'
    assert data['user'] == {
        'uid': created['uid'],
        'username': 'alice2',
        'imagepro': created['imagepro'],
    }


def test_update_user_empty_username_keeps_stored_value(tmp_path):
    app = load_app(tmp_path)
    uid = _register(app.client).get_json()['uid']

    resp = app.client.post('/users/update', data={'uid': str(uid), 'username': ''})

    assert resp.status_code == 200
    row = fetch_row(app, 'SELECT username, imagepro FROM User WHERE uid = ?', (uid,))
    assert row == {'username': 'alice', 'imagepro': None}


@pytest.mark.parametrize('username', ['0', '0.0'])
def test_update_user_accepts_zero_like_username(tmp_path, username):
    app = load_app(tmp_path)
    uid = _register(app.client).get_json()['uid']

    resp = app.client.post('/users/update', data={'uid': str(uid), 'username': username})

    assert resp.status_code == 200
    assert resp.get_json()['user']['username'] == username
    row = fetch_row(app, 'SELECT username FROM User WHERE uid = ?', (uid,))
    assert row['username'] == username


def test_update_unknown_user_with_avatar_still_uploads(tmp_path):
    app = load_app(tmp_path)

    resp = app.client.post(
        '/users/update',
        data={'uid': '42', 'avatar': image_upload(make_image_bytes())},
        content_type='multipart/form-data',
    )

    assert resp.status_code == 404
    assert [folder for folder, _ in app.image_store.uploads] == ['avatars']


def test_update_user_replaces_avatar(tmp_path):
    app = load_app(tmp_path)
    created = _register(app.client, avatar=image_upload(make_image_bytes())).get_json()

    resp = app.client.post(
        '/users/update',
        data={
            'uid': str(created['uid']),
            'avatar': image_upload(make_image_bytes('WEBP', size=(90, 300)), 'n.webp', 'image/webp'),
        },
        content_type='multipart/form-data',
    )

    assert resp.status_code == 200
    new_url = resp.get_json()['user']['imagepro']
    assert new_url != created['imagepro']
    assert [folder for folder, _ in app.image_store.uploads] == ['avatars', 'avatars']
    row = fetch_row(app, 'SELECT imagepro FROM User WHERE uid = ?', (created['uid'],))
    assert row['imagepro'] == new_url


def test_update_user_oversize_avatar_leaves_row_untouched(tmp_path):
    app = load_app(tmp_path, max_upload_bytes=2048)
    uid = _register(app.client).get_json()['uid']

    resp = app.client.post(
        '/users/update',
        data={'uid': str(uid), 'username': 'bob', 'avatar': image_upload(b'\0' * 4096)},
        content_type='multipart/form-data',
    )

    assert resp.status_code == 413
    row = fetch_row(app, 'SELECT username FROM User WHERE uid = ?', (uid,))
    assert row['username'] == 'alice'
