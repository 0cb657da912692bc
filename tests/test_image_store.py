import cloudinary.exceptions
import cloudinary.uploader
import pytest

from errors import RemoteStoreError
from media.store import CloudinaryImageStore, StoredImage


def _store(**kwargs):
    return CloudinaryImageStore(
        cloud_name='demo',
        api_key='key',
        api_secret='secret',
        **kwargs,
    )


def test_store_uploads_with_folder_and_webp_format():
    calls = []

    def fake_upload(file, **options):
        calls.append((file.read(), options))
        return {
            'secure_url': 'https://res.cloudinary.com/demo/image/upload/avatars/abc.webp',
            'public_id': 'avatars/abc',
        }

    result = _store(upload=fake_upload).store(b'webp-bytes', 'avatars')

    assert result == StoredImage(
        url='https://res.cloudinary.com/demo/image/upload/avatars/abc.webp',
        public_id='avatars/abc',
    )
    assert calls == [
        (b'webp-bytes', {'folder': 'avatars', 'resource_type': 'image', 'format': 'webp'})
    ]


def test_store_defaults_to_sdk_uploader(monkeypatch):
    seen = {}

    def fake_upload(file, **options):
        seen.update(options)
        return {'secure_url': 'https://res.cloudinary.com/demo/games/x.webp'}

    monkeypatch.setattr(cloudinary.uploader, 'upload', fake_upload)

    result = _store().store(b'data', 'games')

    assert result.url == 'https://res.cloudinary.com/demo/games/x.webp'
    assert result.public_id is None
    assert seen['folder'] == 'games'


def test_store_wraps_sdk_errors():
    def failing_upload(file, **options):
        raise cloudinary.exceptions.Error('Server returned unexpected status code - 503')

    with pytest.raises(RemoteStoreError) as excinfo:
        _store(upload=failing_upload).store(b'data', 'games')

    assert excinfo.value.status_code == 500
    assert '503' in excinfo.value.message


def test_store_wraps_network_errors():
    def failing_upload(file, **options):
        raise ConnectionResetError('connection reset by peer')

    with pytest.raises(RemoteStoreError):
        _store(upload=failing_upload).store(b'data', 'games')


def test_store_requires_secure_url_in_response():
    with pytest.raises(RemoteStoreError) as excinfo:
        _store(upload=lambda file, **options: {'public_id': 'x'}).store(b'data', 'games')

    assert excinfo.value.message == 'Image upload returned no URL'


def test_store_without_credentials_fails_without_uploading():
    calls = []
    store = CloudinaryImageStore(
        cloud_name='',
        api_key='',
        api_secret='',
        upload=lambda file, **options: calls.append(options),
    )

    assert store.enabled is False
    with pytest.raises(RemoteStoreError) as excinfo:
        store.store(b'data', 'avatars')
    assert excinfo.value.message == 'Image storage is not configured'
    assert calls == []
