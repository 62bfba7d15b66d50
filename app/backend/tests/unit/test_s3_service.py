from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from app.backend.src.core.errors import ConfigurationError, StorageError
from app.backend.src.services import s3


def _settings(**overrides: object) -> SimpleNamespace:
    values = {
        "aws_region": "auto",
        "s3_bucket": "pet-memorials",
        "s3_endpoint_url": "https://account.r2.cloudflarestorage.com",
        "aws_access_key_id": "test",
        "aws_secret_access_key": "secret",
        "public_base_url": "https://images.example.com",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_generate_presigned_upload_url_uses_sigv4(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}
    mock_client = Mock()
    mock_client.generate_presigned_url.return_value = "https://example.com/presigned"

    def fake_boto3_client(service_name: str, **kwargs: object) -> Mock:
        captured.update(kwargs)
        return mock_client

    monkeypatch.setattr(s3, "get_settings", lambda: _settings())
    monkeypatch.setattr(s3.boto3, "client", fake_boto3_client)

    url = s3.generate_presigned_upload_url(
        "abc123.jpg", content_type="image/jpeg", expires_in=360
    )

    assert url == "https://example.com/presigned"
    assert getattr(captured["config"], "signature_version", None) == "s3v4"
    assert captured["endpoint_url"] == "https://account.r2.cloudflarestorage.com"
    mock_client.generate_presigned_url.assert_called_once_with(
        "put_object",
        Params={"Bucket": "pet-memorials", "Key": "abc123.jpg", "ContentType": "image/jpeg"},
        ExpiresIn=360,
    )


def test_presign_without_bucket_is_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(s3, "get_settings", lambda: _settings(s3_bucket=None))

    with pytest.raises(ConfigurationError):
        s3.generate_presigned_upload_url("a.jpg", content_type="image/jpeg")


def test_delete_objects_batches_and_reports_partial_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    mock_client = Mock()
    mock_client.delete_objects.side_effect = [
        {"Errors": []},
        {"Errors": [{"Key": "k1000.jpg", "Code": "AccessDenied", "Message": "Access Denied"}]},
    ]
    monkeypatch.setattr(s3, "get_settings", lambda: _settings())
    monkeypatch.setattr(s3.boto3, "client", lambda *args, **kwargs: mock_client)

    keys = [f"k{i}.jpg" for i in range(s3.DELETE_BATCH_SIZE + 1)]
    with pytest.raises(StorageError) as excinfo:
        s3.delete_objects(keys)

    assert mock_client.delete_objects.call_count == 2
    first_batch = mock_client.delete_objects.call_args_list[0].kwargs["Delete"]["Objects"]
    assert len(first_batch) == s3.DELETE_BATCH_SIZE
    assert excinfo.value.failed_keys == ["k1000.jpg"]
    assert "Access Denied" in excinfo.value.message


def test_delete_objects_skips_empty_input(monkeypatch: pytest.MonkeyPatch) -> None:
    client_factory = Mock()
    monkeypatch.setattr(s3.boto3, "client", client_factory)

    s3.delete_objects([])

    client_factory.assert_not_called()


@pytest.mark.parametrize(
    ("url", "base", "expected"),
    [
        ("https://images.example.com/abc.jpg", "https://images.example.com", "abc.jpg"),
        ("https://images.example.com/memorials/abc.jpg", "https://images.example.com", "memorials/abc.jpg"),
        ("https://images.example.com/abc.jpg?v=2", "https://images.example.com", "abc.jpg"),
        ("https://cdn.example.com/pets/abc.jpg", "https://cdn.example.com/pets/", "abc.jpg"),
        ("https://pub-123.r2.dev/abc%20def.png", None, "abc def.png"),
        ("https://images.example.com/", "https://images.example.com", None),
        ("not a url", None, None),
        ("http://[::1", None, None),
        ("", "https://images.example.com", None),
    ],
)
def test_object_key_from_url(url: str, base: str | None, expected: str | None) -> None:
    assert s3.object_key_from_url(url, public_base_url=base) == expected


@pytest.mark.parametrize(
    "url",
    [
        "https://attacker.example.net/victim-uuid.jpg",
        "https://images.example.com.evil.net/victim-uuid.jpg",
        "http://images.example.com/victim-uuid.jpg",
    ],
)
def test_object_key_from_url_rejects_hosts_outside_public_base(url: str) -> None:
    assert s3.object_key_from_url(url, public_base_url="https://images.example.com") is None
