import io
from datetime import datetime, timezone
from urllib.parse import parse_qs, unquote, urlparse

import pytest
from botocore.exceptions import EndpointConnectionError
from botocore.stub import ANY, Stubber

from providers.errors import ObjectNotFoundError, StorageBackendError
from providers.impl.storage_s3 import S3StorageProvider, _wrap

BUCKET = "gateway-test-bucket"
T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T1 = datetime(2024, 1, 2, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fake_aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.delenv("AWS_SESSION_TOKEN", raising=False)
    monkeypatch.delenv("AWS_PROFILE", raising=False)


@pytest.fixture
def provider():
    return S3StorageProvider(bucket=BUCKET, region="eu-west-3")


def _version(key, vid, latest, modified=T0, size=5):
    return {"Key": key, "VersionId": vid, "IsLatest": latest, "LastModified": modified, "Size": size}


def _marker(key, vid, latest, modified=T1):
    return {"Key": key, "VersionId": vid, "IsLatest": latest, "LastModified": modified}


def test_bucket_is_required():
    with pytest.raises(RuntimeError):
        S3StorageProvider(bucket="  ")


def test_put_object_applies_kms_encryption(provider):
    with Stubber(provider.s3) as stub:
        stub.add_response(
            "put_object",
            {},
            {"Bucket": BUCKET, "Key": "rapport final é.pdf", "Body": ANY, "ServerSideEncryption": "aws:kms"},
        )
        provider.put_object("rapport final é.pdf", io.BytesIO(b"hello"))
        stub.assert_no_pending_responses()


def test_put_object_sends_kms_key_id_when_configured():
    provider = S3StorageProvider(bucket=BUCKET, region="eu-west-3", sse_kms_key_id="alias/gateway")
    with Stubber(provider.s3) as stub:
        stub.add_response(
            "put_object",
            {},
            {
                "Bucket": BUCKET,
                "Key": "a.txt",
                "Body": ANY,
                "ServerSideEncryption": "aws:kms",
                "SSEKMSKeyId": "alias/gateway",
            },
        )
        provider.put_object("a.txt", io.BytesIO(b"hello"))
        stub.assert_no_pending_responses()


def test_put_object_without_encryption():
    provider = S3StorageProvider(bucket=BUCKET, region="eu-west-3", sse="")
    with Stubber(provider.s3) as stub:
        stub.add_response("put_object", {}, {"Bucket": BUCKET, "Key": "a.txt", "Body": ANY})
        provider.put_object("a.txt", io.BytesIO(b"hello"))
        stub.assert_no_pending_responses()


def test_list_versions_follows_pagination_and_keeps_markers_last(provider):
    with Stubber(provider.s3) as stub:
        stub.add_response(
            "list_object_versions",
            {
                "IsTruncated": True,
                "NextKeyMarker": "a.txt",
                "NextVersionIdMarker": "v1",
                "Versions": [_version("a.txt", "v1", False)],
                "DeleteMarkers": [_marker("a.txt", "m1", True)],
            },
            {"Bucket": BUCKET},
        )
        stub.add_response(
            "list_object_versions",
            {
                "IsTruncated": False,
                "Versions": [_version("b.txt", "v2", True, size=9)],
            },
            {"Bucket": BUCKET, "KeyMarker": "a.txt", "VersionIdMarker": "v1"},
        )

        listing = provider.list_versions()
        stub.assert_no_pending_responses()

    merged = listing.merged()
    assert [v.version_id for v in merged] == ["v1", "v2", "m1"]
    assert [v.is_delete_marker for v in merged] == [False, False, True]
    assert merged[1].size == 9
    assert merged[2].size == 0
    assert merged[2].is_latest is True
    assert merged[0].last_modified == T0


def test_list_versions_with_prefix(provider):
    with Stubber(provider.s3) as stub:
        stub.add_response("list_object_versions", {"IsTruncated": False}, {"Bucket": BUCKET, "Prefix": "a.txt"})
        listing = provider.list_versions(prefix="a.txt")
        stub.assert_no_pending_responses()

    assert listing.merged() == []


def test_head_object_returns_storage_class_and_restore(provider):
    with Stubber(provider.s3) as stub:
        stub.add_response(
            "head_object",
            {"StorageClass": "GLACIER", "Restore": 'ongoing-request="true"'},
            {"Bucket": BUCKET, "Key": "a.txt"},
        )
        head = provider.head_object("a.txt")

    assert head.storage_class == "GLACIER"
    assert head.restore == 'ongoing-request="true"'


def test_head_object_standard_has_no_storage_class(provider):
    with Stubber(provider.s3) as stub:
        stub.add_response("head_object", {"ContentLength": 5}, {"Bucket": BUCKET, "Key": "a.txt"})
        head = provider.head_object("a.txt")

    assert head.storage_class is None
    assert head.restore is None


def test_head_object_404_raises_not_found(provider):
    with Stubber(provider.s3) as stub:
        stub.add_client_error(
            "head_object",
            service_error_code="404",
            service_message="Not Found",
            http_status_code=404,
            expected_params={"Bucket": BUCKET, "Key": "missing.txt"},
        )
        with pytest.raises(ObjectNotFoundError) as info:
            provider.head_object("missing.txt")

    assert info.value.operation == "head_object"
    assert info.value.key == "missing.txt"


def test_restore_object_request_shape(provider):
    with Stubber(provider.s3) as stub:
        stub.add_response(
            "restore_object",
            {},
            {
                "Bucket": BUCKET,
                "Key": "archive.tar",
                "RestoreRequest": {"Days": 1, "GlacierJobParameters": {"Tier": "Standard"}},
            },
        )
        provider.restore_object("archive.tar", days=1, tier="Standard")
        stub.assert_no_pending_responses()


def test_restore_object_error_keeps_backend_code(provider):
    with Stubber(provider.s3) as stub:
        stub.add_client_error(
            "restore_object",
            service_error_code="RestoreAlreadyInProgress",
            service_message="Object restore is already in progress",
            http_status_code=409,
        )
        with pytest.raises(StorageBackendError) as info:
            provider.restore_object("archive.tar", days=1, tier="Standard")

    assert info.value.code == "RestoreAlreadyInProgress"
    assert not isinstance(info.value, ObjectNotFoundError)


def test_delete_object_without_version_adds_marker(provider):
    with Stubber(provider.s3) as stub:
        stub.add_response("delete_object", {"DeleteMarker": True}, {"Bucket": BUCKET, "Key": "a.txt"})
        provider.delete_object("a.txt")
        stub.assert_no_pending_responses()


def test_delete_object_with_version(provider):
    with Stubber(provider.s3) as stub:
        stub.add_response(
            "delete_object",
            {"VersionId": "v1"},
            {"Bucket": BUCKET, "Key": "a.txt", "VersionId": "v1"},
        )
        provider.delete_object("a.txt", version_id="v1")
        stub.assert_no_pending_responses()


def test_delete_object_access_denied(provider):
    with Stubber(provider.s3) as stub:
        stub.add_client_error("delete_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(StorageBackendError) as info:
            provider.delete_object("a.txt", version_id="v1")

    assert info.value.code == "AccessDenied"


def test_presigned_url_expires_in_300_seconds(provider):
    url = provider.presign_get_url("a b.txt", 300)

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert query["X-Amz-Expires"] == ["300"]
    assert query["X-Amz-Algorithm"] == ["AWS4-HMAC-SHA256"]
    assert unquote(parsed.path).endswith("a b.txt")


def test_ping_uses_head_bucket(provider):
    with Stubber(provider.s3) as stub:
        stub.add_response("head_bucket", {}, {"Bucket": BUCKET})
        provider.ping()
        stub.assert_no_pending_responses()


def test_wrap_transport_errors():
    err = _wrap(EndpointConnectionError(endpoint_url="https://s3.eu-west-3.amazonaws.com"), "list_versions", None)
    assert isinstance(err, StorageBackendError)
    assert err.code is None
    assert "list_versions" in str(err)
