"""
Tests for the S3 object store service
"""
import io
import re
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from voca_ingestion.exceptions import S3Exception
from voca_ingestion.services.s3_service import S3Service


def _client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetObject")


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def service(s3_client):
    return S3Service(bucket_name="voca-test", client=s3_client)


def test_get_object_reads_body(service, s3_client):
    s3_client.get_object.return_value = {"Body": io.BytesIO(b"hello")}

    assert service.get_object("resume/u1/x.txt") == b"hello"
    s3_client.get_object.assert_called_once_with(Bucket="voca-test", Key="resume/u1/x.txt")


@pytest.mark.parametrize("code", ["NoSuchKey", "AccessDenied", "404"])
def test_missing_or_forbidden_objects_are_permanent(service, s3_client, code):
    s3_client.get_object.side_effect = _client_error(code)

    with pytest.raises(S3Exception) as exc_info:
        service.get_object("resume/u1/x.txt")
    assert not exc_info.value.retryable


@pytest.mark.parametrize("error", [
    _client_error("SlowDown"),
    _client_error("InternalError"),
    EndpointConnectionError(endpoint_url="http://minio:9000"),
])
def test_service_errors_are_transient(service, s3_client, error):
    s3_client.get_object.side_effect = error

    with pytest.raises(S3Exception) as exc_info:
        service.get_object("resume/u1/x.txt")
    assert exc_info.value.retryable


def test_put_object_sets_content_type(service, s3_client):
    assert service.put_object("audio/u1/a.wav", b"RIFF", content_type="audio/wav") == "audio/u1/a.wav"
    s3_client.put_object.assert_called_once_with(
        Bucket="voca-test", Key="audio/u1/a.wav", Body=b"RIFF", ContentType="audio/wav"
    )


def test_verify_bucket_missing_is_permanent(service, s3_client):
    s3_client.head_bucket.side_effect = _client_error("NoSuchBucket")

    with pytest.raises(S3Exception) as exc_info:
        service.verify_bucket()
    assert not exc_info.value.retryable


def test_build_object_key_layout():
    key = S3Service.build_object_key("document", "owner-7", "../My Report (final).pdf")

    assert re.fullmatch(r"document/owner-7/[0-9a-f]{32}_My_Report_final_\.pdf", key)


def test_build_object_key_is_unique():
    first = S3Service.build_object_key("resume", "u1", "cv.pdf")
    second = S3Service.build_object_key("resume", "u1", "cv.pdf")
    assert first != second
