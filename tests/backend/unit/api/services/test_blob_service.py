from __future__ import annotations

import io

from unittest.mock import MagicMock, patch

import pytest

from api.middleware.exception_handlers import ExternalServiceError
from api.services.blob_service import BlobService, make_blob_name, safe_filename
from models.error_models import ErrorCode


@pytest.fixture
def settings() -> MagicMock:
    s = MagicMock()
    s.s3_bucket = "uploads"
    s.s3_region = "us-east-1"
    s.s3_endpoint_url = None
    s.aws_access_key_id = None
    s.aws_secret_access_key = None
    s.public_blob_base_url = "https://cdn.example.com/"
    return s


@pytest.fixture
def s3() -> MagicMock:
    return MagicMock()


@pytest.fixture
def service(settings: MagicMock, s3: MagicMock) -> BlobService:
    blob_service = BlobService(settings)
    blob_service._client = s3
    return blob_service


class TestNaming:
    def test_safe_filename_strips_paths_and_odd_characters(self) -> None:
        assert safe_filename("../../etc/pass wd?.txt") == "pass_wd_.txt"

    def test_safe_filename_windows_path(self) -> None:
        assert safe_filename("C:\\Users\\me\\report.pdf") == "report.pdf"

    def test_safe_filename_never_empty(self) -> None:
        assert safe_filename("...") == "file"

    def test_blob_names_are_unique_per_upload(self) -> None:
        first = make_blob_name("c1", "a.txt")
        second = make_blob_name("c1", "a.txt")

        assert first != second
        assert first.startswith("c1/") and first.endswith("-a.txt")


class TestBlobService:
    @pytest.mark.asyncio
    async def test_upload_puts_object_and_returns_public_url(self, service: BlobService, s3: MagicMock) -> None:
        stored = await service.upload("c1/x-a.txt", b"hello", "text/plain")

        s3.put_object.assert_called_once_with(
            Bucket="uploads", Key="c1/x-a.txt", Body=b"hello", ContentType="text/plain"
        )
        assert stored.url == "https://cdn.example.com/c1/x-a.txt"
        assert stored.blob_name == "c1/x-a.txt"
        assert stored.content_type == "text/plain"

    @pytest.mark.asyncio
    async def test_download_reads_body(self, service: BlobService, s3: MagicMock) -> None:
        s3.get_object.return_value = {"Body": io.BytesIO(b"data")}

        assert await service.download("c1/x-a.txt") == b"data"

    @pytest.mark.asyncio
    async def test_presigned_url_without_public_base(
        self, service: BlobService, settings: MagicMock, s3: MagicMock
    ) -> None:
        settings.public_blob_base_url = None
        s3.generate_presigned_url.return_value = "https://signed.example.com/x"

        url = await service.url_for("c1/x-a.txt", expires_in=60)

        assert url == "https://signed.example.com/x"
        s3.generate_presigned_url.assert_called_once_with(
            "get_object", Params={"Bucket": "uploads", "Key": "c1/x-a.txt"}, ExpiresIn=60
        )

    @pytest.mark.asyncio
    async def test_storage_failure_is_wrapped(self, service: BlobService, s3: MagicMock) -> None:
        s3.put_object.side_effect = OSError("connection refused")

        with pytest.raises(ExternalServiceError) as exc_info:
            await service.upload("c1/x-a.txt", b"hello", "text/plain")

        assert exc_info.value.code == ErrorCode.BLOB_STORAGE_ERROR
        assert isinstance(exc_info.value.cause, OSError)

    def test_client_is_created_lazily_with_configured_endpoint(self, settings: MagicMock) -> None:
        settings.s3_endpoint_url = "http://localhost:9000"
        settings.aws_access_key_id = "key"
        settings.aws_secret_access_key = "secret"
        blob_service = BlobService(settings)

        with patch("boto3.client") as client_factory:
            blob_service._get_client()
            blob_service._get_client()

        client_factory.assert_called_once_with(
            service_name="s3",
            region_name="us-east-1",
            aws_access_key_id="key",
            aws_secret_access_key="secret",
            endpoint_url="http://localhost:9000",
        )
