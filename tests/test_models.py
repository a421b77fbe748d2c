"""Tests for spdrive models."""
import pytest
from spdrive.models import (
    CHUNK_ALIGNMENT,
    DEFAULT_CHUNK_SIZE,
    Chunk,
    DirectoryAttributes,
    FileAttributes,
    OutcomeKind,
    UploadConfig,
    UploadOutcome,
    UploadProgress,
    plan_chunks,
)


class TestUploadConfig:
    def test_defaults(self):
        config = UploadConfig()
        assert config.chunk_size == DEFAULT_CHUNK_SIZE == 3_276_800
        assert config.chunk_size % CHUNK_ALIGNMENT == 0
        assert config.mime_type == "text/plain"
        assert config.direct_write_limit == 4 * 1024 * 1024
        assert config.max_server_retries == 4

    def test_with_overrides(self):
        config = UploadConfig().with_overrides({"chunk_size": "655360", "mimeType": "application/pdf"})
        assert config.chunk_size == 655_360
        assert config.mime_type == "application/pdf"

    def test_with_overrides_ignores_unknown(self):
        config = UploadConfig()
        assert config.with_overrides({"visibility": "public"}) is config
        assert config.with_overrides(None) is config

    def test_immutable(self):
        config = UploadConfig()
        with pytest.raises(Exception):
            config.chunk_size = 1


class TestChunk:
    def test_last_chunk(self):
        chunk = Chunk(index=3, first_byte=9_830_400, payload=b"\0" * 169_600)
        assert chunk.last_byte == 9_999_999
        assert chunk.byte_range == (9_830_400, 9_999_999)
        assert chunk.is_last(10_000_000) is True
        assert chunk.content_range(10_000_000) == "bytes 9830400-9999999/10000000"

    def test_middle_chunk(self):
        chunk = Chunk(index=0, first_byte=0, payload=b"ab")
        assert chunk.size == 2
        assert chunk.is_last(10) is False


class TestPlanChunks:
    def test_ten_megabytes(self):
        assert list(plan_chunks(10_000_000, 3_276_800)) == [
            (0, 3_276_799),
            (3_276_800, 6_553_599),
            (6_553_600, 9_830_399),
            (9_830_400, 9_999_999),
        ]

    def test_exact_multiple(self):
        assert list(plan_chunks(10, 5)) == [(0, 4), (5, 9)]

    def test_empty(self):
        assert list(plan_chunks(0, 5)) == []

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            list(plan_chunks(10, 0))


class TestUploadOutcome:
    def test_retry_kinds(self):
        assert UploadOutcome.rate_limited(1.0).is_retry is True
        assert UploadOutcome.server_error(503, attempt=2).is_retry is True
        assert UploadOutcome.proceed().is_retry is False
        assert UploadOutcome.completed(201).is_retry is False

    def test_fixed_status_codes(self):
        assert UploadOutcome.session_expired().status_code == 404
        assert UploadOutcome.name_conflict().kind is OutcomeKind.NAME_CONFLICT
        assert UploadOutcome.name_conflict().status_code == 409


class TestAttributes:
    def test_progress_percent(self):
        assert UploadProgress(5, 20).percent == 25.0
        assert UploadProgress(0, 0).percent == 100.0

    def test_file_and_directory(self):
        assert FileAttributes("/a.txt").is_file is True
        assert DirectoryAttributes("/docs").is_dir is True

    def test_extra_metadata_ignored_in_equality(self):
        assert FileAttributes("/a.txt", extra_metadata={"id": "1"}) == FileAttributes("/a.txt")
