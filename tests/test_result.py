"""Tests for the result handler and the archive buffer."""
from types import SimpleNamespace

import pytest

from app.processing.result import ARCHIVE_FILENAME, handle_result, save_archive
from app.processing.transfer import TransferResult
from app.utils.temp import archive_buffer


class TestArchiveBuffer:
    """Test suite for archive_buffer."""

    def test_holds_payload_and_closes(self):
        with archive_buffer(b"PK\x03\x04") as buf:
            assert buf.read() == b"PK\x03\x04"

        assert buf.closed

    def test_closes_when_body_raises(self):
        with pytest.raises(RuntimeError):
            with archive_buffer(b"data") as buf:
                raise RuntimeError("interrupted")

        assert buf.closed


class TestSaveArchive:
    """Test suite for save_archive."""

    @pytest.mark.asyncio
    async def test_saves_once_with_fixed_name(self, saver):
        await save_archive(b"PK\x01\x02", saver)

        assert saver.saved == [(ARCHIVE_FILENAME, b"PK\x01\x02")]
        assert ARCHIVE_FILENAME == "renomeados.zip"

    @pytest.mark.asyncio
    async def test_releases_buffer_after_save(self, saver):
        await save_archive(b"abc", saver)

        assert saver.buffers[0].closed

    @pytest.mark.asyncio
    async def test_releases_buffer_when_saver_fails(self):
        seen = []

        async def failing_save(buffer, filename):
            seen.append(buffer)
            raise OSError("disk full")

        failing = SimpleNamespace(save=failing_save)

        with pytest.raises(OSError):
            await save_archive(b"abc", failing)

        assert seen[0].closed


class TestHandleResult:
    """Test suite for handle_result."""

    @pytest.mark.asyncio
    async def test_success_saves_payload(self, saver):
        await handle_result(TransferResult.succeeded(b"zip"), saver)

        assert saver.saved == [(ARCHIVE_FILENAME, b"zip")]

    @pytest.mark.asyncio
    async def test_failure_saves_nothing(self, saver):
        await handle_result(TransferResult.failed("invalid xml"), saver)

        assert saver.saved == []
