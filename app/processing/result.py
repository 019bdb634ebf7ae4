import logging
from typing import BinaryIO, Protocol

from app.processing.transfer import TransferResult
from app.utils.temp import archive_buffer

logger = logging.getLogger(__name__)

ARCHIVE_FILENAME = "renomeados.zip"


class FileSaver(Protocol):
    async def save(self, buffer: BinaryIO, filename: str) -> None:
        ...


async def save_archive(payload: bytes, saver: FileSaver, filename: str = ARCHIVE_FILENAME) -> None:
    """
    Сохраняет архив через saver. Буфер освобождается даже если saver упал.
    """
    with archive_buffer(payload) as buf:
        await saver.save(buf, filename)
    logger.info("Archive '%s' saved (%d bytes)", filename, len(payload))


async def handle_result(result: TransferResult, saver: FileSaver) -> None:
    # При ошибке файл не сохраняется, сообщение хранит сессия
    if result.ok:
        await save_archive(result.payload, saver)
