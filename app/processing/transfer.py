import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from app.processing.errors import TransferFailed, TransportError, UploadError
from app.utils.temp import FileBatch

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "files"
UPLOAD_FALLBACK_MESSAGE = "Erro no upload"
UNKNOWN_ERROR_MESSAGE = "Erro desconhecido"


@dataclass(frozen=True)
class TransferResult:
    payload: Optional[bytes] = None
    error: Optional[str] = None

    def __post_init__(self):
        if (self.payload is None) == (self.error is None):
            raise ValueError("TransferResult needs exactly one of payload or error")

    @classmethod
    def succeeded(cls, payload: bytes) -> "TransferResult":
        return cls(payload=payload)

    @classmethod
    def failed(cls, message: str) -> "TransferResult":
        return cls(error=message)

    @property
    def ok(self) -> bool:
        return self.error is None


def build_form(batch: FileBatch) -> aiohttp.FormData:
    """
    Каждый файл добавляется под общим именем поля, в порядке выбора.
    """
    form = aiohttp.FormData()
    for f in batch.files:
        form.add_field(
            UPLOAD_FIELD,
            f.data,
            filename=f.name,
            content_type=f.mime or "application/octet-stream",
        )
    return form


async def post_batch(batch: FileBatch, url: str, session: aiohttp.ClientSession) -> bytes:
    """
    Одна попытка загрузки, без повторов. Таймаут не задаётся явно,
    действуют значения aiohttp по умолчанию.

    Возвращает тело ответа как есть: архив не проверяется.
    """
    try:
        async with session.post(url, data=build_form(batch)) as resp:
            if not 200 <= resp.status < 300:
                text = await resp.text(errors="replace")
                raise TransferFailed(text or UPLOAD_FALLBACK_MESSAGE, status=resp.status)
            return await resp.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise TransportError(str(e) or UNKNOWN_ERROR_MESSAGE) from e


async def execute_transfer(
    batch: FileBatch,
    url: str,
    session: Optional[aiohttp.ClientSession] = None,
) -> TransferResult:
    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession()
    try:
        payload = await post_batch(batch, url, session)
    except UploadError as e:
        logger.warning("Upload of %d file(s) failed: %s", batch.count(), e.message)
        return TransferResult.failed(e.message)
    finally:
        if owns_session:
            await session.close()

    logger.info("Upload of %d file(s) returned %d bytes", batch.count(), len(payload))
    return TransferResult.succeeded(payload)
