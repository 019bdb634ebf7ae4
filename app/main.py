import asyncio
import logging
import os
from typing import BinaryIO, Optional

import aiohttp
from aiogram import Bot, Dispatcher, F, Router
from aiogram.filters import Command
from aiogram.types import Message, BufferedInputFile, Document
from dotenv import load_dotenv

from app.processing.result import ARCHIVE_FILENAME
from app.processing.session import Phase, UploadSession
from app.processing.validator import MAX_FILES
from app.utils.temp import InMemoryFile

load_dotenv()

BOT_TOKEN = os.getenv("BOT_TOKEN")
UPLOAD_URL = os.getenv("UPLOAD_URL", "https://xml-renamer-backend.onrender.com/upload")
ACCEPT_HINT = os.getenv("ACCEPT_HINT", ".xml")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logger = logging.getLogger(__name__)

dp = Dispatcher()
router = Router()
dp.include_router(router)

# В памяти храним по user_id: текущий выбор файлов и состояние отправки
sessions = {}

WAIT_TEXT = "Aguarde: o envio anterior ainda está em andamento."
SUBMITTING_TEXT = "Enviando..."

HELP_TEXT = (
    "Renomear XMLs\n\n"
    "Como usar:\n"
    "1) Envie os arquivos {accept} como documentos (no máximo {max_files} por vez).\n"
    "2) Envie /enviar para mandar os arquivos ao serviço de renomeação.\n"
    "3) Você receberá o arquivo {archive} com os arquivos renomeados.\n\n"
    "/limpar descarta a seleção atual.\n"
    "Os arquivos não são salvos: ficam na memória até o envio."
).format(accept=ACCEPT_HINT, max_files=MAX_FILES, archive=ARCHIVE_FILENAME)


def describe_selection(count: int) -> str:
    plural = "" if count == 1 else "s"
    return f"{count} arquivo{plural} selecionado{plural}"


def _user_id(message: Message) -> int:
    return message.from_user.id if message.from_user else message.chat.id


def _get_session(user_id: int, http_session: Optional[aiohttp.ClientSession]) -> UploadSession:
    session = sessions.get(user_id)
    if session is None:
        session = UploadSession(UPLOAD_URL, http_session=http_session)
        sessions[user_id] = session
    return session


class ChatArchiveSaver:
    """
    Отправляет архив обратно в чат документом.
    """

    def __init__(self, message: Message):
        self.message = message

    async def save(self, buffer: BinaryIO, filename: str) -> None:
        await self.message.answer_document(BufferedInputFile(buffer.read(), filename=filename))


@router.message(Command("start"))
async def cmd_start(message: Message):
    await message.answer(
        "Olá! Eu envio seus arquivos para o serviço de renomeação e devolvo um arquivo compactado.\n\n"
        + HELP_TEXT
    )


@router.message(Command("help"))
async def cmd_help(message: Message):
    await message.answer(HELP_TEXT)


@router.message(F.document)
async def handle_document(message: Message, http_session: Optional[aiohttp.ClientSession] = None):
    doc: Document = message.document
    session = _get_session(_user_id(message), http_session)
    if session.busy:
        await message.answer(WAIT_TEXT)
        return

    # Скачиваем файл в память; расширение не проверяем, ACCEPT_HINT только подсказка
    file = await message.bot.get_file(doc.file_id)
    file_bytes = await message.bot.download_file(file.file_path)
    data = file_bytes.read()

    # Пока файл качался, могла начаться или закончиться отправка
    session = _get_session(_user_id(message), http_session)
    if session.busy:
        await message.answer(WAIT_TEXT)
        return

    state = session.add_file(
        InMemoryFile(name=doc.file_name or "unknown", mime=doc.mime_type or "", data=data)
    )
    if state.error:
        await message.answer(f"{state.error}\nSeleção limpa: {describe_selection(state.batch.count())}.")
        return

    await message.answer(f"{describe_selection(state.batch.count())}. Envie /enviar para processar.")


@router.message(Command("limpar"))
async def cmd_clear(message: Message):
    session = sessions.get(_user_id(message))
    if session is not None and session.busy:
        await message.answer(WAIT_TEXT)
        return
    if session is not None:
        session.clear()
    await message.answer(f"Seleção limpa: {describe_selection(0)}.")


@router.message(Command("enviar", "process"))
async def cmd_submit(message: Message, http_session: Optional[aiohttp.ClientSession] = None):
    user_id = _user_id(message)
    session = _get_session(user_id, http_session)
    if session.busy:
        await message.answer(WAIT_TEXT)
        return

    if session.state.batch.count() > 0:
        await message.answer(SUBMITTING_TEXT)

    state = await session.submit(ChatArchiveSaver(message))
    if state.error:
        await message.answer(state.error)
        return

    # Архив уже отправлен, сессию можно забыть
    if state.phase is Phase.IDLE:
        sessions.pop(user_id, None)


async def main():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    bot = Bot(token=BOT_TOKEN)
    async with aiohttp.ClientSession() as http_session:
        logger.info("Uploading to %s", UPLOAD_URL)
        await dp.start_polling(bot, http_session=http_session)


if __name__ == "__main__":
    asyncio.run(main())
