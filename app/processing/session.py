import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional

import aiohttp

from app.processing.errors import EmptySelectionSubmitted, SelectionTooLarge
from app.processing.result import FileSaver, handle_result
from app.processing.transfer import UNKNOWN_ERROR_MESSAGE, TransferResult, execute_transfer
from app.processing.validator import ensure_submittable, validate_selection
from app.utils.temp import FileBatch, InMemoryFile

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    SELECTED = "selected"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionState:
    phase: Phase = Phase.IDLE
    batch: FileBatch = field(default_factory=FileBatch)
    error: Optional[str] = None

    @property
    def submit_enabled(self) -> bool:
        return self.phase is not Phase.SUBMITTING


# ---- Переходы состояния: (состояние, событие) -> новое состояние ----

def on_select(state: SessionState, files: Iterable[InMemoryFile]) -> SessionState:
    if state.phase is Phase.SUBMITTING:
        return state
    try:
        batch = validate_selection(files)
    except SelectionTooLarge as e:
        # Выбор сбрасывается целиком, частичного выбора не остаётся
        return SessionState(Phase.SELECTED, FileBatch(), e.message)
    return SessionState(Phase.SELECTED, batch, None)


def on_submit(state: SessionState) -> SessionState:
    if state.phase is Phase.SUBMITTING:
        return state
    try:
        ensure_submittable(state.batch)
    except EmptySelectionSubmitted as e:
        return replace(state, phase=Phase.SELECTED, error=e.message)
    # Пакет уходит в отправку и в состоянии больше не хранится
    return SessionState(Phase.SUBMITTING, FileBatch(), None)


def on_transfer_result(state: SessionState, result: TransferResult, batch: FileBatch) -> SessionState:
    if result.ok:
        return SessionState(Phase.SUCCEEDED, FileBatch(), None)
    # Пакет остаётся выбранным, пользователь может отправить его ещё раз
    return SessionState(Phase.FAILED, batch, result.error)


def on_archive_saved(state: SessionState) -> SessionState:
    if state.phase is not Phase.SUCCEEDED:
        return state
    return SessionState(Phase.IDLE, FileBatch(), None)


class UploadSession:
    """
    Один пользовательский цикл: выбор файлов -> отправка -> архив или ошибка.

    Одновременно выполняется не больше одной отправки: пока она идёт,
    submit и новый выбор игнорируются.
    """

    def __init__(self, upload_url: str, http_session: Optional[aiohttp.ClientSession] = None):
        self.upload_url = upload_url
        self.http_session = http_session
        self.state = SessionState()

    @property
    def busy(self) -> bool:
        return not self.state.submit_enabled

    def select(self, files: Iterable[InMemoryFile]) -> SessionState:
        self.state = on_select(self.state, files)
        return self.state

    def add_file(self, f: InMemoryFile) -> SessionState:
        return self.select(self.state.batch.with_file(f).files)

    def clear(self) -> SessionState:
        return self.select(())

    async def submit(self, saver: FileSaver) -> SessionState:
        if self.busy:
            logger.debug("Submit ignored: transfer already in flight")
            return self.state

        batch = self.state.batch
        self.state = on_submit(self.state)
        if self.state.phase is not Phase.SUBMITTING:
            return self.state

        logger.info("Submitting %d file(s) to %s", batch.count(), self.upload_url)
        try:
            result = await execute_transfer(batch, self.upload_url, self.http_session)
            await handle_result(result, saver)
            self.state = on_archive_saved(on_transfer_result(self.state, result, batch))
        except Exception as e:
            logger.exception("Upload pipeline failed")
            self.state = SessionState(Phase.FAILED, batch, str(e) or UNKNOWN_ERROR_MESSAGE)
        finally:
            if self.state.phase is Phase.SUBMITTING:
                self.state = SessionState(Phase.FAILED, batch, UNKNOWN_ERROR_MESSAGE)
        return self.state
