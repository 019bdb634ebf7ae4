from typing import Iterable

from app.processing.errors import EmptySelectionSubmitted, SelectionTooLarge
from app.utils.temp import FileBatch, InMemoryFile

MAX_FILES = 500

TOO_MANY_FILES_MESSAGE = f"Você pode enviar no máximo {MAX_FILES} arquivos por vez."
EMPTY_SELECTION_MESSAGE = "Selecione ao menos 1 arquivo."


def validate_selection(files: Iterable[InMemoryFile]) -> FileBatch:
    """
    Принимает выбор пользователя целиком или отклоняет его целиком.
    Содержимое, тип и расширение файлов не проверяются: это дело сервиса.
    """
    selected = tuple(files)
    if len(selected) > MAX_FILES:
        raise SelectionTooLarge(TOO_MANY_FILES_MESSAGE)
    return FileBatch(selected)


def ensure_submittable(batch: FileBatch) -> None:
    # Пустой выбор допустим, ошибка только при отправке
    if batch.count() == 0:
        raise EmptySelectionSubmitted(EMPTY_SELECTION_MESSAGE)
