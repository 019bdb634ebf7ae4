import io
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Tuple


@dataclass(frozen=True)
class InMemoryFile:
    name: str
    mime: str
    data: bytes


@dataclass(frozen=True)
class FileBatch:
    files: Tuple[InMemoryFile, ...] = ()

    def with_file(self, f: InMemoryFile) -> "FileBatch":
        # Порядок файлов сохраняется при отправке
        return FileBatch(self.files + (f,))

    def count(self) -> int:
        return len(self.files)


@contextmanager
def archive_buffer(data: bytes) -> Iterator[io.BytesIO]:
    """
    Держит бинарный ответ в буфере в памяти на время отправки.
    Буфер закрывается при любом выходе из блока, в том числе по исключению.
    """
    buf = io.BytesIO(data)
    try:
        yield buf
    finally:
        # Явная очистка буфера
        buf.close()
