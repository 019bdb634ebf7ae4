from typing import Optional


class UploadError(Exception):
    """
    Базовая ошибка конвейера загрузки. message показывается пользователю как есть.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SelectionTooLarge(UploadError):
    pass


class EmptySelectionSubmitted(UploadError):
    pass


class TransferFailed(UploadError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransportError(UploadError):
    pass
