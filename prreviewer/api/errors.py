from enum import Enum


class ErrorCode(str, Enum):
    TEAM_EXISTS = 'TEAM_EXISTS'
    PR_EXISTS = 'PR_EXISTS'
    PR_MERGED = 'PR_MERGED'
    NOT_ASSIGNED = 'NOT_ASSIGNED'
    NO_CANDIDATE = 'NO_CANDIDATE'
    NOT_FOUND = 'NOT_FOUND'


class ServiceError(Exception):
    """
    Ожидаемый отказ доменной операции.

    Вызывающий код различает причины по ``code``, а не по типу исключения.
    """

    def __init__(self, code: ErrorCode, message: str = ''):
        self.code = code
        self.message = message or code.value
        super().__init__(self.message)

    def __str__(self):
        return f"{self.code.value}: {self.message}"
