"""Classification of upstream failures into retry reasons."""

import errno
import socket
from enum import Enum
from typing import Optional


class ErrorClass(str, Enum):
    RESET = 'reset'
    DNS = 'dns'
    TIMEOUT = 'timeout'
    UNKNOWN = 'unknown'


REASONS = {
    ErrorClass.RESET: 'Connection reset by TikTok server',
    ErrorClass.DNS: 'Network connectivity issue',
    ErrorClass.TIMEOUT: 'Connection timeout',
    ErrorClass.UNKNOWN: 'Unknown connection error',
}

_CODES = {
    'ECONNRESET': ErrorClass.RESET,
    'ENOTFOUND': ErrorClass.DNS,
    'EAI_AGAIN': ErrorClass.DNS,
    'ETIMEDOUT': ErrorClass.TIMEOUT,
    errno.ECONNRESET: ErrorClass.RESET,
    errno.ETIMEDOUT: ErrorClass.TIMEOUT,
}


class UpstreamError(Exception):
    """Error reported by the live-stream provider, optionally with a socket-style code."""

    def __init__(self, info: str, code: Optional[str] = None) -> None:
        super().__init__(info)
        self.info = info
        self.code = code

    def __str__(self) -> str:
        return f"{self.info} ({self.code})" if self.code else self.info


def _classify_one(exc: BaseException) -> ErrorClass:
    if isinstance(exc, ConnectionResetError):
        return ErrorClass.RESET
    if isinstance(exc, socket.gaierror):
        return ErrorClass.DNS
    if isinstance(exc, TimeoutError):
        return ErrorClass.TIMEOUT
    for attr in ('code', 'errno'):
        code = getattr(exc, attr, None)
        if code in _CODES:
            return _CODES[code]
    return ErrorClass.UNKNOWN


def classify_error(exc: Optional[BaseException]) -> ErrorClass:
    """Walk the exception chain and return the first recognised class."""
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        found = _classify_one(exc)
        if found is not ErrorClass.UNKNOWN:
            return found
        exc = exc.__cause__ or exc.__context__
    return ErrorClass.UNKNOWN


def describe(exc: BaseException) -> str:
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__
