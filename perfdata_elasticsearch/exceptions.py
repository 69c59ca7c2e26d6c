from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    # the transport may try another host
    RETRYABLE = 'retryable'
    # the current fetch (or setup) cannot go on
    FATAL = 'fatal'
    # recorded, whatever was accumulated is still returned
    PARTIAL = 'partial'


class PerfdataError(Exception):
    code: str = 'error'
    kind: ErrorKind = ErrorKind.FATAL


class ConfigurationError(PerfdataError):
    code: str = 'configuration'


class ValidationError(PerfdataError):
    code: str = 'validation'
    kind: ErrorKind = ErrorKind.PARTIAL


class TransportError(PerfdataError):
    code: str = 'network'


class NetworkError(TransportError):
    """A single attempt against one host failed below HTTP (refused, timeout, dns, tls)"""
    kind: ErrorKind = ErrorKind.RETRYABLE

    def __init__(self, host_url: str, cause: Optional[BaseException] = None):
        self.host_url: str = host_url
        self.cause: Optional[BaseException] = cause
        super().__init__(f'{host_url} unreachable: {cause}')


class NoHostReachable(TransportError):
    def __init__(self, message: str = 'No host in pool reachable'):
        super().__init__(message)


class HTTPError(PerfdataError):
    code: str = 'http'

    def __init__(self, status: int, reason: str = ''):
        self.status: int = status
        self.reason: str = reason
        super().__init__(f'HTTP error: {status} - {reason}' if reason else f'HTTP error: {status}')


class DecodeError(PerfdataError):
    code: str = 'decode'
    kind: ErrorKind = ErrorKind.PARTIAL
