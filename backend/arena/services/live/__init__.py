"""Upstream live-stream connections: the resilience wrapper and its collaborators."""

from .connection import ConnectionWrapper, LiveState, ReconnectPolicy
from .errors import ErrorClass, UpstreamError, classify_error
from .sessions import SessionRegistry

__all__ = [
    'ConnectionWrapper',
    'ErrorClass',
    'LiveState',
    'ReconnectPolicy',
    'SessionRegistry',
    'UpstreamError',
    'classify_error',
]
