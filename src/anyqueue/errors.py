"""Exceptions raised by anyqueue itself.

Errors reported by a backend (pika, botocore, pyzmq) are not wrapped; they
are delivered as-is to the ``error`` listeners of the owning
:class:`anyqueue.Queue`.
"""

from __future__ import annotations

from typing import Optional


class QueueError(Exception):
    """Base class for all anyqueue errors."""


class OptionsError(QueueError, ValueError):
    """Connection options are missing a required field or are malformed."""


class ProviderError(QueueError):
    """A provider could not be instantiated.

    *provider* is the selection key that was attempted, *inner* the
    exception raised while constructing it.
    """

    def __init__(self, message: str, provider: Optional[str] = None,
                 inner: Optional[BaseException] = None):
        super().__init__(message)
        self.provider = provider
        self.inner = inner


class QueueClosedError(QueueError):
    """An operation was requested after the queue was closed."""
