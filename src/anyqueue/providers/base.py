"""Provider interface.

This is the (small) contract that every backend implementation follows.
A provider is owned by exactly one :class:`anyqueue.Queue`, and reports
everything that happens asynchronously (readiness, inbound messages,
errors) back through that queue.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

from .. import codec
from ..errors import OptionsError
from ..options import ConnectionOptions
from ..ready import Gate

logger = logging.getLogger(__name__)


class Provider(ABC):
    """Common capability set: publish, subscribe, unsubscribe, ack, close.

    Subclasses list the options they cannot do without in *required*;
    construction fails with :class:`OptionsError` if any are unset.
    Backend setup does not begin until :meth:`start` is called, and it
    ends with :meth:`ready`, which releases any operations held back by
    :attr:`gate`.
    """

    name: str = ""
    required: Tuple[str, ...] = ("queue_name",)

    def __init__(self, queue, options: ConnectionOptions):
        if queue is None:
            raise OptionsError("`queue` argument is not set")
        if options is None:
            raise OptionsError("`options` argument is not set")

        for field in self.required:
            if not getattr(options, field, None):
                raise OptionsError(f"`{field}` option is not set")

        self.queue = queue
        self.options = options
        self.closed = False
        self.gate = Gate(queue.scheduler)

        self._lock = threading.Lock()
        self._generation = 0

    def start(self) -> None:
        """Begin backend setup without blocking the caller."""
        self.queue.scheduler.schedule(self.initialize)

    @abstractmethod
    def initialize(self) -> None:
        """Perform backend setup; call :meth:`ready` on success."""

    @abstractmethod
    def publish(self, payload: Any, extra: Optional[dict] = None) -> None:
        """Encode *payload* and send it once the backend is ready."""

    @abstractmethod
    def subscribe(self) -> None:
        """Begin delivering inbound messages once the backend is ready."""

    @abstractmethod
    def unsubscribe(self) -> None:
        """Stop delivering inbound messages."""

    def ack(self, handle: Any) -> None:
        """Acknowledge a received message. Only meaningful for backends that
        hand out message handles; a no-op by default."""

    @abstractmethod
    def close(self) -> None:
        """Release backend resources, on a best-effort basis."""

    @property
    def is_ready(self) -> bool:
        return self.gate.ready

    # --- reporting back to the owning queue ---

    def ready(self) -> None:
        if self.gate.fire():
            logger.info("%s provider ready: %s", self.name, self.options.queue_name)
            self.queue.notify_ready()

    def receive(self, raw: Any, handle: Any = None) -> None:
        self.queue.deliver(codec.decode(raw), handle)

    def error(self, exc: BaseException) -> None:
        self.queue.report(exc)

    # --- subscription bookkeeping ---
    #
    # subscribe() and unsubscribe() are called synchronously, but the work
    # subscribe() does is gated on readiness. Each unsubscribe() bumps the
    # generation, and a gated start action whose token is stale does
    # nothing, so an unsubscribe is never undone by an earlier subscribe.

    def _open_subscription(self) -> int:
        """Mark the provider subscribed, and return the token that the
        gated start action must pass to :meth:`_is_current`."""

        with self._lock:
            self.closed = False
            return self._generation

    def _close_subscription(self) -> bool:
        """Mark the provider unsubscribed. Returns False if it already was."""

        with self._lock:
            was_open = not self.closed
            self.closed = True
            self._generation += 1
            return was_open

    def _is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._generation
