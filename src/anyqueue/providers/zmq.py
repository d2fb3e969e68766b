"""ZeroMQ publish/subscribe provider."""

from __future__ import annotations

import atexit
import logging
import threading
from typing import Any, Optional

import zmq

from .. import codec
from .. import config
from . import base

logger = logging.getLogger(__name__)

zmq_context = zmq.Context()


class Provider(base.Provider):
    """PUB socket bound to ``tcp://hostname:port`` for publishing, and a SUB
    socket connected to the same endpoint for receiving.

    Frames are two parts: the topic (the queue name) and the encoded body.
    The PUB socket is only ever touched from the owning queue's scheduler
    thread; each subscription gets its own receive thread, which owns its
    SUB socket outright.
    """

    name = "zmq"
    required = ("queue_name", "hostname", "port")

    def __init__(self, queue, options):
        super().__init__(queue, options)

        self.endpoint = f"tcp://{options.hostname}:{int(options.port)}"
        self.topic = options.queue_name.encode()

        self.pub = zmq_context.socket(zmq.PUB)
        self.pub.setsockopt(zmq.LINGER, 0)

        self._stop: Optional[threading.Event] = None

    def initialize(self) -> None:
        try:
            self.pub.bind(self.endpoint)
        except zmq.ZMQError as exc:
            self.error(exc)
            return

        self.ready()

    # --- capability set ---

    def publish(self, payload: Any, extra: Optional[dict] = None) -> None:
        body = codec.encode(payload).encode()
        self.gate.when_ready(lambda: self._send(body))

    def subscribe(self) -> None:
        token = self._open_subscription()
        self.gate.when_ready(lambda: self._connect_subscriber(token))

    def unsubscribe(self) -> None:
        if self._close_subscription():
            self.gate.when_ready(self._disconnect_subscriber)

    def close(self) -> None:
        self.queue.scheduler.schedule(self._unbind)

    # --- scheduler thread ---

    def _send(self, body: bytes) -> None:
        # pyzmq sends synchronously; a failure surfaces here rather than in
        # a callback.
        try:
            self.pub.send_multipart((self.topic, body))
        except zmq.ZMQError as exc:
            self.error(exc)

    def _connect_subscriber(self, token: int) -> None:
        if not self._is_current(token):
            return

        stop = threading.Event()
        self._stop = stop

        name = f"anyqueue.zmq.{self.options.queue_name}"
        thread = threading.Thread(target=self._receive, args=(stop,), name=name)
        thread.daemon = True
        thread.start()

    def _disconnect_subscriber(self) -> None:
        stop = self._stop
        self._stop = None
        if stop is not None:
            stop.set()

    def _unbind(self) -> None:
        try:
            if self.gate.ready:
                self.pub.unbind(self.endpoint)
        except zmq.ZMQError as exc:
            self.error(exc)
        finally:
            self.pub.close()

    # --- receive thread ---

    def _receive(self, stop: threading.Event) -> None:
        socket = zmq_context.socket(zmq.SUB)
        socket.setsockopt(zmq.LINGER, 0)
        timeout = int(config.idle_timeout * 1000)

        try:
            socket.connect(self.endpoint)
            socket.setsockopt(zmq.SUBSCRIBE, self.topic)
            logger.debug("subscribed to %r at %s", self.topic, self.endpoint)

            while not stop.is_set():
                if socket.poll(timeout) == 0:
                    continue

                parts = socket.recv_multipart(zmq.NOBLOCK)

                if stop.is_set():
                    break

                # SUBSCRIBE filters on prefix; only the exact topic counts.
                if len(parts) != 2 or parts[0] != self.topic:
                    continue

                self.receive(parts[1])

            socket.disconnect(self.endpoint)
        except zmq.ZMQError as exc:
            self.error(exc)
        finally:
            socket.close()


def _cleanup() -> None:
    zmq_context.destroy(linger=0)


atexit.register(_cleanup)
