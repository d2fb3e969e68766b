"""RabbitMQ topic-exchange provider."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

import pika
import pika.exceptions

from .. import codec
from .. import config
from . import base

logger = logging.getLogger(__name__)


class Provider(base.Provider):
    """Publish to, and consume from, a queue bound to a topic exchange.

    A dedicated thread owns the :class:`pika.BlockingConnection`; every
    channel operation requested from elsewhere is marshalled onto that
    thread with :meth:`add_callback_threadsafe`.
    """

    name = "amqp"
    required = ("queue_name", "exchange_name")
    routing_key = "#"

    def __init__(self, queue, options):
        super().__init__(queue, options)

        self.exchange_name = options.exchange_name
        self.queue_name = options.queue_name
        self.parameters = self._parameters(options)

        self._connection = None
        self._channel = None
        self._consumer_tag: Optional[str] = None
        self._closing = False
        self._connected = False
        self._shutdown = False
        self._thread: Optional[threading.Thread] = None

    @staticmethod
    def _parameters(options) -> pika.ConnectionParameters:
        params = dict(options.backend_config or {})

        if options.hostname:
            params["host"] = options.hostname
        else:
            params.setdefault("host", config.amqp_host)

        if options.port:
            params["port"] = int(options.port)
        else:
            params.setdefault("port", config.amqp_port)

        return pika.ConnectionParameters(**params)

    def start(self) -> None:
        name = f"anyqueue.amqp.{self.queue_name}"
        self._thread = threading.Thread(target=self.run, name=name, daemon=True)
        self._thread.start()

    def initialize(self) -> None:
        self._connection = pika.BlockingConnection(self.parameters)
        self._channel = self._connection.channel()

        self._channel.exchange_declare(
            exchange=self.exchange_name, exchange_type="topic"
        )
        self._channel.queue_declare(queue=self.queue_name)
        self._channel.queue_bind(
            queue=self.queue_name,
            exchange=self.exchange_name,
            routing_key=self.routing_key,
        )

    def run(self) -> None:
        try:
            self.initialize()
        except pika.exceptions.AMQPError as exc:
            self.error(exc)
            self._disconnect()
            return

        with self._lock:
            closing = self._closing
            self._connected = True

        if closing:
            self._teardown()
        else:
            self.ready()

        while not self._shutdown:
            try:
                self._connection.process_data_events(time_limit=config.idle_timeout)
            except pika.exceptions.AMQPError as exc:
                if not self._shutdown:
                    self.error(exc)
                break

        self._disconnect()

    # --- capability set ---

    def publish(self, payload: Any, extra: Optional[dict] = None) -> None:
        body = codec.encode(payload)
        properties = pika.BasicProperties(**extra) if extra else None

        def send():
            self._channel.basic_publish(
                exchange=self.exchange_name,
                routing_key=self.queue_name,
                body=body,
                properties=properties,
            )

        self.gate.when_ready(lambda: self._call(send))

    def subscribe(self) -> None:
        token = self._open_subscription()
        self.gate.when_ready(lambda: self._call(lambda: self._consume(token)))

    def unsubscribe(self) -> None:
        self._close_subscription()
        self.gate.when_ready(lambda: self._call(self._cancel))

    def close(self) -> None:
        with self._lock:
            self._closing = True
            connected = self._connected

        # Once connected, teardown goes through the scheduler so that it
        # follows any publish already handed to it. Otherwise the
        # connection thread tears down as soon as it connects.

        if connected:
            self.queue.scheduler.schedule(lambda: self._call(self._teardown))

    # --- connection thread ---

    def _call(self, method: Callable[[], None]) -> None:
        """Run *method* on the connection thread, reporting AMQP errors."""

        def guarded():
            try:
                method()
            except pika.exceptions.AMQPError as exc:
                self.error(exc)

        try:
            self._connection.add_callback_threadsafe(guarded)
        except pika.exceptions.AMQPError as exc:
            self.error(exc)

    def _consume(self, token: int) -> None:
        if not self._is_current(token):
            return

        self._consumer_tag = self._channel.basic_consume(
            queue=self.queue_name,
            on_message_callback=self._on_message,
            auto_ack=True,
        )
        logger.debug("consuming from %s as %s", self.queue_name, self._consumer_tag)

    def _cancel(self) -> None:
        tag = self._consumer_tag
        self._consumer_tag = None
        if tag is not None:
            self._channel.basic_cancel(tag)
            logger.debug("cancelled consumer %s", tag)

    def _on_message(self, _channel, _method, _properties, body: bytes) -> None:
        if self.closed:
            return
        self.receive(body)

    def _teardown(self) -> None:
        steps = (
            lambda: self._channel.queue_unbind(
                queue=self.queue_name,
                exchange=self.exchange_name,
                routing_key=self.routing_key,
            ),
            lambda: self._channel.queue_delete(queue=self.queue_name),
            lambda: self._channel.exchange_delete(exchange=self.exchange_name),
        )

        for step in steps:
            try:
                step()
            except pika.exceptions.AMQPError as exc:
                self.error(exc)

        self._shutdown = True

    def _disconnect(self) -> None:
        connection = self._connection
        if connection is None or not connection.is_open:
            return

        try:
            connection.close()
        except pika.exceptions.AMQPError as exc:
            self.error(exc)
