"""Amazon SQS provider.

SQS has no push delivery. Once subscribed, a :class:`anyqueue.poll.Poller`
issues one ``receive_message`` call at a time, dispatches whatever comes
back, waits ``delay_between_polls`` seconds and goes again until
unsubscribed.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .. import codec
from .. import json
from ..poll import Poller
from . import base

logger = logging.getLogger(__name__)

BACKEND_ERRORS = (ClientError, BotoCoreError)


def configure(backend_config: Any) -> None:
    """Apply credentials and region settings to the process-wide default
    boto3 session. *backend_config* is either a path to a JSON file or a
    mapping; either way its keys are :class:`boto3.session.Session`
    keyword arguments (``region_name``, ``aws_access_key_id``, ...).
    """

    if backend_config is None:
        return

    if isinstance(backend_config, str):
        with open(backend_config, "rb") as handle:
            settings = json.loads(handle.read())
    else:
        settings = dict(backend_config)

    boto3.setup_default_session(**settings)


class Provider(base.Provider):
    name = "sqs"

    def __init__(self, queue, options):
        super().__init__(queue, options)

        self.queue_name = options.queue_name
        self.queue_url: Optional[str] = None

        configure(options.backend_config)
        self.sqs = boto3.client("sqs")

        self.poller = Poller(
            self.poll,
            until=lambda: self.closed,
            delay=options.delay_between_polls,
            on_error=self.error,
            name=f"anyqueue.sqs.{self.queue_name}",
        )

    def start(self) -> None:
        name = f"anyqueue.sqs.init.{self.queue_name}"
        threading.Thread(target=self.initialize, name=name, daemon=True).start()

    def initialize(self) -> None:
        try:
            response = self.sqs.get_queue_url(QueueName=self.queue_name)
        except BACKEND_ERRORS as resolve_error:
            logger.debug("cannot resolve %s, creating it: %s", self.queue_name, resolve_error)
            self._create(resolve_error)
            return

        self._set_queue_url(response["QueueUrl"])

    def _create(self, resolve_error: Exception) -> None:
        params: Dict[str, Any] = {"QueueName": self.queue_name}
        if self.options.attributes:
            params["Attributes"] = dict(self.options.attributes)

        try:
            response = self.sqs.create_queue(**params)
        except BACKEND_ERRORS as create_error:
            # Both failures are reported; the first is usually the more
            # informative one (missing permissions, wrong region).
            self.error(resolve_error)
            self.error(create_error)
            return

        self._set_queue_url(response["QueueUrl"])

    def _set_queue_url(self, queue_url: str) -> None:
        self.queue_url = queue_url
        self.ready()

    # --- capability set ---

    def publish(self, payload: Any, extra: Optional[dict] = None) -> None:
        body = codec.encode(payload)
        self.gate.when_ready(lambda: self._send(body, extra))

    def subscribe(self) -> None:
        token = self._open_subscription()
        self.gate.when_ready(lambda: self._start_polling(token))

    def unsubscribe(self) -> None:
        self._close_subscription()
        self.poller.wake()

    def ack(self, handle: Any) -> None:
        if self.options.delete_after_receive:
            return
        self.gate.when_ready(lambda: self.delete(handle))

    def close(self) -> None:
        """Nothing to release; polling stops via :meth:`unsubscribe`."""

    # --- backend calls ---

    def _send(self, body: str, extra: Optional[dict]) -> None:
        params = dict(extra or {})
        params["QueueUrl"] = self.queue_url
        params["MessageBody"] = body

        try:
            self.sqs.send_message(**params)
        except BACKEND_ERRORS as exc:
            self.error(exc)

    def delete(self, handle: Any) -> None:
        try:
            self.sqs.delete_message(QueueUrl=self.queue_url, ReceiptHandle=handle)
        except BACKEND_ERRORS as exc:
            self.error(exc)

    def _start_polling(self, token: int) -> None:
        if self._is_current(token):
            self.poller.start()

    def receive_parameters(self) -> Dict[str, Any]:
        options = self.options
        params: Dict[str, Any] = {
            "QueueUrl": self.queue_url,
            "MaxNumberOfMessages": options.max_receive_count or 1,
        }

        if options.visibility_timeout is not None:
            params["VisibilityTimeout"] = options.visibility_timeout
        if options.wait_time_seconds is not None:
            params["WaitTimeSeconds"] = options.wait_time_seconds

        return params

    def poll(self) -> None:
        """One iteration of the polling loop: a single receive call, and
        dispatch of every message it returns."""

        try:
            response = self.sqs.receive_message(**self.receive_parameters())
        except BACKEND_ERRORS as exc:
            self.error(exc)
            return

        for message in response.get("Messages", ()):
            handle = message.get("ReceiptHandle")
            self.receive(message.get("Body", ""), handle)

            if self.options.delete_after_receive and not self.closed:
                self.delete(handle)
