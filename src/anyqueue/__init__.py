""" A single publish/subscribe interface over several message queue backends:
    RabbitMQ topic exchanges (``amqp``), Amazon SQS (``sqs``), and ZeroMQ
    publish/subscribe sockets (``zmq``). The principal entry point is
    :func:`connect`, which returns a :class:`Queue`.
"""

# Utility components.

from . import codec
from . import config
from . import json
from . import poll

# Submodules used by multiple other components.

from .errors import QueueError, OptionsError, ProviderError, QueueClosedError
from .options import ConnectionOptions, InboundMessage
from . import providers

# Primary public-facing interfaces.

from .queue import Queue, Consumer, connect

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
