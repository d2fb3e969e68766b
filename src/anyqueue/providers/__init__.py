"""Backend provider implementations.

The registry below is the complete set of supported backends; the keys are
the values accepted for ``ConnectionOptions.provider`` and double as URL
schemes for :func:`anyqueue.connect`. A backend module is only imported
when a provider of that kind is first requested.
"""

import importlib

from .base import Provider


registry = {
    "amqp": ".amqp",
    "sqs": ".sqs",
    "zmq": ".zmq",
}


def lookup(name):
    """Return the provider class registered under *name*."""

    try:
        module_name = registry[name]
    except (KeyError, TypeError):
        raise ValueError(f"unknown provider: {name!r}") from None

    module = importlib.import_module(module_name, package=__name__)
    return module.Provider


def create(name, queue, options):
    """Instantiate the provider registered under *name* for *queue*."""

    provider_class = lookup(name)
    return provider_class(queue, options)
