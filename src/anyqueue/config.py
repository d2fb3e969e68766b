""" Process-wide defaults, read once from the environment. Anything set on a
    :class:`anyqueue.options.ConnectionOptions` instance takes precedence.
"""

import os


amqp_host = os.environ.get('ANYQUEUE_AMQP_HOST', 'localhost')
amqp_port = int(os.environ.get('ANYQUEUE_AMQP_PORT', '5672'))

# Upper bound on undelivered messages held by a channel consumer; see
# anyqueue.queue.Consumer.

consumer_maxsize = int(os.environ.get('ANYQUEUE_CONSUMER_MAXSIZE', '1000'))

# How long, in seconds, background receive loops block on their socket or
# connection before checking whether they have been asked to stop.

idle_timeout = float(os.environ.get('ANYQUEUE_IDLE_TIMEOUT', '0.1'))

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
